"""
Application settings and configuration.
"""
from pydantic_settings import BaseSettings
from pydantic import Field, ConfigDict
from dotenv import load_dotenv

# Load .env file explicitly
load_dotenv()

class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ========== App Settings ==========
    APP_NAME: str = "HW2SW Architect"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "Hardware block diagram to layered software architecture"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 7860
    DEBUG: bool = False

    # ========== LLM Settings ==========
    LLM_PROVIDER: str = Field("openai", validation_alias="LLM_PROVIDER")

    # Hardware diagram analysis (needs a vision-capable model)
    ANALYSIS_MODEL: str = "gpt-4o"
    ANALYSIS_TEMPERATURE: float = 0.7
    ANALYSIS_MAX_TOKENS: int = 4000

    # API stub generation
    API_MODEL: str = "gpt-4"
    API_TEMPERATURE: float = 0.7
    API_MAX_TOKENS: int = 2000

    # OpenAI LLM Configuration
    OPENAI_API_KEY: str | None = Field(None, validation_alias="OPENAI_API_KEY")

    # Nebius LLM Configuration
    NEBIUS_API_KEY: str | None = Field(None, validation_alias="NEBIUS_API_KEY")
    NEBIUS_ENDPOINT: str | None = Field(None, validation_alias="NEBIUS_ENDPOINT")

    # ========== Diagram Rendering ==========
    MERMAID_INK_URL: str = Field("https://mermaid.ink/img/", validation_alias="MERMAID_INK_URL")
    RENDER_TIMEOUT: float = 15.0

    model_config = ConfigDict(
            env_file=".env",
            env_file_encoding="utf-8",
            case_sensitive=False,
            extra="ignore",
        )
# Create settings instance
settings = Settings()
