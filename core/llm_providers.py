"""
LLM Providers - Strategy Pattern Implementation
Each provider is a separate class following the Strategy Pattern.
"""
from abc import ABC, abstractmethod
from typing import Optional
from langchain_openai import ChatOpenAI
from langchain_core.language_models.chat_models import BaseChatModel

from core.settings import settings


class LLMProvider(ABC):
    """
    Abstract Base Class for LLM Providers (Strategy Pattern).
    All providers must implement this interface.
    """

    @abstractmethod
    def create_llm(
        self,
        model: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
    ) -> BaseChatModel:
        """
        Create and return an LLM instance.

        Args:
            model: Model identifier (uses default if None)
            temperature: Temperature setting
            max_tokens: Completion token cap (provider default if None)

        Returns:
            Configured LLM instance
        """
        pass

    @abstractmethod
    def validate_configuration(self) -> None:
        """Validate that provider configuration is complete."""
        pass

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Return the default model for this provider."""
        pass


class OpenAIProvider(LLMProvider):
    """OpenAI LLM Provider Implementation."""

    def __init__(self, api_key: Optional[str] = None):
        """
        Initialize OpenAI provider.

        Args:
            api_key: API key (defaults to settings.OPENAI_API_KEY)
        """
        self.api_key = api_key or settings.OPENAI_API_KEY
        self.validate_configuration()

    @property
    def default_model(self) -> str:
        return settings.ANALYSIS_MODEL

    def validate_configuration(self) -> None:
        """Validate OpenAI configuration."""
        if not self.api_key:
            raise RuntimeError(
                "OpenAI configuration incomplete. "
                "Set OPENAI_API_KEY in your .env file."
            )

    def create_llm(
        self,
        model: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
    ) -> ChatOpenAI:
        """
        Create OpenAI LLM instance with timeout protection.

        Retries are disabled: a failed call is reported to the caller as-is.
        """
        return ChatOpenAI(
            api_key=self.api_key,
            model=model or self.default_model,
            temperature=temperature,
            max_tokens=max_tokens,
            request_timeout=60.0,  # 60 second timeout
            max_retries=0,
        )


class NebiusProvider(LLMProvider):
    """Nebius LLM Provider Implementation (OpenAI-compatible endpoint)."""

    def __init__(self, api_key: Optional[str] = None, endpoint: Optional[str] = None):
        """
        Initialize Nebius provider.

        Args:
            api_key: API key (defaults to settings.NEBIUS_API_KEY)
            endpoint: API endpoint (defaults to settings.NEBIUS_ENDPOINT)
        """
        self.api_key = api_key or settings.NEBIUS_API_KEY
        self.endpoint = endpoint or settings.NEBIUS_ENDPOINT
        self.validate_configuration()

    @property
    def default_model(self) -> str:
        return "Qwen/Qwen2-VL-72B-Instruct"

    def validate_configuration(self) -> None:
        """Validate Nebius configuration."""
        if not self.api_key or not self.endpoint:
            raise RuntimeError(
                "Nebius configuration incomplete. "
                "Set NEBIUS_API_KEY and NEBIUS_ENDPOINT in your .env file."
            )

    def create_llm(
        self,
        model: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
    ) -> ChatOpenAI:
        """Create Nebius LLM instance with timeout protection."""
        return ChatOpenAI(
            base_url=str(self.endpoint),
            api_key=self.api_key,
            model=model or self.default_model,
            temperature=temperature,
            max_tokens=max_tokens,
            request_timeout=60.0,
            max_retries=0,
        )
