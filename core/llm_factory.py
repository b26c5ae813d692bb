"""
LLM Factory - Factory Pattern Implementation
Centralized factory for creating LLM instances with different providers.
"""
from typing import Optional
from langchain_core.language_models.chat_models import BaseChatModel

from core.llm_providers import (
    LLMProvider,
    NebiusProvider,
    OpenAIProvider,
)
from core.settings import settings


class LLMFactory:
    """
    Factory class for creating LLM instances.
    Implements Factory Pattern for clean, extensible object creation.
    """

    # Registry of available providers
    _providers: dict[str, type[LLMProvider]] = {
        "openai": OpenAIProvider,
        "nebius": NebiusProvider,
    }

    @classmethod
    def register_provider(cls, name: str, provider_class: type[LLMProvider]) -> None:
        """
        Register a new LLM provider.

        Args:
            name: Provider identifier
            provider_class: Provider class implementing LLMProvider
        """
        cls._providers[name.lower()] = provider_class

    @classmethod
    def create(
        cls,
        provider_name: str,
        model: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
        **provider_kwargs
    ) -> BaseChatModel:
        """
        Create an LLM instance using the specified provider.

        Args:
            provider_name: Name of the provider ("openai", "nebius")
            model: Optional model name (uses provider default if None)
            temperature: Temperature setting (0.0 - 1.0)
            max_tokens: Optional completion token cap
            **provider_kwargs: Additional provider-specific arguments

        Returns:
            Configured LLM instance

        Raises:
            ValueError: If provider is not registered
            RuntimeError: If provider configuration is invalid

        Examples:
            >>> llm = LLMFactory.create("openai")
            >>> llm = LLMFactory.create("nebius", model="custom-model", temperature=0.7)
        """
        provider_name = provider_name.lower()

        if provider_name not in cls._providers:
            available = ", ".join(cls._providers.keys())
            raise ValueError(
                f"Unknown provider: '{provider_name}'. "
                f"Available providers: {available}"
            )

        provider_class = cls._providers[provider_name]
        provider = provider_class(**provider_kwargs)

        return provider.create_llm(model=model, temperature=temperature, max_tokens=max_tokens)

    @classmethod
    def list_providers(cls) -> list[str]:
        """Get list of registered provider names."""
        return list(cls._providers.keys())


def create_analysis_llm(provider: Optional[str] = None) -> BaseChatModel:
    """
    Create the vision-capable LLM used to read hardware block diagrams.

    Args:
        provider: Provider name (defaults to settings.LLM_PROVIDER)
    """
    provider = provider or settings.LLM_PROVIDER
    model = settings.ANALYSIS_MODEL if provider.lower() == "openai" else None
    return LLMFactory.create(
        provider,
        model=model,
        temperature=settings.ANALYSIS_TEMPERATURE,
        max_tokens=settings.ANALYSIS_MAX_TOKENS,
    )


def create_api_llm(provider: Optional[str] = None) -> BaseChatModel:
    """
    Create the LLM used to generate module API stubs.

    Args:
        provider: Provider name (defaults to settings.LLM_PROVIDER)
    """
    provider = provider or settings.LLM_PROVIDER
    model = settings.API_MODEL if provider.lower() == "openai" else None
    return LLMFactory.create(
        provider,
        model=model,
        temperature=settings.API_TEMPERATURE,
        max_tokens=settings.API_MAX_TOKENS,
    )
