"""Factory for instantiating LLM providers based on configuration."""

from __future__ import annotations
from typing import Optional

from dsg.config import Settings
from dsg.errors import ConfigError
from .base import LLMProvider, ProviderConfig
from .providers import MockProvider, OpenAIProvider

# Registry of available providers
PROVIDERS = {
    "mock": MockProvider,
    "openai": OpenAIProvider,
}


def config_from_settings(settings: Settings) -> ProviderConfig:
    """
    Translate CLI settings into a provider config.

    Raises:
        ConfigError: Azure is requested without a deployment name.
    """
    if settings.use_azure and not settings.azure_deployment:
        raise ConfigError("azure-deployment is required when using Azure OpenAI")

    return ProviderConfig(
        api_key=settings.api_key,
        base_url=settings.api_base,
        model=settings.model,
        azure_deployment=settings.azure_deployment if settings.use_azure else None,
        azure_api_version=settings.azure_api_version if settings.use_azure else None,
    )


def get_provider(
    name: Optional[str] = None, config: Optional[ProviderConfig] = None
) -> LLMProvider:
    """
    Instantiate an LLM provider.

    Args:
        name: Provider name ("mock", "openai"). Defaults to "openai".
        config: Provider config. Defaults to ProviderConfig().

    Raises:
        ConfigError: If provider name is not recognized.
    """
    name = (name or "openai").lower()
    if name not in PROVIDERS:
        available = ", ".join(PROVIDERS.keys())
        raise ConfigError(f"Unknown provider '{name}'. Available: {available}")

    provider_class = PROVIDERS[name]
    return provider_class(config or ProviderConfig())


def register_provider(name: str, provider_class: type) -> None:
    """
    Register a custom provider class.

    Args:
        name: Name to register the provider under.
        provider_class: Class that inherits from LLMProvider.
    """
    if not issubclass(provider_class, LLMProvider):
        raise TypeError(f"{provider_class} must be a subclass of LLMProvider")
    PROVIDERS[name.lower()] = provider_class
