from .base import LLMProvider, LLMResponse, ProviderConfig
from .factory import PROVIDERS, config_from_settings, get_provider, register_provider
from .providers import MockProvider, OpenAIProvider

__all__ = [
    "LLMProvider",
    "LLMResponse",
    "ProviderConfig",
    "PROVIDERS",
    "config_from_settings",
    "get_provider",
    "register_provider",
    "MockProvider",
    "OpenAIProvider",
]
