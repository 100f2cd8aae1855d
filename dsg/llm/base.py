from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

class LLMResponse(BaseModel):
    """Standardized response from any LLM provider."""
    content: str
    raw_response: Any = None
    usage: Dict[str, int] = Field(default_factory=dict) # e.g. {"prompt_tokens": 10, "completion_tokens": 20}
    latency_ms: float = 0.0

class ProviderConfig(BaseModel):
    """Configuration for an LLM provider."""
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    model: str = "gpt-4o"
    temperature: float = 0.2  # low temperature keeps the JSON shape stable
    max_tokens: int = 8192
    timeout: float = 120.0
    azure_deployment: Optional[str] = None
    azure_api_version: Optional[str] = None

class LLMProvider(ABC):
    """Abstract Base Class for LLM Providers."""

    def __init__(self, config: ProviderConfig):
        self.config = config

    @abstractmethod
    def generate(self, prompt: str) -> LLMResponse:
        """
        Send a single user message and return the first answer.

        Args:
            prompt: The full user prompt.

        Returns:
            LLMResponse object containing content and metadata.

        Raises:
            GenerationError: The call failed or produced no content.
        """
        pass
