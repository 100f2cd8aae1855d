from __future__ import annotations
import logging
import time

from openai import APIError, AzureOpenAI, OpenAI

from dsg.errors import ConfigError, GenerationError
from dsg.prompting import PLACEHOLDER, load_reference_schema
from .base import LLMProvider, LLMResponse, ProviderConfig

logger = logging.getLogger("dsg.llm")


class MockProvider(LLMProvider):
    """
    Deterministic provider for tests and offline runs.
    Answers every prompt with the bundled reference schema.
    """

    def __init__(self, config: ProviderConfig, content: str | None = None):
        super().__init__(config)
        self.content = content
        self.prompts: list[str] = []

    def generate(self, prompt: str) -> LLMResponse:
        start = time.time()
        self.prompts.append(prompt)
        content = self.content
        if content is None:
            content = load_reference_schema().replace(PLACEHOLDER, "mock_orders")
        latency = (time.time() - start) * 1000
        return LLMResponse(content=content, latency_ms=latency)


class OpenAIProvider(LLMProvider):
    """
    Provider for OpenAI-compatible chat completion APIs, including Azure OpenAI.
    Requires config.api_key; Azure additionally needs config.azure_deployment.
    """

    def __init__(self, config: ProviderConfig, client: OpenAI | None = None):
        super().__init__(config)
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = self._build_client()
        return self._client

    def _build_client(self) -> OpenAI:
        if not self.config.api_key:
            raise ConfigError("Missing OpenAI API key (set OPENAI_API_KEY or --api-key)")
        if self.config.azure_deployment:
            return AzureOpenAI(
                api_key=self.config.api_key,
                api_version=self.config.azure_api_version,
                azure_endpoint=self.config.base_url,
                azure_deployment=self.config.azure_deployment,
                timeout=self.config.timeout,
            )
        return OpenAI(
            api_key=self.config.api_key,
            base_url=self.config.base_url,
            timeout=self.config.timeout,
        )

    def generate(self, prompt: str) -> LLMResponse:
        model = self.config.azure_deployment or self.config.model
        logger.debug("Sending chat completion request (model=%s)", model)

        start = time.time()
        try:
            completion = self.client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
        except APIError as e:
            raise GenerationError(f"LLM API failed: {e}") from e

        if not completion.choices:
            raise GenerationError("no response choices from the LLM service")
        content = completion.choices[0].message.content
        if not content:
            raise GenerationError("empty response from the LLM service")

        usage = {}
        if completion.usage is not None:
            usage = {
                "prompt_tokens": completion.usage.prompt_tokens,
                "completion_tokens": completion.usage.completion_tokens,
            }
        latency = (time.time() - start) * 1000
        logger.debug("Received %d characters in %.0f ms", len(content), latency)
        return LLMResponse(content=content, raw_response=completion, usage=usage, latency_ms=latency)
