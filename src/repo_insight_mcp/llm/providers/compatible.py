from collections.abc import Sequence
from logging import Logger
from typing_extensions import override

import httpx
from fastmcp.utilities.logging import get_logger

from repo_insight_mcp.config.models import ModelConfiguration
from repo_insight_mcp.llm.errors import LLMError
from repo_insight_mcp.llm.models import ChatMessage, ModelDescriptor, ModelVendor
from repo_insight_mcp.llm.providers.base import LLMProvider
from repo_insight_mcp.llm.providers.openai import OpenAIProvider
from repo_insight_mcp.llm.stream import LLMResponse

DEEPSEEK_PRESET_MODELS: list[ModelDescriptor] = [
    ModelDescriptor(
        id="deepseek-chat",
        name="DeepSeek Chat (V3)",
        vendor=ModelVendor.DEEPSEEK.value,
        context_length=64000,
        max_tokens=8192,
        supports_streaming=True,
        supports_function_calling=True,
    ),
    ModelDescriptor(
        id="deepseek-reasoner",
        name="DeepSeek Reasoner (R1)",
        vendor=ModelVendor.DEEPSEEK.value,
        context_length=64000,
        max_tokens=8192,
        supports_streaming=True,
        supports_function_calling=False,
    ),
]


class OpenAICompatibleProvider(LLMProvider):
    """A vendor whose API is wire-compatible with OpenAI. Requests are delegated to an `OpenAIProvider`."""

    configuration: ModelConfiguration
    inner: OpenAIProvider
    logger: Logger

    def __init__(self, configuration: ModelConfiguration, http_client: httpx.AsyncClient | None = None, logger: Logger | None = None):
        self.configuration = configuration
        self.logger = logger or get_logger(name=__name__)
        self.inner = OpenAIProvider(configuration=configuration, http_client=http_client, logger=self.logger)

    @override
    async def chat_completion(self, messages: Sequence[ChatMessage], model: str, stream: bool) -> LLMResponse:
        return await self.inner.chat_completion(messages=messages, model=model, stream=stream)

    @override
    async def list_models(self) -> list[ModelDescriptor]:
        try:
            models = await self.inner.list_models()
        except LLMError as e:
            self.logger.warning(f"Listing models from {self.configuration.vendor} failed, using the fallback list: {e}")
            return self.fallback_models()

        return [model.model_copy(update={"vendor": self.configuration.vendor}) for model in models]

    @override
    async def test_connection(self) -> None:
        await self.inner.test_connection()

    def fallback_models(self) -> list[ModelDescriptor]:
        return [
            ModelDescriptor(
                id=self.configuration.default_model,
                name=self.configuration.default_model,
                vendor=self.configuration.vendor,
                supports_streaming=True,
                supports_function_calling=False,
            )
        ]


class DeepSeekProvider(OpenAICompatibleProvider):
    """DeepSeek serves the OpenAI wire format."""

    @override
    def fallback_models(self) -> list[ModelDescriptor]:
        return [model.model_copy() for model in DEEPSEEK_PRESET_MODELS]


class CustomProvider(OpenAICompatibleProvider):
    """Any OpenAI-compatible API such as Ollama, vLLM, LiteLLM or Together AI."""
