from collections.abc import Sequence
from typing import ClassVar
from typing_extensions import override

from repo_insight_mcp.config.models import ModelConfiguration
from repo_insight_mcp.llm.errors import ConfigurationError
from repo_insight_mcp.llm.models import ChatMessage, ModelDescriptor, ModelVendor
from repo_insight_mcp.llm.providers.base import LLMProvider
from repo_insight_mcp.llm.stream import LLMResponse


def preset(model_id: str, name: str, vendor: ModelVendor, context_length: int, max_tokens: int) -> ModelDescriptor:
    return ModelDescriptor(
        id=model_id,
        name=name,
        vendor=vendor.value,
        context_length=context_length,
        max_tokens=max_tokens,
        supports_streaming=True,
        supports_function_calling=True,
    )


class UnsupportedProvider(LLMProvider):
    """A vendor without a working integration.

    Completions and connection tests fail with a `ConfigurationError` without touching the network,
    the model list is a fixed preset.
    """

    vendor: ClassVar[ModelVendor]
    preset_models: ClassVar[list[ModelDescriptor]]

    def __init__(self, configuration: ModelConfiguration):
        self.configuration = configuration

    @override
    async def chat_completion(self, messages: Sequence[ChatMessage], model: str, stream: bool) -> LLMResponse:
        msg = f"{self.vendor.display_name} provider not yet implemented"
        raise ConfigurationError(msg)

    @override
    async def list_models(self) -> list[ModelDescriptor]:
        return [model.model_copy() for model in self.preset_models]

    @override
    async def test_connection(self) -> None:
        msg = f"{self.vendor.display_name} connection test not yet implemented"
        raise ConfigurationError(msg)


class AnthropicProvider(UnsupportedProvider):
    vendor = ModelVendor.ANTHROPIC
    preset_models = [
        preset("claude-3-opus-20240229", "Claude 3 Opus", ModelVendor.ANTHROPIC, 200000, 4096),
        preset("claude-3-sonnet-20240229", "Claude 3 Sonnet", ModelVendor.ANTHROPIC, 200000, 4096),
        preset("claude-3-haiku-20240307", "Claude 3 Haiku", ModelVendor.ANTHROPIC, 200000, 4096),
    ]


class GoogleProvider(UnsupportedProvider):
    vendor = ModelVendor.GOOGLE
    preset_models = [
        preset("gemini-pro", "Gemini Pro", ModelVendor.GOOGLE, 30720, 2048),
        preset("gemini-pro-vision", "Gemini Pro Vision", ModelVendor.GOOGLE, 12288, 4096),
        preset("gemini-1.5-pro", "Gemini 1.5 Pro", ModelVendor.GOOGLE, 1000000, 8192),
    ]


class AzureOpenAIProvider(UnsupportedProvider):
    # Azure needs deployment-scoped endpoints and api-version parameters.
    vendor = ModelVendor.AZURE_OPENAI
    preset_models = [
        preset("gpt-4", "GPT-4", ModelVendor.AZURE_OPENAI, 8192, 4096),
        preset("gpt-4-turbo", "GPT-4 Turbo", ModelVendor.AZURE_OPENAI, 128000, 4096),
        preset("gpt-3.5-turbo", "GPT-3.5 Turbo", ModelVendor.AZURE_OPENAI, 16385, 4096),
    ]
