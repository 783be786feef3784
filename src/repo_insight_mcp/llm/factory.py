import httpx

from repo_insight_mcp.config.models import ModelConfiguration
from repo_insight_mcp.llm.errors import ConfigurationError
from repo_insight_mcp.llm.models import CUSTOM_VENDOR, ModelVendor
from repo_insight_mcp.llm.providers.base import LLMProvider
from repo_insight_mcp.llm.providers.compatible import CustomProvider, DeepSeekProvider
from repo_insight_mcp.llm.providers.openai import OpenAIProvider
from repo_insight_mcp.llm.providers.unsupported import AnthropicProvider, AzureOpenAIProvider, GoogleProvider


def create_provider(configuration: ModelConfiguration, http_client: httpx.AsyncClient | None = None) -> LLMProvider:
    """Build the adapter for a configuration's vendor. Unknown vendor tags are treated as OpenAI-compatible APIs.

    Adapters are cheap and hold no state shared between requests, so a new one can be built for every call.
    """

    if not configuration.api_key:
        msg = "The model configuration has no API key"
        raise ConfigurationError(msg, extra_info={"configuration": configuration.id})

    match ModelVendor.from_tag(configuration.vendor):
        case ModelVendor.OPENAI:
            return OpenAIProvider(configuration=configuration, http_client=http_client)
        case ModelVendor.DEEPSEEK:
            return DeepSeekProvider(configuration=configuration, http_client=http_client)
        case ModelVendor.ANTHROPIC:
            return AnthropicProvider(configuration=configuration)
        case ModelVendor.GOOGLE:
            return GoogleProvider(configuration=configuration)
        case ModelVendor.AZURE_OPENAI:
            return AzureOpenAIProvider(configuration=configuration)
        case None:
            if not configuration.base_url:
                msg = "A custom vendor requires a base URL"
                raise ConfigurationError(msg, extra_info={"configuration": configuration.id, "vendor": configuration.vendor})

            return CustomProvider(configuration=configuration, http_client=http_client)


def supported_vendors() -> list[str]:
    return [*(vendor.value for vendor in ModelVendor), CUSTOM_VENDOR]
