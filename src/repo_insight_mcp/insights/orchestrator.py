from collections.abc import AsyncIterator, Callable, Sequence
from logging import Logger

from fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, ConfigDict, Field

from repo_insight_mcp.config.models import ModelConfiguration
from repo_insight_mcp.config.store import ConfigStore
from repo_insight_mcp.insights.cache import InsightCache
from repo_insight_mcp.insights.context import ContextComposer
from repo_insight_mcp.insights.errors import ConfigurationNotFoundError, CredentialRequiredError
from repo_insight_mcp.insights.models import RepositoryIdentity
from repo_insight_mcp.llm.errors import LLMError
from repo_insight_mcp.llm.factory import create_provider
from repo_insight_mcp.llm.models import Completion, ModelDescriptor, ModelVendor, StreamDone, StreamError, StreamEvent, StreamToken
from repo_insight_mcp.llm.providers.base import LLMProvider
from repo_insight_mcp.settings import get_model_cache_hours

ProviderFactory = Callable[[ModelConfiguration], LLMProvider]

DIRECT_CONFIGURATION_NAME = "Direct API key"


class ManagedCredential(BaseModel):
    """A stored model configuration, referenced by id."""

    model_config = ConfigDict(frozen=True)

    configuration_id: str


class DirectCredential(BaseModel):
    """A raw API key used once with the OpenAI defaults."""

    model_config = ConfigDict(frozen=True)

    api_key: str


Credential = ManagedCredential | DirectCredential


class InsightRequest(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    identity: RepositoryIdentity = Field(description="The repository to summarize.")
    api_key: str | None = Field(default=None, description="A raw API key, used when no model configuration id is given.")
    model_config_id: str | None = Field(default=None, description="The id of the stored model configuration to use.")
    deep_context: bool = Field(default=False, description="Whether to include the full README, the directory listing and a manifest.")
    force_refresh: bool = Field(default=False, description="Whether to ignore a cached insight.")

    def resolve_credential(self) -> Credential:
        """The model configuration id takes precedence over the API key when both are provided."""

        if self.model_config_id:
            return ManagedCredential(configuration_id=self.model_config_id)

        if self.api_key:
            return DirectCredential(api_key=self.api_key)

        raise CredentialRequiredError


def direct_configuration(api_key: str) -> ModelConfiguration:
    return ModelConfiguration.for_vendor(name=DIRECT_CONFIGURATION_NAME, vendor=ModelVendor.OPENAI.value, api_key=api_key)


class InsightOrchestrator:
    """Coordinates the insight cache, the context composer and the providers to summarize repositories."""

    def __init__(
        self,
        config_store: ConfigStore,
        insight_cache: InsightCache,
        context_composer: ContextComposer,
        provider_factory: ProviderFactory = create_provider,
        model_cache_hours: int | None = None,
        logger: Logger | None = None,
    ):
        self.config_store: ConfigStore = config_store
        self.insight_cache: InsightCache = insight_cache
        self.context_composer: ContextComposer = context_composer
        self.provider_factory: ProviderFactory = provider_factory
        self.model_cache_hours: int = model_cache_hours or get_model_cache_hours()
        self.logger: Logger = logger or get_logger(name=__name__)

    async def _require_configuration(self, configuration_id: str) -> ModelConfiguration:
        if (configuration := await self.config_store.get_configuration(configuration_id)) is None:
            raise ConfigurationNotFoundError(configuration_id)

        return configuration

    async def _configuration_for(self, credential: Credential) -> ModelConfiguration:
        match credential:
            case ManagedCredential(configuration_id=configuration_id):
                return await self._require_configuration(configuration_id)
            case DirectCredential(api_key=api_key):
                return direct_configuration(api_key=api_key)

    async def summarize_repository(self, request: InsightRequest) -> AsyncIterator[StreamEvent]:
        """Stream the insight for a repository, ending with exactly one `StreamDone`.

        A cached insight is replayed as a single token unless `force_refresh` is set. Otherwise the
        generated tokens are relayed as they arrive and, for stored model configurations, the complete
        text is cached before the `StreamDone`. A provider error is relayed as a `StreamError` and
        nothing is cached.

        Raises:
            CredentialRequiredError: If the request has neither a model configuration id nor an API key.
            ConfigurationNotFoundError: If the model configuration id is unknown and no insight is cached.
        """

        identity = request.identity
        credential = request.resolve_credential()

        if not request.force_refresh and (cached := await self.insight_cache.get(identity)) is not None:
            self.logger.info(f"Serving the cached insight for {identity.full_name}")
            yield StreamToken(text=cached)
            yield StreamDone()
            return

        configuration = await self._configuration_for(credential)

        messages = await self.context_composer.compose(identity=identity, deep=request.deep_context)

        self.logger.info(f"Summarizing {identity.full_name} with {configuration.name} ({configuration.default_model})")

        try:
            response = await self.provider_factory(configuration).chat_completion(
                messages=messages, model=configuration.default_model, stream=True
            )
        except LLMError as e:
            self.logger.warning(f"Summarizing {identity.full_name} failed: {e}")
            yield StreamError(message=str(e), kind=e.kind)
            yield StreamDone()
            return

        buffer: list[str] = []

        if isinstance(response, Completion):
            if response.content:
                buffer.append(response.content)
                yield StreamToken(text=response.content)
        else:
            async with response:
                async for event in response:
                    match event:
                        case StreamToken(text=text):
                            buffer.append(text)
                            yield event
                        case StreamError():
                            self.logger.warning(f"Summarizing {identity.full_name} failed: {event.message}")
                            yield event
                            yield StreamDone()
                            return
                        case StreamDone():
                            break

        if isinstance(credential, ManagedCredential) and buffer:
            await self._write_cache(identity=identity, text="".join(buffer))

        yield StreamDone()

    async def _write_cache(self, identity: RepositoryIdentity, text: str) -> None:
        try:
            _ = await self.insight_cache.put(identity=identity, text=text)
        except (OSError, ValueError) as e:
            self.logger.warning(f"Could not cache the insight for {identity.full_name}: {e}")

    async def get_cached_insight(self, identity: RepositoryIdentity) -> str | None:
        return await self.insight_cache.get(identity)

    async def check_insights_batch(self, identities: Sequence[RepositoryIdentity]) -> list[str]:
        return await self.insight_cache.check_batch(identities)

    async def list_available_models(self, configuration_id: str, refresh: bool = False) -> list[ModelDescriptor]:
        """List the models of a configuration's vendor, served from the model-list cache while it is valid."""

        configuration = await self._require_configuration(configuration_id)

        if not refresh and (cached := await self.config_store.get_cached_models(vendor=configuration.vendor)) is not None:
            self.logger.debug(f"Serving the cached model list for {configuration.vendor}")
            return cached

        models = await self.provider_factory(configuration).list_models()

        await self.config_store.update_model_cache(vendor=configuration.vendor, models=models, cache_hours=self.model_cache_hours)

        return models

    async def test_provider_connection(self, configuration_id: str) -> None:
        configuration = await self._require_configuration(configuration_id)

        self.logger.info(f"Testing the connection of {configuration.name}")

        await self.provider_factory(configuration).test_connection()
