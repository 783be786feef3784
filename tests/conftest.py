from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, overload
from typing_extensions import override

import httpx
import pytest
from fastmcp import FastMCP
from fastmcp.client.client import CallToolResult
from fastmcp.server.middleware.logging import StructuredLoggingMiddleware
from pydantic import BaseModel

from repo_insight_mcp.config.backends import InMemoryBackend
from repo_insight_mcp.config.models import ModelConfiguration
from repo_insight_mcp.config.store import ConfigStore
from repo_insight_mcp.insights.cache import InsightCache
from repo_insight_mcp.insights.context import ContextComposer, MetadataSource
from repo_insight_mcp.insights.models import RepositoryIdentity
from repo_insight_mcp.insights.orchestrator import InsightOrchestrator
from repo_insight_mcp.llm.models import ChatMessage, Completion, ModelDescriptor, ModelVendor, StreamEvent, StreamToken
from repo_insight_mcp.llm.providers.base import LLMProvider
from repo_insight_mcp.llm.stream import EventSink, EventStream, LLMResponse

OPENAI_BASE_URL = "https://api.openai.test/v1"

# Fakes


class StubProvider(LLMProvider):
    """Replays a fixed sequence of stream events. The `StreamDone` is added by the `EventStream`."""

    def __init__(
        self,
        configuration: ModelConfiguration,
        events: Sequence[StreamEvent] = (),
        models: Sequence[ModelDescriptor] = (),
        stream: bool = True,
    ):
        self.configuration = configuration
        self.events: list[StreamEvent] = list(events)
        self.models: list[ModelDescriptor] = list(models)
        self.stream: bool = stream
        self.completion_requests: list[list[ChatMessage]] = []
        self.list_models_calls: int = 0
        self.test_connection_calls: int = 0

    @override
    async def chat_completion(self, messages: Sequence[ChatMessage], model: str, stream: bool) -> LLMResponse:
        self.completion_requests.append(list(messages))

        if not self.stream:
            text = "".join([event.text for event in self.events if isinstance(event, StreamToken)])
            return Completion(content=text, model=model)

        async def produce(send: EventSink) -> None:
            for event in self.events:
                if not await send(event):
                    return

        return EventStream(producer=produce)

    @override
    async def list_models(self) -> list[ModelDescriptor]:
        self.list_models_calls += 1
        return list(self.models)

    @override
    async def test_connection(self) -> None:
        self.test_connection_calls += 1


class StubMetadataSource(MetadataSource):
    """Serves repository content from memory. Paths listed in `failing` raise instead."""

    def __init__(
        self,
        readme: str | None = None,
        listing: str | None = None,
        files: dict[str, str] | None = None,
        failing: set[str] | None = None,
    ):
        self.readme: str | None = readme
        self.listing: str | None = listing
        self.files: dict[str, str] = files or {}
        self.failing: set[str] = failing or set()
        self.requested_files: list[str] = []

    def _raise_if_failing(self, path: str) -> None:
        if path in self.failing:
            msg = f"Failed to fetch {path}"
            raise RuntimeError(msg)

    @override
    async def fetch_readme(self, author: str, name: str, limit: int | None = None) -> str | None:
        self._raise_if_failing("README.md")
        return self.readme

    @override
    async def fetch_directory_listing(self, author: str, name: str) -> str | None:
        self._raise_if_failing("")
        return self.listing

    @override
    async def fetch_file(self, author: str, name: str, path: str, limit: int | None = None) -> str | None:
        self.requested_files.append(path)
        self._raise_if_failing(path)
        return self.files.get(path)


def mock_http_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def sse_response(*frames: str, status_code: int = 200) -> httpx.Response:
    body = "".join([f"data: {frame}\n\n" for frame in frames])
    return httpx.Response(status_code, text=body, headers={"content-type": "text/event-stream"})


# Fixtures


@pytest.fixture
def identity() -> RepositoryIdentity:
    return RepositoryIdentity(
        author="strawgate",
        name="github-issues-e2e-test",
        description="A repository for end-to-end tests.",
        language="Python",
        url="https://github.com/strawgate/github-issues-e2e-test",
    )


@pytest.fixture
def other_identities() -> list[RepositoryIdentity]:
    return [
        RepositoryIdentity(author="astral-sh", name="uv", url="https://github.com/astral-sh/uv"),
        RepositoryIdentity(author="pydantic", name="pydantic", url="https://github.com/pydantic/pydantic"),
        RepositoryIdentity(author="encode", name="httpx", url="https://github.com/encode/httpx"),
    ]


@pytest.fixture
def openai_configuration() -> ModelConfiguration:
    return ModelConfiguration.for_vendor(name="OpenAI", vendor=ModelVendor.OPENAI.value, api_key="sk-test-1234567890", base_url=OPENAI_BASE_URL)


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def config_store(backend: InMemoryBackend) -> ConfigStore:
    return ConfigStore(backend=backend)


@pytest.fixture
def insight_cache(tmp_path: Path) -> InsightCache:
    return InsightCache(data_root=tmp_path)


@pytest.fixture
def metadata_source() -> StubMetadataSource:
    return StubMetadataSource(readme="# GitHub Issues E2E Test\n\nA repository for end-to-end tests.")


@pytest.fixture
def context_composer(metadata_source: StubMetadataSource) -> ContextComposer:
    return ContextComposer(metadata_source=metadata_source)


@pytest.fixture
def stub_provider(openai_configuration: ModelConfiguration) -> StubProvider:
    return StubProvider(
        configuration=openai_configuration,
        events=[StreamToken(text="Hello"), StreamToken(text=" World")],
        models=[ModelDescriptor(id="gpt-4o-mini", name="gpt-4o-mini", vendor="openai")],
    )


@pytest.fixture
def created_providers() -> list[ModelConfiguration]:
    """The configurations the orchestrator built providers for."""
    return []


@pytest.fixture
def orchestrator(
    config_store: ConfigStore,
    insight_cache: InsightCache,
    context_composer: ContextComposer,
    stub_provider: StubProvider,
    created_providers: list[ModelConfiguration],
) -> InsightOrchestrator:
    def provider_factory(configuration: ModelConfiguration) -> LLMProvider:
        created_providers.append(configuration)
        return stub_provider

    return InsightOrchestrator(
        config_store=config_store,
        insight_cache=insight_cache,
        context_composer=context_composer,
        provider_factory=provider_factory,
        model_cache_hours=24,
    )


@pytest.fixture
def logging_middleware() -> StructuredLoggingMiddleware:
    return StructuredLoggingMiddleware(include_payloads=True)


@pytest.fixture
def fastmcp(logging_middleware: StructuredLoggingMiddleware) -> FastMCP[Any]:
    return FastMCP[Any](name="Repo Insight MCP", middleware=[logging_middleware])


# Snapshot helpers


def handle_exclude_keys(dictionary: dict[str, Any], exclude_keys: list[str] | None = None) -> dict[str, Any]:
    if exclude_keys is None:
        return dictionary
    return {key: value for key, value in dictionary.items() if key not in exclude_keys}


@overload
def dump_for_snapshot(
    basemodel: None,
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> None: ...


@overload
def dump_for_snapshot(
    basemodel: BaseModel,
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> dict[str, Any]: ...


def dump_for_snapshot(
    basemodel: None | BaseModel,
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> dict[str, Any] | None:
    if basemodel is None:
        return None

    return handle_exclude_keys(basemodel.model_dump(exclude_none=exclude_none, **dump_kwargs), exclude_keys)


def dump_list_for_snapshot(
    basemodel: None | Sequence[BaseModel],
    /,
    exclude_keys: list[str] | None = None,
    exclude_none: bool = True,
    **dump_kwargs: Any,
) -> list[dict[str, Any]] | None:
    if basemodel is None:
        return []

    return [dump_for_snapshot(item, exclude_keys, exclude_none, **dump_kwargs) for item in basemodel]


def dump_call_tool_result_for_snapshot(
    call_tool_result: CallToolResult,
    /,
) -> dict[str, Any]:
    return {
        "content": [item.model_dump() for item in call_tool_result.content],
        "structured_content": call_tool_result.structured_content,
    }
