from logging import Logger
from typing import Any

from fastmcp import Context
from fastmcp.server import FastMCP
from fastmcp.tools import Tool
from fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, Field

from repo_insight_mcp.config.store import ConfigStore
from repo_insight_mcp.insights.models import RepositoryIdentity
from repo_insight_mcp.insights.orchestrator import InsightOrchestrator, InsightRequest
from repo_insight_mcp.llm.models import ModelDescriptor, StreamError, StreamToken
from repo_insight_mcp.servers.shared.annotations import (
    API_KEY,
    AUTHOR,
    DEEP_CONTEXT,
    DESCRIPTION,
    FORCE_REFRESH,
    LANGUAGE,
    MODEL_CONFIG_ID,
    NAME,
    OPTIONAL_MODEL_CONFIG_ID,
    REFRESH_MODELS,
    URL,
)
from repo_insight_mcp.servers.shared.errors import InsightGenerationEmptyError, InsightGenerationError


class RepositoryInsight(BaseModel):
    """An AI-generated insight of a repository."""

    url: str = Field(description="The URL of the repository.")
    insight: str = Field(description="The insight, formatted as Markdown.")
    cached: bool = Field(description="Whether the insight was served from the cache.")


class ConnectionTestResult(BaseModel):
    configuration_id: str = Field(description="The id of the tested model configuration.")
    success: bool = Field(description="Whether the provider accepted the configuration.")


class InsightServer:
    """Tools for generating and reading repository insights."""

    orchestrator: InsightOrchestrator
    config_store: ConfigStore
    logger: Logger

    def __init__(self, orchestrator: InsightOrchestrator, logger: Logger | None = None):
        self.orchestrator = orchestrator
        self.config_store = orchestrator.config_store
        self.logger = logger or get_logger(name=__name__)

    def register_tools(self, fastmcp: FastMCP[Any]) -> FastMCP[Any]:
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.summarize_repository))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.get_cached_insight))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.check_insights_batch))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.list_models))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.test_model_connection))

        return fastmcp

    async def _default_model_config_id(self, model_config_id: str | None, api_key: str | None) -> str | None:
        if model_config_id or api_key:
            return model_config_id

        return await self.config_store.get_active_id()

    async def summarize_repository(
        self,
        author: AUTHOR,
        name: NAME,
        url: URL,
        ctx: Context,
        description: DESCRIPTION = "",
        language: LANGUAGE = "",
        model_config_id: OPTIONAL_MODEL_CONFIG_ID = None,
        api_key: API_KEY = None,
        deep_context: DEEP_CONTEXT = False,
        force_refresh: FORCE_REFRESH = False,
    ) -> RepositoryInsight:
        """Summarize a GitHub repository with an LLM. Insights are cached, so repeated requests are answered from the cache."""

        identity = RepositoryIdentity(author=author, name=name, description=description, language=language, url=url)

        request = InsightRequest(
            identity=identity,
            api_key=api_key,
            model_config_id=await self._default_model_config_id(model_config_id=model_config_id, api_key=api_key),
            deep_context=deep_context,
            force_refresh=force_refresh,
        )

        cached: bool = not force_refresh and await self.orchestrator.insight_cache.contains(identity)

        parts: list[str] = []

        async for event in self.orchestrator.summarize_repository(request):
            if isinstance(event, StreamToken):
                parts.append(event.text)
                await ctx.report_progress(progress=len(parts), message=event.text)
            elif isinstance(event, StreamError):
                raise InsightGenerationError(repository=identity.full_name, kind=event.kind.value, message=event.message)

        if not (insight := "".join(parts)):
            raise InsightGenerationEmptyError(repository=identity.full_name)

        return RepositoryInsight(url=url, insight=insight, cached=cached)

    async def get_cached_insight(self, author: AUTHOR, name: NAME, url: URL) -> str | None:
        """Get the cached insight of a repository without generating one."""

        return await self.orchestrator.get_cached_insight(RepositoryIdentity(author=author, name=name, url=url))

    async def check_insights_batch(self, repositories: list[RepositoryIdentity]) -> list[str]:
        """Get the URLs of the repositories that have a cached insight."""

        return await self.orchestrator.check_insights_batch(repositories)

    async def list_models(self, model_config_id: MODEL_CONFIG_ID, refresh: REFRESH_MODELS = False) -> list[ModelDescriptor]:
        """List the models offered by the provider of a model configuration."""

        return await self.orchestrator.list_available_models(configuration_id=model_config_id, refresh=refresh)

    async def test_model_connection(self, model_config_id: MODEL_CONFIG_ID) -> ConnectionTestResult:
        """Check that the provider of a model configuration is reachable and accepts its API key."""

        await self.orchestrator.test_provider_connection(configuration_id=model_config_id)

        return ConnectionTestResult(configuration_id=model_config_id, success=True)
