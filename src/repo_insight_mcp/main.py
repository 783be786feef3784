from logging import Logger
from typing import Literal

import click
from fastmcp import FastMCP
from fastmcp.server.middleware.logging import LoggingMiddleware
from fastmcp.utilities.logging import get_logger

from repo_insight_mcp.config.backends import get_settings_backend
from repo_insight_mcp.config.store import ConfigStore
from repo_insight_mcp.insights.cache import InsightCache
from repo_insight_mcp.insights.context import ContextComposer
from repo_insight_mcp.insights.github import GitHubMetadataSource
from repo_insight_mcp.insights.orchestrator import InsightOrchestrator
from repo_insight_mcp.servers.configurations import ConfigurationServer
from repo_insight_mcp.servers.insights import InsightServer
from repo_insight_mcp.settings import get_data_dir

logger: Logger = get_logger(name=__name__)

mcp: FastMCP[None] = FastMCP[None](name="Repo Insight MCP")

mcp.add_middleware(middleware=LoggingMiddleware(include_payloads=True, logger=logger))

config_store: ConfigStore = ConfigStore(backend=get_settings_backend(), logger=logger)

orchestrator: InsightOrchestrator = InsightOrchestrator(
    config_store=config_store,
    insight_cache=InsightCache(data_root=get_data_dir(), logger=logger),
    context_composer=ContextComposer(metadata_source=GitHubMetadataSource(logger=logger), logger=logger),
    logger=logger,
)

insight_server: InsightServer = InsightServer(orchestrator=orchestrator, logger=logger)
_ = insight_server.register_tools(fastmcp=mcp)

configuration_server: ConfigurationServer = ConfigurationServer(config_store=config_store, logger=logger)
_ = configuration_server.register_tools(fastmcp=mcp)


@click.command()
@click.option(
    "--mcp-transport",
    type=click.Choice(["stdio", "streamable-http"]),
    default="stdio",
    help="The transport to run the MCP server on",
)
def run_mcp(mcp_transport: Literal["stdio", "streamable-http"]):
    mcp.run(transport=mcp_transport)


if __name__ == "__main__":
    run_mcp()
