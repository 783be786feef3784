import base64
from logging import Logger
from typing import Any
from typing_extensions import override

import httpx
from async_lru import alru_cache
from fastmcp.utilities.logging import get_logger
from githubkit import GitHub as GitHubKit
from githubkit.auth.token import TokenAuthStrategy
from githubkit.exception import RequestFailed
from githubkit.retry import RetryChainDecision, RetryRateLimit, RetryServerError
from githubkit.versions.v2022_11_28.models import ContentDirectoryItems, ContentFile

from repo_insight_mcp.insights.context import MetadataSource, truncate_text
from repo_insight_mcp.settings import get_github_token

ONE_HOUR_IN_SECONDS = 60 * 60


def decode_content(content: str) -> str:
    return base64.b64decode(content).decode("utf-8", errors="replace")


def get_githubkit_client(token: str | None = None) -> GitHubKit[Any]:
    # Retry server errors up to 3 times
    retry_server_error = RetryServerError()

    retry_rate_limit = RetryRateLimit(max_retry=3)

    retry_chain = RetryChainDecision(
        retry_server_error,
        retry_rate_limit,
    )

    if token := token or get_github_token():
        return GitHubKit[TokenAuthStrategy](auth=TokenAuthStrategy(token=token), auto_retry=retry_chain)

    return GitHubKit[Any](auto_retry=retry_chain)


def format_directory_entry(entry: ContentDirectoryItems) -> str:
    kind = "[DIR]" if entry.type == "dir" else "[FILE]"

    return f"{kind} {entry.name}"


class GitHubMetadataSource(MetadataSource):
    """Reads repository context from the GitHub REST API. Missing content is None rather than an error."""

    def __init__(self, githubkit_client: GitHubKit[Any] | None = None, logger: Logger | None = None):
        self.githubkit_client: GitHubKit[Any] = githubkit_client or get_githubkit_client()
        self.logger: Logger = logger or get_logger(name=__name__)

    def _is_not_found(self, error: RequestFailed) -> bool:
        return error.response.status_code == httpx.codes.NOT_FOUND

    @alru_cache(maxsize=100, ttl=ONE_HOUR_IN_SECONDS)
    async def _get_readme(self, author: str, name: str) -> str | None:
        try:
            response = await self.githubkit_client.rest.repos.async_get_readme(owner=author, repo=name)
        except RequestFailed as e:
            if self._is_not_found(e):
                self.logger.info(f"{author}/{name} has no README")
                return None
            raise

        return decode_content(response.parsed_data.content)

    @alru_cache(maxsize=100, ttl=ONE_HOUR_IN_SECONDS)
    async def _get_content(self, author: str, name: str, path: str) -> list[ContentDirectoryItems] | str | None:
        try:
            response = await self.githubkit_client.rest.repos.async_get_content(owner=author, repo=name, path=path)
        except RequestFailed as e:
            if self._is_not_found(e):
                self.logger.debug(f"{author}/{name} has no {path or 'root directory'}")
                return None
            raise

        content = response.parsed_data

        if isinstance(content, list):
            return content

        if isinstance(content, ContentFile):
            return decode_content(content.content)

        # Symlinks and submodules carry no readable content.
        return None

    @override
    async def fetch_readme(self, author: str, name: str, limit: int | None = None) -> str | None:
        if (readme := await self._get_readme(author=author, name=name)) is None:
            return None

        return truncate_text(readme, limit)

    @override
    async def fetch_directory_listing(self, author: str, name: str) -> str | None:
        content = await self._get_content(author=author, name=name, path="")

        if not isinstance(content, list):
            return None

        return "\n".join([format_directory_entry(entry) for entry in content])

    @override
    async def fetch_file(self, author: str, name: str, path: str, limit: int | None = None) -> str | None:
        content = await self._get_content(author=author, name=name, path=path)

        if not isinstance(content, str):
            return None

        return truncate_text(content, limit)
