import asyncio
from collections.abc import Awaitable
from logging import Logger
from typing import Protocol

from fastmcp.utilities.logging import get_logger

from repo_insight_mcp.insights.models import RepositoryIdentity
from repo_insight_mcp.insights.prompts import (
    SUMMARIZE_SYSTEM_PROMPT,
    build_user_prompt,
    directory_listing_section,
    manifest_section,
    readme_section,
)
from repo_insight_mcp.llm.models import ChatMessage

QUICK_README_LIMIT = 2000
MANIFEST_LIMIT = 1500
DIRECTORY_LISTING_LIMIT = 50

MANIFEST_CANDIDATES = ("package.json", "Cargo.toml", "go.mod", "requirements.txt", "pom.xml")

DIRECTORY_LISTING_TRUNCATION_MARKER = "... (more entries omitted)"


def truncate_text(text: str, limit: int | None) -> str:
    if limit is None:
        return text

    return text[:limit]


def truncate_listing(listing: str, limit: int = DIRECTORY_LISTING_LIMIT) -> str:
    """Keep the first `limit` entries of a listing, marking the listing when entries were dropped."""

    entries = [entry for entry in listing.splitlines() if entry.strip()]

    if len(entries) <= limit:
        return "\n".join(entries)

    return "\n".join([*entries[:limit], DIRECTORY_LISTING_TRUNCATION_MARKER])


class MetadataSource(Protocol):
    """Where repository context is read from. Every method returns None when the content does not exist."""

    async def fetch_readme(self, author: str, name: str, limit: int | None = None) -> str | None: ...

    async def fetch_directory_listing(self, author: str, name: str) -> str | None:
        """The root entries of the repository, one `[DIR] name` or `[FILE] name` per line."""
        ...

    async def fetch_file(self, author: str, name: str, path: str, limit: int | None = None) -> str | None: ...


class ContextComposer:
    """Builds the conversation sent to a provider to summarize a repository.

    Quick mode includes a README excerpt. Deep mode includes the complete README, the root directory
    listing and the first manifest found. Context is best-effort: a failed fetch is logged and the
    prompt is built without it.
    """

    def __init__(self, metadata_source: MetadataSource, logger: Logger | None = None):
        self.metadata_source: MetadataSource = metadata_source
        self.logger: Logger = logger or get_logger(name=__name__)

    async def _best_effort(self, description: str, fetch: Awaitable[str | None]) -> str | None:
        try:
            return await fetch
        except Exception as e:
            self.logger.warning(f"Could not fetch the {description}, continuing without it: {e}")
            return None

    async def _fetch_first_manifest(self, identity: RepositoryIdentity) -> tuple[str, str] | None:
        for path in MANIFEST_CANDIDATES:
            content = await self._best_effort(
                description=f"manifest {path} of {identity.full_name}",
                fetch=self.metadata_source.fetch_file(author=identity.author, name=identity.name, path=path, limit=MANIFEST_LIMIT),
            )

            if content:
                return path, truncate_text(content, MANIFEST_LIMIT)

        return None

    async def compose(self, identity: RepositoryIdentity, deep: bool = False) -> list[ChatMessage]:
        readme_limit = None if deep else QUICK_README_LIMIT

        self.logger.info(f"Gathering {'deep' if deep else 'quick'} context for {identity.full_name}")

        readme_fetch = self._best_effort(
            description=f"README of {identity.full_name}",
            fetch=self.metadata_source.fetch_readme(author=identity.author, name=identity.name, limit=readme_limit),
        )

        sections: list[str] = []

        if not deep:
            if readme := await readme_fetch:
                sections.append(readme_section(truncate_text(readme, readme_limit), complete=False))

            return self._messages(identity=identity, sections=sections)

        readme, listing = await asyncio.gather(
            readme_fetch,
            self._best_effort(
                description=f"directory listing of {identity.full_name}",
                fetch=self.metadata_source.fetch_directory_listing(author=identity.author, name=identity.name),
            ),
        )

        if readme:
            sections.append(readme_section(readme, complete=True))

        if listing:
            sections.append(directory_listing_section(truncate_listing(listing)))

        if manifest := await self._fetch_first_manifest(identity):
            path, content = manifest
            sections.append(manifest_section(path=path, content=content))

        return self._messages(identity=identity, sections=sections)

    def _messages(self, identity: RepositoryIdentity, sections: list[str]) -> list[ChatMessage]:
        return [
            ChatMessage.system(SUMMARIZE_SYSTEM_PROMPT.strip()),
            ChatMessage.user(build_user_prompt(identity=identity, context_sections=sections)),
        ]
