from collections.abc import Sequence
from logging import Logger
from pathlib import Path
from uuid import uuid4

from anyio import Path as AsyncPath
from fastmcp.utilities.logging import get_logger

from repo_insight_mcp.insights.models import RepositoryIdentity

INSIGHTS_DIRECTORY = "ai_insights"
INSIGHT_FILE_SUFFIX = ".md"

MINIMUM_INSIGHT_LENGTH = 10


class InsightCache:
    """Generated insights stored as one markdown file per repository under `<data root>/ai_insights`.

    Entries never expire. A forced refresh overwrites the entry and concurrent writers of the same
    key race with the last writer winning.
    """

    def __init__(self, data_root: Path, logger: Logger | None = None):
        self.data_root: Path = data_root
        self.logger: Logger = logger or get_logger(name=__name__)

    @property
    def directory(self) -> Path:
        return self.data_root / INSIGHTS_DIRECTORY

    def path_for(self, identity: RepositoryIdentity) -> Path | None:
        """The file an identity is cached in, or None if the identity cannot be cached."""

        if not (key := identity.cache_key):
            return None

        return self.directory / f"{key}{INSIGHT_FILE_SUFFIX}"

    async def get(self, identity: RepositoryIdentity) -> str | None:
        if (path := self.path_for(identity)) is None:
            return None

        async_path = AsyncPath(path)

        if not await async_path.is_file():
            return None

        self.logger.debug(f"Insight cache hit for {identity.full_name} at {path}")

        return await async_path.read_text(encoding="utf-8")

    async def contains(self, identity: RepositoryIdentity) -> bool:
        if (path := self.path_for(identity)) is None:
            return False

        return await AsyncPath(path).is_file()

    async def put(self, identity: RepositoryIdentity, text: str) -> bool:
        """Store the text unchanged, replacing any previous entry in a single step.

        Text shorter than ten characters once stripped is not stored.
        """

        if len(text.strip()) < MINIMUM_INSIGHT_LENGTH:
            self.logger.info(f"Not caching the insight for {identity.full_name}, it is too short.")
            return False

        if (path := self.path_for(identity)) is None:
            self.logger.info(f"Not caching the insight for {identity.full_name}, the repository has no cache key.")
            return False

        async_path = AsyncPath(path)
        await async_path.parent.mkdir(parents=True, exist_ok=True)

        # Readers never see a partially written entry.
        temporary_path = async_path.with_name(f".{async_path.name}.{uuid4().hex}.tmp")

        try:
            _ = await temporary_path.write_text(text, encoding="utf-8")
            _ = await temporary_path.replace(async_path)
        except BaseException:
            await temporary_path.unlink(missing_ok=True)
            raise

        self.logger.info(f"Cached the insight for {identity.full_name} at {path}")

        return True

    async def check_batch(self, identities: Sequence[RepositoryIdentity]) -> list[str]:
        """The URLs of the identities that have a cached insight, in input order."""

        return [identity.url for identity in identities if await self.contains(identity)]
