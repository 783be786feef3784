import asyncio
from logging import Logger

from fastmcp.utilities.logging import get_logger

from repo_insight_mcp.config.backends import KeyValueBackend
from repo_insight_mcp.config.models import ConfigurationSet, ModelConfiguration, ModelConfigurationUpdate
from repo_insight_mcp.llm.models import ModelDescriptor

CONFIGURATION_SET_KEY = "model_configurations"
LEGACY_API_KEY_KEY = "openai_api_key"


class ConfigStore:
    """Reads and writes the `ConfigurationSet` kept in a key/value backend.

    Every operation holds the store lock for its whole load-modify-save sequence, so concurrent
    callers sharing a store never interleave their updates. Mutations load the set once and
    save it once.

    The first access upgrades a legacy single-credential record into a default OpenAI configuration.
    """

    backend: KeyValueBackend
    logger: Logger

    def __init__(self, backend: KeyValueBackend, logger: Logger | None = None):
        self.backend = backend
        self.logger = logger or get_logger(name=__name__)
        self._lock: asyncio.Lock = asyncio.Lock()
        self._migration_checked: bool = False

    async def _needs_migration(self) -> bool:
        return await self.backend.has(LEGACY_API_KEY_KEY) and not await self.backend.has(CONFIGURATION_SET_KEY)

    async def _migrate(self) -> bool:
        self._migration_checked = True

        if not await self._needs_migration():
            return False

        self.logger.info("Migrating the legacy API key to a model configuration.")

        legacy_api_key = await self.backend.get(LEGACY_API_KEY_KEY)
        if not isinstance(legacy_api_key, str) or not legacy_api_key:
            self.logger.info("The legacy API key is empty, nothing to migrate.")
            return False

        configuration = ModelConfiguration.default_openai(api_key=legacy_api_key)

        configuration_set = ConfigurationSet()
        configuration_set.add(configuration)
        _ = configuration_set.set_active(configuration.id)

        await self._save(configuration_set)

        self.logger.info(f"Migration complete, created model configuration {configuration.id}.")

        return True

    async def migrate_legacy_credential(self) -> bool:
        """Run the one-time legacy upgrade. Returns True if a configuration was created."""

        async with self._lock:
            return await self._migrate()

    async def _load(self) -> ConfigurationSet:
        if not self._migration_checked:
            _ = await self._migrate()

        value = await self.backend.get(CONFIGURATION_SET_KEY)
        if value is None:
            return ConfigurationSet()

        return ConfigurationSet.model_validate(value)

    async def _save(self, configuration_set: ConfigurationSet) -> None:
        await self.backend.set(CONFIGURATION_SET_KEY, configuration_set.model_dump(mode="json"))
        await self.backend.save()

    async def load(self) -> ConfigurationSet:
        async with self._lock:
            return await self._load()

    async def save(self, configuration_set: ConfigurationSet) -> None:
        async with self._lock:
            await self._save(configuration_set)

    async def get_active_id(self) -> str | None:
        return (await self.load()).active_id

    async def get_active_configuration(self) -> ModelConfiguration | None:
        return (await self.load()).get_active()

    async def set_active_configuration(self, configuration_id: str) -> bool:
        async with self._lock:
            configuration_set = await self._load()

            if not configuration_set.set_active(configuration_id):
                return False

            await self._save(configuration_set)

        return True

    async def get_configuration(self, configuration_id: str) -> ModelConfiguration | None:
        return (await self.load()).get_by_id(configuration_id)

    async def get_all_configurations(self) -> list[ModelConfiguration]:
        return (await self.load()).configurations

    async def get_enabled_configurations(self) -> list[ModelConfiguration]:
        return (await self.load()).get_enabled()

    async def add_configuration(self, configuration: ModelConfiguration) -> None:
        async with self._lock:
            configuration_set = await self._load()
            configuration_set.add(configuration)
            await self._save(configuration_set)

    async def update_configuration(self, configuration_id: str, update: ModelConfigurationUpdate) -> ModelConfiguration | None:
        async with self._lock:
            configuration_set = await self._load()

            if (updated := configuration_set.update(configuration_id, update)) is None:
                return None

            await self._save(configuration_set)

        return updated

    async def remove_configuration(self, configuration_id: str) -> bool:
        async with self._lock:
            configuration_set = await self._load()

            if not configuration_set.remove(configuration_id):
                return False

            await self._save(configuration_set)

        return True

    async def update_model_cache(self, vendor: str, models: list[ModelDescriptor], cache_hours: int) -> None:
        async with self._lock:
            configuration_set = await self._load()
            configuration_set.cache_models(vendor=vendor, models=models, cache_hours=cache_hours)
            await self._save(configuration_set)

    async def get_cached_models(self, vendor: str) -> list[ModelDescriptor] | None:
        return (await self.load()).get_cached_models(vendor=vendor)

    async def clear_model_cache(self) -> None:
        async with self._lock:
            configuration_set = await self._load()
            configuration_set.clear_model_cache()
            await self._save(configuration_set)
