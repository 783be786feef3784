import asyncio

import pytest
from dirty_equals import IsPartialDict, IsUUID
from inline_snapshot import snapshot

from repo_insight_mcp.config.backends import InMemoryBackend
from repo_insight_mcp.config.models import ConfigurationExistsError, ModelConfiguration, ModelConfigurationUpdate
from repo_insight_mcp.config.store import CONFIGURATION_SET_KEY, LEGACY_API_KEY_KEY, ConfigStore
from repo_insight_mcp.llm.models import ModelDescriptor


@pytest.fixture
def deepseek() -> ModelConfiguration:
    return ModelConfiguration.for_vendor(name="DeepSeek", vendor="deepseek", api_key="sk-deepseek")


class TestConfigStore:
    async def test_empty_store(self, config_store: ConfigStore) -> None:
        assert await config_store.get_all_configurations() == []
        assert await config_store.get_active_id() is None
        assert await config_store.get_active_configuration() is None

    async def test_add_and_get(self, config_store: ConfigStore, backend: InMemoryBackend, deepseek: ModelConfiguration) -> None:
        await config_store.add_configuration(deepseek)

        assert await config_store.get_configuration(deepseek.id) == deepseek
        assert await config_store.get_all_configurations() == [deepseek]
        assert backend.save_count == 1
        assert await backend.get(CONFIGURATION_SET_KEY) == IsPartialDict(active_id=None)

    async def test_add_duplicate(self, config_store: ConfigStore, deepseek: ModelConfiguration) -> None:
        await config_store.add_configuration(deepseek)

        with pytest.raises(ConfigurationExistsError):
            await config_store.add_configuration(deepseek)

    async def test_set_active(self, config_store: ConfigStore, deepseek: ModelConfiguration) -> None:
        await config_store.add_configuration(deepseek)

        assert await config_store.set_active_configuration(deepseek.id)
        assert await config_store.get_active_id() == deepseek.id
        assert await config_store.get_active_configuration() == deepseek

    async def test_set_active_unknown_does_not_save(self, config_store: ConfigStore, backend: InMemoryBackend) -> None:
        assert not await config_store.set_active_configuration("missing")
        assert backend.save_count == 0

    async def test_update(self, config_store: ConfigStore, deepseek: ModelConfiguration) -> None:
        await config_store.add_configuration(deepseek)

        updated = await config_store.update_configuration(deepseek.id, ModelConfigurationUpdate(enabled=False))

        assert updated is not None
        assert updated.enabled is False
        assert await config_store.get_enabled_configurations() == []
        assert await config_store.update_configuration("missing", ModelConfigurationUpdate(enabled=False)) is None

    async def test_remove_active(self, config_store: ConfigStore, deepseek: ModelConfiguration) -> None:
        await config_store.add_configuration(deepseek)
        _ = await config_store.set_active_configuration(deepseek.id)

        assert await config_store.remove_configuration(deepseek.id)
        assert await config_store.get_active_id() is None
        assert not await config_store.remove_configuration(deepseek.id)

    async def test_model_cache(self, config_store: ConfigStore) -> None:
        models = [ModelDescriptor(id="deepseek-chat", name="DeepSeek Chat", vendor="deepseek")]

        assert await config_store.get_cached_models("deepseek") is None

        await config_store.update_model_cache(vendor="deepseek", models=models, cache_hours=24)

        assert await config_store.get_cached_models("deepseek") == models

        await config_store.clear_model_cache()

        assert await config_store.get_cached_models("deepseek") is None

    async def test_one_save_per_mutation(self, config_store: ConfigStore, backend: InMemoryBackend, deepseek: ModelConfiguration) -> None:
        await config_store.add_configuration(deepseek)
        _ = await config_store.set_active_configuration(deepseek.id)
        _ = await config_store.update_configuration(deepseek.id, ModelConfigurationUpdate(name="DeepSeek V3"))
        await config_store.update_model_cache(vendor="deepseek", models=[], cache_hours=1)
        _ = await config_store.get_all_configurations()

        assert backend.save_count == 4

    async def test_concurrent_adds_are_not_lost(self, config_store: ConfigStore) -> None:
        configurations = [ModelConfiguration.for_vendor(name=f"OpenAI {index}", vendor="openai", api_key="sk") for index in range(20)]

        _ = await asyncio.gather(*[config_store.add_configuration(configuration) for configuration in configurations])

        assert len(await config_store.get_all_configurations()) == 20

    async def test_persists_across_instances(self, backend: InMemoryBackend, deepseek: ModelConfiguration) -> None:
        await ConfigStore(backend=backend).add_configuration(deepseek)

        assert await ConfigStore(backend=backend).get_configuration(deepseek.id) == deepseek


class TestLegacyMigration:
    async def test_migrates_legacy_api_key(self) -> None:
        backend = InMemoryBackend(values={LEGACY_API_KEY_KEY: "sk-legacy"})
        config_store = ConfigStore(backend=backend)

        active = await config_store.get_active_configuration()

        assert active is not None
        assert active.model_dump(include={"id", "name", "vendor", "base_url", "api_key", "default_model"}) == snapshot(
            {
                "id": IsUUID(4),
                "name": "OpenAI (default)",
                "vendor": "openai",
                "base_url": "https://api.openai.com/v1",
                "api_key": "sk-legacy",
                "default_model": "gpt-4o-mini",
            }
        )
        assert await backend.has(CONFIGURATION_SET_KEY)

    async def test_migration_runs_once(self) -> None:
        backend = InMemoryBackend(values={LEGACY_API_KEY_KEY: "sk-legacy"})

        assert await ConfigStore(backend=backend).migrate_legacy_credential()
        assert not await ConfigStore(backend=backend).migrate_legacy_credential()

        assert len(await ConfigStore(backend=backend).get_all_configurations()) == 1

    async def test_no_legacy_key(self, config_store: ConfigStore, backend: InMemoryBackend) -> None:
        assert not await config_store.migrate_legacy_credential()
        assert not await backend.has(CONFIGURATION_SET_KEY)

    async def test_empty_legacy_key(self) -> None:
        backend = InMemoryBackend(values={LEGACY_API_KEY_KEY: ""})

        assert await ConfigStore(backend=backend).get_all_configurations() == []

    async def test_existing_configurations_are_kept(self, deepseek: ModelConfiguration) -> None:
        backend = InMemoryBackend()
        await ConfigStore(backend=backend).add_configuration(deepseek)
        await backend.set(LEGACY_API_KEY_KEY, "sk-legacy")

        assert await ConfigStore(backend=backend).get_all_configurations() == [deepseek]
