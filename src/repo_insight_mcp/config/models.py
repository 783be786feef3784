from datetime import UTC, datetime, timedelta
from typing import Self
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from repo_insight_mcp.llm.models import CUSTOM_DEFAULT_MODEL, ModelDescriptor, ModelVendor, vendor_cache_key


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def new_configuration_id() -> str:
    return str(uuid4())


class ConfigurationExistsError(Exception):
    """A configuration with the same id is already stored."""

    def __init__(self, configuration_id: str):
        super().__init__(f"A model configuration with id {configuration_id} already exists.")


class ModelConfiguration(BaseModel):
    """A named set of credentials and defaults for one chat-completion provider."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_configuration_id, description="The unique identifier of the configuration.")
    name: str = Field(description="The display name of the configuration.")
    vendor: str = Field(description="The vendor tag, a known vendor or the name of a custom OpenAI-compatible vendor.")
    base_url: str = Field(description="The base URL of the provider API.")
    api_key: str = Field(description="The credential sent to the provider.")
    default_model: str = Field(description="The model used when a request does not name one.")
    enabled: bool = Field(default=True, description="Whether the configuration is offered for use.")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def for_vendor(cls, name: str, vendor: str, api_key: str, base_url: str | None = None, default_model: str | None = None) -> Self:
        """Create a configuration, filling the base URL and model from the vendor defaults when not provided."""

        known_vendor = ModelVendor.from_tag(vendor)

        if base_url is None:
            base_url = known_vendor.default_base_url if known_vendor else ""

        if default_model is None:
            default_model = known_vendor.default_model if known_vendor else CUSTOM_DEFAULT_MODEL

        return cls(name=name, vendor=vendor, base_url=base_url, api_key=api_key, default_model=default_model)

    @classmethod
    def default_openai(cls, api_key: str) -> Self:
        return cls.for_vendor(name="OpenAI (default)", vendor=ModelVendor.OPENAI.value, api_key=api_key)

    def apply_update(self, update: "ModelConfigurationUpdate") -> Self:
        """Return a copy with the supplied fields changed and `updated_at` refreshed."""

        changes = update.model_dump(exclude_none=True)

        return self.model_copy(update={**changes, "updated_at": utc_now()})


class ModelConfigurationUpdate(BaseModel):
    """A partial update, fields left as None keep their current value."""

    name: str | None = None
    vendor: str | None = None
    base_url: str | None = None
    api_key: str | None = None
    default_model: str | None = None
    enabled: bool | None = None


class ConfigurationSet(BaseModel):
    """Every stored model configuration, the active selection and the model-list cache."""

    active_id: str | None = None
    configurations: list[ModelConfiguration] = Field(default_factory=list)
    model_cache: dict[str, list[ModelDescriptor]] = Field(default_factory=dict)
    cache_expires_at: datetime | None = None

    def get_active(self) -> ModelConfiguration | None:
        if self.active_id is None:
            return None

        return self.get_by_id(self.active_id)

    def get_by_id(self, configuration_id: str) -> ModelConfiguration | None:
        for configuration in self.configurations:
            if configuration.id == configuration_id:
                return configuration

        return None

    def get_enabled(self) -> list[ModelConfiguration]:
        return [configuration for configuration in self.configurations if configuration.enabled]

    def get_by_vendor(self, vendor: str) -> list[ModelConfiguration]:
        return [configuration for configuration in self.configurations if configuration.vendor == vendor]

    def add(self, configuration: ModelConfiguration) -> None:
        if self.get_by_id(configuration.id) is not None:
            raise ConfigurationExistsError(configuration.id)

        self.configurations.append(configuration)

    def update(self, configuration_id: str, update: ModelConfigurationUpdate) -> ModelConfiguration | None:
        for index, configuration in enumerate(self.configurations):
            if configuration.id == configuration_id:
                updated = configuration.apply_update(update)
                self.configurations[index] = updated
                return updated

        return None

    def remove(self, configuration_id: str) -> bool:
        remaining = [configuration for configuration in self.configurations if configuration.id != configuration_id]

        if len(remaining) == len(self.configurations):
            return False

        self.configurations = remaining

        if self.active_id == configuration_id:
            self.active_id = None

        return True

    def set_active(self, configuration_id: str) -> bool:
        if self.get_by_id(configuration_id) is None:
            return False

        self.active_id = configuration_id
        return True

    def is_cache_expired(self, now: datetime | None = None) -> bool:
        if self.cache_expires_at is None:
            return True

        return (now or utc_now()) >= self.cache_expires_at

    def get_cached_models(self, vendor: str, now: datetime | None = None) -> list[ModelDescriptor] | None:
        # Expiry covers every vendor at once.
        if self.is_cache_expired(now=now):
            return None

        return self.model_cache.get(vendor_cache_key(vendor))

    def cache_models(self, vendor: str, models: list[ModelDescriptor], cache_hours: int) -> None:
        self.model_cache[vendor_cache_key(vendor)] = models
        self.cache_expires_at = utc_now() + timedelta(hours=cache_hours)

    def clear_model_cache(self) -> None:
        self.model_cache.clear()
        self.cache_expires_at = None
