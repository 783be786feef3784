from logging import Logger
from typing import Any

from fastmcp.server import FastMCP
from fastmcp.tools import Tool
from fastmcp.utilities.logging import get_logger
from pydantic import BaseModel, Field

from repo_insight_mcp.config.models import ModelConfiguration, ModelConfigurationUpdate
from repo_insight_mcp.config.store import ConfigStore
from repo_insight_mcp.insights.errors import ConfigurationNotFoundError
from repo_insight_mcp.llm.errors import ConfigurationError
from repo_insight_mcp.llm.factory import supported_vendors
from repo_insight_mcp.llm.models import CUSTOM_DEFAULT_MODEL, ModelVendor, vendor_display_name
from repo_insight_mcp.servers.shared.annotations import (
    BASE_URL,
    CONFIG_API_KEY,
    CONFIG_NAME,
    DEFAULT_MODEL,
    ENABLED,
    ENABLED_ONLY,
    MODEL_CONFIG_ID,
    OPTIONAL_CONFIG_API_KEY,
    OPTIONAL_CONFIG_NAME,
    SET_ACTIVE,
    VENDOR,
)

VISIBLE_API_KEY_CHARACTERS = 4


def mask_api_key(api_key: str) -> str:
    if len(api_key) <= VISIBLE_API_KEY_CHARACTERS * 2:
        return "*" * len(api_key)

    return api_key[:VISIBLE_API_KEY_CHARACTERS] + "..." + api_key[-VISIBLE_API_KEY_CHARACTERS:]


def redact(configuration: ModelConfiguration) -> ModelConfiguration:
    return configuration.model_copy(update={"api_key": mask_api_key(configuration.api_key)})


class VendorInfo(BaseModel):
    vendor: str = Field(description="The vendor tag to store in a model configuration.")
    display_name: str = Field(description="The display name of the vendor.")
    default_base_url: str = Field(description="The base URL used when a configuration does not provide one.")
    default_model: str = Field(description="The model used when a configuration does not provide one.")
    requires_custom_base_url: bool = Field(description="Whether a configuration must provide its own base URL.")

    @classmethod
    def from_vendor_tag(cls, vendor: str) -> "VendorInfo":
        if known_vendor := ModelVendor.from_tag(vendor):
            return cls(
                vendor=known_vendor.value,
                display_name=known_vendor.display_name,
                default_base_url=known_vendor.default_base_url,
                default_model=known_vendor.default_model,
                requires_custom_base_url=known_vendor.requires_custom_base_url,
            )

        return cls(
            vendor=vendor,
            display_name=vendor_display_name(vendor),
            default_base_url="",
            default_model=CUSTOM_DEFAULT_MODEL,
            requires_custom_base_url=True,
        )


class ConfigurationServer:
    """Tools for managing the stored model configurations. API keys are never returned in full."""

    config_store: ConfigStore
    logger: Logger

    def __init__(self, config_store: ConfigStore, logger: Logger | None = None):
        self.config_store = config_store
        self.logger = logger or get_logger(name=__name__)

    def register_tools(self, fastmcp: FastMCP[Any]) -> FastMCP[Any]:
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.get_model_configs))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.get_active_model_config))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.set_active_model_config))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.save_model_config))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.update_model_config))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.delete_model_config))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.clear_model_cache))
        _ = fastmcp.add_tool(tool=Tool.from_function(fn=self.get_supported_vendors))

        return fastmcp

    async def get_model_configs(self, enabled_only: ENABLED_ONLY = False) -> list[ModelConfiguration]:
        """List the stored model configurations."""

        if enabled_only:
            configurations = await self.config_store.get_enabled_configurations()
        else:
            configurations = await self.config_store.get_all_configurations()

        return [redact(configuration) for configuration in configurations]

    async def get_active_model_config(self) -> ModelConfiguration | None:
        """Get the model configuration used when a request does not name one."""

        if configuration := await self.config_store.get_active_configuration():
            return redact(configuration)

        return None

    async def set_active_model_config(self, model_config_id: MODEL_CONFIG_ID) -> ModelConfiguration:
        """Make a model configuration the active one."""

        if not await self.config_store.set_active_configuration(model_config_id):
            raise ConfigurationNotFoundError(model_config_id)

        self.logger.info(f"Model configuration {model_config_id} is now active")

        return redact(await self._require_configuration(model_config_id))

    async def save_model_config(
        self,
        name: CONFIG_NAME,
        vendor: VENDOR,
        api_key: CONFIG_API_KEY,
        base_url: BASE_URL = None,
        default_model: DEFAULT_MODEL = None,
        set_active: SET_ACTIVE = False,
    ) -> ModelConfiguration:
        """Store a new model configuration. The base URL and model default to the vendor's."""

        if not api_key:
            msg = "An API key is required"
            raise ConfigurationError(msg, extra_info={"vendor": vendor})

        configuration = ModelConfiguration.for_vendor(
            name=name, vendor=vendor, api_key=api_key, base_url=base_url, default_model=default_model
        )

        if VendorInfo.from_vendor_tag(vendor).requires_custom_base_url and not configuration.base_url:
            msg = "The vendor requires a base URL"
            raise ConfigurationError(msg, extra_info={"vendor": vendor})

        await self.config_store.add_configuration(configuration)

        self.logger.info(f"Stored model configuration {configuration.id} ({configuration.name})")

        if set_active:
            _ = await self.config_store.set_active_configuration(configuration.id)

        return redact(configuration)

    async def update_model_config(
        self,
        model_config_id: MODEL_CONFIG_ID,
        name: OPTIONAL_CONFIG_NAME = None,
        api_key: OPTIONAL_CONFIG_API_KEY = None,
        base_url: BASE_URL = None,
        default_model: DEFAULT_MODEL = None,
        enabled: ENABLED = None,
    ) -> ModelConfiguration:
        """Change the provided fields of a model configuration, leaving the others as they are."""

        update = ModelConfigurationUpdate(name=name, api_key=api_key, base_url=base_url, default_model=default_model, enabled=enabled)

        if (configuration := await self.config_store.update_configuration(model_config_id, update)) is None:
            raise ConfigurationNotFoundError(model_config_id)

        return redact(configuration)

    async def delete_model_config(self, model_config_id: MODEL_CONFIG_ID) -> bool:
        """Delete a model configuration. Deleting the active configuration leaves no configuration active."""

        if not await self.config_store.remove_configuration(model_config_id):
            raise ConfigurationNotFoundError(model_config_id)

        self.logger.info(f"Deleted model configuration {model_config_id}")

        return True

    async def clear_model_cache(self) -> bool:
        """Forget the cached model lists of every vendor."""

        await self.config_store.clear_model_cache()

        return True

    async def get_supported_vendors(self) -> list[VendorInfo]:
        """List the supported vendors with their defaults."""

        return [VendorInfo.from_vendor_tag(vendor) for vendor in supported_vendors()]

    async def _require_configuration(self, model_config_id: str) -> ModelConfiguration:
        if (configuration := await self.config_store.get_configuration(model_config_id)) is None:
            raise ConfigurationNotFoundError(model_config_id)

        return configuration
