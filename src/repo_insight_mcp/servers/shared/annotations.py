from typing import Annotated

from pydantic import Field

AUTHOR = Annotated[str, Field(description="The owner of the repository.")]
NAME = Annotated[str, Field(description="The name of the repository.")]
URL = Annotated[str, Field(description="The URL of the repository.")]
DESCRIPTION = Annotated[str, Field(description="The description of the repository.")]
LANGUAGE = Annotated[str, Field(description="The primary language of the repository.")]

MODEL_CONFIG_ID = Annotated[str, Field(description="The id of a stored model configuration.")]
OPTIONAL_MODEL_CONFIG_ID = Annotated[
    str | None,
    Field(description="The id of the stored model configuration to use. If not provided, the active configuration is used."),
]
API_KEY = Annotated[str | None, Field(description="A raw OpenAI API key to use instead of a stored model configuration.")]

DEEP_CONTEXT = Annotated[
    bool,
    Field(description="Whether to include the complete README, the directory listing and a dependency manifest in the prompt."),
]
FORCE_REFRESH = Annotated[bool, Field(description="Whether to generate a new insight even if one is cached.")]
REFRESH_MODELS = Annotated[bool, Field(description="Whether to ignore the cached model list and ask the provider.")]

CONFIG_NAME = Annotated[str, Field(description="The display name of the model configuration.")]
VENDOR = Annotated[
    str,
    Field(description="The vendor of the provider. One of the supported vendors, any other value is an OpenAI-compatible custom vendor."),
]
BASE_URL = Annotated[str | None, Field(description="The base URL of the provider API. Defaults to the vendor's base URL.")]
DEFAULT_MODEL = Annotated[str | None, Field(description="The model to summarize with. Defaults to the vendor's default model.")]
OPTIONAL_CONFIG_NAME = Annotated[str | None, Field(description="The new display name of the model configuration.")]
CONFIG_API_KEY = Annotated[str, Field(description="The API key sent to the provider.")]
OPTIONAL_CONFIG_API_KEY = Annotated[str | None, Field(description="The new API key sent to the provider.")]
ENABLED = Annotated[bool | None, Field(description="Whether the model configuration is offered for use.")]
SET_ACTIVE = Annotated[bool, Field(description="Whether to make the new model configuration the active one.")]
ENABLED_ONLY = Annotated[bool, Field(description="Whether to list only the enabled model configurations.")]
