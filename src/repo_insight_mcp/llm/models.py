from enum import Enum
from typing import Annotated, Literal, Self

from pydantic import BaseModel, ConfigDict, Field

from repo_insight_mcp.llm.errors import LLMErrorKind

CUSTOM_VENDOR = "custom"


class ModelVendor(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    DEEPSEEK = "deepseek"
    AZURE_OPENAI = "azure_openai"

    @property
    def display_name(self) -> str:
        return VENDOR_DISPLAY_NAMES[self]

    @property
    def default_base_url(self) -> str:
        return VENDOR_DEFAULT_BASE_URLS[self]

    @property
    def default_model(self) -> str:
        return VENDOR_DEFAULT_MODELS[self]

    @property
    def requires_custom_base_url(self) -> bool:
        return self is ModelVendor.AZURE_OPENAI

    @classmethod
    def from_tag(cls, vendor: str) -> "ModelVendor | None":
        """The known vendor for a vendor tag, or None for custom OpenAI-compatible vendors."""

        try:
            return cls(vendor)
        except ValueError:
            return None


VENDOR_DISPLAY_NAMES: dict[ModelVendor, str] = {
    ModelVendor.OPENAI: "OpenAI",
    ModelVendor.ANTHROPIC: "Anthropic (Claude)",
    ModelVendor.GOOGLE: "Google (Gemini)",
    ModelVendor.DEEPSEEK: "DeepSeek",
    ModelVendor.AZURE_OPENAI: "Azure OpenAI",
}

VENDOR_DEFAULT_BASE_URLS: dict[ModelVendor, str] = {
    ModelVendor.OPENAI: "https://api.openai.com/v1",
    ModelVendor.ANTHROPIC: "https://api.anthropic.com",
    ModelVendor.GOOGLE: "https://generativelanguage.googleapis.com/v1",
    ModelVendor.DEEPSEEK: "https://api.deepseek.com",
    ModelVendor.AZURE_OPENAI: "",
}

VENDOR_DEFAULT_MODELS: dict[ModelVendor, str] = {
    ModelVendor.OPENAI: "gpt-4o-mini",
    ModelVendor.ANTHROPIC: "claude-3-haiku-20240307",
    ModelVendor.GOOGLE: "gemini-pro",
    ModelVendor.DEEPSEEK: "deepseek-chat",
    ModelVendor.AZURE_OPENAI: "gpt-4",
}

CUSTOM_DEFAULT_MODEL = "custom-model"


def vendor_display_name(vendor: str) -> str:
    if known_vendor := ModelVendor.from_tag(vendor):
        return known_vendor.display_name

    if vendor == CUSTOM_VENDOR:
        return "Custom (OpenAI-compatible)"

    return f"Custom ({vendor})"


def vendor_cache_key(vendor: str) -> str:
    """The key a vendor's model list is cached under."""

    if known_vendor := ModelVendor.from_tag(vendor):
        return known_vendor.value

    return f"{CUSTOM_VENDOR}_{vendor}"


class ChatMessage(BaseModel):
    """A single message of a conversation sent to a provider."""

    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant"] = Field(description="The author of the message.")
    content: str = Field(description="The text of the message.")

    @classmethod
    def system(cls, content: str) -> Self:
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> Self:
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str) -> Self:
        return cls(role="assistant", content=content)


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ModelDescriptor(BaseModel):
    """A model offered by a provider."""

    id: str = Field(description="The identifier used to request the model.")
    name: str = Field(description="The display name of the model.")
    vendor: str = Field(description="The vendor tag of the provider that serves the model.")
    context_length: int | None = Field(default=None, description="The size of the context window in tokens.")
    max_tokens: int | None = Field(default=None, description="The maximum number of output tokens.")
    supports_streaming: bool = Field(default=True, description="Whether the model can stream its output.")
    supports_function_calling: bool = Field(default=False, description="Whether the model supports function calling.")


class StreamToken(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["token"] = "token"
    text: str


class StreamError(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["error"] = "error"
    message: str
    kind: LLMErrorKind = LLMErrorKind.UNKNOWN


class StreamDone(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["done"] = "done"


StreamEvent = Annotated[StreamToken | StreamError | StreamDone, Field(discriminator="type")]


class Completion(BaseModel):
    """A non-streaming chat completion."""

    content: str
    model: str
    usage: Usage | None = None
