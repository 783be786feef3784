from abc import ABC, abstractmethod
from collections.abc import Sequence

from repo_insight_mcp.config.models import ModelConfiguration
from repo_insight_mcp.llm.models import ChatMessage, ModelDescriptor
from repo_insight_mcp.llm.stream import LLMResponse


class LLMProvider(ABC):
    """A chat-completion vendor behind the vendor-neutral request and response shapes."""

    configuration: ModelConfiguration

    @abstractmethod
    async def chat_completion(self, messages: Sequence[ChatMessage], model: str, stream: bool) -> LLMResponse:
        """Run a chat completion, returning a `Completion` or, when `stream` is set, an `EventStream`."""

    @abstractmethod
    async def list_models(self) -> list[ModelDescriptor]:
        """List the models the provider offers."""

    @abstractmethod
    async def test_connection(self) -> None:
        """Check that the provider is reachable and accepts the credential. Raises an `LLMError` otherwise."""
