import httpx
import pytest
from inline_snapshot import snapshot

from repo_insight_mcp.config.models import ModelConfiguration
from repo_insight_mcp.llm.errors import AuthenticationFailedError
from repo_insight_mcp.llm.models import ChatMessage, Completion
from repo_insight_mcp.llm.providers.compatible import CustomProvider, DeepSeekProvider
from tests.conftest import mock_http_client


@pytest.fixture
def deepseek_configuration() -> ModelConfiguration:
    return ModelConfiguration.for_vendor(name="DeepSeek", vendor="deepseek", api_key="sk-deepseek")


@pytest.fixture
def ollama_configuration() -> ModelConfiguration:
    return ModelConfiguration.for_vendor(
        name="Ollama", vendor="ollama", api_key="ollama", base_url="http://localhost:11434/v1", default_model="llama3.1"
    )


class TestDeepSeekProvider:
    async def test_chat_completion_uses_vendor_base_url(self, deepseek_configuration: ModelConfiguration) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"model": "deepseek-chat", "choices": [{"message": {"content": "A summary."}}]})

        provider = DeepSeekProvider(configuration=deepseek_configuration, http_client=mock_http_client(handler))

        response = await provider.chat_completion(messages=[ChatMessage.user("Hi")], model="deepseek-chat", stream=False)

        assert response == Completion(content="A summary.", model="deepseek-chat")
        assert str(requests[0].url) == "https://api.deepseek.com/chat/completions"

    async def test_list_models_rewrites_vendor(self, deepseek_configuration: ModelConfiguration) -> None:
        provider = DeepSeekProvider(
            configuration=deepseek_configuration,
            http_client=mock_http_client(lambda request: httpx.Response(200, json={"data": [{"id": "deepseek-chat"}]})),
        )

        models = await provider.list_models()

        assert [(model.id, model.vendor) for model in models] == [("deepseek-chat", "deepseek")]

    async def test_list_models_falls_back_to_presets(self, deepseek_configuration: ModelConfiguration) -> None:
        provider = DeepSeekProvider(
            configuration=deepseek_configuration, http_client=mock_http_client(lambda request: httpx.Response(500, text="down"))
        )

        models = await provider.list_models()

        assert [model.model_dump() for model in models] == snapshot(
            [
                {
                    "id": "deepseek-chat",
                    "name": "DeepSeek Chat (V3)",
                    "vendor": "deepseek",
                    "context_length": 64000,
                    "max_tokens": 8192,
                    "supports_streaming": True,
                    "supports_function_calling": True,
                },
                {
                    "id": "deepseek-reasoner",
                    "name": "DeepSeek Reasoner (R1)",
                    "vendor": "deepseek",
                    "context_length": 64000,
                    "max_tokens": 8192,
                    "supports_streaming": True,
                    "supports_function_calling": False,
                },
            ]
        )

    async def test_connection_failure_propagates(self, deepseek_configuration: ModelConfiguration) -> None:
        provider = DeepSeekProvider(
            configuration=deepseek_configuration, http_client=mock_http_client(lambda request: httpx.Response(401, text="bad key"))
        )

        with pytest.raises(AuthenticationFailedError):
            await provider.test_connection()


class TestCustomProvider:
    async def test_list_models_rewrites_vendor(self, ollama_configuration: ModelConfiguration) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"data": [{"id": "llama3.1"}, {"id": "qwen2.5"}]})

        provider = CustomProvider(configuration=ollama_configuration, http_client=mock_http_client(handler))

        models = await provider.list_models()

        assert str(requests[0].url) == "http://localhost:11434/v1/models"
        assert [(model.id, model.vendor) for model in models] == [("llama3.1", "ollama"), ("qwen2.5", "ollama")]

    async def test_list_models_falls_back_to_default_model(self, ollama_configuration: ModelConfiguration) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused", request=request)

        provider = CustomProvider(configuration=ollama_configuration, http_client=mock_http_client(handler))

        models = await provider.list_models()

        assert [model.model_dump() for model in models] == snapshot(
            [
                {
                    "id": "llama3.1",
                    "name": "llama3.1",
                    "vendor": "ollama",
                    "context_length": None,
                    "max_tokens": None,
                    "supports_streaming": True,
                    "supports_function_calling": False,
                }
            ]
        )
