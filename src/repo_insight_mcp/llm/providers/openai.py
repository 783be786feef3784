import json
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from logging import Logger
from typing import Any
from typing_extensions import override

import httpx
from fastmcp.utilities.logging import get_logger
from httpx_sse import aconnect_sse

from repo_insight_mcp.config.models import ModelConfiguration
from repo_insight_mcp.llm.errors import (
    AuthenticationFailedError,
    ConfigurationError,
    LLMError,
    MalformedRequestError,
    ResponseParseError,
    error_from_status_code,
    translate_transport_errors,
)
from repo_insight_mcp.llm.models import ChatMessage, Completion, ModelDescriptor, StreamToken, Usage
from repo_insight_mcp.llm.providers.base import LLMProvider
from repo_insight_mcp.llm.stream import EventSink, EventStream, LLMResponse
from repo_insight_mcp.settings import get_http_timeout

STREAM_TERMINATOR = "[DONE]"

CHAT_COMPLETIONS_PATH = "/chat/completions"
MODELS_PATH = "/models"


def extract_delta(chunk: dict[str, Any]) -> str | None:
    """Get the incremental text from a streamed chat completion chunk."""

    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices:
        return None

    delta = choices[0].get("delta") if isinstance(choices[0], dict) else None
    if not isinstance(delta, dict):
        return None

    content = delta.get("content")

    return content if isinstance(content, str) else None


def extract_error_message(body: dict[str, Any], default: str) -> str | None:
    """Get the message of an `error` object if the body carries one."""

    error = body.get("error")
    if error is None:
        return None

    if isinstance(error, dict) and isinstance(message := error.get("message"), str):
        return message

    if isinstance(error, str):
        return error

    return default


def parse_usage(body: dict[str, Any]) -> Usage | None:
    usage = body.get("usage")
    if not isinstance(usage, dict):
        return None

    return Usage(
        prompt_tokens=usage.get("prompt_tokens") or 0,
        completion_tokens=usage.get("completion_tokens") or 0,
        total_tokens=usage.get("total_tokens") or 0,
    )


def parse_json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except json.JSONDecodeError as e:
        raise ResponseParseError(str(e)) from e

    if not isinstance(body, dict):
        msg = f"Expected a JSON object, got {type(body).__name__}"
        raise ResponseParseError(msg)

    return body


class OpenAIProvider(LLMProvider):
    """The reference adapter for the OpenAI chat completions API and every API shaped like it."""

    configuration: ModelConfiguration
    http_client: httpx.AsyncClient | None
    logger: Logger

    def __init__(self, configuration: ModelConfiguration, http_client: httpx.AsyncClient | None = None, logger: Logger | None = None):
        self.configuration = configuration
        self.http_client = http_client
        self.logger = logger or get_logger(name=__name__)

    def build_endpoint_url(self, path: str) -> str:
        return self.configuration.base_url.rstrip("/") + path

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.configuration.api_key}",
            "Content-Type": "application/json",
        }

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        """Use the shared client when one was provided, otherwise a client for this call only."""

        if self.http_client is not None:
            yield self.http_client
            return

        async with httpx.AsyncClient(timeout=get_http_timeout()) as http_client:
            yield http_client

    @override
    async def chat_completion(self, messages: Sequence[ChatMessage], model: str, stream: bool) -> LLMResponse:
        payload: dict[str, Any] = {
            "model": model,
            "messages": [message.model_dump() for message in messages],
            "stream": stream,
        }

        self.logger.info(f"Requesting a {'streaming' if stream else 'single'} chat completion from {self.configuration.vendor} ({model}).")

        if stream:
            return EventStream(producer=lambda send: self._produce_stream(send=send, payload=payload), logger=self.logger)

        async with self._client() as http_client:
            with translate_transport_errors():
                response = await http_client.post(self.build_endpoint_url(CHAT_COMPLETIONS_PATH), headers=self._headers(), json=payload)

        return self._handle_completion_response(response)

    def _handle_completion_response(self, response: httpx.Response) -> Completion:
        if response.is_error:
            raise error_from_status_code(response.status_code, response.text)

        body = parse_json_body(response)

        if (error_message := extract_error_message(body, default="Unknown OpenAI error")) is not None:
            raise MalformedRequestError(error_message)

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            msg = "Missing content in response"
            raise ResponseParseError(msg) from e

        if not isinstance(content, str):
            msg = "Missing content in response"
            raise ResponseParseError(msg)

        model = body.get("model")

        return Completion(content=content, model=model if isinstance(model, str) else "unknown", usage=parse_usage(body))

    async def _produce_stream(self, send: EventSink, payload: dict[str, Any]) -> None:
        async with (
            self._client() as http_client,
            aconnect_sse(
                http_client, "POST", self.build_endpoint_url(CHAT_COMPLETIONS_PATH), headers=self._headers(), json=payload
            ) as event_source,
        ):
            response = event_source.response

            if response.is_error:
                _ = await response.aread()
                raise error_from_status_code(response.status_code, response.text)

            async for server_sent_event in event_source.aiter_sse():
                if server_sent_event.data == STREAM_TERMINATOR:
                    return

                try:
                    chunk = json.loads(server_sent_event.data)
                except json.JSONDecodeError as e:
                    msg = f"Malformed stream event: {e}"
                    raise ResponseParseError(msg) from e

                if not isinstance(chunk, dict):
                    msg = f"Malformed stream event: expected a JSON object, got {type(chunk).__name__}"
                    raise ResponseParseError(msg)

                if (error_message := extract_error_message(chunk, default="Unknown stream error")) is not None:
                    raise MalformedRequestError(error_message)

                # Role-only and empty deltas carry no text.
                if not (delta := extract_delta(chunk)):
                    continue

                if not await send(StreamToken(text=delta)):
                    self.logger.info("The stream consumer went away, closing the stream.")
                    return

    @override
    async def list_models(self) -> list[ModelDescriptor]:
        async with self._client() as http_client:
            with translate_transport_errors():
                response = await http_client.get(self.build_endpoint_url(MODELS_PATH), headers=self._headers())

        if response.is_error:
            raise error_from_status_code(response.status_code, response.text)

        body = parse_json_body(response)

        data = body.get("data")
        if not isinstance(data, list):
            msg = "Invalid models response"
            raise ResponseParseError(msg)

        return [descriptor for entry in data if (descriptor := self._model_descriptor(entry)) is not None]

    def _model_descriptor(self, entry: Any) -> ModelDescriptor | None:  # pyright: ignore[reportAny]
        if not isinstance(entry, dict) or not isinstance(model_id := entry.get("id"), str):
            return None

        capabilities = entry.get("capabilities")
        supports_function_calling = isinstance(capabilities, dict) and capabilities.get("function_calling") is True

        context_length = entry.get("context_length")

        return ModelDescriptor(
            id=model_id,
            name=model_id,
            vendor=self.configuration.vendor,
            context_length=context_length if isinstance(context_length, int) else None,
            supports_streaming=True,
            supports_function_calling=supports_function_calling,
        )

    @override
    async def test_connection(self) -> None:
        try:
            _ = await self.list_models()
        except AuthenticationFailedError:
            raise
        except LLMError as e:
            msg = f"Connection test failed: {e}"
            raise ConfigurationError(msg) from e
