import asyncio
from collections.abc import Awaitable, Callable
from logging import Logger
from types import TracebackType
from typing import Self

from fastmcp.utilities.logging import get_logger

from repo_insight_mcp.llm.errors import LLMError, translate_transport_errors
from repo_insight_mcp.llm.models import Completion, StreamDone, StreamError, StreamEvent

STREAM_CHANNEL_CAPACITY = 100

EventSink = Callable[[StreamEvent], Awaitable[bool]]
"""Sends an event to the consumer. Returns False once the consumer has stopped listening."""

StreamProducer = Callable[[EventSink], Awaitable[None]]


class EventStream:
    """The receiving end of a bounded channel filled by a background producer task.

    The producer owns the provider connection for its whole lifetime and only ever sends
    tokens and errors. Once the producer finishes, however it finishes, exactly one
    `StreamDone` is sent and it is always the last event.

    A producer that raises is reported as a single `StreamError` before the `StreamDone`.
    When the consumer calls `aclose`, pending events are dropped and the producer exits on
    its next send. A consumer that stops reading without calling `aclose` (or leaving `async with`)
    leaves the producer blocked on a full channel for good.
    """

    def __init__(self, producer: StreamProducer, capacity: int = STREAM_CHANNEL_CAPACITY, logger: Logger | None = None):
        self.logger: Logger = logger or get_logger(name=__name__)
        self._queue: asyncio.Queue[StreamEvent] = asyncio.Queue(maxsize=capacity)
        self._closed: bool = False
        self._finished: bool = False
        self._task: asyncio.Task[None] = asyncio.create_task(self._run(producer))

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def producer_task(self) -> asyncio.Task[None]:
        return self._task

    async def _send(self, event: StreamEvent) -> bool:
        if self._closed:
            return False

        await self._queue.put(event)

        return not self._closed

    async def _run(self, producer: StreamProducer) -> None:
        try:
            with translate_transport_errors():
                await producer(self._send)
        except LLMError as e:
            self.logger.warning(f"Stream failed with a {e.kind.value} error: {e}")
            _ = await self._send(StreamError(message=str(e), kind=e.kind))
        except Exception as e:
            self.logger.exception("Stream producer failed unexpectedly.")
            _ = await self._send(StreamError(message=str(e) or type(e).__name__))

        _ = await self._send(StreamDone())

    def __aiter__(self) -> Self:
        return self

    async def __anext__(self) -> StreamEvent:
        if self._finished or self._closed:
            raise StopAsyncIteration

        event: StreamEvent = await self._queue.get()

        if isinstance(event, StreamDone):
            self._finished = True

        return event

    async def aclose(self) -> None:
        """Stop listening. Events that were not consumed yet are discarded."""

        self._closed = True

        # Free the slot a blocked producer is waiting on so it can observe the close.
        while not self._queue.empty():
            _ = self._queue.get_nowait()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self, exc_type: type[BaseException] | None, exc_value: BaseException | None, traceback: TracebackType | None
    ) -> None:
        await self.aclose()


LLMResponse = Completion | EventStream
