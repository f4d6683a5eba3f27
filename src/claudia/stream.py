"""Streaming result and stream utilities."""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator
from typing import Any

from .cancellation import AbortSignal
from .models import ContentBlockDelta, MessagesResponse, StreamEvent
from .state import apply_event, create_state, to_response
from .types import StreamState


class MessageStream:
    """Async iterator of lifecycle events with state and abort attached.

    Nothing is sent until the first event is requested. Supports both
    iteration and context manager patterns:

        # Iterate directly
        stream = client.messages.create_stream(request)
        async for event in stream:
            if isinstance(event, ContentBlockDelta):
                print(event.text, end="")

        # Or scope it; the response is released on exit
        async with client.messages.create_stream(request) as stream:
            async for event in stream:
                ...

        # Drain to text
        text = await stream.read()

        # Access state
        print(stream.state.content)
        print(stream.state.output_tokens)

    The response is released as soon as the stream ends, fails or is
    aborted. A consumer that ``break``s out of a bare ``async for`` leaves
    it open until the generator is garbage collected; use ``async with`` or
    ``await stream.aclose()`` to release it at a known point.
    """

    __slots__ = ("_iterator", "_consumed", "_signal", "state")

    def __init__(
        self,
        iterator: AsyncGenerator[StreamEvent, None],
        signal: AbortSignal,
        state: StreamState | None = None,
    ) -> None:
        self._iterator = iterator
        self._consumed = False
        self._signal = signal
        self.state = state or create_state()

    @property
    def signal(self) -> AbortSignal:
        return self._signal

    # ─────────────────────────────────────────────────────────────────────────
    # Async iterator protocol
    # ─────────────────────────────────────────────────────────────────────────

    def __aiter__(self) -> MessageStream:
        return self

    async def __anext__(self) -> StreamEvent:
        try:
            event = await self._iterator.__anext__()
        except StopAsyncIteration:
            self._consumed = True
            raise
        apply_event(self.state, event)
        return event

    # ─────────────────────────────────────────────────────────────────────────
    # Context manager protocol
    # ─────────────────────────────────────────────────────────────────────────

    async def __aenter__(self) -> MessageStream:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        await self.aclose()
        return False

    def abort(self, reason: Any = None) -> None:
        """Stop the stream; the pending or next read raises ``AbortError``."""
        self.state.aborted = True
        self._signal.abort(reason)

    async def aclose(self) -> None:
        """Stop iterating and release the underlying response."""
        await self._iterator.aclose()

    # ─────────────────────────────────────────────────────────────────────────
    # Read interface
    # ─────────────────────────────────────────────────────────────────────────

    async def read(self) -> str:
        """Drain the stream and return its text.

        If already consumed, returns the accumulated ``state.content``.
        """
        if not self._consumed:
            async for _ in self:
                pass
        return self.state.content

    async def get_final_message(self) -> MessagesResponse:
        """Consume the stream and return the message it delivered."""
        if not self._consumed:
            async for _ in self:
                pass
        return to_response(self.state)


async def consume_stream(stream: AsyncIterator[StreamEvent]) -> str:
    """Concatenate the text deltas of ``stream``."""
    content = ""
    async for event in stream:
        if isinstance(event, ContentBlockDelta):
            content += event.text
    return content


async def get_text(stream: MessageStream) -> str:
    """Helper to get text from a MessageStream."""
    return await stream.read()
