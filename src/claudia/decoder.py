"""Incremental decoder for the streamed Messages API response.

The body is a sequence of framed records:

    event: content_block_delta
    data: {"type": "content_block_delta", "index": 0, "delta": {...}}
    <blank line>

Records are decoded one at a time into typed lifecycle events. The event
token picks the parser; the payload is never sniffed to decide the type.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

import httpx
from pydantic import ValidationError

from .cancellation import AbortSignal, run_until_aborted
from .errors import APIError, DecodeError, ErrorCode, IncompleteStreamError
from .logging import logger
from .models import (
    ContentBlockDelta,
    ContentBlockStart,
    ContentBlockStop,
    ErrorResponseShape,
    MessageDelta,
    MessageStart,
    MessageStop,
    Ping,
    StreamEvent,
)
from .types import StreamEventType


@dataclass(frozen=True)
class Record:
    """One framed record: the event token and its raw payload."""

    event: str = ""
    data: str = ""


# Token -> payload parser. Pure; no I/O.
DECODERS: dict[str, Callable[[str], StreamEvent]] = {
    StreamEventType.MESSAGE_START.value: MessageStart.model_validate_json,
    StreamEventType.CONTENT_BLOCK_START.value: ContentBlockStart.model_validate_json,
    StreamEventType.PING.value: Ping.model_validate_json,
    StreamEventType.CONTENT_BLOCK_DELTA.value: ContentBlockDelta.model_validate_json,
    StreamEventType.CONTENT_BLOCK_STOP.value: ContentBlockStop.model_validate_json,
    StreamEventType.MESSAGE_DELTA.value: MessageDelta.model_validate_json,
    StreamEventType.MESSAGE_STOP.value: MessageStop.model_validate_json,
}


async def iter_records(lines: AsyncIterator[str]) -> AsyncIterator[Record]:
    """Group text lines into framed records.

    ``event:`` sets the token, ``data:`` lines accumulate (joined with
    newlines), and a blank line ends the record. Comment lines (leading
    ``:``) and unknown fields are skipped. A blank line with nothing
    accumulated yields nothing; a partial record at end of input is flushed.
    """
    event = ""
    data: list[str] = []

    async for raw in lines:
        line = raw.rstrip("\r\n")
        if not line:
            if event or data:
                yield Record(event, "\n".join(data))
            event, data = "", []
            continue
        if line.startswith(":"):
            continue

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            event = value
        elif name == "data":
            data.append(value)

    if event or data:
        yield Record(event, "\n".join(data))


def decode_record(record: Record) -> StreamEvent:
    """Turn one framed record into a lifecycle event.

    Raises:
        DecodeError: Payload is not well-formed, or the token is unknown
            and the record carries a payload.
        APIError: The record is a mid-stream ``error`` event.
    """
    token = record.event
    payload = record.data

    if token == StreamEventType.ERROR.value:
        raise _stream_error(record)

    parser = DECODERS.get(token)
    if not payload.strip():
        if parser is None or token == StreamEventType.PING.value:
            return Ping()
        raise DecodeError(
            f"Empty payload for event {token!r}", event=token, data=payload
        )
    if parser is None:
        raise DecodeError(
            f"Unrecognized event type {token!r}", event=token, data=payload
        )

    try:
        return parser(payload)
    except ValidationError as e:
        raise DecodeError(
            f"Malformed payload for event {token!r}: {e.errors()[0]['msg']}",
            event=token,
            data=payload,
        ) from e


def _stream_error(record: Record) -> Exception:
    try:
        shape = ErrorResponseShape.model_validate_json(record.data)
    except ValidationError:
        return DecodeError(
            "Malformed payload for event 'error'", event=record.event, data=record.data
        )
    code = ErrorCode.from_type(shape.error.type)
    return APIError(
        shape.error.message,
        status_code=code.status_code or 500,
        error_type=shape.error.type,
        code=code,
    )


class _Ordering:
    """Lifecycle ordering of one stream.

    One ``message_start`` comes before any content-block event, a block's
    delta or stop needs that block to be open, and ``message_stop`` needs a
    prior ``message_delta``.
    """

    __slots__ = ("started", "open_blocks", "delta_seen")

    def __init__(self) -> None:
        self.started = False
        self.open_blocks: set[int] = set()
        self.delta_seen = False

    def check(self, event: StreamEvent, record: Record) -> None:
        problem = self._violation(event)
        if problem is not None:
            raise DecodeError(problem, event=record.event, data=record.data)

    def _violation(self, event: StreamEvent) -> str | None:
        if isinstance(event, MessageStart):
            if self.started:
                return "Duplicate message_start"
            self.started = True
        elif isinstance(event, ContentBlockStart):
            if not self.started:
                return "content_block_start before message_start"
            self.open_blocks.add(event.index)
        elif isinstance(event, (ContentBlockDelta, ContentBlockStop)):
            if not self.started:
                return f"{event.type} before message_start"
            if event.index not in self.open_blocks:
                return f"{event.type} for unopened block {event.index}"
            if isinstance(event, ContentBlockStop):
                self.open_blocks.discard(event.index)
        elif isinstance(event, MessageDelta):
            self.delta_seen = True
        elif isinstance(event, MessageStop) and not self.delta_seen:
            return "message_stop before message_delta"
        return None


async def decode_events(lines: AsyncIterator[str]) -> AsyncIterator[StreamEvent]:
    """Decode lines into events, in order, ending after ``message_stop``.

    Raises:
        DecodeError: A record could not be decoded, or arrived out of
            lifecycle order. Events before it have already been yielded.
        IncompleteStreamError: Input ended before ``message_stop``.
    """
    ordering = _Ordering()
    async for record in iter_records(lines):
        try:
            event = decode_record(record)
            ordering.check(event, record)
        except DecodeError as e:
            logger.debug(f"Decode failure: {e}")
            raise
        yield event
        if isinstance(event, MessageStop):
            return

    logger.debug("Stream ended before message_stop")
    raise IncompleteStreamError()


async def decode(
    response: httpx.Response,
    signal: AbortSignal | None = None,
) -> AsyncIterator[StreamEvent]:
    """Decode a streaming ``httpx.Response`` body into lifecycle events.

    The body is read incrementally; each read is a suspension point that
    gives up with ``AbortError`` when ``signal`` fires. The response is
    closed when iteration ends for any reason, including the consumer
    stopping early.

    Usage:
        async for event in decode(response, signal):
            if isinstance(event, ContentBlockDelta):
                print(event.text, end="")
    """
    lines: AsyncIterator[str] = response.aiter_lines()
    if signal is not None:
        lines = _abortable(lines, signal)
    events = decode_events(lines)
    try:
        async for event in events:
            yield event
    finally:
        await events.aclose()
        await response.aclose()


async def _abortable(
    lines: AsyncIterator[str], signal: AbortSignal
) -> AsyncIterator[str]:
    iterator = lines.__aiter__()
    while True:
        line = await run_until_aborted(_next_line(iterator), signal)
        if line is None:
            return
        yield line


async def _next_line(iterator: AsyncIterator[str]) -> str | None:
    return await anext(iterator, None)
