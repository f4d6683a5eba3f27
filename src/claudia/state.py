"""Stream state management."""

from __future__ import annotations

import json
import time

from .errors import DecodeError
from .models import (
    Content,
    ContentBlockDelta,
    ContentBlockStart,
    InputJsonDelta,
    MessageDelta,
    MessagesResponse,
    MessageStart,
    MessageStop,
    StreamEvent,
    Usage,
)
from .types import StreamState


def create_state() -> StreamState:
    """Create fresh stream state."""
    return StreamState()


def apply_event(state: StreamState, event: StreamEvent) -> None:
    """Fold one lifecycle event into the state and update timing."""
    now = time.time()
    if state.first_event_at is None:
        state.first_event_at = now
    state.last_event_at = now
    state.event_count += 1

    if isinstance(event, MessageStart) and event.message is not None:
        message = event.message
        state.message_id = message.id
        state.model = message.model
        state.role = message.role
        state.input_tokens = message.usage.input_tokens
        state.output_tokens = message.usage.output_tokens
    elif isinstance(event, ContentBlockStart):
        block = event.content_block
        state.content_blocks[event.index] = (
            block.model_dump(exclude_none=True) if block else {"type": "text"}
        )
        state.block_text.setdefault(event.index, [])
        if block is not None and block.text:
            state.block_text[event.index].append(block.text)
    elif isinstance(event, ContentBlockDelta):
        if isinstance(event.delta, InputJsonDelta):
            state.block_json.setdefault(event.index, []).append(
                event.delta.partial_json
            )
        elif event.text:
            state.block_text.setdefault(event.index, []).append(event.text)
    elif isinstance(event, MessageDelta):
        if event.delta is not None:
            state.stop_reason = event.delta.stop_reason
            state.stop_sequence = event.delta.stop_sequence
        if event.usage is not None:
            state.output_tokens = event.usage.output_tokens
    elif isinstance(event, MessageStop):
        mark_completed(state)


def mark_completed(state: StreamState) -> None:
    """Mark stream as completed and calculate duration."""
    state.completed = True
    if state.first_event_at is not None:
        state.duration = (state.last_event_at or time.time()) - state.first_event_at


def to_response(state: StreamState) -> MessagesResponse:
    """Assemble the full message a stream has delivered.

    Raises:
        DecodeError: Accumulated tool input is not valid JSON.
    """
    indexes = sorted(set(state.content_blocks) | set(state.block_text))
    content: list[Content] = []
    for index in indexes:
        block = dict(state.content_blocks.get(index, {"type": "text"}))
        if block.get("type") == "text":
            block["text"] = "".join(state.block_text.get(index, []))
        if index in state.block_json:
            raw = "".join(state.block_json[index])
            try:
                block["input"] = json.loads(raw) if raw else {}
            except json.JSONDecodeError as e:
                raise DecodeError(
                    f"Malformed tool input for block {index}", data=raw
                ) from e
        content.append(Content.model_validate(block))

    return MessagesResponse(
        id=state.message_id,
        role=state.role,
        content=content,
        model=state.model,
        stop_reason=state.stop_reason,
        stop_sequence=state.stop_sequence,
        usage=Usage(input_tokens=state.input_tokens, output_tokens=state.output_tokens),
    )
