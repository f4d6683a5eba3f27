"""Observability events emitted while a request runs.

Each call to ``messages.create`` / ``messages.create_stream`` gets its own
``EventBus``; everything it emits shares one uuid7 ``stream_id`` so handlers
can group events per request.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from uuid6 import uuid7


class ObservabilityEventType(str, Enum):
    # Request lifecycle
    SESSION_START = "session.start"
    SESSION_END = "session.end"
    COMPLETE = "complete"
    ERROR = "error"

    # Executor
    ATTEMPT_START = "attempt.start"
    RETRY_ATTEMPT = "retry.attempt"
    RETRY_GIVE_UP = "retry.give_up"
    TIMEOUT_TRIGGERED = "timeout.triggered"
    ABORT_REQUESTED = "abort.requested"
    NETWORK_ERROR = "network.error"

    # HTTP
    REQUEST_SENT = "request.sent"
    RESPONSE_RECEIVED = "response.received"
    API_ERROR = "api.error"

    # Decoder
    STREAM_INIT = "stream.init"
    STREAM_EVENT = "stream.event"
    DECODE_ERROR = "decode.error"


@dataclass(frozen=True)
class ObservabilityEvent:
    type: ObservabilityEventType
    ts: float  # Unix time in milliseconds
    stream_id: str
    elapsed: float = 0.0  # Seconds since the request started
    meta: dict[str, Any] = field(default_factory=dict)


class EventBus:
    """Per-request emitter. Without a handler, ``emit`` does nothing."""

    __slots__ = ("_handler", "_meta", "_started", "stream_id")

    def __init__(
        self,
        handler: Callable[[ObservabilityEvent], None] | None = None,
        meta: dict[str, Any] | None = None,
    ):
        self._handler = handler
        self._meta = dict(meta or {})
        self._started = time.monotonic()
        self.stream_id = str(uuid7())

    @property
    def enabled(self) -> bool:
        return self._handler is not None

    def emit(self, event_type: ObservabilityEventType, **meta: Any) -> None:
        if self._handler is None:
            return
        self._handler(
            ObservabilityEvent(
                type=event_type,
                ts=time.time() * 1000,
                stream_id=self.stream_id,
                elapsed=time.monotonic() - self._started,
                meta={**self._meta, **meta},
            )
        )
