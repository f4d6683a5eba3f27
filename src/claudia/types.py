"""claudia types - configuration values and stream event tokens."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

DEFAULT_BASE_URL = "https://api.anthropic.com"
API_VERSION = "2023-06-01"
DEFAULT_TIMEOUT = 600.0  # 10 minutes
DEFAULT_MAX_RETRIES = 2


# ─────────────────────────────────────────────────────────────────────────────
# Stream Event Tokens
# ─────────────────────────────────────────────────────────────────────────────


class StreamEventType(str, Enum):
    """Event-type token carried on the `event:` line of a streamed record."""

    MESSAGE_START = "message_start"
    CONTENT_BLOCK_START = "content_block_start"
    PING = "ping"
    CONTENT_BLOCK_DELTA = "content_block_delta"
    CONTENT_BLOCK_STOP = "content_block_stop"
    MESSAGE_DELTA = "message_delta"
    MESSAGE_STOP = "message_stop"
    ERROR = "error"


# ─────────────────────────────────────────────────────────────────────────────
# Retry + Timeout (seconds, not milliseconds - Pythonic!)
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class Retry:
    """Retry configuration.

    All delays are in seconds (float), matching Python conventions
    like asyncio.sleep(), time.sleep(), etc.
    """

    max_retries: int = DEFAULT_MAX_RETRIES  # Attempts after the first
    base_delay: float = 0.5  # Starting delay (seconds)
    max_delay: float = 8.0  # Maximum delay (seconds)
    jitter: float = 0.25  # Fraction taken off the delay at most


@dataclass
class RequestOptions:
    """Per-call overrides. ``None`` falls back to the client default.

    Usage:
        response = await client.messages.create(
            request,
            RequestOptions(timeout=30.0, max_retries=0),
        )
    """

    timeout: float | None = None  # Seconds per attempt
    max_retries: int | None = None
    api_key: str | None = None


# ─────────────────────────────────────────────────────────────────────────────
# State
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class StreamState:
    """What a stream has delivered so far, keyed by content-block index."""

    message_id: str = ""
    model: str = ""
    role: str = "assistant"
    content_blocks: dict[int, dict[str, Any]] = field(default_factory=dict)
    block_text: dict[int, list[str]] = field(default_factory=dict)
    block_json: dict[int, list[str]] = field(default_factory=dict)
    stop_reason: str | None = None
    stop_sequence: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    event_count: int = 0
    completed: bool = False
    aborted: bool = False
    first_event_at: float | None = None
    last_event_at: float | None = None
    duration: float | None = None

    @property
    def content(self) -> str:
        """Text received so far across all blocks, in index order."""
        return "".join("".join(self.block_text[i]) for i in sorted(self.block_text))
