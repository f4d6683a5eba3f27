"""Wire shapes for the Messages API.

Request models serialize compactly and omit unset (``None``) fields. Response
and stream-event models accept fields they do not declare, so additions on the
server side do not break decoding.
"""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ─────────────────────────────────────────────────────────────────────────────
# Request
# ─────────────────────────────────────────────────────────────────────────────


class Source(BaseModel):
    """Inline image payload."""

    type: str = "base64"
    media_type: str
    data: str


class Content(BaseModel):
    """One content block (request or response side)."""

    model_config = ConfigDict(extra="allow")

    type: str = "text"
    text: str | None = None
    source: Source | None = None

    @classmethod
    def text_block(cls, text: str) -> Content:
        return cls(type="text", text=text)

    @classmethod
    def image_block(cls, media_type: str, data: str) -> Content:
        return cls(type="image", source=Source(media_type=media_type, data=data))


class Message(BaseModel):
    role: Literal["user", "assistant"]
    content: str | list[Content]


class Metadata(BaseModel):
    user_id: str | None = None


class MessageRequest(BaseModel):
    """Body of ``POST /v1/messages``.

    Usage:
        request = MessageRequest(
            model="claude-3-opus-20240229",
            max_tokens=1024,
            messages=[Message(role="user", content="Hello, Claude")],
        )
    """

    model: str
    max_tokens: int
    messages: list[Message]
    system: str | None = None
    metadata: Metadata | None = None
    stop_sequences: list[str] | None = None
    stream: bool | None = None
    temperature: float | None = None
    top_p: float | None = None
    top_k: int | None = None

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)


# ─────────────────────────────────────────────────────────────────────────────
# Response
# ─────────────────────────────────────────────────────────────────────────────


class Usage(BaseModel):
    model_config = ConfigDict(extra="allow")

    input_tokens: int = 0
    output_tokens: int = 0


class MessagesResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = ""
    type: str = "message"
    role: str = "assistant"
    content: list[Content] = Field(default_factory=list)
    model: str = ""
    stop_reason: str | None = None
    stop_sequence: str | None = None
    usage: Usage = Field(default_factory=Usage)

    @property
    def text(self) -> str:
        """Concatenated text of all text blocks."""
        return "".join(c.text or "" for c in self.content if c.type == "text")


class ErrorResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str = "api_error"
    message: str = ""


class ErrorResponseShape(BaseModel):
    """Envelope of a non-200 body: ``{"type": "error", "error": {...}}``."""

    model_config = ConfigDict(extra="allow")

    type: str = "error"
    error: ErrorResponse


# ─────────────────────────────────────────────────────────────────────────────
# Stream lifecycle events
# ─────────────────────────────────────────────────────────────────────────────


class _LifecycleEvent(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)


class Delta(BaseModel):
    """Delta of a kind this client has no dedicated model for."""

    model_config = ConfigDict(extra="allow")

    type: str = ""


class TextDelta(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["text_delta"] = "text_delta"
    text: str = ""


class InputJsonDelta(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["input_json_delta"] = "input_json_delta"
    partial_json: str = ""


_DELTA_MODELS: dict[str, type[BaseModel]] = {
    "text_delta": TextDelta,
    "input_json_delta": InputJsonDelta,
}


class MessageDeltaBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    stop_reason: str | None = None
    stop_sequence: str | None = None


class Ping(_LifecycleEvent):
    type: Literal["ping"] = "ping"


class MessageStart(_LifecycleEvent):
    type: Literal["message_start"] = "message_start"
    message: MessagesResponse | None = None


class MessageDelta(_LifecycleEvent):
    type: Literal["message_delta"] = "message_delta"
    delta: MessageDeltaBody | None = None
    usage: Usage | None = None


class MessageStop(_LifecycleEvent):
    type: Literal["message_stop"] = "message_stop"


class ContentBlockStart(_LifecycleEvent):
    type: Literal["content_block_start"] = "content_block_start"
    index: int
    content_block: Content | None = None


class ContentBlockDelta(_LifecycleEvent):
    type: Literal["content_block_delta"] = "content_block_delta"
    index: int
    delta: TextDelta | InputJsonDelta | Delta | str | None = None

    @field_validator("delta", mode="before")
    @classmethod
    def _select_delta_model(cls, value: Any) -> Any:
        if isinstance(value, dict):
            model = _DELTA_MODELS.get(value.get("type", ""), Delta)
            return model.model_validate(value)
        return value

    @property
    def text(self) -> str:
        """Text carried by this delta, empty for non-text deltas."""
        if isinstance(self.delta, TextDelta):
            return self.delta.text
        if isinstance(self.delta, str):
            return self.delta
        return ""


class ContentBlockStop(_LifecycleEvent):
    type: Literal["content_block_stop"] = "content_block_stop"
    index: int


StreamEvent = Union[
    Ping,
    MessageStart,
    MessageDelta,
    MessageStop,
    ContentBlockStart,
    ContentBlockDelta,
    ContentBlockStop,
]
