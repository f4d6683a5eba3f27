"""claudia - Resilient streaming client for the Anthropic Messages API."""

from .cancellation import (
    AbortSignal,
    CancelReason,
    classify,
    effective_signal,
    run_until_aborted,
)
from .client import Anthropic, Messages
from .decoder import DECODERS, Record, decode, decode_events, decode_record, iter_records
from .errors import (
    AbortError,
    APIError,
    DecodeError,
    Error,
    ErrorCode,
    FailureType,
    IncompleteStreamError,
    TimeoutError,
    categorize_error,
)
from .events import EventBus, ObservabilityEvent, ObservabilityEventType
from .logging import disable_debug, enable_debug
from .models import (
    Content,
    ContentBlockDelta,
    ContentBlockStart,
    ContentBlockStop,
    Delta,
    ErrorResponse,
    ErrorResponseShape,
    InputJsonDelta,
    Message,
    MessageDelta,
    MessageDeltaBody,
    MessageRequest,
    MessagesResponse,
    MessageStart,
    MessageStop,
    Metadata,
    Ping,
    Source,
    StreamEvent,
    TextDelta,
    Usage,
)
from .retry import RetryManager, get_delay
from .runtime import execute
from .state import apply_event, create_state, to_response
from .stream import MessageStream, consume_stream, get_text
from .types import (
    API_VERSION,
    DEFAULT_BASE_URL,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT,
    RequestOptions,
    Retry,
    StreamEventType,
    StreamState,
)

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Client
    "Anthropic",
    "Messages",
    "MessageStream",
    "RequestOptions",
    "Retry",
    # Cancellation
    "AbortSignal",
    "CancelReason",
    "classify",
    "effective_signal",
    "run_until_aborted",
    # Executor
    "execute",
    "RetryManager",
    "get_delay",
    # Decoder
    "DECODERS",
    "Record",
    "decode",
    "decode_events",
    "decode_record",
    "iter_records",
    # Requests
    "Content",
    "Message",
    "MessageRequest",
    "Metadata",
    "Source",
    # Responses
    "ErrorResponse",
    "ErrorResponseShape",
    "MessagesResponse",
    "Usage",
    # Lifecycle events
    "StreamEvent",
    "StreamEventType",
    "Ping",
    "MessageStart",
    "MessageDelta",
    "MessageDeltaBody",
    "MessageStop",
    "ContentBlockStart",
    "ContentBlockDelta",
    "ContentBlockStop",
    "Delta",
    "TextDelta",
    "InputJsonDelta",
    # State
    "StreamState",
    "apply_event",
    "create_state",
    "to_response",
    "consume_stream",
    "get_text",
    # Errors
    "Error",
    "ErrorCode",
    "FailureType",
    "APIError",
    "AbortError",
    "TimeoutError",
    "DecodeError",
    "IncompleteStreamError",
    "categorize_error",
    # Observability
    "EventBus",
    "ObservabilityEvent",
    "ObservabilityEventType",
    "enable_debug",
    "disable_debug",
    # Constants
    "API_VERSION",
    "DEFAULT_BASE_URL",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_TIMEOUT",
]
