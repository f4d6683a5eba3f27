"""Messages API client.

Sends one request through the resilient executor, checks the status, and
either parses the full body or hands the body stream to the decoder.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Callable
from contextlib import aclosing
from typing import Any

import httpx
from pydantic import ValidationError

from .cancellation import AbortSignal
from .decoder import decode
from .errors import (
    AbortError,
    APIError,
    DecodeError,
    ErrorCode,
    categorize_error,
)
from .events import EventBus, ObservabilityEvent, ObservabilityEventType
from .logging import logger
from .models import ErrorResponseShape, MessageRequest, MessagesResponse, StreamEvent
from .retry import RandomSource
from .runtime import execute
from .stream import MessageStream
from .types import (
    API_VERSION,
    DEFAULT_BASE_URL,
    DEFAULT_TIMEOUT,
    RequestOptions,
    Retry,
)


class Anthropic:
    """Async client for the Messages API.

    Usage:
        async with Anthropic() as client:
            response = await client.messages.create(request)
            print(response.text)

            async for event in client.messages.create_stream(request):
                ...

    Args:
        api_key: API key; defaults to ``ANTHROPIC_API_KEY`` from the environment
        base_url: API root
        timeout: Seconds allowed per attempt (default 10 minutes)
        max_retries: Retries of the network send after the first attempt
        retry: Backoff configuration (delays, jitter)
        http_client: Shared ``httpx.AsyncClient``; not closed by ``aclose()``
        transport: Transport for the owned client (ignored with ``http_client``)
        rng: Random source for backoff jitter
        on_event: Callback for observability events
        meta: Metadata attached to all observability events
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int | None = None,
        retry: Retry | None = None,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        rng: RandomSource | None = None,
        on_event: Callable[[ObservabilityEvent], None] | None = None,
        meta: dict[str, Any] | None = None,
    ) -> None:
        self.api_key = (
            api_key if api_key is not None else os.environ.get("ANTHROPIC_API_KEY", "")
        )
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry = retry or Retry()
        self.max_retries = (
            max_retries if max_retries is not None else self.retry.max_retries
        )
        self.on_event = on_event
        self.meta = meta or {}
        self._rng = rng
        self._owns_http = http_client is None
        # Timeouts are applied per attempt, never by httpx itself
        self._http = http_client or httpx.AsyncClient(transport=transport, timeout=None)
        self.messages = Messages(self)

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/v1/messages"

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> Anthropic:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        await self.aclose()
        return False

    # ─────────────────────────────────────────────────────────────────────────
    # Internals
    # ─────────────────────────────────────────────────────────────────────────

    def _resolve(self, options: RequestOptions | None) -> tuple[float, int, str]:
        options = options or RequestOptions()
        timeout = options.timeout if options.timeout is not None else self.timeout
        max_retries = (
            options.max_retries if options.max_retries is not None else self.max_retries
        )
        api_key = options.api_key if options.api_key is not None else self.api_key
        return timeout, max_retries, api_key

    def _event_bus(self, request: MessageRequest) -> EventBus:
        return EventBus(
            self.on_event,
            meta={**self.meta, "model": request.model, "stream": bool(request.stream)},
        )

    def _headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-api-key": api_key,
            "anthropic-version": API_VERSION,
            "accept": "application/json",
            "content-type": "application/json",
        }

    async def _send(
        self,
        request: MessageRequest,
        options: RequestOptions | None,
        signal: AbortSignal | None,
        event_bus: EventBus,
    ) -> httpx.Response:
        """Send the request (retried) and return a 200 response, unread.

        Raises:
            APIError: Any other status; the body has been read and closed.
        """
        timeout, max_retries, api_key = self._resolve(options)
        body = request.to_json().encode("utf-8")
        headers = self._headers(api_key)

        async def send(_: AbortSignal) -> httpx.Response:
            http_request = self._http.build_request(
                "POST", self.messages_url, headers=headers, content=body
            )
            logger.debug(f"POST {self.messages_url} (model={request.model})")
            event_bus.emit(ObservabilityEventType.REQUEST_SENT, url=self.messages_url)
            return await self._http.send(http_request, stream=True)

        response = await execute(
            send,
            timeout=timeout,
            max_retries=max_retries,
            retryable=True,
            signal=signal,
            retry=self.retry,
            rng=self._rng,
            event_bus=event_bus,
        )
        event_bus.emit(
            ObservabilityEventType.RESPONSE_RECEIVED, status_code=response.status_code
        )
        if response.status_code == 200:
            return response

        try:
            await self._read_body(response, timeout, signal, event_bus)
        finally:
            await response.aclose()
        error = _api_error(response, request)
        logger.debug(f"API error {error.status_code}: {error.error_type}")
        event_bus.emit(
            ObservabilityEventType.API_ERROR,
            status_code=error.status_code,
            code=error.code.value,
            message=error.message,
        )
        raise error

    async def _read_body(
        self,
        response: httpx.Response,
        timeout: float,
        signal: AbortSignal | None,
        event_bus: EventBus,
    ) -> bytes:
        return await execute(
            lambda _: response.aread(),
            timeout=timeout,
            max_retries=0,
            retryable=False,
            signal=signal,
            event_bus=event_bus,
        )

    async def _create(
        self,
        request: MessageRequest,
        options: RequestOptions | None,
        signal: AbortSignal | None,
    ) -> MessagesResponse:
        event_bus = self._event_bus(request)
        event_bus.emit(ObservabilityEventType.SESSION_START)
        try:
            response = await self._send(request, options, signal, event_bus)
            try:
                timeout, _, _ = self._resolve(options)
                body = await self._read_body(response, timeout, signal, event_bus)
            finally:
                await response.aclose()
            try:
                result = MessagesResponse.model_validate_json(body)
            except ValidationError as e:
                raise DecodeError("Malformed response body", data=response.text) from e
            event_bus.emit(
                ObservabilityEventType.COMPLETE,
                input_tokens=result.usage.input_tokens,
                output_tokens=result.usage.output_tokens,
            )
            return result
        except Exception as e:
            _emit_error(event_bus, e)
            raise
        finally:
            event_bus.emit(ObservabilityEventType.SESSION_END)

    async def _stream(
        self,
        request: MessageRequest,
        options: RequestOptions | None,
        caller_signal: AbortSignal | None,
        signal: AbortSignal,
    ) -> AsyncGenerator[StreamEvent, None]:
        event_bus = self._event_bus(request)

        def forward() -> None:
            assert caller_signal is not None
            signal.abort(caller_signal.reason)

        if caller_signal is not None:
            caller_signal.add_listener(forward)

        event_bus.emit(ObservabilityEventType.SESSION_START)
        count = 0
        try:
            response = await self._send(request, options, signal, event_bus)
            logger.debug("Stream opened")
            event_bus.emit(ObservabilityEventType.STREAM_INIT)
            async with aclosing(decode(response, signal)) as events:
                async for event in events:
                    count += 1
                    if event_bus.enabled:
                        event_bus.emit(
                            ObservabilityEventType.STREAM_EVENT,
                            event_type=event.type,
                            index=getattr(event, "index", None),
                        )
                    yield event
            logger.debug(f"Stream complete: {count} events")
            event_bus.emit(ObservabilityEventType.COMPLETE, event_count=count)
        except AbortError as e:
            _emit_error(event_bus, e)
            if caller_signal is not None and caller_signal.aborted:
                raise AbortError(caller_signal) from e
            raise
        except Exception as e:
            _emit_error(event_bus, e)
            raise
        finally:
            if caller_signal is not None:
                caller_signal.remove_listener(forward)
            event_bus.emit(ObservabilityEventType.SESSION_END, event_count=count)


class Messages:
    """``client.messages``: create a message, whole or streamed."""

    def __init__(self, client: Anthropic) -> None:
        self._client = client

    async def create(
        self,
        request: MessageRequest,
        options: RequestOptions | None = None,
        *,
        signal: AbortSignal | None = None,
    ) -> MessagesResponse:
        """Send a conversation and return the complete response.

        Raises:
            APIError: Non-200 status, classified by status code
            AbortError: ``signal`` fired
            TimeoutError: The last attempt ran past the timeout
            DecodeError: The 200 body is not a valid response
        """
        request = request.model_copy(update={"stream": None})
        return await self._client._create(request, options, signal)

    def create_stream(
        self,
        request: MessageRequest,
        options: RequestOptions | None = None,
        *,
        signal: AbortSignal | None = None,
    ) -> MessageStream:
        """Send a conversation and stream the response as lifecycle events.

        Returns immediately; the request is sent when iteration starts, and
        failures surface from the iteration.
        """
        request = request.model_copy(update={"stream": True})
        stream_signal = AbortSignal()
        return MessageStream(
            self._client._stream(request, options, signal, stream_signal),
            stream_signal,
        )


def _api_error(response: httpx.Response, request: MessageRequest) -> APIError:
    status = response.status_code
    code = ErrorCode.from_status(status)
    try:
        shape = ErrorResponseShape.model_validate_json(response.content)
        message, error_type = shape.error.message, shape.error.type
    except ValidationError:
        message, error_type = response.text or f"HTTP {status}", None
    return APIError(
        message,
        status_code=status,
        error_type=error_type,
        code=code,
        request=request if code is ErrorCode.INVALID_REQUEST_ERROR else None,
    )


def _emit_error(event_bus: EventBus, error: Exception) -> None:
    category = categorize_error(error)
    if isinstance(error, DecodeError):
        event_bus.emit(ObservabilityEventType.DECODE_ERROR, error=str(error))
    event_bus.emit(
        ObservabilityEventType.ERROR, error=str(error), category=category.value
    )
