"""Resilient executor: timeout, cancellation and retry around one operation."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

from .cancellation import (
    AbortSignal,
    CancelReason,
    classify,
    effective_signal,
    run_until_aborted,
)
from .errors import AbortError, FailureType, TimeoutError, categorize_error
from .events import EventBus, ObservabilityEventType
from .logging import logger
from .retry import RandomSource, RetryManager
from .types import Retry

T = TypeVar("T")

Operation = Callable[[AbortSignal], Awaitable[T]]


async def execute(
    operation: Operation[T],
    *,
    timeout: float | None,
    max_retries: int,
    retryable: bool = True,
    signal: AbortSignal | None = None,
    retry: Retry | None = None,
    rng: RandomSource | None = None,
    event_bus: EventBus | None = None,
) -> T:
    """Run ``operation`` under a per-attempt timeout, retrying failures.

    Args:
        operation: Factory taking the attempt's effective signal and returning
            the awaitable to run. Called once per attempt.
        timeout: Seconds allowed per attempt (``None`` for no deadline)
        max_retries: Attempts allowed after the first
        retryable: Whether this operation takes part in retry at all
        signal: Caller's abort signal
        retry: Backoff configuration
        rng: Random source for backoff jitter
        event_bus: Observability sink for attempt/retry/timeout events

    Returns:
        The operation's result from the first successful attempt.

    Raises:
        AbortError: The caller's signal fired, during an attempt or a backoff
            wait. Never retried.
        TimeoutError: The last allowed attempt ran past ``timeout``.
        Exception: Whatever the last allowed attempt raised.
    """
    retry_mgr = RetryManager(max_retries if retryable else 0, retry, rng)
    event_bus = event_bus or EventBus()
    attempt = 0

    while True:
        attempt += 1
        event_bus.emit(
            ObservabilityEventType.ATTEMPT_START,
            attempt=attempt,
            retryable=retryable,
        )

        try:
            return await _run_attempt(operation, signal, timeout, event_bus, attempt)
        except AbortError:
            raise
        except Exception as e:
            category = categorize_error(e)
            logger.debug(f"Attempt {attempt} failed ({category.value}): {e!r}")
            if category is FailureType.NETWORK:
                event_bus.emit(
                    ObservabilityEventType.NETWORK_ERROR,
                    attempt=attempt,
                    error=str(e),
                )

            if not retry_mgr.should_retry():
                if retryable:
                    event_bus.emit(
                        ObservabilityEventType.RETRY_GIVE_UP,
                        attempts=attempt,
                        last_error=str(e),
                    )
                raise

            try:
                delay = await retry_mgr.wait(signal)
            except AbortError:
                logger.debug("Request aborted during backoff")
                event_bus.emit(
                    ObservabilityEventType.ABORT_REQUESTED,
                    attempt=attempt,
                    during="backoff",
                )
                raise
            retry_mgr.record_attempt()
            event_bus.emit(
                ObservabilityEventType.RETRY_ATTEMPT,
                attempt=attempt + 1,
                delay=delay,
                reason=str(e),
                category=category.value,
                retries_remaining=retry_mgr.retries_remaining,
            )


async def _run_attempt(
    operation: Operation[T],
    signal: AbortSignal | None,
    timeout: float | None,
    event_bus: EventBus,
    attempt: int,
) -> T:
    with effective_signal(signal, timeout) as effective:
        try:
            return await run_until_aborted(operation(effective), effective)
        except AbortError as e:
            if e.signal is not effective:
                raise
            if classify(signal) is CancelReason.USER:
                assert signal is not None
                logger.debug(f"Request aborted by caller: {signal.reason!r}")
                event_bus.emit(
                    ObservabilityEventType.ABORT_REQUESTED,
                    attempt=attempt,
                    reason=str(signal.reason),
                )
                raise AbortError(signal) from e

            if timeout is None:
                # Fired by the operation itself; there is no deadline to report
                raise
            logger.debug(f"Attempt {attempt} timed out after {timeout}s")
            event_bus.emit(
                ObservabilityEventType.TIMEOUT_TRIGGERED,
                attempt=attempt,
                timeout_seconds=timeout,
            )
            raise TimeoutError(timeout) from e
