"""Abort signals and the effective signal used for one request attempt.

A caller hands an ``AbortSignal`` to the client and fires it with
``abort()`` to stop an in-flight request. Each attempt runs under an
*effective* signal that also fires when the attempt's timeout elapses;
``classify`` tells the two causes apart afterwards.

Usage:
    signal = AbortSignal()
    task = asyncio.create_task(client.messages.create(request, signal=signal))
    ...
    signal.abort("user navigated away")
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from enum import Enum
from typing import Any, TypeVar

from .errors import AbortError
from .logging import logger

T = TypeVar("T")


class CancelReason(str, Enum):
    """Which source fired an effective signal."""

    USER = "user"
    TIMEOUT = "timeout"


class AbortSignal:
    """One-shot cancellation signal.

    Safe to create outside a running event loop; listeners run synchronously
    inside ``abort()``.
    """

    __slots__ = ("_event", "_reason", "_listeners")

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: Any = None
        self._listeners: list[Callable[[], None]] = []

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Any:
        return self._reason

    def abort(self, reason: Any = None) -> None:
        """Fire the signal. Later calls are no-ops."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        for listener in list(self._listeners):
            listener()
        self._listeners.clear()

    async def wait(self) -> None:
        await self._event.wait()

    def add_listener(self, listener: Callable[[], None]) -> None:
        if self._event.is_set():
            listener()
        else:
            self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[], None]) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def __repr__(self) -> str:
        state = f"aborted reason={self._reason!r}" if self.aborted else "pending"
        return f"<AbortSignal {state}>"


@contextmanager
def effective_signal(
    signal: AbortSignal | None,
    timeout: float | None,
) -> Iterator[AbortSignal]:
    """Merge the caller's signal with a deadline ``timeout`` seconds from now.

    The yielded signal fires when either source fires. The timer and the
    listener on the caller's signal are released on exit, so the merged
    signal lives for exactly one attempt.

    Must be entered from inside a running event loop.
    """
    merged = AbortSignal()
    handle: asyncio.TimerHandle | None = None

    def forward() -> None:
        merged.abort(signal.reason if signal is not None else None)

    if signal is not None:
        signal.add_listener(forward)
    if timeout is not None and not merged.aborted:
        loop = asyncio.get_running_loop()
        handle = loop.call_later(timeout, merged.abort, CancelReason.TIMEOUT)

    try:
        yield merged
    finally:
        if handle is not None:
            handle.cancel()
        if signal is not None:
            signal.remove_listener(forward)


def classify(signal: AbortSignal | None) -> CancelReason:
    """Decide why an effective signal fired.

    A caller signal that was requested always wins, even when the deadline
    elapsed at the same time.
    """
    if signal is not None and signal.aborted:
        return CancelReason.USER
    return CancelReason.TIMEOUT


async def run_until_aborted(awaitable: Awaitable[T], signal: AbortSignal) -> T:
    """Await ``awaitable``, giving up as soon as ``signal`` fires.

    When the signal wins, the operation is cancelled and awaited before
    ``AbortError(signal)`` is raised. Cancellation of the calling task is
    forwarded to the operation and then re-raised.
    """
    task = asyncio.ensure_future(awaitable)
    if signal.aborted:
        await _cancel_and_wait(task)
        raise AbortError(signal)

    waiter = asyncio.ensure_future(signal.wait())
    try:
        done, _ = await asyncio.wait(
            {task, waiter}, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task in done:
        return task.result()

    logger.debug(f"Signal fired, cancelling operation: {signal!r}")
    await _cancel_and_wait(task)
    raise AbortError(signal)


async def sleep(delay: float, signal: AbortSignal | None = None) -> None:
    """``asyncio.sleep`` that raises ``AbortError`` if ``signal`` fires first."""
    if signal is None:
        await asyncio.sleep(delay)
        return
    await run_until_aborted(asyncio.sleep(delay), signal)


async def _cancel_and_wait(task: asyncio.Future[Any]) -> None:
    task.cancel()
    await asyncio.wait({task})
    if not task.cancelled():
        # Retrieve so the loop does not report it as never retrieved
        task.exception()
