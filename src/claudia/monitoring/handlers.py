"""Composition helpers for ``on_event`` callbacks."""

from __future__ import annotations

from collections.abc import Callable, Iterable

from ..events import ObservabilityEvent, ObservabilityEventType
from ..logging import logger

EventHandler = Callable[[ObservabilityEvent], None]


def combine_events(*handlers: EventHandler | None) -> EventHandler:
    """Fan one event stream out to several handlers.

    ``None`` entries are skipped, so optional handlers can be passed
    unconditionally. A handler that raises is logged and the rest still run.

    Example:
        ```python
        from claudia import Anthropic
        from claudia.monitoring import OpenTelemetryHandler, SentryHandler, combine_events

        client = Anthropic(
            on_event=combine_events(
                OpenTelemetryHandler().handle_event,
                SentryHandler().handle_event,
                lambda e: print(e.type),
            ),
        )
        ```
    """
    active = tuple(h for h in handlers if h is not None)
    if not active:
        return lambda event: None
    if len(active) == 1:
        return active[0]

    def fan_out(event: ObservabilityEvent) -> None:
        for target in active:
            try:
                target(event)
            except Exception as e:
                logger.warning(f"Event handler failed on {event.type.value}: {e}")

    return fan_out


def filter_events(
    types: Iterable[ObservabilityEventType | str],
    handler: EventHandler,
) -> EventHandler:
    """Forward only events whose type is in ``types``.

    Example:
        ```python
        on_failure = filter_events(
            [ObservabilityEventType.ERROR, ObservabilityEventType.API_ERROR],
            alerts.notify,
        )
        ```
    """
    wanted = frozenset(types)

    def only(event: ObservabilityEvent) -> None:
        if event.type in wanted:
            handler(event)

    return only


def exclude_events(
    types: Iterable[ObservabilityEventType | str],
    handler: EventHandler,
) -> EventHandler:
    """Forward every event except those in ``types`` (e.g. ``stream.event``)."""
    dropped = frozenset(types)

    def without(event: ObservabilityEvent) -> None:
        if event.type not in dropped:
            handler(event)

    return without
