"""claudia Monitoring.

Observability handlers for OpenTelemetry and Sentry. Each handler exposes
``handle_event`` for use as the client's ``on_event`` callback.

Usage:
    ```python
    from claudia import Anthropic
    from claudia.monitoring import (
        OpenTelemetryConfig,
        OpenTelemetryHandler,
        SentryConfig,
        SentryHandler,
        combine_events,
    )

    otel = OpenTelemetryHandler(OpenTelemetryConfig.from_env())
    sentry = SentryHandler(SentryConfig.from_env())

    client = Anthropic(on_event=combine_events(otel.handle_event, sentry.handle_event))
    ```
"""

from .handlers import EventHandler, combine_events, exclude_events, filter_events
from .otel import OpenTelemetryConfig, OpenTelemetryHandler
from .sentry import SentryConfig, SentryHandler

__all__ = [
    # Handlers
    "EventHandler",
    "combine_events",
    "filter_events",
    "exclude_events",
    # OpenTelemetry
    "OpenTelemetryConfig",
    "OpenTelemetryHandler",
    # Sentry
    "SentryConfig",
    "SentryHandler",
]
