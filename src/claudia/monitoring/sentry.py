"""Sentry integration for claudia monitoring."""

from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, Field

from ..events import ObservabilityEvent, ObservabilityEventType


class SentryConfig(BaseModel):
    """Sentry configuration.

    Leave ``dsn`` unset when the application calls ``sentry_sdk.init()``
    itself; the handler then reports through the existing client.

    Attributes:
        dsn: Project DSN; when set, the handler initializes the SDK
        environment: ``environment`` reported with every event
        release: ``release`` reported with every event
        sample_rate: Fraction of captured errors actually sent
        enabled: Turn the handler into a no-op when False
        tags: Tags set once at initialization
    """

    dsn: str | None = None
    environment: str | None = None
    release: str | None = None
    sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    enabled: bool = True
    tags: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def from_env(cls) -> SentryConfig:
        """Read ``SENTRY_DSN``, ``SENTRY_ENVIRONMENT`` and ``SENTRY_RELEASE``."""
        return cls(
            dsn=os.getenv("SENTRY_DSN"),
            environment=os.getenv("SENTRY_ENVIRONMENT"),
            release=os.getenv("SENTRY_RELEASE"),
        )


# Breadcrumb level per recorded event type
_BREADCRUMBS: dict[ObservabilityEventType, str] = {
    ObservabilityEventType.SESSION_START: "info",
    ObservabilityEventType.RETRY_ATTEMPT: "warning",
    ObservabilityEventType.RETRY_GIVE_UP: "warning",
    ObservabilityEventType.NETWORK_ERROR: "warning",
    ObservabilityEventType.TIMEOUT_TRIGGERED: "warning",
    ObservabilityEventType.ABORT_REQUESTED: "info",
    ObservabilityEventType.API_ERROR: "error",
}


def _sdk() -> Any:
    try:
        import sentry_sdk
    except ImportError as e:
        raise ImportError(
            "Sentry SDK not installed. Install with: pip install claudia[observability]"
        ) from e
    return sentry_sdk


class SentryHandler:
    """Report failed requests to Sentry.

    Retries, timeouts, aborts and upstream error statuses are left as
    breadcrumbs; a request that ends in ``error`` is captured as one message
    tagged with its ``stream_id``, model and failure category, so the
    breadcrumbs explain how it got there.

    Usage:
        ```python
        from claudia import Anthropic
        from claudia.monitoring import SentryConfig, SentryHandler

        sentry = SentryHandler(SentryConfig.from_env())
        client = Anthropic(on_event=sentry.handle_event)
        ```

    Requires:
        pip install claudia[observability]
    """

    def __init__(self, config: SentryConfig | None = None) -> None:
        self.config = config or SentryConfig()
        self._started = False

    def _start(self) -> Any:
        sdk = _sdk()
        if self._started:
            return sdk

        if self.config.dsn:
            sdk.init(
                dsn=self.config.dsn,
                environment=self.config.environment,
                release=self.config.release,
                sample_rate=self.config.sample_rate,
            )
        for key, value in self.config.tags.items():
            sdk.set_tag(key, value)
        self._started = True
        return sdk

    def handle_event(self, event: ObservabilityEvent) -> None:
        """``on_event`` callback."""
        if not self.config.enabled:
            return
        sdk = self._start()

        kind = ObservabilityEventType(event.type)
        level = _BREADCRUMBS.get(kind)
        if level is not None:
            sdk.add_breadcrumb(
                category="claudia",
                message=kind.value,
                level=level,
                data={"stream_id": event.stream_id, **event.meta},
            )
        elif kind is ObservabilityEventType.ERROR:
            with sdk.new_scope() as scope:
                scope.set_tag("claudia.stream_id", event.stream_id)
                scope.set_tag("claudia.model", str(event.meta.get("model", "")))
                scope.set_tag(
                    "claudia.category", str(event.meta.get("category", "unknown"))
                )
                scope.set_context("claudia", dict(event.meta))
                sdk.capture_message(
                    f"Messages request failed: {event.meta.get('error', '')}",
                    level="error",
                )

    def flush(self, timeout: float = 2.0) -> None:
        """Wait up to ``timeout`` seconds for queued events to be sent."""
        if self._started:
            _sdk().flush(timeout=timeout)

    def close(self) -> None:
        """Close the Sentry client if this handler created it."""
        if self._started and self.config.dsn:
            _sdk().get_client().close()
