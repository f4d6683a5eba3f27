"""OpenTelemetry integration for claudia monitoring."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from ..events import ObservabilityEvent, ObservabilityEventType

if TYPE_CHECKING:
    from opentelemetry.metrics import Meter
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.trace import Span, Tracer

# Per-request events recorded on the request's span
_SPAN_EVENTS = frozenset(
    {
        ObservabilityEventType.ATTEMPT_START,
        ObservabilityEventType.RETRY_ATTEMPT,
        ObservabilityEventType.TIMEOUT_TRIGGERED,
        ObservabilityEventType.ABORT_REQUESTED,
        ObservabilityEventType.NETWORK_ERROR,
        ObservabilityEventType.API_ERROR,
    }
)


class OpenTelemetryConfig(BaseModel):
    """OpenTelemetry configuration.

    Attributes:
        service_name: ``service.name`` resource attribute
        endpoint: OTLP gRPC endpoint; without one, spans and metrics stay
            in-process (useful when the application installs its own exporter)
        headers: Extra headers for OTLP export requests
        insecure: Export without TLS
        enabled: Turn the handler into a no-op when False
        trace_enabled: Record one span per request
        metrics_enabled: Record request, retry and error counts and durations
        export_interval: Seconds between metric exports
    """

    service_name: str = "claudia"
    endpoint: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    insecure: bool = False
    enabled: bool = True
    trace_enabled: bool = True
    metrics_enabled: bool = True
    export_interval: float = Field(default=5.0, ge=1.0)

    @classmethod
    def from_env(cls) -> OpenTelemetryConfig:
        """Read the standard ``OTEL_*`` variables.

        ``OTEL_EXPORTER_OTLP_HEADERS`` is a comma-separated ``key=value`` list.
        """
        pairs = (
            item.split("=", 1)
            for item in os.getenv("OTEL_EXPORTER_OTLP_HEADERS", "").split(",")
            if "=" in item
        )
        return cls(
            service_name=os.getenv("OTEL_SERVICE_NAME", "claudia"),
            endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT"),
            headers={key.strip(): value.strip() for key, value in pairs},
            insecure=os.getenv("OTEL_EXPORTER_OTLP_INSECURE", "").lower() == "true",
        )


class OpenTelemetryHandler:
    """Turn observability events into spans and metrics.

    Each request becomes one CLIENT span named ``claudia.messages``, opened
    on ``session.start`` and ended on ``session.end``. Attempts, retries,
    timeouts and aborts are recorded as span events; a request ending in
    ``error`` sets the span status to ERROR.

    Usage:
        ```python
        from claudia import Anthropic
        from claudia.monitoring import OpenTelemetryConfig, OpenTelemetryHandler

        otel = OpenTelemetryHandler(OpenTelemetryConfig.from_env())
        client = Anthropic(on_event=otel.handle_event)
        ```

    Pass ``tracer`` and/or ``meter`` to reuse providers the application has
    already configured; otherwise providers are built from ``config`` on the
    first event.

    Requires:
        pip install claudia[observability]
    """

    def __init__(
        self,
        config: OpenTelemetryConfig | None = None,
        *,
        tracer: Tracer | None = None,
        meter: Meter | None = None,
    ) -> None:
        self.config = config or OpenTelemetryConfig()
        self._tracer = tracer
        self._meter = meter
        self._ready = tracer is not None or meter is not None
        self._providers: list[Any] = []
        self._spans: dict[str, Span] = {}
        self._instruments: dict[str, Any] | None = None

    # ─────────────────────────────────────────────────────────────────────────
    # Setup
    # ─────────────────────────────────────────────────────────────────────────

    def _setup(self) -> None:
        if self._ready:
            return

        try:
            from opentelemetry.sdk.resources import Resource
        except ImportError as e:
            raise ImportError(
                "OpenTelemetry packages not installed. "
                "Install with: pip install claudia[observability]"
            ) from e

        resource = Resource.create({"service.name": self.config.service_name})
        if self.config.trace_enabled:
            self._tracer = self._build_tracer(resource)
        if self.config.metrics_enabled:
            self._meter = self._build_meter(resource)
        self._ready = True

    def _exporter_args(self) -> dict[str, Any]:
        return {
            "endpoint": self.config.endpoint,
            "headers": self.config.headers or None,
            "insecure": self.config.insecure,
        }

    def _build_tracer(self, resource: Resource) -> Tracer:
        from opentelemetry import trace
        from opentelemetry.sdk.trace import TracerProvider

        provider = TracerProvider(resource=resource)
        if self.config.endpoint:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                OTLPSpanExporter,
            )
            from opentelemetry.sdk.trace.export import BatchSpanProcessor

            provider.add_span_processor(
                BatchSpanProcessor(OTLPSpanExporter(**self._exporter_args()))
            )
        trace.set_tracer_provider(provider)
        self._providers.append(provider)
        return trace.get_tracer("claudia")

    def _build_meter(self, resource: Resource) -> Meter:
        from opentelemetry import metrics
        from opentelemetry.sdk.metrics import MeterProvider

        readers = []
        if self.config.endpoint:
            from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
                OTLPMetricExporter,
            )
            from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader

            readers.append(
                PeriodicExportingMetricReader(
                    OTLPMetricExporter(**self._exporter_args()),
                    export_interval_millis=self.config.export_interval * 1000,
                )
            )
        provider = MeterProvider(resource=resource, metric_readers=readers)
        metrics.set_meter_provider(provider)
        self._providers.append(provider)
        return metrics.get_meter("claudia")

    def _metric(self, name: str) -> Any:
        if self._meter is None or not self.config.metrics_enabled:
            return None
        if self._instruments is None:
            meter = self._meter
            self._instruments = {
                "requests": meter.create_counter(
                    "claudia.requests", unit="{request}", description="Requests made"
                ),
                "retries": meter.create_counter(
                    "claudia.retries", unit="{retry}", description="Retried sends"
                ),
                "errors": meter.create_counter(
                    "claudia.errors", unit="{error}", description="Failed requests"
                ),
                "duration": meter.create_histogram(
                    "claudia.duration", unit="s", description="Request duration"
                ),
            }
        return self._instruments[name]

    # ─────────────────────────────────────────────────────────────────────────
    # Event handling
    # ─────────────────────────────────────────────────────────────────────────

    def handle_event(self, event: ObservabilityEvent) -> None:
        """``on_event`` callback."""
        if not self.config.enabled:
            return
        self._setup()

        kind = ObservabilityEventType(event.type)
        labels = {"model": str(event.meta.get("model", ""))}
        span = self._spans.get(event.stream_id)

        if kind is ObservabilityEventType.SESSION_START:
            self._open_span(event)
            self._count("requests", labels)
        elif kind is ObservabilityEventType.SESSION_END:
            span = self._spans.pop(event.stream_id, None)
            duration = self._metric("duration")
            if duration is not None:
                duration.record(event.elapsed, labels)
            if span is not None:
                span.end()
        elif kind is ObservabilityEventType.ERROR:
            category = str(event.meta.get("category", "unknown"))
            self._count("errors", {**labels, "category": category})
            if span is not None:
                from opentelemetry.trace import StatusCode

                span.set_attribute("claudia.error.category", category)
                span.set_status(StatusCode.ERROR, str(event.meta.get("error", "")))
        elif kind is ObservabilityEventType.COMPLETE and span is not None:
            span.set_attributes(_attributes(event.meta))

        if kind is ObservabilityEventType.RETRY_ATTEMPT:
            self._count("retries", labels)
        if kind is ObservabilityEventType.RESPONSE_RECEIVED and span is not None:
            span.set_attribute(
                "http.response.status_code", event.meta.get("status_code", 0)
            )
        if kind in _SPAN_EVENTS and span is not None:
            span.add_event(kind.value, _attributes(event.meta))

    def _open_span(self, event: ObservabilityEvent) -> None:
        if self._tracer is None or not self.config.trace_enabled:
            return

        from opentelemetry.trace import SpanKind

        self._spans[event.stream_id] = self._tracer.start_span(
            "claudia.messages",
            kind=SpanKind.CLIENT,
            attributes={"claudia.stream_id": event.stream_id, **_attributes(event.meta)},
        )

    def _count(self, name: str, labels: dict[str, str]) -> None:
        counter = self._metric(name)
        if counter is not None:
            counter.add(1, labels)

    def shutdown(self) -> None:
        """End open spans and shut down the providers this handler built."""
        for span in self._spans.values():
            span.end()
        self._spans.clear()
        for provider in self._providers:
            provider.shutdown()
        self._providers.clear()


def _attributes(meta: dict[str, Any]) -> dict[str, Any]:
    """Meta values usable as OpenTelemetry attributes, under ``claudia.``."""
    return {
        f"claudia.{key}": value
        for key, value in meta.items()
        if isinstance(value, (str, bool, int, float))
    }
