"""Tests for claudia monitoring handlers."""

import pytest

from claudia import EventBus, ObservabilityEvent, ObservabilityEventType
from claudia.monitoring import (
    OpenTelemetryConfig,
    OpenTelemetryHandler,
    SentryConfig,
    SentryHandler,
    combine_events,
    exclude_events,
    filter_events,
)


def emit_failed_request(handler) -> EventBus:
    bus = EventBus(handler, meta={"model": "claude-3-haiku-20240307"})
    bus.emit(ObservabilityEventType.SESSION_START)
    bus.emit(ObservabilityEventType.ATTEMPT_START, attempt=1)
    bus.emit(ObservabilityEventType.RETRY_ATTEMPT, attempt=2, delay=0.5)
    bus.emit(ObservabilityEventType.ATTEMPT_START, attempt=2)
    bus.emit(
        ObservabilityEventType.ERROR, error="Overloaded", category="api"
    )
    bus.emit(ObservabilityEventType.SESSION_END)
    return bus


class TestHandlers:
    def test_combine_calls_all(self):
        a, b = [], []
        handler = combine_events(a.append, None, b.append)

        EventBus(handler).emit(ObservabilityEventType.SESSION_START)

        assert len(a) == 1
        assert len(b) == 1

    def test_combine_none(self):
        handler = combine_events(None)
        EventBus(handler).emit(ObservabilityEventType.SESSION_START)

    def test_combine_single_returns_handler(self):
        events: list[ObservabilityEvent] = []
        assert combine_events(events.append) == events.append

    def test_combine_survives_failing_handler(self, caplog):
        received = []

        def broken(event):
            raise RuntimeError("handler down")

        handler = combine_events(broken, received.append)
        EventBus(handler).emit(ObservabilityEventType.SESSION_START)

        assert len(received) == 1
        assert "handler down" in caplog.text

    def test_filter_events(self):
        received = []
        handler = filter_events(
            [ObservabilityEventType.ERROR, "retry.attempt"], received.append
        )

        emit_failed_request(handler)

        assert [e.type for e in received] == [
            ObservabilityEventType.RETRY_ATTEMPT,
            ObservabilityEventType.ERROR,
        ]

    def test_exclude_events(self):
        received = []
        handler = exclude_events([ObservabilityEventType.ATTEMPT_START], received.append)

        emit_failed_request(handler)

        assert ObservabilityEventType.ATTEMPT_START not in [e.type for e in received]
        assert len(received) == 4


class TestOpenTelemetryConfig:
    def test_defaults(self):
        config = OpenTelemetryConfig()
        assert config.service_name == "claudia"
        assert config.endpoint is None
        assert config.enabled is True

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("OTEL_SERVICE_NAME", "my-app")
        monkeypatch.setenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")
        monkeypatch.setenv("OTEL_EXPORTER_OTLP_HEADERS", "a=1, b = 2")
        monkeypatch.setenv("OTEL_EXPORTER_OTLP_INSECURE", "true")

        config = OpenTelemetryConfig.from_env()

        assert config.service_name == "my-app"
        assert config.endpoint == "http://localhost:4317"
        assert config.headers == {"a": "1", "b": "2"}
        assert config.insecure is True


class TestOpenTelemetryHandler:
    @pytest.fixture
    def span_exporter(self):
        pytest.importorskip("opentelemetry.sdk.trace")
        from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
            InMemorySpanExporter,
        )

        return InMemorySpanExporter()

    @pytest.fixture
    def tracer(self, span_exporter):
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import SimpleSpanProcessor

        provider = TracerProvider()
        provider.add_span_processor(SimpleSpanProcessor(span_exporter))
        return provider.get_tracer("test")

    def test_span_per_request(self, tracer, span_exporter):
        handler = OpenTelemetryHandler(
            OpenTelemetryConfig(metrics_enabled=False), tracer=tracer
        )

        bus = emit_failed_request(handler.handle_event)

        spans = span_exporter.get_finished_spans()
        assert len(spans) == 1
        span = spans[0]
        assert span.name == "claudia.messages"
        assert span.attributes["claudia.stream_id"] == bus.stream_id
        assert span.attributes["claudia.model"] == "claude-3-haiku-20240307"
        assert span.attributes["claudia.error.category"] == "api"
        assert [e.name for e in span.events] == [
            "attempt.start",
            "retry.attempt",
            "attempt.start",
        ]

        from opentelemetry.trace import StatusCode

        assert span.status.status_code is StatusCode.ERROR

    def test_metrics(self, tracer):
        pytest.importorskip("opentelemetry.sdk.metrics")
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import InMemoryMetricReader

        reader = InMemoryMetricReader()
        meter = MeterProvider(metric_readers=[reader]).get_meter("test")
        handler = OpenTelemetryHandler(tracer=tracer, meter=meter)

        emit_failed_request(handler.handle_event)

        data = reader.get_metrics_data()
        names = {
            metric.name
            for resource in data.resource_metrics
            for scope in resource.scope_metrics
            for metric in scope.metrics
        }
        assert {
            "claudia.requests",
            "claudia.retries",
            "claudia.errors",
            "claudia.duration",
        } <= names

    def test_disabled(self, tracer, span_exporter):
        handler = OpenTelemetryHandler(
            OpenTelemetryConfig(enabled=False), tracer=tracer
        )
        emit_failed_request(handler.handle_event)
        assert span_exporter.get_finished_spans() == ()

    def test_shutdown_ends_open_spans(self, tracer, span_exporter):
        handler = OpenTelemetryHandler(
            OpenTelemetryConfig(metrics_enabled=False), tracer=tracer
        )
        EventBus(handler.handle_event).emit(ObservabilityEventType.SESSION_START)

        handler.shutdown()

        assert len(span_exporter.get_finished_spans()) == 1


class TestSentryConfig:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("SENTRY_DSN", "https://key@sentry.example/1")
        monkeypatch.setenv("SENTRY_ENVIRONMENT", "staging")
        monkeypatch.delenv("SENTRY_RELEASE", raising=False)

        config = SentryConfig.from_env()

        assert config.dsn == "https://key@sentry.example/1"
        assert config.environment == "staging"
        assert config.release is None


class TestSentryHandler:
    @pytest.fixture
    def sentry_calls(self, monkeypatch):
        sentry_sdk = pytest.importorskip("sentry_sdk")
        calls: dict[str, list] = {"breadcrumbs": [], "messages": [], "init": []}

        monkeypatch.setattr(
            sentry_sdk, "add_breadcrumb", lambda **kw: calls["breadcrumbs"].append(kw)
        )
        monkeypatch.setattr(
            sentry_sdk,
            "capture_message",
            lambda message, level=None: calls["messages"].append((message, level)),
        )
        monkeypatch.setattr(sentry_sdk, "init", lambda **kw: calls["init"].append(kw))
        return calls

    def test_breadcrumbs_and_capture(self, sentry_calls):
        handler = SentryHandler()

        emit_failed_request(handler.handle_event)

        crumbs = [c["message"] for c in sentry_calls["breadcrumbs"]]
        assert crumbs == ["session.start", "retry.attempt"]
        assert sentry_calls["breadcrumbs"][1]["level"] == "warning"
        assert sentry_calls["messages"] == [
            ("Messages request failed: Overloaded", "error")
        ]
        assert sentry_calls["init"] == []

    def test_init_with_dsn(self, sentry_calls):
        handler = SentryHandler(
            SentryConfig(dsn="https://key@sentry.example/1", environment="test")
        )

        handler.handle_event(
            ObservabilityEvent(
                type=ObservabilityEventType.SESSION_START, ts=0.0, stream_id="s"
            )
        )
        handler.handle_event(
            ObservabilityEvent(
                type=ObservabilityEventType.SESSION_END, ts=0.0, stream_id="s"
            )
        )

        assert len(sentry_calls["init"]) == 1
        assert sentry_calls["init"][0]["environment"] == "test"

    def test_disabled(self, sentry_calls):
        handler = SentryHandler(SentryConfig(enabled=False))
        emit_failed_request(handler.handle_event)
        assert sentry_calls["breadcrumbs"] == []
        assert sentry_calls["messages"] == []
