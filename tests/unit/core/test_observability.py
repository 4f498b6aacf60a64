"""Unit tests for OpenTelemetry tracing setup."""

from typing import Any

import pytest
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor, SpanExportResult
from opentelemetry.trace import StatusCode
from pytest_mock import MockerFixture

from src.core.config import ObservabilityConfig, Settings
from src.core.context import RequestContext
from src.core.observability import (
    LoguruSpanExporter,
    add_request_id_to_span,
    get_span_exporter,
    instrument_app,
    instrument_database,
    record_exception_on_span,
    setup_tracing,
)


def _settings(**observability: Any) -> Settings:
    return Settings(observability_config=ObservabilityConfig(**observability))


@pytest.fixture
def tracer() -> Any:
    """A tracer whose spans are exported through Loguru synchronously."""
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(LoguruSpanExporter()))
    return provider.get_tracer("civitas.tests")


@pytest.mark.unit
class TestExporters:
    """Test exporter selection and the Loguru exporter."""

    def test_exporter_selection(self) -> None:
        """Each exporter type maps to its exporter."""
        assert isinstance(
            get_span_exporter(_settings(exporter_type="console")), LoguruSpanExporter
        )
        assert isinstance(
            get_span_exporter(_settings(exporter_type="otlp")), OTLPSpanExporter
        )
        assert get_span_exporter(_settings(exporter_type="none")) is None

    def test_loguru_exporter_logs_spans(
        self, tracer: Any, log_records: list[dict[str, Any]]
    ) -> None:
        """Finished spans become debug records."""
        with tracer.start_as_current_span("document.find") as span:
            span.set_attribute("collection", "person")

        record = log_records[-1]
        assert record["message"] == "Trace span completed: document.find"
        assert record["extra"]["attributes"] == {"collection": "person"}
        assert record["extra"]["trace_id"].startswith("0x")

    def test_loguru_exporter_skips_asgi_subspans(
        self, tracer: Any, log_records: list[dict[str, Any]]
    ) -> None:
        """ASGI send/receive spans are not logged."""
        with tracer.start_as_current_span("GET /person http send") as span:
            pass

        assert LoguruSpanExporter().export([span]) is SpanExportResult.SUCCESS
        assert not [r for r in log_records if "http send" in r["message"]]


@pytest.mark.unit
class TestSpanHelpers:
    """Test span tagging and error recording."""

    def test_record_exception_marks_server_errors(self, tracer: Any) -> None:
        """5xx answers mark the span as failed."""
        with tracer.start_as_current_span("request") as span:
            record_exception_on_span(RuntimeError("boom"), 500)

        assert span.status.status_code is StatusCode.ERROR
        assert span.attributes["http.response.status_code"] == 500
        assert span.events[0].name == "exception"

    def test_record_exception_leaves_client_errors_unset(self, tracer: Any) -> None:
        """4xx answers are recorded without failing the span."""
        with tracer.start_as_current_span("request") as span:
            record_exception_on_span(ValueError("bad"), 400)

        assert span.status.status_code is StatusCode.UNSET

    def test_record_exception_without_span(self) -> None:
        """Nothing happens outside a recording span."""
        record_exception_on_span(RuntimeError("boom"), 500)

    def test_request_id_from_header(self, tracer: Any) -> None:
        """The inbound header is attached to the server span."""
        with tracer.start_as_current_span("request") as span:
            add_request_id_to_span(span, {"headers": [(b"x-request-id", b"req-7")]})

        assert span.attributes["request_id"] == "req-7"

    def test_request_id_from_context(self, tracer: Any, mocker: MockerFixture) -> None:
        """The active request context takes precedence."""
        token = RequestContext(
            logger=mocker.MagicMock(), correlation_id="ctx-1"
        ).activate()
        try:
            with tracer.start_as_current_span("request") as span:
                add_request_id_to_span(span, {"headers": []})
        finally:
            RequestContext.deactivate(token)

        assert span.attributes["request_id"] == "ctx-1"


@pytest.mark.unit
class TestSetup:
    """Test that disabled tracing does nothing."""

    def test_disabled_tracing(self, mocker: MockerFixture) -> None:
        """Neither provider nor instrumentation is installed."""
        set_provider = mocker.patch("src.core.observability.trace.set_tracer_provider")
        instrument = mocker.patch(
            "src.core.observability.FastAPIInstrumentor.instrument_app"
        )
        settings = _settings(enable_tracing=False)

        setup_tracing(settings)
        instrument_app(mocker.MagicMock(), settings)

        set_provider.assert_not_called()
        instrument.assert_not_called()

    def test_database_instrumentation(self, mocker: MockerFixture) -> None:
        """Engine queries are traced only when tracing is enabled."""
        instrumentor = mocker.patch("src.core.observability.SQLAlchemyInstrumentor")
        engine = mocker.MagicMock()

        instrument_database(engine, _settings(enable_tracing=False))
        instrumentor.assert_not_called()

        instrument_database(engine, _settings(enable_tracing=True))
        instrument = instrumentor.return_value.instrument
        assert instrument.call_args.kwargs["engine"] is engine.sync_engine

    def test_enabled_tracing(self, mocker: MockerFixture) -> None:
        """A sampled provider is installed when enabled."""
        set_provider = mocker.patch("src.core.observability.trace.set_tracer_provider")

        setup_tracing(_settings(enable_tracing=True, exporter_type="none"))

        provider = set_provider.call_args.args[0]
        assert isinstance(provider, TracerProvider)
