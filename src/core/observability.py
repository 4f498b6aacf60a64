"""Observability configuration using OpenTelemetry with pluggable exporters.

Tracing is off by default. When enabled, spans go either through Loguru
(``console``) or to an OTLP collector (``otlp``). Requests carrying an
``X-Request-ID`` header get it attached to their server span, and errors
seen by the error classifier are recorded on the active span.
"""

from __future__ import annotations

from contextlib import contextmanager
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Final

from loguru import logger
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.trace import Status, StatusCode

from src.core.context import RequestContext

if TYPE_CHECKING:
    from collections.abc import Generator, Sequence

    from fastapi import FastAPI
    from sqlalchemy.ext.asyncio import AsyncEngine

    from src.core.config import Settings

SERVICE_NAME_KEY: Final[str] = "service.name"
SERVICE_VERSION_KEY: Final[str] = "service.version"
ENVIRONMENT_KEY: Final[str] = "deployment.environment"

_log = logger.bind(context="Tracing")


class LoguruSpanExporter(SpanExporter):
    """Span exporter that writes finished spans as Loguru debug records."""

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        """Export spans through Loguru instead of stdout."""
        for span in spans:
            span_context = span.get_span_context()
            if not span_context:
                continue

            # ASGI send/receive sub-spans
            if span.name.endswith((" http send", " http receive")):
                continue

            duration_ms = None
            if span.end_time and span.start_time:
                duration_ms = (span.end_time - span.start_time) // 1_000_000

            _log.bind(
                trace_id=f"0x{span_context.trace_id:032x}",
                span_id=f"0x{span_context.span_id:016x}",
                span_name=span.name,
                span_kind=span.kind.name,
                duration_ms=duration_ms,
                attributes=dict(span.attributes or {}),
                status=span.status.status_code.name,
            ).debug("Trace span completed: {}", span.name)

        return SpanExportResult.SUCCESS


def get_span_exporter(settings: Settings) -> SpanExporter | None:
    """Get the span exporter the configuration asks for.

    Args:
        settings: Application settings.

    Returns:
        SpanExporter | None: Configured exporter or None if disabled.
    """
    config = settings.observability_config

    if config.exporter_type == "console":
        _log.info("Using Loguru span exporter")
        return LoguruSpanExporter()

    if config.exporter_type == "otlp":
        endpoint = config.exporter_endpoint or "http://localhost:4317"
        _log.info("Using OTLP exporter at {}", endpoint)
        return OTLPSpanExporter(
            endpoint=endpoint,
            insecure=settings.environment == "development",
        )

    _log.info("Tracing explicitly disabled")
    return None


@lru_cache(maxsize=1)
def get_tracer(name: str) -> trace.Tracer:
    """Get a tracer instance for the given component."""
    return trace.get_tracer(name)


def setup_tracing(settings: Settings) -> None:
    """Configure the global tracer provider.

    Args:
        settings: Application settings.
    """
    if not settings.observability_config.enable_tracing:
        _log.debug("Tracing disabled by configuration")
        return

    resource = Resource.create(
        {
            SERVICE_NAME_KEY: settings.app_name,
            SERVICE_VERSION_KEY: settings.app_version,
            ENVIRONMENT_KEY: settings.environment,
        }
    )

    tracer_provider = TracerProvider(
        resource=resource,
        sampler=TraceIdRatioBased(settings.observability_config.trace_sample_rate),
    )

    exporter = get_span_exporter(settings)
    if exporter:
        tracer_provider.add_span_processor(BatchSpanProcessor(exporter))

    trace.set_tracer_provider(tracer_provider)

    _log.info(
        "Tracing configured",
        exporter_type=settings.observability_config.exporter_type,
        sample_rate=settings.observability_config.trace_sample_rate,
    )


def instrument_app(app: FastAPI, settings: Settings) -> None:
    """Instrument a FastAPI application for tracing.

    Args:
        app: FastAPI application to instrument.
        settings: Application settings.
    """
    if not settings.observability_config.enable_tracing:
        return

    FastAPIInstrumentor.instrument_app(
        app,
        excluded_urls="/health",
        server_request_hook=add_request_id_to_span,
    )
    _log.info("Application instrumented for tracing")


def instrument_database(engine: AsyncEngine, settings: Settings) -> None:
    """Trace the queries of an engine.

    Args:
        engine: Engine whose queries get spans.
        settings: Application settings.
    """
    if not settings.observability_config.enable_tracing:
        return

    SQLAlchemyInstrumentor().instrument(
        engine=engine.sync_engine,
        enable_commenter=True,
        commenter_options={"opentelemetry_values": True},
    )
    _log.info("Database engine instrumented for tracing")


def add_request_id_to_span(span: trace.Span, scope: dict[str, Any]) -> None:
    """Tag the server span with the inbound ``X-Request-ID``, if any.

    Used as the ``server_request_hook`` of the FastAPI instrumentation.
    """
    if not span or not span.is_recording():
        return

    if correlation_id := RequestContext.get_correlation_id():
        span.set_attribute("request_id", correlation_id)
        return

    headers = dict(scope.get("headers", []))
    if request_id := headers.get(b"x-request-id", b"").decode("latin-1"):
        span.set_attribute("request_id", request_id)


def record_exception_on_span(exc: BaseException, status_code: int) -> None:
    """Record an error on the active span.

    Args:
        exc: The error being answered.
        status_code: Status the client is about to receive.
    """
    span = trace.get_current_span()
    if not span.is_recording():
        return

    span.record_exception(exc)
    span.set_attribute("http.response.status_code", status_code)
    if status_code >= 500:  # noqa: PLR2004
        span.set_status(Status(StatusCode.ERROR, type(exc).__name__))


@contextmanager
def trace_operation(
    name: str, **attributes: str | int | float | bool
) -> Generator[trace.Span]:
    """Context manager for tracing a custom operation.

    Args:
        name: Operation name for the span.
        **attributes: Initial attributes for the span.

    Yields:
        Generator[trace.Span]: The created span for the operation.

    Example:
        >>> with trace_operation("document.find", collection="person"):
        >>>     documents = await repository.find()
    """
    tracer = get_tracer(__name__)
    with tracer.start_as_current_span(name) as span:
        for key, value in attributes.items():
            span.set_attribute(key, value)
        yield span
