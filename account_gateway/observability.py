"""
Observability and monitoring setup for the account gateway.
"""

import asyncio
from typing import Optional, Dict, Any, Callable
from functools import wraps

import structlog
from opentelemetry import trace, metrics
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, PeriodicExportingMetricReader
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor

logger = structlog.get_logger()

# Global tracer and meter
tracer: Optional[trace.Tracer] = None
meter: Optional[metrics.Meter] = None

# Metrics instruments
registration_counter: Optional[metrics.Counter] = None
registration_duration: Optional[metrics.Histogram] = None
login_counter: Optional[metrics.Counter] = None
upstream_retry_counter: Optional[metrics.Counter] = None
frontend_event_counter: Optional[metrics.Counter] = None
frontend_metric_histogram: Optional[metrics.Histogram] = None


def setup_observability(
    service_name: str = "account-gateway",
    service_version: str = "1.0.0",
    otlp_endpoint: Optional[str] = None,
    enable_console_export: bool = False
) -> None:
    """
    Set up OpenTelemetry tracing and metrics.

    Args:
        service_name: Name of the service for tracing
        service_version: Version of the service
        otlp_endpoint: OTLP endpoint for trace/metric export
        enable_console_export: Whether to enable console export for development
    """
    global tracer, meter
    global registration_counter, registration_duration, login_counter, upstream_retry_counter
    global frontend_event_counter, frontend_metric_histogram

    logger.info(
        "Setting up observability",
        service_name=service_name,
        service_version=service_version,
        otlp_endpoint=otlp_endpoint
    )

    resource = Resource.create({
        "service.name": service_name,
        "service.version": service_version,
    })

    # Set up tracing
    trace_provider = TracerProvider(resource=resource)

    if otlp_endpoint:
        trace_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint)))

    if enable_console_export:
        trace_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(trace_provider)
    tracer = trace.get_tracer(__name__)

    # Set up metrics
    metric_readers = []

    if otlp_endpoint:
        metric_readers.append(
            PeriodicExportingMetricReader(
                exporter=OTLPMetricExporter(endpoint=otlp_endpoint),
                export_interval_millis=30000  # 30 seconds
            )
        )

    if enable_console_export:
        metric_readers.append(
            PeriodicExportingMetricReader(
                exporter=ConsoleMetricExporter(),
                export_interval_millis=60000  # 60 seconds
            )
        )

    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=metric_readers))
    meter = metrics.get_meter(__name__)

    registration_counter = meter.create_counter(
        name="registrations_total",
        description="Registrations by outcome",
        unit="1"
    )

    registration_duration = meter.create_histogram(
        name="registration_duration_seconds",
        description="End-to-end registration duration in seconds",
        unit="s"
    )

    login_counter = meter.create_counter(
        name="logins_total",
        description="Login pass-through calls by result",
        unit="1"
    )

    upstream_retry_counter = meter.create_counter(
        name="upstream_retries_total",
        description="Retries issued against Supabase, by stage",
        unit="1"
    )

    frontend_event_counter = meter.create_counter(
        name="frontend_events_total",
        description="Events reported by the web frontend",
        unit="1"
    )

    frontend_metric_histogram = meter.create_histogram(
        name="frontend_metric_value",
        description="Numeric metric reported by the web frontend",
        unit="ms"
    )

    logger.info("Observability setup completed")


def instrument_fastapi_app(app) -> None:
    """
    Instrument FastAPI application with OpenTelemetry.

    Args:
        app: FastAPI application instance
    """
    if tracer is None:
        logger.warning("Tracer not initialized, call setup_observability() first")
        return

    FastAPIInstrumentor.instrument_app(app)
    HTTPXClientInstrumentor().instrument()
    LoggingInstrumentor().instrument(set_logging_format=True)

    logger.info("FastAPI application instrumented with OpenTelemetry")


def trace_function(operation_name: Optional[str] = None):
    """
    Decorator to trace function execution.

    Args:
        operation_name: Optional custom operation name for the span
    """
    def decorator(func: Callable) -> Callable:
        def _start(span) -> None:
            span.set_attribute("function.name", func.__name__)
            span.set_attribute("function.module", func.__module__)

        def _fail(span, e: Exception) -> None:
            span.record_exception(e)
            span.set_attribute("success", False)
            span.set_attribute("error.type", type(e).__name__)
            span.set_attribute("error.message", str(e))

        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            if tracer is None:
                return await func(*args, **kwargs)

            with tracer.start_as_current_span(operation_name or f"{func.__module__}.{func.__name__}") as span:
                _start(span)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _fail(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            if tracer is None:
                return func(*args, **kwargs)

            with tracer.start_as_current_span(operation_name or f"{func.__module__}.{func.__name__}") as span:
                _start(span)
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    _fail(span, e)
                    raise
                span.set_attribute("success", True)
                return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


def record_registration_metrics(outcome: str, processing_time: float) -> None:
    """
    Record metrics for a finished registration.

    Args:
        outcome: ``success``, ``pending`` or ``failure``
        processing_time: Time taken in seconds
    """
    if registration_counter is None or registration_duration is None:
        return

    attributes = {"operation": "registration", "outcome": outcome}
    registration_counter.add(1, attributes)
    registration_duration.record(processing_time, attributes)


def record_login_metrics(success: bool) -> None:
    if login_counter is None:
        return
    login_counter.add(1, {"success": str(success).lower()})


def record_upstream_retry(stage: str) -> None:
    """Count one retry of ``stage`` (``visibility``, ``upsert``, ``login``)."""
    if upstream_retry_counter is None:
        return
    upstream_retry_counter.add(1, {"stage": stage})


def record_frontend_metric(metric: str, value: float, tags: Dict[str, str]) -> None:
    """
    Record a metric sample sent by the frontend.

    Args:
        metric: Validated metric name
        value: Non-negative finite value
        tags: Sanitized ``path`` and ``source`` tags
    """
    if frontend_event_counter is None or frontend_metric_histogram is None:
        return

    attributes = {"metric": metric, **tags}
    frontend_event_counter.add(1, attributes)
    frontend_metric_histogram.record(value, attributes)


def get_trace_context() -> Dict[str, Any]:
    """
    Get current trace context information.

    Returns:
        Dict with trace ID and span ID if available
    """
    current_span = trace.get_current_span()
    if current_span is None or not current_span.is_recording():
        return {}

    span_context = current_span.get_span_context()
    return {
        "trace_id": f"{span_context.trace_id:032x}",
        "span_id": f"{span_context.span_id:016x}",
    }
