"""OpenTelemetry bootstrap and span helpers.

setup_telemetry() builds the trace, metric and log pipelines in one go and
returns the ``Telemetry`` context object the rest of the service is wired
with. Exporters go to the console unless OTEL_EXPORTER_OTLP_ENDPOINT names
a collector.

The providers are also installed process-wide (unless told otherwise) so
that libraries calling ``trace.get_tracer`` join the same pipeline; service
code itself always goes through the ``Telemetry`` object it was given.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from opentelemetry import metrics, trace
from opentelemetry.propagate import set_global_textmap
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from todo_service.infra.tracing import exporters
from todo_service.infra.tracing.context import (
    INSTRUMENTATION_NAME,
    Telemetry,
    TelemetryInitError,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from fastapi import FastAPI

    from todo_service.core.settings.otel import OtelSettings

logger = logging.getLogger(__name__)


def _construct(component: str, factory: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """Run one construction step, naming the component if it fails."""
    try:
        return factory(*args, **kwargs)
    except Exception as e:
        msg = f"failed to create {component}: {e}"
        raise TelemetryInitError(msg) from e


def setup_telemetry(
    otel_settings: OtelSettings,
    *,
    environment: str = "unknown",
    install_global: bool = True,
) -> Telemetry:
    """Build exporters and providers for traces, metrics and logs.

    Either every pipeline is constructed or none is: when a step fails, the
    providers built so far are shut down and ``TelemetryInitError`` is
    raised naming the failing component. Callers treat that as fatal.

    Args:
        otel_settings: Export target and pipeline tuning.
        environment: deployment.environment resource attribute.
        install_global: Also register the providers process-wide.

    Returns:
        Telemetry bound to the new providers.

    Raises:
        TelemetryInitError: If any exporter or provider fails to construct.
    """
    target = otel_settings.exporter_otlp_endpoint if otel_settings.use_otlp else "console"
    exporter_kind = "OTLP" if otel_settings.use_otlp else "console"
    built: list[Any] = []

    try:
        resource = _construct(
            "resource", Resource.create, otel_settings.resource_attributes(environment),
        )

        # Traces
        span_exporter = _construct(
            f"{exporter_kind} trace exporter", exporters.create_span_exporter, otel_settings,
        )
        tracer_provider = _construct("tracer provider", TracerProvider, resource=resource)
        built.append(tracer_provider)
        span_processor = _construct("batch span processor", BatchSpanProcessor, span_exporter)
        tracer_provider.add_span_processor(span_processor)

        # Metrics
        metric_exporter = _construct(
            f"{exporter_kind} metric exporter", exporters.create_metric_exporter, otel_settings,
        )
        reader = _construct(
            "periodic metric reader",
            PeriodicExportingMetricReader,
            metric_exporter,
            export_interval_millis=otel_settings.metric_export_interval,
        )
        # The reader runs its own export thread until something shuts it down
        built.append(reader)
        meter_provider = _construct(
            "meter provider", MeterProvider, resource=resource, metric_readers=[reader],
        )
        built[-1] = meter_provider

        # Logs
        log_exporter = _construct(
            f"{exporter_kind} log exporter", exporters.create_log_exporter, otel_settings,
        )
        logger_provider = _construct("logger provider", _create_logger_provider, resource, log_exporter)
        built.append(logger_provider)
    except TelemetryInitError:
        for provider in reversed(built):
            try:
                provider.shutdown()
            except Exception as e:
                logger.warning(f"Failed to release partially built telemetry: {e}")
        raise

    if install_global:
        _install_global_providers(tracer_provider, meter_provider, logger_provider)

    logger.info(
        "OpenTelemetry configured",
        extra={
            "service": otel_settings.service_name,
            "exporter": exporter_kind,
            "target": target,
            "metric_export_interval_ms": otel_settings.metric_export_interval,
        },
    )

    return Telemetry(
        tracer_provider,
        meter_provider,
        logger_provider,
        shutdown_timeout=otel_settings.shutdown_timeout,
    )


def _create_logger_provider(resource: Resource, log_exporter: Any) -> Any:
    from opentelemetry.sdk._logs import LoggerProvider
    from opentelemetry.sdk._logs.export import BatchLogRecordProcessor

    logger_provider = LoggerProvider(resource=resource)
    logger_provider.add_log_record_processor(BatchLogRecordProcessor(log_exporter))
    return logger_provider


def _install_global_providers(
    tracer_provider: TracerProvider,
    meter_provider: MeterProvider,
    logger_provider: Any,
) -> None:
    from opentelemetry._logs import set_logger_provider

    trace.set_tracer_provider(tracer_provider)
    metrics.set_meter_provider(meter_provider)
    set_logger_provider(logger_provider)
    set_global_textmap(TraceContextTextMapPropagator())


def instrument_app(app: FastAPI, telemetry: Telemetry, *, enabled: bool = True) -> None:
    """Instrument FastAPI application for tracing.

    Every inbound request gets one server span, continued from an incoming
    ``traceparent`` header when present. Call after creating the app and
    before serving requests.

    Args:
        app: FastAPI application instance.
        telemetry: Providers the server spans and HTTP metrics go to.
        enabled: Settings toggle (OTEL_INSTRUMENT_FASTAPI).
    """
    if not enabled:
        return

    from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

    FastAPIInstrumentor.instrument_app(
        app,
        tracer_provider=telemetry.tracer_provider,
        meter_provider=telemetry.meter_provider,
    )
    logger.debug("FastAPI instrumentation enabled")


def get_tracer(name: str = INSTRUMENTATION_NAME) -> trace.Tracer:
    """Get a tracer from the process-wide provider.

    Before setup_telemetry() has installed a provider this returns a no-op
    tracer: spans are discarded, never an error.
    """
    return trace.get_tracer(name)


def get_meter(name: str = INSTRUMENTATION_NAME) -> metrics.Meter:
    """Get a meter from the process-wide provider (no-op before setup)."""
    return metrics.get_meter(name)


def add_span_attributes(attributes: dict[str, Any]) -> None:
    """Add attributes to the current span.

    Example:
        add_span_attributes({"operation": "create_task", "task.title": title})
    """
    span = trace.get_current_span()
    if span.is_recording():
        for key, value in attributes.items():
            span.set_attribute(key, value)


def add_span_event(name: str, attributes: dict[str, Any] | None = None) -> None:
    """Add an event to the current span."""
    span = trace.get_current_span()
    if span.is_recording():
        span.add_event(name, attributes or {})


def record_exception(exception: BaseException) -> None:
    """Record an exception in the current span and mark it as failed.

    Example:
        try:
            await risky_operation()
        except Exception as e:
            record_exception(e)
            raise
    """
    span = trace.get_current_span()
    if span.is_recording():
        span.record_exception(exception)
        span.set_status(trace.Status(trace.StatusCode.ERROR, str(exception)))
