"""Telemetry context object handed to every instrumented component.

Components receive a ``Telemetry`` at construction time instead of reaching
for process-wide globals, so tests can substitute ``Telemetry.noop()`` or a
``Telemetry`` built on in-memory exporters.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Any

from opentelemetry import metrics, trace

from todo_service import __version__
from todo_service.infra.metrics.requests import RequestMetrics

if TYPE_CHECKING:
    from opentelemetry.metrics import Meter, MeterProvider
    from opentelemetry.trace import Tracer, TracerProvider

logger = logging.getLogger(__name__)

INSTRUMENTATION_NAME = "todo-app"


class TelemetryInitError(RuntimeError):
    """A telemetry pipeline could not be constructed; startup must abort."""


class TelemetryShutdownError(RuntimeError):
    """Flushing or closing a pipeline failed; carries the first error."""

    def __init__(self, pipeline: str, error: BaseException) -> None:
        super().__init__(f"failed to shut down {pipeline} pipeline: {error}")
        self.pipeline = pipeline
        self.error = error


class Telemetry:
    """Tracer, meter and logger providers plus the handles built from them.

    Attributes:
        tracer_provider: Provider the server, client and database spans use.
        meter_provider: Provider backing the request instruments.
        logger_provider: OpenTelemetry log pipeline, or None when logs are
            not exported.
        tracer: Tracer for manual spans.
        meter: Meter for manual instruments.
        request_metrics: Request count/duration instruments.
    """

    def __init__(
        self,
        tracer_provider: TracerProvider,
        meter_provider: MeterProvider,
        logger_provider: Any | None = None,
        *,
        shutdown_timeout: float = 30.0,
    ) -> None:
        self.tracer_provider = tracer_provider
        self.meter_provider = meter_provider
        self.logger_provider = logger_provider
        self.shutdown_timeout = shutdown_timeout

        self.tracer: Tracer = tracer_provider.get_tracer(INSTRUMENTATION_NAME, __version__)
        self.meter: Meter = meter_provider.get_meter(INSTRUMENTATION_NAME, __version__)
        self.request_metrics = RequestMetrics(self.meter)

        self._shutdown_lock = threading.Lock()
        self._is_shutdown = False

    @classmethod
    def noop(cls) -> Telemetry:
        """Telemetry that silently discards every span and measurement."""
        return cls(trace.NoOpTracerProvider(), metrics.NoOpMeterProvider())

    @property
    def is_shutdown(self) -> bool:
        return self._is_shutdown

    def pipelines(self) -> list[tuple[str, Any]]:
        """Providers in shutdown order: traces, metrics, logs."""
        return [
            ("traces", self.tracer_provider),
            ("metrics", self.meter_provider),
            ("logs", self.logger_provider),
        ]

    def shutdown(self, timeout: float | None = None) -> None:
        """Flush and close every pipeline within the grace period.

        Safe to call more than once; only the first call does any work.
        All pipelines are attempted even when one fails.

        Args:
            timeout: Grace period in seconds shared by all pipelines.
                Defaults to ``shutdown_timeout``.

        Raises:
            TelemetryShutdownError: Wrapping the first failure encountered.
        """
        with self._shutdown_lock:
            if self._is_shutdown:
                return
            self._is_shutdown = True

        deadline = time.monotonic() + (timeout if timeout is not None else self.shutdown_timeout)
        first_error: TelemetryShutdownError | None = None

        for name, provider in self.pipelines():
            if provider is None:
                continue
            remaining_millis = max(0, int((deadline - time.monotonic()) * 1000))
            try:
                force_flush = getattr(provider, "force_flush", None)
                if force_flush is not None and not force_flush(remaining_millis):
                    logger.warning(
                        "Telemetry flush timed out",
                        extra={"pipeline": name, "timeout_ms": remaining_millis},
                    )
                shutdown = getattr(provider, "shutdown", None)
                if shutdown is not None:
                    shutdown()
            except Exception as e:
                if first_error is None:
                    first_error = TelemetryShutdownError(name, e)
                logger.warning(
                    f"Failed to shut down {name} pipeline: {e}",
                    extra={"pipeline": name},
                )

        if first_error is not None:
            raise first_error
