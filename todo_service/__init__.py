"""Task management service with OpenTelemetry instrumentation."""

__version__ = "1.0.0"
