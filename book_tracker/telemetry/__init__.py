"""OpenTelemetry integration for book-tracker.

Traces CLI commands and registry operations. Enable with the --telemetry
flag or OTEL_ENABLED=true. Requires the 'telemetry' extra.
"""

from book_tracker.telemetry.config import ExporterType, TelemetryConfig
from book_tracker.telemetry.decorators import trace_span, traced
from book_tracker.telemetry.service import TelemetryService

__all__ = [
    "ExporterType",
    "TelemetryConfig",
    "TelemetryService",
    "traced",
    "trace_span",
]
