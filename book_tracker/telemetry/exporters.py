"""Span exporter factory for OpenTelemetry.

Supports console (development) and OTLP (collector) exporters.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from book_tracker.telemetry.config import ExporterType, TelemetryConfig

if TYPE_CHECKING:
    from opentelemetry.sdk.trace.export import SpanExporter


def create_span_exporter(config: TelemetryConfig) -> SpanExporter:
    """Create a span exporter based on configuration.

    Raises:
        ImportError: If required exporter dependencies are not installed.
    """
    if config.exporter_type == ExporterType.OTLP:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
            OTLPSpanExporter,
        )

        return OTLPSpanExporter(
            endpoint=config.otlp_endpoint,
            insecure=config.otlp_insecure,
        )

    from opentelemetry.sdk.trace.export import ConsoleSpanExporter

    return ConsoleSpanExporter()
