"""Telemetry settings for book-tracker.

Tracing is off unless OTEL_ENABLED (or --telemetry) turns it on. The
remaining OTEL_* variables choose where spans go and how many are kept.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum

from book_tracker import __version__

SERVICE_NAME = "book-tracker"
DEFAULT_OTLP_ENDPOINT = "http://localhost:4317"


class ExporterType(str, Enum):
    """Where finished spans are sent."""

    CONSOLE = "console"
    OTLP = "otlp"


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def _env_ratio(name: str, default: float) -> float:
    """Read a sampling ratio, clamped to 0..1. Unparseable values use the default."""
    try:
        ratio = float(os.environ[name])
    except (KeyError, ValueError):
        return default
    return min(max(ratio, 0.0), 1.0)


@dataclass
class TelemetryConfig:
    """Tracing settings.

    Attributes:
        enabled: Trace registry operations and CLI commands.
        service_name: service.name resource attribute.
        service_version: service.version resource attribute.
        exporter_type: Console for local debugging, OTLP for a collector.
        otlp_endpoint: Collector address when exporting over OTLP.
        otlp_insecure: Skip TLS towards the collector.
        sample_ratio: Fraction of traces kept (1.0 keeps every command).
    """

    enabled: bool = False
    service_name: str = SERVICE_NAME
    service_version: str = field(default_factory=lambda: __version__)
    exporter_type: ExporterType = ExporterType.CONSOLE
    otlp_endpoint: str = DEFAULT_OTLP_ENDPOINT
    otlp_insecure: bool = True
    sample_ratio: float = 1.0

    @classmethod
    def from_env(cls) -> TelemetryConfig:
        """Build the settings from OTEL_* environment variables.

        Environment Variables:
            OTEL_ENABLED: true/1/yes/on to trace (default: off)
            OTEL_SERVICE_NAME: default book-tracker
            OTEL_EXPORTER_TYPE: console or otlp; anything else means console
            OTEL_EXPORTER_OTLP_ENDPOINT: default http://localhost:4317
            OTEL_EXPORTER_OTLP_INSECURE: default true
            OTEL_TRACES_SAMPLER_ARG: ratio of traces kept, 0..1 (default 1)
        """
        exporter_name = os.environ.get("OTEL_EXPORTER_TYPE", "").strip().lower()
        exporter_type = (
            ExporterType(exporter_name)
            if exporter_name in {e.value for e in ExporterType}
            else ExporterType.CONSOLE
        )

        return cls(
            enabled=_env_flag("OTEL_ENABLED", False),
            service_name=os.environ.get("OTEL_SERVICE_NAME", SERVICE_NAME),
            exporter_type=exporter_type,
            otlp_endpoint=os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT", DEFAULT_OTLP_ENDPOINT),
            otlp_insecure=_env_flag("OTEL_EXPORTER_OTLP_INSECURE", True),
            sample_ratio=_env_ratio("OTEL_TRACES_SAMPLER_ARG", 1.0),
        )
