"""TelemetryService singleton for OpenTelemetry tracing.

Handles initialization and graceful shutdown of the tracer provider.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from book_tracker.telemetry.config import TelemetryConfig

if TYPE_CHECKING:
    from opentelemetry.trace import Tracer

logger = logging.getLogger(__name__)


class TelemetryService:
    """Singleton service for OpenTelemetry tracing.

    Example:
        >>> TelemetryService.get_instance().initialize(TelemetryConfig.from_env())
        >>> with TelemetryService.get_instance().tracer.start_as_current_span("op"):
        ...     pass
        >>> TelemetryService.get_instance().shutdown()
    """

    _instance: TelemetryService | None = None

    def __init__(self) -> None:
        self._initialized = False
        self._config: TelemetryConfig | None = None
        self._tracer_provider = None

    @classmethod
    def get_instance(cls) -> TelemetryService:
        """Get the singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def initialize(self, config: TelemetryConfig) -> None:
        """Initialize telemetry with configuration.

        Safe to call multiple times; subsequent calls are no-ops. Missing
        OpenTelemetry packages disable telemetry with a warning.
        """
        if self._initialized:
            logger.debug("Telemetry already initialized, skipping")
            return

        self._config = config

        if not config.enabled:
            logger.debug("Telemetry disabled")
            self._initialized = True
            return

        try:
            self._setup_tracing(config)
            logger.info(
                "Telemetry initialized: service=%s, exporter=%s",
                config.service_name,
                config.exporter_type.value,
            )
        except ImportError as e:
            logger.warning("OpenTelemetry dependencies not installed, telemetry disabled: %s", e)
            self._config = TelemetryConfig(enabled=False)
        self._initialized = True

    def _setup_tracing(self, config: TelemetryConfig) -> None:
        from opentelemetry import trace
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
        from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased

        from book_tracker.telemetry.exporters import create_span_exporter

        resource = Resource.create(
            {
                "service.name": config.service_name,
                "service.version": config.service_version,
            }
        )
        tracer_provider = TracerProvider(
            resource=resource,
            sampler=ParentBased(TraceIdRatioBased(config.sample_ratio)),
        )
        tracer_provider.add_span_processor(BatchSpanProcessor(create_span_exporter(config)))
        trace.set_tracer_provider(tracer_provider)
        self._tracer_provider = tracer_provider

    @property
    def tracer(self) -> Tracer:
        """Get a tracer instance."""
        from opentelemetry import trace

        if self._config is None:
            return trace.get_tracer(__name__)
        return trace.get_tracer(self._config.service_name, self._config.service_version)

    @property
    def is_enabled(self) -> bool:
        """True if telemetry is enabled and initialized."""
        return self._initialized and self._config is not None and self._config.enabled

    def shutdown(self) -> None:
        """Flush pending spans and shut down the tracer provider."""
        if self._tracer_provider is None:
            return
        try:
            self._tracer_provider.force_flush()
            self._tracer_provider.shutdown()
            logger.debug("Tracer provider shut down")
        except Exception as e:
            logger.warning("Error shutting down tracer provider: %s", e)
        self._tracer_provider = None

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance. Used by tests."""
        if cls._instance is not None:
            cls._instance.shutdown()
        cls._instance = None
