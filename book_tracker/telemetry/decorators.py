"""Tracing decorators and context managers.

Provides @traced for sync and async functions and the trace_span
context manager.
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Generator
from contextlib import contextmanager
from functools import wraps
from typing import TYPE_CHECKING, Any, TypeVar

from book_tracker.telemetry.service import TelemetryService

if TYPE_CHECKING:
    from opentelemetry.trace import Span

F = TypeVar("F", bound=Callable[..., Any])


def traced(
    name: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> Callable[[F], F]:
    """Decorator to trace function execution.

    Creates a span around the decorated function, or around the awaited
    coroutine for `async def` functions. Exceptions are recorded on the span
    and re-raised.

    Args:
        name: Span name. Defaults to the function's qualified name.
        attributes: Additional span attributes.

    Example:
        >>> @traced("registry.create")
        ... async def create(self, draft): ...
    """

    def decorator(func: F) -> F:
        span_name = name or func.__qualname__

        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                with trace_span(span_name, attributes):
                    return await func(*args, **kwargs)

            return async_wrapper  # type: ignore[return-value]

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with trace_span(span_name, attributes):
                return func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator


@contextmanager
def trace_span(
    name: str,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span | None]:
    """Context manager for tracing code blocks.

    Yields:
        The created span, or None if telemetry is disabled.

    Example:
        >>> with trace_span("store.save", {"books.count": 12}) as span:
        ...     if span:
        ...         span.set_attribute("store.key", "books")
    """
    service = TelemetryService.get_instance()

    if not service.is_enabled:
        yield None
        return

    with service.tracer.start_as_current_span(name, attributes=attributes) as span:
        try:
            yield span
        except Exception as e:
            _record_exception(span, e)
            raise


def _record_exception(span: Span, exception: Exception) -> None:
    """Record exception on span and set error status."""
    from opentelemetry.trace import Status, StatusCode

    span.record_exception(exception)
    span.set_status(Status(StatusCode.ERROR, str(exception)))
