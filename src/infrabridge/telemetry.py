"""Optional OpenTelemetry spans for tool calls and backend operations.

Attribute keys are namespaced under ``infrabridge.`` and ``None`` values are
dropped before they reach the exporter. Without ``opentelemetry-api`` every
helper here is a no-op.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Generator, Mapping
from contextlib import contextmanager
from importlib import import_module
from typing import Any

logger = logging.getLogger("infrabridge.telemetry")

ATTRIBUTE_PREFIX = "infrabridge."

otel_trace: Any | None
try:
    otel_trace = import_module("opentelemetry.trace")
except Exception:
    otel_trace = None


def tracer() -> Any:
    """The ``infrabridge`` tracer, or ``None`` when OpenTelemetry is absent."""
    if otel_trace is None:
        return None
    return otel_trace.get_tracer("infrabridge")


def generate_request_id() -> str:
    return str(uuid.uuid4())


def span_attributes(values: Mapping[str, Any] | None) -> dict[str, Any]:
    if not values:
        return {}
    return {
        key if key.startswith(ATTRIBUTE_PREFIX) else f"{ATTRIBUTE_PREFIX}{key}": value
        for key, value in values.items()
        if value is not None
    }


def _open(name: str, attributes: Mapping[str, Any] | None) -> tuple[Any, Any] | None:
    try:
        current = tracer()
        if current is None:
            return None
        context = current.start_as_current_span(name, attributes=span_attributes(attributes))
        return context, context.__enter__()
    except Exception as exc:
        logger.debug("Tracing disabled for span %r: %s", name, exc)
        return None


def _close(context: Any, name: str, error: BaseException | None) -> None:
    try:
        if error is None:
            context.__exit__(None, None, None)
        else:
            context.__exit__(type(error), error, error.__traceback__)
    except Exception as exc:
        logger.debug("Could not close span %r: %s", name, exc)


@contextmanager
def trace_span(
    name: str,
    attributes: Mapping[str, Any] | None = None,
) -> Generator[Any, None, None]:
    """Run the block inside span ``name``.

    Args:
        name: Span name, e.g. ``handle_tool/query`` or ``process/ceph``.
        attributes: Initial attributes; keys are prefixed with ``infrabridge.``.

    Yields:
        The span, or ``None`` when tracing is unavailable. Tracing failures are
        logged at debug level; exceptions from the block propagate unchanged.
    """
    opened = _open(name, attributes)
    if opened is None:
        yield None
        return

    context, span = opened
    try:
        yield span
    except BaseException as exc:
        _close(context, name, exc)
        raise
    _close(context, name, None)


def annotate(span: Any, **values: Any) -> None:
    """Set attributes on ``span`` when there is one."""
    if span is None:
        return
    try:
        for key, value in span_attributes(values).items():
            span.set_attribute(key, value)
    except Exception as exc:
        logger.debug("Could not set span attributes: %s", exc)


__all__ = ["ATTRIBUTE_PREFIX", "annotate", "generate_request_id", "span_attributes", "trace_span", "tracer"]
