"""Optional OpenTelemetry spans for pipeline steps.

Tracing is off unless ``REDEPLOY_OTEL_ENABLED`` is set and the ``otel``
extra is installed. Every helper here is a no-op while tracing is off, so
the runner calls them unconditionally:

    setup_telemetry(settings)
    with traced_step("build", app="svc", run_id=run_id):
        ...
        record_step_status("succeeded")
    shutdown_telemetry()
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from opentelemetry.trace import Span, Tracer

    from ..config import RedeploySettings

logger = logging.getLogger(__name__)

SPAN_PREFIX = "redeploy"
INSTALL_HINT = "pip install 'redeploy[otel]'"

_tracer: Tracer | None = None
_provider = None


def _span_exporter(endpoint: str | None, protocol: str):
    from opentelemetry.sdk.trace.export import ConsoleSpanExporter

    if not endpoint:
        return ConsoleSpanExporter()

    try:
        if protocol == "http":
            from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
                OTLPSpanExporter,
            )
        else:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                OTLPSpanExporter,
            )
    except ImportError:
        logger.warning(
            f"OTLP {protocol} exporter not installed, printing spans instead. "
            f"Install with: {INSTALL_HINT}"
        )
        return ConsoleSpanExporter()

    logger.info(f"Exporting spans to {endpoint} over {protocol}")
    return OTLPSpanExporter(endpoint=endpoint)


def setup_telemetry(settings: RedeploySettings) -> Tracer | None:
    """Start tracing according to the ``otel_*`` settings.

    Calling it again after a successful setup returns the existing tracer.

    Returns:
        The tracer, or None when tracing is disabled or unavailable.
    """
    global _tracer, _provider

    if not settings.otel_enabled:
        logger.debug("Tracing disabled")
        return None
    if _tracer is not None:
        return _tracer

    try:
        from opentelemetry import trace
        from opentelemetry.sdk.resources import SERVICE_NAME, Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError:
        logger.warning(f"OpenTelemetry not installed. Install with: {INSTALL_HINT}")
        return None

    provider = TracerProvider(
        resource=Resource.create({SERVICE_NAME: settings.otel_service_name})
    )
    provider.add_span_processor(
        BatchSpanProcessor(
            _span_exporter(settings.otel_endpoint, settings.otel_protocol)
        )
    )
    trace.set_tracer_provider(provider)

    _provider = provider
    _tracer = trace.get_tracer(SPAN_PREFIX)
    logger.info(f"Tracing enabled for {settings.otel_service_name}")
    return _tracer


@contextmanager
def traced_step(step: str, **attributes: str) -> Iterator[Span | None]:
    """Wrap one pipeline step in a ``redeploy.<step>`` span.

    Keyword arguments become ``redeploy.<key>`` span attributes. An
    exception leaving the block is recorded on the span by the SDK.

    Yields:
        The span, or None when tracing is off.
    """
    if _tracer is None:
        yield None
        return

    with _tracer.start_as_current_span(f"{SPAN_PREFIX}.{step}") as span:
        span.set_attribute(f"{SPAN_PREFIX}.step", step)
        for key, value in attributes.items():
            span.set_attribute(f"{SPAN_PREFIX}.{key}", value)
        yield span


def record_step_status(status: str) -> None:
    """Tag the current step span with the step's outcome."""
    if _tracer is None:
        return

    from opentelemetry import trace

    trace.get_current_span().set_attribute(f"{SPAN_PREFIX}.step.status", status)


def shutdown_telemetry() -> None:
    """Flush pending spans and stop tracing."""
    global _tracer, _provider

    provider, _provider, _tracer = _provider, None, None
    if provider is None:
        return

    try:
        provider.shutdown()
    except Exception as e:
        logger.error(f"Error while flushing spans: {e}")
    else:
        logger.debug("Tracing shut down")
