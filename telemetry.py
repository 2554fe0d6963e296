#!/usr/bin/env python3
"""
OpenTelemetry tracing for the aggregation pipeline.

Spans cover the pipeline entry points (aggregate, aggregate_many, batch runs,
individual fetches); aiohttp client calls and log records are instrumented so
trace ids line up with outgoing requests and log lines.

Environment variables:
  - OTEL_SERVICE_NAME (default: trend-aggregator)
  - OTEL_ENVIRONMENT (maps to deployment.environment)
  - TELEMETRY_CONSOLE=true to print finished spans to stdout
  - DISABLE_TELEMETRY=true to skip setup entirely
"""

from __future__ import annotations

import atexit
import inspect
import logging
import os
import threading
from functools import wraps
from typing import Any, Callable, Dict, Optional

from opentelemetry import trace
from opentelemetry.instrumentation.aiohttp_client import AioHttpClientInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.trace import Status, StatusCode

DEFAULT_SERVICE = "trend-aggregator"

_lock = threading.Lock()
_provider: Optional[TracerProvider] = None

_logger = logging.getLogger(__name__)


def _env_flag(name: str) -> bool:
    return os.environ.get(name, "false").lower() == "true"


def _build_provider(service_name: str) -> TracerProvider:
    """Reuse a provider installed by auto-instrumentation, or create our own."""
    existing = trace.get_tracer_provider()
    if isinstance(existing, TracerProvider):
        return existing

    attributes = {"service.name": service_name}
    environment = os.environ.get("OTEL_ENVIRONMENT")
    if environment:
        attributes["deployment.environment"] = environment
    provider = TracerProvider(resource=Resource.create(attributes))
    trace.set_tracer_provider(provider)
    return provider


def _instrument() -> None:
    for instrumentor in (AioHttpClientInstrumentor(), LoggingInstrumentor()):
        try:
            instrumentor.instrument()
        except Exception as e:
            _logger.debug("%s unavailable: %s", type(instrumentor).__name__, e)


def init_telemetry(service_name: Optional[str] = None) -> None:
    """Set up tracing once per process; later calls and DISABLE_TELEMETRY=true are no-ops."""
    global _provider
    if _provider is not None or _env_flag("DISABLE_TELEMETRY"):
        return
    with _lock:
        if _provider is not None:
            return
        service = service_name or os.environ.get("OTEL_SERVICE_NAME", DEFAULT_SERVICE)
        provider = _build_provider(service)

        if _env_flag("TELEMETRY_CONSOLE"):
            provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
            _logger.info("Tracing to console (service=%s)", service)
        else:
            _logger.debug("Tracing enabled without an exporter (service=%s)", service)

        _instrument()
        _provider = provider
        # shutdown() flushes pending spans from the batch processor
        atexit.register(provider.shutdown)


def get_tracer(name: str = DEFAULT_SERVICE):
    return trace.get_tracer(name)


def trace_span(
    span_name: Optional[str] = None,
    *,
    tracer_name: Optional[str] = None,
    static_attrs: Optional[Dict[str, Any]] = None,
    attr_from_args: Optional[Callable[..., Dict[str, Any]]] = None,
):
    """Run the decorated function (sync or async) inside a span.

    Args:
        span_name: Span name, defaults to ``module.function``
        tracer_name: Tracer to use, defaults to the first segment of the span name
        static_attrs: Attributes set on every span
        attr_from_args: Called with the function's arguments; returns extra attributes

    Exceptions are recorded on the span and re-raised unchanged.
    """

    def _decorator(func):
        name = span_name or f"{func.__module__}.{func.__name__}"
        tracer = get_tracer(tracer_name or name.split(".")[0] or DEFAULT_SERVICE)

        def _annotate(span, args, kwargs) -> None:
            attributes = dict(static_attrs or {})
            if attr_from_args is not None:
                try:
                    attributes.update(attr_from_args(*args, **kwargs) or {})
                except Exception as e:
                    # Attribute extraction must never break the traced call
                    _logger.debug("Span attributes for %s failed: %s", name, e)
            for key, value in attributes.items():
                span.set_attribute(key, value)

        def _fail(span, error: Exception) -> None:
            span.record_exception(error)
            span.set_status(Status(StatusCode.ERROR))

        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def _async_wrapper(*args, **kwargs):
                with tracer.start_as_current_span(name) as span:
                    _annotate(span, args, kwargs)
                    try:
                        return await func(*args, **kwargs)
                    except Exception as e:
                        _fail(span, e)
                        raise

            return _async_wrapper

        @wraps(func)
        def _wrapper(*args, **kwargs):
            with tracer.start_as_current_span(name) as span:
                _annotate(span, args, kwargs)
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    _fail(span, e)
                    raise

        return _wrapper

    return _decorator
