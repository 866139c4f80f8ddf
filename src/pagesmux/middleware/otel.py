"""OpenTelemetry tracing and metrics middleware.

Creates HTTP server spans and metrics with semantic conventions for each request.

Install with: uv add "pagesmux[otel]"
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

if TYPE_CHECKING:
    from pagesmux.context import EventContext, Handler
    from pagesmux.http import Response

try:
    from opentelemetry import metrics, trace
    from opentelemetry.propagate import extract
    from opentelemetry.trace import (
        SpanKind,
        StatusCode,
        TracerProvider,
    )
except ImportError as e:
    msg = (
        "OpenTelemetry middleware requires the 'otel' extra. "
        "Install with: uv add 'pagesmux[otel]'"
    )
    raise ImportError(msg) from e

from pagesmux.dispatch import http_route, path_params

_DURATION_BUCKETS = (
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.075,
    0.1,
    0.25,
    0.5,
    0.75,
    1.0,
    2.5,
    5.0,
    7.5,
    10.0,
)


def otel(
    *,
    tracer_provider: TracerProvider | None = None,
    meter_provider: metrics.MeterProvider | None = None,
) -> Handler:
    """Create OpenTelemetry tracing and metrics middleware.

    Creates a server span and metrics with HTTP semantic conventions for each
    request that reaches it. Register it ahead of other middleware so the span
    covers the whole chain.

    Extracts trace context from incoming request headers (e.g. ``traceparent``)
    for distributed tracing. Only depends on ``opentelemetry-api``; users bring
    their own SDK and exporters.

    Metrics emitted:
        - ``http.server.request.duration`` (histogram, seconds)
        - ``http.server.active_requests`` (up-down counter)

    Args:
        tracer_provider: Optional TracerProvider. If None, uses the global provider.
        meter_provider: Optional MeterProvider. If None, uses the global provider.

    Returns:
        Handler that wraps the rest of the chain with tracing and metrics.

    Example:
        router.use("/", otel())

        # With custom providers
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.metrics import MeterProvider
        router.use("/", otel(
            tracer_provider=TracerProvider(),
            meter_provider=MeterProvider(),
        ))
    """
    tracer = trace.get_tracer(
        "pagesmux",
        tracer_provider=tracer_provider,
    )
    meter = metrics.get_meter(
        "pagesmux",
        meter_provider=meter_provider,
    )
    duration_histogram = meter.create_histogram(
        "http.server.request.duration",
        unit="s",
        description="Duration of HTTP server requests.",
        explicit_bucket_boundaries_advisory=_DURATION_BUCKETS,
    )
    active_requests_counter = meter.create_up_down_counter(
        "http.server.active_requests",
        unit="{request}",
        description="Number of active HTTP server requests.",
    )

    async def traced_handler(ctx: EventContext) -> Response:
        request = ctx.request
        url = urlsplit(request.url)

        # Extract propagated context from request headers
        parent = extract(request.headers)

        # Read http.route from ContextVar (set by Router before the chain runs)
        route = http_route.get("")

        # Build span name: "METHOD /route" for matched, placeholder for unmatched
        method = request.method
        span_name = f"{method} {route}" if route else method

        # Span attributes (stable HTTP semantic conventions)
        attributes: dict[str, str | int | list[str]] = {
            "http.request.method": method,
            "url.path": request.path,
        }
        if url.scheme:
            attributes["url.scheme"] = url.scheme
        if url.hostname:
            attributes["server.address"] = url.hostname
        if route:
            attributes["http.route"] = route
        if url.query:
            attributes["url.query"] = url.query
        user_agent = request.headers.get("user-agent")
        if user_agent is not None:
            attributes["user_agent.original"] = user_agent
        # below isn't part of semantic conventions but having path params is useful
        params = path_params.get({})
        for key, value in params.items():
            attributes[f"http.route.param.{key}"] = value

        # Metric attributes (required + conditionally required by semantic conventions)
        active_attrs: dict[str, str | int] = {"http.request.method": method}
        if url.scheme:
            active_attrs["url.scheme"] = url.scheme
        if route:
            active_attrs["http.route"] = route

        active_requests_counter.add(1, active_attrs)
        start = time.perf_counter()

        with tracer.start_as_current_span(
            span_name,
            context=parent,
            kind=SpanKind.SERVER,
            attributes=attributes,
            record_exception=True,
            set_status_on_exception=True,
        ) as span:
            status: int | None = None
            try:
                response = await ctx.next()
                status = response.status
            finally:
                duration = time.perf_counter() - start
                active_requests_counter.add(-1, active_attrs)
                duration_attrs = dict(active_attrs)
                if status is not None:
                    span.set_attribute("http.response.status_code", status)
                    duration_attrs["http.response.status_code"] = status
                    if not route:
                        span.update_name(f"{method} {status}")
                    if status >= 500:
                        span.set_status(StatusCode.ERROR)
                duration_histogram.record(duration, duration_attrs)
        return response

    return traced_handler
