from typing import Any

import pytest
from conftest import mock_context, respond
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import SpanKind, StatusCode

from pagesmux import EventContext, Response, Router
from pagesmux.middleware.otel import otel


@pytest.fixture
def exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def provider(exporter: InMemorySpanExporter) -> TracerProvider:
    tp = TracerProvider()
    tp.add_span_processor(SimpleSpanProcessor(exporter))
    return tp


@pytest.fixture
def metric_reader() -> InMemoryMetricReader:
    return InMemoryMetricReader()


@pytest.fixture
def meter_provider(metric_reader: InMemoryMetricReader) -> MeterProvider:
    return MeterProvider(metric_readers=[metric_reader])


@pytest.fixture
def router(provider: TracerProvider, meter_provider: MeterProvider) -> Router:
    router = Router()
    router.use("/", otel(tracer_provider=provider, meter_provider=meter_provider))
    return router


# --- Basic span creation ---


@pytest.mark.asyncio
async def test_basic_span(router: Router, exporter: InMemorySpanExporter) -> None:
    router.get("/hello", respond("ok"))

    response = await router.handle(mock_context("/hello"))
    assert response.status == 200

    spans = exporter.get_finished_spans()
    assert len(spans) == 1
    span = spans[0]
    assert span.name == "GET /hello"
    assert span.kind == SpanKind.SERVER
    assert span.attributes is not None
    assert span.attributes["http.request.method"] == "GET"
    assert span.attributes["url.path"] == "/hello"
    assert span.attributes["http.response.status_code"] == 200
    assert span.attributes["http.route"] == "/hello"


@pytest.mark.asyncio
async def test_span_name_with_route_pattern(
    router: Router, exporter: InMemorySpanExporter
) -> None:
    router.get("/user/[id]", respond("ok"))

    await router.handle(mock_context("/user/123"))

    spans = exporter.get_finished_spans()
    assert spans[0].name == "GET /user/[id]"
    assert spans[0].attributes is not None
    assert spans[0].attributes["http.route"] == "/user/[id]"
    assert spans[0].attributes["url.path"] == "/user/123"
    assert spans[0].attributes["http.route.param.id"] == "123"


@pytest.mark.asyncio
async def test_catchall_param_attribute(
    router: Router, exporter: InMemorySpanExporter
) -> None:
    router.get("/files/[[rest]]", respond("ok"))

    await router.handle(mock_context("/files/a/b"))

    spans = exporter.get_finished_spans()
    assert spans[0].attributes is not None
    assert tuple(spans[0].attributes["http.route.param.rest"]) == ("a", "b")


@pytest.mark.asyncio
async def test_span_name_without_route(
    router: Router, exporter: InMemorySpanExporter
) -> None:
    response = await router.handle(mock_context("/missing"))
    assert response.status == 404

    spans = exporter.get_finished_spans()
    assert spans[0].name == "GET 404"
    assert spans[0].attributes is not None
    assert "http.route" not in spans[0].attributes


# --- Status code handling ---


@pytest.mark.asyncio
async def test_5xx_sets_error_status(
    router: Router, exporter: InMemorySpanExporter
) -> None:
    router.get("/", respond("internal server error", status=503))

    await router.handle(mock_context("/"))

    spans = exporter.get_finished_spans()
    assert spans[0].status.status_code == StatusCode.ERROR


@pytest.mark.asyncio
async def test_4xx_does_not_set_error(
    router: Router, exporter: InMemorySpanExporter
) -> None:
    router.get("/", respond("not found", status=404))

    await router.handle(mock_context("/"))

    spans = exporter.get_finished_spans()
    assert spans[0].status.status_code == StatusCode.UNSET


# --- Exception handling ---


@pytest.mark.asyncio
async def test_exception_recorded_and_router_returns_500(
    router: Router, exporter: InMemorySpanExporter
) -> None:
    async def handler(ctx: EventContext) -> Response:
        msg = "boom"
        raise RuntimeError(msg)

    router.get("/", handler)

    response = await router.handle(mock_context("/"))
    assert response.status == 500

    spans = exporter.get_finished_spans()
    assert spans[0].status.status_code == StatusCode.ERROR
    exception_event = next(e for e in spans[0].events if e.name == "exception")
    assert exception_event.attributes is not None
    assert exception_event.attributes["exception.type"] == "RuntimeError"


# --- Attributes ---


@pytest.mark.asyncio
async def test_attributes_populated(
    router: Router, exporter: InMemorySpanExporter
) -> None:
    router.post("/search", respond("", status=204))

    ctx = mock_context(
        "/search?q=hello", "POST", headers={"user-agent": "test-agent/1.0"}
    )
    await router.handle(ctx)

    spans = exporter.get_finished_spans()
    attrs = spans[0].attributes
    assert attrs is not None
    assert attrs["http.request.method"] == "POST"
    assert attrs["url.path"] == "/search"
    assert attrs["url.scheme"] == "https"
    assert attrs["url.query"] == "q=hello"
    assert attrs["server.address"] == "example.com"
    assert attrs["user_agent.original"] == "test-agent/1.0"
    assert attrs["http.response.status_code"] == 204


# --- Distributed tracing ---


@pytest.mark.asyncio
async def test_distributed_tracing_propagation(
    router: Router, exporter: InMemorySpanExporter
) -> None:
    router.get("/", respond())

    trace_id = "0af7651916cd43dd8448eb211c80319c"
    parent_span_id = "b7ad6b7169203331"
    ctx = mock_context(
        "/", headers={"traceparent": f"00-{trace_id}-{parent_span_id}-01"}
    )
    await router.handle(ctx)

    spans = exporter.get_finished_spans()
    assert len(spans) == 1
    span = spans[0]
    assert span.context is not None
    assert f"{span.context.trace_id:032x}" == trace_id
    assert span.parent is not None
    assert f"{span.parent.span_id:016x}" == parent_span_id


# --- Metrics ---


def _get_metric(metric_reader: InMemoryMetricReader, name: str) -> Any:
    """Extract a metric by name from the reader."""
    data = metric_reader.get_metrics_data()
    assert data is not None
    for resource_metric in data.resource_metrics:
        for scope_metric in resource_metric.scope_metrics:
            for metric in scope_metric.metrics:
                if metric.name == name:
                    return metric
    msg = f"Metric {name!r} not found"
    raise AssertionError(msg)


@pytest.mark.asyncio
async def test_request_duration_recorded(
    router: Router, metric_reader: InMemoryMetricReader
) -> None:
    router.get("/hello", respond("ok"))

    await router.handle(mock_context("/hello"))

    metric = _get_metric(metric_reader, "http.server.request.duration")
    assert metric.unit == "s"
    data_points = list(metric.data.data_points)
    assert len(data_points) == 1
    dp = data_points[0]
    assert dp.count == 1
    assert dp.attributes["http.request.method"] == "GET"
    assert dp.attributes["url.scheme"] == "https"
    assert dp.attributes["http.response.status_code"] == 200
    assert dp.attributes["http.route"] == "/hello"


@pytest.mark.asyncio
async def test_active_requests_incremented_and_decremented(
    router: Router, metric_reader: InMemoryMetricReader
) -> None:
    router.get("/", respond())

    await router.handle(mock_context("/"))

    # After request completes, active requests should be back to 0 (+1 then -1)
    metric = _get_metric(metric_reader, "http.server.active_requests")
    assert metric.unit == "{request}"
    data_points = list(metric.data.data_points)
    assert len(data_points) == 1
    assert data_points[0].value == 0


@pytest.mark.asyncio
async def test_duration_metric_attributes_without_route(
    router: Router, metric_reader: InMemoryMetricReader
) -> None:
    await router.handle(mock_context("/missing"))

    metric = _get_metric(metric_reader, "http.server.request.duration")
    dp = next(iter(metric.data.data_points))
    assert dp.attributes["http.request.method"] == "GET"
    assert dp.attributes["http.response.status_code"] == 404
    assert "http.route" not in dp.attributes
