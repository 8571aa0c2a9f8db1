from __future__ import annotations

import traceback

from fastapi import FastAPI, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Counter, Histogram, generate_latest

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span, Status, StatusCode


TRACER_NAME = "db.migrations"

REGISTRY = CollectorRegistry()

MIGRATION_RUNS_TOTAL = Counter(
    "migration_runs_total",
    "Startup migration runs by outcome",
    ["context", "status"],
    registry=REGISTRY,
)
MIGRATION_LATENCY = Histogram(
    "migration_latency_ms",
    "Startup migration latency in milliseconds",
    ["context"],
    buckets=(10, 50, 100, 250, 500, 1000, 2500, 5000, 10000, 30000, 60000),
    registry=REGISTRY,
)
MIGRATION_RETRIES_TOTAL = Counter(
    "migration_retries_total",
    "Attempts re-run by the execution strategy after a transient failure",
    ["context"],
    registry=REGISTRY,
)


def setup_tracing(service_name: str) -> None:
    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter()))
    trace.set_tracer_provider(provider)


def get_tracer() -> trace.Tracer:
    return trace.get_tracer(TRACER_NAME)


def qualified_name(tp: type) -> str:
    if tp.__module__ == "builtins":
        return tp.__qualname__
    return f"{tp.__module__}.{tp.__qualname__}"


def set_exception_tags(span: Span, exc: BaseException) -> None:
    span.set_attribute("exception.message", str(exc))
    span.set_attribute("exception.stacktrace", "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    span.set_attribute("exception.type", qualified_name(type(exc)))
    span.set_status(Status(StatusCode.ERROR))


def metrics_response() -> Response:
    return Response(generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)


def add_metrics_route(app: FastAPI) -> None:
    @app.get("/metrics")
    async def metrics() -> Response:
        return metrics_response()
