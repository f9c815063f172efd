"""OpenTelemetry + Prometheus fallback wiring for log parsing."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any

from logvisualizer import config

logger = logging.getLogger("logvisualizer.observability")


_initialized = False
_enabled = False
_tracer: Any | None = None
_trace_provider: Any | None = None
_meter_provider: Any | None = None

_ingestion_counter: Any | None = None
_ingestion_latency_hist: Any | None = None
_parser_failure_counter: Any | None = None
_turns_hist: Any | None = None

_prom_enabled = False
_prom_ingestion_counter: Any | None = None
_prom_ingestion_latency_hist: Any | None = None
_prom_parser_failure_counter: Any | None = None
_prom_turns_hist: Any | None = None


def _normalize_otlp_endpoint(base_endpoint: str, signal_path: str) -> str:
    endpoint = (base_endpoint or "").strip()
    if not endpoint:
        return ""
    if endpoint.endswith(signal_path):
        return endpoint
    if endpoint.endswith("/"):
        endpoint = endpoint[:-1]
    if endpoint.endswith("/v1"):
        return f"{endpoint}{signal_path[3:]}"
    return f"{endpoint}{signal_path}"


def _prom_labels(*, project_id: str, **extra: str) -> dict[str, str]:
    labels = {"project": project_id or "unknown"}
    for key, value in extra.items():
        labels[key] = (value or "").strip() or "unknown"
    return labels


def _start_prometheus() -> None:
    global _prom_enabled, _prom_ingestion_counter, _prom_ingestion_latency_hist
    global _prom_parser_failure_counter, _prom_turns_hist

    from prometheus_client import Counter, Histogram, start_http_server

    try:
        start_http_server(config.PROM_PORT)
    except OSError as exc:
        logger.warning("Prometheus fallback not started: %s", exc)
        return

    _prom_ingestion_counter = Counter(
        "logvis_ingestion_events_total",
        "Count of log parse operations",
        ["entity", "result", "project"],
    )
    _prom_ingestion_latency_hist = Histogram(
        "logvis_ingestion_latency_ms",
        "Latency of log parse operations",
        ["entity", "result", "project"],
    )
    _prom_parser_failure_counter = Counter(
        "logvis_parser_failures_total",
        "Count of parser failures",
        ["parser", "project"],
    )
    _prom_turns_hist = Histogram(
        "logvis_parsed_turns",
        "Turns spent per parsed ascension",
        ["project"],
        buckets=(100, 250, 500, 750, 1000, 1500, 2000, 3000),
    )
    _prom_enabled = True
    logger.info("Prometheus fallback metrics server listening on port %s", config.PROM_PORT)


def initialize() -> None:
    global _initialized, _enabled, _tracer, _trace_provider, _meter_provider
    global _ingestion_counter, _ingestion_latency_hist, _parser_failure_counter, _turns_hist

    if _initialized:
        return

    _initialized = True

    if not config.OTEL_ENABLED:
        logger.info("OpenTelemetry disabled (LOGVIS_OTEL_ENABLED=false)")
        return

    try:
        from opentelemetry import metrics, trace
        from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError as exc:
        logger.warning("OpenTelemetry dependencies unavailable: %s", exc)
        return

    traces_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/traces")
    metrics_endpoint = _normalize_otlp_endpoint(config.OTEL_ENDPOINT, "/v1/metrics")
    service_name = config.OTEL_SERVICE_NAME or "logvisualizer"

    resource = Resource.create(
        {
            "service.name": service_name,
            "service.namespace": "logvisualizer",
        }
    )

    trace_provider = TracerProvider(resource=resource)
    trace_exporter = OTLPSpanExporter(endpoint=traces_endpoint or None)
    trace_provider.add_span_processor(BatchSpanProcessor(trace_exporter))
    trace.set_tracer_provider(trace_provider)
    tracer = trace.get_tracer("logvisualizer.parser")

    metric_reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=metrics_endpoint or None)
    )
    meter_provider = MeterProvider(resource=resource, metric_readers=[metric_reader])
    metrics.set_meter_provider(meter_provider)
    meter = metrics.get_meter("logvisualizer.parser")

    _ingestion_counter = meter.create_counter(
        "logvis_ingestion_events_total",
        unit="1",
        description="Count of log parse operations",
    )
    _ingestion_latency_hist = meter.create_histogram(
        "logvis_ingestion_latency_ms",
        unit="ms",
        description="Latency of log parse operations",
    )
    _parser_failure_counter = meter.create_counter(
        "logvis_parser_failures_total",
        unit="1",
        description="Count of parser failures",
    )
    _turns_hist = meter.create_histogram(
        "logvis_parsed_turns",
        unit="1",
        description="Turns spent per parsed ascension",
    )

    _trace_provider = trace_provider
    _meter_provider = meter_provider
    _tracer = tracer
    _enabled = True

    if config.PROM_PORT > 0:
        _start_prometheus()

    logger.info(
        "OpenTelemetry initialized (service=%s endpoint=%s)",
        service_name,
        config.OTEL_ENDPOINT,
    )


def shutdown() -> None:
    global _enabled
    if not _initialized:
        return
    for provider in (_meter_provider, _trace_provider):
        if provider is None:
            continue
        try:
            provider.shutdown()
        except Exception as exc:  # noqa: BLE001
            logger.debug("Telemetry provider shutdown failed: %s", exc)
    _enabled = False


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    if not _enabled or _tracer is None:
        yield None
        return
    with _tracer.start_as_current_span(name) as span:
        if attributes:
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
        yield span


def record_ingestion(entity: str, result: str, duration_ms: float, *, project_id: str) -> None:
    labels = {
        "entity": entity or "unknown",
        "result": result or "unknown",
        "project_id": project_id or "unknown",
    }
    if _enabled and _ingestion_counter is not None:
        _ingestion_counter.add(1, labels)
    if _enabled and _ingestion_latency_hist is not None:
        _ingestion_latency_hist.record(max(0.0, float(duration_ms)), labels)
    if _prom_enabled and _prom_ingestion_counter is not None:
        prom = _prom_labels(project_id=project_id, entity=entity, result=result)
        _prom_ingestion_counter.labels(**prom).inc()
    if _prom_enabled and _prom_ingestion_latency_hist is not None:
        prom = _prom_labels(project_id=project_id, entity=entity, result=result)
        _prom_ingestion_latency_hist.labels(**prom).observe(max(0.0, float(duration_ms)))


def record_parser_failure(parser: str, *, project_id: str) -> None:
    labels = {
        "parser": parser or "unknown",
        "project_id": project_id or "unknown",
    }
    if _enabled and _parser_failure_counter is not None:
        _parser_failure_counter.add(1, labels)
    if _prom_enabled and _prom_parser_failure_counter is not None:
        prom = _prom_labels(project_id=project_id, parser=parser)
        _prom_parser_failure_counter.labels(**prom).inc()


def record_parsed_turns(turns: int, *, project_id: str) -> None:
    safe_turns = max(0, int(turns))
    if _enabled and _turns_hist is not None:
        _turns_hist.record(safe_turns, {"project_id": project_id or "unknown"})
    if _prom_enabled and _prom_turns_hist is not None:
        _prom_turns_hist.labels(**_prom_labels(project_id=project_id)).observe(safe_turns)
