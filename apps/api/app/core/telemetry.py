"""OpenTelemetry tracing and metrics setup."""

from __future__ import annotations

import logging

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import ParentBased, TraceIdRatioBased
from opentelemetry.semconv.resource import ResourceAttributes

from app.core.config import settings

logger = logging.getLogger(__name__)


def _parse_headers(value: str) -> dict[str, str]:
    headers: dict[str, str] = {}
    if not value:
        return headers
    for item in value.split(","):
        item = item.strip()
        if not item or "=" not in item:
            continue
        key, val = item.split("=", 1)
        headers[key.strip()] = val.strip()
    return headers


def _signal_endpoint(path: str) -> str:
    return f"{settings.OTEL_EXPORTER_OTLP_ENDPOINT.rstrip('/')}/{path}"


def configure_telemetry(app, engine) -> None:
    """Initialize OpenTelemetry tracing and metrics when enabled."""
    if not settings.OTEL_ENABLED or not settings.OTEL_EXPORTER_OTLP_ENDPOINT:
        return

    headers = _parse_headers(settings.OTEL_EXPORTER_OTLP_HEADERS)
    try:
        resource = Resource.create(
            {
                ResourceAttributes.SERVICE_NAME: settings.OTEL_SERVICE_NAME or "onboarding-api",
                ResourceAttributes.DEPLOYMENT_ENVIRONMENT: settings.ENV,
            }
        )
        sampler = ParentBased(TraceIdRatioBased(settings.OTEL_SAMPLE_RATE))
        provider = TracerProvider(resource=resource, sampler=sampler)
        provider.add_span_processor(
            BatchSpanProcessor(
                OTLPSpanExporter(endpoint=_signal_endpoint("v1/traces"), headers=headers)
            )
        )
        trace.set_tracer_provider(provider)

        reader = PeriodicExportingMetricReader(
            OTLPMetricExporter(endpoint=_signal_endpoint("v1/metrics"), headers=headers)
        )
        metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[reader]))

        FastAPIInstrumentor.instrument_app(app, tracer_provider=provider)
        SQLAlchemyInstrumentor().instrument(engine=engine)
        HTTPXClientInstrumentor().instrument()
        logger.info("OpenTelemetry tracing and metrics enabled")
    except Exception:
        logger.exception("Failed to initialize OpenTelemetry")
