"""
OpenTelemetry setup for the SonarQube exporter.

- Configures OTLP exporter (gRPC) to collector.
- Instruments FastAPI + logging + outgoing SonarQube HTTP calls.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.instrumentation.requests import RequestsInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from ..config import Settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

logger = logging.getLogger("sonar_exporter.otel")


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT)


def setup_otel(app: FastAPI, settings: Settings) -> None:
    """
    Configure OpenTelemetry tracing for the exporter.

    Reads:
      - OTEL_EXPORTER_OTLP_ENDPOINT (default: http://otelcol-opentelemetry-collector:4317)
      - OTEL_SERVICE_NAME (default: sonar-exporter)
    """

    # OTLP gRPC exporter expects host:port (no http:// or https://)
    clean_endpoint = settings.otlp_endpoint.replace("http://", "").replace("https://", "")
    logger.info("[OTEL] Configuring OTLP gRPC exporter -> %s", clean_endpoint)

    # 1) TracerProvider with resource
    resource = Resource.create(
        {
            "service.name": settings.otel_service_name,
            "service.namespace": "sonar-exporter",
            "deployment.environment": settings.environment,
            "service.version": "0.1.0",
            "sonar.url": settings.sonar_url,
        }
    )

    provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(provider)

    # 2) OTLP gRPC exporter
    span_exporter = OTLPSpanExporter(
        endpoint=clean_endpoint,
        insecure=True,
    )
    provider.add_span_processor(BatchSpanProcessor(span_exporter))

    # 3) Instrument FastAPI, logging, and outgoing HTTP
    FastAPIInstrumentor().instrument_app(app)

    LoggingInstrumentor().instrument(
        set_logging_format=True,
    )

    RequestsInstrumentor().instrument()

    logger.info("[OTEL] OpenTelemetry tracing initialized for sonar-exporter")
