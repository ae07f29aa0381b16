"""
SonarQube Prometheus exporter.

Polls the SonarQube web API on every scrape and republishes the enabled
project measures as labeled gauges:

- GET /api/prometheus/metrics     exported SonarQube measures
- GET /api/prometheus/properties  prometheus.export.* flags and values
- GET /internal/metrics           the exporter's own HTTP/scrape metrics
- GET /healthz
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from apps.sonar_exporter.config import Settings, get_settings
from apps.sonar_exporter.models.metric_models import HealthResponse
from apps.sonar_exporter.routers.metrics_router import router as metrics_router
from apps.sonar_exporter.services.config_readers import build_config_reader
from apps.sonar_exporter.services.exporter_service import ExporterService
from apps.sonar_exporter.utils.otel import configure_logging, setup_otel
from apps.sonar_exporter.utils.sonar_client import SonarClient

logger = logging.getLogger("sonar_exporter.app")


def build_exporter(settings: Settings) -> ExporterService:
    client = SonarClient(
        base_url=settings.sonar_url,
        token=settings.sonar_token,
        timeout=settings.sonar_timeout_seconds,
        page_size=settings.sonar_page_size,
    )
    return ExporterService(
        config_reader=build_config_reader(settings.properties_file),
        client=client,
    )


def create_app(
    settings: Optional[Settings] = None,
    exporter: Optional[ExporterService] = None,
    instrument: bool = True,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="SonarQube Prometheus Exporter",
        description="Exports SonarQube project measures in the Prometheus text format",
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.exporter = exporter or build_exporter(settings)

    # ------------------------------------------------------------------
    # OpenTelemetry
    # ------------------------------------------------------------------
    if settings.otel_enabled:
        setup_otel(app, settings)

    # ------------------------------------------------------------------
    # Prometheus metrics about the exporter itself
    # ------------------------------------------------------------------
    # Default registry, kept apart from the exported SonarQube registry
    if instrument:
        Instrumentator(excluded_handlers=["/internal/metrics"]).instrument(app).expose(
            app,
            endpoint="/internal/metrics",
            include_in_schema=False,
        )

    app.include_router(metrics_router)

    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info(
            "Starting %s env=%s sonar_url=%s properties_file=%s",
            settings.app_name,
            settings.environment,
            settings.sonar_url,
            settings.properties_file,
        )

    @app.get("/healthz", response_model=HealthResponse, tags=["internal"])
    def healthz() -> HealthResponse:
        return HealthResponse(
            status="ok",
            app=settings.app_name,
            env=settings.environment,
        )

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "apps.sonar_exporter.app:create_app",
        host="0.0.0.0",
        port=get_settings().port,
        reload=False,  # Disable reload to avoid double metric registration
        factory=True,
    )
