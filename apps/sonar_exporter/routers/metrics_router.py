from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from ..models.metric_models import PropertyView
from ..services.exporter_service import ExporterService
from ..services.metric_registry import CONTENT_TYPE
from ..utils.sonar_client import UpstreamError

router = APIRouter(
    prefix="/api/prometheus",
    tags=["prometheus"],
)


def get_exporter(request: Request) -> ExporterService:
    return request.app.state.exporter


# ------------------------------------------------------------------------------
# GET /api/prometheus/metrics
# ------------------------------------------------------------------------------
@router.get(
    "/metrics",
    summary="Prometheus Exporter",
    response_description="SonarQube measures in the Prometheus text format.",
)
def metrics(exporter: ExporterService = Depends(get_exporter)) -> Response:
    """
    Polls SonarQube and returns every enabled metric for every project.

    Always 200 with a (possibly empty) exposition body, unless SonarQube
    itself fails, in which case the scrape fails as a whole.
    """
    try:
        body = exporter.scrape()
    except UpstreamError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"SonarQube request failed: {exc}",
        )
    except Exception as exc:
        raise HTTPException(
            status_code=500,
            detail=f"Error building metrics: {exc}",
        )

    return Response(content=body, media_type=CONTENT_TYPE, status_code=200)


# ------------------------------------------------------------------------------
# GET /api/prometheus/properties
# ------------------------------------------------------------------------------
@router.get(
    "/properties",
    response_model=List[PropertyView],
    summary="List the prometheus.export.* flags and their current values.",
)
def properties(exporter: ExporterService = Depends(get_exporter)) -> List[PropertyView]:
    return exporter.properties()
