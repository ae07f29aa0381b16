from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Optional

import requests
from opentelemetry import trace
from prometheus_client import Counter, Histogram
from pydantic import ValidationError

from ..models.metric_models import Measure, Project

logger = logging.getLogger("sonar_exporter.sonar_client")
tracer = trace.get_tracer(__name__)

PROJECT_QUALIFIER = "TRK"
DEFAULT_PAGE_SIZE = 500

# -------------------------------------------------------------------------
# Prometheus metrics for upstream calls (default registry, /internal/metrics)
# -------------------------------------------------------------------------

SONAR_API_CALLS_TOTAL = Counter(
    "sonar_exporter_upstream_calls_total",
    "Total SonarQube web API calls from the exporter",
    ["endpoint", "outcome"],  # outcome: success | error
)

SONAR_API_LATENCY_SECONDS = Histogram(
    "sonar_exporter_upstream_latency_seconds",
    "Latency of SonarQube web API calls from the exporter",
    ["endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)


class UpstreamError(Exception):
    """
    Raised when SonarQube cannot be reached or returns an unusable response.
    """
    pass


class SonarClient:
    """
    Thin client for the two SonarQube web API calls the exporter needs.

    - No retries: a failed call fails the scrape
    - Only the first page of projects is read (ps=page_size)
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        page_size: int = DEFAULT_PAGE_SIZE,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.page_size = page_size
        self.session = session or requests.Session()
        if token:
            # SonarQube user tokens go in as the basic-auth login, empty password
            self.session.auth = (token, "")

        logger.info("SonarClient initialized base_url=%s page_size=%d", self.base_url, page_size)

    # ------------------------------------------------------------------
    # Internal HTTP helper
    # ------------------------------------------------------------------

    def _get(self, endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}{endpoint}"
        start = time.time()

        with tracer.start_as_current_span("sonar_client.get") as span:
            span.set_attribute("sonar.endpoint", endpoint)
            try:
                resp = self.session.get(url, params=params, timeout=self.timeout)
                resp.raise_for_status()
                payload = resp.json()
            except requests.exceptions.HTTPError as exc:
                self._record(endpoint, "error", start)
                span.record_exception(exc)
                status = exc.response.status_code if exc.response is not None else "?"
                raise UpstreamError(f"SonarQube HTTP {status} for {endpoint}") from exc
            except ValueError as exc:
                self._record(endpoint, "error", start)
                span.record_exception(exc)
                raise UpstreamError(f"Invalid JSON from SonarQube {endpoint}: {exc}") from exc
            except requests.exceptions.RequestException as exc:
                self._record(endpoint, "error", start)
                span.record_exception(exc)
                raise UpstreamError(f"SonarQube unreachable at {url}: {exc}") from exc

        if not isinstance(payload, dict):
            self._record(endpoint, "error", start)
            raise UpstreamError(f"Unexpected SonarQube response for {endpoint}: {payload!r:.200}")

        self._record(endpoint, "success", start)
        return payload

    @staticmethod
    def _record(endpoint: str, outcome: str, start: float) -> None:
        SONAR_API_CALLS_TOTAL.labels(endpoint=endpoint, outcome=outcome).inc()
        SONAR_API_LATENCY_SECONDS.labels(endpoint=endpoint).observe(time.time() - start)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def list_projects(self) -> List[Project]:
        """
        GET /api/components/search?qualifiers=TRK&ps=<page_size>
        """
        payload = self._get(
            "/api/components/search",
            {"qualifiers": PROJECT_QUALIFIER, "ps": str(self.page_size)},
        )
        try:
            projects = [Project.model_validate(c) for c in payload.get("components", [])]
        except ValidationError as exc:
            raise UpstreamError(f"Malformed project listing: {exc}") from exc

        logger.debug("Listed %d projects", len(projects))
        return projects

    def fetch_measures(self, project_key: str, metric_keys: Iterable[str]) -> List[Measure]:
        """
        GET /api/measures/component?component=<key>&metricKeys=<k1,k2,...>

        Requested keys without a measure are simply absent from the result.
        """
        keys = sorted(set(metric_keys))
        if not keys:
            return []

        payload = self._get(
            "/api/measures/component",
            {"component": project_key, "metricKeys": ",".join(keys)},
        )
        component = payload.get("component") or {}
        try:
            return [Measure.model_validate(m) for m in component.get("measures", [])]
        except ValidationError as exc:
            raise UpstreamError(f"Malformed measures for {project_key}: {exc}") from exc
