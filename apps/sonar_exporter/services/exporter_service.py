"""
Scrape cycle for the SonarQube exporter.

One scrape = resolve enabled metrics -> rebuild registry -> poll SonarQube
per project -> translate measures -> render. The whole cycle runs inside a
single lock because rebuilding clears the registry before refilling it, and
a concurrent scrape must never observe that half-built state.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Iterable, List, Optional, Protocol, Sequence

from opentelemetry import trace
from prometheus_client import Counter, Gauge, Histogram

from ..models.metric_models import Measure, MetricDefinition, Project, PropertyView
from ..utils.sonar_client import UpstreamError
from . import enablement
from .catalog import SUPPORTED_METRICS, property_definitions
from .config_readers import ConfigReader
from .metric_registry import MetricRegistry
from .translator import SampleTranslator

logger = logging.getLogger("sonar_exporter.service")
tracer = trace.get_tracer(__name__)

# -------------------------------------------------------------------------
# Prometheus metrics about the exporter itself (default registry)
# -------------------------------------------------------------------------

SCRAPES_TOTAL = Counter(
    "sonar_exporter_scrapes_total",
    "Total scrape cycles run by the exporter",
    ["result"],  # result: success | upstream_error | error
)

SCRAPE_DURATION_SECONDS = Histogram(
    "sonar_exporter_scrape_duration_seconds",
    "Duration of a full scrape cycle (resolve, poll, translate, render)",
    buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, 30, 60),
)

ENABLED_METRICS = Gauge(
    "sonar_exporter_enabled_metrics",
    "Number of catalog metrics enabled in the last scrape",
)

PROJECTS_SCRAPED = Gauge(
    "sonar_exporter_projects_scraped",
    "Number of projects polled in the last scrape",
)


class UpstreamClient(Protocol):
    def list_projects(self) -> Sequence[Project]:
        ...

    def fetch_measures(self, project_key: str, metric_keys: Iterable[str]) -> Sequence[Measure]:
        ...


class ExporterService:
    """
    Owns the exported registry and runs scrapes against it.

    Collaborators are injected so several instances can coexist (tests,
    multiple SonarQube servers) without sharing any global state.
    """

    def __init__(
        self,
        config_reader: ConfigReader,
        client: UpstreamClient,
        catalog: Sequence[MetricDefinition] = SUPPORTED_METRICS,
        registry: Optional[MetricRegistry] = None,
        translator: Optional[SampleTranslator] = None,
    ) -> None:
        self.config_reader = config_reader
        self.client = client
        self.catalog = tuple(catalog)
        self.registry = registry or MetricRegistry()
        self.translator = translator or SampleTranslator()
        self._lock = threading.Lock()

    def _poll(self, enabled: Iterable[MetricDefinition]) -> int:
        metric_keys = {m.key for m in enabled}
        projects = self.client.list_projects()
        PROJECTS_SCRAPED.set(len(projects))

        written = 0
        for project in projects:
            measures = self.client.fetch_measures(project.key, metric_keys)
            written += self.translator.translate(self.registry, project, measures)

        logger.info(
            "Scraped %d projects, %d metrics enabled, %d samples written",
            len(projects),
            len(metric_keys),
            written,
        )
        return written

    def scrape(self) -> bytes:
        """
        Run one full cycle and return the exposition body.

        UpstreamError propagates: returning partial data would misreport
        which projects are covered.
        """
        with self._lock, tracer.start_as_current_span("exporter.scrape") as span:
            start = time.time()
            try:
                enabled = enablement.resolve(self.catalog, self.config_reader)
                ENABLED_METRICS.set(len(enabled))
                span.set_attribute("sonar.enabled_metrics", len(enabled))

                self.registry.rebuild(enabled)

                # Nothing enabled: skip SonarQube entirely, still render.
                if enabled:
                    span.set_attribute("sonar.samples_written", self._poll(enabled))

                body = self.registry.render()
            except UpstreamError as exc:
                SCRAPES_TOTAL.labels(result="upstream_error").inc()
                span.record_exception(exc)
                logger.error("Scrape failed, SonarQube error: %s", exc)
                raise
            except Exception as exc:
                SCRAPES_TOTAL.labels(result="error").inc()
                span.record_exception(exc)
                logger.exception("Scrape failed")
                raise
            finally:
                SCRAPE_DURATION_SECONDS.observe(time.time() - start)

            SCRAPES_TOTAL.labels(result="success").inc()
            return body

    def properties(self) -> List[PropertyView]:
        """
        Every prometheus.export.* flag with its current value.
        """
        return [
            PropertyView(
                key=prop.key,
                name=prop.name,
                description=prop.description,
                metric=prop.metric_key,
                category=prop.category,
                type=prop.type,
                default=prop.default,
                enabled=enablement.is_enabled(metric, self.config_reader),
            )
            for prop, metric in zip(property_definitions(self.catalog), self.catalog)
        ]
