from __future__ import annotations

import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from prometheus_client import CollectorRegistry, Gauge, generate_latest

from ..models.metric_models import MetricDefinition
from .catalog import LABEL_NAMES, METRIC_PREFIX

logger = logging.getLogger("sonar_exporter.registry")

# generate_latest() emits text format 0.0.4
CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_:]")

LabelTuple = Tuple[str, str, str]


def metric_name(metric_key: str) -> str:
    """
    Exported metric name for an upstream metric key.

    Standard SonarQube keys are valid Prometheus names as-is; anything else
    (custom plugin metrics) gets its invalid characters replaced by '_'.
    """
    return METRIC_PREFIX + _INVALID_NAME_CHARS.sub("_", metric_key)


def dynamic_help(metric_key: str) -> str:
    return f"Metric exported from Sonar: {metric_key}"


class MetricRegistry:
    """
    Exported SonarQube gauges for one exporter instance.

    Wraps a private prometheus_client CollectorRegistry so nothing leaks
    into (or out of) the process-wide default registry. The lifecycle is
    reset-and-rebuild on every scrape:

      reset()   -> drop every gauge
      declare() -> empty labeled gauge for an enabled metric
      write()   -> set one sample, creating the gauge on first use
      render()  -> Prometheus text exposition bytes

    Not thread-safe on its own; ExporterService serializes whole scrapes.
    """

    def __init__(self) -> None:
        self._registry = CollectorRegistry()
        self._gauges: Dict[str, Gauge] = {}

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def reset(self) -> None:
        # A fresh CollectorRegistry guarantees no orphaned series survive.
        self._registry = CollectorRegistry()
        self._gauges = {}

    def declare(self, metric_key: str, description: str) -> Gauge:
        gauge = self._gauges.get(metric_key)
        if gauge is not None:
            return gauge

        gauge = Gauge(
            metric_name(metric_key),
            description or dynamic_help(metric_key),
            list(LABEL_NAMES),
            registry=self._registry,
        )
        self._gauges[metric_key] = gauge
        return gauge

    def rebuild(self, enabled: Iterable[MetricDefinition]) -> None:
        """
        Make the registry hold exactly the given metrics, all empty.
        """
        self.reset()
        for metric in sorted(enabled, key=lambda m: m.key):
            self.declare(metric.key, metric.description)
        logger.debug("Registry rebuilt with %d gauges", len(self._gauges))

    # ------------------------------------------------------------------
    # Samples
    # ------------------------------------------------------------------

    def write(self, metric_key: str, labels: LabelTuple, value: float) -> bool:
        gauge = self._gauges.get(metric_key)
        if gauge is None:
            logger.debug("Registering dynamic gauge for metric key %s", metric_key)
            try:
                gauge = self.declare(metric_key, dynamic_help(metric_key))
            except ValueError as exc:
                # e.g. "a-b" and "a_b" both map to sonarqube_a_b
                logger.warning("Skipping metric key %s: %s", metric_key, exc)
                return False
        gauge.labels(*labels).set(value)
        return True

    def has_series(self, metric_key: str) -> bool:
        return metric_key in self._gauges

    def series_keys(self) -> List[str]:
        return sorted(self._gauges)

    def sample(self, metric_key: str, labels: LabelTuple) -> Optional[float]:
        """
        Current value of one sample, or None if it was never written.
        """
        if metric_key not in self._gauges:
            return None
        label_map = dict(zip(LABEL_NAMES, labels))
        return self._registry.get_sample_value(metric_name(metric_key), label_map)

    # ------------------------------------------------------------------
    # Exposition
    # ------------------------------------------------------------------

    def render(self) -> bytes:
        return generate_latest(self._registry)
