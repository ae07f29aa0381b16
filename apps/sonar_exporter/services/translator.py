from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Tuple

from ..models.metric_models import Measure, Project
from .catalog import ALERT_STATUS_KEY
from .metric_registry import MetricRegistry

logger = logging.getLogger("sonar_exporter.translator")

DEFAULT_VALUE = 0.0

# Quality gate level -> numeric sample; anything else maps to DEFAULT_VALUE
ALERT_STATUS_VALUES: Dict[str, float] = {
    "OK": 1.0,
    "WARN": 2.0,
    "ERROR": 3.0,
}

# Checked in order, first substring match wins
SEVERITY_MARKERS: Tuple[Tuple[str, str], ...] = (
    ("blocker", "BLOCKER"),
    ("critical", "CRITICAL"),
    ("major", "MAJOR"),
    ("minor", "MINOR"),
    ("info", "INFO"),
)

SEVERITY_ALL = "ALL"


def map_alert_status(raw: Optional[str]) -> float:
    if raw is None:
        return DEFAULT_VALUE
    return ALERT_STATUS_VALUES.get(raw.strip().upper(), DEFAULT_VALUE)


def parse_float(raw: Optional[str], default: float = DEFAULT_VALUE) -> float:
    if raw is None:
        return default
    if "_" in raw:
        # float() accepts "1_000"; SonarQube never emits digit separators
        logger.debug("Non-numeric measure value %r, using %s", raw, default)
        return default
    try:
        return float(raw)
    except (TypeError, ValueError):
        logger.debug("Non-numeric measure value %r, using %s", raw, default)
        return default


def map_value(metric_key: str, raw: Optional[str]) -> float:
    """
    Convert one raw SonarQube measure value into a sample value.

    The quality gate status goes through the OK/WARN/ERROR enumeration.
    Every other metric is parsed as a float. Values that cannot be parsed
    (or are missing) become 0.0 instead of failing the scrape.
    """
    if metric_key == ALERT_STATUS_KEY:
        return map_alert_status(raw)
    return parse_float(raw)


def infer_severity(metric_key: Optional[str]) -> str:
    """
    Severity label derived from the metric key, e.g. blocker_violations -> BLOCKER.
    """
    if not metric_key:
        return SEVERITY_ALL
    lowered = metric_key.lower()
    for marker, severity in SEVERITY_MARKERS:
        if marker in lowered:
            return severity
    return SEVERITY_ALL


class SampleTranslator:
    """
    Writes one project's measures into the registry.
    """

    def translate(
        self,
        registry: MetricRegistry,
        project: Project,
        measures: Iterable[Measure],
    ) -> int:
        written = 0
        for measure in measures:
            value = map_value(measure.metric_key, measure.raw_value)
            severity = infer_severity(measure.metric_key)
            if registry.write(
                measure.metric_key,
                (project.key, project.name, severity),
                value,
            ):
                written += 1
        return written
