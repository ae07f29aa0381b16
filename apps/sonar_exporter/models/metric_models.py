from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class MetricDefinition:
    """
    One SonarQube metric the exporter knows how to publish.

    `key` is the upstream metric key (e.g. "bugs") and doubles as the suffix
    of the exported Prometheus metric name.
    """
    key: str
    name: str
    description: str


@dataclass(frozen=True)
class PropertyDefinition:
    """
    Boolean configuration flag that switches one catalog metric on or off.
    """
    key: str
    name: str
    description: str
    metric_key: str
    category: str = "Prometheus Exporter"
    type: str = "BOOLEAN"
    default: bool = False


class Project(BaseModel):
    """
    SonarQube project as returned by /api/components/search.
    """
    model_config = ConfigDict(extra="ignore")

    key: str
    name: str


class Measure(BaseModel):
    """
    One raw measure for one project, as returned by /api/measures/component.

    `raw_value` stays a string: SonarQube reports every measure as text
    (numbers, percentages, quality gate levels) and may omit it entirely
    for period-only metrics.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    metric_key: str = Field(..., alias="metric")
    raw_value: Optional[str] = Field(default=None, alias="value")


class PropertyView(BaseModel):
    key: str
    name: str
    description: str
    metric: str
    category: str
    type: str
    default: bool
    enabled: bool


class HealthResponse(BaseModel):
    status: str
    app: str
    env: str
