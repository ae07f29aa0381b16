from typing import Iterable, List, Tuple

from ..models.metric_models import MetricDefinition, PropertyDefinition

# Configuration flag for metric "bugs" is "prometheus.export.bugs"
CONFIG_PREFIX = "prometheus.export."

# Exported metric name for "bugs" is "sonarqube_bugs"
METRIC_PREFIX = "sonarqube_"

ALERT_STATUS_KEY = "alert_status"

LABEL_NAMES: Tuple[str, str, str] = ("key", "name", "severity")

PROPERTY_CATEGORY = "Prometheus Exporter"


# -------------------------------------------------------------------------
# Supported SonarQube core metrics
# -------------------------------------------------------------------------

SUPPORTED_METRICS: Tuple[MetricDefinition, ...] = (
    MetricDefinition("bugs", "Bugs", "Bugs"),
    MetricDefinition("vulnerabilities", "Vulnerabilities", "Vulnerabilities"),
    MetricDefinition("code_smells", "Code Smells", "Code Smells"),
    MetricDefinition("coverage", "Coverage", "Coverage by tests"),
    MetricDefinition(
        "sqale_index",
        "Technical Debt",
        "Total effort (in minutes) to fix all the issues on the component "
        "and therefore to comply to all the requirements.",
    ),
    MetricDefinition("complexity", "Cyclomatic Complexity", "Cyclomatic complexity"),
    MetricDefinition("lines_to_cover", "Lines to Cover", "Lines to cover"),
    MetricDefinition("violations", "Issues", "Issues"),
    MetricDefinition(
        ALERT_STATUS_KEY,
        "Quality Gate Status",
        "The project status with regard to its quality gate.",
    ),
    MetricDefinition("security_hotspots", "Security Hotspots", "Security Hotspots"),
    MetricDefinition("duplicated_lines", "Duplicated Lines", "Duplicated lines"),
    MetricDefinition("ncloc", "Lines of Code", "Non commenting lines of code"),
    MetricDefinition("lines", "Lines", "Lines"),
)


def _ensure_unique_keys(catalog: Iterable[MetricDefinition]) -> None:
    seen = set()
    for metric in catalog:
        if metric.key in seen:
            raise ValueError(f"Duplicate metric key in catalog: {metric.key}")
        seen.add(metric.key)


_ensure_unique_keys(SUPPORTED_METRICS)


def config_key(metric: MetricDefinition) -> str:
    return CONFIG_PREFIX + metric.key


def property_definitions(
    catalog: Iterable[MetricDefinition] = SUPPORTED_METRICS,
) -> List[PropertyDefinition]:
    """
    One boolean property per catalog metric, disabled by default.
    """
    return [
        PropertyDefinition(
            key=config_key(metric),
            name=f"Export {metric.name}",
            description=f"Export the '{metric.key}' metric: {metric.description}",
            metric_key=metric.key,
            category=PROPERTY_CATEGORY,
        )
        for metric in catalog
    ]
