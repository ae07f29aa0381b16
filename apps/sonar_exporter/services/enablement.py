import logging
from typing import FrozenSet, Iterable

from ..models.metric_models import MetricDefinition
from .catalog import config_key
from .config_readers import ConfigReader

logger = logging.getLogger("sonar_exporter.enablement")


def is_enabled(metric: MetricDefinition, config_reader: ConfigReader) -> bool:
    key = config_key(metric)
    try:
        return bool(config_reader.read_boolean(key))
    except Exception as exc:
        # An unreadable flag is a disabled flag, never a failed scrape.
        logger.warning("Could not read %s, treating as disabled: %s", key, exc)
        return False


def resolve(
    catalog: Iterable[MetricDefinition],
    config_reader: ConfigReader,
) -> FrozenSet[MetricDefinition]:
    """
    Return the catalog entries whose prometheus.export.<key> flag is true.

    Must be called at the start of every scrape: flags may change between
    scrapes and nothing here is cached.
    """
    enabled = frozenset(m for m in catalog if is_enabled(m, config_reader))
    logger.debug("Enabled metrics: %s", sorted(m.key for m in enabled))
    return enabled
