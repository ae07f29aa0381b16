"""
Boolean configuration lookup for the prometheus.export.* flags.

Every reader answers `read_boolean(key)` with False when the key is unset,
so "unset" and "false" are indistinguishable to callers. Readers are asked
again on every scrape; none of them caches values across file changes.
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Dict, Mapping, Optional

logger = logging.getLogger("sonar_exporter.config")

TRUE_VALUES = ("1", "true", "yes", "y")


def parse_bool(raw: Optional[str]) -> bool:
    if raw is None:
        return False
    return raw.strip().lower() in TRUE_VALUES


class ConfigReader:
    """
    Base reader. Subclasses implement `lookup` and return None for unset keys.
    """

    def lookup(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def read_boolean(self, key: str) -> bool:
        return parse_bool(self.lookup(key))


class StaticConfigReader(ConfigReader):
    """In-memory flags; handy for embedding and tests."""

    def __init__(self, values: Optional[Mapping[str, object]] = None) -> None:
        self.values: Dict[str, object] = dict(values or {})

    def lookup(self, key: str) -> Optional[str]:
        value = self.values.get(key)
        if value is None:
            return None
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)


class EnvConfigReader(ConfigReader):
    """
    Reads flags from the process environment at call time.

    prometheus.export.code_smells -> PROMETHEUS_EXPORT_CODE_SMELLS
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None) -> None:
        self._environ = environ

    @staticmethod
    def env_name(key: str) -> str:
        return key.replace(".", "_").replace("-", "_").upper()

    def lookup(self, key: str) -> Optional[str]:
        environ = self._environ if self._environ is not None else os.environ
        return environ.get(self.env_name(key))


class PropertiesFileConfigReader(ConfigReader):
    """
    SonarQube-style properties file (key=value, '#' and '!' comments).

    The file is parsed again whenever its mtime changes, so flags can be
    flipped on a running exporter. A missing file means every key is unset.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._mtime: Optional[float] = None
        self._values: Dict[str, str] = {}

    @staticmethod
    def parse(text: str) -> Dict[str, str]:
        values: Dict[str, str] = {}
        for raw_line in text.splitlines():
            line = raw_line.strip()
            if not line or line.startswith(("#", "!")):
                continue

            sep_positions = [p for p in (line.find("="), line.find(":")) if p >= 0]
            if not sep_positions:
                # bare key, Java properties treat it as an empty value
                values[line] = ""
                continue

            sep = min(sep_positions)
            values[line[:sep].strip()] = line[sep + 1:].strip()
        return values

    def _reload_if_changed(self) -> None:
        try:
            mtime = os.path.getmtime(self.path)
        except FileNotFoundError:
            if self._mtime is not None:
                logger.info("Properties file %s disappeared, all flags unset", self.path)
            self._mtime = None
            self._values = {}
            return

        if mtime == self._mtime:
            return

        with open(self.path, "r", encoding="utf-8") as f:
            self._values = self.parse(f.read())
        self._mtime = mtime
        logger.info("Loaded %d properties from %s", len(self._values), self.path)

    def lookup(self, key: str) -> Optional[str]:
        with self._lock:
            self._reload_if_changed()
            return self._values.get(key)


class LayeredConfigReader(ConfigReader):
    """
    First reader holding an explicit value wins (e.g. environment over file).
    """

    def __init__(self, *readers: ConfigReader) -> None:
        self.readers = readers

    def lookup(self, key: str) -> Optional[str]:
        for reader in self.readers:
            value = reader.lookup(key)
            if value is not None:
                return value
        return None


def build_config_reader(properties_file: Optional[str] = None) -> ConfigReader:
    """
    Default reader stack: environment variables, then the optional file.
    """
    if properties_file:
        return LayeredConfigReader(EnvConfigReader(), PropertiesFileConfigReader(properties_file))
    return EnvConfigReader()
