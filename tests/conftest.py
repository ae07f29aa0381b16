"""
Pytest configuration and fixtures for exporter tests.
"""

from typing import Dict, Iterable, List, Optional

import pytest
from fastapi.testclient import TestClient

from apps.sonar_exporter.app import create_app
from apps.sonar_exporter.config import Settings
from apps.sonar_exporter.models.metric_models import Measure, Project
from apps.sonar_exporter.services.config_readers import StaticConfigReader
from apps.sonar_exporter.services.exporter_service import ExporterService
from apps.sonar_exporter.utils.sonar_client import UpstreamError


class FakeSonarClient:
    """
    In-memory stand-in for SonarClient.

    `measures` maps project key -> {metric key: raw value}. Only requested
    keys are returned, plus everything listed in `extra` (keys SonarQube
    reports although nobody asked for them).
    """

    def __init__(
        self,
        projects: Optional[List[Project]] = None,
        measures: Optional[Dict[str, Dict[str, Optional[str]]]] = None,
        extra: Optional[Dict[str, Dict[str, Optional[str]]]] = None,
        fail: bool = False,
    ) -> None:
        self.projects = projects or []
        self.measures = measures or {}
        self.extra = extra or {}
        self.fail = fail
        self.list_calls = 0
        self.fetch_calls: List[tuple] = []

    def list_projects(self) -> List[Project]:
        self.list_calls += 1
        if self.fail:
            raise UpstreamError("SonarQube unreachable")
        return list(self.projects)

    def fetch_measures(self, project_key: str, metric_keys: Iterable[str]) -> List[Measure]:
        keys = set(metric_keys)
        self.fetch_calls.append((project_key, keys))
        values = self.measures.get(project_key, {})
        result = [
            Measure(metric=key, value=value)
            for key, value in values.items()
            if key in keys
        ]
        result.extend(
            Measure(metric=key, value=value)
            for key, value in self.extra.get(project_key, {}).items()
        )
        return result


@pytest.fixture
def project():
    return Project(key="p1", name="Proj One")


@pytest.fixture
def config_reader():
    return StaticConfigReader()


@pytest.fixture
def sonar_client(project):
    return FakeSonarClient(projects=[project])


@pytest.fixture
def exporter(config_reader, sonar_client):
    return ExporterService(config_reader=config_reader, client=sonar_client)


@pytest.fixture
def settings():
    return Settings(otel_enabled=False, sonar_url="http://sonar.test")


@pytest.fixture
def client(settings, exporter):
    """
    Test client wired to the fake SonarQube client, without OTEL or
    self-instrumentation.
    """
    app = create_app(settings=settings, exporter=exporter, instrument=False)
    with TestClient(app) as test_client:
        yield test_client
