"""
Tests for the full scrape cycle.
"""

import threading

import pytest

from apps.sonar_exporter.models.metric_models import Project
from apps.sonar_exporter.services.catalog import CONFIG_PREFIX, SUPPORTED_METRICS
from apps.sonar_exporter.services.exporter_service import ExporterService
from apps.sonar_exporter.services.config_readers import StaticConfigReader
from apps.sonar_exporter.utils.sonar_client import UpstreamError

from conftest import FakeSonarClient


def _enable(reader, *keys):
    for key in keys:
        reader.values[CONFIG_PREFIX + key] = True


class TestScrape:

    def test_bugs_scenario(self, exporter, config_reader, sonar_client):
        _enable(config_reader, "bugs")
        sonar_client.measures = {"p1": {"bugs": "15"}}

        body = exporter.scrape().decode()

        assert 'sonarqube_bugs{key="p1",name="Proj One",severity="ALL"} 15.0' in body

    def test_alert_status_scenario(self, exporter, config_reader, sonar_client):
        _enable(config_reader, "alert_status")
        sonar_client.measures = {"p1": {"alert_status": "WARN"}}

        exporter.scrape()

        assert exporter.registry.sample("alert_status", ("p1", "Proj One", "ALL")) == 2.0

    def test_nothing_enabled_skips_sonarqube(self, exporter, sonar_client):
        assert exporter.scrape() == b""
        assert sonar_client.list_calls == 0
        assert sonar_client.fetch_calls == []

    def test_only_enabled_keys_are_requested(self, exporter, config_reader, sonar_client):
        _enable(config_reader, "bugs", "coverage")
        exporter.scrape()
        assert sonar_client.fetch_calls == [("p1", {"bugs", "coverage"})]

    def test_unrequested_key_in_response_gets_dynamic_series(self, exporter, config_reader, sonar_client):
        _enable(config_reader, "bugs")
        sonar_client.measures = {"p1": {"bugs": "15"}}
        sonar_client.extra = {"p1": {"blocker_violations": "4"}}

        body = exporter.scrape().decode()

        assert 'sonarqube_blocker_violations{key="p1",name="Proj One",severity="BLOCKER"} 4.0' in body

    def test_disabled_metric_has_no_series(self, exporter, config_reader, sonar_client):
        _enable(config_reader, "bugs", "coverage")
        sonar_client.measures = {"p1": {"bugs": "1", "coverage": "80.0"}}
        exporter.scrape()
        assert exporter.registry.series_keys() == ["bugs", "coverage"]

        config_reader.values[CONFIG_PREFIX + "coverage"] = False
        body = exporter.scrape().decode()

        assert exporter.registry.series_keys() == ["bugs"]
        assert "sonarqube_coverage" not in body

    def test_every_catalog_metric_disabled_means_no_series(self, exporter, config_reader):
        for metric in SUPPORTED_METRICS:
            config_reader.values[CONFIG_PREFIX + metric.key] = False
        exporter.scrape()
        assert exporter.registry.series_keys() == []

    def test_dynamic_series_do_not_survive_next_scrape(self, exporter, config_reader, sonar_client):
        _enable(config_reader, "bugs")
        sonar_client.extra = {"p1": {"blocker_violations": "4"}}
        exporter.scrape()
        assert exporter.registry.has_series("blocker_violations")

        sonar_client.extra = {}
        exporter.scrape()
        assert not exporter.registry.has_series("blocker_violations")

    def test_multiple_projects(self, config_reader):
        client = FakeSonarClient(
            projects=[Project(key="p1", name="One"), Project(key="p2", name="Two")],
            measures={"p1": {"ncloc": "100"}, "p2": {"ncloc": "oops"}},
        )
        exporter = ExporterService(config_reader=config_reader, client=client)
        _enable(config_reader, "ncloc")

        exporter.scrape()

        assert exporter.registry.sample("ncloc", ("p1", "One", "ALL")) == 100.0
        assert exporter.registry.sample("ncloc", ("p2", "Two", "ALL")) == 0.0

    def test_upstream_failure_propagates(self, config_reader):
        exporter = ExporterService(config_reader=config_reader, client=FakeSonarClient(fail=True))
        _enable(config_reader, "bugs")
        with pytest.raises(UpstreamError):
            exporter.scrape()

    def test_concurrent_scrapes_are_serialized(self, config_reader, sonar_client):
        active = []
        overlaps = []
        original = sonar_client.list_projects

        def slow_list_projects():
            active.append(1)
            if len(active) > 1:
                overlaps.append(True)
            threading.Event().wait(0.05)
            active.pop()
            return original()

        sonar_client.list_projects = slow_list_projects
        exporter = ExporterService(config_reader=config_reader, client=sonar_client)
        _enable(config_reader, "bugs")

        threads = [threading.Thread(target=exporter.scrape) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlaps == []


class TestProperties:

    def test_lists_every_flag_with_current_value(self):
        reader = StaticConfigReader({CONFIG_PREFIX + "bugs": "true"})
        exporter = ExporterService(config_reader=reader, client=FakeSonarClient())

        props = {p.key: p for p in exporter.properties()}

        assert len(props) == len(SUPPORTED_METRICS)
        assert props[CONFIG_PREFIX + "bugs"].enabled is True
        assert props[CONFIG_PREFIX + "bugs"].metric == "bugs"
        assert props[CONFIG_PREFIX + "lines"].enabled is False
