"""Tests for probe factories and record conditions."""

from unittest.mock import Mock

import pytest

from efkcheck.probes import (
    collector_ready,
    deployment_ready_probe,
    index_pattern_probe,
    index_pattern_with_id,
    log_records_probe,
    namespace_ready_probe,
    pod_log_probe,
    pods_ready_probe,
    records_matching,
)
from efkcheck.search import IndexPattern, LogRecord
from tests.fixtures.sample_data import CAT_INDICES, HOST, INDEX_PATTERN

pytestmark = pytest.mark.unit


class TestClusterProbes:
    """Tests for kubectl-backed probes."""

    def test_deployment_ready_probe(self):
        kubectl = Mock()
        kubectl.is_deployment_ready.return_value = True

        probe = deployment_ready_probe(kubectl, "efk", "release=efk")

        assert probe() is True
        kubectl.is_deployment_ready.assert_called_once_with("efk", "release=efk")

    def test_pods_ready_probe(self):
        kubectl = Mock()
        kubectl.are_pods_ready.return_value = False

        assert pods_ready_probe(kubectl, "efk", "release=r")() is False

    def test_namespace_ready_probe(self):
        kubectl = Mock()
        kubectl.resource_exists.return_value = True

        probe = namespace_ready_probe(kubectl, "efk", "coherence-internal-config")

        assert probe() is True
        kubectl.resource_exists.assert_called_once_with(
            "configmap", "coherence-internal-config", "efk"
        )

    def test_pod_log_probe_reads_fresh_each_call(self):
        kubectl = Mock()
        kubectl.get_pod_log.side_effect = [["starting"], ["starting", "Started"]]

        probe = pod_log_probe(kubectl, "efk", "pod-0", "coherence")

        assert probe() == ["starting"]
        assert probe() == ["starting", "Started"]
        kubectl.get_pod_log.assert_called_with("efk", "pod-0", "coherence")


class TestSearchProbes:
    """Tests for search and dashboard probes."""

    def test_collector_ready(self):
        search = Mock()
        search.cat_indices.return_value = CAT_INDICES.splitlines()

        assert collector_ready(search, "coherence")() is True
        assert collector_ready(search, "cloud")() is False

    def test_log_records_probe_resolves_index_per_call(self):
        """Test that the index is looked up on every attempt."""
        search = Mock()
        search.query_records.return_value = []
        resolve = Mock(side_effect=["idx-1", "idx-2"])

        probe = log_records_probe(search, resolve, "log", ["Started"], "host", HOST)
        probe()
        probe()

        assert resolve.call_count == 2
        search.query_records.assert_called_with("idx-2", "log", ["Started"], "host", HOST)

    def test_log_records_probe_propagates_resolution_error(self):
        probe = log_records_probe(
            Mock(), Mock(side_effect=AssertionError("no index")), "log", ["x"], "host", HOST
        )

        with pytest.raises(AssertionError):
            probe()

    def test_index_pattern_probe(self):
        dashboard = Mock()
        dashboard.get_index_pattern.return_value = None

        assert index_pattern_probe(dashboard, "cloud-*")() is None
        dashboard.get_index_pattern.assert_called_once_with("cloud-*")


class TestRecordsMatching:
    """Tests for the records_matching condition."""

    def test_matches_second_keyword(self):
        condition = records_matching(HOST, ["myrole", "OracleCoherenceK8sCoherenceClusterProbe"])
        records = [LogRecord(f"{HOST}-0", "OracleCoherenceK8sCoherenceClusterProbe")]

        assert condition(records)

    def test_requires_host(self):
        condition = records_matching(HOST, ["myrole"])

        assert not condition([LogRecord("other-release-coherence-0", "myrole")])

    def test_empty_and_none(self):
        condition = records_matching(HOST, ["myrole"])

        assert not condition([])
        assert not condition(None)

    def test_empty_keywords_rejected(self):
        with pytest.raises(ValueError):
            records_matching(HOST, [])


class TestIndexPatternWithId:
    def test_matches(self):
        pattern = IndexPattern.model_validate(INDEX_PATTERN)

        assert index_pattern_with_id(INDEX_PATTERN["id"])(pattern)
        assert not index_pattern_with_id("other")(pattern)
        assert not index_pattern_with_id("other")(None)
