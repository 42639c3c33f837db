"""Tests for centrality anomaly detection."""
from __future__ import annotations

import pytest

from graphpulse.analysis import AnomalyDetector
from graphpulse.graph.centrality import CentralityReport, CentralityVector


def _report(rows):
    """rows: node_id -> (pagerank, in_strength, out_strength)"""
    metrics = {
        node_id: CentralityVector(
            in_degree=1,
            out_degree=1,
            in_strength=in_strength,
            out_strength=out_strength,
            pagerank=pagerank,
        )
        for node_id, (pagerank, in_strength, out_strength) in rows.items()
    }
    return CentralityReport(metrics=metrics, total_edge_weight=0.0)


@pytest.fixture
def hub_report():
    rows = {f"n{i}": (0.05, 1.0, 1.0) for i in range(9)}
    rows["hub"] = (0.55, 20.0, 1.0)
    return _report(rows)


@pytest.mark.unit
def test_single_outlier_is_flagged_once(hub_report):
    anomalies = AnomalyDetector().detect(hub_report)

    assert [a.node_id for a in anomalies] == ["hub"]
    hub = anomalies[0]
    # one outlier among ten equal values sits exactly three std above the mean
    assert hub.score == pytest.approx(3.0)
    assert hub.direction == "high"
    assert hub.metric in ("pagerank", "in_strength")


@pytest.mark.unit
def test_strongest_metric_is_reported():
    rows = {f"n{i}": (0.1, 1.0, 1.0) for i in range(8)}
    rows["hub"] = (0.1, 50.0, 1.0)
    rows["odd"] = (0.1, 1.0, 9.0)
    rows["rank"] = (0.9, 1.0, 1.0)
    anomalies = AnomalyDetector(z_threshold=2.0).detect(_report(rows))

    by_node = {a.node_id: a for a in anomalies}
    assert by_node["hub"].metric == "in_strength"
    assert by_node["odd"].metric == "out_strength"
    assert by_node["rank"].metric == "pagerank"
    assert all(abs(a.score) >= 2.0 for a in anomalies)


@pytest.mark.unit
def test_low_outliers_have_negative_direction():
    rows = {f"n{i}": (0.1, 10.0, 1.0) for i in range(9)}
    rows["quiet"] = (0.1, 0.0, 1.0)
    anomalies = AnomalyDetector(metrics=("in_strength",)).detect(_report(rows))

    assert anomalies[0].node_id == "quiet"
    assert anomalies[0].direction == "low"
    assert anomalies[0].score == pytest.approx(-3.0)


@pytest.mark.unit
def test_uniform_population_has_no_anomalies():
    rows = {f"n{i}": (0.1, 1.0, 1.0) for i in range(10)}
    assert AnomalyDetector().detect(_report(rows)) == []


@pytest.mark.unit
def test_small_population_is_skipped():
    rows = {"a": (0.1, 1.0, 1.0), "b": (0.9, 50.0, 1.0)}
    assert AnomalyDetector(min_population=3).detect(_report(rows)) == []


@pytest.mark.unit
def test_percentile_mode_flags_top_values():
    rows = {f"n{i:02d}": (0.01 * i, 1.0, 1.0) for i in range(20)}
    detector = AnomalyDetector(method="percentile", percentile=90.0, metrics=("pagerank",))
    anomalies = detector.detect(_report(rows))

    assert [a.node_id for a in anomalies] == ["n19", "n18"]
    assert all(a.direction == "high" for a in anomalies)


@pytest.mark.unit
def test_results_sort_by_score_then_node_id():
    rows = {f"n{i}": (0.1, 1.0, 1.0) for i in range(8)}
    rows["b"] = (0.1, 9.0, 1.0)
    rows["a"] = (0.1, 9.0, 1.0)
    anomalies = AnomalyDetector(z_threshold=1.5, metrics=("in_strength",)).detect(_report(rows))

    assert [a.node_id for a in anomalies] == ["a", "b"]


@pytest.mark.unit
@pytest.mark.parametrize(
    "kwargs",
    [
        {"z_threshold": 0},
        {"metrics": ()},
        {"metrics": ("betweenness",)},
        {"min_population": 1},
        {"method": "iqr"},
        {"percentile": 100.0},
    ],
)
def test_invalid_parameters_raise(kwargs):
    with pytest.raises(ValueError):
        AnomalyDetector(**kwargs)


@pytest.mark.unit
def test_anomaly_to_dict(hub_report):
    payload = AnomalyDetector().detect(hub_report)[0].to_dict()
    assert payload["node_id"] == "hub"
    assert set(payload) == {"node_id", "metric", "value", "score", "mean", "std", "direction"}
