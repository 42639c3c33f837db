"""Tests for the pipeline profiling context managers."""
from __future__ import annotations

import pytest

from graphpulse.performance_profiler import (
    DEFAULT_MAX_REPORTS,
    PerformanceProfiler,
    PerformanceReport,
    TimingMetric,
    get_profiler,
    profile_operation,
    profile_phase,
)


@pytest.fixture(autouse=True)
def clean_profiler():
    PerformanceProfiler.enable()
    get_profiler().clear_reports()
    yield
    PerformanceProfiler.enable()
    get_profiler().clear_reports()


@pytest.mark.unit
def test_operation_collects_phases_in_order():
    with profile_operation("graph_clustering_run", {"users": 3}) as report:
        with profile_phase("assemble_snapshot", report):
            pass
        with profile_phase("louvain", report, {"nodes": 3}):
            pass

    assert [phase.name for phase in report.phases] == ["assemble_snapshot", "louvain"]
    assert report.phases[1].metadata == {"nodes": 3}
    assert report.metadata == {"users": 3}
    assert report.total_duration_ms >= 0
    assert get_profiler().get_all_reports() == [report]


@pytest.mark.unit
def test_report_is_recorded_even_when_the_block_raises():
    with pytest.raises(RuntimeError):
        with profile_operation("failing_run") as report:
            with profile_phase("cache_write", report):
                raise RuntimeError("cache down")

    recorded = get_profiler().get_all_reports()
    assert len(recorded) == 1
    assert recorded[0].phases[0].name == "cache_write"


@pytest.mark.unit
def test_disabled_profiler_yields_none():
    PerformanceProfiler.disable()
    with profile_operation("quiet") as report:
        with profile_phase("stage", report):
            pass

    assert report is None
    assert get_profiler().get_all_reports() == []


@pytest.mark.unit
def test_summary_aggregates_by_operation():
    profiler = get_profiler()
    profiler.record(PerformanceReport(operation="run", total_duration_ms=10.0))
    profiler.record(PerformanceReport(operation="run", total_duration_ms=30.0))
    profiler.record(PerformanceReport(operation="window", total_duration_ms=5.0))

    summary = profiler.get_summary()
    assert summary["run"]["count"] == 2
    assert summary["run"]["avg_ms"] == pytest.approx(20.0)
    assert summary["run"]["max_ms"] == pytest.approx(30.0)
    assert summary["window"]["total_ms"] == pytest.approx(5.0)


@pytest.mark.unit
def test_phase_breakdown_and_formatting():
    report = PerformanceReport(operation="run", total_duration_ms=100.0)
    report.add_phase(TimingMetric(name="louvain", duration_ms=25.0, timestamp=0.0))
    report.add_phase(TimingMetric(name="centrality", duration_ms=75.0, timestamp=0.0))

    assert report.get_phase_breakdown() == {"louvain": 25.0, "centrality": 75.0}
    text = report.format_report()
    assert "PERFORMANCE REPORT: run" in text
    assert "louvain" in text


@pytest.mark.unit
def test_retention_keeps_only_newest_reports():
    profiler = PerformanceProfiler(max_reports=3)
    for index in range(10):
        profiler.record(PerformanceReport(operation=f"run-{index}", total_duration_ms=1.0))

    assert profiler.max_reports == 3
    assert [r.operation for r in profiler.get_all_reports()] == ["run-7", "run-8", "run-9"]


@pytest.mark.unit
def test_global_profiler_is_bounded():
    assert get_profiler().max_reports == DEFAULT_MAX_REPORTS


@pytest.mark.unit
def test_invalid_retention():
    with pytest.raises(ValueError):
        PerformanceProfiler(max_reports=0)
