"""Performance profiling utilities for the clustering pipeline.

Provides context managers for timing a pipeline run and its stages and
collecting structured performance metrics. Reports are passed explicitly to
``profile_phase`` so concurrent runs never write into each other's report.
"""
from __future__ import annotations

import logging
import threading
import time
from collections import defaultdict, deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class TimingMetric:
    """Container for a single timing measurement."""

    name: str
    duration_ms: float
    timestamp: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        meta_str = ", ".join(f"{k}={v}" for k, v in self.metadata.items()) if self.metadata else ""
        return f"{self.name}: {self.duration_ms:.2f}ms" + (f" ({meta_str})" if meta_str else "")


@dataclass
class PerformanceReport:
    """Aggregated performance metrics for a complete operation."""

    operation: str
    total_duration_ms: float = 0.0
    phases: List[TimingMetric] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def add_phase(self, phase: TimingMetric) -> None:
        self.phases.append(phase)

    def get_phase_breakdown(self) -> Dict[str, float]:
        """Get percentage breakdown of time spent in each phase."""
        if self.total_duration_ms == 0:
            return {}
        return {
            phase.name: (phase.duration_ms / self.total_duration_ms) * 100
            for phase in self.phases
        }

    def format_report(self, verbose: bool = False) -> str:
        """Format the performance report as a readable string."""
        lines = [
            f"\n{'=' * 60}",
            f"PERFORMANCE REPORT: {self.operation}",
            f"{'=' * 60}",
            f"Total Duration: {self.total_duration_ms:.2f}ms ({self.total_duration_ms / 1000:.3f}s)",
        ]

        if self.metadata:
            lines.append("\nMetadata:")
            for key, value in self.metadata.items():
                lines.append(f"  {key}: {value}")

        if self.phases:
            lines.append("\nPhase Breakdown:")
            breakdown = self.get_phase_breakdown()
            for phase in sorted(self.phases, key=lambda p: p.duration_ms, reverse=True):
                pct = breakdown.get(phase.name, 0)
                lines.append(f"  [{pct:5.1f}%] {phase.name}: {phase.duration_ms:.2f}ms")
                if verbose and phase.metadata:
                    for key, value in phase.metadata.items():
                        lines.append(f"         {key}: {value}")

        lines.append("=" * 60)
        return "\n".join(lines)


DEFAULT_MAX_REPORTS = 256


class PerformanceProfiler:
    """Process-wide collector of finished performance reports.

    Only the newest ``max_reports`` reports are retained.
    """

    _enabled = True

    def __init__(self, max_reports: int = DEFAULT_MAX_REPORTS) -> None:
        if max_reports < 1:
            raise ValueError("max_reports must be at least 1")
        self._reports: Deque[PerformanceReport] = deque(maxlen=max_reports)
        self._lock = threading.Lock()

    @property
    def max_reports(self) -> int:
        return self._reports.maxlen

    @classmethod
    def enable(cls) -> None:
        cls._enabled = True

    @classmethod
    def disable(cls) -> None:
        cls._enabled = False

    @classmethod
    def is_enabled(cls) -> bool:
        return cls._enabled

    def record(self, report: PerformanceReport) -> None:
        with self._lock:
            self._reports.append(report)

    def get_all_reports(self) -> List[PerformanceReport]:
        with self._lock:
            return list(self._reports)

    def clear_reports(self) -> None:
        with self._lock:
            self._reports.clear()

    def get_summary(self) -> Dict[str, Dict[str, float]]:
        """Get aggregated summary statistics per operation."""
        by_operation: Dict[str, List[float]] = defaultdict(list)
        for report in self.get_all_reports():
            by_operation[report.operation].append(report.total_duration_ms)

        summary = {}
        for operation, durations in by_operation.items():
            summary[operation] = {
                "count": len(durations),
                "total_ms": sum(durations),
                "avg_ms": sum(durations) / len(durations),
                "min_ms": min(durations),
                "max_ms": max(durations),
            }
        return summary


# Global profiler instance
_profiler = PerformanceProfiler()


def get_profiler() -> PerformanceProfiler:
    """Get the global profiler instance."""
    return _profiler


@contextmanager
def profile_operation(
    operation: str,
    metadata: Optional[Dict[str, Any]] = None,
    verbose: bool = False,
) -> Iterator[Optional[PerformanceReport]]:
    """Context manager for profiling a complete operation.

    Usage:
        with profile_operation("graph_clustering_run", {"users": 10}) as report:
            with profile_phase("assemble_snapshot", report):
                ...
    """
    if not PerformanceProfiler.is_enabled():
        yield None
        return

    report = PerformanceReport(operation=operation, metadata=dict(metadata or {}))
    start_time = time.perf_counter()
    try:
        yield report
    finally:
        report.total_duration_ms = (time.perf_counter() - start_time) * 1000
        _profiler.record(report)
        if verbose:
            logger.info(report.format_report())


@contextmanager
def profile_phase(
    phase_name: str,
    report: Optional[PerformanceReport] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Iterator[None]:
    """Context manager for profiling a phase within an operation."""
    if not PerformanceProfiler.is_enabled():
        yield
        return

    start_time = time.perf_counter()
    try:
        yield
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000
        metric = TimingMetric(
            name=phase_name,
            duration_ms=duration_ms,
            timestamp=time.time(),
            metadata=dict(metadata or {}),
        )
        if report is not None:
            report.add_phase(metric)
        logger.debug("Phase [%s]: %.2fms", phase_name, duration_ms)
