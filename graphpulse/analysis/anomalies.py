"""Flag nodes whose centrality sits far from the rest of the population."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence

import numpy as np
import pandas as pd

from graphpulse.graph.centrality import CentralityReport, CentralityVector

logger = logging.getLogger(__name__)

SUPPORTED_METRICS = tuple(CentralityVector.__dataclass_fields__)
DEFAULT_METRICS = ("pagerank", "in_strength", "out_strength")


@dataclass(frozen=True)
class GraphAnomaly:
    node_id: str
    metric: str
    value: float
    score: float
    mean: float
    std: float
    direction: str  # "high" or "low"

    def to_dict(self) -> Dict[str, object]:
        return {
            "node_id": self.node_id,
            "metric": self.metric,
            "value": self.value,
            "score": self.score,
            "mean": self.mean,
            "std": self.std,
            "direction": self.direction,
        }


class AnomalyDetector:
    """Per-metric outlier detection over a :class:`CentralityReport`.

    ``zscore`` flags ``|z| >= z_threshold`` using the population standard
    deviation. ``percentile`` flags values strictly above the given
    percentile of the metric. In both modes the reported ``score`` is the
    z-score, and metrics with zero spread never flag anything.
    """

    def __init__(
        self,
        z_threshold: float = 2.5,
        metrics: Sequence[str] = DEFAULT_METRICS,
        min_population: int = 3,
        method: str = "zscore",
        percentile: float = 99.0,
    ) -> None:
        if z_threshold <= 0:
            raise ValueError("z_threshold must be positive")
        if not metrics:
            raise ValueError("at least one metric is required")
        unknown = [metric for metric in metrics if metric not in SUPPORTED_METRICS]
        if unknown:
            raise ValueError(f"unknown centrality metrics: {unknown}")
        if min_population < 2:
            raise ValueError("min_population must be at least 2")
        if method not in ("zscore", "percentile"):
            raise ValueError("method must be 'zscore' or 'percentile'")
        if not 0.0 < percentile < 100.0:
            raise ValueError("percentile must be in (0, 100)")
        self.z_threshold = z_threshold
        self.metrics = tuple(metrics)
        self.min_population = min_population
        self.method = method
        self.percentile = percentile

    def detect(self, report: CentralityReport) -> List[GraphAnomaly]:
        if len(report.metrics) < self.min_population:
            logger.debug(
                "Skipping anomaly detection: %d nodes < min_population %d",
                len(report.metrics), self.min_population,
            )
            return []

        frame = pd.DataFrame(
            {metric: report.values(metric) for metric in self.metrics},
            dtype=np.float64,
        )

        strongest: Dict[str, GraphAnomaly] = {}
        for metric in self.metrics:
            column = frame[metric]
            mean = float(column.mean())
            std = float(column.std(ddof=0))
            if std == 0 or not np.isfinite(std):
                continue

            z_scores = (column - mean) / std
            if self.method == "zscore":
                flagged = z_scores.abs() >= self.z_threshold
            else:
                cutoff = float(np.percentile(column.to_numpy(), self.percentile))
                flagged = column > cutoff

            for node_id in column.index[flagged.to_numpy()]:
                score = float(z_scores[node_id])
                candidate = GraphAnomaly(
                    node_id=node_id,
                    metric=metric,
                    value=float(column[node_id]),
                    score=score,
                    mean=mean,
                    std=std,
                    direction="high" if score >= 0 else "low",
                )
                current = strongest.get(node_id)
                if current is None or abs(candidate.score) > abs(current.score):
                    strongest[node_id] = candidate

        anomalies = sorted(strongest.values(), key=lambda a: (-abs(a.score), a.node_id))
        if anomalies:
            logger.info(
                "Flagged %d anomalous nodes out of %d (%s)",
                len(anomalies), len(report.metrics), self.method,
            )
        return anomalies
