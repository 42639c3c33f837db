"""Degree, strength and PageRank over a graph snapshot."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Mapping

import numpy as np
from scipy import sparse

from .models import GraphSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CentralityVector:
    in_degree: int
    out_degree: int
    in_strength: float
    out_strength: float
    pagerank: float

    def metric(self, name: str) -> float:
        return float(getattr(self, name))


@dataclass(frozen=True)
class CentralityReport:
    metrics: Dict[str, CentralityVector]
    total_edge_weight: float
    iterations: int = 0
    converged: bool = False
    ignored_edges: int = 0

    def values(self, metric: str) -> Dict[str, float]:
        return {node_id: vector.metric(metric) for node_id, vector in self.metrics.items()}


@dataclass(frozen=True)
class DistributionSummary:
    count: int
    total: float
    mean: float
    median: float
    minimum: float
    maximum: float
    gini: float
    entropy: float
    top_decile_share: float = field(default=0.0)


def compute_gini_coefficient(scores: Mapping[str, float]) -> float:
    """Compute Gini coefficient for distribution inequality.

    Returns:
        Gini coefficient in range [0, 1]
        - 0 = perfect equality (all nodes have same score)
        - 1 = perfect inequality (one node has all score)
    """
    if not scores:
        return 0.0

    sorted_scores = sorted(scores.values())
    n = len(sorted_scores)
    total = sum(sorted_scores)
    if total == 0:
        return 0.0

    # G = (2 * sum(i * x_i)) / (n * sum(x_i)) - (n + 1) / n
    cumsum = sum((i + 1) * score for i, score in enumerate(sorted_scores))
    return (2 * cumsum) / (n * total) - (n + 1) / n


def compute_entropy(scores: Mapping[str, float]) -> float:
    """Shannon entropy of the score distribution, in bits."""
    if not scores:
        return 0.0

    total = sum(scores.values())
    if total == 0:
        return 0.0

    probs = [v / total for v in scores.values() if v > 0]
    return -sum(p * math.log2(p) for p in probs)


def summarize_distribution(scores: Mapping[str, float]) -> DistributionSummary:
    if not scores:
        return DistributionSummary(0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    values = np.fromiter(scores.values(), dtype=np.float64)
    total = float(values.sum())
    ordered = np.sort(values)[::-1]
    top_n = max(1, int(len(ordered) * 0.10))
    return DistributionSummary(
        count=len(values),
        total=total,
        mean=float(values.mean()),
        median=float(np.median(values)),
        minimum=float(values.min()),
        maximum=float(values.max()),
        gini=compute_gini_coefficient(scores),
        entropy=compute_entropy(scores),
        top_decile_share=float(ordered[:top_n].sum() / total) if total else 0.0,
    )


class CentralityAnalyzer:
    """Weighted PageRank by power iteration plus degree/strength buckets.

    Rank mass leaking through sink nodes (zero out-strength) is not
    redistributed, and the result is not renormalized after stopping.
    """

    def __init__(self, damping: float = 0.85, iterations: int = 40, tolerance: float = 1e-6) -> None:
        if not 0.0 < damping <= 1.0:
            raise ValueError("damping must be in (0, 1]")
        if iterations < 1:
            raise ValueError("iterations must be at least 1")
        if tolerance <= 0:
            raise ValueError("tolerance must be positive")
        self.damping = damping
        self.iterations = iterations
        self.tolerance = tolerance

    def analyze(self, snapshot: GraphSnapshot) -> CentralityReport:
        node_ids = snapshot.node_ids()
        index = {node_id: i for i, node_id in enumerate(node_ids)}
        n_nodes = len(node_ids)

        in_degree = np.zeros(n_nodes, dtype=np.int64)
        out_degree = np.zeros(n_nodes, dtype=np.int64)
        in_strength = np.zeros(n_nodes, dtype=np.float64)
        out_strength = np.zeros(n_nodes, dtype=np.float64)

        sources = []
        targets = []
        weights = []
        ignored = 0
        for edge in snapshot.edges:
            source = index.get(edge.source)
            target = index.get(edge.target)
            if source is None or target is None:
                ignored += 1
                continue
            out_degree[source] += 1
            in_degree[target] += 1
            out_strength[source] += edge.weight
            in_strength[target] += edge.weight
            sources.append(source)
            targets.append(target)
            weights.append(edge.weight)

        if ignored:
            logger.debug("Ignored %d edges with endpoints outside the snapshot", ignored)

        if n_nodes == 0:
            return CentralityReport(metrics={}, total_edge_weight=0.0, ignored_edges=ignored)

        rank, iterations, converged = self._pagerank(
            n_nodes,
            np.asarray(sources, dtype=np.int64),
            np.asarray(targets, dtype=np.int64),
            np.asarray(weights, dtype=np.float64),
            out_strength,
        )

        metrics = {
            node_id: CentralityVector(
                in_degree=int(in_degree[i]),
                out_degree=int(out_degree[i]),
                in_strength=float(in_strength[i]),
                out_strength=float(out_strength[i]),
                pagerank=float(rank[i]),
            )
            for i, node_id in enumerate(node_ids)
        }

        if converged:
            logger.debug("PageRank converged after %d iterations", iterations)
        else:
            logger.warning(
                "PageRank did not reach tolerance %.2e within %d iterations (%d nodes)",
                self.tolerance, self.iterations, n_nodes,
            )

        return CentralityReport(
            metrics=metrics,
            total_edge_weight=float(sum(weights)),
            iterations=iterations,
            converged=converged,
            ignored_edges=ignored,
        )

    def _pagerank(
        self,
        n_nodes: int,
        sources: np.ndarray,
        targets: np.ndarray,
        weights: np.ndarray,
        out_strength: np.ndarray,
    ):
        # transition[t, s] = w(s->t) / out_strength(s); zero-strength sources drop out
        if sources.size:
            source_strength = out_strength[sources]
            keep = source_strength > 0
            data = weights[keep] / source_strength[keep]
            transition = sparse.csr_matrix(
                (data, (targets[keep], sources[keep])), shape=(n_nodes, n_nodes)
            )
        else:
            transition = sparse.csr_matrix((n_nodes, n_nodes), dtype=np.float64)

        teleport = (1.0 - self.damping) / n_nodes
        rank = np.full(n_nodes, 1.0 / n_nodes, dtype=np.float64)
        iterations = 0
        converged = False
        for _ in range(self.iterations):
            updated = teleport + self.damping * (transition @ rank)
            delta = float(np.abs(updated - rank).sum())
            rank = updated
            iterations += 1
            if delta < self.tolerance:
                converged = True
                break
        return rank, iterations, converged
