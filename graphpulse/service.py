"""Orchestrates snapshot assembly and every analytics stage in one run."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from graphpulse.analysis.anomalies import AnomalyDetector, GraphAnomaly
from graphpulse.analysis.trends import CommunityTrendSummary, TrendPredictor
from graphpulse.cache import InMemorySnapshotCache, SnapshotCache, snapshot_cache_key
from graphpulse.clustering.hierarchical import HierarchicalClusterer, HierarchicalResult
from graphpulse.clustering.label_propagation import LabelPropagationClusterer, LabelPropagationResult
from graphpulse.clustering.louvain import LouvainCommunityDetector, LouvainResult
from graphpulse.config import AnalyticsSettings, get_analytics_settings
from graphpulse.graph.builder import GraphAssembler
from graphpulse.graph.centrality import CentralityAnalyzer, CentralityReport, summarize_distribution
from graphpulse.graph.entities import GraphAssemblyInput
from graphpulse.graph.models import GraphSnapshot
from graphpulse.performance_profiler import profile_operation, profile_phase

logger = logging.getLogger(__name__)


@runtime_checkable
class GraphDataSource(Protocol):
    """Upstream loader returning the raw entities for a time window."""

    def load_window(self, start: datetime, end: datetime) -> GraphAssemblyInput:
        ...


@dataclass(frozen=True)
class GraphClusteringOutcome:
    snapshot: GraphSnapshot
    louvain: LouvainResult
    label_propagation: LabelPropagationResult
    hierarchy: HierarchicalResult
    centrality: CentralityReport
    anomalies: List[GraphAnomaly]
    trends: List[CommunityTrendSummary]

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view for API layers and dashboards."""
        return {
            "snapshot": self.snapshot.to_dict(),
            "louvain": {
                "assignments": dict(self.louvain.assignments),
                "communities": {k: list(v) for k, v in self.louvain.communities.items()},
                "modularity": self.louvain.modularity,
                "iterations": self.louvain.iterations,
            },
            "label_propagation": {
                "assignments": dict(self.label_propagation.assignments),
                "communities": {k: list(v) for k, v in self.label_propagation.communities.items()},
                "modularity": self.label_propagation.modularity,
            },
            "hierarchy": {
                "community_ids": list(self.hierarchy.community_ids),
                "merges": [
                    {
                        "cluster_id": merge.cluster_id,
                        "left": merge.left,
                        "right": merge.right,
                        "distance": merge.distance,
                        "size": merge.size,
                        "members": list(merge.members),
                    }
                    for merge in self.hierarchy.merges
                ],
                "levels": [
                    {
                        "n_clusters": level.n_clusters,
                        "community_assignments": dict(level.community_assignments),
                    }
                    for level in self.hierarchy.levels
                ],
            },
            "centrality": {
                "total_edge_weight": self.centrality.total_edge_weight,
                "iterations": self.centrality.iterations,
                "converged": self.centrality.converged,
                "metrics": {
                    node_id: {
                        "in_degree": vector.in_degree,
                        "out_degree": vector.out_degree,
                        "in_strength": vector.in_strength,
                        "out_strength": vector.out_strength,
                        "pagerank": vector.pagerank,
                    }
                    for node_id, vector in self.centrality.metrics.items()
                },
            },
            "anomalies": [anomaly.to_dict() for anomaly in self.anomalies],
            "trends": [trend.to_dict() for trend in self.trends],
        }


class GraphClusteringService:
    """Runs assembly, clustering, centrality, anomalies and trends in order.

    Stages are not isolated from each other: any exception (including a
    failing cache write) propagates and no partial outcome is returned.
    """

    def __init__(
        self,
        assembler: Optional[GraphAssembler] = None,
        louvain: Optional[LouvainCommunityDetector] = None,
        label_propagation: Optional[LabelPropagationClusterer] = None,
        hierarchical: Optional[HierarchicalClusterer] = None,
        centrality: Optional[CentralityAnalyzer] = None,
        anomaly_detector: Optional[AnomalyDetector] = None,
        trend_predictor: Optional[TrendPredictor] = None,
        cache: Optional[SnapshotCache] = None,
        source: Optional[GraphDataSource] = None,
    ) -> None:
        self.assembler = assembler or GraphAssembler()
        self.louvain = louvain or LouvainCommunityDetector()
        self.label_propagation = label_propagation or LabelPropagationClusterer()
        self.hierarchical = hierarchical or HierarchicalClusterer()
        self.centrality = centrality or CentralityAnalyzer()
        self.anomaly_detector = anomaly_detector or AnomalyDetector()
        self.trend_predictor = trend_predictor or TrendPredictor()
        self.cache = cache
        self.source = source

    @classmethod
    def from_settings(
        cls,
        settings: Optional[AnalyticsSettings] = None,
        *,
        cache: Optional[SnapshotCache] = None,
        source: Optional[GraphDataSource] = None,
    ) -> "GraphClusteringService":
        """Build every component from environment-driven settings.

        When no cache is passed an :class:`InMemorySnapshotCache` sized from
        the settings is attached.
        """
        settings = settings or get_analytics_settings()
        if cache is None:
            cache = InMemorySnapshotCache(
                max_size=settings.snapshot_cache_size,
                ttl_seconds=settings.snapshot_cache_ttl_seconds,
            )
        return cls(
            assembler=GraphAssembler(settings.edge_weight_overrides),
            louvain=LouvainCommunityDetector(
                max_passes=settings.louvain_max_passes,
                resolution=settings.louvain_resolution,
                min_gain=settings.louvain_min_gain,
            ),
            label_propagation=LabelPropagationClusterer(
                seed=settings.label_propagation_seed,
            ),
            centrality=CentralityAnalyzer(
                damping=settings.pagerank_damping,
                iterations=settings.pagerank_iterations,
                tolerance=settings.pagerank_tolerance,
            ),
            anomaly_detector=AnomalyDetector(z_threshold=settings.anomaly_z_threshold),
            trend_predictor=TrendPredictor(
                recent_window_hours=settings.trend_recent_window_hours,
                lookback_window_hours=settings.trend_lookback_window_hours,
                minimum_weight=settings.trend_minimum_weight,
            ),
            cache=cache,
            source=source,
        )

    def run(
        self,
        assembly_input: GraphAssemblyInput,
        *,
        cache_key: Optional[str] = None,
        evaluation_time: Optional[datetime] = None,
        persist_snapshot: bool = False,
    ) -> GraphClusteringOutcome:
        with profile_operation("graph_clustering_run", assembly_input.counts()) as report:
            with profile_phase("assemble_snapshot", report):
                snapshot = self.assembler.assemble(assembly_input, evaluation_time, report)

            if persist_snapshot and self.cache is not None:
                key = cache_key or snapshot_cache_key(snapshot)
                with profile_phase("persist_snapshot", report, {"key": key}):
                    self.cache.store(key, snapshot)
            elif persist_snapshot:
                logger.debug("persist_snapshot requested but no cache is configured")

            with profile_phase("louvain", report):
                louvain = self.louvain.run(snapshot)
            with profile_phase("label_propagation", report):
                label_propagation = self.label_propagation.run(snapshot)
            with profile_phase("hierarchy", report):
                hierarchy = self.hierarchical.run(snapshot, louvain.assignments)
            with profile_phase("centrality", report):
                centrality = self.centrality.analyze(snapshot)
            with profile_phase("anomalies", report):
                anomalies = self.anomaly_detector.detect(centrality)
            with profile_phase("trends", report):
                # always the snapshot's own time, even when evaluation_time was overridden
                trends = self.trend_predictor.evaluate_communities(
                    snapshot, louvain.assignments, snapshot.generated_at
                )

        pagerank = summarize_distribution(centrality.values("pagerank"))
        logger.info(
            "Clustering run: %d nodes, %d edges, %d louvain communities (Q=%.6f), "
            "%d label communities, %d anomalies, pagerank gini=%.3f",
            len(snapshot.nodes),
            len(snapshot.edges),
            louvain.community_count,
            louvain.modularity,
            label_propagation.community_count,
            len(anomalies),
            pagerank.gini,
        )

        return GraphClusteringOutcome(
            snapshot=snapshot,
            louvain=louvain,
            label_propagation=label_propagation,
            hierarchy=hierarchy,
            centrality=centrality,
            anomalies=anomalies,
            trends=trends,
        )

    def run_window(self, start: datetime, end: datetime, **options: Any) -> GraphClusteringOutcome:
        """Load ``[start, end]`` from the configured source, then :meth:`run`."""
        if self.source is None:
            raise RuntimeError("GraphClusteringService has no data source configured")
        if end < start:
            raise ValueError("window end must not precede its start")
        logger.info("Loading graph window %s .. %s", start.isoformat(), end.isoformat())
        assembly_input = self.source.load_window(start, end)
        options.setdefault("evaluation_time", assembly_input.evaluation_time or end)
        return self.run(assembly_input, **options)
