"""Assemble raw entities into an immutable graph snapshot."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Mapping, Optional

from graphpulse.performance_profiler import PerformanceReport, profile_phase

from .edges import EdgeCalculator
from .entities import GraphAssemblyInput, as_integer, ensure_utc
from .models import GraphSnapshot
from .registry import NodeRegistry

logger = logging.getLogger(__name__)


class GraphAssembler:
    """Node registry ingestion followed by edge calculation."""

    def __init__(self, edge_weights: Optional[Mapping[object, object]] = None) -> None:
        self.edge_calculator = EdgeCalculator(edge_weights)

    def assemble(
        self,
        assembly_input: GraphAssemblyInput,
        evaluation_time: Optional[datetime] = None,
        report: Optional[PerformanceReport] = None,
    ) -> GraphSnapshot:
        """Build a snapshot as of ``evaluation_time``.

        The explicit argument wins over ``assembly_input.evaluation_time``;
        when neither is given the snapshot is generated at the current time.
        """
        resolved_time = evaluation_time or assembly_input.evaluation_time or datetime.now(timezone.utc)
        resolved_time = ensure_utc(resolved_time)

        registry = NodeRegistry()
        with profile_phase("register_nodes", report, {"users": len(assembly_input.users)}):
            for user in assembly_input.users:
                registry.upsert_user(user)
            for post in assembly_input.posts:
                registry.register_post(post)
            for hashtag in assembly_input.hashtags:
                registry.register_hashtag(hashtag, as_integer(hashtag.get("usage_count")))

        with profile_phase("calculate_edges", report):
            edges = self.edge_calculator.calculate(
                registry,
                mentions=assembly_input.mentions,
                post_hashtags=assembly_input.post_hashtags,
                likes=assembly_input.likes,
                interactions=assembly_input.interactions,
                reposts=assembly_input.reposts,
                comments=assembly_input.comments,
                post_replies=assembly_input.post_replies,
                evaluation_time=resolved_time,
            )

        snapshot = GraphSnapshot(
            nodes=tuple(registry.values()),
            edges=tuple(edges),
            generated_at=resolved_time,
        )
        logger.info(
            "Assembled snapshot at %s: %d nodes, %d edges",
            resolved_time.isoformat(), len(snapshot.nodes), len(snapshot.edges),
        )
        return snapshot


def build_snapshot(
    assembly_input: GraphAssemblyInput,
    evaluation_time: Optional[datetime] = None,
    edge_weights: Optional[Mapping[object, object]] = None,
) -> GraphSnapshot:
    """Convenience wrapper around :class:`GraphAssembler`."""
    return GraphAssembler(edge_weights).assemble(assembly_input, evaluation_time)
