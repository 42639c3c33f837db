"""Per-community momentum: is a community heating up or cooling down?"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Mapping, Optional

from graphpulse.graph.entities import ensure_utc
from graphpulse.graph.models import GraphSnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommunityTrendSummary:
    community_id: str
    member_count: int
    edge_count: int
    total_weight: float
    recent_weight: float
    historical_weight: float
    momentum: float
    last_interaction_at: Optional[datetime]

    def to_dict(self) -> Dict[str, object]:
        return {
            "community_id": self.community_id,
            "member_count": self.member_count,
            "edge_count": self.edge_count,
            "total_weight": self.total_weight,
            "recent_weight": self.recent_weight,
            "historical_weight": self.historical_weight,
            "momentum": self.momentum,
            "last_interaction_at": (
                self.last_interaction_at.isoformat() if self.last_interaction_at else None
            ),
        }


def linear_decay(age_hours: float, window_hours: float) -> float:
    """1 at age 0, falling linearly to 0 at ``window_hours``."""
    if window_hours <= 0:
        return 0.0
    if age_hours <= 0:
        return 1.0
    return max(0.0, 1.0 - age_hours / window_hours)


def _hours_between(later: datetime, earlier: datetime) -> float:
    return (later - ensure_utc(earlier)).total_seconds() / 3600.0


@dataclass
class _Accumulator:
    member_count: int
    edge_count: int = 0
    total_weight: float = 0.0
    recent_weight: float = 0.0
    historical_weight: float = 0.0
    last_interaction_at: Optional[datetime] = None


class TrendPredictor:
    def __init__(
        self,
        recent_window_hours: float = 24.0,
        lookback_window_hours: float = 168.0,
        minimum_weight: float = 0.01,
    ) -> None:
        if recent_window_hours < 0 or lookback_window_hours < 0:
            raise ValueError("window sizes must be non-negative")
        if minimum_weight <= 0:
            raise ValueError("minimum_weight must be positive")
        self.recent_window_hours = recent_window_hours
        self.lookback_window_hours = lookback_window_hours
        self.minimum_weight = minimum_weight

    def evaluate_communities(
        self,
        snapshot: GraphSnapshot,
        assignments: Mapping[str, str],
        reference_time: datetime,
    ) -> List[CommunityTrendSummary]:
        """Score every community in ``assignments`` against ``reference_time``.

        An edge counts toward each distinct community of its two endpoints,
        so a cross-community edge contributes to both. Edges with neither
        endpoint assigned are ignored.
        """
        reference_time = ensure_utc(reference_time)
        history_window = max(self.recent_window_hours, self.lookback_window_hours)

        member_counts: Dict[str, int] = {}
        for community_id in assignments.values():
            member_counts[community_id] = member_counts.get(community_id, 0) + 1
        buckets = {community_id: _Accumulator(count) for community_id, count in member_counts.items()}

        for edge in snapshot.edges:
            communities = {
                community
                for community in (assignments.get(edge.source), assignments.get(edge.target))
                if community is not None
            }
            if not communities:
                continue

            last_seen = edge.evidence.last_seen_at
            first_seen = edge.evidence.first_seen_at
            recent = 0.0
            if last_seen is not None:
                recent = edge.weight * linear_decay(
                    _hours_between(reference_time, last_seen), self.recent_window_hours
                )
            if first_seen is not None:
                historical = edge.weight * linear_decay(
                    _hours_between(reference_time, first_seen), history_window
                )
            else:
                historical = edge.weight

            for community_id in communities:
                bucket = buckets[community_id]
                bucket.edge_count += 1
                bucket.total_weight += edge.weight
                bucket.recent_weight += recent
                bucket.historical_weight += historical
                if last_seen is not None and (
                    bucket.last_interaction_at is None or last_seen > bucket.last_interaction_at
                ):
                    bucket.last_interaction_at = last_seen

        summaries = [
            CommunityTrendSummary(
                community_id=community_id,
                member_count=bucket.member_count,
                edge_count=bucket.edge_count,
                total_weight=bucket.total_weight,
                recent_weight=bucket.recent_weight,
                historical_weight=bucket.historical_weight,
                momentum=self._momentum(bucket),
                last_interaction_at=bucket.last_interaction_at,
            )
            for community_id, bucket in buckets.items()
        ]
        summaries.sort(key=lambda summary: (-summary.momentum, summary.community_id))

        if summaries:
            logger.debug(
                "Trends for %d communities; top momentum %.4f (%s)",
                len(summaries), summaries[0].momentum, summaries[0].community_id,
            )
        return summaries

    def _momentum(self, bucket: _Accumulator) -> float:
        if bucket.total_weight < self.minimum_weight:
            return 0.0
        baseline = bucket.historical_weight - bucket.recent_weight
        return (bucket.recent_weight - baseline) / max(baseline, self.minimum_weight)
