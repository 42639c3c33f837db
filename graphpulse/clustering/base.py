"""Shared pieces for community detection over snapshots."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Tuple, runtime_checkable

from graphpulse.graph.models import GraphSnapshot

AdjacencyMap = Dict[str, Dict[str, float]]


def sorted_pair(a: str, b: str) -> Tuple[str, str]:
    return (a, b) if a < b else (b, a)


@dataclass
class WeightedGraph:
    """Undirected weighted view of a snapshot.

    ``adjacency`` holds each edge in both directions, ``pair_weights`` holds
    it once per unordered pair. Edges touching unknown nodes are dropped.
    """

    adjacency: AdjacencyMap
    pair_weights: Dict[Tuple[str, str], float]
    node_strength: Dict[str, float]
    total_weight: float

    @classmethod
    def from_snapshot(cls, snapshot: GraphSnapshot) -> "WeightedGraph":
        adjacency: AdjacencyMap = {node.id: {} for node in snapshot.nodes}
        pair_weights: Dict[Tuple[str, str], float] = {}

        for edge in snapshot.edges:
            outgoing = adjacency.get(edge.source)
            incoming = adjacency.get(edge.target)
            if outgoing is None or incoming is None:
                continue
            outgoing[edge.target] = outgoing.get(edge.target, 0.0) + edge.weight
            incoming[edge.source] = incoming.get(edge.source, 0.0) + edge.weight
            key = sorted_pair(edge.source, edge.target)
            pair_weights[key] = pair_weights.get(key, 0.0) + edge.weight

        node_strength = {node: sum(neighbors.values()) for node, neighbors in adjacency.items()}
        return cls(
            adjacency=adjacency,
            pair_weights=pair_weights,
            node_strength=node_strength,
            total_weight=sum(pair_weights.values()),
        )


def group_communities(assignments: Dict[str, str]) -> Dict[str, List[str]]:
    communities: Dict[str, List[str]] = {}
    for node_id, community_id in assignments.items():
        communities.setdefault(community_id, []).append(node_id)
    return communities


@dataclass(frozen=True)
class CommunityPartition:
    """node id -> community id, plus the inverse grouping."""

    assignments: Dict[str, str]
    communities: Dict[str, List[str]] = field(default_factory=dict)

    def community_of(self, node_id: str) -> Optional[str]:
        return self.assignments.get(node_id)

    @property
    def community_count(self) -> int:
        return len(self.communities)


@runtime_checkable
class Clusterer(Protocol):
    """Anything that partitions a snapshot into communities."""

    name: str

    def run(self, snapshot: GraphSnapshot) -> CommunityPartition:
        ...
