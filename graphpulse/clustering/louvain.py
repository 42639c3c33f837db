"""Single-level Louvain community detection (local moving, no coarsening)."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Sequence, TypeVar

from graphpulse.graph.models import GraphSnapshot

from .base import CommunityPartition, WeightedGraph, group_communities

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class LouvainResult(CommunityPartition):
    modularity: float = 0.0
    iterations: int = 0


def deterministic_shuffle(items: Sequence[T], seed: int) -> List[T]:
    """Fisher-Yates driven by ``|sin(seed + i)|`` instead of an RNG.

    Reproducible across runs and ports: ``j = int(|sin(seed + i)| * (i + 1)) % (i + 1)``.
    """
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        swap_index = int(abs(math.sin(seed + i)) * (i + 1)) % (i + 1)
        result[i], result[swap_index] = result[swap_index], result[i]
    return result


class LouvainCommunityDetector:
    """Greedy modularity optimisation by moving single nodes between communities.

    Each pass visits nodes in a pseudo-shuffled order seeded by the pass
    index; a node moves only when the best neighbouring community beats the
    running best gain (starting at 0) by more than ``min_gain``. Passes stop
    once a full pass moves nothing or ``max_passes`` is reached.
    """

    name = "louvain"

    def __init__(self, max_passes: int = 12, resolution: float = 1.0, min_gain: float = 1e-6) -> None:
        if max_passes < 1:
            raise ValueError("max_passes must be at least 1")
        if resolution < 0:
            raise ValueError("resolution must be non-negative")
        if min_gain < 0:
            raise ValueError("min_gain must be non-negative")
        self.max_passes = max_passes
        self.resolution = resolution
        self.min_gain = min_gain

    def run(self, snapshot: GraphSnapshot) -> LouvainResult:
        graph = WeightedGraph.from_snapshot(snapshot)
        assignments: Dict[str, str] = {node: node for node in graph.adjacency}
        community_weights: Dict[str, float] = {}
        for node, community in assignments.items():
            community_weights[community] = community_weights.get(community, 0.0) + graph.node_strength[node]

        nodes = list(graph.adjacency)
        iterations = 0
        while iterations < self.max_passes:
            moved = False
            for node in deterministic_shuffle(nodes, iterations):
                current = assignments[node]
                strength = graph.node_strength[node]
                neighbor_communities = self._neighbor_communities(node, assignments, graph)

                community_weights[current] = community_weights.get(current, 0.0) - strength

                best_community = current
                best_gain = 0.0
                for candidate, weight_to_community in neighbor_communities.items():
                    gain = self._modularity_gain(
                        strength,
                        community_weights.get(candidate, 0.0),
                        weight_to_community,
                        graph.total_weight,
                    )
                    if gain > best_gain + self.min_gain:
                        best_gain = gain
                        best_community = candidate

                community_weights[best_community] = community_weights.get(best_community, 0.0) + strength
                if best_community != current:
                    assignments[node] = best_community
                    moved = True

            if not moved:
                break
            iterations += 1

        modularity = self._modularity(assignments, graph)
        communities = group_communities(assignments)
        logger.debug(
            "Louvain: %d nodes -> %d communities, modularity=%.6f, passes=%d",
            len(assignments), len(communities), modularity, iterations,
        )
        return LouvainResult(
            assignments=assignments,
            communities=communities,
            modularity=modularity,
            iterations=iterations,
        )

    @staticmethod
    def _neighbor_communities(node: str, assignments: Dict[str, str], graph: WeightedGraph) -> Dict[str, float]:
        communities: Dict[str, float] = {}
        for neighbor, weight in graph.adjacency.get(node, {}).items():
            community = assignments.get(neighbor)
            if community is None:
                continue
            communities[community] = communities.get(community, 0.0) + weight
        return communities

    def _modularity_gain(
        self,
        node_strength: float,
        community_strength: float,
        weight_to_community: float,
        total_weight: float,
    ) -> float:
        if total_weight == 0:
            return 0.0
        two_m = 2 * total_weight
        expected = (node_strength * community_strength) / two_m
        return (weight_to_community - self.resolution * expected) / two_m

    @staticmethod
    def _modularity(assignments: Dict[str, str], graph: WeightedGraph) -> float:
        # divided by 2m twice: inside the expected term and on the total
        if graph.total_weight == 0:
            return 0.0
        two_m = 2 * graph.total_weight
        modularity = 0.0
        for (a, b), weight in graph.pair_weights.items():
            community_a = assignments.get(a)
            if community_a is None or community_a != assignments.get(b):
                continue
            modularity += weight - (graph.node_strength[a] * graph.node_strength[b]) / two_m
        return modularity / two_m
