"""Agglomerative hierarchy over Louvain communities."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Set, Tuple

import networkx as nx
import numpy as np
from scipy.cluster.hierarchy import linkage
from scipy.spatial.distance import squareform

from graphpulse.graph.models import ClusterNodeAttributes, GraphNode, GraphSnapshot, NodeKind

from .base import group_communities

logger = logging.getLogger(__name__)

SUPPORTED_METHODS = ("single", "complete", "average", "weighted")


@dataclass(frozen=True)
class DendrogramMerge:
    """One row of the linkage matrix, with ids resolved.

    Leaves are referred to by their community id, internal clusters by
    ``cluster-<index>`` where index follows scipy's numbering (n + row),
    prefixed with ``_`` when a node or community already uses that id.
    """

    cluster_id: str
    left: str
    right: str
    distance: float
    size: int
    members: Tuple[str, ...]


@dataclass(frozen=True)
class HierarchyLevel:
    n_clusters: int
    community_assignments: Dict[str, str]
    node_assignments: Dict[str, str]


@dataclass(frozen=True)
class HierarchicalResult:
    community_ids: Tuple[str, ...]
    linkage_matrix: np.ndarray
    merges: Tuple[DendrogramMerge, ...] = ()
    levels: Tuple[HierarchyLevel, ...] = ()
    community_members: Dict[str, List[str]] = field(default_factory=dict)

    def cut(self, n_clusters: int) -> Optional[HierarchyLevel]:
        """Level with ``n_clusters`` clusters, clamped to the available range."""
        if not self.levels:
            return None
        target = min(max(1, n_clusters), len(self.community_ids))
        for level in self.levels:
            if level.n_clusters == target:
                return level
        return None

    def cluster_nodes(self) -> List[GraphNode]:
        """Materialize each merge as a cluster node; level 1 is the first merge."""
        nodes = []
        for level, merge in enumerate(self.merges, start=1):
            member_count = sum(len(self.community_members.get(c, ())) for c in merge.members)
            nodes.append(
                GraphNode(
                    id=merge.cluster_id,
                    kind=NodeKind.CLUSTER,
                    attributes=ClusterNodeAttributes(
                        level=level,
                        member_count=member_count,
                        members=merge.members,
                    ),
                )
            )
        return nodes


def _cluster_label(index: int, reserved: Set[str]) -> str:
    """``cluster-<index>``, prefixed with ``_`` until it clashes with no node or community id."""
    label = f"cluster-{index}"
    while label in reserved:
        label = f"_{label}"
    return label


class HierarchicalClusterer:
    """Merges communities bottom-up by normalized inter-community weight.

    Connectivity between communities a and b is ``W(a, b) / sqrt(|a| * |b|)``
    (the same normalization the cluster view uses for edge thickness) and is
    turned into a distance ``1 - connectivity / max_connectivity``.
    Communities with no edges between them sit at distance 1.0.
    """

    name = "hierarchical"

    def __init__(self, method: str = "average") -> None:
        if method not in SUPPORTED_METHODS:
            raise ValueError(f"method must be one of {SUPPORTED_METHODS}, got {method!r}")
        self.method = method

    def community_graph(self, snapshot: GraphSnapshot, assignments: Mapping[str, str]) -> nx.Graph:
        communities = group_communities(dict(assignments))
        graph = nx.Graph()
        for community_id in sorted(communities):
            graph.add_node(community_id, size=len(communities[community_id]))

        for edge in snapshot.edges:
            source = assignments.get(edge.source)
            target = assignments.get(edge.target)
            if source is None or target is None or source == target:
                continue
            if graph.has_edge(source, target):
                graph[source][target]["weight"] += edge.weight
            else:
                graph.add_edge(source, target, weight=edge.weight)
        return graph

    def run(self, snapshot: GraphSnapshot, louvain_assignments: Mapping[str, str]) -> HierarchicalResult:
        members = group_communities(dict(louvain_assignments))
        community_ids = tuple(sorted(members))
        n_communities = len(community_ids)

        if n_communities == 0:
            return HierarchicalResult(community_ids=(), linkage_matrix=np.zeros((0, 4)))

        if n_communities == 1:
            only = community_ids[0]
            level = HierarchyLevel(
                n_clusters=1,
                community_assignments={only: only},
                node_assignments={node: only for node in members[only]},
            )
            return HierarchicalResult(
                community_ids=community_ids,
                linkage_matrix=np.zeros((0, 4)),
                levels=(level,),
                community_members=members,
            )

        graph = self.community_graph(snapshot, louvain_assignments)
        distances = self._distance_matrix(graph, community_ids)
        linkage_matrix = linkage(squareform(distances, checks=False), method=self.method)

        reserved = set(community_ids) | {node.id for node in snapshot.nodes}
        merges = self._merges(linkage_matrix, community_ids, reserved)
        levels = self._levels(merges, community_ids, members)
        logger.debug(
            "Hierarchy: %d communities, %d inter-community links, %d merges",
            n_communities, graph.number_of_edges(), len(merges),
        )
        return HierarchicalResult(
            community_ids=community_ids,
            linkage_matrix=linkage_matrix,
            merges=tuple(merges),
            levels=tuple(levels),
            community_members=members,
        )

    @staticmethod
    def _distance_matrix(graph: nx.Graph, community_ids: Tuple[str, ...]) -> np.ndarray:
        n = len(community_ids)
        index = {community_id: i for i, community_id in enumerate(community_ids)}
        connectivity = np.zeros((n, n), dtype=np.float64)
        for a, b, data in graph.edges(data=True):
            size_a = graph.nodes[a]["size"]
            size_b = graph.nodes[b]["size"]
            value = data["weight"] / math.sqrt(size_a * size_b)
            connectivity[index[a], index[b]] = value
            connectivity[index[b], index[a]] = value

        max_connectivity = float(connectivity.max()) if connectivity.size else 0.0
        if max_connectivity <= 0:
            distances = np.ones((n, n), dtype=np.float64)
        else:
            distances = 1.0 - connectivity / max_connectivity
            distances[connectivity == 0] = 1.0
        np.fill_diagonal(distances, 0.0)
        return distances

    @staticmethod
    def _merges(
        linkage_matrix: np.ndarray,
        community_ids: Tuple[str, ...],
        reserved: Set[str],
    ) -> List[DendrogramMerge]:
        n = len(community_ids)
        names: Dict[int, str] = {i: community_id for i, community_id in enumerate(community_ids)}
        leaves: Dict[int, Tuple[str, ...]] = {i: (community_id,) for i, community_id in enumerate(community_ids)}

        merges = []
        for row, (left, right, distance, size) in enumerate(linkage_matrix):
            left_idx, right_idx = int(left), int(right)
            cluster_idx = n + row
            names[cluster_idx] = _cluster_label(cluster_idx, reserved)
            leaves[cluster_idx] = tuple(sorted(leaves[left_idx] + leaves[right_idx]))
            merges.append(
                DendrogramMerge(
                    cluster_id=names[cluster_idx],
                    left=names[left_idx],
                    right=names[right_idx],
                    distance=float(distance),
                    size=int(size),
                    members=leaves[cluster_idx],
                )
            )
        return merges

    @staticmethod
    def _levels(
        merges: List[DendrogramMerge],
        community_ids: Tuple[str, ...],
        members: Dict[str, List[str]],
    ) -> List[HierarchyLevel]:
        """Replay merges: N clusters before the first merge, one after the last."""

        def snapshot_level(current: Dict[str, str]) -> HierarchyLevel:
            node_assignments = {
                node: current[community_id]
                for community_id in community_ids
                for node in members[community_id]
            }
            return HierarchyLevel(
                n_clusters=len(set(current.values())),
                community_assignments=dict(current),
                node_assignments=node_assignments,
            )

        current = {community_id: community_id for community_id in community_ids}
        levels = [snapshot_level(current)]
        for merge in merges:
            for community_id in merge.members:
                current[community_id] = merge.cluster_id
            levels.append(snapshot_level(current))
        return levels
