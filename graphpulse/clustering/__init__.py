"""Community detection: Louvain, label propagation and a hierarchy on top."""

from .base import Clusterer, CommunityPartition, WeightedGraph, group_communities
from .hierarchical import (
    DendrogramMerge,
    HierarchicalClusterer,
    HierarchicalResult,
    HierarchyLevel,
)
from .label_propagation import LabelPropagationClusterer, LabelPropagationResult
from .louvain import LouvainCommunityDetector, LouvainResult, deterministic_shuffle

__all__ = [
    "Clusterer",
    "CommunityPartition",
    "DendrogramMerge",
    "HierarchicalClusterer",
    "HierarchicalResult",
    "HierarchyLevel",
    "LabelPropagationClusterer",
    "LabelPropagationResult",
    "LouvainCommunityDetector",
    "LouvainResult",
    "WeightedGraph",
    "deterministic_shuffle",
    "group_communities",
]
