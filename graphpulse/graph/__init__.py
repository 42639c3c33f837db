"""Graph construction and centrality for graphpulse snapshots."""

from .builder import GraphAssembler, build_snapshot
from .centrality import (
    CentralityAnalyzer,
    CentralityReport,
    CentralityVector,
    summarize_distribution,
)
from .edges import DEFAULT_EDGE_WEIGHTS, EdgeCalculator, EdgeWeightSettings
from .entities import GraphAssemblyInput
from .models import (
    EdgeEvidence,
    EdgeKind,
    GraphEdge,
    GraphNode,
    GraphSnapshot,
    NodeKind,
)
from .registry import NodeRegistry

__all__ = [
    "CentralityAnalyzer",
    "CentralityReport",
    "CentralityVector",
    "DEFAULT_EDGE_WEIGHTS",
    "EdgeCalculator",
    "EdgeEvidence",
    "EdgeKind",
    "EdgeWeightSettings",
    "GraphAssembler",
    "GraphAssemblyInput",
    "GraphEdge",
    "GraphNode",
    "GraphSnapshot",
    "NodeKind",
    "NodeRegistry",
    "build_snapshot",
    "summarize_distribution",
]
