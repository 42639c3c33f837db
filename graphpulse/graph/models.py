"""Value types shared by the graph builder and every analyzer."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

import networkx as nx


class NodeKind(str, Enum):
    USER = "user"
    POST = "post"
    HASHTAG = "hashtag"
    CLUSTER = "cluster"


class EdgeKind(str, Enum):
    AUTHOR = "author"
    MENTION = "mention"
    LIKE = "like"
    INTERACT = "interact"
    COMMENT = "comment"
    REPOST = "repost"
    HAS_HASHTAG = "has_hashtag"
    REPLY_TO = "reply_to"


@dataclass(frozen=True)
class UserNodeAttributes:
    display_name: str
    verified: bool
    follower_count: int
    follow_count: int
    statuses_count: int
    residence: Optional[str]
    influence_seed: float
    reciprocity_index: float


@dataclass(frozen=True)
class PostNodeAttributes:
    author_id: str
    created_at: Optional[datetime]
    text_length: int
    reposts: int
    comments: int
    likes: int
    visibility: str


@dataclass(frozen=True)
class HashtagNodeAttributes:
    tag: str
    tag_type: Optional[str]
    hidden: bool
    description: Optional[str]
    usage_count: int


@dataclass(frozen=True)
class ClusterNodeAttributes:
    level: int
    member_count: int
    members: Tuple[str, ...]


NodeAttributes = Union[
    UserNodeAttributes,
    PostNodeAttributes,
    HashtagNodeAttributes,
    ClusterNodeAttributes,
]


@dataclass(frozen=True)
class GraphNode:
    """A node of the snapshot; ``placeholder`` stays True until real data arrives."""

    id: str
    kind: NodeKind
    attributes: NodeAttributes
    placeholder: bool = False


@dataclass(frozen=True)
class EdgeEvidence:
    occurrences: int
    score_contributions: List[float]
    first_seen_at: Optional[datetime]
    last_seen_at: Optional[datetime]


@dataclass(frozen=True)
class GraphEdge:
    kind: EdgeKind
    source: str
    target: str
    weight: float
    evidence: EdgeEvidence
    metadata: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.kind.value, self.source, self.target)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _attributes_to_dict(attributes: NodeAttributes) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    for name in attributes.__dataclass_fields__:
        value = getattr(attributes, name)
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, tuple):
            value = list(value)
        payload[name] = value
    return payload


@dataclass(frozen=True)
class GraphSnapshot:
    """Immutable, fully-materialized graph as of ``generated_at``."""

    nodes: Tuple[GraphNode, ...]
    edges: Tuple[GraphEdge, ...]
    generated_at: datetime

    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]

    def node_index(self) -> Dict[str, GraphNode]:
        return {node.id: node for node in self.nodes}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the snapshot to a JSON-friendly dict."""
        return {
            "generated_at": self.generated_at.isoformat(),
            "nodes": [
                {
                    "id": node.id,
                    "kind": node.kind.value,
                    "placeholder": node.placeholder,
                    "attributes": _attributes_to_dict(node.attributes),
                }
                for node in self.nodes
            ],
            "edges": [
                {
                    "kind": edge.kind.value,
                    "source": edge.source,
                    "target": edge.target,
                    "weight": edge.weight,
                    "evidence": {
                        "occurrences": edge.evidence.occurrences,
                        "score_contributions": list(edge.evidence.score_contributions),
                        "first_seen_at": _isoformat(edge.evidence.first_seen_at),
                        "last_seen_at": _isoformat(edge.evidence.last_seen_at),
                    },
                    "metadata": {key: list(values) for key, values in edge.metadata.items()},
                }
                for edge in self.edges
            ],
        }

    def to_networkx(self) -> nx.MultiDiGraph:
        """Export as a MultiDiGraph keyed by edge kind.

        Edges whose endpoints were never registered as nodes (for example a
        like on a post outside the loaded window) are added with bare nodes,
        matching how networkx treats unknown endpoints.
        """
        graph = nx.MultiDiGraph(generated_at=self.generated_at)
        for node in self.nodes:
            graph.add_node(
                node.id,
                kind=node.kind.value,
                placeholder=node.placeholder,
                **_attributes_to_dict(node.attributes),
            )
        for edge in self.edges:
            graph.add_edge(
                edge.source,
                edge.target,
                key=edge.kind.value,
                weight=edge.weight,
                occurrences=edge.evidence.occurrences,
                first_seen_at=edge.evidence.first_seen_at,
                last_seen_at=edge.evidence.last_seen_at,
                metadata=edge.metadata,
            )
        return graph
