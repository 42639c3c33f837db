"""Canonical node store for one snapshot build."""
from __future__ import annotations

import dataclasses
import logging
import math
from datetime import datetime
from typing import Dict, List, Optional

from .entities import EntityRecord, as_integer, nested_id, parse_datetime, round_to
from .models import (
    GraphNode,
    HashtagNodeAttributes,
    NodeKind,
    PostNodeAttributes,
    UserNodeAttributes,
)

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


def _existing_user_attrs(node: Optional[GraphNode]) -> Optional[UserNodeAttributes]:
    if node is not None and node.kind is NodeKind.USER:
        return node.attributes
    return None


def _present_or(entity: EntityRecord, key: str, fallback):
    """``entity[key]`` unless it is missing or None."""
    value = entity.get(key)
    return fallback if value is None else value


class NodeRegistry:
    """Holds user/post/hashtag nodes keyed by their external id.

    Users follow first-write-wins: once a real (non-placeholder) user exists,
    later upserts return it unchanged. Posts and hashtags always overwrite.
    """

    def __init__(self) -> None:
        self._nodes: Dict[str, GraphNode] = {}
        self._nodes_by_kind: Dict[NodeKind, Dict[str, GraphNode]] = {kind: {} for kind in NodeKind}
        self._post_author: Dict[str, str] = {}
        self._post_timestamp: Dict[str, Optional[datetime]] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def upsert_user(self, entity: EntityRecord) -> GraphNode:
        node_id = str(entity["id"])
        existing = self._nodes.get(node_id)
        if existing is not None and existing.kind is NodeKind.USER and not existing.placeholder:
            return existing

        previous = _existing_user_attrs(existing)
        follower_count = as_integer(
            _present_or(entity, "followers_count", previous.follower_count if previous else 0)
        )
        follow_count = as_integer(_present_or(entity, "friends_count", previous.follow_count if previous else 0))
        statuses_count = as_integer(
            _present_or(entity, "statuses_count", previous.statuses_count if previous else 0)
        )
        if "bi_followers_count" in entity:
            mutual_count = as_integer(entity["bi_followers_count"])
        elif previous is not None:
            mutual_count = as_integer(previous.reciprocity_index * (follower_count + follow_count))
        else:
            mutual_count = 0

        follower_score = math.log10(follower_count + 1) if follower_count >= 0 else 0.0
        activity_score = math.log10(statuses_count + 1) if statuses_count >= 0 else 0.0
        denominator = max(follower_count + follow_count, 1)

        display_name = entity.get("screen_name") or entity.get("name")
        if not display_name:
            display_name = previous.display_name if previous else node_id

        if "location" in entity:
            residence = entity["location"]
        else:
            residence = previous.residence if previous else None

        verified = _present_or(entity, "verified", previous.verified if previous else False)

        node = GraphNode(
            id=node_id,
            kind=NodeKind.USER,
            attributes=UserNodeAttributes(
                display_name=str(display_name),
                verified=bool(verified),
                follower_count=follower_count,
                follow_count=follow_count,
                statuses_count=statuses_count,
                residence=residence,
                influence_seed=round_to(follower_score * 0.7 + activity_score * 0.3),
                reciprocity_index=round_to(mutual_count / denominator),
            ),
            placeholder=False,
        )
        self._register(node)
        return node

    def register_post(self, entity: EntityRecord) -> GraphNode:
        node_id = str(entity["id"])
        created_at = parse_datetime(entity.get("created_at"))
        author_id = nested_id(entity, "user", "user_id")
        visible = entity.get("visible")
        if isinstance(visible, dict) and visible.get("type") is not None:
            visibility = str(visible["type"])
        elif entity.get("visibility") is not None:
            visibility = str(entity["visibility"])
        else:
            visibility = UNKNOWN

        node = GraphNode(
            id=node_id,
            kind=NodeKind.POST,
            attributes=PostNodeAttributes(
                author_id=author_id or UNKNOWN,
                created_at=created_at,
                text_length=as_integer(entity.get("text_length")),
                reposts=as_integer(entity.get("reposts_count")),
                comments=as_integer(entity.get("comments_count")),
                likes=as_integer(entity.get("attitudes_count")),
                visibility=visibility,
            ),
            placeholder=False,
        )
        self._register(node)
        if author_id:
            self._post_author[node_id] = author_id
        self._post_timestamp[node_id] = created_at
        if author_id:
            self.upsert_user({"id": author_id})
        return node

    def register_hashtag(self, entity: EntityRecord, usage_count: int = 0) -> GraphNode:
        node_id = str(entity["tag_id"])
        existing = self._nodes.get(node_id)
        baseline = existing.attributes.usage_count if existing is not None and existing.kind is NodeKind.HASHTAG else 0
        node = GraphNode(
            id=node_id,
            kind=NodeKind.HASHTAG,
            attributes=HashtagNodeAttributes(
                tag=str(entity.get("tag_name") or node_id),
                tag_type=entity.get("tag_type"),
                hidden=bool(entity.get("tag_hidden")),
                description=entity.get("description"),
                usage_count=as_integer(usage_count) or baseline,
            ),
            placeholder=False,
        )
        self._register(node)
        return node

    def ensure_user(self, node_id: str) -> GraphNode:
        existing = self._nodes.get(node_id)
        if existing is not None and existing.kind is NodeKind.USER:
            return existing

        node = GraphNode(
            id=node_id,
            kind=NodeKind.USER,
            attributes=UserNodeAttributes(
                display_name=node_id,
                verified=False,
                follower_count=0,
                follow_count=0,
                statuses_count=0,
                residence=None,
                influence_seed=0.0,
                reciprocity_index=0.0,
            ),
            placeholder=True,
        )
        self._register(node)
        return node

    def ensure_hashtag(self, node_id: str) -> GraphNode:
        existing = self._nodes.get(node_id)
        if existing is not None and existing.kind is NodeKind.HASHTAG:
            return existing

        node = GraphNode(
            id=node_id,
            kind=NodeKind.HASHTAG,
            attributes=HashtagNodeAttributes(
                tag=node_id,
                tag_type=None,
                hidden=False,
                description=None,
                usage_count=0,
            ),
            placeholder=True,
        )
        self._register(node)
        return node

    def increment_hashtag_usage(self, node_id: str, delta: int = 1) -> GraphNode:
        node = self.ensure_hashtag(node_id)
        updated = dataclasses.replace(
            node,
            attributes=dataclasses.replace(
                node.attributes,
                usage_count=node.attributes.usage_count + delta,
            ),
        )
        self._register(updated)
        return updated

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        return self._nodes.get(node_id)

    def values(self) -> List[GraphNode]:
        return list(self._nodes.values())

    def values_by_kind(self, kind: NodeKind) -> List[GraphNode]:
        return list(self._nodes_by_kind.get(NodeKind(kind), {}).values())

    def author_of(self, post_id: str) -> Optional[str]:
        return self._post_author.get(post_id)

    def created_at_of(self, post_id: str) -> Optional[datetime]:
        return self._post_timestamp.get(post_id)

    def _register(self, node: GraphNode) -> None:
        previous = self._nodes.get(node.id)
        if previous is not None and previous.kind is not node.kind:
            # ids are shared across kinds; the newest registration owns the id
            logger.debug(
                "Node %s re-registered as %s (was %s)", node.id, node.kind.value, previous.kind.value
            )
            self._nodes_by_kind[previous.kind].pop(node.id, None)
        self._nodes[node.id] = node
        self._nodes_by_kind[node.kind][node.id] = node
