"""Decay-weighted edge construction from raw interaction records.

Every occurrence contributes ``base_weight * 0.5 ** (age_hours / half_life_hours)``
to the edge keyed by ``(kind, source, target)``. Occurrences without a
timestamp contribute the undecayed base weight.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .entities import EntityRecord, ensure_utc, nested_id, parse_datetime, round_to
from .models import EdgeEvidence, EdgeKind, GraphEdge, NodeKind
from .registry import UNKNOWN, NodeRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EdgeWeightSettings:
    base_weight: float
    half_life_hours: float


DEFAULT_EDGE_WEIGHTS: Dict[EdgeKind, EdgeWeightSettings] = {
    EdgeKind.MENTION: EdgeWeightSettings(base_weight=1.0, half_life_hours=48),
    EdgeKind.REPOST: EdgeWeightSettings(base_weight=1.2, half_life_hours=72),
    EdgeKind.COMMENT: EdgeWeightSettings(base_weight=0.9, half_life_hours=36),
    EdgeKind.LIKE: EdgeWeightSettings(base_weight=0.5, half_life_hours=24),
    EdgeKind.AUTHOR: EdgeWeightSettings(base_weight=2.0, half_life_hours=720),
    EdgeKind.HAS_HASHTAG: EdgeWeightSettings(base_weight=0.7, half_life_hours=168),
    EdgeKind.REPLY_TO: EdgeWeightSettings(base_weight=1.1, half_life_hours=96),
    EdgeKind.INTERACT: EdgeWeightSettings(base_weight=1.4, half_life_hours=60),
}

# interaction_type -> type-specific edge kind emitted next to the generic interact edge
INTERACTION_EDGE_KINDS: Dict[str, EdgeKind] = {
    "comment": EdgeKind.COMMENT,
    "repost": EdgeKind.REPOST,
    "like": EdgeKind.LIKE,
    "favorite": EdgeKind.LIKE,
}


def resolve_edge_weights(
    overrides: Optional[Mapping[object, object]] = None,
) -> Dict[EdgeKind, EdgeWeightSettings]:
    """Merge partial overrides over :data:`DEFAULT_EDGE_WEIGHTS`.

    Override values may be ``EdgeWeightSettings`` or mappings with any of
    ``base_weight`` / ``half_life_hours``. Unknown kinds raise ``ValueError``.
    """
    weights = dict(DEFAULT_EDGE_WEIGHTS)
    for raw_kind, raw_settings in (overrides or {}).items():
        kind = EdgeKind(raw_kind)
        if isinstance(raw_settings, EdgeWeightSettings):
            weights[kind] = raw_settings
            continue
        current = weights[kind]
        weights[kind] = EdgeWeightSettings(
            base_weight=float(raw_settings.get("base_weight", current.base_weight)),
            half_life_hours=float(raw_settings.get("half_life_hours", current.half_life_hours)),
        )
    return weights


def decayed_contribution(
    settings: EdgeWeightSettings,
    occurred_at: Optional[datetime],
    evaluation_time: datetime,
) -> float:
    if occurred_at is None:
        return round_to(settings.base_weight)
    age_hours = abs((evaluation_time - occurred_at).total_seconds()) / 3600.0
    if settings.half_life_hours > 0:
        decay = 0.5 ** (age_hours / settings.half_life_hours)
    else:
        decay = 1.0
    return round_to(settings.base_weight * decay)


class _EdgeState:
    __slots__ = ("kind", "source", "target", "weight", "contributions", "first_seen_at", "last_seen_at", "metadata")

    def __init__(self, kind: EdgeKind, source: str, target: str) -> None:
        self.kind = kind
        self.source = source
        self.target = target
        self.weight = 0.0
        self.contributions: List[float] = []
        self.first_seen_at: Optional[datetime] = None
        self.last_seen_at: Optional[datetime] = None
        # dict keys keep insertion order and dedupe values
        self.metadata: Dict[str, Dict[str, None]] = {}


class EdgeAccumulator:
    """Groups occurrences by ``(kind, source, target)`` in first-seen order."""

    def __init__(self, weights: Mapping[EdgeKind, EdgeWeightSettings], evaluation_time: datetime) -> None:
        self._weights = weights
        self._evaluation_time = evaluation_time
        self._bucket: Dict[Tuple[EdgeKind, str, str], _EdgeState] = {}

    def __len__(self) -> int:
        return len(self._bucket)

    def add(
        self,
        kind: EdgeKind,
        source: str,
        target: str,
        occurred_at: Optional[datetime],
        metadata: Optional[Mapping[str, Iterable[str]]] = None,
    ) -> float:
        settings = self._weights.get(kind, DEFAULT_EDGE_WEIGHTS[kind])
        contribution = decayed_contribution(settings, occurred_at, self._evaluation_time)

        key = (kind, source, target)
        state = self._bucket.get(key)
        if state is None:
            state = _EdgeState(kind, source, target)
            self._bucket[key] = state

        state.weight = round_to(state.weight + contribution)
        state.contributions.append(contribution)
        if occurred_at is not None:
            if state.first_seen_at is None or occurred_at < state.first_seen_at:
                state.first_seen_at = occurred_at
            if state.last_seen_at is None or occurred_at > state.last_seen_at:
                state.last_seen_at = occurred_at

        for meta_key, values in (metadata or {}).items():
            bucket = state.metadata.setdefault(meta_key, {})
            for value in values:
                bucket.setdefault(value, None)
        return contribution

    def build(self) -> List[GraphEdge]:
        return [
            GraphEdge(
                kind=state.kind,
                source=state.source,
                target=state.target,
                weight=round_to(state.weight),
                evidence=EdgeEvidence(
                    occurrences=len(state.contributions),
                    score_contributions=list(state.contributions),
                    first_seen_at=state.first_seen_at,
                    last_seen_at=state.last_seen_at,
                ),
                metadata={key: list(values) for key, values in state.metadata.items()},
            )
            for state in self._bucket.values()
        ]


class EdgeCalculator:
    """Turns mentions, likes, interactions and replies into weighted edges."""

    def __init__(self, weights: Optional[Mapping[object, object]] = None) -> None:
        self.weights = resolve_edge_weights(weights)

    def calculate(
        self,
        registry: NodeRegistry,
        *,
        mentions: Sequence[EntityRecord] = (),
        post_hashtags: Sequence[EntityRecord] = (),
        likes: Sequence[EntityRecord] = (),
        interactions: Sequence[EntityRecord] = (),
        reposts: Sequence[EntityRecord] = (),
        comments: Sequence[EntityRecord] = (),
        post_replies: Sequence[EntityRecord] = (),
        evaluation_time: datetime,
    ) -> List[GraphEdge]:
        accumulator = EdgeAccumulator(self.weights, ensure_utc(evaluation_time))

        self._attach_author_edges(registry, accumulator)
        self._attach_mention_edges(registry, accumulator, mentions)
        self._attach_hashtag_edges(registry, accumulator, post_hashtags)

        # interactions already carry likes/reposts/comments; using both would double count
        if interactions:
            if likes or reposts or comments:
                logger.debug(
                    "Ignoring %d likes, %d reposts, %d comments superseded by %d interactions",
                    len(likes), len(reposts), len(comments), len(interactions),
                )
            self._attach_interaction_edges(registry, accumulator, interactions)
        else:
            self._attach_like_edges(registry, accumulator, likes)
            self._attach_engagement_edges(registry, accumulator, reposts, EdgeKind.REPOST, "target_post_id")
            self._attach_engagement_edges(registry, accumulator, comments, EdgeKind.COMMENT, "root_id")

        self._attach_reply_edges(registry, accumulator, post_replies)

        edges = accumulator.build()
        logger.debug("Calculated %d edges", len(edges))
        return edges

    def _attach_author_edges(self, registry: NodeRegistry, accumulator: EdgeAccumulator) -> None:
        for node in registry.values_by_kind(NodeKind.POST):
            author_id = node.attributes.author_id
            if not author_id or author_id == UNKNOWN:
                continue
            registry.ensure_user(author_id)
            accumulator.add(
                EdgeKind.AUTHOR, author_id, node.id, node.attributes.created_at, {"posts": [node.id]}
            )

    def _attach_mention_edges(
        self, registry: NodeRegistry, accumulator: EdgeAccumulator, mentions: Sequence[EntityRecord]
    ) -> None:
        for mention in mentions:
            post_id = str(mention["post_id"])
            mentioned_id = str(mention["mentioned_id"])
            author_id = registry.author_of(post_id)
            if not author_id:
                continue
            registry.ensure_user(mentioned_id)
            accumulator.add(
                EdgeKind.MENTION,
                author_id,
                mentioned_id,
                registry.created_at_of(post_id),
                {"posts": [post_id]},
            )

    def _attach_hashtag_edges(
        self, registry: NodeRegistry, accumulator: EdgeAccumulator, post_hashtags: Sequence[EntityRecord]
    ) -> None:
        for link in post_hashtags:
            post_id = str(link["post_id"])
            hashtag_id = str(link["hashtag_id"])
            registry.increment_hashtag_usage(hashtag_id)
            post = registry.get_node(post_id)
            if post is None or post.kind is not NodeKind.POST:
                continue
            occurred_at = post.attributes.created_at or registry.created_at_of(post_id)
            accumulator.add(EdgeKind.HAS_HASHTAG, post_id, hashtag_id, occurred_at, {"posts": [post_id]})

    def _attach_interaction_edges(
        self, registry: NodeRegistry, accumulator: EdgeAccumulator, interactions: Sequence[EntityRecord]
    ) -> None:
        skipped = 0
        for interaction in interactions:
            actor_id = interaction.get("user_id")
            post_id = interaction.get("target_post_id")
            if actor_id is None or post_id is None:
                skipped += 1
                continue
            actor_id, post_id = str(actor_id), str(post_id)

            author_id = registry.author_of(post_id)
            if not author_id or author_id == actor_id:
                skipped += 1
                continue

            registry.ensure_user(actor_id)
            registry.ensure_user(author_id)
            occurred_at = parse_datetime(interaction.get("created_at")) or registry.created_at_of(post_id)
            interaction_type = str(interaction.get("interaction_type") or "").lower()
            metadata = {"interaction_types": [interaction_type], "posts": [post_id]}

            accumulator.add(EdgeKind.INTERACT, actor_id, author_id, occurred_at, metadata)

            specific_kind = INTERACTION_EDGE_KINDS.get(interaction_type)
            if specific_kind is None:
                continue
            target = post_id if specific_kind is EdgeKind.LIKE else author_id
            accumulator.add(specific_kind, actor_id, target, occurred_at, metadata)

        if skipped:
            logger.debug("Skipped %d interactions without a resolvable, distinct author", skipped)

    def _attach_like_edges(
        self, registry: NodeRegistry, accumulator: EdgeAccumulator, likes: Sequence[EntityRecord]
    ) -> None:
        for like in likes:
            user_id = str(like["user_id"])
            post_id = str(like["target_post_id"])
            registry.ensure_user(user_id)
            occurred_at = parse_datetime(like.get("created_at")) or registry.created_at_of(post_id)
            accumulator.add(EdgeKind.LIKE, user_id, post_id, occurred_at, {"posts": [post_id]})

    def _attach_engagement_edges(
        self,
        registry: NodeRegistry,
        accumulator: EdgeAccumulator,
        records: Sequence[EntityRecord],
        kind: EdgeKind,
        post_key: str,
    ) -> None:
        """Reposts and comments point from the engaging user to the post author."""
        skipped = 0
        for record in records:
            user_id = nested_id(record, "user", "user_id")
            post_id = record.get(post_key, record.get("target_post_id"))
            if not user_id or post_id is None:
                skipped += 1
                continue
            post_id = str(post_id)
            author_id = registry.author_of(post_id)
            if not author_id or author_id == user_id:
                skipped += 1
                continue

            registry.ensure_user(user_id)
            occurred_at = parse_datetime(record.get("created_at")) or registry.created_at_of(post_id)
            accumulator.add(kind, user_id, author_id, occurred_at, {"posts": [post_id]})

        if skipped:
            logger.debug("Skipped %d %s records without a resolvable author", skipped, kind.value)

    def _attach_reply_edges(
        self, registry: NodeRegistry, accumulator: EdgeAccumulator, replies: Sequence[EntityRecord]
    ) -> None:
        for reply in replies:
            source_post_id = str(reply["source_post_id"])
            target_post_id = str(reply["target_post_id"])
            occurred_at = parse_datetime(reply.get("occurred_at")) or registry.created_at_of(source_post_id)
            accumulator.add(
                EdgeKind.REPLY_TO,
                source_post_id,
                target_post_id,
                occurred_at,
                {"posts": [source_post_id, target_post_id]},
            )
