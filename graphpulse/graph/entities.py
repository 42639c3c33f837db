"""Raw entity coercion and the upstream assembly input contract.

Upstream loaders hand over plain dict rows (or DataFrames) for a time window.
Nothing in here raises on dirty data: malformed numbers become 0 and
unparseable dates become ``None``.
"""
from __future__ import annotations

import math
import numbers
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

EntityRecord = Mapping[str, Any]

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def as_integer(value: Any) -> int:
    """Coerce counters to ints, falling back to 0 for anything unusable."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real):
        number = float(value)
        return int(number) if math.isfinite(number) else 0
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        return int(match.group(1)) if match else 0
    return 0


def round_to(value: float, precision: int = 6) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return round(number, precision)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a timestamp into an aware UTC datetime, or ``None``.

    Naive values are interpreted as UTC.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        timestamp = pd.Timestamp(value)
    elif isinstance(value, str):
        if not value.strip():
            return None
        timestamp = pd.to_datetime(value, utc=True, errors="coerce")
    else:
        return None

    if pd.isna(timestamp):
        return None
    if timestamp.tzinfo is None:
        timestamp = timestamp.tz_localize("UTC")
    else:
        timestamp = timestamp.tz_convert("UTC")
    return timestamp.to_pydatetime()


def ensure_utc(value: datetime) -> datetime:
    """Like :func:`parse_datetime` but for values that must be present."""
    parsed = parse_datetime(value)
    if parsed is None:
        raise ValueError(f"expected a datetime, received {value!r}")
    return parsed


def nested_id(entity: EntityRecord, nested_key: str, flat_key: str) -> Optional[str]:
    """Read an id from ``entity[nested_key]["id"]`` or ``entity[flat_key]``."""
    nested = entity.get(nested_key)
    if isinstance(nested, Mapping) and nested.get("id") is not None:
        return str(nested["id"])
    flat = entity.get(flat_key)
    if flat is None:
        return None
    return str(flat)


def _is_id_column(name: Any) -> bool:
    name = str(name)
    return name == "id" or name.endswith("_id")


def _restore_integer_ids(frame: pd.DataFrame) -> pd.DataFrame:
    """Undo pandas' float upcast of integer id columns that contain NaN.

    Without this a user id ``42`` read from such a column becomes ``"42.0"``.
    """
    restored = frame.copy()
    for column in restored.columns:
        if not _is_id_column(column) or not pd.api.types.is_float_dtype(restored[column]):
            continue
        present = restored[column].dropna()
        if present.map(float.is_integer).all():
            restored[column] = restored[column].astype("Int64")
    return restored


def _frame_records(frame: Optional[pd.DataFrame]) -> List[Dict[str, Any]]:
    if frame is None or frame.empty:
        return []
    restored = _restore_integer_ids(frame)
    cleaned = restored.astype(object).where(pd.notna(restored), None)
    return cleaned.to_dict("records")


@dataclass
class GraphAssemblyInput:
    """Everything the assembler needs for one window of the social graph."""

    users: List[EntityRecord] = field(default_factory=list)
    posts: List[EntityRecord] = field(default_factory=list)
    hashtags: List[EntityRecord] = field(default_factory=list)
    mentions: List[EntityRecord] = field(default_factory=list)
    post_hashtags: List[EntityRecord] = field(default_factory=list)
    likes: List[EntityRecord] = field(default_factory=list)
    interactions: List[EntityRecord] = field(default_factory=list)
    reposts: List[EntityRecord] = field(default_factory=list)
    comments: List[EntityRecord] = field(default_factory=list)
    post_replies: List[EntityRecord] = field(default_factory=list)
    evaluation_time: Optional[datetime] = None

    @classmethod
    def from_frames(
        cls,
        *,
        users: Optional[pd.DataFrame] = None,
        posts: Optional[pd.DataFrame] = None,
        hashtags: Optional[pd.DataFrame] = None,
        mentions: Optional[pd.DataFrame] = None,
        post_hashtags: Optional[pd.DataFrame] = None,
        likes: Optional[pd.DataFrame] = None,
        interactions: Optional[pd.DataFrame] = None,
        reposts: Optional[pd.DataFrame] = None,
        comments: Optional[pd.DataFrame] = None,
        post_replies: Optional[pd.DataFrame] = None,
        evaluation_time: Optional[datetime] = None,
    ) -> "GraphAssemblyInput":
        """Build an input from pre-loaded DataFrames (NaN cells become None)."""
        return cls(
            users=_frame_records(users),
            posts=_frame_records(posts),
            hashtags=_frame_records(hashtags),
            mentions=_frame_records(mentions),
            post_hashtags=_frame_records(post_hashtags),
            likes=_frame_records(likes),
            interactions=_frame_records(interactions),
            reposts=_frame_records(reposts),
            comments=_frame_records(comments),
            post_replies=_frame_records(post_replies),
            evaluation_time=evaluation_time,
        )

    def counts(self) -> Dict[str, int]:
        return {
            "users": len(self.users),
            "posts": len(self.posts),
            "hashtags": len(self.hashtags),
            "mentions": len(self.mentions),
            "post_hashtags": len(self.post_hashtags),
            "likes": len(self.likes),
            "interactions": len(self.interactions),
            "reposts": len(self.reposts),
            "comments": len(self.comments),
            "post_replies": len(self.post_replies),
        }
