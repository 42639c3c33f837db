"""Shared pytest configuration and fixtures for the test suite.

This module centralizes:
- Path setup (so ``graphpulse`` imports without an editable install)
- Pytest markers for test categorization (unit, integration, property)
- Snapshot builders for hand-made graphs and the end-to-end entity input
"""
from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional, Sequence, Tuple

import pytest


# ==============================================================================
# Path Setup - Ensures graphpulse/ is importable
# ==============================================================================

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from graphpulse.graph.entities import GraphAssemblyInput  # noqa: E402
from graphpulse.graph.models import (  # noqa: E402
    EdgeEvidence,
    EdgeKind,
    GraphEdge,
    GraphNode,
    GraphSnapshot,
    NodeKind,
    UserNodeAttributes,
)


# ==============================================================================
# Pytest Configuration
# ==============================================================================

def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: Fast tests with no I/O")
    config.addinivalue_line("markers", "integration: Full pipeline runs across modules")
    config.addinivalue_line("markers", "property: Hypothesis property-based tests")


# ==============================================================================
# Snapshot Builders
# ==============================================================================

EVALUATION_TIME = datetime(2024, 1, 3, tzinfo=timezone.utc)

EdgeRow = Tuple  # (source, target, weight[, last_seen_at[, first_seen_at]])


def user_node(node_id: str) -> GraphNode:
    return GraphNode(
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
    )


def make_snapshot(
    edges: Sequence[EdgeRow],
    nodes: Optional[Iterable[str]] = None,
    generated_at: datetime = EVALUATION_TIME,
    kind: EdgeKind = EdgeKind.INTERACT,
) -> GraphSnapshot:
    """Build a user-only snapshot from ``(source, target, weight, ...)`` tuples.

    Node ids default to every endpoint mentioned by ``edges`` in first-seen order.
    """
    if nodes is None:
        seen = {}
        for row in edges:
            seen.setdefault(row[0], None)
            seen.setdefault(row[1], None)
        nodes = list(seen)

    graph_edges = []
    for row in edges:
        source, target, weight = row[0], row[1], row[2]
        last_seen = row[3] if len(row) > 3 else generated_at
        first_seen = row[4] if len(row) > 4 else last_seen
        graph_edges.append(
            GraphEdge(
                kind=kind,
                source=source,
                target=target,
                weight=weight,
                evidence=EdgeEvidence(
                    occurrences=1,
                    score_contributions=[weight],
                    first_seen_at=first_seen,
                    last_seen_at=last_seen,
                ),
            )
        )
    return GraphSnapshot(
        nodes=tuple(user_node(node_id) for node_id in nodes),
        edges=tuple(graph_edges),
        generated_at=generated_at,
    )


@pytest.fixture
def evaluation_time():
    return EVALUATION_TIME


@pytest.fixture
def two_clique_snapshot():
    """Two dense triangles {a, b, c} and {x, y, z} joined by one weak bridge."""
    heavy = [
        ("a", "b", 3.0), ("b", "c", 3.0), ("c", "a", 3.0),
        ("x", "y", 3.0), ("y", "z", 3.0), ("z", "x", 3.0),
    ]
    return make_snapshot(heavy + [("c", "x", 0.1)])


@pytest.fixture
def cycle_snapshot():
    """Strongly connected weighted ring with a chord; no sink nodes."""
    return make_snapshot([
        ("a", "b", 1.0),
        ("b", "c", 2.0),
        ("c", "d", 1.0),
        ("d", "a", 0.5),
        ("a", "c", 1.5),
    ])


@pytest.fixture
def e2e_input():
    """One author, one post, two likes by a user only known from the likes."""
    return GraphAssemblyInput(
        users=[{"id": "42", "screen_name": "author42", "followers_count": 120, "friends_count": 80}],
        posts=[{"id": "9001", "user_id": "42", "created_at": "2024-01-01T08:00:00Z"}],
        likes=[
            {"user_id": "88", "target_post_id": "9001", "created_at": "2024-01-01T00:00:00Z"},
            {"user_id": "88", "target_post_id": "9001", "created_at": "2024-01-02T00:00:00Z"},
        ],
        evaluation_time=EVALUATION_TIME,
    )


def hours_before(reference: datetime, hours: float) -> datetime:
    return reference - timedelta(hours=hours)
