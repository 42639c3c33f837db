"""Tests for single-level Louvain community detection."""
from __future__ import annotations

import pytest
from hypothesis import given, settings, strategies as st

from conftest import make_snapshot
from graphpulse.clustering import Clusterer, LouvainCommunityDetector, deterministic_shuffle


@pytest.mark.unit
def test_two_cliques_are_separated(two_clique_snapshot):
    result = LouvainCommunityDetector().run(two_clique_snapshot)
    assignments = result.assignments

    assert assignments["a"] == assignments["b"] == assignments["c"]
    assert assignments["x"] == assignments["y"] == assignments["z"]
    assert assignments["a"] != assignments["x"]
    assert result.community_count == 2
    assert result.modularity > 0
    assert result.iterations >= 1


@pytest.mark.unit
def test_runs_are_deterministic(two_clique_snapshot):
    detector = LouvainCommunityDetector()
    first = detector.run(two_clique_snapshot)
    second = detector.run(two_clique_snapshot)

    assert first.assignments == second.assignments
    assert first.modularity == second.modularity


@pytest.mark.unit
def test_modularity_is_normalized_twice():
    # a single edge: both endpoints share a community once merged
    snapshot = make_snapshot([("a", "b", 2.0)])
    result = LouvainCommunityDetector().run(snapshot)

    assert result.community_count == 1
    # pair weight 2, strengths 2 and 2, total 2 -> (2 - 4/4) / 4
    assert result.modularity == pytest.approx(0.25)


@pytest.mark.unit
def test_isolated_nodes_keep_their_own_community():
    snapshot = make_snapshot([("a", "b", 1.0)], nodes=["a", "b", "lonely"])
    result = LouvainCommunityDetector().run(snapshot)

    assert result.assignments["lonely"] == "lonely"
    assert result.communities["lonely"] == ["lonely"]


@pytest.mark.unit
def test_empty_snapshot():
    result = LouvainCommunityDetector().run(make_snapshot([], nodes=[]))

    assert result.assignments == {}
    assert result.modularity == 0.0
    assert result.iterations == 0


@pytest.mark.unit
def test_detector_satisfies_clusterer_protocol():
    assert isinstance(LouvainCommunityDetector(), Clusterer)


@pytest.mark.unit
@pytest.mark.parametrize(
    "kwargs", [{"max_passes": 0}, {"resolution": -1.0}, {"min_gain": -0.1}]
)
def test_invalid_parameters_raise(kwargs):
    with pytest.raises(ValueError):
        LouvainCommunityDetector(**kwargs)


# ==============================================================================
# Deterministic shuffle
# ==============================================================================

@pytest.mark.unit
def test_shuffle_matches_sine_formula():
    # i=2: |sin 2| * 3 = 2.73 -> 2; i=1: |sin 1| * 2 = 1.68 -> 1
    assert deterministic_shuffle(["a", "b", "c"], 0) == ["a", "b", "c"]
    # seed 1, i=2: |sin 3| * 3 = 0.42 -> 0 swaps c/a; i=1: |sin 2| * 2 = 1.82 -> 1
    assert deterministic_shuffle(["a", "b", "c"], 1) == ["c", "b", "a"]


@pytest.mark.property
@given(items=st.lists(st.integers(), max_size=30), seed=st.integers(min_value=0, max_value=50))
@settings(max_examples=100)
def test_shuffle_is_a_permutation(items, seed):
    shuffled = deterministic_shuffle(items, seed)

    assert sorted(shuffled) == sorted(items)
    assert deterministic_shuffle(items, seed) == shuffled
