"""Tests for weighted label propagation."""
from __future__ import annotations

import networkx as nx
import pytest

from conftest import make_snapshot
from graphpulse.clustering import Clusterer, LabelPropagationClusterer, WeightedGraph
from graphpulse.clustering.label_propagation import undirected_graph


@pytest.mark.unit
def test_two_cliques_reach_consensus(two_clique_snapshot):
    result = LabelPropagationClusterer().run(two_clique_snapshot)
    labels = result.assignments

    assert labels["a"] == labels["b"] == labels["c"]
    assert labels["x"] == labels["y"] == labels["z"]
    assert labels["a"] != labels["x"]
    assert result.community_count == 2
    assert sorted(result.communities[labels["a"]]) == ["a", "b", "c"]
    assert result.modularity > 0.3


@pytest.mark.unit
def test_communities_are_named_by_smallest_member(two_clique_snapshot):
    labels = LabelPropagationClusterer().run(two_clique_snapshot).assignments

    assert labels["c"] == "a"
    assert labels["z"] == "x"


@pytest.mark.unit
def test_same_seed_is_reproducible(two_clique_snapshot):
    first = LabelPropagationClusterer(seed=7).run(two_clique_snapshot)
    second = LabelPropagationClusterer(seed=7).run(two_clique_snapshot)

    assert first.assignments == second.assignments
    assert first.modularity == second.modularity


@pytest.mark.unit
def test_heavier_side_wins_the_vote():
    snapshot = make_snapshot([
        ("a", "b", 5.0), ("b", "c", 5.0), ("c", "a", 5.0),
        ("a", "d", 5.0), ("d", "e", 0.1),
    ])
    labels = LabelPropagationClusterer().run(snapshot).assignments

    assert labels["d"] == labels["a"]


@pytest.mark.unit
def test_isolated_nodes_keep_their_label():
    snapshot = make_snapshot([("a", "b", 1.0)], nodes=["a", "b", "solo"])
    result = LabelPropagationClusterer().run(snapshot)

    assert result.assignments["solo"] == "solo"
    assert result.assignments["a"] == result.assignments["b"] == "a"


@pytest.mark.unit
def test_empty_snapshot():
    result = LabelPropagationClusterer().run(make_snapshot([], nodes=[]))

    assert result.assignments == {}
    assert result.communities == {}
    assert result.modularity == 0.0


@pytest.mark.unit
def test_edgeless_snapshot_has_zero_modularity():
    result = LabelPropagationClusterer().run(make_snapshot([], nodes=["a", "b"]))

    assert result.assignments == {"a": "a", "b": "b"}
    assert result.modularity == 0.0


@pytest.mark.unit
def test_undirected_graph_merges_directions_and_drops_self_loops():
    snapshot = make_snapshot([("a", "b", 1.0), ("b", "a", 2.0), ("a", "a", 9.0)])
    graph = undirected_graph(WeightedGraph.from_snapshot(snapshot))

    assert isinstance(graph, nx.Graph)
    assert list(graph.nodes) == ["a", "b"]
    assert graph["a"]["b"]["weight"] == pytest.approx(3.0)
    assert not graph.has_edge("a", "a")


@pytest.mark.unit
def test_clusterer_protocol():
    assert isinstance(LabelPropagationClusterer(), Clusterer)
