import math

import numpy as np
import pytest

from surfelfusion.deformation_graph import DeformationGraph

K = 4
NODE_COUNT = 10


def _node_positions():
    rng = np.random.default_rng(7)
    return [rng.uniform(-1.0, 1.0, 3) for _ in range(NODE_COUNT)]


def _node_times():
    return list(range(1, NODE_COUNT + 1))


def _build():
    rng = np.random.default_rng(11)
    positions = _node_positions()
    times = _node_times()
    source = []
    vertex_times = []
    for position, time in zip(positions, times):
        for _ in range(3):
            source.append(position + rng.normal(0.0, 0.05, 3))
            vertex_times.append(time)
    graph = DeformationGraph(K, source)
    graph.initialise_graph(positions, times)
    graph.append_vertices(vertex_times, len(source))
    return graph, source, vertex_times


def test_not_initialised_before_graph_built():
    graph = DeformationGraph(K, [])
    assert graph.is_init() is False
    with pytest.raises(RuntimeError):
        graph.add_constraint(0, (0.0, 0.0, 0.0))


def test_initialise_builds_connected_nodes():
    graph, _, _ = _build()
    assert graph.is_init() is True
    assert [node.id for node in graph.graph()] == list(range(NODE_COUNT))
    assert graph.graph_times() == _node_times()
    for node in graph.graph():
        assert len(node.neighbours) == K
        assert node.id not in node.neighbours


def test_initialise_rejects_mismatched_lengths():
    graph = DeformationGraph(K, [])
    with pytest.raises(ValueError):
        graph.initialise_graph(_node_positions(), _node_times()[:-1])


def test_identity_graph_keeps_vertices():
    graph, source, _ = _build()
    for i, vertex in enumerate(source):
        assert np.allclose(graph.compute_vertex_position(i), vertex)


def test_translation_moves_vertices():
    graph, source, _ = _build()
    before = [v.copy() for v in source]
    shift = np.array([1.0, 2.0, 3.0])
    for node in graph.graph():
        node.translation = shift.copy()
    graph.apply_graph_to_vertices()
    for old, new in zip(before, source):
        assert np.allclose(new, old + shift)


def test_reset_graph_restores_identity():
    graph, source, _ = _build()
    for node in graph.graph():
        node.translation = np.array([0.5, 0.0, 0.0])
        node.rotation = np.eye(3) * 2.0
    graph.reset_graph()
    for i, vertex in enumerate(source):
        assert np.allclose(graph.compute_vertex_position(i), vertex)


def test_append_vertices_extends_map():
    graph, source, vertex_times = _build()
    extra = np.array([0.1, 0.2, 0.3])
    source.append(extra)
    vertex_times.append(5)
    graph.append_vertices(vertex_times, len(source))
    assert np.allclose(graph.compute_vertex_position(len(source) - 1), extra)


def test_poses_follow_graph_translation():
    graph, _, _ = _build()
    pose = np.eye(4)
    pose[:3, 3] = [0.2, -0.1, 0.3]
    graph.set_poses_seq([4], [pose])
    shift = np.array([0.0, 0.5, -0.5])
    for node in graph.graph():
        node.translation = shift.copy()
    expected_translation = pose[:3, 3] + shift
    graph.apply_graph_to_poses([pose])
    assert np.allclose(pose[:3, 3], expected_translation)
    assert np.allclose(pose[:3, :3], np.eye(3))


def test_apply_to_poses_rejects_wrong_count():
    graph, _, _ = _build()
    graph.set_poses_seq([4], [np.eye(4)])
    with pytest.raises(ValueError):
        graph.apply_graph_to_poses([np.eye(4), np.eye(4)])


def test_constraint_error_and_overwrite():
    graph, source, _ = _build()
    graph.add_constraint(0, source[0] + np.array([0.3, 0.0, 0.0]))
    assert graph.non_relative_constraint_error() == pytest.approx(0.3)
    graph.add_constraint(0, source[0] + np.array([0.1, 0.0, 0.0]))
    assert len(graph.constraints) == 1
    assert graph.non_relative_constraint_error() == pytest.approx(0.1)


def test_relative_constraints_do_not_add_error():
    graph, _, _ = _build()
    graph.add_relative_constraint(3, 4)
    assert graph.non_relative_constraint_error() == 0.0


def test_no_constraints_gives_nan_error():
    graph, source, _ = _build()
    graph.add_constraint(2, source[2])
    graph.clear_constraints()
    assert graph.constraints == []
    assert math.isnan(graph.non_relative_constraint_error())


def test_fern_match_skips_satisfied_constraints():
    graph, source, _ = _build()
    graph.add_constraint(5, source[5])
    result = graph.optimise_graph_sparse(True, 0)
    assert result.optimised is False
    assert result.error is None
    assert result.mean_constraint_error == pytest.approx(0.0)
    for node in graph.graph():
        assert np.allclose(node.translation, np.zeros(3))


def test_optimise_requires_initialisation():
    graph = DeformationGraph(K, [])
    with pytest.raises(RuntimeError):
        graph.optimise_graph_sparse(False, 0)


def test_optimise_pulls_vertices_towards_targets():
    graph, source, _ = _build()
    offset = np.array([0.05, 0.02, -0.03])
    for vertex_id in (0, 7, 14, 21, 28):
        graph.add_constraint(vertex_id, source[vertex_id] + offset)
    before = graph.non_relative_constraint_error()
    result = graph.optimise_graph_sparse(False, 0)
    assert result.optimised is True
    assert math.isfinite(result.error)
    assert result.mean_constraint_error < before
    assert all(node.enabled for node in graph.graph())