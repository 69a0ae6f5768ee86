"""Nodes, weights and constraints of an embedded deformation graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

LOOK_BACK = 20


def _vector3(name: str, value) -> np.ndarray:
    array = np.array(value, dtype=np.float64).reshape(-1)
    if array.shape != (3,):
        raise ValueError(f"{name} needs three components")
    return array


@dataclass(eq=False)
class GraphNode:
    """One node: its rest position, affine rotation and translation."""

    id: int
    position: np.ndarray
    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))
    neighbours: list[int] = field(default_factory=list)
    enabled: bool = True

    def __post_init__(self) -> None:
        self.position = _vector3("position", self.position)
        self.translation = _vector3("translation", self.translation)
        rotation = np.array(self.rotation, dtype=np.float64)
        if rotation.shape != (3, 3):
            raise ValueError("rotation must be 3x3")
        self.rotation = rotation


@dataclass
class VertexWeight:
    """Influence of one graph node on a vertex or pose."""

    weight: float
    node: int
    relative: bool = False


@dataclass(eq=False)
class Constraint:
    """Pins a vertex to a target position, or to another vertex when relative."""

    vertex_id: int
    target_position: np.ndarray = field(default_factory=lambda: np.zeros(3))
    relative: bool = False
    target_id: int = -1

    def __post_init__(self) -> None:
        self.target_position = _vector3("target_position", self.target_position)
        if self.relative and self.target_id < 0:
            raise ValueError("a relative constraint needs a target vertex")


def sort_by_node_id(weights, graph) -> list[VertexWeight]:
    """Return ``weights`` ordered by the id of their node, keeping ties in order."""
    return sorted(weights, key=lambda w: graph[w.node].id)


def connect_sequential(nodes: Sequence[GraphNode], k) -> None:
    """Link every node to ``k`` neighbours along the sequence order."""
    count = len(nodes)
    if count < k + 1:
        raise ValueError(f"{count} nodes cannot each have {k} neighbours")
    half = k // 2

    for i in range(half):
        nodes[i].neighbours.extend(n for n in range(k + 1) if n != i)

    for i in range(half, count - half):
        for n in range(1, half + 1):
            nodes[i].neighbours.extend((i - n, i + n))

    for i in range(count - half, count):
        nodes[i].neighbours.extend(
            n for n in range(count - (k + 1), count) if n != i
        )


def closest_time_index(graph_times, time) -> int:
    """Index of the sorted ``graph_times`` entry nearest to ``time``."""
    times = [int(t) for t in graph_times]
    if not times:
        raise ValueError("there are no graph times to search")
    time = int(time)

    low, high = 0, len(times) - 1
    middle = (low + high) // 2
    while high >= low:
        middle = (low + high) // 2
        if times[middle] < time:
            low = middle + 1
        elif times[middle] > time:
            high = middle - 1
        else:
            break

    low = min(low, len(times) - 1)
    high = max(high, 0)

    def gap(index: int) -> int:
        return abs(times[index] - time)

    if gap(low) <= gap(middle) and gap(low) <= gap(high):
        return low
    if gap(middle) <= gap(low) and gap(middle) <= gap(high):
        return middle
    return high


def nearest_node_weights(position, time, graph_times, graph_positions, k) -> list[VertexWeight]:
    """Weights of the ``k`` nodes nearest to ``position`` among those close in time.

    Up to twenty nodes around the one closest in time are considered; the
    weights fall off with distance relative to the (k+1)-th nearest one,
    sum to one and are ordered by node.
    """
    point = _vector3("position", position)
    positions = [_vector3("graph position", p) for p in graph_positions]
    if len(positions) != len(graph_times):
        raise ValueError("graph times and positions differ in length")

    found = closest_time_index(graph_times, time)

    candidates: list[tuple[float, int]] = []
    for j in range(found, -1, -1):
        candidates.append((float(np.linalg.norm(positions[j] - point)), j))
        if len(candidates) == LOOK_BACK:
            break
    if len(candidates) != LOOK_BACK:
        for j in range(found + 1, len(positions)):
            candidates.append((float(np.linalg.norm(positions[j] - point)), j))
            if len(candidates) == LOOK_BACK:
                break

    if len(candidates) <= k:
        raise ValueError(f"need more than {k} candidate nodes, found {len(candidates)}")

    candidates.sort(key=lambda candidate: candidate[0])
    d_max = candidates[k][0]
    if d_max == 0:
        raise ValueError("all candidate nodes coincide with the position")

    weights = [
        VertexWeight((1.0 - distance / d_max) ** 2, node)
        for distance, node in candidates[:k]
    ]
    total = sum(w.weight for w in weights)
    if total == 0:
        raise ValueError("the nearest nodes give the position no weight")
    for w in weights:
        w.weight /= total

    return sorted(weights, key=lambda w: w.node)


def blend_position(source, weights, nodes) -> np.ndarray:
    """Move ``source`` by the weighted transforms of the nodes in ``weights``."""
    point = _vector3("source", source)
    result = np.zeros(3)
    for w in weights:
        node = nodes[w.node]
        result += w.weight * (
            node.rotation @ (point - node.position) + node.position + node.translation
        )
    return result