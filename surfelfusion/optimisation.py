"""Residual, Jacobian and update steps of the deformation-graph optimisation."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from .graph import Constraint, GraphNode, VertexWeight, blend_position, sort_by_node_id
from .jacobian import Jacobian, OrderedJacobianRow

NUM_VARIABLES = 12
E_ROT_ROWS = 6
E_REG_ROWS = 3
E_CON_ROWS = 3

W_ROT = 1.0
W_REG = 10.0
W_CON = 100.0

_SQRT_REG = math.sqrt(W_REG)
_SQRT_CON = math.sqrt(W_CON)

# Rotation rows: (capacity, [(variable offset, rotation column, factor), ...]).
# Variables 0..8 hold the rotation in column-major order.
_ROTATION_ROWS = (
    (6, ((0, 1, 1.0), (3, 0, 1.0))),
    (6, ((0, 2, 1.0), (6, 0, 1.0))),
    (6, ((3, 2, 1.0), (6, 1, 1.0))),
    (3, ((0, 0, 2.0),)),
    (3, ((3, 1, 2.0),)),
    (3, ((6, 2, 2.0),)),
)


def _influences(
    constraint: Constraint,
    vertex_map: Sequence[Sequence[VertexWeight]],
    nodes: Sequence[GraphNode],
) -> bool:
    """Whether any enabled node moves the vertices the constraint refers to."""
    if any(nodes[w.node].enabled for w in vertex_map[constraint.vertex_id]):
        return True
    if constraint.relative:
        return any(nodes[w.node].enabled for w in vertex_map[constraint.target_id])
    return False


def _vertex_position(vertex_id, vertex_map, nodes, source_vertices) -> np.ndarray:
    return blend_position(source_vertices[vertex_id], vertex_map[vertex_id], nodes)


def sparse_residual(nodes, vertex_map, constraints, source_vertices) -> np.ndarray:
    """Stack the rotation, regularisation and constraint residuals.

    Only enabled nodes contribute rotation terms; an edge contributes when
    either end is enabled; a constraint contributes when an enabled node
    influences it.
    """
    parts: list[np.ndarray] = []

    for node in nodes:
        if node.enabled:
            r = node.rotation
            c0, c1, c2 = r[:, 0], r[:, 1], r[:, 2]
            parts.append(
                np.array(
                    [
                        c0 @ c1,
                        c0 @ c2,
                        c1 @ c2,
                        c0 @ c0 - 1.0,
                        c1 @ c1 - 1.0,
                        c2 @ c2 - 1.0,
                    ]
                )
            )

    for node in nodes:
        for neighbour_index in node.neighbours:
            neighbour = nodes[neighbour_index]
            if neighbour.enabled or node.enabled:
                term = (
                    node.rotation @ (neighbour.position - node.position)
                    + node.position
                    + node.translation
                    - (neighbour.position + neighbour.translation)
                )
                parts.append(term * _SQRT_REG)

    for constraint in constraints:
        if not _influences(constraint, vertex_map, nodes):
            continue
        source = _vertex_position(
            constraint.vertex_id, vertex_map, nodes, source_vertices
        )
        if constraint.relative:
            target = _vertex_position(
                constraint.target_id, vertex_map, nodes, source_vertices
            )
        else:
            target = constraint.target_position
        parts.append((source - target) * _SQRT_CON)

    if not parts:
        return np.zeros(0)
    return np.concatenate(parts).astype(np.float64)


def _constraint_entries(rows, offset, delta, weight, add) -> None:
    """Write one node's block into the three rows of a constraint."""
    for axis, row in enumerate(rows):
        entries = (
            (offset + axis, delta[0]),
            (offset + 3 + axis, delta[1]),
            (offset + 6 + axis, delta[2]),
            (offset + 9 + axis, weight),
        )
        for index, value in entries:
            if add:
                row.add_to(index, value, _SQRT_CON)
            else:
                row.append(index, value * _SQRT_CON)


def sparse_jacobian(
    nodes, vertex_map, constraints, source_vertices, num_cols, back_set, k
) -> Jacobian:
    """Build the Jacobian of :func:`sparse_residual` over the enabled nodes' variables.

    Columns of node ``i`` start at ``12 * i - back_set``. Relative
    constraints mark the target vertex's weights as relative.
    """
    rows: list[OrderedJacobianRow] = []

    for node in nodes:
        if not node.enabled:
            continue
        offset = node.id * NUM_VARIABLES - back_set
        rotation = node.rotation
        for capacity, blocks in _ROTATION_ROWS:
            row = OrderedJacobianRow(capacity)
            for start, column, factor in blocks:
                for i in range(3):
                    row.append(offset + start + i, factor * rotation[i, column])
            rows.append(row)

    for node in nodes:
        offset = node.id * NUM_VARIABLES - back_set
        for neighbour_index in node.neighbours:
            neighbour = nodes[neighbour_index]
            if not (neighbour.enabled or node.enabled):
                continue
            block = [OrderedJacobianRow(5) for _ in range(E_REG_ROWS)]
            delta = neighbour.position - node.position
            offset_n = neighbour.id * NUM_VARIABLES - back_set
            if offset_n == offset:
                raise ValueError(f"node {node.id} lists itself as a neighbour")

            def neighbour_terms() -> None:
                for axis, row in enumerate(block):
                    row.append(offset_n + 9 + axis, -1.0 * _SQRT_REG)

            if offset_n < offset and neighbour.enabled:
                neighbour_terms()
            if node.enabled:
                for axis, row in enumerate(block):
                    row.append(offset + axis, delta[0] * _SQRT_REG)
                    row.append(offset + 3 + axis, delta[1] * _SQRT_REG)
                    row.append(offset + 6 + axis, delta[2] * _SQRT_REG)
                    row.append(offset + 9 + axis, 1.0 * _SQRT_REG)
            if offset_n > offset and neighbour.enabled:
                neighbour_terms()
            rows.extend(block)

    for constraint in constraints:
        if not _influences(constraint, vertex_map, nodes):
            continue
        weights = vertex_map[constraint.vertex_id]
        source = np.asarray(source_vertices[constraint.vertex_id], dtype=np.float64)
        block = [OrderedJacobianRow(4 * k * 2) for _ in range(E_CON_ROWS)]

        if constraint.relative:
            target = np.asarray(
                source_vertices[constraint.target_id], dtype=np.float64
            )
            target_weights = vertex_map[constraint.target_id]
            for w in target_weights:
                w.relative = True
            mixed = sort_by_node_id(list(weights) + list(target_weights), nodes)
            seen: set[int] = set()
            for w in mixed:
                node = nodes[w.node]
                if not node.enabled:
                    continue
                offset = node.id * NUM_VARIABLES - back_set
                if w.relative:
                    delta = (node.position - target) * w.weight
                    weight = -w.weight
                else:
                    delta = (source - node.position) * w.weight
                    weight = w.weight
                _constraint_entries(block, offset, delta, weight, node.id in seen)
                seen.add(node.id)
        else:
            for w in weights:
                node = nodes[w.node]
                if not node.enabled:
                    continue
                offset = node.id * NUM_VARIABLES - back_set
                delta = (source - node.position) * w.weight
                _constraint_entries(block, offset, delta, w.weight, False)

        rows.extend(block)

    jacobian = Jacobian()
    jacobian.assign(rows, num_cols)
    return jacobian


def apply_delta(nodes, delta) -> None:
    """Add consecutive 12-value blocks of ``delta`` to the enabled nodes.

    Each block holds the rotation in column-major order, then the translation.
    """
    step = np.asarray(delta, dtype=np.float64).reshape(-1)
    enabled = [node for node in nodes if node.enabled]
    needed = NUM_VARIABLES * len(enabled)
    if step.shape[0] < needed:
        raise ValueError(
            f"delta has {step.shape[0]} entries, {needed} are needed"
        )
    for block, node in enumerate(enabled):
        values = step[block * NUM_VARIABLES:(block + 1) * NUM_VARIABLES]
        node.rotation = node.rotation + values[:9].reshape(3, 3).T
        node.translation = node.translation + values[9:]