"""An embedded deformation graph that bends a surfel map and its camera poses."""

from __future__ import annotations

import math
from contextlib import nullcontext
from typing import NamedTuple, Optional

import numpy as np

from .cholesky import CholeskyDecomp
from .graph import (
    Constraint,
    GraphNode,
    VertexWeight,
    blend_position,
    connect_sequential,
    nearest_node_weights,
)
from .optimisation import NUM_VARIABLES, apply_delta, sparse_jacobian, sparse_residual

MAX_ITERATIONS = 3
FERN_ACCEPT_ERROR = 0.06
FERN_REJECT_ERROR = 10.0


class OptimisationResult(NamedTuple):
    """Outcome of :meth:`DeformationGraph.optimise_graph_sparse`.

    ``error`` is ``None`` when the optimisation was skipped.
    """

    optimised: bool
    error: Optional[float]
    mean_constraint_error: float


class DeformationGraph:
    """A chain of nodes sampled over time, each carrying an affine transform.

    ``source_vertices`` is the list of map vertices the graph deforms; it is
    kept by reference and updated in place by :meth:`apply_graph_to_vertices`.
    """

    def __init__(self, k, source_vertices=None, stopwatch=None):
        if k < 1:
            raise ValueError("a node needs at least one neighbour")
        self.k = k
        self.source_vertices = source_vertices if source_vertices is not None else []
        self._stopwatch = stopwatch
        self._initialised = False
        self._nodes: list[GraphNode] = []
        self._graph_cloud: list[np.ndarray] = []
        self._graph_times: list[int] = []
        self._vertex_map: list[list[VertexWeight]] = []
        self._pose_map: list[list[VertexWeight]] = []
        self._constraints: list[Constraint] = []
        self._last_point_count = 0
        self._cholesky = CholeskyDecomp()

    def is_init(self) -> bool:
        return self._initialised

    def graph(self) -> list[GraphNode]:
        """The graph's nodes, in sampling order."""
        return self._nodes

    def graph_times(self) -> list[int]:
        """The time each node was sampled at."""
        return self._graph_times

    def _require_initialised(self) -> None:
        if not self._initialised:
            raise RuntimeError("the deformation graph has not been initialised")

    def initialise_graph(self, custom_graph, graph_time_map) -> None:
        """Build nodes at ``custom_graph`` positions sampled at ``graph_time_map``."""
        positions = [np.array(p, dtype=np.float64).reshape(-1) for p in custom_graph]
        times = [int(t) for t in graph_time_map]
        if len(positions) != len(times):
            raise ValueError("graph positions and times differ in length")

        nodes = [GraphNode(id=i, position=p) for i, p in enumerate(positions)]
        connect_sequential(nodes, self.k)

        self._graph_cloud = positions
        self._graph_times = times
        self._nodes = nodes
        self._initialised = True

    def _weights_for(self, position, time) -> list[VertexWeight]:
        return nearest_node_weights(
            position, time, self._graph_times, self._graph_cloud, self.k
        )

    def append_vertices(self, vertex_time_map, original_point_end) -> None:
        """Weight the source vertices added since the last call.

        Vertices from the previous ``original_point_end`` onwards are
        (re)weighted; ``vertex_time_map`` gives each vertex's time by index.
        """
        kept = self._vertex_map[: self._last_point_count]
        kept.extend([] for _ in range(self._last_point_count - len(kept)))
        self._vertex_map = kept

        for i in range(self._last_point_count, len(self.source_vertices)):
            self._vertex_map.append(
                self._weights_for(self.source_vertices[i], vertex_time_map[i])
            )

        self._last_point_count = original_point_end

    def set_poses_seq(self, pose_time_map, poses) -> None:
        """Weight camera poses by their positions and times, replacing earlier ones."""
        self._pose_map = [
            self._weights_for(np.asarray(pose, dtype=np.float64)[:3, 3], pose_time_map[i])
            for i, pose in enumerate(poses)
        ]

    def add_constraint(self, vertex_id, target) -> None:
        """Pin a vertex to ``target``, replacing any constraint on that vertex."""
        self._require_initialised()
        self._put_constraint(Constraint(vertex_id, target_position=target))

    def add_relative_constraint(self, vertex_id, target_id) -> None:
        """Pin a vertex to another vertex, replacing any constraint on it."""
        self._require_initialised()
        self._put_constraint(Constraint(vertex_id, relative=True, target_id=target_id))

    def _put_constraint(self, constraint: Constraint) -> None:
        for i, existing in enumerate(self._constraints):
            if existing.vertex_id == constraint.vertex_id:
                self._constraints[i] = constraint
                return
        self._constraints.append(constraint)

    def clear_constraints(self) -> None:
        self._constraints.clear()

    @property
    def constraints(self) -> list[Constraint]:
        return list(self._constraints)

    def compute_vertex_position(self, vertex_id) -> np.ndarray:
        """Where the graph moves source vertex ``vertex_id``."""
        self._require_initialised()
        return blend_position(
            self.source_vertices[vertex_id], self._vertex_map[vertex_id], self._nodes
        )

    def apply_graph_to_vertices(self) -> None:
        """Replace every source vertex with its deformed position."""
        for i in range(len(self.source_vertices)):
            self.source_vertices[i] = self.compute_vertex_position(i)

    def apply_graph_to_poses(self, poses) -> None:
        """Deform 4x4 pose arrays in place, in the order given to :meth:`set_poses_seq`."""
        self._require_initialised()
        if len(poses) != len(self._pose_map):
            raise ValueError(
                f"{len(poses)} poses given, {len(self._pose_map)} were weighted"
            )
        for pose, weights in zip(poses, self._pose_map):
            if not isinstance(pose, np.ndarray) or pose.shape != (4, 4):
                raise ValueError("each pose must be a 4x4 array")
            position = pose[:3, 3].astype(np.float64)
            new_position = np.zeros(3)
            rotation = np.zeros((3, 3))
            for w in weights:
                node = self._nodes[w.node]
                new_position += w.weight * (
                    node.rotation @ (position - node.position)
                    + node.position
                    + node.translation
                )
                rotation += w.weight * node.rotation

            u, _, vh = np.linalg.svd(rotation @ pose[:3, :3].astype(np.float64))
            pose[:3, 3] = new_position
            pose[:3, :3] = u @ vh

    def non_relative_constraint_error(self) -> float:
        """Mean distance of the absolute constraints from their targets.

        The sum is divided by the count of all constraints; with none the
        result is NaN.
        """
        total = sum(
            float(
                np.linalg.norm(
                    self.compute_vertex_position(c.vertex_id) - c.target_position
                )
            )
            for c in self._constraints
            if not c.relative
        )
        if not self._constraints:
            return math.nan
        return total / len(self._constraints)

    def optimise_graph_sparse(self, fern_match, last_deform_time) -> OptimisationResult:
        """Run Gauss-Newton on the nodes sampled after ``last_deform_time``.

        When ``fern_match`` is set and the constraints are already met closely
        the graph is left alone.
        """
        self._require_initialised()
        timer = self._stopwatch.measure("opt") if self._stopwatch else nullcontext()
        with timer:
            return self._optimise(fern_match, last_deform_time)

    def _optimise(self, fern_match, last_deform_time) -> OptimisationResult:
        mean_error = self.non_relative_constraint_error()
        if fern_match and mean_error < FERN_ACCEPT_ERROR:
            return OptimisationResult(False, None, mean_error)

        num_cols = 0
        back_set = len(self._nodes) * NUM_VARIABLES
        for node, sampled in zip(self._nodes, self._graph_times):
            node.enabled = sampled > last_deform_time
            if node.enabled:
                num_cols += NUM_VARIABLES
                back_set -= NUM_VARIABLES

        def residual_now() -> np.ndarray:
            return sparse_residual(
                self._nodes, self._vertex_map, self._constraints, self.source_vertices
            )

        def jacobian_now():
            return sparse_jacobian(
                self._nodes,
                self._vertex_map,
                self._constraints,
                self.source_vertices,
                num_cols,
                back_set,
                self.k,
            )

        residual = residual_now()
        jacobian = jacobian_now()
        error = float(residual @ residual)
        last_error = error

        for iteration in range(1, MAX_ITERATIONS + 1):
            delta = self._cholesky.solve(jacobian, -residual, iteration == 1)
            apply_delta(self._nodes, delta)

            residual = residual_now()
            error = float(residual @ residual)
            error_diff = error - last_error

            if (
                error > last_error
                or np.linalg.norm(delta) < 1e-2
                or error < 1e-3
                or abs(error_diff) < 1e-5 * error
                or (iteration == 1 and fern_match and error > FERN_REJECT_ERROR)
            ):
                break

            last_error = error
            jacobian = jacobian_now()

        self._cholesky.free_factor()

        return OptimisationResult(True, error, self.non_relative_constraint_error())

    def reset_graph(self) -> None:
        """Return every node to the identity transform."""
        for node in self._nodes:
            node.rotation = np.eye(3)
            node.translation = np.zeros(3)