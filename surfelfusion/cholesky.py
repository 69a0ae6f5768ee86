"""Sparse least-squares steps through a Cholesky factor of the normal equations."""

from __future__ import annotations

from typing import Optional

import numpy as np
from scipy.linalg import cholesky, solve_triangular
from scipy.sparse.csgraph import reverse_cuthill_mckee


class CholeskyDecomp:
    """Solves ``J^T J x = J^T r`` for a sparse Jacobian ``J``.

    The fill-reducing ordering is computed on the first run of an
    optimisation and reused for the later runs until :meth:`free_factor`
    is called.
    """

    def __init__(self):
        self._permutation: Optional[np.ndarray] = None

    @property
    def analysed(self) -> bool:
        """Whether an ordering from a first run is held."""
        return self._permutation is not None

    def free_factor(self) -> None:
        """Drop the ordering computed on the first run."""
        if self._permutation is None:
            raise RuntimeError("there is no factor to free")
        self._permutation = None

    def solve(self, jacobian, residual, first_run) -> np.ndarray:
        """Return the least-squares step for ``jacobian`` and ``residual``."""
        matrix = jacobian.to_sparse()
        rhs_source = np.asarray(residual, dtype=np.float64).reshape(-1)
        if rhs_source.shape[0] != matrix.shape[0]:
            raise ValueError(
                f"residual has {rhs_source.shape[0]} entries for a Jacobian "
                f"of {matrix.shape[0]} rows"
            )

        normal = (matrix.T @ matrix).tocsr()

        if first_run:
            if self._permutation is not None:
                raise RuntimeError("the factor from a previous run was not freed")
            self._permutation = np.asarray(
                reverse_cuthill_mckee(normal, symmetric_mode=True), dtype=np.int64
            )
        elif self._permutation is None:
            raise RuntimeError("solve must be run with first_run before reuse")

        permutation = self._permutation
        if permutation.shape[0] != normal.shape[0]:
            raise ValueError("the Jacobian changed size since the first run")

        permuted = normal[permutation][:, permutation].toarray()
        rhs = (matrix.T @ rhs_source)[permutation]

        lower = cholesky(permuted, lower=True)
        forward = solve_triangular(lower, rhs, lower=True)
        solution = solve_triangular(lower.T, forward, lower=False)

        delta = np.empty_like(solution)
        delta[permutation] = solution
        return delta