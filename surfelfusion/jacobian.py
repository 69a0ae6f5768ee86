"""Sparse Jacobian rows built in column order."""

from __future__ import annotations

from itertools import accumulate
from typing import Iterator

import numpy as np
from scipy.sparse import csr_matrix


class OrderedJacobianRow:
    """One sparse row whose entries must be appended in increasing column order."""

    def __init__(self, max_nonzeros: int):
        if max_nonzeros < 0:
            raise ValueError("a row cannot hold a negative number of entries")
        self.max_nonzeros = max_nonzeros
        self._indices: list[int] = []
        self._values: list[float] = []
        self._slots: dict[int, int] = {}

    @property
    def indices(self) -> tuple[int, ...]:
        return tuple(self._indices)

    @property
    def values(self) -> tuple[float, ...]:
        return tuple(self._values)

    def __iter__(self) -> Iterator[tuple[int, float]]:
        return zip(self._indices, self._values)

    def append(self, index, value) -> None:
        """Add an entry in a column after every column already used."""
        last = self._indices[-1] if self._indices else -1
        if index <= last:
            raise ValueError(
                f"column {index} does not follow the last column {last}"
            )
        if len(self._indices) >= self.max_nonzeros:
            raise IndexError(f"row is full at {self.max_nonzeros} entries")
        self._slots[index] = len(self._indices)
        self._indices.append(index)
        self._values.append(float(value))

    def add_to(self, index, value, weight) -> None:
        """Add an unweighted ``value`` to an existing entry already scaled by ``weight``."""
        try:
            slot = self._slots[index]
        except KeyError:
            raise KeyError(f"column {index} has no entry in this row") from None
        self._values[slot] = (self._values[slot] / weight + value) * weight

    def nonzeros(self) -> int:
        """Number of entries stored."""
        return len(self._indices)


class Jacobian:
    """A collection of ordered rows with a fixed number of columns."""

    def __init__(self):
        self.rows: list[OrderedJacobianRow] = []
        self._columns = 0

    def assign(self, rows, columns) -> None:
        """Replace the rows and the column count."""
        self.rows = list(rows)
        self._columns = columns

    def cols(self) -> int:
        return self._columns

    def non_zero(self) -> int:
        """Total number of stored entries across all rows."""
        return sum(row.nonzeros() for row in self.rows)

    def to_sparse(self) -> csr_matrix:
        """Return the Jacobian as a ``len(rows)`` x ``cols()`` CSR matrix."""
        indices = [i for row in self.rows for i in row.indices]
        if any(i < 0 or i >= self._columns for i in indices):
            raise ValueError("a row refers to a column outside the Jacobian")
        values = [v for row in self.rows for v in row.values]
        indptr = list(accumulate((row.nonzeros() for row in self.rows), initial=0))
        return csr_matrix(
            (
                np.asarray(values, dtype=np.float64),
                np.asarray(indices, dtype=np.int64),
                np.asarray(indptr, dtype=np.int64),
            ),
            shape=(len(self.rows), self._columns),
        )