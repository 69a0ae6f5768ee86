"""A row-major two-dimensional image buffer."""

from __future__ import annotations

import numpy as np


class Img:
    """Image of ``rows`` x ``cols`` pixels, each of ``channels`` elements.

    When ``data`` is given the image wraps it instead of allocating its own
    storage, and ``owned`` is false.
    """

    def __init__(self, rows, cols, dtype=np.uint8, channels=1, data=None):
        if rows < 0 or cols < 0:
            raise ValueError("image dimensions must not be negative")
        if channels < 1:
            raise ValueError("an image needs at least one channel")
        self.rows = rows
        self.cols = cols
        self.channels = channels
        shape = (rows, cols) if channels == 1 else (rows, cols, channels)

        if data is None:
            self.data = np.zeros(shape, dtype=dtype)
            self.owned = True
        else:
            array = np.asarray(data, dtype=dtype)
            if array.size != rows * cols * channels:
                raise ValueError(
                    f"buffer of {array.size} elements does not fit a "
                    f"{rows}x{cols}x{channels} image"
                )
            self.data = array.reshape(shape)
            self.owned = False

    @property
    def dtype(self) -> np.dtype:
        return self.data.dtype

    def _check(self, row: int, col: int) -> None:
        if not (0 <= row < self.rows and 0 <= col < self.cols):
            raise IndexError(f"pixel ({row}, {col}) is outside the image")

    def at(self, row, col):
        """Return the pixel at ``(row, col)``."""
        self._check(row, col)
        return self.data[row, col]

    def flat(self, index):
        """Return the pixel at position ``index`` in row-major order."""
        if not 0 <= index < self.rows * self.cols:
            raise IndexError(f"pixel index {index} is outside the image")
        return self.at(*divmod(index, self.cols))

    def set(self, row, col, value) -> None:
        """Store ``value`` at ``(row, col)``."""
        self._check(row, col)
        self.data[row, col] = value