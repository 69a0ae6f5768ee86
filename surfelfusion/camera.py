"""Image resolution and pinhole camera intrinsics."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Resolution:
    """Width and height of the images a pipeline works on."""

    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"resolution must be positive, got {self.width}x{self.height}"
            )

    def cols(self) -> int:
        """Number of image columns (the width)."""
        return self.width

    def rows(self) -> int:
        """Number of image rows (the height)."""
        return self.height

    def num_pixels(self) -> int:
        """Total number of pixels in one image."""
        return self.width * self.height


@dataclass(frozen=True)
class Intrinsics:
    """Focal lengths and principal point of a pinhole camera."""

    fx: float
    fy: float
    cx: float
    cy: float

    def __post_init__(self) -> None:
        if self.fx == 0 or self.fy == 0:
            raise ValueError("focal lengths must be non-zero")

    def as_vector(self) -> np.ndarray:
        """Return ``(cx, cy, fx, fy)`` as a float32 vector."""
        return np.array([self.cx, self.cy, self.fx, self.fy], dtype=np.float32)

    def inverse_focal_vector(self) -> np.ndarray:
        """Return ``(cx, cy, 1/fx, 1/fy)`` as a float32 vector."""
        return np.array(
            [self.cx, self.cy, 1.0 / self.fx, 1.0 / self.fy], dtype=np.float32
        )