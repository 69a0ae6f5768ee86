"""Typed shader uniform values."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

import numpy as np


class UniformType(Enum):
    INT = auto()
    FLOAT = auto()
    VEC2 = auto()
    VEC3 = auto()
    VEC4 = auto()
    MAT4 = auto()
    NONE = auto()


_SHAPES = {
    (2,): UniformType.VEC2,
    (3,): UniformType.VEC3,
    (4,): UniformType.VEC4,
    (4, 4): UniformType.MAT4,
}


@dataclass(frozen=True, eq=False)
class Uniform:
    """A named value to be handed to a shader program."""

    name: str
    type: UniformType
    value: object

    @classmethod
    def of(cls, name, value) -> "Uniform":
        """Build a uniform, inferring its type from ``value``."""
        if isinstance(value, (bool, np.bool_, int, np.integer)):
            return cls(name, UniformType.INT, int(value))
        if isinstance(value, (float, np.floating)):
            return cls(name, UniformType.FLOAT, float(value))
        try:
            array = np.array(value, dtype=np.float32)
        except (TypeError, ValueError) as exc:
            raise TypeError(f"unsupported uniform value for {name!r}") from exc
        kind = _SHAPES.get(array.shape)
        if kind is None:
            raise TypeError(
                f"uniform {name!r} has unsupported shape {array.shape}"
            )
        array.setflags(write=False)
        return cls(name, kind, array)