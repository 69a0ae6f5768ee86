"""Binary layout of surfel vertices.

Each vertex is three float32 vec4s (48 bytes):

* position x, y, z and confidence
* colour (a 24-bit integer stored as a float), unused, init time, timestamp
* normal x, y, z and radius
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterable

_LAYOUT = struct.Struct("<12f")

VERTEX_SIZE = _LAYOUT.size

_MAX_COLOR = 0xFFFFFF


def encode_color(r, g, b) -> int:
    """Pack 8-bit red, green and blue into one 24-bit integer."""
    for channel in (r, g, b):
        if not 0 <= channel <= 255:
            raise ValueError(f"colour channel {channel} is outside 0..255")
    return (int(r) << 16) | (int(g) << 8) | int(b)


def decode_color(value) -> tuple[int, int, int]:
    """Split a 24-bit colour integer into red, green and blue."""
    if value != int(value) or not 0 <= value <= _MAX_COLOR:
        raise ValueError(f"{value!r} is not a 24-bit colour")
    value = int(value)
    return (value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF


def _triple(name: str, values) -> tuple[float, float, float]:
    triple = tuple(float(v) for v in values)
    if len(triple) != 3:
        raise ValueError(f"{name} needs three components, got {len(triple)}")
    return triple


@dataclass
class Surfel:
    """One surfel as stored in a vertex buffer."""

    position: tuple[float, float, float] = (0.0, 0.0, 0.0)
    confidence: float = 0.0
    color: int = 0
    init_time: float = 0.0
    timestamp: float = 0.0
    normal: tuple[float, float, float] = (0.0, 0.0, 0.0)
    radius: float = 0.0

    def __post_init__(self) -> None:
        self.position = _triple("position", self.position)
        self.normal = _triple("normal", self.normal)
        if not 0 <= self.color <= _MAX_COLOR:
            raise ValueError(f"colour {self.color} is not a 24-bit value")
        self.color = int(self.color)


def pack_vertices(surfels: Iterable[Surfel]) -> bytes:
    """Serialise surfels into the interleaved vertex-buffer format."""
    return b"".join(
        _LAYOUT.pack(
            *s.position,
            s.confidence,
            float(s.color),
            0.0,
            s.init_time,
            s.timestamp,
            *s.normal,
            s.radius,
        )
        for s in surfels
    )


def unpack_vertices(data) -> list[Surfel]:
    """Read surfels back from a vertex buffer."""
    data = bytes(data)
    if len(data) % VERTEX_SIZE:
        raise ValueError(
            f"buffer of {len(data)} bytes is not a whole number of vertices"
        )
    return [
        Surfel(
            position=values[0:3],
            confidence=values[3],
            color=int(values[4]),
            init_time=values[6],
            timestamp=values[7],
            normal=values[8:11],
            radius=values[11],
        )
        for values in _LAYOUT.iter_unpack(data)
    ]