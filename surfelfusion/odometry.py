"""Rotation-vector conversion and incremental SE(3) pose updates."""

from __future__ import annotations

from typing import NamedTuple

import numpy as np

_EPSILON = np.finfo(np.float64).eps


def rodrigues(src) -> np.ndarray:
    """Convert a rotation vector (axis times angle) into a 3x3 rotation matrix."""
    vector = np.asarray(src, dtype=np.float64).reshape(-1)
    if vector.shape != (3,):
        raise ValueError("a rotation vector has three components")
    theta = float(np.linalg.norm(vector))
    if theta < _EPSILON:
        return np.eye(3)
    rx, ry, rz = vector / theta
    c, s = np.cos(theta), np.sin(theta)
    cross = np.array([[0.0, -rz, ry], [rz, 0.0, -rx], [-ry, rx, 0.0]])
    axis = np.array([rx, ry, rz])
    return c * np.eye(3) + (1.0 - c) * np.outer(axis, axis) + s * cross


class SE3Update(NamedTuple):
    """Accumulated transform and its single-precision rigid-body form."""

    result_rt: np.ndarray
    odometry: np.ndarray


def compute_update_se3(result_rt, result) -> SE3Update:
    """Compose a twist ``(tx, ty, tz, rx, ry, rz)`` onto ``result_rt``.

    Returns the new accumulated 4x4 transform and a float32 4x4 transform
    built from its rotation and translation.
    """
    accumulated = np.asarray(result_rt, dtype=np.float64)
    twist = np.asarray(result, dtype=np.float64).reshape(-1)
    if accumulated.shape != (4, 4):
        raise ValueError("the accumulated transform must be 4x4")
    if twist.shape != (6,):
        raise ValueError("a twist has six components")

    step = np.eye(4)
    step[:3, :3] = rodrigues(twist[3:])
    step[:3, 3] = twist[:3]
    updated = step @ accumulated

    odometry = np.eye(4, dtype=np.float32)
    odometry[:3, :3] = updated[:3, :3].astype(np.float32)
    odometry[:3, 3] = updated[:3, 3].astype(np.float32)
    return SE3Update(updated, odometry)