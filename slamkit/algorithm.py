"""Geometric algorithms shared by the odometry pipeline."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from slamkit.lie import SE3


def triangulate(poses: Sequence[SE3], points) -> np.ndarray | None:
    """Linear SVD triangulation of a point seen in several views.

    poses are world-to-camera transforms; points are the matching observations
    on the normalised image plane. Returns the world point, or None when the
    system is not close enough to rank three to trust the result.
    """
    points = [np.asarray(p, dtype=float) for p in points]
    if len(poses) != len(points):
        raise ValueError("need one observation per pose")
    if len(poses) < 2:
        raise ValueError("triangulation needs at least two views")
    rows = []
    for pose, point in zip(poses, points):
        m = pose.matrix3x4()
        rows.append(point[0] * m[2] - m[0])
        rows.append(point[1] * m[2] - m[1])
    a = np.vstack(rows)
    _, singular, vh = np.linalg.svd(a)
    v = vh[3]
    pt_world = v[:3] / v[3]
    if singular[3] / singular[2] < 1e-2:
        return pt_world
    return None


def to_vec2(point) -> np.ndarray:
    """2-vector of a point given by .x/.y attributes or as a pair."""
    if hasattr(point, "x") and hasattr(point, "y"):
        return np.array([float(point.x), float(point.y)])
    x, y = point
    return np.array([float(x), float(y)])