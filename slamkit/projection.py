"""Reprojection error and its Jacobians for bundle adjustment."""

from __future__ import annotations

import numpy as np

from slamkit.lie import SE3


def project(k, pose: SE3, point) -> np.ndarray:
    """Pixel of a world point seen by a camera with intrinsics k and pose T_c_w."""
    pixel = np.asarray(k, dtype=float) @ (pose * np.asarray(point, dtype=float))
    if pixel[2] == 0:
        raise ValueError("point lies on the camera plane and has no projection")
    return pixel[:2] / pixel[2]


def projection_error(measurement, k, pose: SE3, point) -> np.ndarray:
    """Measured pixel minus the projected pixel."""
    return np.asarray(measurement, dtype=float) - project(k, pose, point)


def pose_jacobian(k, pose: SE3, point) -> np.ndarray:
    """2x6 Jacobian of the error under a left perturbation of the pose."""
    k = np.asarray(k, dtype=float)
    fx, fy = k[0, 0], k[1, 1]
    x, y, z = pose * np.asarray(point, dtype=float)
    zinv = 1.0 / (z + 1e-18)
    zinv2 = zinv * zinv
    return np.array(
        [
            [-fx * zinv, 0.0, fx * x * zinv2, fx * x * y * zinv2, -fx - fx * x * x * zinv2, fx * y * zinv],
            [0.0, -fy * zinv, fy * y * zinv2, fy + fy * y * y * zinv2, -fy * x * y * zinv2, -fy * x * zinv],
        ]
    )


def landmark_jacobian(k, cam_ext: SE3, pose: SE3, point) -> np.ndarray:
    """2x3 Jacobian of the error with respect to the world point."""
    jac = pose_jacobian(k, cam_ext * pose, point)
    return jac[:, :3] @ cam_ext.rotation_matrix() @ pose.rotation_matrix()