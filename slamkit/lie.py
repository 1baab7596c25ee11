"""Rotations and rigid transforms: the SO(3) and SE(3) groups and their algebras."""

from __future__ import annotations

import math

import numpy as np

_SMALL = 1e-10
_ORTHO_TOL = 1e-6


def _vector(value, size: int) -> np.ndarray:
    arr = np.asarray(value, dtype=float).reshape(-1)
    if arr.shape != (size,):
        raise ValueError(f"expected a vector of length {size}, got shape {np.shape(value)}")
    return arr


def _square(value, size: int) -> np.ndarray:
    arr = np.asarray(value, dtype=float)
    if arr.shape != (size, size):
        raise ValueError(f"expected a {size}x{size} matrix, got shape {arr.shape}")
    return arr


def hat(v) -> np.ndarray:
    """Skew-symmetric matrix of a 3-vector, so that hat(v) @ w == cross(v, w)."""
    x, y, z = _vector(v, 3)
    return np.array([[0.0, -z, y], [z, 0.0, -x], [-y, x, 0.0]])


def vee(m) -> np.ndarray:
    """3-vector of a skew-symmetric matrix; the inverse of hat."""
    m = _square(m, 3)
    return np.array([m[2, 1], m[0, 2], m[1, 0]])


def hat6(xi) -> np.ndarray:
    """4x4 matrix of a twist (translation first, rotation last)."""
    xi = _vector(xi, 6)
    out = np.zeros((4, 4))
    out[:3, :3] = hat(xi[3:])
    out[:3, 3] = xi[:3]
    return out


def vee6(m) -> np.ndarray:
    """Twist of a 4x4 se(3) matrix; the inverse of hat6."""
    m = _square(m, 4)
    return np.concatenate([m[:3, 3], vee(m[:3, :3])])


def quaternion_to_matrix(w, x, y, z) -> np.ndarray:
    """Rotation matrix of a quaternion, normalised first."""
    norm = math.sqrt(w * w + x * x + y * y + z * z)
    if norm < _SMALL:
        raise ValueError("quaternion has zero norm")
    w, x, y, z = w / norm, x / norm, y / norm, z / norm
    return np.array(
        [
            [1 - 2 * (y * y + z * z), 2 * (x * y - z * w), 2 * (x * z + y * w)],
            [2 * (x * y + z * w), 1 - 2 * (x * x + z * z), 2 * (y * z - x * w)],
            [2 * (x * z - y * w), 2 * (y * z + x * w), 1 - 2 * (x * x + y * y)],
        ]
    )


def matrix_to_quaternion(r) -> np.ndarray:
    """Unit quaternion (w, x, y, z) with w >= 0 of a rotation matrix."""
    r = _square(r, 3)
    trace = r[0, 0] + r[1, 1] + r[2, 2]
    if trace > 0:
        s = math.sqrt(trace + 1.0) * 2
        q = [0.25 * s, (r[2, 1] - r[1, 2]) / s, (r[0, 2] - r[2, 0]) / s, (r[1, 0] - r[0, 1]) / s]
    elif r[0, 0] > r[1, 1] and r[0, 0] > r[2, 2]:
        s = math.sqrt(1.0 + r[0, 0] - r[1, 1] - r[2, 2]) * 2
        q = [(r[2, 1] - r[1, 2]) / s, 0.25 * s, (r[0, 1] + r[1, 0]) / s, (r[0, 2] + r[2, 0]) / s]
    elif r[1, 1] > r[2, 2]:
        s = math.sqrt(1.0 + r[1, 1] - r[0, 0] - r[2, 2]) * 2
        q = [(r[0, 2] - r[2, 0]) / s, (r[0, 1] + r[1, 0]) / s, 0.25 * s, (r[1, 2] + r[2, 1]) / s]
    else:
        s = math.sqrt(1.0 + r[2, 2] - r[0, 0] - r[1, 1]) * 2
        q = [(r[1, 0] - r[0, 1]) / s, (r[0, 2] + r[2, 0]) / s, (r[1, 2] + r[2, 1]) / s, 0.25 * s]
    quat = np.array(q)
    quat /= np.linalg.norm(quat)
    return -quat if quat[0] < 0 else quat


def angle_axis_matrix(angle: float, axis) -> np.ndarray:
    """Rotation matrix of a rotation by angle about axis."""
    axis = _vector(axis, 3)
    norm = np.linalg.norm(axis)
    if norm < _SMALL:
        raise ValueError("rotation axis has zero length")
    return SO3.exp(axis / norm * angle).matrix


def euler_angles_zyx(r) -> np.ndarray:
    """Yaw, pitch and roll (Z-Y-X order) of a rotation matrix."""
    r = _square(r, 3)
    yaw = math.atan2(r[1, 0], r[0, 0])
    pitch = math.atan2(-r[2, 0], math.hypot(r[0, 0], r[1, 0]))
    roll = math.atan2(r[2, 1], r[2, 2])
    return np.array([yaw, pitch, roll])


class SO3:
    """A 3D rotation."""

    __slots__ = ("matrix",)

    def __init__(self, matrix=None):
        if matrix is None:
            self.matrix = np.eye(3)
            return
        m = _square(matrix, 3)
        if not np.allclose(m.T @ m, np.eye(3), atol=_ORTHO_TOL) or np.linalg.det(m) < 0:
            raise ValueError("matrix is not a rotation")
        self.matrix = m.copy()

    @classmethod
    def _trusted(cls, matrix: np.ndarray) -> "SO3":
        obj = cls.__new__(cls)
        obj.matrix = matrix
        return obj

    @classmethod
    def from_quaternion(cls, w, x, y, z) -> "SO3":
        """Rotation of a quaternion given as w, x, y, z; normalised first."""
        return cls._trusted(quaternion_to_matrix(w, x, y, z))

    @classmethod
    def exp(cls, phi) -> "SO3":
        """Rotation of a rotation vector."""
        phi = _vector(phi, 3)
        theta = np.linalg.norm(phi)
        k = hat(phi)
        if theta < _SMALL:
            return cls._trusted(np.eye(3) + k + 0.5 * (k @ k))
        m = (
            np.eye(3)
            + math.sin(theta) / theta * k
            + (1 - math.cos(theta)) / (theta * theta) * (k @ k)
        )
        return cls._trusted(m)

    def log(self) -> np.ndarray:
        """Rotation vector of this rotation, with angle in [-pi, pi]."""
        w, *rest = matrix_to_quaternion(self.matrix)
        vec = np.array(rest)
        squared_n = vec @ vec
        if squared_n < _SMALL * _SMALL:
            factor = 2.0 / w - 2.0 / 3.0 * squared_n / (w**3)
        else:
            n = math.sqrt(squared_n)
            if abs(w) < _SMALL:
                factor = (math.pi if w > 0 else -math.pi) / n
            else:
                factor = 2.0 * math.atan(n / w) / n
        return factor * vec

    def inverse(self) -> "SO3":
        return SO3._trusted(self.matrix.T.copy())

    def unit_quaternion(self) -> np.ndarray:
        """Quaternion (w, x, y, z) of this rotation."""
        return matrix_to_quaternion(self.matrix)

    def __mul__(self, other):
        if isinstance(other, SO3):
            return SO3._trusted(self.matrix @ other.matrix)
        points = np.asarray(other, dtype=float)
        if points.shape == (3,):
            return self.matrix @ points
        if points.ndim == 2 and points.shape[1] == 3:
            return points @ self.matrix.T
        raise ValueError(f"cannot rotate an array of shape {points.shape}")

    def __repr__(self) -> str:
        return f"SO3({self.matrix.tolist()})"


class SE3:
    """A rigid transform: a rotation followed by a translation."""

    __slots__ = ("so3", "translation")

    def __init__(self, rotation=None, translation=None):
        if rotation is None:
            self.so3 = SO3()
        elif isinstance(rotation, SO3):
            self.so3 = rotation
        else:
            self.so3 = SO3(rotation)
        self.translation = np.zeros(3) if translation is None else _vector(translation, 3).copy()

    @classmethod
    def from_quaternion(cls, quaternion, translation=None) -> "SE3":
        """Transform of a quaternion (w, x, y, z) and a translation."""
        w, x, y, z = quaternion
        return cls(SO3.from_quaternion(w, x, y, z), translation)

    @classmethod
    def exp(cls, xi) -> "SE3":
        """Transform of a twist (translation part first)."""
        xi = _vector(xi, 6)
        rho, phi = xi[:3], xi[3:]
        theta = np.linalg.norm(phi)
        k = hat(phi)
        if theta < _SMALL:
            v = np.eye(3) + 0.5 * k + (k @ k) / 6.0
        else:
            v = (
                np.eye(3)
                + (1 - math.cos(theta)) / (theta * theta) * k
                + (theta - math.sin(theta)) / (theta**3) * (k @ k)
            )
        return cls(SO3.exp(phi), v @ rho)

    def log(self) -> np.ndarray:
        """Twist of this transform (translation part first)."""
        phi = self.so3.log()
        theta = np.linalg.norm(phi)
        k = hat(phi)
        if theta < _SMALL:
            v_inv = np.eye(3) - 0.5 * k + (k @ k) / 12.0
        else:
            coeff = (1 - theta * math.sin(theta) / (2 * (1 - math.cos(theta)))) / (theta * theta)
            v_inv = np.eye(3) - 0.5 * k + coeff * (k @ k)
        return np.concatenate([v_inv @ self.translation, phi])

    def inverse(self) -> "SE3":
        inv = self.so3.inverse()
        return SE3(inv, -(inv.matrix @ self.translation))

    def matrix(self) -> np.ndarray:
        out = np.eye(4)
        out[:3, :3] = self.so3.matrix
        out[:3, 3] = self.translation
        return out

    def matrix3x4(self) -> np.ndarray:
        return self.matrix()[:3].copy()

    def adjoint(self) -> np.ndarray:
        """6x6 adjoint, acting on twists with the translation part first."""
        r = self.so3.matrix
        out = np.zeros((6, 6))
        out[:3, :3] = r
        out[3:, 3:] = r
        out[:3, 3:] = hat(self.translation) @ r
        return out

    def rotation_matrix(self) -> np.ndarray:
        return self.so3.matrix.copy()

    def unit_quaternion(self) -> np.ndarray:
        return self.so3.unit_quaternion()

    def __mul__(self, other):
        if isinstance(other, SE3):
            return SE3(self.so3 * other.so3, self.so3 * other.translation + self.translation)
        return (self.so3 * other) + self.translation

    def __repr__(self) -> str:
        return f"SE3(rotation={self.so3.matrix.tolist()}, translation={self.translation.tolist()})"