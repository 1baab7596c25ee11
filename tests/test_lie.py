import math

import numpy as np
import pytest

from slamkit.lie import (
    SE3,
    SO3,
    angle_axis_matrix,
    euler_angles_zyx,
    hat,
    hat6,
    matrix_to_quaternion,
    quaternion_to_matrix,
    vee,
    vee6,
)


def _random_rotations(count, seed=3):
    rng = np.random.default_rng(seed)
    return [SO3.exp(rng.uniform(-3.0, 3.0, 3)) for _ in range(count)]


def test_hat_is_cross_product():
    v = np.array([0.3, -1.2, 2.0])
    w = np.array([1.5, 0.4, -0.7])
    assert np.allclose(hat(v) @ w, np.cross(v, w))
    assert np.allclose(hat(v), -hat(v).T)


def test_vee_inverts_hat():
    v = np.array([0.1, 0.2, 0.3])
    assert np.allclose(vee(hat(v)), v)


def test_vee6_inverts_hat6():
    xi = np.array([1e-4, 0.5, -0.2, 0.3, 0.1, -0.4])
    assert np.allclose(vee6(hat6(xi)), xi)


def test_matrix_and_quaternion_construction_agree():
    r = angle_axis_matrix(math.pi / 2, [0, 0, 1])
    q = matrix_to_quaternion(r)
    assert np.allclose(SO3.from_quaternion(*q).matrix, SO3(r).matrix)


def test_log_of_quarter_turn_about_z():
    r = SO3(angle_axis_matrix(math.pi / 2, [0, 0, 1]))
    assert np.allclose(r.log(), [0.0, 0.0, math.pi / 2])


@pytest.mark.parametrize("seed", [0, 1, 2])
def test_so3_exp_log_round_trip(seed):
    phi = np.random.default_rng(seed).uniform(-1.5, 1.5, 3)
    assert np.allclose(SO3.exp(phi).log(), phi)


def test_so3_log_near_half_turn():
    phi = np.array([0.0, 0.0, math.pi - 1e-9])
    assert np.allclose(np.abs(SO3.exp(phi).log()), np.abs(phi), atol=1e-6)


def test_left_perturbation_recovered():
    r = SO3(angle_axis_matrix(math.pi / 2, [0, 0, 1]))
    update = np.array([1e-4, 0.0, 0.0])
    updated = SO3.exp(update) * r
    assert np.allclose((updated * r.inverse()).log(), update)


def test_quaternion_matrix_round_trip():
    for rot in _random_rotations(5):
        q = matrix_to_quaternion(rot.matrix)
        assert q[0] >= 0
        assert np.allclose(quaternion_to_matrix(*q), rot.matrix)


@pytest.mark.parametrize("seed", [4, 5, 6])
def test_se3_exp_log_round_trip(seed):
    xi = np.random.default_rng(seed).uniform(-1.0, 1.0, 6)
    assert np.allclose(SE3.exp(xi).log(), xi)


def test_se3_log_puts_rotation_last():
    t = SE3(angle_axis_matrix(math.pi / 2, [0, 0, 1]), [1, 0, 0])
    assert np.allclose(t.log()[3:], [0.0, 0.0, math.pi / 2])


def test_se3_inverse_gives_identity():
    t = SE3.exp([0.3, -0.2, 0.5, 0.1, 0.7, -0.4])
    assert np.allclose((t * t.inverse()).matrix(), np.eye(4))


def test_se3_matrix3x4_matches_matrix():
    t = SE3.exp([0.3, -0.2, 0.5, 0.1, 0.7, -0.4])
    assert np.allclose(t.matrix3x4(), t.matrix()[:3])


def test_se3_adjoint_property():
    t = SE3.exp([0.3, -0.2, 0.5, 0.1, 0.7, -0.4])
    xi = np.array([0.05, 0.02, -0.01, 0.03, -0.02, 0.04])
    lhs = (t * SE3.exp(xi)).matrix()
    rhs = (SE3.exp(t.adjoint() @ xi) * t).matrix()
    assert np.allclose(lhs, rhs)


def test_coordinate_transform_example():
    t1w = SE3.from_quaternion((0.35, 0.2, 0.3, 0.1), (0.3, 0.1, 0.1))
    t2w = SE3.from_quaternion((-0.5, 0.4, -0.1, 0.2), (-0.1, 0.5, 0.3))
    p2 = t2w * t1w.inverse() * np.array([0.5, 0.0, 0.2])
    assert np.allclose(p2, [-0.0309731, 0.73499, 0.296108], atol=1e-5)


def test_rotation_by_matrix_and_quaternion_agree():
    r = angle_axis_matrix(math.pi / 4, [0, 0, 1])
    q = matrix_to_quaternion(r)
    v = np.array([1.0, 0.0, 0.0])
    assert np.allclose(SO3.from_quaternion(*q) * v, r @ v)


def test_euler_angles_of_yaw():
    r = angle_axis_matrix(math.pi / 4, [0, 0, 1])
    assert np.allclose(euler_angles_zyx(r), [math.pi / 4, 0.0, 0.0])


def test_transform_applies_rotation_then_translation():
    r = angle_axis_matrix(math.pi / 4, [0, 0, 1])
    t = SE3(r, [1, 3, 4])
    v = np.array([1.0, 0.0, 0.0])
    assert np.allclose(t * v, r @ v + np.array([1, 3, 4]))
    assert np.allclose(t.matrix()[:3, 3], [1, 3, 4])


def test_transform_of_many_points():
    t = SE3.exp([0.3, -0.2, 0.5, 0.1, 0.7, -0.4])
    pts = np.array([[1.0, 2.0, 3.0], [-1.0, 0.5, 2.0]])
    out = t * pts
    assert np.allclose(out[1], t * pts[1])


def test_non_rotation_rejected():
    with pytest.raises(ValueError):
        SO3(np.diag([1.0, 2.0, 1.0]))


def test_zero_quaternion_rejected():
    with pytest.raises(ValueError):
        quaternion_to_matrix(0, 0, 0, 0)


def test_zero_axis_rejected():
    with pytest.raises(ValueError):
        angle_axis_matrix(1.0, [0, 0, 0])