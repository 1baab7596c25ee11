import math

import numpy as np
import pytest

from slamkit.lie import SE3
from slamkit.trajectory import main, read_trajectory, rmse


def _write(path, rows):
    path.write_text("\n".join(" ".join(str(v) for v in row) for row in rows) + "\n")
    return path


def test_read_trajectory_translation_and_identity(tmp_path):
    path = _write(tmp_path / "t.txt", [[1.0, 1, 2, 3, 0, 0, 0, 1]])
    poses = read_trajectory(path)
    assert len(poses) == 1
    assert np.allclose(poses[0].translation, [1, 2, 3])
    assert np.allclose(poses[0].rotation_matrix(), np.eye(3))


def test_read_trajectory_quaternion_order_is_xyzw(tmp_path):
    path = _write(tmp_path / "t.txt", [[0.0, 0, 0, 0, 0, 0, 1, 0]])
    (pose,) = read_trajectory(path)
    assert np.allclose(pose.rotation_matrix(), np.diag([-1.0, -1.0, 1.0]))


def test_read_trajectory_incomplete_record(tmp_path):
    path = tmp_path / "t.txt"
    path.write_text("1 2 3 4 5\n")
    with pytest.raises(ValueError):
        read_trajectory(path)


def test_read_trajectory_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_trajectory(tmp_path / "absent.txt")


def test_rmse_of_identical_trajectories_is_zero():
    poses = [SE3.exp([0.1 * k, 0.2, -0.3, 0.01 * k, 0.02, 0.03]) for k in range(5)]
    assert rmse(poses, poses) == pytest.approx(0.0, abs=1e-12)


def test_rmse_of_constant_translation_offset():
    gt = [SE3(None, [k, 0.0, 0.0]) for k in range(4)]
    est = [SE3(None, [k + 0.3, 0.0, 0.0]) for k in range(4)]
    assert rmse(gt, est) == pytest.approx(0.3)


def test_rmse_rejects_mismatched_lengths():
    with pytest.raises(ValueError):
        rmse([SE3()], [SE3(), SE3()])


def test_rmse_rejects_empty():
    with pytest.raises(ValueError):
        rmse([], [])


def test_main_prints_rmse(tmp_path, capsys):
    gt = _write(tmp_path / "gt.txt", [[k, k, 0, 0, 0, 0, 0, 1] for k in range(3)])
    est = _write(tmp_path / "est.txt", [[k, k + 0.3, 0, 0, 0, 0, 0, 1] for k in range(3)])
    assert main([str(gt), str(est)]) == 0
    out = capsys.readouterr().out
    line = next(l for l in out.splitlines() if l.startswith("RMSE = "))
    assert math.isclose(float(line.split("=")[1]), 0.3, rel_tol=1e-5)


def test_main_missing_file_returns_error(tmp_path):
    assert main([str(tmp_path / "a.txt"), str(tmp_path / "b.txt")]) == 1