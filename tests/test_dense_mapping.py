import math

import numpy as np
import pytest
from scipy.ndimage import gaussian_filter

from slamkit import dense_mapping as dm
from slamkit.lie import SE3


def _texture(seed=0):
    rng = np.random.default_rng(seed)
    smooth = gaussian_filter(rng.random((dm.HEIGHT, dm.WIDTH)) * 255.0, 2.0)
    smooth = (smooth - smooth.min()) / (smooth.max() - smooth.min()) * 255.0
    return smooth.astype(np.uint8)


def _shifted_pair():
    ref = _texture()
    curr = np.roll(ref, 8, axis=1)
    t_c_r = SE3(translation=(8 * 3.0 / dm.FX, 0.0, 0.0))
    return ref, curr, t_c_r


def test_px2cam_cam2px_round_trip():
    px = np.array([123.25, 401.5])
    np.testing.assert_allclose(dm.cam2px(dm.px2cam(px)), px)
    np.testing.assert_allclose(dm.cam2px(dm.px2cam(px) * 4.0), px)


def test_principal_point_maps_to_optical_axis():
    np.testing.assert_allclose(dm.px2cam((dm.CX, dm.CY)), [0.0, 0.0, 1.0])


@pytest.mark.parametrize(
    "pt, expected",
    [((20, 20), True), ((19, 20), False), ((20, 19), False), ((619, 460), True), ((620, 460), False), ((619, 461), False)],
)
def test_inside_border(pt, expected):
    assert dm.inside(pt) is expected


def test_bilinear_integer_and_midpoint():
    img = np.array([[0, 100], [200, 40]], dtype=np.uint8)
    assert dm.bilinear(img, (0.0, 0.0)) == pytest.approx(0.0)
    assert dm.bilinear(img, (0.5, 0.5)) == pytest.approx(img.mean() / 255.0)


def test_bilinear_outside_raises():
    img = np.zeros((4, 4), dtype=np.uint8)
    with pytest.raises(IndexError):
        dm.bilinear(img, (3.2, 1.0))


def test_ncc_self_inverse_and_constant():
    ref = _texture()
    pt = (100, 120)
    assert dm.ncc(ref, ref, pt, pt) == pytest.approx(1.0, abs=1e-6)
    assert dm.ncc(ref, 255 - ref, pt, pt) == pytest.approx(-1.0, abs=1e-6)
    flat = np.full_like(ref, 50)
    assert dm.ncc(ref, flat, pt, pt) == 0.0


def test_epipolar_search_identity_returns_reference_pixel():
    ref = _texture()
    match = dm.epipolar_search(ref, ref, SE3(), np.array([300.0, 200.0]), 3.0, math.sqrt(3.0))
    assert match is not None
    np.testing.assert_allclose(match.pt_curr, [300.0, 200.0], atol=1e-6)


def test_epipolar_search_finds_shifted_match():
    ref, curr, t_c_r = _shifted_pair()
    match = dm.epipolar_search(ref, curr, t_c_r, np.array([320.0, 240.0]), 3.0, math.sqrt(3.0))
    assert match is not None
    assert match.pt_curr[0] == pytest.approx(328.0, abs=0.5)
    assert match.pt_curr[1] == pytest.approx(240.0, abs=0.5)
    assert np.linalg.norm(match.direction) == pytest.approx(1.0)
    assert match.direction[1] == pytest.approx(0.0, abs=1e-6)


def test_epipolar_search_rejects_featureless_image():
    ref, _, t_c_r = _shifted_pair()
    flat = np.full_like(ref, 90)
    assert dm.epipolar_search(ref, flat, t_c_r, np.array([320.0, 240.0]), 3.0, 1.0) is None


def test_update_depth_filter_recovers_depth():
    _, _, t_c_r = _shifted_pair()
    depth = np.full((dm.HEIGHT, dm.WIDTH), 10.0)
    cov2 = np.full((dm.HEIGHT, dm.WIDTH), 1e9)
    mu, sigma2 = dm.update_depth_filter(
        (320.0, 240.0), (328.0, 240.0), t_c_r, (-1.0, 0.0), depth, cov2
    )
    assert mu == pytest.approx(3.0, abs=1e-3)
    assert depth[240, 320] == mu
    assert cov2[240, 320] == sigma2
    assert sigma2 < 1e9


def test_update_depth_filter_needs_baseline():
    depth = np.full((dm.HEIGHT, dm.WIDTH), 3.0)
    cov2 = np.full((dm.HEIGHT, dm.WIDTH), 3.0)
    with pytest.raises(ValueError):
        dm.update_depth_filter((320.0, 240.0), (320.0, 240.0), SE3(), (1.0, 0.0), depth, cov2)


def test_update_only_touches_unconverged_pixels():
    ref, curr, t_c_r = _shifted_pair()
    depth = np.full((dm.HEIGHT, dm.WIDTH), 3.0)
    cov2 = np.zeros((dm.HEIGHT, dm.WIDTH))
    cov2[240, 320] = 3.0
    cov2[100, 100] = 20.0
    assert dm.update(ref, curr, t_c_r, depth, cov2) == 1
    assert depth[100, 100] == 3.0
    assert cov2[100, 100] == 20.0
    assert depth[240, 320] == pytest.approx(3.0, abs=0.5)
    assert cov2[240, 320] < 3.0


def test_update_rejects_wrong_shape():
    ref, curr, t_c_r = _shifted_pair()
    with pytest.raises(ValueError):
        dm.update(ref, curr, t_c_r, np.zeros((10, 10)), np.zeros((10, 10)))


def test_evaluate_depth_ignores_border():
    est = np.full((dm.HEIGHT, dm.WIDTH), 2.0)
    truth = est + 1.0
    truth[:5, :] += 100.0
    err = dm.evaluate_depth(truth, est)
    assert err.mean == pytest.approx(1.0)
    assert err.mean_squared == pytest.approx(1.0)
    assert dm.evaluate_depth(est, est) == (0.0, 0.0)


def test_evaluate_depth_too_small():
    with pytest.raises(ValueError):
        dm.evaluate_depth(np.zeros((30, 30)), np.zeros((30, 30)))


def _write_dataset(root, depth_values=True):
    (root / dm.TRAJECTORY_FILE).write_text(
        "a.png 1 2 3 0 0 0 1\nb.png 4 5 6 0 0 0 1\n", encoding="utf-8"
    )
    if depth_values:
        (root / "depthmaps").mkdir()
        (root / dm.REFERENCE_DEPTH_FILE).write_text(
            " ".join(["250"] * (dm.WIDTH * dm.HEIGHT)), encoding="utf-8"
        )


def test_read_dataset_files(tmp_path):
    _write_dataset(tmp_path)
    files = dm.read_dataset_files(tmp_path)
    assert [p.replace("\\", "/").endswith("images/" + n) for p, n in zip(files.color_image_files, ["a.png", "b.png"])] == [True, True]
    np.testing.assert_allclose(files.poses[1].translation, [4, 5, 6])
    assert files.ref_depth.shape == (dm.HEIGHT, dm.WIDTH)
    assert np.all(files.ref_depth == 2.5)


def test_read_dataset_files_missing_depth(tmp_path):
    _write_dataset(tmp_path, depth_values=False)
    with pytest.raises(FileNotFoundError):
        dm.read_dataset_files(tmp_path)


def test_read_dataset_files_incomplete_record(tmp_path):
    (tmp_path / dm.TRAJECTORY_FILE).write_text("a.png 1 2 3\n", encoding="utf-8")
    with pytest.raises(ValueError):
        dm.read_dataset_files(tmp_path)


def test_main_missing_dataset(tmp_path, capsys):
    assert dm.main([str(tmp_path / "nothing")]) == 1
    assert "Reading image files failed!" in capsys.readouterr().out