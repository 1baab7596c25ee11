"""Dense monocular depth estimation along a known camera trajectory.

Each reference pixel carries a Gaussian depth estimate. For every new image
the pixel is matched along its epipolar line by zero-mean normalised
cross-correlation, triangulated, and fused into the estimate.
"""

from __future__ import annotations

import argparse
import math
from pathlib import Path
from typing import NamedTuple

import numpy as np
from PIL import Image

from slamkit.lie import SE3

BORDER = 20
WIDTH = 640
HEIGHT = 480
FX = float(np.float32(481.2))
FY = float(np.float32(-480.0))
CX = float(np.float32(319.5))
CY = float(np.float32(239.5))
NCC_WINDOW_SIZE = 3
NCC_AREA = (2 * NCC_WINDOW_SIZE + 1) ** 2
MIN_COV = 0.1
MAX_COV = 10.0
NCC_THRESHOLD = float(np.float32(0.85))
SEARCH_STEP = 0.7
MAX_HALF_LENGTH = 100.0
INIT_DEPTH = 3.0
INIT_COV2 = 3.0

TRAJECTORY_FILE = "first_200_frames_traj_over_table_input_sequence.txt"
REFERENCE_DEPTH_FILE = Path("depthmaps") / "scene_000.depth"

_WINDOW = np.arange(-NCC_WINDOW_SIZE, NCC_WINDOW_SIZE + 1)
_DX, _DY = (a.ravel().astype(float) for a in np.meshgrid(_WINDOW, _WINDOW, indexing="ij"))


class EpipolarMatch(NamedTuple):
    pt_curr: np.ndarray
    direction: np.ndarray


class DepthError(NamedTuple):
    mean_squared: float
    mean: float


class DatasetFiles(NamedTuple):
    color_image_files: list[str]
    poses: list[SE3]
    ref_depth: np.ndarray


def px2cam(px) -> np.ndarray:
    """Point on the normalised image plane of a pixel."""
    u, v = np.asarray(px, dtype=float)
    return np.array([(u - CX) / FX, (v - CY) / FY, 1.0])


def cam2px(p_cam) -> np.ndarray:
    """Pixel of a point in camera coordinates."""
    x, y, z = np.asarray(p_cam, dtype=float)
    return np.array([x * FX / z + CX, y * FY / z + CY])


def inside(pt) -> bool:
    """Whether a pixel lies inside the image, away from its border."""
    x, y = float(pt[0]), float(pt[1])
    return x >= BORDER and y >= BORDER and x + BORDER < WIDTH and y + BORDER <= HEIGHT


def _bilinear_many(image: np.ndarray, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    x0 = xs.astype(int)
    y0 = ys.astype(int)
    h, w = image.shape[:2]
    if x0.min() < 0 or y0.min() < 0 or x0.max() + 1 >= w or y0.max() + 1 >= h:
        raise IndexError("interpolation point lies outside the image")
    xx = xs - np.floor(xs)
    yy = ys - np.floor(ys)
    img = image.astype(float, copy=False)
    return (
        (1 - xx) * (1 - yy) * img[y0, x0]
        + xx * (1 - yy) * img[y0, x0 + 1]
        + (1 - xx) * yy * img[y0 + 1, x0]
        + xx * yy * img[y0 + 1, x0 + 1]
    ) / 255.0


def bilinear(image, pt) -> float:
    """Bilinearly interpolated grey value of an 8-bit image, scaled to [0, 1]."""
    img = np.asarray(image)
    xs = np.array([float(pt[0])])
    ys = np.array([float(pt[1])])
    return float(_bilinear_many(img, xs, ys)[0])


def ncc(ref, curr, pt_ref, pt_curr) -> float:
    """Zero-mean normalised cross-correlation of two windows around the given pixels."""
    ref = np.asarray(ref)
    curr = np.asarray(curr)
    rx = (_DX + float(pt_ref[0])).astype(int)
    ry = (_DY + float(pt_ref[1])).astype(int)
    values_ref = ref[ry, rx].astype(float) / 255.0
    values_curr = _bilinear_many(curr, _DX + float(pt_curr[0]), _DY + float(pt_curr[1]))
    dr = values_ref - values_ref.sum() / NCC_AREA
    dc = values_curr - values_curr.sum() / NCC_AREA
    numerator = float(dr @ dc)
    return numerator / math.sqrt(float(dr @ dr) * float(dc @ dc) + 1e-10)


def epipolar_search(ref, curr, t_c_r: SE3, pt_ref, depth_mu, depth_cov) -> EpipolarMatch | None:
    """Best NCC match of pt_ref along its epipolar line in curr, or None if too weak."""
    f_ref = px2cam(pt_ref)
    f_ref /= np.linalg.norm(f_ref)
    px_mean_curr = cam2px(t_c_r * (f_ref * depth_mu))
    d_min = max(depth_mu - 3 * depth_cov, 0.1)
    d_max = depth_mu + 3 * depth_cov
    px_min_curr = cam2px(t_c_r * (f_ref * d_min))
    px_max_curr = cam2px(t_c_r * (f_ref * d_max))

    epipolar_line = px_max_curr - px_min_curr
    length = float(np.linalg.norm(epipolar_line))
    direction = epipolar_line / length if length > 0 else epipolar_line
    half_length = min(0.5 * length, MAX_HALF_LENGTH)

    best_ncc = -1.0
    best_px_curr = None
    step = -half_length
    while step <= half_length:
        px_curr = px_mean_curr + step * direction
        if inside(px_curr):
            score = ncc(ref, curr, pt_ref, px_curr)
            if score > best_ncc:
                best_ncc = score
                best_px_curr = px_curr
        step += SEARCH_STEP
    if best_ncc < NCC_THRESHOLD:
        return None
    return EpipolarMatch(best_px_curr, direction)


def update_depth_filter(pt_ref, pt_curr, t_c_r: SE3, epipolar_direction, depth, depth_cov2):
    """Triangulate a match and fuse it into the depth arrays at pt_ref.

    Returns the fused mean and variance, which are also written into depth
    and depth_cov2.
    """
    t_r_c = t_c_r.inverse()
    f_ref = px2cam(pt_ref)
    f_ref /= np.linalg.norm(f_ref)
    f_curr = px2cam(pt_curr)
    f_curr /= np.linalg.norm(f_curr)

    t = t_r_c.translation
    t_norm = float(np.linalg.norm(t))
    if t_norm == 0:
        raise ValueError("the two views share a centre; depth cannot be triangulated")
    f2 = t_r_c.so3 * f_curr
    b = np.array([t @ f_ref, t @ f2])
    a01 = -float(f_ref @ f2)
    a = np.array([[f_ref @ f_ref, a01], [-a01, -(f2 @ f2)]])
    ans = np.linalg.inv(a) @ b
    xm = ans[0] * f_ref
    xn = t + ans[1] * f2
    depth_estimation = float(np.linalg.norm((xm + xn) / 2.0))

    p = f_ref * depth_estimation
    a_vec = p - t
    a_norm = float(np.linalg.norm(a_vec))
    alpha = math.acos(np.clip(f_ref @ t / t_norm, -1.0, 1.0))
    beta = math.acos(np.clip(-(a_vec @ t) / (a_norm * t_norm), -1.0, 1.0))  # noqa: F841
    f_curr_prime = px2cam(np.asarray(pt_curr, dtype=float) + np.asarray(epipolar_direction))
    f_curr_prime /= np.linalg.norm(f_curr_prime)
    beta_prime = math.acos(np.clip(f_curr_prime @ -t / t_norm, -1.0, 1.0))
    gamma = math.pi - alpha - beta_prime
    p_prime = t_norm * math.sin(beta_prime) / math.sin(gamma)
    d_cov2 = (p_prime - depth_estimation) ** 2

    x, y = int(pt_ref[0]), int(pt_ref[1])
    mu = depth[y, x]
    sigma2 = depth_cov2[y, x]
    mu_fuse = (d_cov2 * mu + sigma2 * depth_estimation) / (sigma2 + d_cov2)
    sigma_fuse2 = (sigma2 * d_cov2) / (sigma2 + d_cov2)
    depth[y, x] = mu_fuse
    depth_cov2[y, x] = sigma_fuse2
    return float(mu_fuse), float(sigma_fuse2)


def update(ref, curr, t_c_r: SE3, depth, depth_cov2) -> int:
    """Update every unconverged pixel of the depth map; returns how many were matched."""
    for name, arr in (("depth", depth), ("depth_cov2", depth_cov2)):
        if np.shape(arr) != (HEIGHT, WIDTH):
            raise ValueError(f"{name} must have shape {(HEIGHT, WIDTH)}, got {np.shape(arr)}")
    region = np.zeros((HEIGHT, WIDTH), dtype=bool)
    region[BORDER : HEIGHT - BORDER, BORDER : WIDTH - BORDER] = True
    candidates = region & (depth_cov2 >= MIN_COV) & (depth_cov2 <= MAX_COV)
    updated = 0
    for y, x in np.argwhere(candidates):
        pt_ref = np.array([float(x), float(y)])
        match = epipolar_search(
            ref, curr, t_c_r, pt_ref, float(depth[y, x]), math.sqrt(depth_cov2[y, x])
        )
        if match is None:
            continue
        update_depth_filter(pt_ref, match.pt_curr, t_c_r, match.direction, depth, depth_cov2)
        updated += 1
    return updated


def evaluate_depth(depth_truth, depth_estimate) -> DepthError:
    """Mean squared and mean error of an estimate, ignoring the image border."""
    truth = np.asarray(depth_truth, dtype=float)
    estimate = np.asarray(depth_estimate, dtype=float)
    if truth.shape != estimate.shape:
        raise ValueError("depth maps differ in shape")
    rows, cols = truth.shape
    error = (truth - estimate)[BORDER : rows - BORDER, BORDER : cols - BORDER]
    if error.size == 0:
        raise ValueError("depth maps are too small to evaluate")
    return DepthError(float(np.mean(error * error)), float(np.mean(error)))


def read_dataset_files(path) -> DatasetFiles:
    """Image names, camera-to-world poses and the reference depth of a dataset directory."""
    root = Path(path)
    with open(root / TRAJECTORY_FILE, encoding="utf-8") as fh:
        tokens = fh.read().split()
    if len(tokens) % 8:
        raise ValueError("trajectory file holds an incomplete record")
    files: list[str] = []
    poses: list[SE3] = []
    for start in range(0, len(tokens), 8):
        image, *values = tokens[start : start + 8]
        tx, ty, tz, qx, qy, qz, qw = (float(v) for v in values)
        files.append(str(root / "images" / image))
        poses.append(SE3.from_quaternion((qw, qx, qy, qz), (tx, ty, tz)))

    with open(root / REFERENCE_DEPTH_FILE, encoding="utf-8") as fh:
        values = [float(v) for v in fh.read().split()[: HEIGHT * WIDTH]]
    flat = np.zeros(HEIGHT * WIDTH)
    flat[: len(values)] = values
    return DatasetFiles(files, poses, flat.reshape(HEIGHT, WIDTH) / 100.0)


def _load_gray(path) -> np.ndarray | None:
    try:
        with Image.open(path) as img:
            return np.asarray(img.convert("L"))
    except OSError:
        return None


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Dense monocular depth estimation.")
    parser.add_argument("dataset", help="path to the test dataset")
    parser.add_argument("-o", "--output", default="depth.png")
    args = parser.parse_args(argv)

    try:
        files = read_dataset_files(args.dataset)
    except (OSError, ValueError):
        print("Reading image files failed!")
        return 1
    print(f"read total {len(files.color_image_files)} files.")
    if not files.color_image_files:
        print("Reading image files failed!")
        return 1

    ref = _load_gray(files.color_image_files[0])
    if ref is None:
        print("Reading image files failed!")
        return 1
    pose_ref_twc = files.poses[0]
    depth = np.full((HEIGHT, WIDTH), INIT_DEPTH)
    depth_cov2 = np.full((HEIGHT, WIDTH), INIT_COV2)

    for index in range(1, len(files.color_image_files)):
        print(f"*** loop {index} ***")
        curr = _load_gray(files.color_image_files[index])
        if curr is None:
            continue
        t_c_r = files.poses[index].inverse() * pose_ref_twc
        update(ref, curr, t_c_r, depth, depth_cov2)
        err = evaluate_depth(files.ref_depth, depth)
        print(f"Average squared error = {err.mean_squared:g}, average error: {err.mean:g}")

    print("estimation returns, saving depth map ...")
    Image.fromarray(np.clip(np.rint(depth), 0, 255).astype(np.uint8)).save(args.output)
    print("done.")
    return 0