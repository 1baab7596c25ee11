"""Point clouds from RGB-D and stereo images, with voxel and outlier filters."""

from __future__ import annotations

import argparse
from pathlib import Path

import numpy as np
from PIL import Image
from scipy.spatial import cKDTree

from slamkit.lie import SE3

MAX_DISPARITY = 96.0
IMAGE_COUNT = 5

# Intrinsics of the RGB-D sequence joined into a coloured point cloud.
JOIN_INTRINSICS = {"fx": 518.0, "fy": 519.0, "cx": 325.5, "cy": 253.5, "depth_scale": 1000.0}
# Intrinsics of the sequence fused into a filtered map.
MAP_INTRINSICS = {"fx": 481.2, "fy": -480.0, "cx": 319.5, "cy": 239.5, "depth_scale": 5000.0}
MAP_MEAN_K = 50
MAP_STD_MUL = 1.0
MAP_RESOLUTION = 0.03


def read_poses(stream, count=IMAGE_COUNT) -> list[SE3]:
    """Read count poses stored as 'tx ty tz qx qy qz qw' from a text stream."""
    tokens = stream.read().split()
    needed = 7 * count
    if len(tokens) < needed:
        raise ValueError(f"expected {needed} pose values, found {len(tokens)}")
    values = [float(token) for token in tokens[:needed]]
    poses = []
    for start in range(0, needed, 7):
        tx, ty, tz, qx, qy, qz, qw = values[start : start + 7]
        poses.append(SE3.from_quaternion((qw, qx, qy, qz), (tx, ty, tz)))
    return poses


def depth_to_points(color, depth, pose: SE3, fx, fy, cx, cy, depth_scale) -> np.ndarray:
    """World points with colour of every pixel that has a depth reading.

    color is an HxWx3 array in RGB order, depth an HxW array of raw readings
    (0 meaning no measurement) and pose the camera-to-world transform. Rows of
    the result are x, y, z, r, g, b, in row-major pixel order.
    """
    color = np.asarray(color)
    depth = np.asarray(depth)
    if depth.ndim != 2:
        raise ValueError("depth must be a single-channel image")
    if color.ndim != 3 or color.shape[:2] != depth.shape or color.shape[2] < 3:
        raise ValueError("color must be an RGB image of the same size as depth")
    v, u = np.nonzero(depth)
    z = depth[v, u].astype(float) / depth_scale
    camera = np.column_stack([(u - cx) * z / fx, (v - cy) * z / fy, z])
    world = pose * camera
    rgb = color[v, u, :3].astype(float)
    return np.hstack([np.reshape(world, (-1, 3)), rgb])


def disparity_to_points(gray, disparity, fx, fy, cx, cy, baseline) -> np.ndarray:
    """Camera points of a stereo pair from its disparity map.

    Pixels whose disparity is not in (0, 96) are skipped. Rows of the result
    are x, y, z and the grey value scaled to [0, 1].
    """
    gray = np.asarray(gray)
    disparity = np.asarray(disparity, dtype=float)
    if gray.shape != disparity.shape or gray.ndim != 2:
        raise ValueError("gray and disparity must be single-channel images of equal size")
    v, u = np.nonzero((disparity > 0.0) & (disparity < MAX_DISPARITY))
    depth = fx * baseline / disparity[v, u]
    x = (u - cx) / fx * depth
    y = (v - cy) / fy * depth
    intensity = gray[v, u].astype(float) / 255.0
    return np.column_stack([x, y, depth, intensity])


def voxel_filter(points, resolution) -> np.ndarray:
    """Replace the points in each cubic voxel by their average (all columns)."""
    if resolution <= 0:
        raise ValueError("resolution must be positive")
    points = np.asarray(points, dtype=float)
    if points.ndim != 2 or points.shape[1] < 3:
        raise ValueError("points must be an N x (3 or more) array")
    if len(points) == 0:
        return points.copy()
    keys = np.floor(points[:, :3] / resolution).astype(np.int64)
    _, inverse, counts = np.unique(keys, axis=0, return_inverse=True, return_counts=True)
    inverse = np.reshape(inverse, -1)
    sums = np.zeros((len(counts), points.shape[1]))
    np.add.at(sums, inverse, points)
    return sums / counts[:, None]


def statistical_outlier_removal(points, mean_k=MAP_MEAN_K, std_mul=MAP_STD_MUL) -> np.ndarray:
    """Drop points whose mean distance to their neighbours is unusually large.

    A point is kept when its mean distance to its mean_k nearest neighbours is
    at most the global mean of those distances plus std_mul standard deviations.
    """
    if mean_k < 1:
        raise ValueError("mean_k must be at least 1")
    points = np.asarray(points, dtype=float)
    if points.ndim != 2 or points.shape[1] < 3:
        raise ValueError("points must be an N x (3 or more) array")
    k = min(mean_k, len(points) - 1)
    if k < 1:
        return points.copy()
    tree = cKDTree(points[:, :3])
    distances, _ = tree.query(points[:, :3], k=k + 1)
    mean_distances = distances[:, 1:].mean(axis=1)
    spread = mean_distances.std(ddof=1) if len(points) > 1 else 0.0
    threshold = mean_distances.mean() + std_mul * spread
    return points[mean_distances <= threshold]


def _pack_rgb(rgb: np.ndarray) -> np.ndarray:
    c = np.clip(np.rint(rgb), 0, 255).astype(np.uint32)
    return (c[:, 0] << 16) | (c[:, 1] << 8) | c[:, 2]


def _write_pcd(path, points: np.ndarray) -> None:
    n = len(points)
    header = (
        "# .PCD v0.7 - Point Cloud Data file format\n"
        "VERSION 0.7\n"
        "FIELDS x y z rgb\n"
        "SIZE 4 4 4 4\n"
        "TYPE F F F U\n"
        "COUNT 1 1 1 1\n"
        f"WIDTH {n}\n"
        "HEIGHT 1\n"
        "VIEWPOINT 0 0 0 1 0 0 0\n"
        f"POINTS {n}\n"
        "DATA binary\n"
    )
    record = np.dtype([("x", "<f4"), ("y", "<f4"), ("z", "<f4"), ("rgb", "<u4")])
    data = np.zeros(n, dtype=record)
    data["x"], data["y"], data["z"] = points[:, 0], points[:, 1], points[:, 2]
    data["rgb"] = _pack_rgb(points[:, 3:6])
    with open(path, "wb") as fh:
        fh.write(header.encode("ascii"))
        fh.write(data.tobytes())


def _load_images(root: Path, depth_ext: str):
    colors, depths = [], []
    for i in range(1, IMAGE_COUNT + 1):
        with Image.open(root / "color" / f"{i}.png") as img:
            colors.append(np.asarray(img.convert("RGB")))
        with Image.open(root / "depth" / f"{i}.{depth_ext}") as img:
            depths.append(np.asarray(img))
    return colors, depths


def _clouds(root: Path, depth_ext: str, intrinsics: dict):
    with open(root / "pose.txt", encoding="utf-8") as fh:
        poses = read_poses(fh, IMAGE_COUNT)
    colors, depths = _load_images(root, depth_ext)
    for i, (color, depth, pose) in enumerate(zip(colors, depths, poses), 1):
        print(f"converting image: {i}")
        yield depth_to_points(color, depth, pose, **intrinsics)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Build point clouds from RGB-D images.")
    commands = parser.add_subparsers(dest="command", required=True)
    join = commands.add_parser("join", help="join five RGB-D frames into one cloud")
    join.add_argument("directory", nargs="?", default=".")
    build = commands.add_parser("map", help="build a filtered map and save it as PCD")
    build.add_argument("directory", nargs="?", default="./data")
    build.add_argument("-o", "--output", default="map.pcd")
    args = parser.parse_args(argv)

    root = Path(args.directory)
    if not (root / "pose.txt").is_file():
        print("cannot find pose file")
        return 1
    try:
        if args.command == "join":
            clouds = list(_clouds(root, "pgm", JOIN_INTRINSICS))
            cloud = np.vstack(clouds)
            print(f"point cloud has {len(cloud)} points.")
            return 0
        clouds = [
            statistical_outlier_removal(c, MAP_MEAN_K, MAP_STD_MUL)
            for c in _clouds(root, "png", MAP_INTRINSICS)
        ]
    except (OSError, ValueError) as exc:
        print(f"cannot read the dataset: {exc}")
        return 1
    cloud = np.vstack(clouds)
    print(f"point cloud has {len(cloud)} points.")
    cloud = voxel_filter(cloud, MAP_RESOLUTION)
    print(f"after filtering, point cloud has {len(cloud)} points.")
    _write_pcd(args.output, cloud)
    return 0