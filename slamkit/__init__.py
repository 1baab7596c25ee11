"""Building blocks for visual SLAM: Lie groups, camera geometry, estimation, mapping and point clouds."""

__version__ = "0.1.0"

__all__ = [
    "algorithm",
    "camera",
    "config",
    "curve_fitting",
    "dataset",
    "dense_mapping",
    "frame",
    "hello",
    "lie",
    "mappoint",
    "pose_graph",
    "projection",
    "rgbd",
    "slam_map",
    "trajectory",
    "undistort",
]