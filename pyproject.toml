[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "slamkit"
version = "0.1.0"
description = "Building blocks for visual SLAM: Lie groups, triangulation, curve fitting, pose graphs, dense mapping, point clouds and stereo map structures"
requires-python = ">=3.10"
keywords = [
    "slam",
    "visual-odometry",
    "lie-groups",
    "se3",
    "so3",
    "pose-graph",
    "triangulation",
    "point-cloud",
    "computer-vision",
    "robotics",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering",
    "Topic :: Scientific/Engineering :: Image Processing",
    "Topic :: Scientific/Engineering :: Mathematics",
]
dependencies = [
    "numpy",
    "scipy",
    "pillow",
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
slamkit-hello = "slamkit.hello:main"
slamkit-curve-fitting = "slamkit.curve_fitting:main"
slamkit-trajectory-error = "slamkit.trajectory:main"
slamkit-pose-graph = "slamkit.pose_graph:main"
slamkit-dense-mapping = "slamkit.dense_mapping:main"
slamkit-undistort = "slamkit.undistort:main"
slamkit-rgbd = "slamkit.rgbd:main"

[tool.hatch.build.targets.wheel]
packages = ["slamkit"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
warn_unused_ignores = true
