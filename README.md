# slamkit

Building blocks for visual SLAM, written on top of NumPy and SciPy.

## What is in it

- **Rigid-body geometry** (`slamkit.lie`): the `SO3` and `SE3` classes with
  `exp`, `log`, `inverse`, `unit_quaternion`, composition and point
  transformation through `*`, and for `SE3` also `matrix`, `matrix3x4`,
  `adjoint` and `rotation_matrix`. Helper functions: `hat`, `vee`, `hat6`,
  `vee6`, `quaternion_to_matrix`, `matrix_to_quaternion` (returns
  `(w, x, y, z)` with `w >= 0`), `angle_axis_matrix` and `euler_angles_zyx`
  (yaw, pitch, roll). In the 6-vector form of se(3) the translation part
  comes first and the rotation part second.
- **Triangulation** (`slamkit.algorithm`): `triangulate(poses, points)`,
  linear SVD triangulation from normalised image-plane observations. It
  returns the world point, or `None` when the result is not trustworthy.
  `to_vec2` turns a point with `.x`/`.y` or a pair into a 2-vector.
- **Pinhole camera** (`slamkit.camera`): `Camera` with `k_matrix()` and the
  conversions `world2camera`, `camera2world`, `camera2pixel`,
  `pixel2camera`, `pixel2world` and `world2pixel`.
- **Curve fitting** (`slamkit.curve_fitting`): fits
  `y = exp(a x² + b x + c)` with `gauss_newton` or `levenberg_marquardt`.
  Both return a `FitResult` (estimate, cost, iterations, costs).
  `generate_data` makes noisy samples at `x = i / 100`.
- **Trajectories** (`slamkit.trajectory`): `read_trajectory` reads
  `time tx ty tz qx qy qz qw` records. `rmse` is the root mean square of
  `|log(gt⁻¹ · est)|` over matching poses.
- **Pose graphs** (`slamkit.pose_graph`): `read_pose_graph` reads
  `VERTEX_SE3:QUAT` / `EDGE_SE3:QUAT` text and holds vertex 0 fixed.
  `PoseGraph` has `add_vertex`, `add_edge`, `chi2`, `optimize`
  (Levenberg-Marquardt on the Lie algebra, returns the final chi2) and
  `write`. The module also exposes `edge_error` and `jr_inv`.
- **Reprojection** (`slamkit.projection`): `project`, `projection_error`,
  `pose_jacobian` (2×6) and `landmark_jacobian` (2×3).
- **Dense monocular mapping** (`slamkit.dense_mapping`): epipolar search
  with zero-mean NCC matching (`epipolar_search`, `ncc`, `bilinear`), the
  Gaussian depth filter (`update_depth_filter`, `update`), `evaluate_depth`
  and `read_dataset_files`.
- **Image undistortion** (`slamkit.undistort`): `undistort_image` for the
  radial-tangential model, with nearest-neighbour lookup.
- **Point clouds** (`slamkit.rgbd`): `read_poses`, clouds from RGB-D images
  (`depth_to_points`) and from stereo disparity (`disparity_to_points`),
  `voxel_filter` and `statistical_outlier_removal`.
- **Stereo odometry data structures**: `Frame` and `Feature`
  (`slamkit.frame`), `MapPoint` (`slamkit.mappoint`), a `Map` that keeps a
  window of seven active keyframes (`slamkit.slam_map`), a YAML parameter
  store with `set_parameter_file` and `get` (`slamkit.config`), and a
  `Dataset` reader for `calib.txt` plus `image_0/` and `image_1/` that yields
  half-resolution frames (`slamkit.dataset`).
- **Greeting** (`slamkit.hello`): `print_hello()`.

## Installation

```
pip install slamkit
```

To run the tests as well:

```
pip install "slamkit[test]"
pytest
```

## Using the library

```python
import numpy as np
from slamkit.lie import SO3, SE3, angle_axis_matrix

# rotate 90 degrees about the z axis
r = angle_axis_matrix(np.pi / 2, np.array([0.0, 0.0, 1.0]))
rotation = SO3(r)
print(rotation.log())          # the so(3) vector of the rotation

# a small left-multiplied update
updated = SO3.exp(np.array([1e-4, 0.0, 0.0])) * rotation

# a pose from rotation and translation, and back through the Lie algebra
pose = SE3(rotation, np.array([1.0, 0.0, 0.0]))
xi = pose.log()
same_pose = SE3.exp(xi)
print(same_pose.matrix())
```

Projecting a world point with a pinhole camera:

```python
import numpy as np
from slamkit.camera import Camera
from slamkit.lie import SE3

identity = SE3()
camera = Camera(fx=500.0, fy=500.0, cx=320.0, cy=240.0, baseline=0.0, pose=identity)
pixel = camera.world2pixel(np.array([0.1, -0.2, 2.0]), identity)
```

Fitting a curve:

```python
from slamkit.curve_fitting import generate_data, gauss_newton

x, y = generate_data(seed=0)
result = gauss_newton(x, y)
print(result.estimate, result.iterations)
```

## Commands

| Command | What it does |
| --- | --- |
| `slamkit-hello [--library]` | prints a greeting |
| `slamkit-curve-fitting [--method gauss-newton\|levenberg-marquardt] [--seed N] [--iterations N]` | generates noisy samples of `exp(x² + 2x + 1)`, fits them and prints the estimate |
| `slamkit-trajectory-error [GROUNDTRUTH] [ESTIMATED]` | reads two trajectories and prints their RMSE |
| `slamkit-pose-graph GRAPH [-o OUTPUT] [--iterations N]` | reads a pose graph, optimises it and saves it (default `result_lie.g2o`) |
| `slamkit-dense-mapping DATASET [-o OUTPUT]` | estimates a dense depth map from a monocular sequence with known poses and saves it (default `depth.png`) |
| `slamkit-undistort [IMAGE] [-o OUTPUT]` | undistorts a grey image with fixed camera parameters (default output `undistorted.png`) |
| `slamkit-rgbd join [DIRECTORY]` | joins five RGB-D frames into one cloud and prints its size |
| `slamkit-rgbd map [DIRECTORY] [-o OUTPUT]` | builds a filtered map from five RGB-D frames and saves it as binary PCD (default `map.pcd`) |

For example:

```
slamkit-pose-graph sphere.g2o
slamkit-dense-mapping path/to/test_dataset
```

## What it does not do

- Nothing is drawn on screen: there are no viewer windows. The commands
  print results and write files.
- There is no tracking front end or optimising back end, and no command
  that runs stereo visual odometry over a dataset. `Frame`, `MapPoint`,
  `Map`, `Dataset` and the config store are the data structures such a
  pipeline would use. `slamkit.projection` and `triangulate` give the
  pieces it would need.
- There is no bag-of-words vocabulary or loop-closure detection, no feature
  detection or optical flow, no stereo matcher to produce disparity (pass
  your own map to `disparity_to_points`), and no octree or surface-mesh
  output.