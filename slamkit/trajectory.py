"""Trajectories of timestamped poses: reading them and comparing two of them."""

from __future__ import annotations

import argparse
import math
from typing import Sequence

import numpy as np

from slamkit.lie import SE3

_FIELDS_PER_POSE = 8


def read_trajectory(path) -> list[SE3]:
    """Read poses stored as 'time tx ty tz qx qy qz qw' records.

    Raises FileNotFoundError if the file is missing and ValueError if a record
    is incomplete or holds something that is not a number.
    """
    with open(path, encoding="utf-8") as fh:
        tokens = fh.read().split()
    if len(tokens) % _FIELDS_PER_POSE:
        raise ValueError(
            f"{path}: {len(tokens)} values do not make whole records of {_FIELDS_PER_POSE}"
        )
    values = iter(float(token) for token in tokens)
    trajectory = []
    for _time, tx, ty, tz, qx, qy, qz, qw in zip(*[values] * _FIELDS_PER_POSE):
        trajectory.append(SE3.from_quaternion((qw, qx, qy, qz), (tx, ty, tz)))
    return trajectory


def rmse(groundtruth: Sequence[SE3], estimated: Sequence[SE3]) -> float:
    """Root mean square of the norms of log(gt^-1 * est) over matching poses."""
    groundtruth = list(groundtruth)
    estimated = list(estimated)
    if not groundtruth or not estimated:
        raise ValueError("trajectories must not be empty")
    if len(groundtruth) != len(estimated):
        raise ValueError(
            f"trajectories differ in length: {len(groundtruth)} and {len(estimated)}"
        )
    squared = [
        float(np.linalg.norm((gt.inverse() * est).log())) ** 2
        for gt, est in zip(groundtruth, estimated)
    ]
    return math.sqrt(sum(squared) / len(squared))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Absolute trajectory error of an estimate.")
    parser.add_argument("groundtruth", nargs="?", default="./example/groundtruth.txt")
    parser.add_argument("estimated", nargs="?", default="./example/estimated.txt")
    args = parser.parse_args(argv)

    trajectories = []
    for path in (args.groundtruth, args.estimated):
        try:
            trajectories.append(read_trajectory(path))
        except FileNotFoundError:
            print(f"trajectory {path} not found.")
            return 1
        print(f"read total {len(trajectories[-1])} pose entries")
    try:
        error = rmse(*trajectories)
    except ValueError as exc:
        print(exc)
        return 1
    print(f"RMSE = {error:g}")
    return 0