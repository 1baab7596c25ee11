"""Pose graph optimisation over SE(3) poses with relative-pose edges."""

from __future__ import annotations

import argparse
import logging
from typing import NamedTuple

import numpy as np
from scipy import sparse
from scipy.sparse.linalg import spsolve

from slamkit.lie import SE3

log = logging.getLogger(__name__)

VERTEX_TAG = "VERTEX_SE3:QUAT"
EDGE_TAG = "EDGE_SE3:QUAT"
_UPPER = np.triu_indices(6)
_BLOCK = np.arange(6)


class _Edge(NamedTuple):
    i: int
    j: int
    measurement: SE3
    information: np.ndarray


def edge_error(pose_i: SE3, pose_j: SE3, measurement: SE3) -> np.ndarray:
    """Twist log(Z^-1 * Ti^-1 * Tj) of an edge with measurement Z."""
    return (measurement.inverse() * pose_i.inverse() * pose_j).log()


def jr_inv(error) -> np.ndarray:
    """Approximation of the inverse right Jacobian used for edge linearisation.

    The first-order terms vanish at zero error and are dropped, so the
    approximation is the identity whatever the twist.
    """
    error = np.asarray(error, dtype=float)
    if error.shape != (6,):
        raise ValueError(f"expected a 6-vector twist, got shape {error.shape}")
    return np.eye(6)


def _fmt(values) -> str:
    return " ".join(repr(float(v)) for v in values)


def _quaternion_xyzw(pose: SE3) -> np.ndarray:
    w, x, y, z = pose.unit_quaternion()
    return np.array([x, y, z, w])


class PoseGraph:
    """Vertices are poses keyed by id; edges constrain relative poses."""

    def __init__(self):
        self.vertices: dict[int, SE3] = {}
        self.fixed: set[int] = set()
        self.edges: list[_Edge] = []

    def add_vertex(self, index: int, pose: SE3, fixed: bool = False) -> None:
        if index in self.vertices:
            raise ValueError(f"vertex {index} already exists")
        self.vertices[index] = pose
        if fixed:
            self.fixed.add(index)

    def add_edge(self, i: int, j: int, measurement: SE3, information=None) -> None:
        for index in (i, j):
            if index not in self.vertices:
                raise KeyError(f"edge refers to unknown vertex {index}")
        info = np.eye(6) if information is None else np.asarray(information, dtype=float)
        if info.shape != (6, 6):
            raise ValueError(f"information must be 6x6, got shape {info.shape}")
        self.edges.append(_Edge(i, j, measurement, info.copy()))

    def chi2(self) -> float:
        """Sum of e^T * Omega * e over all edges."""
        total = 0.0
        for edge in self.edges:
            e = edge_error(self.vertices[edge.i], self.vertices[edge.j], edge.measurement)
            total += float(e @ edge.information @ e)
        return total

    def _linearize(self, slot: dict[int, int], dim: int):
        rows, cols, data = [], [], []
        b = np.zeros(dim)
        for edge in self.edges:
            pose_i, pose_j = self.vertices[edge.i], self.vertices[edge.j]
            e = edge_error(pose_i, pose_j, edge.measurement)
            jac_j = jr_inv(e) @ pose_j.inverse().adjoint()
            terms = [
                (slot[vid], jac)
                for vid, jac in ((edge.i, -jac_j), (edge.j, jac_j))
                if vid in slot
            ]
            omega = edge.information
            for sa, ja in terms:
                b[6 * sa : 6 * sa + 6] += ja.T @ omega @ e
                for sc, jc in terms:
                    block = ja.T @ omega @ jc
                    r, c = np.meshgrid(6 * sa + _BLOCK, 6 * sc + _BLOCK, indexing="ij")
                    rows.append(r.ravel())
                    cols.append(c.ravel())
                    data.append(block.ravel())
        if rows:
            h = sparse.coo_matrix(
                (np.concatenate(data), (np.concatenate(rows), np.concatenate(cols))),
                shape=(dim, dim),
            ).tocsr()
        else:
            h = sparse.csr_matrix((dim, dim))
        return h, b

    def _apply(self, slot: dict[int, int], dx: np.ndarray) -> None:
        for vid, n in slot.items():
            self.vertices[vid] = SE3.exp(dx[6 * n : 6 * n + 6]) * self.vertices[vid]

    def optimize(self, iterations: int = 30) -> float:
        """Levenberg-Marquardt over the free vertices; returns the final chi2."""
        free = sorted(vid for vid in self.vertices if vid not in self.fixed)
        chi2 = self.chi2()
        if not free or not self.edges or iterations <= 0:
            return chi2
        slot = {vid: n for n, vid in enumerate(free)}
        dim = 6 * len(free)
        h, b = self._linearize(slot, dim)
        lam = max(1e-5 * float(h.diagonal().max()), 1e-12)
        nu = 2.0
        identity = sparse.identity(dim, format="csr")
        for iteration in range(iterations):
            dx = np.atleast_1d(spsolve((h + lam * identity).tocsc(), -b))
            if not np.all(np.isfinite(dx)):
                lam *= nu
                nu *= 2
                continue
            if np.linalg.norm(dx) < 1e-12:
                break
            backup = dict(self.vertices)
            self._apply(slot, dx)
            new_chi2 = self.chi2()
            predicted = float(dx @ (lam * dx - b))
            if new_chi2 < chi2 and predicted > 0:
                rho = (chi2 - new_chi2) / predicted
                chi2 = new_chi2
                h, b = self._linearize(slot, dim)
                lam *= max(1.0 / 3.0, 1.0 - (2.0 * rho - 1.0) ** 3)
                nu = 2.0
            else:
                self.vertices = backup
                lam *= nu
                nu *= 2
            log.debug("iteration %d chi2 %g lambda %g", iteration, chi2, lam)
        return chi2

    def write(self, stream) -> None:
        """Write vertices and edges in the g2o SE3 quaternion text format."""
        for vid, pose in self.vertices.items():
            stream.write(
                f"{VERTEX_TAG} {vid} {_fmt(pose.translation)} {_fmt(_quaternion_xyzw(pose))}\n"
            )
        for edge in self.edges:
            m = edge.measurement
            stream.write(
                f"{EDGE_TAG} {edge.i} {edge.j} {_fmt(m.translation)} "
                f"{_fmt(_quaternion_xyzw(m))} {_fmt(edge.information[_UPPER])}\n"
            )


def _pose(values) -> SE3:
    tx, ty, tz, qx, qy, qz, qw = (float(v) for v in values)
    return SE3.from_quaternion((qw, qx, qy, qz), (tx, ty, tz))


def _symmetric(values) -> np.ndarray:
    m = np.zeros((6, 6))
    m[_UPPER] = [float(v) for v in values]
    return m + m.T - np.diag(np.diag(m))


def read_pose_graph(stream) -> PoseGraph:
    """Read a pose graph from g2o SE3 quaternion text; vertex 0 is held fixed."""
    graph = PoseGraph()
    for lineno, line in enumerate(stream, 1):
        fields = line.split()
        if not fields:
            continue
        tag, *rest = fields
        if tag == VERTEX_TAG:
            if len(rest) != 8:
                raise ValueError(f"line {lineno}: vertex needs an id and 7 values")
            index = int(rest[0])
            graph.add_vertex(index, _pose(rest[1:8]), fixed=index == 0)
        elif tag == EDGE_TAG:
            if len(rest) not in (9, 30):
                raise ValueError(
                    f"line {lineno}: edge needs two ids, 7 values and 0 or 21 information entries"
                )
            info = _symmetric(rest[9:]) if len(rest) == 30 else None
            graph.add_edge(int(rest[0]), int(rest[1]), _pose(rest[2:9]), info)
    return graph


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Optimise a g2o SE3 pose graph.")
    parser.add_argument("graph", help="pose graph file, e.g. sphere.g2o")
    parser.add_argument("-o", "--output", default="result_lie.g2o")
    parser.add_argument("--iterations", type=int, default=30)
    args = parser.parse_args(argv)

    try:
        fh = open(args.graph, encoding="utf-8")
    except OSError:
        print(f"file {args.graph} does not exist.")
        return 1
    with fh:
        graph = read_pose_graph(fh)
    print(f"read total {len(graph.vertices)} vertices, {len(graph.edges)} edges.")
    print("optimizing ...")
    graph.optimize(args.iterations)
    print("saving optimization results ...")
    with open(args.output, "w", encoding="utf-8") as out:
        graph.write(out)
    return 0