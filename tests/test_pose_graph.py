import io

import numpy as np
import pytest

from slamkit.lie import SE3
from slamkit.pose_graph import PoseGraph, edge_error, jr_inv, main, read_pose_graph


def _truth():
    return [SE3.exp([0.5 * k, 0.1 * k, 0.05, 0.02, -0.01 * k, 0.2 * k]) for k in range(4)]


def _graph(perturb=True):
    truth = _truth()
    graph = PoseGraph()
    for k, pose in enumerate(truth):
        if perturb and k > 0:
            pose = SE3.exp([0.05, -0.04, 0.03, 0.02, 0.01, -0.03]) * pose
        graph.add_vertex(k, pose, fixed=k == 0)
    for i, j in ((0, 1), (1, 2), (2, 3), (0, 3)):
        graph.add_edge(i, j, truth[i].inverse() * truth[j])
    return graph, truth


def test_edge_error_zero_for_consistent_measurement():
    a, b = _truth()[1:3]
    assert np.allclose(edge_error(a, b, a.inverse() * b), 0.0, atol=1e-10)


def test_edge_error_nonzero_for_inconsistent_measurement():
    a, b = _truth()[1:3]
    assert np.linalg.norm(edge_error(a, b, SE3())) > 0.1


def test_jr_inv_is_identity():
    assert np.array_equal(jr_inv(np.ones(6)), np.eye(6))


def test_jr_inv_rejects_wrong_shape():
    with pytest.raises(ValueError):
        jr_inv(np.ones(3))


def test_optimize_recovers_truth():
    graph, truth = _graph()
    assert graph.chi2() > 1e-4
    final = graph.optimize(50)
    assert final < 1e-10
    for k, pose in enumerate(truth):
        assert np.allclose(graph.vertices[k].translation, pose.translation, atol=1e-5)
        assert np.allclose(graph.vertices[k].rotation_matrix(), pose.rotation_matrix(), atol=1e-5)


def test_optimize_keeps_fixed_vertex():
    graph, truth = _graph()
    graph.optimize(10)
    assert np.allclose(graph.vertices[0].matrix(), truth[0].matrix())


def test_optimize_all_fixed_returns_current_chi2():
    graph = PoseGraph()
    graph.add_vertex(0, SE3(), fixed=True)
    graph.add_vertex(1, SE3(None, [1, 0, 0]), fixed=True)
    graph.add_edge(0, 1, SE3())
    assert graph.optimize(5) == pytest.approx(graph.chi2())
    assert graph.chi2() > 0


def test_add_edge_unknown_vertex():
    graph = PoseGraph()
    graph.add_vertex(0, SE3())
    with pytest.raises(KeyError):
        graph.add_edge(0, 7, SE3())


def test_add_vertex_duplicate():
    graph = PoseGraph()
    graph.add_vertex(0, SE3())
    with pytest.raises(ValueError):
        graph.add_vertex(0, SE3())


def test_write_read_round_trip():
    graph, _ = _graph()
    graph.edges[0].information[0, 1] = graph.edges[0].information[1, 0] = 0.5
    buffer = io.StringIO()
    graph.write(buffer)
    loaded = read_pose_graph(io.StringIO(buffer.getvalue()))
    assert sorted(loaded.vertices) == sorted(graph.vertices)
    assert loaded.fixed == {0}
    for vid, pose in graph.vertices.items():
        assert np.allclose(loaded.vertices[vid].matrix(), pose.matrix(), atol=1e-12)
    assert [(e.i, e.j) for e in loaded.edges] == [(e.i, e.j) for e in graph.edges]
    assert np.allclose(loaded.edges[0].information, graph.edges[0].information)


def test_read_symmetric_information():
    info = " ".join(str(v) for v in range(1, 22))
    text = (
        "VERTEX_SE3:QUAT 0 0 0 0 0 0 0 1\n"
        "VERTEX_SE3:QUAT 1 1 0 0 0 0 0 1\n"
        f"EDGE_SE3:QUAT 0 1 1 0 0 0 0 0 1 {info}\n"
    )
    graph = read_pose_graph(io.StringIO(text))
    (edge,) = graph.edges
    assert edge.information[0, 0] == 1
    assert edge.information[0, 1] == edge.information[1, 0] == 2
    assert edge.information[5, 5] == 21
    assert np.allclose(graph.vertices[1].translation, [1, 0, 0])


def test_read_rejects_bad_edge():
    text = "VERTEX_SE3:QUAT 0 0 0 0 0 0 0 1\nEDGE_SE3:QUAT 0 0 1 2\n"
    with pytest.raises(ValueError):
        read_pose_graph(io.StringIO(text))


def test_main_optimises_and_saves(tmp_path, capsys):
    graph, truth = _graph()
    source = tmp_path / "graph.g2o"
    with open(source, "w") as fh:
        graph.write(fh)
    output = tmp_path / "out.g2o"
    assert main([str(source), "-o", str(output), "--iterations", "50"]) == 0
    assert "read total 4 vertices, 4 edges." in capsys.readouterr().out
    with open(output) as fh:
        result = read_pose_graph(fh)
    assert result.chi2() < 1e-8
    assert np.allclose(result.vertices[3].translation, truth[3].translation, atol=1e-5)


def test_main_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "none.g2o")]) == 1
    assert "does not exist" in capsys.readouterr().out