import gc

import numpy as np

from slamkit.frame import Feature
from slamkit.mappoint import MapPoint


def test_create_assigns_consecutive_ids():
    a = MapPoint.create()
    b = MapPoint.create()
    assert b.id == a.id + 1
    assert np.allclose(a.pos, np.zeros(3))


def test_position_round_trip():
    point = MapPoint(7, [1.0, 2.0, 3.0])
    assert point.id == 7
    assert np.allclose(point.pos, [1.0, 2.0, 3.0])
    point.pos = [4.0, 5.0, 6.0]
    assert np.allclose(point.pos, [4.0, 5.0, 6.0])


def test_add_observation_counts():
    point = MapPoint.create()
    f1, f2 = Feature(), Feature()
    point.add_observation(f1)
    point.add_observation(f2)
    assert point.observed_times == 2
    assert point.observations() == [f1, f2]


def test_remove_observation_detaches_feature():
    point = MapPoint.create()
    f1, f2 = Feature(), Feature()
    for f in (f1, f2):
        f.map_point = point
        point.add_observation(f)
    point.remove_observation(f1)
    assert point.observed_times == 1
    assert point.observations() == [f2]
    assert f1.map_point is None
    assert f2.map_point is point


def test_remove_unknown_observation_changes_nothing():
    point = MapPoint.create()
    observed, other = Feature(), Feature()
    point.add_observation(observed)
    other.map_point = point
    point.remove_observation(other)
    assert point.observed_times == 1
    assert other.map_point is point


def test_observations_skip_dead_features():
    point = MapPoint.create()
    alive = Feature()
    dead = Feature()
    point.add_observation(alive)
    point.add_observation(dead)
    del dead
    gc.collect()
    assert point.observations() == [alive]