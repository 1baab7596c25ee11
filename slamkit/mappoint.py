"""Landmarks: 3D points triangulated from features and the features observing them."""

from __future__ import annotations

import itertools
import threading
import weakref

import numpy as np


class MapPoint:
    """A landmark with its world position and the features that observe it."""

    _ids = itertools.count()
    _id_lock = threading.Lock()

    def __init__(self, id=0, position=None):
        self.id = id
        self.is_outlier = False
        self._pos = np.zeros(3) if position is None else np.asarray(position, dtype=float).copy()
        self._lock = threading.Lock()
        self.observed_times = 0
        self._observations: list[weakref.ref] = []

    @property
    def pos(self) -> np.ndarray:
        with self._lock:
            return self._pos.copy()

    @pos.setter
    def pos(self, value) -> None:
        with self._lock:
            self._pos = np.asarray(value, dtype=float).copy()

    @classmethod
    def create(cls) -> "MapPoint":
        """A new map point with the next id."""
        with cls._id_lock:
            point_id = next(cls._ids)
        return cls(id=point_id)

    def add_observation(self, feature) -> None:
        with self._lock:
            self._observations.append(weakref.ref(feature))
            self.observed_times += 1

    def remove_observation(self, feature) -> None:
        """Forget one observation by feature and detach the feature from this point."""
        with self._lock:
            for ref in self._observations:
                if ref() is feature:
                    self._observations.remove(ref)
                    feature.map_point = None
                    self.observed_times -= 1
                    break

    def observations(self) -> list:
        """The observing features that still exist."""
        with self._lock:
            refs = list(self._observations)
        return [f for f in (ref() for ref in refs) if f is not None]

    def __repr__(self) -> str:
        return f"MapPoint(id={self.id}, pos={self._pos.tolist()}, observed={self.observed_times})"