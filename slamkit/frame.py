"""Frames of a stereo sequence and the 2D features extracted from them."""

from __future__ import annotations

import itertools
import threading
import weakref

import numpy as np

from slamkit.lie import SE3


def _ref(obj):
    return None if obj is None else weakref.ref(obj)


def _deref(ref):
    return None if ref is None else ref()


class Feature:
    """A 2D keypoint; after triangulation it refers to a map point.

    The owning frame and the map point are held weakly: they read as None
    once the object they refer to is gone.
    """

    def __init__(self, frame=None, position=(0.0, 0.0)):
        self._frame = _ref(frame)
        self.position = np.asarray(position, dtype=float)
        self._map_point = None
        self.is_outlier = False
        self.is_on_left_image = True

    @property
    def frame(self):
        return _deref(self._frame)

    @frame.setter
    def frame(self, value):
        self._frame = _ref(value)

    @property
    def map_point(self):
        return _deref(self._map_point)

    @map_point.setter
    def map_point(self, value):
        self._map_point = _ref(value)

    def __repr__(self) -> str:
        return f"Feature(position={self.position.tolist()}, left={self.is_on_left_image})"


class Frame:
    """A stereo frame with its pose (T_c_w) and features; keyframes get their own id."""

    _ids = itertools.count()
    _keyframe_ids = itertools.count()
    _id_lock = threading.Lock()

    def __init__(self, id=0, time_stamp=0.0, pose=None, left=None, right=None):
        self.id = id
        self.keyframe_id = 0
        self.is_keyframe = False
        self.time_stamp = time_stamp
        self._pose = SE3() if pose is None else pose
        self._pose_lock = threading.Lock()
        self.left_img = left
        self.right_img = right
        self.features_left: list[Feature] = []
        self.features_right: list[Feature | None] = []

    @property
    def pose(self) -> SE3:
        with self._pose_lock:
            return self._pose

    @pose.setter
    def pose(self, value: SE3) -> None:
        with self._pose_lock:
            self._pose = value

    @classmethod
    def create(cls) -> "Frame":
        """A new frame with the next frame id."""
        with cls._id_lock:
            frame_id = next(cls._ids)
        return cls(id=frame_id)

    def set_keyframe(self) -> None:
        """Mark this frame as a keyframe and give it the next keyframe id."""
        with Frame._id_lock:
            self.keyframe_id = next(Frame._keyframe_ids)
        self.is_keyframe = True

    def __repr__(self) -> str:
        return f"Frame(id={self.id}, keyframe={self.is_keyframe}, keyframe_id={self.keyframe_id})"