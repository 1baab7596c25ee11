"""Reader for stereo sequences laid out as calib.txt plus image_0/ and image_1/."""

from __future__ import annotations

import logging
import re
from pathlib import Path

import numpy as np
from PIL import Image

from slamkit.camera import Camera
from slamkit.frame import Frame
from slamkit.lie import SE3

log = logging.getLogger(__name__)

CAMERA_COUNT = 4
_NAME_LENGTH = 3
_PROJECTION_SIZE = 12
_NON_SPACE = re.compile(r"\S")
_WORD = re.compile(r"\S+")


def _camera_from_projection(values: list[float]) -> Camera:
    projection = np.asarray(values, dtype=float).reshape(3, 4)
    k = projection[:, :3]
    try:
        t = np.linalg.solve(k, projection[:, 3])
    except np.linalg.LinAlgError as exc:
        raise ValueError("projection matrix has a singular intrinsic part") from exc
    k = k * 0.5
    return Camera(k[0, 0], k[1, 1], k[0, 2], k[1, 2], float(np.linalg.norm(t)), SE3(None, t))


def parse_calibration(stream) -> list[Camera]:
    """Cameras of a calibration text: four records of a 3-character name and a 3x4 projection.

    Intrinsics are halved to match the half-resolution images the dataset yields.
    """
    text = stream.read()
    pos = 0
    cameras = []
    for index in range(CAMERA_COUNT):
        for _ in range(_NAME_LENGTH):
            match = _NON_SPACE.search(text, pos)
            if match is None:
                raise ValueError(f"calibration ends before the name of camera {index}")
            pos = match.end()
        values = []
        for _ in range(_PROJECTION_SIZE):
            match = _WORD.search(text, pos)
            if match is None:
                raise ValueError(f"calibration ends inside the projection of camera {index}")
            try:
                values.append(float(match.group()))
            except ValueError:
                raise ValueError(f"camera {index}: {match.group()!r} is not a number") from None
            pos = match.end()
        camera = _camera_from_projection(values)
        log.info("Camera %d extrinsics: %s", index, camera.pose.translation)
        cameras.append(camera)
    return cameras


def _load_half_gray(path: Path) -> np.ndarray | None:
    try:
        with Image.open(path) as img:
            gray = np.asarray(img.convert("L"))
    except OSError:
        return None
    rows = int(round(gray.shape[0] * 0.5))
    cols = int(round(gray.shape[1] * 0.5))
    return gray[: 2 * rows : 2, : 2 * cols : 2].copy()


class Dataset:
    """Stereo image sequence; call init() before reading cameras or frames."""

    def __init__(self, dataset_path):
        self.dataset_path = Path(dataset_path)
        self.current_image_index = 0
        self.cameras: list[Camera] = []

    def init(self) -> None:
        """Read the calibration; FileNotFoundError if calib.txt is missing."""
        calib = self.dataset_path / "calib.txt"
        try:
            fh = open(calib, encoding="utf-8")
        except FileNotFoundError:
            log.error("cannot find %s!", calib)
            raise
        with fh:
            self.cameras = parse_calibration(fh)
        self.current_image_index = 0

    def _image_path(self, camera: int) -> Path:
        return self.dataset_path / f"image_{camera}" / f"{self.current_image_index:06d}.png"

    def next_frame(self) -> Frame | None:
        """The next stereo frame at half resolution, or None when images run out."""
        left = _load_half_gray(self._image_path(0))
        right = _load_half_gray(self._image_path(1))
        if left is None or right is None:
            log.warning("cannot find images at index %d", self.current_image_index)
            return None
        frame = Frame.create()
        frame.left_img = left
        frame.right_img = right
        self.current_image_index += 1
        return frame

    def camera(self, camera_id: int) -> Camera:
        if not 0 <= camera_id < len(self.cameras):
            raise IndexError(f"no camera with id {camera_id}")
        return self.cameras[camera_id]