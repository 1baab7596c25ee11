"""Remove radial-tangential lens distortion from a grey image."""

from __future__ import annotations

import argparse

import numpy as np
from PIL import Image

K1, K2, P1, P2 = -0.28340811, 0.07395907, 0.00019359, 1.76187114e-05
FX, FY, CX, CY = 458.654, 457.296, 367.215, 248.375


def undistort_image(
    image, k1=K1, k2=K2, p1=P1, p2=P2, fx=FX, fy=FY, cx=CX, cy=CY
) -> np.ndarray:
    """Undistorted image by nearest-neighbour lookup; pixels mapping outside are 0."""
    img = np.asarray(image)
    if img.ndim != 2:
        raise ValueError("expected a single-channel image")
    rows, cols = img.shape
    v, u = np.mgrid[0:rows, 0:cols].astype(float)
    x = (u - cx) / fx
    y = (v - cy) / fy
    r = np.sqrt(x * x + y * y)
    r2 = r * r
    radial = 1 + k1 * r2 + k2 * r2 * r2
    x_distorted = x * radial + 2 * p1 * x * y + p2 * (r2 + 2 * x * x)
    y_distorted = y * radial + p1 * (r2 + 2 * y * y) + 2 * p2 * x * y
    u_distorted = fx * x_distorted + cx
    v_distorted = fy * y_distorted + cy

    valid = (u_distorted >= 0) & (v_distorted >= 0) & (u_distorted < cols) & (v_distorted < rows)
    out = np.zeros_like(img)
    out[valid] = img[v_distorted[valid].astype(int), u_distorted[valid].astype(int)]
    return out


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Undistort a grey image.")
    parser.add_argument("image", nargs="?", default="./distorted.png")
    parser.add_argument("-o", "--output", default="undistorted.png")
    args = parser.parse_args(argv)

    try:
        with Image.open(args.image) as img:
            gray = np.asarray(img.convert("L"))
    except OSError:
        print(f"cannot read image {args.image}")
        return 1
    Image.fromarray(undistort_image(gray)).save(args.output)
    return 0