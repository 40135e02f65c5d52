from __future__ import annotations

import math
from typing import Tuple

import numpy as np


def focal_length_px(width_px: int, hva_deg: float) -> float:
    """
    Pinhole focal length in pixels, assuming the optical center sits exactly at
    the image center: f = 0.5 * w / tan(hva / 2).
    """
    return float(0.5 * width_px / math.tan(math.radians(hva_deg) / 2.0))


def skew_angle(fov_xy: np.ndarray) -> float:
    """
    Deviation from a right angle between the two footprint edges meeting at
    corner 1 (edges 1->0 and 1->2). Zero for a rectangular footprint.
    """
    v1 = fov_xy[0] - fov_xy[1]
    v2 = fov_xy[2] - fov_xy[1]
    denom = float(np.linalg.norm(v1) * np.linalg.norm(v2))
    if denom == 0.0:
        return 0.0
    cos_a = float(np.clip(np.dot(v1, v2) / denom, -1.0, 1.0))
    return (math.pi / 2.0) - math.acos(cos_a)


def normalization_coefficients(
    fov_xy: np.ndarray,
    camera_xy: Tuple[float, float],
    alt: float,
    shape: Tuple[int, int],
    focal_px: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Per-pixel factors converting optical-flow pixel displacement into metric
    ground displacement for one frame.

    Args:
        fov_xy: (4, 2) planar (east, north) meters of the footprint corners, in
                the fixed corner order used by the FOV projection.
        camera_xy: planar position of the camera in the same frame.
        alt: camera altitude (meters).
        shape: (rows, cols) of the flow field.
        focal_px: focal length in pixels.

    Returns:
        (x_coeff, y_coeff), each float64 of shape (rows, cols).

    Each pixel's ground point is bilinear in the corners: along i between
    corners 0->3 and 1->2, then along j across that line. The range from the
    camera to that ground point divided by the pixel's distance to the optical
    center (focal length as the z-component) gives the horizontal factor. The
    vertical factor is further divided by cos(offset * alpha), where offset is
    the column's signed distance from the center column as a fraction of half
    the width, and alpha is the footprint skew from skew_angle().
    """
    fov_xy = np.asarray(fov_xy, dtype=float).reshape(-1, 2)[:4]
    rows, cols = int(shape[0]), int(shape[1])
    alpha = skew_angle(fov_xy)

    i = np.arange(rows, dtype=float)[:, None]
    j = np.arange(cols, dtype=float)[None, :]
    fi = i / rows   # (rows, 1)
    fj = j / cols   # (1, cols)

    row_first = fov_xy[0] + fi[..., None] * (fov_xy[3] - fov_xy[0])  # (rows, 1, 2)
    row_last = fov_xy[1] + fi[..., None] * (fov_xy[2] - fov_xy[1])
    ground = row_first + fj[..., None] * (row_last - row_first)      # (rows, cols, 2)

    dx = float(camera_xy[0]) - ground[..., 0]
    dy = float(camera_xy[1]) - ground[..., 1]
    slant = np.sqrt(dx * dx + dy * dy + float(alt) ** 2)

    half_w = cols / 2.0
    h = np.sqrt((j - half_w) ** 2 + (i - rows / 2.0) ** 2 + float(focal_px) ** 2)
    x_coeff = slant / h

    offset = (j - half_w) / half_w
    y_coeff = x_coeff / np.cos(offset * alpha)
    return x_coeff, np.broadcast_to(y_coeff, x_coeff.shape).copy()
