from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from common.config import MotionConfig
from common.geo import LocalPlane
from common.logging_setup import get_logger
from common.types import BoundingBox, FusedImageRecord, GeoPoint, MovingObject
from motion.flow import FarnebackFlow, OpticalFlow
from motion.normalization import focal_length_px, normalization_coefficients


log = get_logger(__name__)

FULL_SCALE = 255.0


def to_gray_u8(img: np.ndarray) -> np.ndarray:
    if img.ndim == 2:
        g = img
    else:
        g = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
    if g.dtype != np.uint8:
        g = np.clip(g, 0, 255).astype(np.uint8)
    return g


def metric_speed_image(
    flow: np.ndarray,
    x_coeff: np.ndarray,
    y_coeff: np.ndarray,
    max_speed: float,
) -> np.ndarray:
    """
    Metric speed per pixel rendered as a uint8 image: 0 is still, 255 is
    `max_speed` or faster.
    """
    fx = flow[..., 0].astype(np.float64) * x_coeff
    fy = flow[..., 1].astype(np.float64) * y_coeff
    speed = np.hypot(fx, fy)
    clipped = np.minimum(speed, max_speed)
    scaled = (clipped / max_speed) * FULL_SCALE
    return np.rint(scaled).astype(np.uint8)


def extract_moving_objects(
    frame: np.ndarray,
    speed_image: np.ndarray,
    threshold: float,
    size_low: float,
    size_up: float,
) -> List[MovingObject]:
    """
    Threshold the speed image, trace region contours and keep the ones whose
    area ratio to the whole image lies strictly inside (size_low, size_up).
    """
    _, mask = cv2.threshold(speed_image.astype(np.float32), float(threshold), 255, cv2.THRESH_BINARY)
    mask = mask.astype(np.uint8)
    contours, _ = cv2.findContours(mask, cv2.RETR_LIST, cv2.CHAIN_APPROX_TC89_KCOS)

    im_area = float(speed_image.shape[0] * speed_image.shape[1])
    objects: List[MovingObject] = []
    for contour in contours:
        ratio = cv2.contourArea(contour) / im_area
        if size_low < ratio < size_up:
            x, y, w, h = cv2.boundingRect(contour)
            box = BoundingBox(int(x), int(y), int(w), int(h))
            objects.append(MovingObject(box=box, picture=frame[y:y + h, x:x + w]))
    return objects


def draw_objects(dst: np.ndarray, objects: Sequence[MovingObject], color: Tuple[int, int, int] = (0, 0, 255)) -> np.ndarray:
    """Outline candidates on a copy of `dst` (gray inputs are promoted to BGR)."""
    out = dst.copy()
    if out.ndim == 2:
        out = cv2.cvtColor(out, cv2.COLOR_GRAY2BGR)
    for obj in objects:
        b = obj.box
        cv2.rectangle(out, (b.x, b.y), (b.x + b.w, b.y + b.h), color, 2, cv2.LINE_AA)
    return out


class GroundSpeedMotionDetector:
    """
    Detects ground-moving objects from consecutive frames.

    Dense optical flow between the previous and current frame is scaled pixel by
    pixel into metric ground speed using the camera altitude and the geodetic
    corners of the current field of view. The resulting speed image is then
    thresholded into moving-object candidates.

    Meant for frames taken while the camera holds a steady position; the
    aircraft's own motion is not compensated.
    """

    def __init__(
        self,
        config: Optional[MotionConfig] = None,
        optical_flow: Optional[OpticalFlow] = None,
    ) -> None:
        self.config = config or MotionConfig()
        self.optical_flow: OpticalFlow = optical_flow or FarnebackFlow()
        self.hva = float(self.config.horizontal_view_angle_deg)
        self.focal_length: float = 0.0
        self.focal_length_set = False
        self._old_frame: Optional[np.ndarray] = None
        if self.config.image_width:
            self.set_focal_length(self.config.image_width)

    def set_focal_length(self, width_px: int) -> None:
        self.focal_length = focal_length_px(width_px, self.hva)
        self.focal_length_set = True
        log.debug("Focal length set", extra={"extra": {"width_px": int(width_px), "f_px": self.focal_length}})

    def reset(self) -> None:
        """Forget the previous frame (e.g. after the camera moved)."""
        self._old_frame = None

    @property
    def speed_threshold(self) -> float:
        """min_detection_speed expressed on the speed image's intensity scale."""
        c = self.config
        return min(c.min_detection_speed, c.max_object_speed) * FULL_SCALE / c.max_object_speed

    def detect(
        self,
        fused: FusedImageRecord,
        fov: Sequence[GeoPoint],
        origin: Optional[Tuple[float, float]] = None,
    ) -> Tuple[np.ndarray, List[MovingObject]]:
        """
        Args:
            fused: frame with its synchronized location.
            fov: field-of-view corners (4 points, or 5 with the ring closed).
            origin: (lat, lng) of the local planar frame; defaults to the
                    camera position.

        Returns:
            (speed_image uint8 (rows, cols), moving-object candidates)
        """
        image = fused.image
        rows, cols = image.shape[:2]

        if not self.focal_length_set:
            ref = rows if self.config.legacy_focal_from_height else cols
            self.set_focal_length(ref)

        if self._old_frame is None:
            self._old_frame = to_gray_u8(image)
            return np.zeros((rows, cols), dtype=np.uint8), []

        new_frame = to_gray_u8(image)
        flow = self.optical_flow(self._old_frame, new_frame)
        self._old_frame = new_frame

        x_coeff, y_coeff = self.normalization_field(fov, fused, (rows, cols), origin)
        speed = metric_speed_image(flow, x_coeff, y_coeff, self.config.max_object_speed)
        objects = extract_moving_objects(
            image,
            speed,
            self.speed_threshold,
            self.config.object_size_low,
            self.config.object_size_up,
        )
        log.debug("Motion detection", extra={"extra": {"t": fused.t, "objects": len(objects), "peak": int(speed.max())}})
        return speed, objects

    def normalization_field(
        self,
        fov: Sequence[GeoPoint],
        fused: FusedImageRecord,
        shape: Tuple[int, int],
        origin: Optional[Tuple[float, float]] = None,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Coefficient matrices for this frame only; never reuse across frames."""
        lat0, lng0 = origin if origin is not None else (fused.lat, fused.lng)
        plane = LocalPlane(lat0, lng0)
        fov_xy = plane.project([(p.lat, p.lng) for p in list(fov)[:4]])
        camera_xy = plane.to_xy(fused.lat, fused.lng)
        return normalization_coefficients(fov_xy, camera_xy, fused.alt, shape, self.focal_length)
