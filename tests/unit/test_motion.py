"""
Unit tests for ground-speed motion detection
"""

import math
import os
import sys

import cv2
import numpy as np
import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.config import MotionConfig
from common.types import FusedImageRecord, GeoPoint, MovingObject
from motion import (
    FarnebackFlow,
    GroundSpeedMotionDetector,
    draw_objects,
    extract_moving_objects,
    metric_speed_image,
    normalization_coefficients,
    skew_angle,
)
from motion.normalization import focal_length_px


# Square footprint 100 m wide centred under the camera; corners 0->3 and 1->2
# run along the image rows.
SQUARE_FOV = np.array([[-50.0, 50.0], [-50.0, -50.0], [50.0, -50.0], [50.0, 50.0]])

LAT0, LNG0 = 45.0, 7.0
D = 0.0005
GEO_FOV = [
    GeoPoint(LAT0 + D, LNG0 - D),
    GeoPoint(LAT0 - D, LNG0 - D),
    GeoPoint(LAT0 - D, LNG0 + D),
    GeoPoint(LAT0 + D, LNG0 + D),
    GeoPoint(LAT0 + D, LNG0 - D),
]


class ConstantFlow:
    """Deterministic optical flow: a fixed field regardless of input frames."""

    def __init__(self, field):
        self.field = field
        self.calls = 0

    def __call__(self, prev_gray, curr_gray):
        self.calls += 1
        assert prev_gray.shape == curr_gray.shape
        return self.field


def _fused(image, alt=100.0):
    return FusedImageRecord(image=image, lat=LAT0, lng=LNG0, alt=alt, t=1.0)


class TestFocalLength:
    """Test cases for the pinhole focal-length estimate"""

    def test_ninety_degree_view(self):
        assert focal_length_px(200, 90.0) == pytest.approx(100.0)

    def test_explicit_width_calibrates_at_construction(self):
        det = GroundSpeedMotionDetector(MotionConfig(horizontal_view_angle_deg=60.0, image_width=640))
        assert det.focal_length_set
        assert det.focal_length == pytest.approx(0.5 * 640 / math.tan(math.radians(30.0)))

    def test_lazy_focal_uses_frame_width(self):
        det = GroundSpeedMotionDetector(MotionConfig(horizontal_view_angle_deg=60.0), optical_flow=ConstantFlow(None))
        det.detect(_fused(np.zeros((60, 80, 3), dtype=np.uint8)), GEO_FOV)
        assert det.focal_length == pytest.approx(focal_length_px(80, 60.0))

    def test_legacy_focal_uses_frame_height(self):
        cfg = MotionConfig(horizontal_view_angle_deg=60.0, legacy_focal_from_height=True)
        det = GroundSpeedMotionDetector(cfg, optical_flow=ConstantFlow(None))
        det.detect(_fused(np.zeros((60, 80, 3), dtype=np.uint8)), GEO_FOV)
        assert det.focal_length == pytest.approx(focal_length_px(60, 60.0))


class TestNormalization:
    """Test cases for the per-pixel normalization coefficient field"""

    def test_rectangular_footprint_has_no_skew(self):
        assert skew_angle(SQUARE_FOV) == pytest.approx(0.0, abs=1e-12)

    def test_skewed_footprint(self):
        fov = SQUARE_FOV.copy()
        fov[0] = [-30.0, 50.0]
        assert abs(skew_angle(fov)) > 0.1

    def test_center_pixel_is_altitude_over_focal(self):
        """Under the camera the slant range is the altitude and h is f"""
        f = 50.0
        xc, yc = normalization_coefficients(SQUARE_FOV, (0.0, 0.0), 100.0, (10, 10), f)
        assert xc.shape == (10, 10) and yc.shape == (10, 10)
        assert xc[5, 5] == pytest.approx(100.0 / f)
        np.testing.assert_allclose(xc, yc)

    def test_coefficients_follow_slant_range(self):
        f = 50.0
        xc, _ = normalization_coefficients(SQUARE_FOV, (0.0, 0.0), 100.0, (10, 10), f)
        # Pixel (0, 0) sits on corner 0
        expected = math.sqrt(50.0 ** 2 + 50.0 ** 2 + 100.0 ** 2) / math.sqrt(25 + 25 + f ** 2)
        assert xc[0, 0] == pytest.approx(expected)

    def test_skew_correction_grows_away_from_center_column(self):
        fov = SQUARE_FOV.copy()
        fov[0] = [-30.0, 50.0]
        xc, yc = normalization_coefficients(fov, (0.0, 0.0), 100.0, (8, 8), 40.0)
        assert yc[:, 4] == pytest.approx(xc[:, 4])
        ratio = yc / xc
        assert ratio[3, 0] > ratio[3, 2] > ratio[3, 4]

    def test_field_recomputed_per_geometry(self):
        a, _ = normalization_coefficients(SQUARE_FOV, (0.0, 0.0), 100.0, (6, 6), 30.0)
        b, _ = normalization_coefficients(SQUARE_FOV, (0.0, 0.0), 200.0, (6, 6), 30.0)
        assert np.all(b > a)


class TestSpeedImage:
    """Test cases for metric speed rendering"""

    def test_clipping_and_zero(self):
        flow = np.zeros((4, 4, 2), dtype=np.float32)
        flow[0, 0] = (100.0, 0.0)
        flow[1, 1] = (6.0, 8.0)
        ones = np.ones((4, 4))
        out = metric_speed_image(flow, ones, ones, max_speed=51.0)
        assert out.dtype == np.uint8
        assert out[0, 0] == 255
        assert out[1, 1] == 50
        assert out[3, 3] == 0

    def test_coefficients_scale_each_axis(self):
        flow = np.zeros((2, 2, 2), dtype=np.float32)
        flow[..., 0] = 1.0
        xc = np.full((2, 2), 3.0)
        yc = np.full((2, 2), 1000.0)
        out = metric_speed_image(flow, xc, yc, max_speed=255.0)
        assert np.all(out == 3)


class TestObjectExtraction:
    """Test cases for size-filtered contour extraction"""

    def _image_with_blob(self, x, y, w, h, size=200):
        speed = np.zeros((size, size), dtype=np.uint8)
        speed[y:y + h, x:x + w] = 255
        return speed

    def test_small_blob_rejected(self):
        speed = self._image_with_blob(20, 20, 5, 8)  # ~0.1% of the image
        frame = np.zeros((200, 200, 3), dtype=np.uint8)
        assert extract_moving_objects(frame, speed, 10, 0.01, 0.3) == []

    def test_large_blob_rejected(self):
        speed = self._image_with_blob(0, 0, 200, 100)  # 50% of the image
        frame = np.zeros((200, 200, 3), dtype=np.uint8)
        assert extract_moving_objects(frame, speed, 10, 0.01, 0.3) == []

    def test_mid_blob_extracted_with_crop(self):
        speed = self._image_with_blob(20, 30, 40, 50)  # 5% of the image
        frame = np.random.default_rng(0).integers(0, 255, (200, 200, 3), dtype=np.uint8)
        objs = extract_moving_objects(frame, speed, 10, 0.01, 0.3)
        assert len(objs) == 1
        obj = objs[0]
        assert isinstance(obj, MovingObject)
        assert obj.kind.value == "moving"
        assert obj.box.as_tuple() == (20, 30, 40, 50)
        assert obj.picture.shape == (50, 40, 3)
        np.testing.assert_array_equal(obj.picture, frame[30:80, 20:60])

    def test_below_threshold_ignored(self):
        speed = self._image_with_blob(20, 30, 40, 50) // 51  # intensity 5
        frame = np.zeros((200, 200, 3), dtype=np.uint8)
        assert extract_moving_objects(frame, speed, 10, 0.01, 0.3) == []

    def test_draw_objects_promotes_gray(self):
        speed = self._image_with_blob(20, 30, 40, 50)
        objs = extract_moving_objects(np.zeros((200, 200, 3), dtype=np.uint8), speed, 10, 0.01, 0.3)
        out = draw_objects(speed, objs)
        assert out.shape == (200, 200, 3)
        assert speed.ndim == 2


class TestGroundSpeedMotionDetector:
    """Test cases for the frame-to-frame detector"""

    def test_first_frame_bootstrap(self):
        flow = ConstantFlow(np.ones((60, 80, 2), dtype=np.float32))
        det = GroundSpeedMotionDetector(MotionConfig(), optical_flow=flow)
        speed, objects = det.detect(_fused(np.zeros((60, 80, 3), dtype=np.uint8)), GEO_FOV)
        assert objects == []
        assert speed.shape == (60, 80)
        assert speed.dtype == np.uint8
        assert not speed.any()
        assert flow.calls == 0

    def test_second_frame_produces_speed(self):
        field = np.zeros((60, 80, 2), dtype=np.float32)
        field[..., 0] = 1.0
        field[20:30, 30:40, 0] = 20.0
        cfg = MotionConfig(object_size_low=0.001, object_size_up=0.3)
        det = GroundSpeedMotionDetector(cfg, optical_flow=ConstantFlow(field))
        img = np.zeros((60, 80, 3), dtype=np.uint8)
        det.detect(_fused(img), GEO_FOV)
        speed, objects = det.detect(_fused(img), GEO_FOV)
        assert speed.max() > 0
        assert speed[25, 35] > speed[5, 5]
        assert len(objects) == 1
        assert objects[0].box.as_tuple() == (30, 20, 10, 10)

    def test_reset_restarts_bootstrap(self):
        flow = ConstantFlow(np.ones((60, 80, 2), dtype=np.float32))
        det = GroundSpeedMotionDetector(MotionConfig(), optical_flow=flow)
        img = np.zeros((60, 80, 3), dtype=np.uint8)
        det.detect(_fused(img), GEO_FOV)
        det.reset()
        speed, _ = det.detect(_fused(img), GEO_FOV)
        assert not speed.any()
        assert flow.calls == 0

    def test_speed_threshold_on_intensity_scale(self):
        det = GroundSpeedMotionDetector(MotionConfig(max_object_speed=40.0, min_detection_speed=4.0))
        assert det.speed_threshold == pytest.approx(25.5)

    def test_farneback_on_shifted_frames(self):
        """Real optical flow on a translated texture yields non-zero speed"""
        rng = np.random.default_rng(42)
        base = rng.integers(0, 255, (120, 160), dtype=np.uint8)
        base = cv2.GaussianBlur(base, (0, 0), 2.0)
        shifted = np.roll(base, 3, axis=1)

        flow = FarnebackFlow()(base, shifted)
        assert flow.shape == (120, 160, 2)
        assert np.median(flow[20:-20, 20:-20, 0]) > 1.0

        det = GroundSpeedMotionDetector(MotionConfig())
        det.detect(_fused(cv2.cvtColor(base, cv2.COLOR_GRAY2BGR)), GEO_FOV)
        speed, _ = det.detect(_fused(cv2.cvtColor(shifted, cv2.COLOR_GRAY2BGR)), GEO_FOV)
        assert speed.max() > 0
