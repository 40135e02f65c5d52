"""
Ground-speed motion detection

This package provides:
- Dense optical flow strategies (OpenCV Farneback by default)
- Per-pixel normalization coefficients turning pixel displacement into metric
  ground displacement from the camera altitude and field-of-view corners
- GroundSpeedMotionDetector: speed image + moving-object candidates per frame
- DnnObjectDetector: OpenCV DNN wrapper (YOLOv3 / MobileNet-SSD) for the
  object-detection collaborator
"""
from .flow import FarnebackFlow, OpticalFlow
from .normalization import normalization_coefficients, skew_angle
from .detector import (
    GroundSpeedMotionDetector,
    draw_objects,
    extract_moving_objects,
    metric_speed_image,
)

__all__ = [
    "FarnebackFlow",
    "OpticalFlow",
    "GroundSpeedMotionDetector",
    "normalization_coefficients",
    "skew_angle",
    "metric_speed_image",
    "extract_moving_objects",
    "draw_objects",
]
