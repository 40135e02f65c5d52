from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import numpy as np


Seconds = float


@dataclass(slots=True)
class LocationSample:
    """
    One GNSS fix.

    Attributes:
        lat, lng: WGS84 degrees.
        alt: altitude in meters.
        t: capture time in seconds (same clock as frames and IMU).
    """
    lat: float
    lng: float
    alt: float
    t: Seconds

    def __post_init__(self) -> None:
        self.lat = float(self.lat)
        self.lng = float(self.lng)
        self.alt = float(self.alt)
        self.t = float(self.t)


@dataclass(slots=True)
class OrientationSample:
    """
    One attitude sample. Angles are radians; use from_degrees() on ingestion.
    """
    roll: float
    pitch: float
    azimuth: float
    t: Seconds

    @classmethod
    def from_degrees(cls, roll: float, pitch: float, azimuth: float, t: Seconds) -> "OrientationSample":
        return cls(
            roll=math.radians(float(roll)),
            pitch=math.radians(float(pitch)),
            azimuth=math.radians(float(azimuth)),
            t=float(t),
        )


@dataclass(frozen=True, slots=True)
class FusedImageRecord:
    """
    A frame paired with the location and orientation samples nearest to its
    capture time. Orientation angles are radians.
    """
    image: Optional[np.ndarray] = field(repr=False)
    lat: float = 0.0
    lng: float = 0.0
    alt: float = 0.0
    roll: float = 0.0
    pitch: float = 0.0
    azimuth: float = 0.0
    t: Seconds = 0.0

    def to_meta(self) -> Dict[str, Any]:
        """Metadata without image bytes (safe to log/serialize)."""
        return {
            "t": self.t,
            "lat": self.lat,
            "lng": self.lng,
            "alt": self.alt,
            "roll": self.roll,
            "pitch": self.pitch,
            "azimuth": self.azimuth,
            "shape": None if self.image is None else list(self.image.shape),
        }


@dataclass(frozen=True, slots=True)
class FusedImuRecord:
    """Latest orientation sample paired with the nearest location sample."""
    lat: float = 0.0
    lng: float = 0.0
    alt: float = 0.0
    roll: float = 0.0
    pitch: float = 0.0
    azimuth: float = 0.0
    t: Seconds = 0.0


@dataclass(frozen=True, slots=True)
class GeoPoint:
    lat: float
    lng: float

    def as_xy(self) -> Tuple[float, float]:
        """(lng, lat) ordering used by planar polygon code."""
        return (self.lng, self.lat)


@dataclass(frozen=True, slots=True)
class BoundingBox:
    x: int
    y: int
    w: int
    h: int

    @property
    def area(self) -> int:
        return self.w * self.h

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.x, self.y, self.w, self.h)


class ObjectKind(str, Enum):
    MOVING = "moving"


@dataclass(slots=True)
class MovingObject:
    """
    A candidate moving region extracted from the speed image.

    Attributes:
        box: bounding box in pixel coordinates of the source frame.
        picture: crop of the source frame under `box` (a view, not a copy).
        kind: always ObjectKind.MOVING for motion candidates.
    """
    box: BoundingBox
    picture: np.ndarray = field(repr=False)
    kind: ObjectKind = ObjectKind.MOVING


@dataclass(slots=True)
class Detection:
    """Output of the object-detection network collaborator."""
    box: BoundingBox
    confidence: float
    class_id: int

    def __post_init__(self) -> None:
        self.confidence = float(np.clip(self.confidence, 0.0, 1.0))


@dataclass(slots=True)
class ImageFrame:
    """
    A single camera image with its capture time.

    Attributes:
        t: capture time in seconds on the telemetry clock.
        frame: np.ndarray of shape (H,W) or (H,W,3), dtype uint8 (BGR).
    """
    t: Seconds
    frame: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.frame, np.ndarray):
            raise TypeError("frame must be a numpy ndarray")
        if self.frame.ndim not in (2, 3):
            raise ValueError("frame must be 2D (gray) or 3D (BGR)")
        if self.frame.dtype != np.uint8:
            self.frame = self.frame.astype(np.uint8, copy=False)
        self.t = float(self.t)
