from __future__ import annotations

import threading
from typing import Optional

import numpy as np

from common.logging_setup import get_logger
from common.types import (
    FusedImageRecord,
    FusedImuRecord,
    LocationSample,
    OrientationSample,
)
from sensor_sync.buffers import SampleBuffer


log = get_logger(__name__)


class SensorSync:
    """
    Nearest-in-time association of GNSS, IMU and camera streams.

    All three streams must share one clock. Buffers are owned by this object and
    every public call holds its lock, so an acquisition thread may ingest while
    the frame loop fuses.

    Empty buffers are not an error: fused fields are then zero. Check
    `has_location` / `has_orientation` before trusting a fused record.
    """

    def __init__(self, location_capacity: int = 10, orientation_capacity: int = 20) -> None:
        self._locations: SampleBuffer[LocationSample] = SampleBuffer(location_capacity)
        self._orientations: SampleBuffer[OrientationSample] = SampleBuffer(orientation_capacity)
        self._reference: Optional[LocationSample] = None
        self._image: Optional[np.ndarray] = None
        self._image_t: float = 0.0
        self._lock = threading.Lock()

    # -----------------------------
    # Ingestion
    # -----------------------------

    def ingest_location(self, lat: float, lng: float, alt: float, t: float) -> None:
        loc = LocationSample(lat=lat, lng=lng, alt=alt, t=t)
        with self._lock:
            self._locations.append(loc)
            if self._reference is None:
                self._reference = loc
                log.info("Reference origin set", extra={"extra": {"lat": loc.lat, "lng": loc.lng, "alt": loc.alt}})

    def ingest_orientation(self, roll_deg: float, pitch_deg: float, azimuth_deg: float, t: float) -> None:
        orn = OrientationSample.from_degrees(roll_deg, pitch_deg, azimuth_deg, t)
        with self._lock:
            self._orientations.append(orn)

    def set_frame(self, image: np.ndarray, t: float) -> None:
        with self._lock:
            self._image = image
            self._image_t = float(t)

    # -----------------------------
    # Fusion
    # -----------------------------

    def fuse_image(self) -> FusedImageRecord:
        with self._lock:
            loc = self._locations.nearest(self._image_t)
            orn = self._orientations.nearest(self._image_t)
            image, t = self._image, self._image_t

        if loc is None or orn is None:
            log.debug("Fusing frame with empty telemetry buffer",
                      extra={"extra": {"t": t, "has_location": loc is not None, "has_orientation": orn is not None}})
        return FusedImageRecord(
            image=image,
            lat=loc.lat if loc else 0.0,
            lng=loc.lng if loc else 0.0,
            alt=loc.alt if loc else 0.0,
            roll=orn.roll if orn else 0.0,
            pitch=orn.pitch if orn else 0.0,
            azimuth=orn.azimuth if orn else 0.0,
            t=t,
        )

    def fuse_orientation(self) -> FusedImuRecord:
        with self._lock:
            orn = self._orientations.latest
            loc = self._locations.nearest(orn.t) if orn else None

        if orn is None:
            return FusedImuRecord()
        return FusedImuRecord(
            lat=loc.lat if loc else 0.0,
            lng=loc.lng if loc else 0.0,
            alt=loc.alt if loc else 0.0,
            roll=orn.roll,
            pitch=orn.pitch,
            azimuth=orn.azimuth,
            t=orn.t,
        )

    # -----------------------------
    # Accessors
    # -----------------------------

    @property
    def reference_location(self) -> Optional[LocationSample]:
        """First location ever ingested; the flight's local-planar origin."""
        return self._reference

    @property
    def has_location(self) -> bool:
        with self._lock:
            return len(self._locations) > 0

    @property
    def has_orientation(self) -> bool:
        with self._lock:
            return len(self._orientations) > 0

    @property
    def locations(self) -> SampleBuffer[LocationSample]:
        return self._locations

    @property
    def orientations(self) -> SampleBuffer[OrientationSample]:
        return self._orientations
