from __future__ import annotations

import csv
import heapq
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Sequence, Tuple

from common.types import GeoPoint, LocationSample


LOCATION_HEADER = ["t", "lat", "lng", "alt"]
ORIENTATION_HEADER = ["t", "roll", "pitch", "azimuth"]
FOV_HEADER = ["t", "lat0", "lng0", "lat1", "lng1", "lat2", "lng2", "lat3", "lng3"]


def _rows(path: str, what: str, required: Sequence[str]) -> Iterator[dict]:
    if not Path(path).exists():
        raise FileNotFoundError(f"{what} CSV not found: {path}")
    with open(path, newline="") as f:
        reader = csv.DictReader(f)
        missing = [c for c in required if c not in (reader.fieldnames or [])]
        if missing:
            raise ValueError(f"{what} CSV {path} is missing columns: {', '.join(missing)}")
        for row in reader:
            yield row


@dataclass
class LocationCSVSource:
    """Replay GNSS fixes from a CSV with columns: t, lat, lng and optional alt (degrees, meters)."""
    path: str

    def samples(self) -> Iterator[LocationSample]:
        for row in _rows(self.path, "Location", LOCATION_HEADER[:3]):
            yield LocationSample(
                lat=float(row["lat"]),
                lng=float(row["lng"]),
                alt=float(row.get("alt", "0.0")),
                t=float(row["t"]),
            )


@dataclass(frozen=True)
class OrientationDegrees:
    """Raw IMU attitude as recorded (degrees); SensorSync converts on ingestion."""
    roll: float
    pitch: float
    azimuth: float
    t: float


@dataclass
class OrientationCSVSource:
    """Replay attitude from a CSV with columns: t, roll, pitch, azimuth (degrees)."""
    path: str

    def samples(self) -> Iterator[OrientationDegrees]:
        for row in _rows(self.path, "Orientation", ORIENTATION_HEADER):
            yield OrientationDegrees(
                roll=float(row["roll"]),
                pitch=float(row["pitch"]),
                azimuth=float(row["azimuth"]),
                t=float(row["t"]),
            )


@dataclass(frozen=True)
class FovSample:
    t: float
    corners: Tuple[GeoPoint, GeoPoint, GeoPoint, GeoPoint]

    @property
    def ring(self) -> List[GeoPoint]:
        """Corners as a closed ring (first corner repeated last)."""
        return list(self.corners) + [self.corners[0]]


@dataclass
class FovCSVSource:
    """
    Replay field-of-view corners: t, lat0, lng0, ..., lat3, lng3 in the fixed
    order top-left, bottom-left, bottom-right, top-right.
    """
    path: str

    def samples(self) -> Iterator[FovSample]:
        for row in _rows(self.path, "FOV", FOV_HEADER):
            corners = tuple(GeoPoint(lat=float(row[f"lat{k}"]), lng=float(row[f"lng{k}"])) for k in range(4))
            yield FovSample(t=float(row["t"]), corners=corners)  # type: ignore[arg-type]


def merge_by_time(*streams: Iterable) -> Iterator:
    """Interleave already time-ordered streams (items expose `.t`) by time."""
    return heapq.merge(*streams, key=lambda s: s.t)


def write_location_csv(path: str, samples: Iterable[LocationSample]) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, "w", newline="") as f:
        w = csv.writer(f)
        w.writerow(LOCATION_HEADER)
        for s in samples:
            w.writerow([f"{s.t:.6f}", f"{s.lat:.8f}", f"{s.lng:.8f}", f"{s.alt:.3f}"])
