from __future__ import annotations

import argparse
import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import cv2
import numpy as np

from common.config import ScannerConfig
from common.geo import LocalPlane, ring_area_m2
from common.logging_setup import get_logger, setup_logging
from common.types import Detection, FusedImageRecord, GeoPoint, ImageFrame, LocationSample, MovingObject
from common.utils import RateTimer
from footprint.sweeper import CoverageSweeper
from motion.detector import GroundSpeedMotionDetector, draw_objects
from motion.flow import OpticalFlow
from motion.objects import DnnObjectDetector, draw_detections
from platform_io.camera import VideoFrameSource
from platform_io.telemetry import (
    FovCSVSource,
    FovSample,
    LocationCSVSource,
    OrientationCSVSource,
    OrientationDegrees,
    merge_by_time,
)
from sensor_sync.sync import SensorSync


log = get_logger("analytics")


@dataclass
class FrameResult:
    fused: FusedImageRecord
    speed_image: np.ndarray = field(repr=False)
    objects: List[MovingObject] = field(default_factory=list)
    detections: List[Detection] = field(default_factory=list)
    coverage: List[GeoPoint] = field(default_factory=list)
    skipped: bool = False

    def to_row(self, plane: Optional[LocalPlane] = None) -> Dict:
        row = self.fused.to_meta()
        row.update({
            "skipped": self.skipped,
            "objects": [o.box.as_tuple() for o in self.objects],
            "detections": [{"box": d.box.as_tuple(), "conf": d.confidence} for d in self.detections],
            "coverage_vertices": len(self.coverage),
        })
        if plane is not None and self.coverage:
            row["coverage_m2"] = ring_area_m2([(p.lat, p.lng) for p in self.coverage], plane)
        return row


class ScannerPipeline:
    """
    Single-threaded host for the three analytics components.

    Telemetry can be pushed from any thread (SensorSync locks internally); each
    process_frame() call runs synchronously and must finish within the frame
    budget, there is no frame skipping here.
    """

    def __init__(
        self,
        config: Optional[ScannerConfig] = None,
        optical_flow: Optional[OpticalFlow] = None,
        object_detector: Optional[DnnObjectDetector] = None,
    ) -> None:
        self.config = config or ScannerConfig()
        self.sync = SensorSync(self.config.sync.location_buffer, self.config.sync.orientation_buffer)
        self.motion = GroundSpeedMotionDetector(self.config.motion, optical_flow=optical_flow)
        self.sweeper = CoverageSweeper(self.config.coverage)
        self.object_detector = object_detector

    def ingest_location(self, lat: float, lng: float, alt: float, t: float) -> None:
        self.sync.ingest_location(lat, lng, alt, t)

    def ingest_orientation(self, roll_deg: float, pitch_deg: float, azimuth_deg: float, t: float) -> None:
        self.sync.ingest_orientation(roll_deg, pitch_deg, azimuth_deg, t)

    @property
    def plane(self) -> Optional[LocalPlane]:
        ref = self.sync.reference_location
        return None if ref is None else LocalPlane(ref.lat, ref.lng)

    def process_frame(self, image: np.ndarray, t: float, fov: Sequence[GeoPoint]) -> FrameResult:
        self.sync.set_frame(image, t)
        fused = self.sync.fuse_image()

        if not self.sync.has_location:
            log.warning("Frame skipped: no location fix yet", extra={"extra": {"t": t}})
            rows, cols = image.shape[:2]
            return FrameResult(fused=fused, speed_image=np.zeros((rows, cols), dtype=np.uint8), skipped=True)

        ref = self.sync.reference_location
        origin = (ref.lat, ref.lng) if ref is not None else None
        speed, objects = self.motion.detect(fused, fov, origin=origin)
        coverage = self.sweeper.update(fov)
        detections = self.object_detector.detect(image) if self.object_detector is not None else []
        return FrameResult(fused=fused, speed_image=speed, objects=objects, detections=detections, coverage=coverage)

    def annotate(self, result: FrameResult) -> np.ndarray:
        """Speed image with candidates (and DNN detections, if any) outlined."""
        out = draw_objects(result.speed_image, result.objects)
        if result.detections:
            out = draw_detections(out, result.detections, color=(0, 255, 0))
        return out


def _write_results_row(path: Path, row: Dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", buffering=1) as f:
        f.write(json.dumps(row) + "\n")


def replay(
    pipeline: ScannerPipeline,
    frames,
    locations,
    orientations,
    fovs,
    results_path: Optional[Path] = None,
    out_dir: Optional[Path] = None,
) -> int:
    """
    Feed recorded streams through the pipeline in time order; on equal times
    telemetry and FOV samples go before the frame. A frame is
    processed with the latest FOV sample at or before its capture time.
    Returns the number of processed frames.
    """
    fov: Optional[FovSample] = None
    rt = RateTimer()
    n = 0
    for item in merge_by_time(locations, orientations, fovs, frames):
        if isinstance(item, LocationSample):
            pipeline.ingest_location(item.lat, item.lng, item.alt, item.t)
        elif isinstance(item, OrientationDegrees):
            pipeline.ingest_orientation(item.roll, item.pitch, item.azimuth, item.t)
        elif isinstance(item, FovSample):
            fov = item
        elif isinstance(item, ImageFrame):
            if fov is None:
                log.warning("Frame skipped: no FOV corners yet", extra={"extra": {"t": item.t}})
                continue
            t0 = time.perf_counter()
            result = pipeline.process_frame(item.frame, item.t, fov.ring)
            dt_ms = int(1000.0 * (time.perf_counter() - t0))
            hz = rt.tick()
            n += 1

            if results_path is not None:
                row = result.to_row(pipeline.plane)
                row["latency_ms"] = dt_ms
                _write_results_row(results_path, row)
            if out_dir is not None and not result.skipped:
                out_dir.mkdir(parents=True, exist_ok=True)
                cv2.imwrite(str(out_dir / f"speed_{n:06d}.png"), pipeline.annotate(result))
            log.info("Frame processed", extra={"extra": {"t": item.t, "objects": len(result.objects),
                                                         "latency_ms": dt_ms, "hz": round(hz, 2)}})
    return n


def main() -> None:
    ap = argparse.ArgumentParser(description="Scanner analytics: flight replay")
    ap.add_argument("--config", default="config/params.yaml")
    ap.add_argument("--video", required=True, help="Recorded flight video")
    ap.add_argument("--t0", type=float, default=0.0, help="Clock time (s) of the first video frame")
    ap.add_argument("--locations", required=True, help="CSV: t,lat,lng,alt")
    ap.add_argument("--orientations", required=True, help="CSV: t,roll,pitch,azimuth (degrees)")
    ap.add_argument("--fov", required=True, help="CSV: t,lat0,lng0,...,lat3,lng3")
    ap.add_argument("--out-dir", default=None, help="Directory for annotated speed images (PNG)")
    ap.add_argument("--max-frames", type=int, default=0)
    args = ap.parse_args()

    cfg = ScannerConfig.from_yaml(args.config)
    setup_logging(cfg.log_level, force=True)

    detector = None
    if cfg.detector.method != "none":
        detector = DnnObjectDetector.from_config(cfg.detector)

    pipeline = ScannerPipeline(cfg, object_detector=detector)
    frames = VideoFrameSource(args.video, t0=args.t0, max_frames=args.max_frames).frames()
    n = replay(
        pipeline,
        frames,
        LocationCSVSource(args.locations).samples(),
        OrientationCSVSource(args.orientations).samples(),
        FovCSVSource(args.fov).samples(),
        results_path=Path(cfg.results_file),
        out_dir=Path(args.out_dir) if args.out_dir else None,
    )
    log.info("Replay finished", extra={"extra": {"frames": n, "coverage_deg2": pipeline.sweeper.area}})


if __name__ == "__main__":
    main()
