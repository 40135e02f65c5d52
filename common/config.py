from __future__ import annotations

"""
Scanner configuration.

Loaded from YAML (see config/params.yaml). Every key is optional; missing keys
fall back to the dataclass defaults so a partial file is always valid.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


@dataclass
class SyncConfig:
    location_buffer: int = 10     # GNSS samples kept for nearest-time matching
    orientation_buffer: int = 20  # IMU samples kept for nearest-time matching

    @classmethod
    def from_dict(cls, D: Dict[str, Any]) -> "SyncConfig":
        return cls(
            location_buffer=int(D.get("location_buffer", cls.location_buffer)),
            orientation_buffer=int(D.get("orientation_buffer", cls.orientation_buffer)),
        )


@dataclass
class MotionConfig:
    horizontal_view_angle_deg: float = 60.0
    max_object_speed: float = 40.0     # m/s mapped to full intensity (255)
    min_detection_speed: float = 3.0   # m/s
    object_size_low: float = 0.0002    # contour area / image area, exclusive
    object_size_up: float = 0.05
    image_width: Optional[int] = None  # explicit calibration; derived from first frame if None
    legacy_focal_from_height: bool = False

    @classmethod
    def from_dict(cls, D: Dict[str, Any]) -> "MotionConfig":
        width = D.get("image_width")
        return cls(
            horizontal_view_angle_deg=float(D.get("horizontal_view_angle_deg", cls.horizontal_view_angle_deg)),
            max_object_speed=float(D.get("max_object_speed", cls.max_object_speed)),
            min_detection_speed=float(D.get("min_detection_speed", cls.min_detection_speed)),
            object_size_low=float(D.get("object_size_low", cls.object_size_low)),
            object_size_up=float(D.get("object_size_up", cls.object_size_up)),
            image_width=None if width is None else int(width),
            legacy_focal_from_height=bool(D.get("legacy_focal_from_height", cls.legacy_focal_from_height)),
        )


@dataclass
class CoverageConfig:
    weld_epsilon_deg: float = 0.00002
    keep_disjoint: bool = False  # False: legacy single polygon, disjoint growth dropped

    @classmethod
    def from_dict(cls, D: Dict[str, Any]) -> "CoverageConfig":
        return cls(
            weld_epsilon_deg=float(D.get("weld_epsilon_deg", cls.weld_epsilon_deg)),
            keep_disjoint=bool(D.get("keep_disjoint", cls.keep_disjoint)),
        )


@dataclass
class DetectorConfig:
    method: str = "none"          # "none" | "yolo_v3" | "yolo_tiny" | "mn_ssd"
    model: Optional[str] = None   # .cfg (darknet) or .prototxt (caffe)
    weights: Optional[str] = None  # .weights (darknet) or .caffemodel (caffe)
    confidence: float = 0.5
    nms: float = 0.4

    @classmethod
    def from_dict(cls, D: Dict[str, Any]) -> "DetectorConfig":
        return cls(
            method=str(D.get("method", cls.method)).lower(),
            model=D.get("model"),
            weights=D.get("weights"),
            confidence=float(D.get("confidence", cls.confidence)),
            nms=float(D.get("nms", cls.nms)),
        )


@dataclass
class ScannerConfig:
    sync: SyncConfig = field(default_factory=SyncConfig)
    motion: MotionConfig = field(default_factory=MotionConfig)
    coverage: CoverageConfig = field(default_factory=CoverageConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    log_level: str = "INFO"
    results_file: str = "logs/scanner.jsonl"

    @classmethod
    def from_dict(cls, P: Dict[str, Any]) -> "ScannerConfig":
        logging_cfg = P.get("logging", {}) or {}
        return cls(
            sync=SyncConfig.from_dict(P.get("sync", {}) or {}),
            motion=MotionConfig.from_dict(P.get("motion", {}) or {}),
            coverage=CoverageConfig.from_dict(P.get("coverage", {}) or {}),
            detector=DetectorConfig.from_dict(P.get("detector", {}) or {}),
            log_level=str(logging_cfg.get("level", "INFO")),
            results_file=str(logging_cfg.get("results_file", "logs/scanner.jsonl")),
        )

    @classmethod
    def from_yaml(cls, path: str) -> "ScannerConfig":
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"Config not found: {path}")
        with p.open("r") as f:
            P = yaml.safe_load(f) or {}
        return cls.from_dict(P)
