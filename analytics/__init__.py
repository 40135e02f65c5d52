"""
Scanner analytics: host integration

Wires SensorSync, GroundSpeedMotionDetector and CoverageSweeper into a single
frame-paced loop.

Entry point:
    python -m analytics.pipeline --config config/params.yaml --video flight.mp4 \
        --locations gps.csv --orientations imu.csv --fov fov.csv
"""
from .pipeline import FrameResult, ScannerPipeline

__all__ = ["FrameResult", "ScannerPipeline"]
