"""
Sensor synchronization

Provides:
- SampleBuffer: bounded FIFO of timestamped samples with nearest-time lookup
- SensorSync: location / orientation ring buffers fused with camera frames
  into FusedImageRecord and FusedImuRecord

Usage:
    from sensor_sync import SensorSync
    sync = SensorSync(location_capacity=10, orientation_capacity=20)
    sync.ingest_location(lat, lng, alt, t)
    sync.ingest_orientation(roll_deg, pitch_deg, azimuth_deg, t)
    sync.set_frame(image, t)
    rec = sync.fuse_image()
"""
from .buffers import SampleBuffer
from .sync import SensorSync

__all__ = ["SampleBuffer", "SensorSync"]
