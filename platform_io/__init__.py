"""
Platform I/O (replay)

Provides:
- VideoFrameSource: camera frames from a recorded flight video, stamped with
  their capture time
- LocationCSVSource / OrientationCSVSource: telemetry replay from CSV
- FovCSVSource: per-frame field-of-view corners from the external projection
- merge_by_time: interleave the streams in time order for a single-threaded
  replay loop

Usage examples:
    from platform_io.camera import VideoFrameSource
    from platform_io.telemetry import LocationCSVSource, OrientationCSVSource, merge_by_time
"""
