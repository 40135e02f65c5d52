from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Tuple

import cv2
import numpy as np

from common.types import ImageFrame


@dataclass
class VideoFrameSource:
    """
    Replay frames from a video file.

    Args:
        path: path to video file
        t0: clock time (s) of the first frame, so frame times line up with telemetry
        target_fps: if set, throttles output to this FPS (sleeping between frames)
        resize: (width, height) to resize frames, or None to keep native
        max_frames: stop after this many frames (0 = until EOF)
    """
    path: str
    t0: float = 0.0
    target_fps: Optional[float] = None
    resize: Optional[Tuple[int, int]] = None
    max_frames: int = 0

    def frames(self) -> Iterator[ImageFrame]:
        if not Path(self.path).exists():
            raise FileNotFoundError(f"Video not found: {self.path}")
        cap = cv2.VideoCapture(self.path)
        if not cap.isOpened():
            raise RuntimeError(f"Cannot open video: {self.path}")

        fps = cap.get(cv2.CAP_PROP_FPS) or 0.0
        dt_target = None if not self.target_fps or self.target_fps <= 0 else (1.0 / self.target_fps)
        n = 0
        try:
            while True:
                t_start = time.perf_counter()
                ok, img = cap.read()
                if not ok:
                    break
                if self.resize:
                    w, h = self.resize
                    img = cv2.resize(img, (w, h), interpolation=cv2.INTER_AREA)

                pos_ms = cap.get(cv2.CAP_PROP_POS_MSEC)
                t = self.t0 + (pos_ms / 1000.0 if pos_ms > 0 else (n / fps if fps > 0 else float(n)))
                yield ImageFrame(t=t, frame=img)
                n += 1
                if self.max_frames and n >= self.max_frames:
                    break

                if dt_target:
                    sleep_s = max(0.0, dt_target - (time.perf_counter() - t_start))
                    if sleep_s > 0:
                        time.sleep(sleep_s)
        finally:
            cap.release()


def shifted_frames(base: np.ndarray, shift_px: Tuple[int, int], steps: int, dt: float = 0.1) -> Iterator[ImageFrame]:
    """
    Synthetic camera: a bright patch translated by `shift_px` per frame over a
    static textured background. Handy for exercising motion detection offline.
    """
    H, W = base.shape[:2]
    dx, dy = shift_px
    size = max(8, min(H, W) // 8)
    for k in range(steps):
        img = base.copy()
        x = (10 + k * dx) % max(1, W - size)
        y = (10 + k * dy) % max(1, H - size)
        img[y:y + size, x:x + size] = 255
        yield ImageFrame(t=k * dt, frame=img)
