from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import cv2
import numpy as np


class OpticalFlow(Protocol):
    """(gray_prev, gray_curr) -> (H, W, 2) float displacement in pixels."""

    def __call__(self, prev_gray: np.ndarray, curr_gray: np.ndarray) -> np.ndarray:
        ...


@dataclass
class FarnebackFlow:
    """Gunnar Farneback dense optical flow (cv2.calcOpticalFlowFarneback)."""
    pyr_scale: float = 0.5
    levels: int = 3
    winsize: int = 15
    iterations: int = 3
    poly_n: int = 5
    poly_sigma: float = 1.2
    flags: int = 0

    def __call__(self, prev_gray: np.ndarray, curr_gray: np.ndarray) -> np.ndarray:
        if prev_gray.shape != curr_gray.shape:
            raise ValueError("optical flow frames must share one resolution")
        return cv2.calcOpticalFlowFarneback(
            prev_gray,
            curr_gray,
            None,
            self.pyr_scale,
            self.levels,
            self.winsize,
            self.iterations,
            self.poly_n,
            self.poly_sigma,
            self.flags,
        )
