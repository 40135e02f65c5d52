from __future__ import annotations

"""
Object-detection network collaborator backed by cv2.dnn.

Supported models:
- YOLOv3 / YOLOv3-tiny (Darknet .cfg + .weights), person class 0
- MobileNet-SSD (Caffe .prototxt + .caffemodel), person class 15
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Sequence, Tuple

import cv2
import numpy as np

from common.config import DetectorConfig
from common.logging_setup import get_logger
from common.types import BoundingBox, Detection


log = get_logger(__name__)

YOLO_PERSON = 0
SSD_PERSON = 15


class DetectionMethod(str, Enum):
    YOLO_V3 = "yolo_v3"
    YOLO_TINY = "yolo_tiny"
    MN_SSD = "mn_ssd"


def _nms(detections: List[Detection], conf: float, nms: float) -> List[Detection]:
    if not detections:
        return []
    boxes = [list(d.box.as_tuple()) for d in detections]
    scores = [float(d.confidence) for d in detections]
    keep = cv2.dnn.NMSBoxes(boxes, scores, conf, nms)
    return [detections[int(k)] for k in np.array(keep).reshape(-1)]


def yolo_postprocess(
    outs: Sequence[np.ndarray],
    width: int,
    height: int,
    conf: float,
    nms: float = 0.4,
    class_id: int = YOLO_PERSON,
) -> List[Detection]:
    """
    Decode YOLO output layers. Each row is (cx, cy, w, h, objectness, class
    scores...) with coordinates relative to the input size.
    """
    dets: List[Detection] = []
    for out in outs:
        arr = np.asarray(out, dtype=np.float32)
        for row in arr.reshape(-1, arr.shape[-1]):
            scores = row[5:]
            if scores.size == 0:
                continue
            best = int(np.argmax(scores))
            score = float(scores[best])
            if score > conf and best == class_id:
                w = int(row[2] * width)
                h = int(row[3] * height)
                left = int(row[0] * width) - w // 2
                top = int(row[1] * height) - h // 2
                dets.append(Detection(BoundingBox(left, top, w, h), score, best))
    return _nms(dets, conf, nms)


def ssd_postprocess(
    prob: np.ndarray,
    width: int,
    height: int,
    conf: float,
    class_id: int = SSD_PERSON,
) -> List[Detection]:
    """
    Decode an SSD output blob of shape (1, 1, N, 7): (image_id, class, score,
    x0, y0, x1, y1) with corners relative to the input size.
    """
    rows = np.asarray(prob).reshape(-1, 7)
    dets: List[Detection] = []
    for r in rows:
        idx = int(r[1])
        score = float(r[2])
        if score > conf and idx == class_id:
            x0 = int(r[3] * width)
            y0 = int(r[4] * height)
            x1 = int(r[5] * width)
            y1 = int(r[6] * height)
            dets.append(Detection(BoundingBox(x0, y0, x1 - x0, y1 - y0), score, idx))
    return dets


@dataclass
class DnnObjectDetector:
    net: cv2.dnn.Net = field(repr=False)
    method: DetectionMethod
    confidence: float = 0.5
    nms: float = 0.4

    @classmethod
    def from_darknet(cls, cfg: str, weights: str, *, tiny: bool = False, confidence: float = 0.5, nms: float = 0.4) -> "DnnObjectDetector":
        for p in (cfg, weights):
            if not Path(p).exists():
                raise FileNotFoundError(f"Model file not found: {p}")
        net = cv2.dnn.readNetFromDarknet(cfg, weights)
        net.setPreferableBackend(cv2.dnn.DNN_BACKEND_OPENCV)
        net.setPreferableTarget(cv2.dnn.DNN_TARGET_CPU)
        method = DetectionMethod.YOLO_TINY if tiny else DetectionMethod.YOLO_V3
        return cls(net=net, method=method, confidence=confidence, nms=nms)

    @classmethod
    def from_caffe(cls, prototxt: str, caffemodel: str, *, confidence: float = 0.5, nms: float = 0.4) -> "DnnObjectDetector":
        for p in (prototxt, caffemodel):
            if not Path(p).exists():
                raise FileNotFoundError(f"Model file not found: {p}")
        net = cv2.dnn.readNetFromCaffe(prototxt, caffemodel)
        return cls(net=net, method=DetectionMethod.MN_SSD, confidence=confidence, nms=nms)

    @classmethod
    def from_config(cls, cfg: DetectorConfig) -> "DnnObjectDetector":
        if not cfg.model or not cfg.weights:
            raise ValueError("detector.model and detector.weights are required")
        method = DetectionMethod(cfg.method)
        if method == DetectionMethod.MN_SSD:
            return cls.from_caffe(cfg.model, cfg.weights, confidence=cfg.confidence, nms=cfg.nms)
        return cls.from_darknet(cfg.model, cfg.weights, tiny=method == DetectionMethod.YOLO_TINY,
                                confidence=cfg.confidence, nms=cfg.nms)

    def detect(self, frame: np.ndarray) -> List[Detection]:
        H, W = frame.shape[:2]
        if self.method == DetectionMethod.MN_SSD:
            blob = cv2.dnn.blobFromImage(frame, 0.007843, (300, 300), (127.5, 127.5, 127.5), False)
            self.net.setInput(blob)
            prob = self.net.forward()
            dets = ssd_postprocess(prob, W, H, self.confidence)
        else:
            blob = cv2.dnn.blobFromImage(frame, 1 / 255.0, (416, 416), (0, 0, 0), True, False)
            self.net.setInput(blob)
            outs = self.net.forward(self.net.getUnconnectedOutLayersNames())
            dets = yolo_postprocess(outs, W, H, self.confidence, self.nms)
        log.debug("DNN detections", extra={"extra": {"method": self.method.value, "count": len(dets)}})
        return dets


def draw_detections(dst: np.ndarray, detections: Sequence[Detection], color: Tuple[int, int, int] = (0, 0, 255)) -> np.ndarray:
    """Draw detection boxes on a copy of `dst` for the display layer."""
    out = dst.copy()
    if out.ndim == 2:
        out = cv2.cvtColor(out, cv2.COLOR_GRAY2BGR)
    for d in detections:
        b = d.box
        cv2.rectangle(out, (b.x, b.y), (b.x + b.w, b.y + b.h), color, 2, 1)
    return out
