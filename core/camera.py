"""
OpenCV camera source producing planar YUV420 RawFrames.
"""
from __future__ import annotations
import logging
from typing import List, Optional

import cv2
import numpy as np

from core.models import CameraDescription, Plane, RawFrame

logger = logging.getLogger(__name__)


def bgr_to_raw_frame(frame: np.ndarray) -> RawFrame:
    """
    Convert a BGR image to a planar I420 RawFrame.
    Odd widths/heights are cropped by one pixel (4:2:0 needs even sizes).
    """
    h, w = frame.shape[:2]
    h -= h % 2
    w -= w % 2
    if w <= 0 or h <= 0:
        raise ValueError(f"Frame too small: {frame.shape[1]}x{frame.shape[0]}")
    frame = np.ascontiguousarray(frame[:h, :w])
    i420 = cv2.cvtColor(frame, cv2.COLOR_BGR2YUV_I420).reshape(-1)
    y_len = w * h
    c_len = y_len // 4
    return RawFrame(
        width=w,
        height=h,
        planes=[
            Plane(data=i420[:y_len].tobytes(), bytes_per_row=w),
            Plane(data=i420[y_len:y_len + c_len].tobytes(), bytes_per_row=w // 2),
            Plane(data=i420[y_len + c_len:y_len + 2 * c_len].tobytes(), bytes_per_row=w // 2),
        ],
    )


def list_cameras(max_devices: int = 4, sensor_orientation: int = 0) -> List[CameraDescription]:
    """Probe device indices [0, max_devices) and describe the ones that open."""
    found: List[CameraDescription] = []
    for idx in range(max(0, int(max_devices))):
        cap = cv2.VideoCapture(idx)
        try:
            if cap.isOpened():
                found.append(CameraDescription(
                    index=idx,
                    name=f"camera {idx}",
                    lens_direction="front" if idx == 0 else "external",
                    sensor_orientation=sensor_orientation,
                ))
        finally:
            cap.release()
    logger.debug(f"[camera] enumerated {len(found)} device(s)")
    return found


class OpenCVCameraSource:
    """Start/stop streaming from one cv2.VideoCapture device."""
    def __init__(self, description: CameraDescription):
        self.description = description
        self._cap = None

    @property
    def sensor_orientation(self) -> int:
        return self.description.sensor_orientation

    @property
    def is_open(self) -> bool:
        return self._cap is not None

    def start(self) -> None:
        if self._cap is not None:
            return
        cap = cv2.VideoCapture(self.description.index)
        if not cap.isOpened():
            cap.release()
            raise RuntimeError(f"Could not open camera index {self.description.index}")
        self._cap = cap
        logger.info(f"[camera] started index={self.description.index}")

    def read(self) -> Optional[RawFrame]:
        if self._cap is None:
            return None
        ok, frame = self._cap.read()
        if not ok or frame is None:
            return None
        return bgr_to_raw_frame(frame)

    def stop(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info(f"[camera] stopped index={self.description.index}")
