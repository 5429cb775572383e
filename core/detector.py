"""
Face detector adapter (MediaPipe Face Landmarker, lazy-loaded).

The landmarker itself is an external capability; this module only converts the
NV21 detector frame into an RGB image and maps landmarker output to
DetectedFaceSignals:
  - smiling probability  = mean(mouthSmileLeft, mouthSmileRight)
  - eye open probability = 1 - eyeBlink{Left,Right}
  - yaw / roll (degrees) from the facial transformation matrix
Anything the landmarker does not report stays None.
"""
from __future__ import annotations
import asyncio
import logging
import math
import os
import threading
from typing import List, Optional, Protocol

import cv2
import numpy as np

from core.config import Settings
from core.models import DetectedFaceSignals, DetectorInputFrame

logger = logging.getLogger(__name__)

_ROTATE_CODES = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


class FaceDetector(Protocol):
    """Anything that turns a detector frame into per-face signals, asynchronously."""

    async def process_image(self, frame: DetectorInputFrame) -> List[DetectedFaceSignals]:
        ...

    def close(self) -> None:
        ...


def nv21_to_rgb(frame: DetectorInputFrame) -> np.ndarray:
    """Decode an NV21 frame to an upright RGB array (rotation applied)."""
    expected = frame.width * frame.height * 3 // 2
    if len(frame.data) < expected:
        raise ValueError(f"NV21 buffer too short: {len(frame.data)} < {expected}")
    yuv = np.frombuffer(frame.data, dtype=np.uint8, count=expected).reshape(frame.height * 3 // 2, frame.width)
    rgb = cv2.cvtColor(yuv, cv2.COLOR_YUV2RGB_NV21)
    code = _ROTATE_CODES.get(frame.rotation)
    if code is not None:
        rgb = cv2.rotate(rgb, code)
    return np.ascontiguousarray(rgb)


def _clamp01(x: float) -> float:
    return max(0.0, min(1.0, float(x)))


def _head_angles(matrix) -> tuple[Optional[float], Optional[float]]:
    if matrix is None:
        return None, None
    m = np.asarray(matrix, dtype=np.float64)
    if m.shape[0] < 3 or m.shape[1] < 3:
        return None, None
    r00, r10, r20 = m[0][0], m[1][0], m[2][0]
    yaw = math.degrees(math.atan2(-r20, math.sqrt(r00 * r00 + r10 * r10)))
    roll = math.degrees(math.atan2(r10, r00))
    return yaw, roll


def signals_from_result(result) -> List[DetectedFaceSignals]:
    """Map a FaceLandmarkerResult to one DetectedFaceSignals per detected face."""
    faces = getattr(result, "face_landmarks", None) or []
    blendshapes = getattr(result, "face_blendshapes", None) or []
    matrices = getattr(result, "facial_transformation_matrixes", None) or []

    out: List[DetectedFaceSignals] = []
    for i in range(len(faces)):
        scores = {}
        if i < len(blendshapes):
            scores = {c.category_name: float(c.score) for c in blendshapes[i] or []}

        smile = None
        if "mouthSmileLeft" in scores and "mouthSmileRight" in scores:
            smile = _clamp01((scores["mouthSmileLeft"] + scores["mouthSmileRight"]) / 2.0)
        left = _clamp01(1.0 - scores["eyeBlinkLeft"]) if "eyeBlinkLeft" in scores else None
        right = _clamp01(1.0 - scores["eyeBlinkRight"]) if "eyeBlinkRight" in scores else None
        yaw, roll = _head_angles(matrices[i] if i < len(matrices) else None)

        out.append(DetectedFaceSignals(
            smiling_probability=smile,
            left_eye_open_probability=left,
            right_eye_open_probability=right,
            head_euler_angle_y=yaw,
            head_euler_angle_z=roll,
        ))
    return out


class MediaPipeFaceDetector:
    """FaceDetector backed by a MediaPipe Face Landmarker task (IMAGE mode)."""
    def __init__(self, settings: Settings, landmarker=None):
        self.s = settings
        self._landmarker = landmarker
        # one Face Landmarker instance; creation and inference are not reentrant
        self._lock = threading.Lock()

    def _ensure_landmarker(self):
        if self._landmarker is None:
            model_path = self.s.FACE_LANDMARKER_MODEL
            if not os.path.exists(model_path):
                raise FileNotFoundError(
                    f"Face landmarker model not found at {model_path}. "
                    "Download face_landmarker.task from MediaPipe and set FACE_LANDMARKER_MODEL."
                )
            # Lazy import to keep module import cheap and to allow monkeypatching in tests
            import mediapipe as mp
            vision = mp.tasks.vision
            options = vision.FaceLandmarkerOptions(
                base_options=mp.tasks.BaseOptions(model_asset_path=model_path),
                running_mode=vision.RunningMode.IMAGE,
                num_faces=max(1, self.s.MAX_FACES),
                output_face_blendshapes=True,
                output_facial_transformation_matrixes=True,
            )
            self._landmarker = vision.FaceLandmarker.create_from_options(options)
            logger.info(f"[detector] face landmarker loaded from {model_path}")
        return self._landmarker

    def detect(self, frame: DetectorInputFrame) -> List[DetectedFaceSignals]:
        """Blocking detection on one frame."""
        with self._lock:
            landmarker = self._ensure_landmarker()
            import mediapipe as mp
            rgb = nv21_to_rgb(frame)
            result = landmarker.detect(mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb))
        faces = signals_from_result(result)
        logger.debug(f"[detector] faces={len(faces)}")
        return faces

    async def process_image(self, frame: DetectorInputFrame) -> List[DetectedFaceSignals]:
        return await asyncio.to_thread(self.detect, frame)

    def close(self) -> None:
        with self._lock:
            if self._landmarker is not None:
                try:
                    self._landmarker.close()
                finally:
                    self._landmarker = None
