# core/pipeline.py
from __future__ import annotations
from typing import List, Optional, Tuple
import logging

from core.config import Settings
from core.models import (
    DetectedFaceSignals,
    DetectorInputFrame,
    EmotionHistoryEntry,
    FrameAnalysis,
    LightingAssessment,
    RawFrame,
)
from core.frame_decoder import to_detector_input
from core.lighting import estimate_lighting
from core.classifier import classify_face

logger = logging.getLogger(__name__)

def prepare_frame(
    frame: RawFrame,
    sensor_orientation: int,
    settings: Settings,
) -> Tuple[DetectorInputFrame, LightingAssessment]:
    """
    Relayout the camera frame for the detector and estimate lighting from its luma plane.
    """
    detector_input = to_detector_input(frame, sensor_orientation)
    lighting = estimate_lighting(frame.y, stride=settings.LUMA_SAMPLE_STRIDE)
    logger.debug(f"[pipeline] lighting={lighting.status} brightness={lighting.brightness:.3f}")
    return detector_input, lighting

def summarize(faces: List[DetectedFaceSignals], lighting: LightingAssessment) -> FrameAnalysis:
    """
    Combine detector output (first face only) and lighting into a per-frame analysis.
    """
    mood, condition = classify_face(faces, lighting)
    return FrameAnalysis(
        face_detected=bool(faces),
        faces_count=len(faces),
        mood=mood,
        condition=condition,
        lighting=lighting,
    )

def history_entry(analysis: FrameAnalysis) -> Optional[EmotionHistoryEntry]:
    """History record for a frame with a face; None otherwise."""
    if not analysis.face_detected:
        return None
    return EmotionHistoryEntry(
        mood=analysis.mood.label,
        confidence=analysis.mood.confidence,
        condition=analysis.condition.label if analysis.condition else "",
        lighting_status=analysis.lighting.status,
        timestamp=analysis.ts,
    )
