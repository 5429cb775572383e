"""
Pydantic data models for frames, detector signals and analysis results.
"""
from __future__ import annotations
from datetime import datetime, timezone
from pydantic import BaseModel, Field
from typing import List, Optional, Literal

# Yaw / roll magnitude (degrees) beyond which the head counts as turned away
HEAD_TURN_LIMIT = 20.0

LightingStatus = Literal["Low Light", "Good Lighting", "Too Bright"]
Rotation = Literal[0, 90, 180, 270]
SessionState = Literal["idle", "running", "permission_denied", "camera_unavailable", "closed"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# camera side

class Plane(BaseModel):
    data: bytes
    bytes_per_row: int = 0

class RawFrame(BaseModel):
    """One camera capture: Y, U, V planes (4:2:0) in that order."""
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    planes: List[Plane] = Field(min_length=3, max_length=3)

    @property
    def y(self) -> bytes:
        return self.planes[0].data

    @property
    def u(self) -> bytes:
        return self.planes[1].data

    @property
    def v(self) -> bytes:
        return self.planes[2].data

class DetectorInputFrame(BaseModel):
    data: bytes
    width: int
    height: int
    rotation: Rotation = 0
    format: Literal["nv21"] = "nv21"
    bytes_per_row: int = 0

class CameraDescription(BaseModel):
    index: int
    name: str = ""
    lens_direction: Literal["front", "back", "external"] = "external"
    sensor_orientation: int = 0


# detector side

class DetectedFaceSignals(BaseModel):
    """Per-face output of the landmark detector. Every field may be unknown."""
    smiling_probability: Optional[float] = Field(None, ge=0.0, le=1.0)
    left_eye_open_probability: Optional[float] = Field(None, ge=0.0, le=1.0)
    right_eye_open_probability: Optional[float] = Field(None, ge=0.0, le=1.0)
    head_euler_angle_y: Optional[float] = None
    head_euler_angle_z: Optional[float] = None

    @property
    def eye_openness(self) -> Optional[float]:
        if self.left_eye_open_probability is None or self.right_eye_open_probability is None:
            return None
        return (self.left_eye_open_probability + self.right_eye_open_probability) / 2.0

    @property
    def head_turned(self) -> bool:
        yaw = self.head_euler_angle_y
        roll = self.head_euler_angle_z
        return (yaw is not None and abs(yaw) > HEAD_TURN_LIMIT) or \
               (roll is not None and abs(roll) > HEAD_TURN_LIMIT)


# analysis results

class LightingAssessment(BaseModel):
    status: LightingStatus
    brightness: float = Field(ge=0.0, le=1.0)
    contrast: float = Field(ge=0.0, le=1.0)
    is_low_light: bool = False

class MoodResult(BaseModel):
    label: str
    confidence: float = Field(ge=0.0, le=1.0)

class ConditionResult(BaseModel):
    label: str
    confidence: float = Field(ge=0.0, le=1.0)

class FrameAnalysis(BaseModel):
    ts: datetime = Field(default_factory=_utcnow)
    face_detected: bool
    faces_count: int = 0
    mood: MoodResult
    condition: Optional[ConditionResult] = None
    lighting: LightingAssessment

class EmotionHistoryEntry(BaseModel):
    mood: str
    confidence: float = Field(ge=0.0, le=1.0)
    condition: str
    lighting_status: LightingStatus
    timestamp: datetime = Field(default_factory=_utcnow)


# session / live status

class SessionStatus(BaseModel):
    state: SessionState
    message: Optional[str] = None
    frames_accepted: int = 0
    frames_dropped: int = 0
    frames_failed: int = 0
    last_analysis: Optional[FrameAnalysis] = None

class LiveStatus(BaseModel):
    running: bool
    started_at: float | None = None
    camera: CameraDescription | None = None
    session: SessionStatus | None = None
