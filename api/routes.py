"""
REST endpoints for frame analysis, history and live control.
"""
from typing import List, Optional
import logging

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Base64Bytes, Field

from core.config import Settings
from core.models import (
    CameraDescription,
    ConditionResult,
    DetectedFaceSignals,
    EmotionHistoryEntry,
    FrameAnalysis,
    LightingAssessment,
    LiveStatus,
    MoodResult,
    Plane,
    RawFrame,
)
from core.classifier import classify_face
from core.detector import MediaPipeFaceDetector
from core.history import HistoryStore
from core.lighting import estimate_lighting
from core.live import LiveAnalyzer
from core.pipeline import prepare_frame, summarize, history_entry


router = APIRouter()
settings = Settings()
history = HistoryStore.from_settings(settings)
detector: Optional[MediaPipeFaceDetector] = None
live_analyzer = LiveAnalyzer(settings, history=history)
logger = logging.getLogger(__name__)


class FrameRequest(BaseModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    y: Base64Bytes
    u: Base64Bytes
    v: Base64Bytes
    bytes_per_row: Optional[int] = None
    sensor_orientation: int = 0
    # detector output computed on the client; when omitted the server detector runs
    faces: Optional[List[DetectedFaceSignals]] = None
    record: bool = True

class LumaRequest(BaseModel):
    y: Base64Bytes

class FaceRequest(BaseModel):
    face: Optional[DetectedFaceSignals] = None
    lighting: LightingAssessment

class FaceResponse(BaseModel):
    mood: MoodResult
    condition: Optional[ConditionResult] = None


def _get_detector() -> MediaPipeFaceDetector:
    global detector
    if detector is None:
        detector = MediaPipeFaceDetector(settings)
    return detector


@router.post("/analyze/frame", response_model=FrameAnalysis)
async def analyze_frame(req: FrameRequest):
    """
    Analyze one planar YUV420 frame: NV21 relayout, lighting, detection (unless
    `faces` is given), mood/condition. Frames with a face are added to history
    when `record` is true.
    """
    logger.debug(f"[api] /analyze/frame {req.width}x{req.height} faces_given={req.faces is not None}")
    frame = RawFrame(
        width=req.width,
        height=req.height,
        planes=[
            Plane(data=req.y, bytes_per_row=req.bytes_per_row or req.width),
            Plane(data=req.u, bytes_per_row=req.width // 2),
            Plane(data=req.v, bytes_per_row=req.width // 2),
        ],
    )
    try:
        detector_input, lighting = prepare_frame(frame, req.sensor_orientation, settings)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    faces = req.faces
    if faces is None:
        try:
            faces = await _get_detector().process_image(detector_input)
        except FileNotFoundError as e:
            logger.exception("[api] detector model missing")
            raise HTTPException(status_code=503, detail=str(e))
        except Exception as e:
            logger.exception("[api] face detection failed")
            raise HTTPException(status_code=500, detail=str(e))

    analysis = summarize(faces, lighting)
    entry = history_entry(analysis)
    if req.record and entry is not None:
        try:
            history.append(entry)
        except OSError:
            logger.exception("[api] history append failed")
    return analysis

@router.post("/analyze/lighting", response_model=LightingAssessment)
async def analyze_lighting(req: LumaRequest):
    return estimate_lighting(req.y, stride=settings.LUMA_SAMPLE_STRIDE)

@router.post("/analyze/face", response_model=FaceResponse)
async def analyze_face(req: FaceRequest):
    """Classify detector signals for one face under the given lighting."""
    faces = [req.face] if req.face is not None else []
    mood, condition = classify_face(faces, req.lighting)
    return FaceResponse(mood=mood, condition=condition)

@router.get("/history", response_model=List[EmotionHistoryEntry])
async def get_history():
    return history.load()

@router.delete("/history")
async def clear_history():
    history.clear()
    return {"status": "cleared"}

@router.get("/cameras", response_model=List[CameraDescription])
async def cameras():
    return live_analyzer.cameras()

@router.post("/live/start")
async def live_start():
    if live_analyzer.running:
        return {"status": "already_running"}
    live_analyzer.start()
    return {"status": "started"}

@router.get("/live/status", response_model=LiveStatus)
async def live_status():
    return live_analyzer.status()

@router.post("/live/switch-camera")
async def live_switch_camera():
    if not live_analyzer.running:
        return {"status": "not_running"}
    live_analyzer.switch_camera()
    return {"status": "switching"}

@router.post("/live/stop")
def live_stop():
    if not live_analyzer.running:
        return {"status": "not_running"}
    live_analyzer.stop()
    return {"status": "stopped"}
