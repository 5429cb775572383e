"""
Configuration for the frame analysis service.
"""
from pydantic import BaseModel
import os

class Settings(BaseModel):
    """
    Runtime settings with environment-variable overrides.
    """
    CAMERA_INDEX: int = int(os.getenv("CAMERA_INDEX", "0"))
    SENSOR_ORIENTATION: int = int(os.getenv("SENSOR_ORIENTATION", "0"))
    CAMERA_PERMISSION_GRANTED: bool = os.getenv("CAMERA_PERMISSION_GRANTED", "1").strip().lower() not in ("0", "false", "no")
    MAX_CAMERAS: int = int(os.getenv("MAX_CAMERAS", "4"))

    # seconds between accepted frames
    MIN_FRAME_INTERVAL: float = float(os.getenv("MIN_FRAME_INTERVAL", "0.1"))
    LUMA_SAMPLE_STRIDE: int = int(os.getenv("LUMA_SAMPLE_STRIDE", "10"))

    FACE_LANDMARKER_MODEL: str = os.getenv("FACE_LANDMARKER_MODEL", "models/face_landmarker.task")
    MAX_FACES: int = int(os.getenv("MAX_FACES", "1"))

    HISTORY_PATH: str = os.getenv("HISTORY_PATH", "data/emotion_history.json")
    HISTORY_KEY: str = os.getenv("HISTORY_KEY", "emotion_history")
    HISTORY_LIMIT: int = int(os.getenv("HISTORY_LIMIT", "100"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    def __init__(self, **data):
        super().__init__(**data)
        # Normalize LOG_LEVEL: strip comments/extra words, upper-case, validate
        level = (self.LOG_LEVEL or "INFO").strip().split()[0].upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            level = "INFO"
        object.__setattr__(self, "LOG_LEVEL", level)
        object.__setattr__(self, "LUMA_SAMPLE_STRIDE", max(1, int(self.LUMA_SAMPLE_STRIDE)))
        object.__setattr__(self, "MIN_FRAME_INTERVAL", max(0.0, float(self.MIN_FRAME_INTERVAL)))
