"""
Per-stream processing session.

Owns every piece of mutable per-stream state so callers pass the session around
explicitly instead of sharing module globals:
- busy flag (single-flight: at most one frame in analysis, extra frames dropped)
- last accepted time (minimum interval between accepted frames)
- lifecycle state (permission denied / camera unavailable / closed)
- counters and the last analysis
"""
from __future__ import annotations
import logging
import time
from typing import Callable, Optional

from core.config import Settings
from core.detector import FaceDetector
from core.history import HistoryStore
from core.models import FrameAnalysis, RawFrame, SessionState, SessionStatus
from core.pipeline import prepare_frame, summarize, history_entry

logger = logging.getLogger(__name__)

PERMISSION_DENIED_MESSAGE = "Permission Denied"
CAMERA_UNAVAILABLE_MESSAGE = "Camera not initialized"


class AnalysisSession:
    """Single-flight, throttled frame analysis for one camera stream."""
    def __init__(self, settings: Settings,
                 history: Optional[HistoryStore] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.s = settings
        self.history = history
        self._clock = clock
        self._busy = False
        self._last_accepted_t: Optional[float] = None
        self._state: SessionState = "idle"
        self._message: Optional[str] = None
        self._accepted = 0
        self._dropped = 0
        self._failed = 0
        self._last_analysis: Optional[FrameAnalysis] = None

    # ---- lifecycle ----
    def open(self, permission_granted: bool) -> SessionStatus:
        """Start accepting frames. A denied permission is final for this session."""
        if self._state in ("closed", "permission_denied"):
            return self.status()
        if not permission_granted:
            self._state = "permission_denied"
            self._message = PERMISSION_DENIED_MESSAGE
            logger.warning("[session] camera permission denied")
        else:
            self._state = "running"
            self._message = None
        return self.status()

    def mark_camera_unavailable(self, reason: str = "") -> None:
        if self._state in ("closed", "permission_denied"):
            return
        self._state = "camera_unavailable"
        self._message = CAMERA_UNAVAILABLE_MESSAGE
        logger.error(f"[session] camera unavailable: {reason}")

    def reset_camera(self) -> None:
        """Manual retry after a camera failure (e.g. switching device)."""
        if self._state == "camera_unavailable":
            self._state = "running"
            self._message = None

    def close(self) -> None:
        """Tear down; results of an in-flight analysis are discarded."""
        self._state = "closed"

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def state(self) -> SessionState:
        return self._state

    def status(self) -> SessionStatus:
        return SessionStatus(
            state=self._state,
            message=self._message,
            frames_accepted=self._accepted,
            frames_dropped=self._dropped,
            frames_failed=self._failed,
            last_analysis=self._last_analysis,
        )

    # ---- gating ----
    def _accept(self) -> bool:
        if self._state != "running" or self._busy:
            return False
        now = self._clock()
        if self._last_accepted_t is not None and (now - self._last_accepted_t) < self.s.MIN_FRAME_INTERVAL:
            return False
        self._busy = True
        self._last_accepted_t = now
        return True

    async def process_frame(self, frame: RawFrame, sensor_orientation: int,
                            detector: FaceDetector) -> Optional[FrameAnalysis]:
        """
        Analyze one frame if the gate admits it.

        Returns the analysis, or None when the frame was dropped, failed, or the
        session was closed while the detector was running.
        """
        if not self._accept():
            self._dropped += 1
            return None
        self._accepted += 1

        try:
            detector_input, lighting = prepare_frame(frame, sensor_orientation, self.s)
            faces = await detector.process_image(detector_input)
            if self._state == "closed":
                logger.debug("[session] closed during analysis; discarding result")
                return None

            analysis = summarize(list(faces or []), lighting)
            self._last_analysis = analysis
            logger.info(f"[session] mood={analysis.mood.label} conf={analysis.mood.confidence:.2f} "
                        f"condition={analysis.condition.label if analysis.condition else None} "
                        f"lighting={lighting.status}")

            entry = history_entry(analysis)
            if entry is not None and self.history is not None:
                try:
                    self.history.append(entry)
                except OSError:
                    logger.exception("[session] history append failed")
            return analysis
        except Exception:
            self._failed += 1
            logger.exception("[session] frame analysis failed; skipping frame")
            return None
        finally:
            self._busy = False
