# core/live.py
"""
Live (real-time) analysis.

Runs a background thread hosting an asyncio loop that:
- asks the permission gate once (denial is final for the run)
- opens the selected camera (failure -> camera unavailable, no retry loop)
- reads frames and hands each to the AnalysisSession without waiting, so frames
  arriving while one is being analyzed are dropped by the session
- switches camera on request (the manual retry after a camera failure)
"""

from __future__ import annotations

import asyncio
import threading
import time
import logging
from typing import Callable, List, Optional, Set

from core.camera import OpenCVCameraSource, list_cameras
from core.config import Settings
from core.detector import FaceDetector, MediaPipeFaceDetector
from core.history import HistoryStore
from core.models import CameraDescription, LiveStatus
from core.session import AnalysisSession

logger = logging.getLogger(__name__)

IDLE_SLEEP_SEC = 0.05          # back-off when no frame / no camera


class LiveAnalyzer:
    """Camera -> session loop with start / stop / status / switch_camera."""
    def __init__(self, settings: Settings,
                 detector: Optional[FaceDetector] = None,
                 history: Optional[HistoryStore] = None,
                 camera_factory: Callable[[CameraDescription], object] = OpenCVCameraSource,
                 permission: Optional[Callable[[], bool]] = None,
                 cameras: Optional[List[CameraDescription]] = None):
        self.s = settings
        self._detector = detector
        self._owns_detector = detector is None
        self._history = history
        self._camera_factory = camera_factory
        self._permission = permission or (lambda: settings.CAMERA_PERMISSION_GRANTED)
        self._cameras = cameras
        self._camera_pos = 0
        self._camera = None
        self._switch_requested = threading.Event()
        self._run = False
        self._thread: Optional[threading.Thread] = None
        self._started_at: Optional[float] = None
        self.session: Optional[AnalysisSession] = None

    # ---- lifecycle ----
    def start(self):
        if self._run:
            return
        self._switch_requested.clear()
        self._run = True
        self._started_at = time.time()
        self.session = AnalysisSession(self.s, history=self._history)
        self._thread = threading.Thread(target=self._thread_main, daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0):
        self._run = False
        if self.session is not None:
            self.session.close()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def switch_camera(self):
        """Move to the next camera; also clears a camera failure."""
        self._switch_requested.set()

    @property
    def running(self) -> bool:
        return self._run

    def status(self) -> LiveStatus:
        return LiveStatus(
            running=self._run,
            started_at=self._started_at,
            camera=self._current_description(),
            session=self.session.status() if self.session is not None else None,
        )

    # ---- cameras ----
    def cameras(self) -> List[CameraDescription]:
        if self._cameras is None:
            found = list_cameras(self.s.MAX_CAMERAS, self.s.SENSOR_ORIENTATION)
            if not found:
                found = [CameraDescription(index=self.s.CAMERA_INDEX, name=f"camera {self.s.CAMERA_INDEX}",
                                           sensor_orientation=self.s.SENSOR_ORIENTATION)]
            self._cameras = found
            for pos, cam in enumerate(found):
                if cam.index == self.s.CAMERA_INDEX:
                    self._camera_pos = pos
                    break
        return self._cameras

    def _current_description(self) -> Optional[CameraDescription]:
        if not self._cameras:
            return None
        return self._cameras[self._camera_pos % len(self._cameras)]

    def _open_camera(self):
        desc = self.cameras()[self._camera_pos % len(self.cameras())]
        camera = self._camera_factory(desc)
        try:
            camera.start()
        except RuntimeError as e:
            self.session.mark_camera_unavailable(str(e))
            return None
        self.session.reset_camera()
        return camera

    def _release_camera(self):
        if self._camera is not None:
            try:
                self._camera.stop()
            except Exception:
                logger.exception("[live] camera stop failed")
            self._camera = None

    # ---- loop ----
    def _thread_main(self):
        try:
            asyncio.run(self._video_loop())
        except Exception:
            logger.exception("[live] video loop crashed")
            self._run = False

    async def _video_loop(self):
        session = self.session
        if session.open(bool(self._permission())).state != "running":
            logger.warning("[live] session not running; camera not started")
            self._run = False
            return

        if self._detector is None:
            self._detector = MediaPipeFaceDetector(self.s)
        detector = self._detector

        self._camera = self._open_camera()
        pending: Set[asyncio.Task] = set()
        try:
            while self._run:
                if self._switch_requested.is_set():
                    self._switch_requested.clear()
                    self._release_camera()
                    self._camera_pos = (self._camera_pos + 1) % len(self.cameras())
                    logger.info(f"[live] switching to camera position {self._camera_pos}")
                    self._camera = self._open_camera()

                camera = self._camera
                if camera is None:
                    await asyncio.sleep(IDLE_SLEEP_SEC)
                    continue

                try:
                    frame = await asyncio.to_thread(camera.read)
                except Exception:
                    logger.exception("[live] frame read failed; skipping")
                    await asyncio.sleep(IDLE_SLEEP_SEC)
                    continue
                if frame is None:
                    await asyncio.sleep(IDLE_SLEEP_SEC)
                    continue

                task = asyncio.create_task(
                    session.process_frame(frame, camera.sensor_orientation, detector))
                pending.add(task)
                task.add_done_callback(pending.discard)
                await asyncio.sleep(0)
        finally:
            session.close()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            self._release_camera()
            if self._owns_detector and self._detector is not None:
                self._detector.close()
                self._detector = None
