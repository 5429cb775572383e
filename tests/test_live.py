import time

from core.config import Settings
from core.live import LiveAnalyzer
from core.models import CameraDescription, DetectedFaceSignals
from conftest import make_raw_frame


class DummyCamera:
    def __init__(self, description, fail=False):
        self.description = description
        self.fail = fail
        self.started = False
        self.stopped = False
    @property
    def sensor_orientation(self):
        return self.description.sensor_orientation
    def start(self):
        if self.fail:
            raise RuntimeError(f"Could not open camera index {self.description.index}")
        self.started = True
    def read(self):
        time.sleep(0.005)
        return make_raw_frame(8, 4, y_value=128)
    def stop(self):
        self.stopped = True

class DummyDetector:
    def __init__(self):
        self.calls = 0
    async def process_image(self, frame):
        self.calls += 1
        return [DetectedFaceSignals(smiling_probability=0.6, left_eye_open_probability=0.9, right_eye_open_probability=0.9)]
    def close(self):
        pass

CAMS = [CameraDescription(index=0, lens_direction="front"), CameraDescription(index=1)]


def wait_for(cond, timeout=3.0):
    end = time.time() + timeout
    while time.time() < end:
        if cond():
            return True
        time.sleep(0.02)
    return False


def test_LiveAnalyzer_produces_analysis(history_store):
    s = Settings(MIN_FRAME_INTERVAL=0.0)
    det = DummyDetector()
    la = LiveAnalyzer(s, detector=det, history=history_store,
                      camera_factory=DummyCamera, permission=lambda: True, cameras=CAMS)
    la.start()
    try:
        assert wait_for(lambda: la.status().session.last_analysis is not None)
        st = la.status()
        assert st.running
        assert st.session.state == "running"
        assert st.session.last_analysis.mood.label == "Happy"
        assert st.camera.index == 0
    finally:
        la.stop()
    assert not la.running
    assert la.status().session.state == "closed"
    assert len(history_store.load()) >= 1

def test_LiveAnalyzer_permission_denied():
    s = Settings()
    la = LiveAnalyzer(s, detector=DummyDetector(), camera_factory=DummyCamera,
                      permission=lambda: False, cameras=CAMS)
    la.start()
    assert wait_for(lambda: not la.running)
    st = la.status()
    assert st.session.state == "permission_denied"
    assert st.session.message == "Permission Denied"
    la.stop()

def test_LiveAnalyzer_camera_failure_then_switch():
    s = Settings(MIN_FRAME_INTERVAL=0.0)
    factory = lambda desc: DummyCamera(desc, fail=(desc.index == 0))
    la = LiveAnalyzer(s, detector=DummyDetector(), camera_factory=factory,
                      permission=lambda: True, cameras=CAMS)
    la.start()
    try:
        assert wait_for(lambda: la.status().session.state == "camera_unavailable")
        # no automatic retry
        time.sleep(0.1)
        assert la.status().session.state == "camera_unavailable"
        la.switch_camera()
        assert wait_for(lambda: la.status().session.last_analysis is not None)
        assert la.status().camera.index == 1
        assert la.status().session.state == "running"
    finally:
        la.stop()

class FlakyCamera(DummyCamera):
    def __init__(self, description, fail=False):
        super().__init__(description, fail)
        self.reads = 0
    def read(self):
        self.reads += 1
        if self.reads == 3:
            raise ValueError("driver hiccup")
        return super().read()

def test_LiveAnalyzer_survives_frame_read_error():
    s = Settings(MIN_FRAME_INTERVAL=0.0)
    cams = []
    def factory(desc):
        cams.append(FlakyCamera(desc))
        return cams[-1]
    la = LiveAnalyzer(s, detector=DummyDetector(), camera_factory=factory,
                      permission=lambda: True, cameras=CAMS)
    la.start()
    try:
        assert wait_for(lambda: cams and cams[0].reads > 5)
        accepted = la.status().session.frames_accepted
        assert wait_for(lambda: la.status().session.frames_accepted > accepted)
        st = la.status()
        assert st.running
        assert st.session.state == "running"
        assert not cams[0].stopped
    finally:
        la.stop()

def test_LiveAnalyzer_switch_before_start_is_ignored():
    s = Settings(MIN_FRAME_INTERVAL=0.0)
    la = LiveAnalyzer(s, detector=DummyDetector(), camera_factory=DummyCamera,
                      permission=lambda: True, cameras=CAMS)
    la.switch_camera()
    la.start()
    try:
        assert wait_for(lambda: la.status().session.last_analysis is not None)
        assert la.status().camera.index == 0
    finally:
        la.stop()
