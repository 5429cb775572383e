import asyncio
import base64

import pytest
from fastapi.testclient import TestClient

from api.main import app
import api.routes as routes
from core.history import HistoryStore
from core.models import DetectedFaceSignals


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")

def frame_body(y_value=128, **extra):
    w, h = 8, 4
    body = {
        "width": w,
        "height": h,
        "y": b64(bytes([y_value]) * (w * h)),
        "u": b64(bytes([128]) * (w * h // 4)),
        "v": b64(bytes([128]) * (w * h // 4)),
    }
    body.update(extra)
    return body

@pytest.fixture
def client(monkeypatch, tmp_path):
    monkeypatch.setattr(routes, "history", HistoryStore(str(tmp_path / "history.json")))
    return TestClient(app)


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}

def test_analyze_frame_with_client_faces(client):
    faces = [{"smiling_probability": 0.9, "left_eye_open_probability": 0.9, "right_eye_open_probability": 0.9}]
    r = client.post("/analyze/frame", json=frame_body(faces=faces))
    assert r.status_code == 200
    j = r.json()
    assert j["face_detected"] is True
    assert j["mood"]["label"] == "Very Happy"
    assert j["lighting"]["status"] == "Good Lighting"
    hist = client.get("/history").json()
    assert len(hist) == 1 and hist[0]["mood"] == "Very Happy"

def test_analyze_frame_no_face_not_recorded(client):
    r = client.post("/analyze/frame", json=frame_body(y_value=0, faces=[]))
    assert r.status_code == 200
    j = r.json()
    assert j["mood"]["label"] == "No face detected"
    assert j["condition"] is None
    assert j["lighting"]["status"] == "Low Light"
    assert client.get("/history").json() == []

def test_analyze_frame_record_false(client):
    faces = [{"smiling_probability": 0.6}]
    r = client.post("/analyze/frame", json=frame_body(faces=faces, record=False))
    assert r.status_code == 200
    assert client.get("/history").json() == []

def test_analyze_frame_runs_server_detector(client, monkeypatch):
    seen = {}
    class DummyDetector:
        async def process_image(self, frame):
            seen["rotation"] = frame.rotation
            seen["len"] = len(frame.data)
            return [DetectedFaceSignals(smiling_probability=0.1)]
    monkeypatch.setattr(routes, "detector", DummyDetector())
    r = client.post("/analyze/frame", json=frame_body(sensor_orientation=180))
    assert r.status_code == 200
    assert r.json()["mood"]["label"] == "Sad"
    assert seen == {"rotation": 180, "len": 48}

def test_analyze_frame_detector_failure(client, monkeypatch):
    class BrokenDetector:
        async def process_image(self, frame):
            raise RuntimeError("boom")
    monkeypatch.setattr(routes, "detector", BrokenDetector())
    r = client.post("/analyze/frame", json=frame_body())
    assert r.status_code == 500

def test_analyze_frame_short_luma(client):
    body = frame_body(faces=[])
    body["y"] = b64(bytes(10))
    assert client.post("/analyze/frame", json=body).status_code == 400

def test_analyze_lighting(client):
    r = client.post("/analyze/lighting", json={"y": b64(bytes([255]) * 100)})
    assert r.status_code == 200
    assert r.json()["status"] == "Too Bright"

def test_analyze_face(client):
    body = {
        "face": {"left_eye_open_probability": 0.2, "right_eye_open_probability": 0.2, "smiling_probability": 0.5},
        "lighting": {"status": "Low Light", "brightness": 0.2, "contrast": 0.0, "is_low_light": True},
    }
    j = client.post("/analyze/face", json=body).json()
    assert j["mood"]["label"] == "Tired"
    assert j["condition"]["label"] == "Fatigued (Low Light)"
    assert j["condition"]["confidence"] == pytest.approx(0.64)

def test_clear_history(client):
    client.post("/analyze/frame", json=frame_body(faces=[{"smiling_probability": 0.9}]))
    assert client.delete("/history").json() == {"status": "cleared"}
    assert client.get("/history").json() == []


class DummyLive:
    def __init__(self):
        self.running = False
        self.switched = 0
    def start(self):
        self.running = True
    def stop(self):
        self.running = False
    def switch_camera(self):
        self.switched += 1
    def status(self):
        from core.models import LiveStatus
        return LiveStatus(running=self.running)

def test_live_start_status_stop(client, monkeypatch):
    live = DummyLive()
    monkeypatch.setattr(routes, "live_analyzer", live)
    assert client.post("/live/start").json()["status"] == "started"
    assert client.post("/live/start").json()["status"] == "already_running"
    assert client.get("/live/status").json()["running"] is True
    assert client.post("/live/switch-camera").json()["status"] == "switching"
    assert live.switched == 1
    assert client.post("/live/stop").json()["status"] == "stopped"
    assert client.post("/live/stop").json()["status"] == "not_running"
    assert client.post("/live/switch-camera").json()["status"] == "not_running"

class BlockingStopLive(DummyLive):
    def __init__(self):
        super().__init__()
        self.stopped_on_loop = None
    def stop(self):
        # a blocking join must not run on the server's event loop
        try:
            asyncio.get_running_loop()
            self.stopped_on_loop = True
        except RuntimeError:
            self.stopped_on_loop = False
        super().stop()

def test_live_stop_runs_off_event_loop(client, monkeypatch):
    live = BlockingStopLive()
    live.running = True
    monkeypatch.setattr(routes, "live_analyzer", live)
    assert client.post("/live/stop").json()["status"] == "stopped"
    assert live.stopped_on_loop is False
