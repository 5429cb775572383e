import pytest

from core.config import Settings
from core.history import HistoryStore
from core.models import Plane, RawFrame


def make_raw_frame(width=8, height=4, y_value=128, u_value=10, v_value=20) -> RawFrame:
    c = (width * height) // 4
    return RawFrame(
        width=width,
        height=height,
        planes=[
            Plane(data=bytes([y_value]) * (width * height), bytes_per_row=width),
            Plane(data=bytes([u_value]) * c, bytes_per_row=width // 2),
            Plane(data=bytes([v_value]) * c, bytes_per_row=width // 2),
        ],
    )

@pytest.fixture
def raw_frame():
    return make_raw_frame

@pytest.fixture
def history_store(tmp_path):
    return HistoryStore(str(tmp_path / "history.json"), key="emotion_history", limit=100)

@pytest.fixture
def settings(tmp_path):
    return Settings(HISTORY_PATH=str(tmp_path / "history.json"), MIN_FRAME_INTERVAL=0.1)
