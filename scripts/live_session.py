"""Run live camera analysis and log mood / condition per analyzed frame.

Usage:
    uvicorn api.main:app --reload  # (separate, for API)
    python scripts/live_session.py  # (camera -> log, history file updated)

Press Ctrl+C to stop.
"""
import logging
import time

from core.config import Settings
from core.history import HistoryStore
from core.live import LiveAnalyzer

if __name__ == '__main__':
    s = Settings()
    logging.basicConfig(level=getattr(logging, s.LOG_LEVEL, logging.INFO))
    analyzer = LiveAnalyzer(s, history=HistoryStore.from_settings(s))
    analyzer.start()
    try:
        while analyzer.running:
            time.sleep(0.5)
    except KeyboardInterrupt:
        pass
    finally:
        analyzer.stop()
        print(analyzer.status().model_dump_json(indent=2))
