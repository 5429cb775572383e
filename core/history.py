"""
Local emotion history: a capped, ordered list of entries in a JSON key/value file.
"""
from __future__ import annotations
import json
import logging
import os
import threading
from typing import List

from core.config import Settings
from core.models import EmotionHistoryEntry

logger = logging.getLogger(__name__)


class HistoryStore:
    """
    Append-only history kept under `key` in a JSON document at `path`.
    Holds at most `limit` entries; the oldest are evicted first.
    """
    def __init__(self, path: str, key: str = "emotion_history", limit: int = 100):
        self.path = path
        self.key = key
        self.limit = max(1, int(limit))
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "HistoryStore":
        return cls(settings.HISTORY_PATH, key=settings.HISTORY_KEY, limit=settings.HISTORY_LIMIT)

    # ---- file io ----
    def _read_document(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                doc = json.load(f)
        except (OSError, ValueError):
            logger.exception(f"[history] unreadable store {self.path}; starting empty")
            return {}
        if not isinstance(doc, dict):
            logger.warning(f"[history] unexpected document type {type(doc).__name__}; starting empty")
            return {}
        return doc

    def _write_document(self, doc: dict) -> None:
        folder = os.path.dirname(self.path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        tmp_path = self.path + ".tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(doc, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, self.path)

    def _entries(self, doc: dict) -> List[EmotionHistoryEntry]:
        out: List[EmotionHistoryEntry] = []
        for rec in doc.get(self.key) or []:
            try:
                out.append(EmotionHistoryEntry.model_validate(rec))
            except ValueError:
                logger.warning(f"[history] skipping malformed record: {rec!r}")
        return out

    # ---- public api ----
    def load(self) -> List[EmotionHistoryEntry]:
        with self._lock:
            return self._entries(self._read_document())

    def append(self, entry: EmotionHistoryEntry) -> List[EmotionHistoryEntry]:
        """Append one entry, evict the oldest beyond the cap, persist. Returns the stored list."""
        with self._lock:
            doc = self._read_document()
            entries = self._entries(doc)
            entries.append(entry)
            if len(entries) > self.limit:
                entries = entries[-self.limit:]
            doc[self.key] = [e.model_dump(mode="json") for e in entries]
            self._write_document(doc)
            logger.debug(f"[history] appended mood={entry.mood} size={len(entries)}")
            return entries

    def clear(self) -> None:
        with self._lock:
            doc = self._read_document()
            doc[self.key] = []
            self._write_document(doc)
