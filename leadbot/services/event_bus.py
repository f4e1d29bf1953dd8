# leadbot/services/event_bus.py
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Any, Deque, Dict, List, Protocol, Tuple

logger = logging.getLogger("leadbot.event_bus")

HIST_MAX = 200  # keep the last N events per conversation

TURN_STARTED = "turn_started"
STAGE_ADVANCED = "stage_advanced"
VALIDATION_FAILED = "validation_failed"
SUMMARY_SHOWN = "summary_shown"
GENERATION_FALLBACK = "generation_fallback"
PERSIST_FAILED = "persist_failed"
CONTACT_FORM = "contact_form"
CONVERSATION_RESET = "conversation_reset"


class EventObserver(Protocol):
    def on_event(self, name: str, payload: Dict[str, Any]) -> None:
        ...


class EventLog:
    """
    Observer that keeps a ring buffer of recent engine events for one sid.
    Events carry a per-log sequence number so callers can poll with `since`.
    """

    def __init__(self, sid: str, maxlen: int = HIST_MAX):
        self.sid = sid
        self._hist: Deque[Tuple[int, dict]] = deque(maxlen=maxlen)
        self._seq = 0
        self._lock = threading.Lock()

    def on_event(self, name: str, payload: Dict[str, Any]) -> None:
        evt = {"type": name, "sid": self.sid, "ts": time.time(), "payload": payload}
        with self._lock:
            self._seq += 1
            self._hist.append((self._seq, evt))
        logger.info("event sid=%s type=%s", self.sid, name)

    def collect_since(self, since: int = 0, limit: int = 100) -> List[dict]:
        with self._lock:
            items = [{**evt, "_seq": seq} for seq, evt in self._hist if seq > since]
        return items[-limit:]

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"events": len(self._hist), "lastSeq": self._seq}
