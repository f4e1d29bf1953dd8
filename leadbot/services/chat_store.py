# leadbot/services/chat_store.py
from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, TypedDict

from leadbot.core.config import STORAGE_PREFIX
from leadbot.models.chat import ChatMessage
from leadbot.models.lead import LeadRecord, Stage

logger = logging.getLogger("leadbot.chat_store")


class KeyValueStore(Protocol):
    def load(self, key: str) -> Optional[str]:
        ...

    def save(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryStore:
    def __init__(self):
        self._data: Dict[str, str] = {}
        self._lock = threading.RLock()

    def load(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def save(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def stats(self) -> dict:
        with self._lock:
            return {"path": None, "keys": len(self._data)}


class JsonFileStore:
    """Key-value pairs kept in one JSON document on disk."""

    def __init__(self, path: str):
        self.path = path
        self._data: Dict[str, str] = {}
        self._lock = threading.RLock()
        self._load_once()

    def _ensure_store_dir(self):
        d = os.path.dirname(self.path)
        if d and not os.path.exists(d):
            os.makedirs(d, exist_ok=True)

    def _load_once(self) -> None:
        if not os.path.exists(self.path):
            logger.info("chat_store: no file, starting empty path=%s", self.path)
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError):
            logger.exception("chat_store: load error path=%s", self.path)
            return
        if not isinstance(raw, dict):
            logger.warning("chat_store: ignoring non-object document path=%s", self.path)
            return
        self._data = {str(k): v for k, v in raw.items() if isinstance(v, str)}
        logger.info("chat_store: loaded keys=%d path=%s", len(self._data), self.path)

    def _flush(self) -> None:
        self._ensure_store_dir()
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(self._data, f, ensure_ascii=False)
        os.replace(tmp, self.path)

    def load(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def save(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value
            self._flush()
        logger.debug("WRITE chat_store key=%s len=%d", key, len(value))

    def delete(self, key: str) -> None:
        with self._lock:
            if self._data.pop(key, None) is not None:
                self._flush()

    def stats(self) -> dict:
        with self._lock:
            return {"path": self.path, "keys": len(self._data)}


# ---------- conversation snapshots ----------
class ConversationSnapshot(TypedDict):
    lead: LeadRecord
    stage: Stage
    messages: List[ChatMessage]


class ConversationSnapshotStore:
    """
    Two records per conversation under a fixed namespace:
      <prefix>:lead      lead + stage + message count
      <prefix>:messages  the message log
    A successfully parsed snapshot is trusted as-is.
    """

    def __init__(self, store: KeyValueStore, prefix: str = STORAGE_PREFIX):
        self.store = store
        self.prefix = prefix

    @property
    def lead_key(self) -> str:
        return f"{self.prefix}:lead"

    @property
    def messages_key(self) -> str:
        return f"{self.prefix}:messages"

    def save(self, lead: LeadRecord, stage: Stage, messages: List[ChatMessage]) -> None:
        state = {
            "leadData": lead.model_dump(mode="json"),
            "currentStage": stage.value,
            "messageCount": len(messages),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        log = [m.model_dump(mode="json") for m in messages]
        self.store.save(self.lead_key, json.dumps(state, ensure_ascii=False))
        self.store.save(self.messages_key, json.dumps(log, ensure_ascii=False))

    def load(self) -> Optional[ConversationSnapshot]:
        raw_state = self.store.load(self.lead_key)
        if not raw_state:
            return None
        try:
            state = json.loads(raw_state)
            lead = LeadRecord.model_validate(state.get("leadData") or {})
            stage = Stage(state.get("currentStage") or Stage.GREETING.value)
            raw_log = self.store.load(self.messages_key)
            messages = [ChatMessage.model_validate(m) for m in json.loads(raw_log)] if raw_log else []
        except Exception:
            logger.exception("chat_store: unreadable snapshot prefix=%s", self.prefix)
            return None
        return {"lead": lead, "stage": stage, "messages": messages}

    def clear(self) -> None:
        self.store.delete(self.lead_key)
        self.store.delete(self.messages_key)
