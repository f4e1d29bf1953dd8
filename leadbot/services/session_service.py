# leadbot/services/session_service.py
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from leadbot.core import config
from leadbot.services.chat_store import ConversationSnapshotStore, JsonFileStore, KeyValueStore
from leadbot.services.conversation_engine import ConversationEngine
from leadbot.services.event_bus import EventLog
from leadbot.services.llm_service import TextGenerator, build_generator

logger = logging.getLogger("leadbot.session")


@dataclass
class Session:
    sid: str
    engine: ConversationEngine
    events: EventLog
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())

    def touch(self) -> None:
        self.updated_at = time.time()

    def to_dict(self) -> Dict:
        return {
            "sid": self.sid,
            "stage": self.engine.stage.value,
            "messages": len(self.engine.messages),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


class SessionRegistry:
    """One ConversationEngine per browser session id. Sessions idle past `idle_ttl` are dropped."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        generator_factory: Callable[[], Optional[TextGenerator]] = build_generator,
        prefix: str = config.STORAGE_PREFIX,
        idle_ttl: float = config.SESSION_IDLE_SECS,
    ):
        self.store = store
        self.prefix = prefix
        self.idle_ttl = idle_ttl
        self._generator_factory = generator_factory
        self._generator: Optional[TextGenerator] = None
        self._generator_ready = False
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def _text_generator(self) -> Optional[TextGenerator]:
        if not self._generator_ready:
            self._generator = self._generator_factory()
            self._generator_ready = True
        return self._generator

    def _create(self, sid: str) -> Session:
        snapshots = ConversationSnapshotStore(self.store, prefix=f"{self.prefix}:{sid}") if self.store is not None else None
        events = EventLog(sid)
        engine = ConversationEngine(
            text_generator=self._text_generator(),
            store=snapshots,
            observer=events,
            sid=sid,
        )
        logger.debug("session created sid=%s", sid)
        return Session(sid=sid, engine=engine, events=events)

    def get(self, sid: str) -> Session:
        if not sid:
            raise ValueError("sid is required")
        self.evict_idle()
        with self._lock:
            st = self._sessions.get(sid)
            if st is None:
                st = self._create(sid)
                self._sessions[sid] = st
            st.touch()
            return st

    def find(self, sid: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(sid)

    def drop(self, sid: str) -> bool:
        with self._lock:
            st = self._sessions.pop(sid, None)
        if st is None:
            return False
        st.engine.close()
        logger.info("session dropped sid=%s", sid)
        return True

    def evict_idle(self, now: Optional[float] = None) -> List[str]:
        """Drop sessions untouched for `idle_ttl` seconds. A turn in flight keeps its session."""
        if self.idle_ttl <= 0:
            return []
        now = time.time() if now is None else now
        with self._lock:
            stale = [
                sid for sid, st in self._sessions.items()
                if now - st.updated_at > self.idle_ttl and not st.engine.loading
            ]
        dropped = [sid for sid in stale if self.drop(sid)]
        if dropped:
            logger.info("evicted idle sessions count=%d", len(dropped))
        return dropped

    def list_active(self) -> List[Session]:
        with self._lock:
            lst = list(self._sessions.values())
        logger.debug("list_active count=%d", len(lst))
        return lst

    def clear(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for st in sessions:
            st.engine.close()


_registry: Optional[SessionRegistry] = None
_registry_lock = threading.Lock()


def get_registry() -> SessionRegistry:
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = SessionRegistry(store=JsonFileStore(config.STORE_PATH))
        return _registry


def set_registry(registry: Optional[SessionRegistry]) -> None:
    global _registry
    with _registry_lock:
        _registry = registry
