# leadbot/services/conversation_engine.py
from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from leadbot.core import config
from leadbot.models.chat import SENDER_BOT, SENDER_USER, ChatMessage, GenerationRequest
from leadbot.models.lead import LeadRecord, Stage, ValidationResult
from leadbot.services import event_bus, flow_service
from leadbot.services.chat_store import ConversationSnapshotStore
from leadbot.services.event_bus import EventObserver
from leadbot.services.extraction import extract_lead_data
from leadbot.services.llm_service import TextGenerator, build_turn_prompt, trim_history
from leadbot.services.validation import validate_field

logger = logging.getLogger("leadbot.engine")

GENERIC_ERROR = "Something went wrong on our side. Please try again."


class TurnInFlight(Exception):
    """Another turn for this conversation is still being processed."""


class ConversationEngine:
    """
    Lead-capture state machine for a single conversation.

    Walks the visitor through name -> email -> phone -> project type, pulls fields
    out of free text, validates them, and phrases the next question through an
    optional text generator (falling back to canned questions). One turn runs at
    a time; a turn submitted while another is in flight is rejected. A reset or
    close while the generator is running discards that turn's result.
    """

    def __init__(
        self,
        text_generator: Optional[TextGenerator] = None,
        store: Optional[ConversationSnapshotStore] = None,
        observer: Optional[EventObserver] = None,
        *,
        sid: str = "-",
        history_window: int = config.HISTORY_WINDOW,
    ):
        self.text_generator = text_generator
        self.store = store
        self.observer = observer
        self.sid = sid
        self.history_window = history_window

        self._lock = threading.RLock()
        self._messages: List[ChatMessage] = []
        self._lead = LeadRecord()
        self._stage = Stage.GREETING
        self._loading = False
        self._error: Optional[str] = None
        self._next_id = 0
        self._last_bot_text = ""
        self._epoch = 0
        self._closed = False

    # ---------- exposed state ----------
    @property
    def messages(self) -> List[ChatMessage]:
        with self._lock:
            return list(self._messages)

    @property
    def lead(self) -> LeadRecord:
        with self._lock:
            return self._lead.model_copy()

    @property
    def stage(self) -> Stage:
        return self._stage

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def progress(self) -> float:
        return flow_service.progress_fraction(self._stage)

    @property
    def current_step(self) -> str:
        return flow_service.step_label(self._stage)

    def view(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "sid": self.sid,
                "messages": list(self._messages),
                "lead": self._lead.model_copy(),
                "stage": self._stage,
                "loading": self._loading,
                "error": self._error,
                "progress": self.progress,
                "currentStep": self.current_step,
            }

    # ---------- helpers ----------
    def _trace(self, step: str, **extra):
        details = " ".join(f"{k}={v}" for k, v in extra.items())
        logger.info("[FLOW] sid=%s %s stage=%s %s", self.sid, step, self._stage.value, details)

    def _emit(self, name: str, payload: Dict[str, Any]) -> None:
        if self.observer is None:
            return
        try:
            self.observer.on_event(name, payload)
        except Exception:
            logger.exception("observer failed sid=%s event=%s", self.sid, name)

    def _add_message(self, text: str, sender: str, stage: Stage) -> ChatMessage:
        msg = ChatMessage(id=str(self._next_id), text=text, sender=sender, stage=stage)
        self._next_id += 1
        self._messages.append(msg)
        if sender == SENDER_BOT:
            self._last_bot_text = text
        return msg

    def _greet(self) -> ChatMessage:
        return self._add_message(flow_service.next_question(Stage.GREETING), SENDER_BOT, Stage.GREETING)

    def _persist(self) -> None:
        if self.store is None:
            return
        try:
            self.store.save(self._lead, self._stage, self._messages)
        except Exception:
            logger.exception("persist failed sid=%s", self.sid)
            self._emit(event_bus.PERSIST_FAILED, {"stage": self._stage.value})

    def _restore(self) -> bool:
        if self.store is None:
            return False
        try:
            snapshot = self.store.load()
        except Exception:
            logger.exception("restore failed sid=%s", self.sid)
            return False
        if not snapshot or not snapshot["messages"]:
            return False

        self._lead = snapshot["lead"]
        self._stage = snapshot["stage"]
        self._messages = list(snapshot["messages"])
        ids = [int(m.id) for m in self._messages if m.id.isdigit()]
        self._next_id = max(ids) + 1 if ids else len(self._messages)
        bots = [m.text for m in self._messages if m.sender == SENDER_BOT]
        self._last_bot_text = bots[-1] if bots else ""
        self._trace("restored", messages=len(self._messages))
        return True

    def _check_turn(self, current: Stage, working: LeadRecord, text: str) -> ValidationResult:
        """Newly extracted fields must validate, and the current stage's field must be present."""
        for field in working.new_fields(self._lead):
            result = validate_field(field, getattr(working, field))
            if not result.is_valid:
                return result

        field = flow_service.field_for_stage(current)
        if field and not getattr(working, field):
            result = validate_field(field, text)
            if not result.is_valid:
                return result
            return ValidationResult.fail(flow_service.missing_field_prompt(current))
        return ValidationResult.ok()

    def _valid_new_fields(self, working: LeadRecord) -> Dict[str, str]:
        out = {}
        for field in working.new_fields(self._lead):
            value = getattr(working, field)
            if validate_field(field, value).is_valid:
                out[field] = value
        return out

    def _generate(self, request: GenerationRequest) -> Optional[str]:
        if self.text_generator is None:
            return None
        try:
            reply = self.text_generator.generate(request)
        except Exception:
            logger.exception("text generation failed sid=%s", self.sid)
            return None
        if not isinstance(reply, str) or not reply.strip():
            return None
        return reply.strip()

    # ---------- operations ----------
    def start(self) -> List[ChatMessage]:
        with self._lock:
            if not self._messages and not self._restore():
                self._greet()
                self._trace("start")
                self._persist()
            return list(self._messages)

    def submit(self, text: str) -> Optional[List[ChatMessage]]:
        """
        Process one user turn. Returns the bot messages emitted, or None when the
        input was ignored (blank, conversation complete or closed, or the turn was
        superseded by a reset). Raises TurnInFlight while another turn is running.
        """
        text = (text or "").strip()
        if not text:
            return None

        with self._lock:
            if self._closed:
                return None
            if self._loading:
                self._trace("busy")
                raise TurnInFlight(self.sid)
            if not self._messages and not self._restore():
                self._greet()
            if self._stage == Stage.COMPLETE:
                return None
            self._loading = True
            self._error = None
            epoch = self._epoch

        try:
            return self._run_turn(text, epoch)
        except Exception:
            logger.exception("turn failed sid=%s", self.sid)
            with self._lock:
                if epoch == self._epoch:
                    self._error = GENERIC_ERROR
            return None
        finally:
            with self._lock:
                if epoch == self._epoch:
                    self._loading = False

    def _run_turn(self, text: str, epoch: int) -> Optional[List[ChatMessage]]:
        with self._lock:
            current = self._stage
            self._emit(event_bus.TURN_STARTED, {"stage": current.value, "length": len(text)})
            self._add_message(text, SENDER_USER, current)

            extracted = extract_lead_data(text, expect_name=current == Stage.ASK_NAME)
            working = self._lead.merged(extracted)
            candidate = flow_service.next_stage(working)
            self._trace("turn", extracted=sorted(extracted), candidate=candidate.value)

            check = self._check_turn(current, working, text)
            if not check.is_valid:
                # keep whatever else the visitor volunteered, then re-prompt
                accepted = self._valid_new_fields(working)
                update: Dict[str, Any] = {"conversationLength": self._lead.conversationLength + 1}
                if accepted:
                    update["timestamp"] = datetime.now(timezone.utc)
                self._lead = self._lead.merged(accepted).model_copy(update=update)
                reply = self._add_message(check.error, SENDER_BOT, current)
                self._emit(event_bus.VALIDATION_FAILED, {"stage": current.value, "error": check.error})
                self._persist()
                return [reply]

            self._lead = working.model_copy(update={
                "conversationLength": self._lead.conversationLength + 1,
                "timestamp": datetime.now(timezone.utc),
            })

            if self._lead.is_complete():
                if current != Stage.SUMMARY:
                    self._stage = Stage.SUMMARY
                    reply = self._add_message(flow_service.build_summary(self._lead), SENDER_BOT, Stage.SUMMARY)
                    self._emit(event_bus.STAGE_ADVANCED, {"from": current.value, "to": Stage.SUMMARY.value})
                    self._emit(event_bus.SUMMARY_SHOWN, {"purpose": self._lead.purpose})
                    self._persist()
                    return [reply]
                replies = []
                question = flow_service.next_question(Stage.SUMMARY)
                if question != self._last_bot_text:
                    replies.append(self._add_message(question, SENDER_BOT, Stage.SUMMARY))
                self._persist()
                return replies

            self._stage = candidate
            if candidate != current:
                self._emit(event_bus.STAGE_ADVANCED, {"from": current.value, "to": candidate.value})
            question = flow_service.next_question(candidate)
            request = GenerationRequest(
                message=text,
                conversationHistory=trim_history(self._messages[:-1], self.history_window),
                leadData=self._lead,
                currentStage=candidate,
                systemPrompt=build_turn_prompt(text, question),
            )

        # the generator runs without the lock so reset/close stay responsive
        reply_text = self._generate(request)

        with self._lock:
            if epoch != self._epoch:
                self._trace("stale_reply_discarded")
                return None
            if reply_text is None:
                reply_text = question
                self._emit(event_bus.GENERATION_FALLBACK, {"stage": candidate.value})

            replies = []
            if reply_text != self._last_bot_text:
                replies.append(self._add_message(reply_text, SENDER_BOT, candidate))
            self._persist()
            return replies

    def advance_to_contact_form(self, base_path: str = config.CONTACT_PATH) -> Optional[str]:
        with self._lock:
            if self._stage != Stage.SUMMARY:
                return None
            self._stage = Stage.COMPLETE
            url = flow_service.build_contact_url(self._lead, base_path)
            self._trace("contact_form", url=url)
            self._emit(event_bus.CONTACT_FORM, {"url": url})
            self._persist()
            return url

    def reset(self) -> List[ChatMessage]:
        with self._lock:
            self._epoch += 1
            self._messages = []
            self._lead = LeadRecord()
            self._stage = Stage.GREETING
            self._loading = False
            self._error = None
            self._next_id = 0
            self._last_bot_text = ""
            if self.store is not None:
                try:
                    self.store.clear()
                except Exception:
                    logger.exception("clear store failed sid=%s", self.sid)
            self._emit(event_bus.CONVERSATION_RESET, {})
            self._greet()
            self._trace("reset")
            self._persist()
            return list(self._messages)

    def close(self) -> None:
        with self._lock:
            self._epoch += 1
            self._closed = True
            self._loading = False
            self._trace("closed")
