import pytest

from leadbot.models.lead import LeadRecord, Stage
from leadbot.services import event_bus, flow_service
from leadbot.services.chat_store import ConversationSnapshotStore, MemoryStore
from leadbot.services.conversation_engine import ConversationEngine, TurnInFlight
from leadbot.services.event_bus import EventLog

HAPPY_PATH = [
    ("Hi", Stage.ASK_NAME),
    ("John Smith", Stage.ASK_EMAIL),
    ("john@example.com", Stage.ASK_PHONE),
    ("+1 555-123-4567", Stage.ASK_PURPOSE),
    ("I need a business website", Stage.SUMMARY),
]


class FailingGenerator:
    def __init__(self):
        self.calls = 0

    def generate(self, request):
        self.calls += 1
        raise RuntimeError("model is down")


class RecordingGenerator:
    def __init__(self, reply=None):
        self.reply = reply
        self.requests = []

    def generate(self, request):
        self.requests.append(request)
        if self.reply is not None:
            return self.reply
        return f"Lovely. {flow_service.next_question(request.currentStage)}"


class ReentrantGenerator:
    """Calls back into the engine while its own turn is still in flight."""

    def __init__(self, action):
        self.action = action
        self.engine = None
        self.result = "unset"

    def generate(self, request):
        self.result = self.action(self.engine)
        return "late reply"


@pytest.fixture
def engine():
    eng = ConversationEngine()
    eng.start()
    return eng


def _drive(engine, turns):
    for text, _ in turns:
        engine.submit(text)


def test_start_emits_greeting(engine):
    msgs = engine.messages
    assert len(msgs) == 1
    assert msgs[0].sender == "bot"
    assert msgs[0].stage == Stage.GREETING
    assert msgs[0].text == flow_service.GREETING_TEXT
    assert engine.start() == msgs


def test_happy_path_reaches_summary(engine):
    for text, expected in HAPPY_PATH:
        engine.submit(text)
        assert engine.stage == expected

    lead = engine.lead
    assert (lead.name, lead.email, lead.phone, lead.purpose) == (
        "John Smith", "john@example.com", "+1 555-123-4567", "business",
    )
    assert lead.conversationLength == 5
    summary = engine.messages[-1]
    assert summary.sender == "bot"
    assert summary.stage == Stage.SUMMARY
    assert "₹0.3L - ₹0.6L" in summary.text
    assert engine.progress == 1.0
    assert engine.current_step == "Confirmation"


def test_message_ids_are_monotonic(engine):
    _drive(engine, HAPPY_PATH)
    ids = [int(m.id) for m in engine.messages]
    assert ids == list(range(len(ids)))


def test_invalid_email_keeps_stage(engine):
    _drive(engine, HAPPY_PATH[:2])
    replies = engine.submit("not an email")

    assert engine.stage == Stage.ASK_EMAIL
    assert engine.lead.email is None
    assert [r.text for r in replies] == ["Please enter a valid email address"]
    assert replies[0].stage == Stage.ASK_EMAIL


def test_short_name_is_rejected(engine):
    engine.submit("Hi")
    replies = engine.submit("x")
    assert engine.stage == Stage.ASK_NAME
    assert replies[0].text == "Please enter a valid name (at least 2 characters)"


def test_missing_purpose_reprompts(engine):
    _drive(engine, HAPPY_PATH[:4])
    replies = engine.submit("not sure yet")
    assert engine.stage == Stage.ASK_PURPOSE
    assert replies[0].text == "What type of project are you looking to build?"


def test_volunteered_phone_is_kept_while_email_is_reprompted(engine):
    _drive(engine, HAPPY_PATH[:2])
    replies = engine.submit("call me at 555-123-4567, email to follow")

    assert engine.stage == Stage.ASK_EMAIL
    assert engine.lead.phone == "555-123-4567"
    assert engine.lead.email is None
    assert [r.text for r in replies] == ["Please enter a valid email address"]

    engine.submit("john@example.com")
    assert engine.stage == Stage.ASK_PURPOSE
    assert engine.lead.phone == "555-123-4567"


def test_plural_project_word_completes_the_lead(engine):
    _drive(engine, HAPPY_PATH[:4])
    engine.submit("We need apps for our restaurant")
    assert engine.stage == Stage.SUMMARY
    assert engine.lead.purpose == "webapp"


def test_combined_extraction_jumps_ahead(engine):
    engine.submit("Hi")
    engine.submit("I'm Jane, jane@test.com")

    assert engine.lead.name == "Jane"
    assert engine.lead.email == "jane@test.com"
    assert engine.stage == Stage.ASK_PHONE


def test_greeting_is_not_taken_as_name_but_introduction_is(engine):
    engine.submit("I'm Jane")
    assert engine.lead.name == "Jane"
    assert engine.stage == Stage.ASK_EMAIL


def test_duplicate_fields_only_bump_length(engine):
    _drive(engine, HAPPY_PATH[:3])
    before = engine.lead

    engine.submit("john@example.com")
    after = engine.lead

    assert after.model_dump(exclude={"conversationLength", "timestamp"}) == \
        before.model_dump(exclude={"conversationLength", "timestamp"})
    assert after.conversationLength == before.conversationLength + 1
    assert engine.stage == Stage.ASK_PHONE


def test_confirmed_fields_are_never_overwritten(engine):
    _drive(engine, HAPPY_PATH[:3])
    engine.submit("actually it's other@example.com, 555 000 1111")
    assert engine.lead.email == "john@example.com"
    assert engine.lead.phone == "555 000 1111"


def test_generator_outage_falls_back_to_canned_questions():
    gen = FailingGenerator()
    engine = ConversationEngine(text_generator=gen, observer=EventLog("t"))
    engine.start()

    for text, expected in HAPPY_PATH:
        engine.submit(text)
        assert engine.stage == expected

    bot_texts = [m.text for m in engine.messages if m.sender == "bot"]
    assert flow_service.next_question(Stage.ASK_NAME) in bot_texts
    assert flow_service.next_question(Stage.ASK_PURPOSE) in bot_texts
    assert gen.calls == 4
    assert engine.error is None
    fallbacks = [e for e in engine.observer.collect_since(0) if e["type"] == event_bus.GENERATION_FALLBACK]
    assert len(fallbacks) == 4


def test_generator_request_payload():
    gen = RecordingGenerator()
    engine = ConversationEngine(text_generator=gen, history_window=2)
    engine.start()
    engine.submit("Hi")
    engine.submit("John Smith")

    req = gen.requests[-1]
    assert req.message == "John Smith"
    assert req.currentStage == Stage.ASK_EMAIL
    assert req.leadData.name == "John Smith"
    assert len(req.conversationHistory) == 2
    assert req.conversationHistory[-1].sender == "bot"
    assert flow_service.next_question(Stage.ASK_EMAIL) in req.systemPrompt
    assert engine.messages[-1].text.startswith("Lovely.")


def test_duplicate_bot_reply_is_suppressed():
    engine = ConversationEngine(text_generator=RecordingGenerator(reply="Tell me more!"))
    engine.start()

    assert [r.text for r in engine.submit("Hi")] == ["Tell me more!"]
    assert engine.submit("John Smith") == []
    assert engine.stage == Stage.ASK_EMAIL


def test_blank_input_is_a_noop(engine):
    before = engine.messages
    assert engine.submit("   ") is None
    assert engine.messages == before
    assert engine.lead.conversationLength == 0


def test_turn_in_flight_rejects_new_submission():
    def submit_again(eng):
        try:
            eng.submit("again")
        except TurnInFlight:
            return eng.loading, "busy"
        return eng.loading, "accepted"

    gen = ReentrantGenerator(submit_again)
    engine = ConversationEngine(text_generator=gen)
    gen.engine = engine
    engine.start()

    engine.submit("Hi")

    assert gen.result == (True, "busy")
    assert "again" not in [m.text for m in engine.messages]
    assert engine.loading is False
    assert engine.stage == Stage.ASK_NAME


def test_reset_during_generation_discards_reply():
    gen = ReentrantGenerator(lambda eng: eng.reset())
    engine = ConversationEngine(text_generator=gen)
    gen.engine = engine
    engine.start()

    assert engine.submit("Hi") is None
    assert engine.stage == Stage.GREETING
    assert [m.text for m in engine.messages] == [flow_service.GREETING_TEXT]
    assert engine.loading is False


def test_close_rejects_further_turns(engine):
    engine.close()
    assert engine.submit("Hi") is None


def test_advance_to_contact_form(engine):
    assert engine.advance_to_contact_form() is None

    _drive(engine, HAPPY_PATH)
    url = engine.advance_to_contact_form()

    assert url == "/contact?name=John+Smith&email=john%40example.com&phone=%2B1+555-123-4567&purpose=business"
    assert engine.stage == Stage.COMPLETE
    assert engine.submit("hello?") is None
    assert engine.advance_to_contact_form() is None


def test_turn_after_summary_offers_next_step(engine):
    _drive(engine, HAPPY_PATH)
    replies = engine.submit("sounds good")
    assert [r.text for r in replies] == [flow_service.next_question(Stage.SUMMARY)]
    assert engine.submit("ok") == []
    assert engine.stage == Stage.SUMMARY


def test_reset_after_summary(engine):
    _drive(engine, HAPPY_PATH)
    msgs = engine.reset()

    assert engine.stage == Stage.GREETING
    assert engine.lead == LeadRecord()
    assert len(msgs) == 1
    assert msgs[0].text == flow_service.GREETING_TEXT
    assert msgs[0].id == "0"


def test_state_survives_new_engine_via_store():
    kv = MemoryStore()
    first = ConversationEngine(store=ConversationSnapshotStore(kv, prefix="t"))
    first.start()
    _drive(first, HAPPY_PATH[:3])

    second = ConversationEngine(store=ConversationSnapshotStore(kv, prefix="t"))
    restored = second.start()

    assert second.stage == Stage.ASK_PHONE
    assert second.lead.email == "john@example.com"
    assert [m.text for m in restored] == [m.text for m in first.messages]
    second.submit("555 123 4567")
    assert int(second.messages[-1].id) == len(second.messages) - 1


def test_reset_clears_stored_snapshot():
    kv = MemoryStore()
    store = ConversationSnapshotStore(kv, prefix="t")
    engine = ConversationEngine(store=store)
    engine.start()
    _drive(engine, HAPPY_PATH)
    engine.reset()

    snapshot = store.load()
    assert snapshot["stage"] == Stage.GREETING
    assert snapshot["lead"] == LeadRecord()
    assert len(snapshot["messages"]) == 1


class BrokenKV:
    def load(self, key):
        return None

    def save(self, key, value):
        raise OSError("disk full")

    def delete(self, key):
        raise OSError("disk full")


def test_persistence_failure_does_not_fail_turn():
    events = EventLog("t")
    engine = ConversationEngine(store=ConversationSnapshotStore(BrokenKV()), observer=events)
    engine.start()
    engine.submit("Hi")
    engine.reset()

    assert engine.stage == Stage.GREETING
    assert any(e["type"] == event_bus.PERSIST_FAILED for e in events.collect_since(0))


def test_observer_errors_are_swallowed():
    class Exploding:
        def on_event(self, name, payload):
            raise ValueError(name)

    engine = ConversationEngine(observer=Exploding())
    engine.start()
    engine.submit("Hi")
    assert engine.stage == Stage.ASK_NAME


def test_observer_sees_stage_events():
    events = EventLog("t")
    engine = ConversationEngine(observer=events)
    engine.start()
    _drive(engine, HAPPY_PATH[:2])
    engine.submit("not an email")

    types = [e["type"] for e in events.collect_since(0)]
    assert types.count(event_bus.TURN_STARTED) == 3
    assert types.count(event_bus.STAGE_ADVANCED) == 2
    assert types[-1] == event_bus.VALIDATION_FAILED
