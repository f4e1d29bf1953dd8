from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from leadbot.models.chat import ChatRequest, ConversationView, SessionRequest
from leadbot.services.conversation_engine import TurnInFlight
from leadbot.services.session_service import SessionRegistry, get_registry

logger = logging.getLogger("leadbot.api.chat")
router = APIRouter()


def _view(registry: SessionRegistry, sid: str, **extra) -> ConversationView:
    st = registry.get(sid)
    return ConversationView(**st.engine.view(), **extra)


@router.post("/start", response_model=ConversationView, name="chat_start")
def start(body: SessionRequest, registry: SessionRegistry = Depends(get_registry)):
    engine = registry.get(body.sid).engine
    engine.start()
    logger.info("POST /chat/start sid=%s stage=%s", body.sid, engine.stage.value)
    return _view(registry, body.sid)


@router.post("/message", response_model=ConversationView, name="chat_message")
def message(req: ChatRequest, registry: SessionRegistry = Depends(get_registry)):
    engine = registry.get(req.sid).engine
    logger.info("POST /chat/message sid=%s len=%d", req.sid, len(req.message or ""))

    try:
        replies = engine.submit(req.message) or []
    except TurnInFlight:
        logger.info("turn rejected, busy sid=%s", req.sid)
        raise HTTPException(status_code=409, detail="A message is already being processed")

    logger.info("POST /chat/message sid=%s done stage=%s replies=%d", req.sid, engine.stage.value, len(replies))
    return _view(registry, req.sid, replies=replies)


@router.post("/advance", response_model=ConversationView, name="chat_advance")
def advance(body: SessionRequest, registry: SessionRegistry = Depends(get_registry)):
    engine = registry.get(body.sid).engine
    url = engine.advance_to_contact_form()
    if url is None:
        logger.warning("advance denied sid=%s stage=%s", body.sid, engine.stage.value)
        raise HTTPException(status_code=409, detail="Conversation is not at the summary step")
    logger.info("POST /chat/advance sid=%s url=%s", body.sid, url)
    return _view(registry, body.sid, contactUrl=url)


@router.post("/reset", response_model=ConversationView, name="chat_reset")
def reset(body: SessionRequest, registry: SessionRegistry = Depends(get_registry)):
    registry.get(body.sid).engine.reset()
    logger.info("POST /chat/reset sid=%s", body.sid)
    return _view(registry, body.sid)


@router.post("/close", name="chat_close")
def close(body: SessionRequest, registry: SessionRegistry = Depends(get_registry)):
    closed = registry.drop(body.sid)
    logger.info("POST /chat/close sid=%s closed=%s", body.sid, closed)
    return {"ok": True, "closed": closed}


@router.get("/state", response_model=ConversationView, name="chat_state")
def state(sid: str = Query(..., min_length=1), registry: SessionRegistry = Depends(get_registry)):
    return _view(registry, sid)


@router.get("/events", name="chat_events")
def events(
    sid: str = Query(..., min_length=1),
    since: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=200),
    registry: SessionRegistry = Depends(get_registry),
):
    st = registry.find(sid)
    if st is None:
        return {"ok": True, "events": [], "lastSeq": since}
    items = st.events.collect_since(since, limit=limit)
    last = items[-1]["_seq"] if items else since
    return {"ok": True, "events": items, "lastSeq": last}
