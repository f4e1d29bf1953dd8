# leadbot/models/chat.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .lead import LeadRecord, Stage

SENDER_USER = "user"
SENDER_BOT = "bot"

Sender = Literal["user", "bot"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatMessage(BaseModel):
    id: str
    text: str
    sender: Sender
    timestamp: datetime = Field(default_factory=_utcnow)
    stage: Stage = Stage.GREETING


class _FlexibleModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class SessionRequest(_FlexibleModel):
    sid: str = Field(..., min_length=1)


class ChatRequest(_FlexibleModel):
    sid: str = Field(..., min_length=1)
    message: str = ""


class GenerationRequest(BaseModel):
    """Payload handed to the text-generation collaborator."""
    message: str
    conversationHistory: List[ChatMessage] = []
    leadData: LeadRecord = Field(default_factory=LeadRecord)
    currentStage: Stage
    systemPrompt: str


class LeadSubmission(_FlexibleModel):
    name: str = ""
    email: str = ""
    phone: str = ""
    purpose: Optional[str] = None
    message: Optional[str] = None
    source: str = "chatbot"
    conversationLength: int = 0


class ConversationView(BaseModel):
    sid: str
    messages: List[ChatMessage]
    lead: LeadRecord
    stage: Stage
    loading: bool
    error: Optional[str] = None
    progress: float
    currentStep: str
    replies: List[ChatMessage] = []
    contactUrl: Optional[str] = None
