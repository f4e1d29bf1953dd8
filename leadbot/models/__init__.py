from .lead import LEAD_FIELDS, LeadRecord, PriceRange, Stage, ValidationResult
from .chat import (
    SENDER_BOT,
    SENDER_USER,
    ChatMessage,
    ChatRequest,
    ConversationView,
    GenerationRequest,
    LeadSubmission,
    SessionRequest,
)

__all__ = [
    "LEAD_FIELDS", "LeadRecord", "PriceRange", "Stage", "ValidationResult",
    "SENDER_BOT", "SENDER_USER", "ChatMessage", "ChatRequest", "ConversationView",
    "GenerationRequest", "LeadSubmission", "SessionRequest",
]
