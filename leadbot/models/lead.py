# leadbot/models/lead.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

LEAD_FIELDS = ("name", "email", "phone", "purpose")


class Stage(str, Enum):
    GREETING = "GREETING"
    ASK_NAME = "ASK_NAME"
    ASK_EMAIL = "ASK_EMAIL"
    ASK_PHONE = "ASK_PHONE"
    ASK_PURPOSE = "ASK_PURPOSE"
    SUMMARY = "SUMMARY"
    COMPLETE = "COMPLETE"


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(True)

    @classmethod
    def fail(cls, error: str) -> "ValidationResult":
        return cls(False, error)


class PriceRange(BaseModel):
    min: int
    max: int
    currency: str = "INR"


class LeadRecord(BaseModel):
    """
    Accumulating fact sheet about one visitor.
    Fields are only ever filled in; a confirmed value is never cleared by a later turn.
    """
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    purpose: Optional[str] = None
    conversationLength: int = 0
    timestamp: Optional[datetime] = None

    def missing_fields(self) -> List[str]:
        return [f for f in LEAD_FIELDS if not getattr(self, f)]

    def is_complete(self) -> bool:
        return not self.missing_fields()

    def merged(self, extracted: Dict[str, str]) -> "LeadRecord":
        """Copy with absent fields filled from `extracted` (first write wins)."""
        updates = {
            k: v for k, v in extracted.items()
            if k in LEAD_FIELDS and v and not getattr(self, k)
        }
        return self.model_copy(update=updates)

    def new_fields(self, other: "LeadRecord") -> List[str]:
        """Fields present here but absent on `other`."""
        return [f for f in LEAD_FIELDS if getattr(self, f) and not getattr(other, f)]

    def contact_fields(self) -> Dict[str, str]:
        return {f: getattr(self, f) for f in LEAD_FIELDS if getattr(self, f)}
