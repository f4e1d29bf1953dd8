# leadbot/services/lead_service.py
import logging
import re
import threading
import time
from collections import Counter
from typing import Dict, List, Optional

import requests

from leadbot.core import config
from leadbot.models.chat import LeadSubmission
from leadbot.services.validation import validate_email, validate_name, validate_phone

logger = logging.getLogger("leadbot.leads")


class LeadSubmissionError(Exception):
    """The form relay rejected or never received the lead. Safe to retry."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = True


# In-memory record of leads received by this process
_leads: List[Dict] = []
_lock = threading.Lock()


def _now() -> int:
    return int(time.time())


# -------------------
# Validation
# -------------------
def validate_submission(payload: LeadSubmission) -> List[str]:
    errors: List[str] = []
    if not validate_name(payload.name).is_valid:
        errors.append("Name must be at least 2 characters")
    if not (payload.email or "").strip():
        errors.append("Valid email is required")
    elif not validate_email(payload.email).is_valid:
        errors.append("Invalid email format")
    if not (payload.phone or "").strip():
        errors.append("Phone number is required")
    elif not validate_phone(payload.phone).is_valid:
        errors.append("Phone must contain at least 10 digits")
    return errors


def normalize_submission(payload: LeadSubmission) -> LeadSubmission:
    purpose = (payload.purpose or "").strip() or None
    message = (payload.message or "").strip() or None
    return LeadSubmission(
        name=payload.name.strip(),
        email=payload.email.strip().lower(),
        phone=payload.phone.strip(),
        purpose=purpose,
        message=message,
        source=(payload.source or "chatbot").strip() or "chatbot",
        conversationLength=max(0, payload.conversationLength or 0),
    )


# -------------------
# Registry
# -------------------
def record_lead(lead: LeadSubmission) -> Dict:
    entry = {
        "leadId": f"lead_{int(time.time() * 1000)}",
        "receivedAt": _now(),
        **lead.model_dump(),
    }
    with _lock:
        _leads.append(entry)
    logger.info("[LEAD] received id=%s source=%s purpose=%s", entry["leadId"], lead.source, lead.purpose)
    return entry


def get_all_leads() -> List[Dict]:
    with _lock:
        return list(_leads)


def stats(week_secs: int = 7 * 24 * 3600, month_secs: int = 30 * 24 * 3600) -> Dict:
    now = _now()
    with _lock:
        leads = list(_leads)
    by_purpose = Counter((l.get("purpose") or "unknown") for l in leads)
    return {
        "totalLeads": len(leads),
        "leadsThisWeek": sum(1 for l in leads if now - l["receivedAt"] <= week_secs),
        "leadsThisMonth": sum(1 for l in leads if now - l["receivedAt"] <= month_secs),
        "byPurpose": dict(by_purpose),
    }


def clear_all() -> None:
    """Utility for tests."""
    with _lock:
        _leads.clear()


# -------------------
# Form relay
# -------------------
class LeadRelayClient:
    """Fire-and-forget POST of a lead to a third-party form endpoint."""

    def __init__(self, url: str = config.LEAD_RELAY_URL, session: Optional[requests.Session] = None):
        self.url = url
        self._session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.url)

    def submit(self, lead: LeadSubmission) -> None:
        if not self.url:
            raise LeadSubmissionError("lead relay url is not configured")
        body = lead.model_dump(exclude_none=True)
        try:
            resp = self._session.post(
                self.url,
                json=body,
                headers={"Accept": "application/json"},
                timeout=(config.CONNECT_TIMEOUT, config.READ_TIMEOUT),
            )
        except requests.RequestException as e:
            logger.error("lead relay error: %r", e)
            raise LeadSubmissionError("could not reach the lead relay") from e

        if not 200 <= resp.status_code < 300:
            logger.warning("lead relay HTTP %s: %s", resp.status_code, resp.text[:300])
            raise LeadSubmissionError(f"lead relay answered {resp.status_code}", status_code=resp.status_code)
        logger.info("lead relayed email_domain=%s", _email_domain(lead.email))


def _email_domain(email: str) -> str:
    m = re.search(r"@(.+)$", email or "")
    return m.group(1) if m else "-"
