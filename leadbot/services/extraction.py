# leadbot/services/extraction.py
"""
Best-effort extraction of lead fields from free text.
Every extractor returns a value or None and never raises.
"""
from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")
PHONE_RE = re.compile(r"(?:\+?\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")

NAME_STOPWORDS = {"i'm", "i", "my", "name", "is", "am", "called", "please", "thanks"}
NAME_CUE_RE = re.compile(r"\b(?:i'm|i\s+am|my\s+name|name\s+is|called)\b", re.IGNORECASE)
MAX_NAME_TOKENS = 3
_EDGE_PUNCT = ".,;:!?\"()[]{}"

# Order matters: the first category with a hit wins.
PURPOSE_KEYWORDS: List[Tuple[str, List[str]]] = [
    ("portfolio", ["portfolio", "personal", "showcase", "resume", "cv"]),
    ("business", ["business", "company", "corporate", "website", "site"]),
    ("ecommerce", ["ecommerce", "e-commerce", "shop", "store", "product", "sell"]),
    ("webapp", ["app", "application", "web app", "platform", "saas", "service"]),
    ("mobile", ["mobile", "app", "ios", "android", "iphone"]),
    ("ai", ["ai", "artificial", "machine learning", "ml", "chatbot", "automation"]),
    ("data", ["data", "analytics", "dashboard", "visualization", "report"]),
    ("design", ["design", "ui", "ux", "branding", "logo", "creative"]),
]

# Keywords start on a word boundary and may carry a plural suffix ("apps", "businesses").
_PURPOSE_PATTERNS = [
    (purpose, [re.compile(r"\b" + re.escape(kw) + r"(?:e?s)?\b") for kw in keywords])
    for purpose, keywords in PURPOSE_KEYWORDS
]


def extract_email(text: str) -> Optional[str]:
    m = EMAIL_RE.search(text or "")
    return m.group(0) if m else None


def extract_phone(text: str) -> Optional[str]:
    m = PHONE_RE.search(text or "")
    return m.group(0).strip() if m else None


def extract_name(text: str) -> Optional[str]:
    """
    Drop filler words and contact details, keep at most three tokens,
    capitalize each. "i'm jane" -> "Jane".
    """
    if not text:
        return None
    cleaned = EMAIL_RE.sub(" ", text)
    cleaned = PHONE_RE.sub(" ", cleaned)

    words: List[str] = []
    for raw in cleaned.split():
        token = raw.strip(_EDGE_PUNCT)
        if not token or token.lower() in NAME_STOPWORDS:
            continue
        if not any(ch.isalpha() for ch in token):
            continue
        words.append(token)

    if not words:
        return None
    return " ".join(w[:1].upper() + w[1:].lower() for w in words[:MAX_NAME_TOKENS])


def has_name_cue(text: str) -> bool:
    return bool(NAME_CUE_RE.search(text or ""))


def detect_purpose(text: str) -> Optional[str]:
    lowered = (text or "").lower()
    for purpose, patterns in _PURPOSE_PATTERNS:
        if any(p.search(lowered) for p in patterns):
            return purpose
    return None


def extract_lead_data(text: str, *, expect_name: bool = False) -> Dict[str, str]:
    """
    Run every extractor over one message and return what was found.
    A name is only taken when one is being asked for or the message introduces one.
    """
    data: Dict[str, str] = {}

    email = extract_email(text)
    if email:
        data["email"] = email

    phone = extract_phone(text)
    if phone:
        data["phone"] = phone

    purpose = detect_purpose(text)
    if purpose:
        data["purpose"] = purpose

    if expect_name or has_name_cue(text):
        name = extract_name(text)
        if name and len(name) > 1:
            data["name"] = name

    return data
