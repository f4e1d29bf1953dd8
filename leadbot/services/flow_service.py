# leadbot/services/flow_service.py
from __future__ import annotations

from typing import Dict, List, Optional
from urllib.parse import urlencode

from leadbot.core.config import BRAND_NAME, CONTACT_PATH
from leadbot.models.lead import LEAD_FIELDS, LeadRecord, Stage
from leadbot.services import pricing_service

# ---------- stage order ----------
STAGE_FIELDS: Dict[Stage, str] = {
    Stage.ASK_NAME: "name",
    Stage.ASK_EMAIL: "email",
    Stage.ASK_PHONE: "phone",
    Stage.ASK_PURPOSE: "purpose",
}

_FIELD_STAGES: Dict[str, Stage] = {field: stage for stage, field in STAGE_FIELDS.items()}

PROGRESS_STAGES: List[Stage] = [
    Stage.GREETING,
    Stage.ASK_NAME,
    Stage.ASK_EMAIL,
    Stage.ASK_PHONE,
    Stage.ASK_PURPOSE,
    Stage.SUMMARY,
]

# ---------- copy ----------
GREETING_TEXT = (
    f"Hey there! 👋 I'm {BRAND_NAME}'s virtual consultant. I'd love to learn about your "
    "project and see how we can help. What's your name?"
)

# Question asked when a stage is entered.
QUESTIONS: Dict[Stage, str] = {
    Stage.GREETING: GREETING_TEXT,
    Stage.ASK_NAME: "What's your name? This helps me personalize our conversation.",
    Stage.ASK_EMAIL: "Thanks! Now, what's the best email address to reach you?",
    Stage.ASK_PHONE: "Got it! What's the best phone number to reach you?",
    Stage.ASK_PURPOSE: (
        "Perfect! Now tell me, what type of project are you looking to build? "
        "(e.g., portfolio, business website, e-commerce store, web app, mobile app, "
        "AI/ML solution, data dashboard)"
    ),
    Stage.SUMMARY: (
        "Ready to get started? Click below to go to our contact form where we can "
        "discuss your project in detail."
    ),
    Stage.COMPLETE: "Thank you for chatting with us!",
}

# Re-prompt when the stage's field is still missing after a turn.
MISSING_PROMPTS: Dict[Stage, str] = {
    Stage.ASK_NAME: "Please tell me your name so I can personalize our conversation.",
    Stage.ASK_EMAIL: "I'll need your email to send project details and updates.",
    Stage.ASK_PHONE: "What's the best phone number to reach you?",
    Stage.ASK_PURPOSE: "What type of project are you looking to build?",
}

STEP_LABELS: Dict[Stage, str] = {
    Stage.GREETING: "Getting Started",
    Stage.ASK_NAME: "Your Name",
    Stage.ASK_EMAIL: "Your Email",
    Stage.ASK_PHONE: "Your Phone",
    Stage.ASK_PURPOSE: "Your Project",
    Stage.SUMMARY: "Confirmation",
    Stage.COMPLETE: "Complete",
}

for _table in (QUESTIONS, STEP_LABELS):
    _missing = set(Stage) - set(_table)
    if _missing:
        raise RuntimeError(f"stage table incomplete: {sorted(s.value for s in _missing)}")


# ---------- resolver ----------
def next_stage(lead: LeadRecord) -> Stage:
    """First stage whose field is still missing; SUMMARY once all four are known."""
    for field in LEAD_FIELDS:
        if not getattr(lead, field):
            return _FIELD_STAGES[field]
    return Stage.SUMMARY


def field_for_stage(stage: Stage) -> Optional[str]:
    return STAGE_FIELDS.get(stage)


def next_question(stage: Stage) -> str:
    return QUESTIONS[stage]


def missing_field_prompt(stage: Stage) -> str:
    return MISSING_PROMPTS.get(stage, QUESTIONS[stage])


def progress_fraction(stage: Stage) -> float:
    if stage == Stage.COMPLETE:
        return 1.0
    return (PROGRESS_STAGES.index(stage) + 1) / len(PROGRESS_STAGES)


def step_label(stage: Stage) -> str:
    return STEP_LABELS[stage]


# ---------- output ----------
def build_summary(lead: LeadRecord) -> str:
    lines = [
        "Great! Here's what I've gathered:",
        "",
        f"👤 Name: {lead.name or '—'}",
        f"📧 Email: {lead.email or '—'}",
        f"📞 Phone: {lead.phone or '—'}",
        f"🎯 Project: {lead.purpose or '—'}",
    ]
    rng = pricing_service.price_range(lead.purpose)
    if rng:
        lines += [
            "",
            "💰 Estimated Budget Range:",
            pricing_service.format_range_lakh(rng),
            "(This is a ballpark estimate - we'll refine it during consultation)",
        ]
    return "\n".join(lines)


def build_contact_url(lead: LeadRecord, base_path: str = CONTACT_PATH) -> str:
    params = [(f, getattr(lead, f)) for f in LEAD_FIELDS if getattr(lead, f)]
    return f"{base_path}?{urlencode(params)}" if params else base_path
