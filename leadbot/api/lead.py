from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse

from leadbot.core import config
from leadbot.models.chat import LeadSubmission
from leadbot.services import lead_service
from leadbot.services.lead_service import LeadRelayClient, LeadSubmissionError

logger = logging.getLogger("leadbot.api.lead")
router = APIRouter()

_relay: Optional[LeadRelayClient] = None


def get_relay_client() -> LeadRelayClient:
    global _relay
    if _relay is None:
        _relay = LeadRelayClient()
    return _relay


def _require_admin(authorization: Optional[str]) -> None:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Unauthorized")
    token = authorization.split(" ", 1)[1].strip()
    if not config.ADMIN_TOKEN or token != config.ADMIN_TOKEN:
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.post("", name="submit_lead")
def submit_lead(body: LeadSubmission, relay: LeadRelayClient = Depends(get_relay_client)):
    errors = lead_service.validate_submission(body)
    if errors:
        logger.info("POST /lead rejected errors=%d", len(errors))
        return JSONResponse(status_code=400, content={"error": "Validation failed", "details": errors})

    lead = lead_service.normalize_submission(body)

    # recorded only once delivered, so a retried 502 does not count twice
    if relay.configured:
        try:
            relay.submit(lead)
        except LeadSubmissionError as e:
            logger.warning("POST /lead relay failed status=%s", e.status_code)
            return JSONResponse(
                status_code=502,
                content={
                    "error": "Failed to submit lead. Please try again.",
                    "retryable": e.retryable,
                },
            )

    entry = lead_service.record_lead(lead)

    return JSONResponse(
        status_code=201,
        content={
            "success": True,
            "message": "Lead saved successfully",
            "leadId": entry["leadId"],
            "lead": {
                "name": lead.name,
                "email": lead.email,
                "phone": lead.phone,
                "purpose": lead.purpose,
            },
        },
    )


@router.get("", name="lead_stats")
def lead_stats(authorization: Optional[str] = Header(None)):
    _require_admin(authorization)
    s = lead_service.stats()
    logger.info("GET /lead total=%d", s["totalLeads"])
    return {"success": True, "message": "Lead stats endpoint", "stats": s}
