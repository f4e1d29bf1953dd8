from __future__ import annotations

import logging
import sys

import pydantic
from fastapi import APIRouter, Depends

from leadbot import __version__
from leadbot.services.session_service import SessionRegistry, get_registry

logger = logging.getLogger("leadbot.api.health")
router = APIRouter()


@router.get("/ping")
def ping():
    logger.info("GET /health/ping")
    return {"ok": True, "version": __version__}


@router.get("/store")
def store_health(registry: SessionRegistry = Depends(get_registry)):
    store = registry.store
    s = store.stats() if store is not None and hasattr(store, "stats") else {"path": None, "keys": 0}
    logger.info("GET /health/store keys=%d", s["keys"])
    return {
        "ok": True,
        "path": s["path"],
        "keys": s["keys"],
        "python": sys.version.split()[0],
        "pydantic": getattr(pydantic, "__version__", "unknown"),
    }


@router.get("/sessions")
def sessions_health(registry: SessionRegistry = Depends(get_registry)):
    sessions = [st.to_dict() for st in registry.list_active()]
    logger.info("GET /health/sessions count=%d", len(sessions))
    return {"ok": True, "count": len(sessions), "sessions": sessions}
