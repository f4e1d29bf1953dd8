import logging

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from leadbot import __version__
from leadbot.api import chat, health, lead
from leadbot.core.config import CORS_ORIGINS, LOG_LEVEL
from leadbot.middleware.request_logger import RequestLoggerMiddleware

# ---- Logging config ---------------------------------------------------------
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s:%(lineno)d - %(message)s",
)
logger = logging.getLogger("leadbot.main")
logger.info("Starting lead capture backend v%s with LOG_LEVEL=%s", __version__, LOG_LEVEL)

# ---- FastAPI app ------------------------------------------------------------
app = FastAPI(title="Dark Nebula Lead Bot", version=__version__)
app.add_middleware(RequestLoggerMiddleware)

# ---- CORS -------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---- Routers ----------------------------------------------------------------
app.include_router(chat.router,   prefix="/chat",   tags=["Chat"])
app.include_router(lead.router,   prefix="/lead",   tags=["Lead"])
app.include_router(health.router, prefix="/health", tags=["Health"])

logger.info("Routers registered.")


def run() -> None:
    uvicorn.run("leadbot.main:app", host="0.0.0.0", port=8000, log_level=LOG_LEVEL.lower())
