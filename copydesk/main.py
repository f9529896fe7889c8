"""
Copydesk - Main Application Entry Point

Usage:
    uvicorn copydesk.main:app --host 0.0.0.0 --port 3000
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from copydesk.config import settings
from copydesk.db import init_db
from copydesk.api import chat_router, billing_router, voice_router, health_router

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - runs on startup and shutdown"""
    logger.info(f"{settings.app_name} starting up...")
    await init_db()
    logger.info("Database initialized")

    from copydesk.services.llm_service import get_llm_service
    if not get_llm_service().is_configured:
        logger.warning("OPENAI_API_KEY not set: replies use the fallback echo")

    yield

    # Let detached voice learning finish before the loop closes
    from copydesk.services.chat_service import get_chat_orchestrator
    await get_chat_orchestrator().drain()
    logger.info(f"{settings.app_name} shut down")


app = FastAPI(
    title=settings.app_name,
    description="Conversational copywriting assistant",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chat_router)
app.include_router(billing_router)
app.include_router(voice_router)
app.include_router(health_router)
