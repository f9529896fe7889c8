"""Health check"""

import logging

from fastapi import APIRouter

from copydesk.db import ping_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    try:
        await ping_db()
        database = "ok"
    except Exception as e:
        logger.warning(f"DB ping failed: {e}")
        database = "unreachable"
    return {"status": "ok", "database": database}
