"""Health check endpoint. Public, no auth required."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from src.config import get_settings
from src.services.documents import get_document_store
from src.storage.service import get_storage

router = APIRouter(tags=["system"])
logger = logging.getLogger("healthpath.health")


@router.get("/health")
async def health_check() -> dict:
    """Liveness check. Returns 200 if the API process is up.

    Also pings the document store and reports which storage tier writes
    currently land in.
    """
    settings = get_settings()
    db_ok = False
    try:
        db_ok = await get_document_store().ping()
    except Exception as exc:
        logger.warning("Health check document store ping failed: %s", exc)

    storage = get_storage().status()

    return {
        "status": "healthy" if db_ok else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "database": "connected" if db_ok else "unreachable",
        "storage": {
            "secure": storage.secure,
            "persistent": storage.persistent,
            "memory": storage.memory,
            "preferred": storage.preferred,
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
