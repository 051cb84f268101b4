"""HealthPath API: FastAPI application entry point.

Run locally:
    uvicorn src.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.config import Settings, get_settings
from src.cycle.config_loader import get_cycle_config
from src.middleware.auth import JWTAuthMiddleware
from src.routers import health, reminders, tracker, users
from src.services.documents import close_pool, init_pool
from src.storage.service import get_storage

# ---------- Logging ----------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger("healthpath")


# ---------- Lifespan ----------

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup / shutdown hooks."""
    settings: Settings = app.state.settings
    logger.setLevel(settings.log_level.upper())
    logger.info(
        "Starting HealthPath API v%s [%s]",
        settings.app_version,
        settings.environment,
    )
    get_cycle_config()
    get_storage().initialize()
    if settings.document_store == "postgres":
        await init_pool(settings)
    yield
    if settings.document_store == "postgres":
        await close_pool()
    logger.info("HealthPath API shut down")


# ---------- App factory ----------

def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title="HealthPath API",
        description=(
            "Health tracking backend: menstrual cycle predictions, day logs, "
            "mood, sleep, nutrition and activity tracking, reminders, partner sharing."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ---------- Middleware (last added runs outermost) ----------

    if settings.auth_jwks_url:
        app.add_middleware(JWTAuthMiddleware, settings=settings)
    else:
        logger.warning("AUTH_JWKS_URL not set, requests will not be authenticated")

    # CORS wraps auth so preflight requests are answered before token checks
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------- Health check (outside the v1 prefix, always at /health) ----------
    app.include_router(health.router)

    # ---------- API v1 routes ----------
    v1_prefix = "/api/v1"

    app.include_router(users.router, prefix=v1_prefix)
    app.include_router(tracker.router, prefix=v1_prefix)
    app.include_router(reminders.router, prefix=v1_prefix)

    return app


app = create_app()
