import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from apps.api.errors import register_error_handlers
from apps.api.middlewares.metrics import MetricsMiddleware
from apps.api.routers import health, moderation, reports
from core import close_redis
from core.config import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    policy = settings.moderation_policy()
    logger.info(
        f"Moderation policy: auto_hide_enabled={policy.auto_hide_enabled}, "
        f"min_priority={policy.auto_hide_min_priority_tier}, min_reporters={policy.auto_hide_min_unique_reporters}"
    )
    yield
    # Shutdown
    await close_redis()


app = FastAPI(
    title="Moderation Signals API",
    description="Content reports, moderation queue and creator trust signals",
    version="0.1.0",
    lifespan=lifespan,
)

register_error_handlers(app)

# Middlewares
app.add_middleware(MetricsMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.is_development else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, prefix="/health", tags=["health"])
app.include_router(reports.router)  # Already has /reports prefix
app.include_router(moderation.router)  # Already has /admin/moderation prefix


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"status": "ok", "service": "moderation-signals"}


@app.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
