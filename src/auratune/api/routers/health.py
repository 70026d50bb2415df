"""Health check endpoints for Docker/Kubernetes probes."""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

router = APIRouter()
logger = logging.getLogger(__name__)


class HealthStatus(BaseModel):
    """Overall health status response."""

    status: str = Field(description="healthy, degraded or unhealthy")
    timestamp: str = Field(description="ISO timestamp of health check")
    checks: dict[str, Any] = Field(default_factory=dict)


class LivenessStatus(BaseModel):
    """Simple liveness probe response."""

    status: str
    timestamp: str


def _now() -> str:
    return datetime.now(UTC).isoformat()


@router.get("/live", response_model=LivenessStatus)
async def liveness_probe() -> LivenessStatus:
    """Liveness probe: the process is up and serving requests."""
    return LivenessStatus(status="alive", timestamp=_now())


# Hey future me, DB down = unhealthy (503), missing OpenRouter key = degraded (200). Without
# an LLM key the player and history still work, only generation is off.
@router.get("", response_model=HealthStatus)
async def health_check(request: Request) -> JSONResponse:
    """Check database connectivity and external service configuration."""
    checks: dict[str, Any] = {}

    db = getattr(request.app.state, "db", None)
    database_ok = False
    if db is not None:
        try:
            async with db.session_scope() as session:
                await session.execute(text("SELECT 1"))
            database_ok = True
        except SQLAlchemyError as e:
            logger.warning("Health check database probe failed: %s", e)
    checks["database"] = {"ok": database_ok}

    generator = getattr(request.app.state, "text_generator", None)
    llm_ok = bool(generator is not None and generator.settings.is_configured)
    checks["text_generator"] = {"ok": llm_ok}

    cache = getattr(request.app.state, "spotify_cache", None)
    if cache is not None:
        checks["spotify_cache"] = cache.get_stats()

    if not database_ok:
        overall, code = "unhealthy", 503
    elif not llm_ok:
        overall, code = "degraded", 200
    else:
        overall, code = "healthy", 200

    body = HealthStatus(status=overall, timestamp=_now(), checks=checks)
    return JSONResponse(status_code=code, content=body.model_dump())
