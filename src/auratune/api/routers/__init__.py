"""API routers."""

from fastapi import APIRouter

from auratune.api.routers import (
    analytics,
    generation,
    health,
    player,
    playlists,
    settings,
    templates,
    tracks,
)

api_router = APIRouter()

api_router.include_router(generation.router, prefix="/generate", tags=["Generation"])
api_router.include_router(playlists.router, prefix="/playlists", tags=["Playlists"])
api_router.include_router(templates.router, prefix="/templates", tags=["Templates"])
api_router.include_router(settings.router, prefix="/settings", tags=["Settings"])
api_router.include_router(tracks.router, prefix="/tracks", tags=["Tracks"])
api_router.include_router(player.router, prefix="/player", tags=["Player"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["Analytics"])

# Health lives at /health (not under /api) so container probes don't depend on the API prefix.
health_router = health.router

__all__ = ["api_router", "health_router"]
