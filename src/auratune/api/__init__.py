"""API layer - FastAPI routers, schemas and dependencies."""

from auratune.api.routers import api_router, health_router

__all__ = ["api_router", "health_router"]
