"""FastAPI application factory for AuraTune."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from auratune.api import api_router, health_router
from auratune.api.exception_handlers import register_exception_handlers
from auratune.config import Settings, get_settings
from auratune.infrastructure.lifecycle import lifespan
from auratune.infrastructure.observability import RequestLoggingMiddleware


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use instead of the environment (tests pass their own)

    Returns:
        Configured application; clients and DB are created in the lifespan
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="AI playlist generation and playback control for Spotify",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )
    # Hey future me, lifespan reads app.state.settings first, so create_app(test_settings)
    # really does run against the test DB and not whatever .env says.
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)

    app.include_router(api_router, prefix="/api")
    app.include_router(health_router, prefix="/health", tags=["Health"])

    return app


app = create_app()


def main() -> None:
    """Run the API with uvicorn (``auratune`` console script)."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "auratune.main:app",
        host=settings.api.host,
        port=settings.api.port,
        log_config=None,
    )
