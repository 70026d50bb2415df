"""Application lifecycle management for startup and shutdown tasks.

This module handles the FastAPI lifespan context manager: logging, database
setup and seeding, and the shared Spotify/OpenRouter clients.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI

from auratune.application.cache import SpotifyCache
from auratune.config import Settings, get_settings
from auratune.domain.entities import CuratedTemplate, SystemPrompt
from auratune.domain.exceptions import ConfigurationError
from auratune.infrastructure.integrations import OpenRouterClient, SpotifyClient
from auratune.infrastructure.observability import configure_logging
from auratune.infrastructure.persistence import (
    CuratedTemplateRepository,
    Database,
    SystemPromptRepository,
)

logger = logging.getLogger(__name__)

DEFAULT_TRACK_MATCH_PROMPT = (
    "You are a music curator with deep knowledge of every genre and era. Given a seed "
    "song, suggest real, released songs that share its mood, tempo, instrumentation and "
    "style. Mix well-known and lesser-known artists, avoid repeating the seed song, and "
    "never invent songs that do not exist."
)
DEFAULT_NAMING_PROMPT = (
    "You are a creative playlist editor. Write a short, catchy playlist name (at most "
    "100 characters) and an engaging one or two sentence description (at most 300 "
    "characters) that captures the mood of the tracks and theme you are given."
)

# (name, description, system prompt)
DEFAULT_TEMPLATES: tuple[tuple[str, str, str], ...] = (
    (
        "Sunset Chill",
        "Warm, mellow tracks for winding down as the sun goes down.",
        "You are a music curator. Suggest real, released songs with a relaxed, warm, "
        "downtempo feel: chillwave, soft indie, mellow soul and lo-fi.",
    ),
    (
        "Morning Focus",
        "Calm, mostly instrumental music to get deep work done.",
        "You are a music curator. Suggest real, released songs that help concentration: "
        "ambient, modern classical, post-rock and instrumental electronica.",
    ),
    (
        "Workout Energy",
        "High-tempo tracks to keep the pace up at the gym.",
        "You are a music curator. Suggest real, released high-energy songs above 120 BPM: "
        "hip-hop, EDM, pop-punk and rock anthems.",
    ),
    (
        "Rainy Day Blues",
        "Introspective songs for grey afternoons.",
        "You are a music curator. Suggest real, released melancholic and introspective "
        "songs: singer-songwriter, blues, slowcore and dream pop.",
    ),
)


def _validate_sqlite_path(settings: Settings) -> None:
    """Make sure the SQLite file's directory exists before the engine is created."""
    db_path = settings.get_sqlite_db_path()
    if db_path is None:
        return
    try:
        if db_path.parent and str(db_path.parent) != ".":
            db_path.parent.mkdir(parents=True, exist_ok=True)
            logger.debug("Ensured SQLite parent directory exists: %s", db_path.parent)
    except OSError as exc:
        raise ConfigurationError(
            f"Unable to create SQLite database directory '{db_path.parent}': {exc}. "
            "Update DATABASE_URL or adjust directory permissions."
        ) from exc


# Hey future me, seeding is idempotent: prompts are looked up by name (active or not, so an
# admin who deactivated one doesn't get it back on restart) and templates are only added to an
# EMPTY template table. Never overwrite rows here.
async def seed_defaults(db: Database, settings: Settings) -> None:
    """Insert the required system prompts and starter templates if missing."""
    async with db.session_scope() as session:
        prompts = SystemPromptRepository(session)
        for name, content in (
            (settings.generation.track_match_prompt_name, DEFAULT_TRACK_MATCH_PROMPT),
            (settings.generation.naming_prompt_name, DEFAULT_NAMING_PROMPT),
        ):
            if not await prompts.exists(name):
                await prompts.add(SystemPrompt(id=str(uuid4()), name=name, content=content))
                logger.info("Seeded system prompt %r", name)

        templates = CuratedTemplateRepository(session)
        if not await templates.list_active():
            for name, description, system_prompt in DEFAULT_TEMPLATES:
                await templates.add(
                    CuratedTemplate(
                        id=str(uuid4()),
                        name=name,
                        description=description,
                        system_prompt=system_prompt,
                    )
                )
            logger.info("Seeded %d curated templates", len(DEFAULT_TEMPLATES))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown tasks including:
    - Logging configuration
    - Database initialization and seeding
    - Shared Spotify client (with response cache) and text generator
    - Resource cleanup
    """
    settings: Settings = getattr(app.state, "settings", None) or get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_format=settings.observability.json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting application: %s", settings.app_name)
    sweeper: asyncio.Task[None] | None = None

    try:
        _validate_sqlite_path(settings)

        db = Database(settings)
        app.state.db = db
        await db.create_tables()
        logger.info("Database initialized: %s", settings.database.url)

        await seed_defaults(db, settings)

        cache = (
            SpotifyCache(default_ttl=settings.cache.ttl_seconds)
            if settings.cache.enabled
            else None
        )
        app.state.spotify_cache = cache
        if cache is not None:
            sweeper = asyncio.create_task(
                cache.sweep_forever(settings.cache.cleanup_interval_seconds),
                name="spotify-cache-sweep",
            )
        app.state.spotify_client = SpotifyClient(
            settings.spotify, retry_settings=settings.retry, cache=cache
        )
        app.state.text_generator = OpenRouterClient(settings.openrouter)
        if not settings.openrouter.is_configured:
            logger.warning(
                "OPENROUTER_API_KEY is not set; playlist generation will be unavailable"
            )

        yield

    except Exception as e:
        logger.exception("Error during application startup: %s", e)
        raise
    finally:
        logger.info("Shutting down application")

        if sweeper is not None:
            sweeper.cancel()
            await asyncio.gather(sweeper, return_exceptions=True)

        for attr in ("spotify_client", "text_generator"):
            client = getattr(app.state, attr, None)
            if client is None:
                continue
            try:
                await client.close()
                logger.info("%s closed", attr)
            except Exception as e:
                logger.exception("Error closing %s: %s", attr, e)

        try:
            if hasattr(app.state, "db"):
                await app.state.db.close()
                logger.info("Database connection closed")
        except Exception as e:
            logger.exception("Error closing database: %s", e)
