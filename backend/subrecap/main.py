"""SubRecap API: FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map SubRecapError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Twitch client and cache store factory created in lifespan, closed on shutdown
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from subrecap.api.error_handlers import register_error_handlers
from subrecap.api.routes import aggregate, generate, health
from subrecap.config import Settings, get_settings
from subrecap.core.domain_types import CacheBackend
from subrecap.infrastructure.cache_store import InMemoryStoreFactory, RedisStoreFactory
from subrecap.infrastructure.observability import setup_logging
from subrecap.infrastructure.twitch_client import ResilientTwitchClient

logger = logging.getLogger(__name__)


def build_store_factory(settings: Settings):
    """Concrete cache store selected by settings.cache_backend."""
    if settings.cache_backend == CacheBackend.MEMORY:
        return InMemoryStoreFactory()
    return RedisStoreFactory(
        settings.redis_url,
        prefix=settings.cache_key_prefix,
        ttl_seconds=settings.cache_ttl_seconds,
    )


def build_twitch_client(settings: Settings) -> ResilientTwitchClient:
    return ResilientTwitchClient(
        client_id=settings.twitch_client_id,
        helix_base_url=settings.helix_base_url,
        gql_endpoint=settings.gql_endpoint,
        max_retries=settings.http_max_retries,
        base_delay_ms=settings.http_base_delay_ms,
        max_delay_ms=settings.http_max_delay_ms,
        timeout_seconds=settings.http_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    app.state.store_factory = build_store_factory(settings)
    app.state.twitch = build_twitch_client(settings)
    logger.info(f"SubRecap API started (cache={settings.cache_backend.value})")
    yield
    await app.state.twitch.aclose()
    logger.info("SubRecap API shutting down")


app = FastAPI(
    title="SubRecap API", version="1.0.0", lifespan=lifespan,
)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(generate.router)
app.include_router(aggregate.router)

register_error_handlers(app)
