"""
GuestBoard - live guest counters from a reservation dashboard

Entry point for the FastAPI application.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from guestboard.config import AppConfig, get_config
from guestboard.logging import get_logger
from guestboard.routers import internal, pages, stats
from guestboard.services.clients.factory import build_upstream_client, require_credentials
from guestboard.services.errors import ConfigMissingError
from guestboard.services.retry import RetryPolicy
from guestboard.services.stats_cache import StatsCache
from guestboard.services.upstream import UpstreamClient
from guestboard.state import app_state

load_dotenv()

logger = get_logger(__name__)


def _init_config() -> None:
    """Load configuration and warn early about missing credentials."""
    app_state.config = get_config()
    logger.info(
        f"Using {app_state.config.upstream_client} upstream at {app_state.config.base_url}"
    )
    try:
        require_credentials(app_state.config)
    except ConfigMissingError as e:
        # Not fatal: /api/stats reports it on every request until fixed
        logger.warning(f"{e.message}, stats requests will fail")


def build_stats_cache(config: AppConfig, client: UpstreamClient) -> StatsCache:
    """Wire an upstream client behind the retry policy and the cache."""
    retry_policy = RetryPolicy(
        max_attempts=config.retry_max_attempts,
        delay_seconds=config.retry_delay_seconds,
        attempt_timeout=config.attempt_timeout_seconds,
    )

    async def fetch(key: str):
        return await client.fetch(date.fromisoformat(key))

    return StatsCache(
        fetch=fetch,
        retry_policy=retry_policy,
        wait_for_cold_fetch=config.cache_wait_for_cold_fetch,
    )


def _init_stats_cache() -> None:
    """Create the upstream client and the process-wide stats cache."""
    app_state.upstream_client = build_upstream_client(app_state.config)
    app_state.stats_cache = build_stats_cache(app_state.config, app_state.upstream_client)
    logger.info(
        f"Stats cache ready (ttl={app_state.config.cache_ttl_seconds}s, "
        f"attempts={app_state.config.retry_max_attempts})"
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - handles startup and shutdown."""
    _init_config()
    _init_stats_cache()

    yield

    if app_state.stats_cache is not None:
        await app_state.stats_cache.close()
    app_state.stats_cache = None
    app_state.upstream_client = None


app = FastAPI(
    title="GuestBoard",
    description="Live guest counters from a reservation dashboard",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(stats.router)
app.include_router(pages.router)
app.include_router(internal.router)
