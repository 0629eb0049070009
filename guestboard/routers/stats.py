"""
Stats router - serves the cached guest counters.
"""
from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Dict, Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from guestboard.logging import get_logger, truncate
from guestboard.services.clients.factory import require_credentials
from guestboard.services.errors import BusyError, ConfigMissingError, UpstreamError
from guestboard.state import app_state

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["stats"])

# Longest error message shown to clients; the log keeps the full text
USER_MESSAGE_LIMIT = 200
BUSY_RETRY_AFTER_SECONDS = 5

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def resolve_day(date_param: Optional[str], timezone: str, now: Optional[datetime] = None) -> date:
    """
    Turn the `date` query parameter into a calendar day in the dashboard's time zone.

    Accepts "today" (also the default), "tomorrow" or an ISO date.

    Raises:
        ValueError: If the parameter is none of these
    """
    now = now or datetime.now(ZoneInfo(timezone))
    today = now.date()
    if date_param is None or date_param == "" or date_param == "today":
        return today
    if date_param == "tomorrow":
        return today + timedelta(days=1)
    if _DATE_PATTERN.match(date_param):
        return date.fromisoformat(date_param)
    raise ValueError(f"Invalid date: {date_param!r}")


def cache_control(ttl: float) -> str:
    """CDN hint mirroring the in-process cache policy."""
    max_age = int(ttl)
    return f"s-maxage={max_age}, stale-while-revalidate={max_age // 2}"


def _error(status_code: int, message: str, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": truncate(message, USER_MESSAGE_LIMIT)},
        headers=headers,
    )


@router.get(
    "/stats",
    responses={
        200: {
            "description": "Current guest counters",
            "content": {"application/json": {"example": {"date": "2026-10-19", "inside": 12, "waiting": 4, "total": 16}}},
        },
        400: {"description": "Invalid date parameter"},
        500: {"description": "Missing credentials or upstream failure"},
        503: {"description": "First fetch for this date still running, retry shortly"},
    },
)
async def get_stats(
    date_param: Optional[str] = Query(
        None,
        alias="date",
        description="`today` (default), `tomorrow` or `YYYY-MM-DD`",
    ),
) -> JSONResponse:
    """
    Get guest counters for a day.

    Counters are cached for the configured TTL. When a refresh fails and an
    older value exists, the older value is returned.
    """
    config = app_state.config
    cache = app_state.stats_cache
    if config is None or cache is None:
        logger.error("Stats cache not initialized")
        return _error(500, "Internal server error")

    try:
        day = resolve_day(date_param, config.stats_timezone)
    except ValueError as e:
        return _error(400, str(e))

    if getattr(app_state.upstream_client, "today_only", False) and day != resolve_day(None, config.stats_timezone):
        return _error(400, "This upstream only reports today's counters")

    try:
        require_credentials(config)
        counters = await cache.get(day.isoformat(), config.cache_ttl_seconds)
    except ConfigMissingError as e:
        logger.error(e.message)
        return _error(500, e.message)
    except BusyError as e:
        logger.info(e.message)
        return _error(503, e.message, headers={"Retry-After": str(BUSY_RETRY_AFTER_SECONDS)})
    except UpstreamError as e:
        logger.error(f"Failed to fetch counters for {day}: {e}")
        return _error(500, e.message)

    return JSONResponse(
        content={"date": day.isoformat(), **counters.to_dict()},
        headers={"Cache-Control": cache_control(config.cache_ttl_seconds)},
    )
