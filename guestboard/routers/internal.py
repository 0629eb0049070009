"""
Internal router - health checks and cache metrics.
"""
from typing import Dict, List

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from guestboard.state import app_state

router = APIRouter(tags=["internal"])


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(example="healthy")


class CacheMetricsResponse(BaseModel):
    """How stats requests have been served since server start."""
    hits: int = Field(example=120, description="Requests answered from a fresh entry")
    misses: int = Field(example=4, description="Requests that started a refresh")
    stale_serves: int = Field(example=2, description="Requests answered with an expired entry")
    coalesced_waits: int = Field(example=1, description="Requests that waited on another caller's first fetch")
    fetch_failures: int = Field(example=1, description="Refreshes that failed after all retries")
    busy_rejections: int = Field(example=0, description="Requests rejected while a first fetch was running")


class CacheEntryResponse(BaseModel):
    """One cached date."""
    age_seconds: float = Field(example=42.5, description="Seconds since the entry was fetched")
    ttl_seconds: float = Field(example=300.0, description="TTL the entry was written with")
    updated_at: int = Field(example=1760889600, description="Unix time of the fetch")
    value: Dict[str, int] = Field(example={"inside": 12, "waiting": 4, "total": 16})


class CacheSnapshotResponse(BaseModel):
    """Cache contents and metrics."""
    metrics: CacheMetricsResponse
    in_flight: List[str] = Field(example=["2026-10-19"], description="Dates being refreshed right now")
    entries: Dict[str, CacheEntryResponse]


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check endpoint."""
    return HealthResponse(status="healthy")


@router.get("/internal/cache", response_model=CacheSnapshotResponse)
async def cache_snapshot() -> CacheSnapshotResponse:
    """
    Get cache metrics and the age of every cached date.

    - **metrics**: hit / miss / stale / wait / failure counters
    - **in_flight**: dates with a refresh running
    - **entries**: per-date age, TTL and cached counters
    """
    if app_state.stats_cache is None:
        raise HTTPException(status_code=503, detail="Stats cache not initialized")
    return await app_state.stats_cache.snapshot()
