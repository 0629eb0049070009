#!/usr/bin/env python3
"""
Mock Hostes dashboard for running GuestBoard locally.

Implements the two endpoints the hostes client calls:
- POST /api/auth/login               - returns an access token
- POST /api/internal/v2/booking/filter - returns guest statistics

Every call fails with HTTP 503 with probability FAILURE_RATE, so retries
and stale-serving can be watched in the GuestBoard log.

Run with: python scripts/mock_upstream.py
Then:     UPSTREAM_URL=http://localhost:9001 UPSTREAM_LOGIN=demo UPSTREAM_PASSWORD=demo \
          uvicorn guestboard.main:app
"""
from __future__ import annotations

import asyncio
import random
from datetime import datetime

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

FAILURE_RATE = 0.3
TOKEN = "mock-access-token"

app = FastAPI(title="Mock Hostes Dashboard", description="Flaky test upstream for GuestBoard")


def log_request(endpoint: str, detail: str):
    timestamp = datetime.now().strftime("%H:%M:%S")
    print(f"[{timestamp}] {endpoint.upper()} | {detail}")


def flaky_failure(endpoint: str) -> JSONResponse | None:
    if random.random() < FAILURE_RATE:
        log_request(endpoint, "simulated outage")
        return JSONResponse({"error": "service unavailable"}, status_code=503)
    return None


@app.post("/api/auth/login")
async def login(request: Request):
    """Accept any non-empty credentials."""
    failure = flaky_failure("login")
    if failure:
        return failure

    data = await request.json()
    if not data.get("login") or not data.get("password"):
        log_request("login", "rejected empty credentials")
        return JSONResponse({"error": "invalid credentials"}, status_code=401)

    log_request("login", f"tenant={data.get('tenant')} login={data.get('login')}")
    return {"data": {"access_token": TOKEN}}


@app.post("/api/internal/v2/booking/filter")
async def booking_filter(request: Request):
    """Return a random guest count for the requested day after a short delay."""
    if request.headers.get("authorization") != TOKEN:
        return JSONResponse({"error": "unauthorized"}, status_code=401)

    failure = flaky_failure("filter")
    if failure:
        return failure

    data = await request.json()
    await asyncio.sleep(random.uniform(0.2, 1.5))
    guests = random.randint(0, 60)
    log_request("filter", f"date={data.get('from')} places={data.get('places')} -> {guests} guests")
    return {"data": {"statistics": {"all": {"guests": guests}}}}


@app.get("/health")
async def health():
    """Health check."""
    return {"status": "healthy", "server": "mock-upstream"}


if __name__ == "__main__":
    print("\nMock Hostes Dashboard")
    print("=" * 50)
    print("Listening on http://localhost:9001")
    print(f"Failure rate: {FAILURE_RATE:.0%}")
    print("=" * 50 + "\n")

    uvicorn.run(app, host="127.0.0.1", port=9001, log_level="warning")
