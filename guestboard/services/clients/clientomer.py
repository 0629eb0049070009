"""
Clientomer cabinet client - form login, session cookie, reserves API.
"""
from __future__ import annotations

import time
from datetime import date
from typing import Any, Iterable, List, Optional

import httpx

from guestboard.logging import get_logger
from guestboard.services.errors import ErrorKind, UpstreamError
from guestboard.services.upstream import Counters

logger = get_logger(__name__)

DEFAULT_STATUSES = ("new", "waiting", "confirmed")


def summarize_reserves(reserves: Iterable[Any], day: date, statuses: Iterable[str]) -> Counters:
    """
    Aggregate the reserves list for one day.

    Only reserves whose `estimated_time` falls on `day` and whose
    `inner_status` is one of `statuses` are counted.

    Raises:
        UpstreamError: PARSE_FAILED if a counted reserve has a negative `guests_count`
    """
    wanted = set(statuses)
    day_str = day.isoformat()
    guests_total = 0
    matched = 0
    parties_5_to_7 = 0
    parties_8_plus = 0

    for reserve in reserves:
        if not isinstance(reserve, dict):
            continue
        estimated = str(reserve.get("estimated_time") or "")
        if estimated.split("T")[0] != day_str or reserve.get("inner_status") not in wanted:
            continue
        try:
            guests = int(reserve.get("guests_count") or 0)
        except (TypeError, ValueError):
            guests = 0
        if guests < 0:
            raise UpstreamError(ErrorKind.PARSE_FAILED, f"Negative guests_count in reserve: {guests}")
        matched += 1
        guests_total += guests
        if 5 <= guests <= 7:
            parties_5_to_7 += 1
        elif guests >= 8:
            parties_8_plus += 1

    return Counters(
        waiting=guests_total,
        total=matched,
        bookings_5_to_7=parties_5_to_7,
        bookings_8_plus=parties_8_plus,
    )


class ClientomerClient:
    """Reads today's (or any day's) reserves from the Clientomer cabinet API."""

    def __init__(
        self,
        base_url: str,
        login: str,
        password: str,
        point_id: str,
        statuses: Optional[List[str]] = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.login = login
        self.password = password
        self.point_id = point_id
        self.statuses = list(statuses) if statuses else list(DEFAULT_STATUSES)
        self.timeout = timeout

    @property
    def point_url(self) -> str:
        return f"{self.base_url}/{self.point_id}"

    async def _authenticate(self, client: httpx.AsyncClient) -> str:
        response = await client.post(
            f"{self.point_url}/jlogin",
            data={"login": self.login, "password": self.password, "point": self.point_id},
            headers={"Referer": f"{self.point_url}/"},
        )
        if response.status_code >= 500:
            raise UpstreamError(ErrorKind.UNREACHABLE, f"Login failed with HTTP {response.status_code}")

        set_cookie = response.headers.get("set-cookie")
        cookie = set_cookie.split(";")[0].strip() if set_cookie else ""
        if not cookie:
            raise UpstreamError(ErrorKind.AUTH_FAILED, "No session cookie in login response")
        return cookie

    async def fetch(self, day: date) -> Counters:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                cookie = await self._authenticate(client)
                response = await client.post(
                    f"{self.point_url}/reserves.api.guestsreserves",
                    params={"timestamp": int(time.time() * 1000)},
                    headers={
                        "Cookie": cookie,
                        "X-Requested-With": "XMLHttpRequest",
                        "Referer": f"{self.point_url}/",
                    },
                )
        except httpx.TimeoutException:
            raise UpstreamError(ErrorKind.UNREACHABLE, f"Timeout talking to {self.base_url}")
        except httpx.RequestError as e:
            raise UpstreamError(ErrorKind.UNREACHABLE, f"Connection error to {self.base_url}: {e}")

        if response.status_code in (401, 403):
            raise UpstreamError(ErrorKind.AUTH_FAILED, f"Session rejected with HTTP {response.status_code}")
        if response.status_code >= 500:
            raise UpstreamError(ErrorKind.UNREACHABLE, f"Reserves API failed with HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError:
            raise UpstreamError(ErrorKind.PARSE_FAILED, "Reserves API response is not JSON")

        if not isinstance(payload, dict) or payload.get("status") != "success":
            status = payload.get("status") if isinstance(payload, dict) else None
            raise UpstreamError(ErrorKind.PARSE_FAILED, f"Reserves API returned status {status!r}")

        data = payload.get("data") or {}
        if not isinstance(data, dict):
            raise UpstreamError(ErrorKind.PARSE_FAILED, "Reserves API response has no data object")
        reserves = data.get("reserves") or []
        if not isinstance(reserves, list):
            raise UpstreamError(ErrorKind.PARSE_FAILED, "Reserves API response has no reserves list")
        try:
            counters = summarize_reserves(reserves, day, self.statuses)
        except (AttributeError, TypeError, ValueError) as e:
            raise UpstreamError(ErrorKind.PARSE_FAILED, f"Unexpected reserves API response: {e}")
        logger.debug(f"Clientomer reports {counters.to_dict()} for {day}")
        return counters
