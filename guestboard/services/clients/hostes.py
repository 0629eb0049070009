"""
Hostes dashboard client - JSON login followed by the booking filter API.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

import httpx

from guestboard.logging import get_logger
from guestboard.services.errors import ErrorKind, UpstreamError
from guestboard.services.upstream import Counters

logger = get_logger(__name__)

DEFAULT_STATUSES = ("WAIT_LIST", "NEW", "CONFIRMED")


def _status_error(stage: str, response: httpx.Response) -> UpstreamError:
    """Map a non-2xx upstream response to an UpstreamError."""
    status = response.status_code
    if status in (401, 403):
        kind = ErrorKind.AUTH_FAILED
    elif status >= 500:
        kind = ErrorKind.UNREACHABLE
    else:
        kind = ErrorKind.PARSE_FAILED
    return UpstreamError(kind, f"{stage} failed with HTTP {status}: {response.text[:500]}")


def _non_negative(value: Any, what: str) -> int:
    if value < 0:
        raise UpstreamError(ErrorKind.PARSE_FAILED, f"Negative {what} in booking filter response: {value}")
    return value


def extract_guests(payload: Any) -> int:
    """
    Pull the guest count out of a booking filter response.

    Prefers `data.statistics.all.guests`, falls back to summing
    `data.slots[].visitors`.

    Raises:
        UpstreamError: PARSE_FAILED if neither shape is present or a count is negative
    """
    data = payload.get("data") if isinstance(payload, dict) else None
    if not isinstance(data, dict):
        raise UpstreamError(ErrorKind.PARSE_FAILED, "Booking filter response has no 'data' object")

    statistics = data.get("statistics")
    overall = statistics.get("all") if isinstance(statistics, dict) else None
    guests = overall.get("guests") if isinstance(overall, dict) else None
    if isinstance(guests, int) and not isinstance(guests, bool):
        return _non_negative(guests, "guests")

    slots = data.get("slots")
    if isinstance(slots, list):
        total = 0
        for slot in slots:
            if not isinstance(slot, dict):
                continue
            try:
                visitors = int(slot.get("visitors") or 0)
            except (TypeError, ValueError):
                continue
            total += _non_negative(visitors, "visitors")
        return total

    raise UpstreamError(ErrorKind.PARSE_FAILED, "Cannot extract guests from booking filter response")


class HostesClient:
    """Reads the number of expected guests for a day from the Hostes API."""

    def __init__(
        self,
        base_url: str,
        login: str,
        password: str,
        restaurant_id: int,
        places: List[int],
        statuses: Optional[List[str]] = None,
        tenant: str = "resto-wrf",
        locale: str = "ru_RU",
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.login = login
        self.password = password
        self.restaurant_id = restaurant_id
        self.places = places
        self.statuses = list(statuses) if statuses else list(DEFAULT_STATUSES)
        self.tenant = tenant
        self.locale = locale
        self.timeout = timeout

    async def _authenticate(self, client: httpx.AsyncClient) -> str:
        response = await client.post(
            f"{self.base_url}/api/auth/login",
            json={
                "locale": self.locale,
                "tenant": self.tenant,
                "login": self.login,
                "password": self.password,
            },
            headers={
                "Accept": "*/*",
                "Origin": self.base_url,
                "Referer": f"{self.base_url}/login?redirectTo=/",
            },
        )
        if response.status_code >= 500:
            raise _status_error("Login", response)
        if not response.is_success:
            raise UpstreamError(
                ErrorKind.AUTH_FAILED,
                f"Login rejected with HTTP {response.status_code}: {response.text[:500]}",
            )

        try:
            token = (response.json().get("data") or {}).get("access_token")
        except (ValueError, AttributeError):
            token = None
        if not token:
            raise UpstreamError(ErrorKind.AUTH_FAILED, "No access_token in login response")
        return token

    async def _filter_bookings(self, client: httpx.AsyncClient, token: str, day: date) -> Dict[str, Any]:
        day_str = day.isoformat()
        response = await client.post(
            f"{self.base_url}/api/internal/v2/booking/filter",
            json={
                "restaurant_id": self.restaurant_id,
                "from": day_str,
                "to": day_str,
                "search_keyword": "",
                "sort": [
                    {"param": "date", "direction": "ASC"},
                    {"param": "time", "direction": "ASC"},
                ],
                "statuses": self.statuses,
                "management_tables": True,
                "places": self.places,
            },
            headers={
                "Accept": "*/*",
                "Origin": self.base_url,
                "Referer": f"{self.base_url}/dashboard",
                # Token goes in raw, the API rejects a "Bearer " prefix
                "authorization": token,
            },
        )
        if not response.is_success:
            raise _status_error("Booking filter", response)
        try:
            return response.json()
        except ValueError:
            raise UpstreamError(ErrorKind.PARSE_FAILED, "Booking filter response is not JSON")

    async def fetch(self, day: date) -> Counters:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                token = await self._authenticate(client)
                payload = await self._filter_bookings(client, token, day)
        except httpx.TimeoutException:
            raise UpstreamError(ErrorKind.UNREACHABLE, f"Timeout talking to {self.base_url}")
        except httpx.RequestError as e:
            raise UpstreamError(ErrorKind.UNREACHABLE, f"Connection error to {self.base_url}: {e}")

        try:
            counters = Counters(waiting=extract_guests(payload))
        except (AttributeError, TypeError, ValueError) as e:
            raise UpstreamError(ErrorKind.PARSE_FAILED, f"Unexpected booking filter response: {e}")
        logger.debug(f"Hostes reports {counters.waiting} guests for {day}")
        return counters
