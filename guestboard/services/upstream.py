"""
Upstream contract - the counters record and the client protocol.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from typing import Dict, Optional, Protocol

# JSON names the dashboard wall and older clients read
WIRE_NAMES = {"bookings_5_to_7": "bookings5to7", "bookings_8_plus": "bookings8plus"}


@dataclass(frozen=True)
class Counters:
    """Guest counters reported by the reservation dashboard."""
    waiting: int
    inside: Optional[int] = None
    total: Optional[int] = None
    bookings_5_to_7: Optional[int] = None
    bookings_8_plus: Optional[int] = None

    def __post_init__(self):
        for name, value in asdict(self).items():
            if value is not None and value < 0:
                raise ValueError(f"Counter '{name}' must be non-negative, got {value}")

    def to_dict(self) -> Dict[str, int]:
        return {
            WIRE_NAMES.get(name, name): value
            for name, value in asdict(self).items()
            if value is not None
        }


class UpstreamClient(Protocol):
    """
    Performs one raw attempt to read the counters for a given day.

    Implementations raise UpstreamError on any failure and never retry;
    any session they open must be released before returning.
    """

    async def fetch(self, day: date) -> Counters:
        ...
