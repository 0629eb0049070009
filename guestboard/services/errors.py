"""
Error taxonomy for counter fetching.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    AUTH_FAILED = "auth_failed"
    UNREACHABLE = "unreachable"
    PARSE_FAILED = "parse_failed"
    CONFIG_MISSING = "config_missing"
    BUSY = "busy"


class StatsError(Exception):
    """Base class for every failure the stats endpoint can report."""

    kind: ErrorKind

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class UpstreamError(StatsError):
    """
    A single upstream attempt failed.

    `snapshot` optionally points at a debugging artifact (e.g. a screenshot
    taken by the browser client at the moment of failure).
    """

    def __init__(self, kind: ErrorKind, message: str, snapshot: Optional[str] = None):
        super().__init__(kind, message)
        self.snapshot = snapshot


class ConfigMissingError(StatsError):
    """Required credentials or identifiers are not configured."""

    def __init__(self, message: str):
        super().__init__(ErrorKind.CONFIG_MISSING, message)


class BusyError(StatsError):
    """A first fetch for this key is running and there is nothing stale to serve."""

    def __init__(self, key: str):
        super().__init__(ErrorKind.BUSY, f"Counters for {key} are being fetched, retry shortly")
        self.key = key
