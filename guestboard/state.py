"""
Application state - shared state initialized at startup.
"""
from __future__ import annotations

from guestboard.config import AppConfig
from guestboard.services.stats_cache import StatsCache
from guestboard.services.upstream import UpstreamClient


class AppState:
    """
    Application state container.
    Initialized at startup via lifespan, read by the routers.
    """

    def __init__(self):
        self.config: AppConfig | None = None
        self.upstream_client: UpstreamClient | None = None
        self.stats_cache: StatsCache | None = None


app_state = AppState()
