"""
Application configuration from environment variables.
"""
from __future__ import annotations

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_UPSTREAM_URLS = {
    "hostes": "https://wrf.hostes.me",
    "clientomer": "https://cabinet.clientomer.ru",
    "browser": "https://cabinet.clientomer.ru",
}

# Attempt timeout used when none is configured
DEFAULT_ATTEMPT_TIMEOUT_SECONDS = 90.0
# Headroom on top of the browser's own waits for launch, screenshot and teardown
BROWSER_ATTEMPT_SLACK_SECONDS = 30.0


def split_csv(raw: str) -> List[str]:
    """Split a comma-separated env value, dropping blanks."""
    return [item.strip() for item in raw.split(",") if item.strip()]


class AppConfig(BaseSettings):
    upstream_client: Literal["hostes", "clientomer", "browser"] = "hostes"
    # Empty means "use the default URL for the selected client"
    upstream_url: str = ""
    upstream_login: str = ""
    upstream_password: str = ""
    upstream_point_id: str = "125021"
    upstream_tenant: str = "resto-wrf"
    upstream_locale: str = "ru_RU"
    upstream_restaurant_id: int = 3
    upstream_places: str = "7,133,348,349"
    # Empty means "use the client's own default statuses"
    upstream_statuses: str = ""
    upstream_timeout_seconds: float = 30.0

    browser_navigation_timeout_seconds: float = 60.0
    browser_login_timeout_seconds: float = 10.0
    browser_data_timeout_seconds: float = 60.0
    browser_screenshot_dir: str = ""

    stats_timezone: str = "Europe/Moscow"

    cache_ttl_seconds: float = 300.0
    cache_wait_for_cold_fetch: bool = True

    retry_max_attempts: int = 3
    retry_delay_seconds: float = 2.0
    # Unset picks a default that fits the selected client, 0 disables the timeout
    retry_attempt_timeout_seconds: Optional[float] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @model_validator(mode="after")
    def check_attempt_timeout(self) -> "AppConfig":
        timeout = self.retry_attempt_timeout_seconds
        if self.upstream_client == "browser" and timeout and timeout < self.browser_wait_seconds:
            raise ValueError(
                f"RETRY_ATTEMPT_TIMEOUT_SECONDS={timeout} is shorter than the browser waits "
                f"({self.browser_wait_seconds}s), every scrape would be cut off"
            )
        return self

    @property
    def browser_wait_seconds(self) -> float:
        """Longest time the browser client can spend waiting on the page."""
        return (
            self.browser_navigation_timeout_seconds
            + self.browser_login_timeout_seconds
            + self.browser_data_timeout_seconds
        )

    @property
    def attempt_timeout_seconds(self) -> Optional[float]:
        """Per-attempt timeout for the retry policy, None when disabled."""
        timeout = self.retry_attempt_timeout_seconds
        if timeout is None:
            if self.upstream_client == "browser":
                return self.browser_wait_seconds + BROWSER_ATTEMPT_SLACK_SECONDS
            return DEFAULT_ATTEMPT_TIMEOUT_SECONDS
        return timeout or None

    @property
    def base_url(self) -> str:
        return (self.upstream_url or DEFAULT_UPSTREAM_URLS[self.upstream_client]).rstrip("/")

    @property
    def places(self) -> List[int]:
        return [int(place) for place in split_csv(self.upstream_places) if place.isdigit() and int(place)]

    @property
    def statuses(self) -> List[str]:
        return split_csv(self.upstream_statuses)


@lru_cache
def get_config() -> AppConfig:
    return AppConfig()
