"""
Builds the configured upstream client.
"""
from __future__ import annotations

from guestboard.config import AppConfig
from guestboard.services.clients.browser import BrowserClient
from guestboard.services.clients.clientomer import ClientomerClient
from guestboard.services.clients.hostes import HostesClient
from guestboard.services.errors import ConfigMissingError
from guestboard.services.upstream import UpstreamClient


def require_credentials(config: AppConfig) -> None:
    """
    Fail fast when the credential pair is not configured.

    Raises:
        ConfigMissingError: If UPSTREAM_LOGIN or UPSTREAM_PASSWORD is not set
    """
    missing = [
        name
        for name, value in (
            ("UPSTREAM_LOGIN", config.upstream_login),
            ("UPSTREAM_PASSWORD", config.upstream_password),
        )
        if not value
    ]
    if config.upstream_client in ("clientomer", "browser") and not config.upstream_point_id:
        missing.append("UPSTREAM_POINT_ID")
    if missing:
        raise ConfigMissingError(f"Missing env: {'/'.join(missing)}")


def build_upstream_client(config: AppConfig) -> UpstreamClient:
    """Create the client selected by UPSTREAM_CLIENT."""
    if config.upstream_client == "hostes":
        return HostesClient(
            base_url=config.base_url,
            login=config.upstream_login,
            password=config.upstream_password,
            restaurant_id=config.upstream_restaurant_id,
            places=config.places,
            statuses=config.statuses,
            tenant=config.upstream_tenant,
            locale=config.upstream_locale,
            timeout=config.upstream_timeout_seconds,
        )
    if config.upstream_client == "clientomer":
        return ClientomerClient(
            base_url=config.base_url,
            login=config.upstream_login,
            password=config.upstream_password,
            point_id=config.upstream_point_id,
            statuses=config.statuses,
            timeout=config.upstream_timeout_seconds,
        )
    return BrowserClient(
        base_url=config.base_url,
        login=config.upstream_login,
        password=config.upstream_password,
        point_id=config.upstream_point_id,
        navigation_timeout=config.browser_navigation_timeout_seconds,
        login_timeout=config.browser_login_timeout_seconds,
        data_timeout=config.browser_data_timeout_seconds,
        screenshot_dir=config.browser_screenshot_dir or None,
        timezone_id=config.stats_timezone,
    )
