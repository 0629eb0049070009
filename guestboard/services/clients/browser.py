"""
Browser client - scrapes the Clientomer cabinet with a headless Chromium.

Used where the dashboard exposes the live "inside / waiting" numbers only in
its rendered page. Every fetch launches its own browser and closes it on the
way out, whatever happened in between.
"""
from __future__ import annotations

import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

from playwright.async_api import Browser, BrowserContext, Page, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from guestboard.logging import get_logger
from guestboard.services.errors import ErrorKind, UpstreamError
from guestboard.services.upstream import Counters

logger = get_logger(__name__)

GUEST_BLOCK_SELECTOR = ".guest-today__item-block"

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-web-security",
    "--disable-features=VizDisplayCompositor",
    "--disable-blink-features=AutomationControlled",
]

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

HIDE_AUTOMATION_JS = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
window.chrome = { runtime: {} };
"""

# Returns the first non-empty text node of the block and the total caption
READ_BLOCK_JS = """
(selector) => {
    const block = document.querySelector(selector);
    if (!block) return null;
    let main = "";
    for (const node of block.childNodes) {
        if (node.nodeType === Node.TEXT_NODE) {
            const text = (node.textContent || "").trim();
            if (text) { main = text; break; }
        }
    }
    const span = block.querySelector("span.d-block");
    return { main: main, total: span ? span.textContent.trim() : "" };
}
"""

DATA_READY_JS = """
(selector) => {
    const read = %s;
    const block = read(selector);
    return !!block && /(\\d+)\\s*\\/\\s*(\\d+)/.test(block.main);
}
""" % READ_BLOCK_JS.strip()

_PAIR_PATTERN = re.compile(r"(\d+)\s*/\s*(\d+)")


def parse_total(total_text: str) -> Optional[int]:
    """Digits of the total caption (e.g. "всего 23" -> 23), or None if there are none."""
    digits = re.sub(r"\D", "", total_text or "")
    return int(digits) if digits else None


def parse_guest_block(main_text: str, total_text: str = "") -> Counters:
    """
    Parse the guest block text.

    `main_text` holds "inside / waiting"; the total falls back to
    inside + waiting when its caption carries no number.

    Raises:
        UpstreamError: PARSE_FAILED if the "N / M" pattern is absent
    """
    match = _PAIR_PATTERN.search(main_text or "")
    if not match:
        raise UpstreamError(ErrorKind.PARSE_FAILED, f"No 'N / M' pattern in guest block: {main_text!r}")

    inside, waiting = int(match.group(1)), int(match.group(2))
    total = parse_total(total_text)
    return Counters(
        inside=inside,
        waiting=waiting,
        total=total if total is not None else inside + waiting,
    )


class BrowserClient:
    """Reads today's counters from the rendered cabinet page."""

    # The page only shows the current day
    today_only = True

    def __init__(
        self,
        base_url: str,
        login: str,
        password: str,
        point_id: str,
        navigation_timeout: float = 60.0,
        login_timeout: float = 10.0,
        data_timeout: float = 60.0,
        screenshot_dir: Optional[str] = None,
        timezone_id: str = "Europe/Moscow",
    ):
        self.base_url = base_url.rstrip("/")
        self.login = login
        self.password = password
        self.point_id = point_id
        self.navigation_timeout = navigation_timeout
        self.login_timeout = login_timeout
        self.data_timeout = data_timeout
        self.screenshot_dir = Path(screenshot_dir) if screenshot_dir else None
        self.timezone_id = timezone_id

    async def _new_context(self, browser: Browser) -> BrowserContext:
        context = await browser.new_context(
            viewport={"width": 1920, "height": 1080},
            user_agent=USER_AGENT,
            locale="ru-RU",
            timezone_id=self.timezone_id,
            permissions=["geolocation"],
            extra_http_headers={"Accept-Language": "ru-RU,ru;q=0.9,en-US;q=0.8,en;q=0.7"},
        )
        await context.add_init_script(HIDE_AUTOMATION_JS)
        return context

    async def _login(self, page: Page) -> None:
        try:
            await page.wait_for_selector("#login", timeout=self.login_timeout * 1000)
        except PlaywrightTimeoutError:
            logger.info("Login form not shown, assuming an existing session")
            return
        await page.fill("#login", self.login)
        await page.fill("#password", self.password)
        await page.click('button[type="submit"]')

    async def _screenshot(self, page: Optional[Page]) -> Optional[str]:
        """Save a full-page screenshot for debugging, if enabled."""
        if page is None or self.screenshot_dir is None:
            return None
        path = self.screenshot_dir / f"failure-{datetime.now():%Y%m%d-%H%M%S}.png"
        try:
            self.screenshot_dir.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(path), full_page=True)
        except (PlaywrightError, OSError) as e:
            logger.warning(f"Could not save failure screenshot: {e}")
            return None
        logger.info(f"Saved failure screenshot to {path}")
        return str(path)

    @staticmethod
    async def _close(context: Optional[BrowserContext], browser: Optional[Browser]) -> None:
        if context is not None:
            try:
                await context.close()
            except PlaywrightError as e:
                logger.warning(f"Failed to close browser context: {e}")
        if browser is not None:
            try:
                await browser.close()
            except PlaywrightError as e:
                logger.warning(f"Failed to close browser: {e}")

    async def _read_block(self, page: Page) -> Any:
        url = f"{self.base_url}/{self.point_id}"
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=self.navigation_timeout * 1000)
        except PlaywrightTimeoutError:
            raise UpstreamError(ErrorKind.UNREACHABLE, f"Timeout opening {url}", await self._screenshot(page))

        await self._login(page)

        try:
            await page.wait_for_function(
                DATA_READY_JS,
                arg=GUEST_BLOCK_SELECTOR,
                timeout=self.data_timeout * 1000,
                polling=2000,
            )
        except PlaywrightTimeoutError:
            raise UpstreamError(
                ErrorKind.PARSE_FAILED,
                f"Guest block never showed an 'N / M' value within {self.data_timeout}s",
                await self._screenshot(page),
            )

        return await page.evaluate(READ_BLOCK_JS, GUEST_BLOCK_SELECTOR)

    async def fetch(self, day: date) -> Counters:
        browser: Optional[Browser] = None
        context: Optional[BrowserContext] = None
        page: Optional[Page] = None

        async with async_playwright() as playwright:
            try:
                browser = await playwright.chromium.launch(headless=True, args=LAUNCH_ARGS)
                context = await self._new_context(browser)
                page = await context.new_page()
                raw = await self._read_block(page)
            except PlaywrightError as e:
                raise UpstreamError(ErrorKind.UNREACHABLE, f"Browser error: {e}", await self._screenshot(page))
            finally:
                await self._close(context, browser)

        if not raw:
            raise UpstreamError(ErrorKind.PARSE_FAILED, "Guest block not found on page")

        counters = parse_guest_block(raw.get("main", ""), raw.get("total", ""))
        logger.debug(f"Cabinet page reports {counters.to_dict()} for {day}")
        return counters
