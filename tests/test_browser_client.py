"""
Tests for the browser client - block parsing and session teardown.
"""
from datetime import date

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from guestboard.services.clients import browser as browser_module
from guestboard.services.clients.browser import BrowserClient, parse_guest_block, parse_total
from guestboard.services.errors import ErrorKind, UpstreamError
from guestboard.services.upstream import Counters


class TestParseGuestBlock:
    """Tests for the "inside / waiting" parser."""

    def test_pair_with_total(self):
        assert parse_guest_block("12 / 4", "всего 23") == Counters(inside=12, waiting=4, total=23)

    def test_total_falls_back_to_sum(self):
        assert parse_guest_block("12/4", "") == Counters(inside=12, waiting=4, total=16)

    def test_zero_values(self):
        assert parse_guest_block("0 / 0") == Counters(inside=0, waiting=0, total=0)

    def test_surrounding_text(self):
        assert parse_guest_block("Гости: 3 / 1 чел.", "5").waiting == 1

    def test_missing_pattern(self):
        with pytest.raises(UpstreamError) as exc_info:
            parse_guest_block("loading...")
        assert exc_info.value.kind is ErrorKind.PARSE_FAILED

    def test_parse_total(self):
        assert parse_total("1 024 гостя") == 1024
        assert parse_total("нет") is None
        assert parse_total("") is None


class FakePage:
    def __init__(self, block=None, goto_error=None, data_error=None, login_form=False):
        self.block = block
        self.goto_error = goto_error
        self.data_error = data_error
        self.login_form = login_form
        self.filled = {}
        self.clicked = []
        self.screenshots = []

    async def goto(self, url, **kwargs):
        self.url = url
        if self.goto_error:
            raise self.goto_error

    async def wait_for_selector(self, selector, **kwargs):
        if not self.login_form:
            raise PlaywrightTimeoutError("no login form")

    async def fill(self, selector, value):
        self.filled[selector] = value

    async def click(self, selector):
        self.clicked.append(selector)

    async def wait_for_function(self, expression, **kwargs):
        if self.data_error:
            raise self.data_error

    async def evaluate(self, expression, arg=None):
        return self.block

    async def screenshot(self, path, full_page=False):
        self.screenshots.append(path)


class FakeContext:
    def __init__(self, page):
        self.page = page
        self.closed = False

    async def add_init_script(self, script):
        pass

    async def new_page(self):
        return self.page

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, context):
        self.context = context
        self.closed = False

    async def new_context(self, **kwargs):
        return self.context

    async def close(self):
        self.closed = True
        # Closing a browser that already crashed raises; teardown must swallow it
        raise PlaywrightError("browser has been closed")


class FakePlaywright:
    def __init__(self, browser):
        self.chromium = self
        self.browser = browser

    async def launch(self, **kwargs):
        return self.browser

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


@pytest.fixture
def fake_session(monkeypatch):
    """Install a fake Playwright session built around the given page."""

    def _install(page: FakePage):
        context = FakeContext(page)
        browser = FakeBrowser(context)
        monkeypatch.setattr(browser_module, "async_playwright", lambda: FakePlaywright(browser))
        return context, browser

    return _install


def make_client(**kwargs) -> BrowserClient:
    return BrowserClient(
        base_url="http://cabinet.test",
        login="manager",
        password="secret",
        point_id="125021",
        **kwargs,
    )


class TestBrowserFetch:
    """Tests for BrowserClient.fetch with a fake Playwright session."""

    async def test_success_closes_session(self, fake_session):
        page = FakePage(block={"main": "10 / 3", "total": "всего 15"})
        context, browser = fake_session(page)

        counters = await make_client().fetch(date(2026, 10, 19))

        assert counters == Counters(inside=10, waiting=3, total=15)
        assert page.url == "http://cabinet.test/125021"
        assert context.closed and browser.closed

    async def test_logs_in_when_form_shown(self, fake_session):
        page = FakePage(block={"main": "1 / 1", "total": ""}, login_form=True)
        fake_session(page)

        await make_client().fetch(date(2026, 10, 19))

        assert page.filled == {"#login": "manager", "#password": "secret"}
        assert page.clicked == ['button[type="submit"]']

    async def test_navigation_timeout(self, fake_session):
        page = FakePage(goto_error=PlaywrightTimeoutError("goto timeout"))
        context, browser = fake_session(page)

        with pytest.raises(UpstreamError) as exc_info:
            await make_client().fetch(date(2026, 10, 19))

        assert exc_info.value.kind is ErrorKind.UNREACHABLE
        assert context.closed and browser.closed

    async def test_data_timeout_saves_screenshot(self, fake_session, tmp_path):
        page = FakePage(data_error=PlaywrightTimeoutError("never rendered"))
        context, browser = fake_session(page)

        with pytest.raises(UpstreamError) as exc_info:
            await make_client(screenshot_dir=str(tmp_path)).fetch(date(2026, 10, 19))

        assert exc_info.value.kind is ErrorKind.PARSE_FAILED
        assert exc_info.value.snapshot == page.screenshots[0]
        assert exc_info.value.snapshot.startswith(str(tmp_path))
        assert context.closed and browser.closed

    async def test_browser_error(self, fake_session):
        page = FakePage(goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))
        context, _ = fake_session(page)

        with pytest.raises(UpstreamError) as exc_info:
            await make_client().fetch(date(2026, 10, 19))

        assert exc_info.value.kind is ErrorKind.UNREACHABLE
        assert exc_info.value.snapshot is None
        assert context.closed

    async def test_missing_block(self, fake_session):
        fake_session(FakePage(block=None))

        with pytest.raises(UpstreamError) as exc_info:
            await make_client().fetch(date(2026, 10, 19))

        assert exc_info.value.kind is ErrorKind.PARSE_FAILED
