"""Shared fakes for the browser, page sessions and sub-tasks."""

import asyncio
from typing import Callable, List, Optional

import pytest

from sitecheck.browser_config import BrowserConfig
from sitecheck.infrastructure.browser_manager import BrowserManager


GOOD_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
<title>Example Domain - A Well Sized Title For Search Results</title>
<meta name="description" content="This example page exists to demonstrate a meta description that is long enough to pass the length check without being too long for results.">
<meta name="viewport" content="width=device-width, initial-scale=1">
<meta property="og:title" content="Example Domain">
<link rel="canonical" href="https://example.com/">
<link rel="icon" href="/favicon.ico">
<link rel="apple-touch-icon" href="/apple-touch-icon.png">
<script type="application/ld+json">{"@type": "Organization"}</script>
</head>
<body>
<h1>Example Domain</h1>
<h2>Details</h2>
<img src="/logo.png" alt="Logo">
<a href="/about">About</a>
</body>
</html>
"""

SECURE_HEADERS = {
    "content-type": "text/html",
    "strict-transport-security": "max-age=31536000",
    "x-content-type-options": "nosniff",
    "x-frame-options": "DENY",
}


class FakeResponse:
    def __init__(self, status: int = 200, headers: Optional[dict] = None):
        self.status = status
        self.headers = headers if headers is not None else dict(SECURE_HEADERS)


class FakePage:
    """Playwright Page stand-in driven by a navigate callback."""

    def __init__(self, browser: "FakeBrowser"):
        self.browser = browser
        self.url = "about:blank"
        self.handlers = {}
        self.navigation_timeout = None
        self.closed = False

    def on(self, event: str, handler: Callable) -> None:
        self.handlers[event] = handler

    def set_default_navigation_timeout(self, timeout: int) -> None:
        self.navigation_timeout = timeout

    async def goto(self, url: str, wait_until: str = "load", timeout: int = 0):
        self.browser.goto_calls.append((url, wait_until))
        response = await self.browser.navigate(self, url, wait_until)
        self.url = url
        return response

    async def wait_for_timeout(self, timeout: int) -> None:
        return None

    async def content(self) -> str:
        return self.browser.html

    async def close(self) -> None:
        self.closed = True


class FakeContext:
    def __init__(self, browser: "FakeBrowser", options: dict):
        self.browser = browser
        self.options = options
        self.closed = False

    async def new_page(self) -> FakePage:
        return FakePage(self.browser)

    async def close(self) -> None:
        self.closed = True
        self.browser.closed_contexts += 1


class FakeBrowser:
    """Playwright Browser stand-in that tracks its page sessions."""

    def __init__(self, html: str = GOOD_HTML, responses: Optional[List] = None):
        self.html = html
        self.connected = True
        self.contexts: List[FakeContext] = []
        self.closed_contexts = 0
        self.goto_calls = []
        # Each entry is a FakeResponse, an exception to raise, or a callable(page)
        self.responses = list(responses or [])

    def is_connected(self) -> bool:
        return self.connected

    async def new_context(self, **options) -> FakeContext:
        context = FakeContext(self, options)
        self.contexts.append(context)
        return context

    async def new_page(self) -> FakePage:
        return FakePage(self)

    async def navigate(self, page: FakePage, url: str, wait_until: str):
        outcome = self.responses.pop(0) if self.responses else FakeResponse()
        if callable(outcome) and not isinstance(outcome, FakeResponse):
            outcome = await outcome(page)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeLauncher:
    """BrowserLauncher that hands out FakeBrowsers."""

    def __init__(
        self,
        failures: int = 0,
        unhealthy: int = 0,
        launch_delay: float = 0.0,
        browser_factory: Optional[Callable[[], FakeBrowser]] = None,
    ):
        self.failures = failures
        self.unhealthy = unhealthy
        self.launch_delay = launch_delay
        self.browser_factory = browser_factory or FakeBrowser
        self.launch_calls = 0
        self.closed: List[FakeBrowser] = []
        self.browsers: List[FakeBrowser] = []
        self.shutdown_calls = 0

    async def launch(self) -> FakeBrowser:
        self.launch_calls += 1
        if self.launch_delay:
            await asyncio.sleep(self.launch_delay)
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError("Failed to launch chromium")
        browser = self.browser_factory()
        self.browsers.append(browser)
        return browser

    async def close(self, browser: FakeBrowser) -> None:
        browser.connected = False
        self.closed.append(browser)

    def is_connected(self, browser: FakeBrowser) -> bool:
        return browser.is_connected()

    async def check_health(self, browser: FakeBrowser) -> bool:
        if self.unhealthy > 0:
            self.unhealthy -= 1
            return False
        return True

    async def shutdown(self) -> None:
        self.shutdown_calls += 1


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def launcher():
    return FakeLauncher()


@pytest.fixture
def manager(launcher):
    return BrowserManager(launcher=launcher, backoff_base_seconds=0)


@pytest.fixture
def fast_config():
    return BrowserConfig(settle_delay=0, retry_delay=0)
