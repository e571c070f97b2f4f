"""
Page fetching through the shared Playwright browser.

This module provides a PageFetcher that borrows the shared browser from the
BrowserManager, opens an isolated page session per fetch and returns the
rendered HTML together with response metadata and script errors.
"""
import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from sitecheck.browser_config import BrowserConfig, DEFAULT_BROWSER_CONFIG
from sitecheck.errors import NavigationError, NavigationErrorKind
from sitecheck.infrastructure.browser_manager import BrowserManager
from sitecheck.models import FetchResult

logger = logging.getLogger(__name__)


# Network error tokens reported by Chromium, mapped to their cause
_NETWORK_ERROR_KINDS = [
    ("ERR_NAME_NOT_RESOLVED", NavigationErrorKind.DNS_RESOLUTION),
    ("ERR_NAME_RESOLUTION_FAILED", NavigationErrorKind.DNS_RESOLUTION),
    ("ENOTFOUND", NavigationErrorKind.DNS_RESOLUTION),
    ("ERR_CONNECTION_REFUSED", NavigationErrorKind.CONNECTION_REFUSED),
    ("ECONNREFUSED", NavigationErrorKind.CONNECTION_REFUSED),
    ("ERR_CONNECTION_RESET", NavigationErrorKind.CONNECTION_RESET),
    ("ERR_CONNECTION_CLOSED", NavigationErrorKind.CONNECTION_RESET),
    ("ERR_EMPTY_RESPONSE", NavigationErrorKind.CONNECTION_RESET),
    ("ERR_CERT_", NavigationErrorKind.CERTIFICATE),
    ("ERR_SSL_", NavigationErrorKind.CERTIFICATE),
    ("ERR_BAD_SSL_CLIENT_AUTH_CERT", NavigationErrorKind.CERTIFICATE),
    ("Target closed", NavigationErrorKind.TARGET_CLOSED),
    ("has been closed", NavigationErrorKind.TARGET_CLOSED),
    ("ERR_TIMED_OUT", NavigationErrorKind.TIMEOUT),
    ("ERR_CONNECTION_TIMED_OUT", NavigationErrorKind.TIMEOUT),
]


def classify_navigation_error(error: Exception, url: str) -> NavigationError:
    """
    Map a browser-level failure to a typed NavigationError.

    Args:
        error: Exception raised by Playwright during navigation
        url: URL being fetched

    Returns:
        NavigationError carrying the failure kind and original message
    """
    message = str(error)
    if isinstance(error, PlaywrightTimeoutError):
        return NavigationError(NavigationErrorKind.TIMEOUT, url, message)

    for token, kind in _NETWORK_ERROR_KINDS:
        if token in message:
            return NavigationError(kind, url, message)

    return NavigationError(NavigationErrorKind.UNKNOWN, url, message)


@dataclass
class PageSession:
    """An isolated browser context and page used by exactly one fetch."""

    context: Any
    page: Any
    console_errors: List[str] = field(default_factory=list)

    def record_page_error(self, error: Any) -> None:
        """Listener for uncaught script errors raised by the page."""
        message = getattr(error, "message", None) or str(error)
        self.console_errors.append(message)


class PageFetcher:
    """
    Fetches rendered pages using the shared browser.

        fetcher = PageFetcher(manager)
        result = await fetcher.fetch("https://example.com")

    Features:
    - One isolated context per attempt, always closed
    - Load-condition ladder across navigation retries
    - HTTP error pages returned rather than raised
    - Uncaught script error capture
    """

    def __init__(
        self,
        manager: BrowserManager,
        config: Optional[BrowserConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize the page fetcher.

        Args:
            manager: Source of the shared browser
            config: BrowserConfig with viewport, timeouts and retry settings
            sleep: Coroutine used to wait between retries
        """
        self.manager = manager
        self._config = config or DEFAULT_BROWSER_CONFIG
        self._sleep = sleep

    @asynccontextmanager
    async def open_session(self, browser: Any) -> AsyncIterator[PageSession]:
        """
        Open an isolated page session on the shared browser.

        The context is closed on every exit path, including errors and
        cancellation, so no page is ever left behind in the shared browser.

        Args:
            browser: Browser returned by BrowserManager.acquire()

        Yields:
            PageSession with error capture already attached
        """
        context_options: dict[str, Any] = {
            "viewport": dict(self._config.viewport),
            "ignore_https_errors": self._config.ignore_https_errors,
        }
        if self._config.user_agent:
            context_options["user_agent"] = self._config.user_agent

        context = await browser.new_context(**context_options)
        try:
            page = await context.new_page()
            page.set_default_navigation_timeout(self._config.navigation_timeout)

            session = PageSession(context=context, page=page)
            page.on("pageerror", session.record_page_error)
            yield session
        finally:
            try:
                await context.close()
            except Exception as e:
                logger.warning(f"Error closing page session: {e}")

    async def fetch(self, url: str) -> FetchResult:
        """
        Fetch a URL with full JavaScript rendering.

        Args:
            url: URL to fetch

        Returns:
            FetchResult with rendered HTML, headers, status and script errors

        Raises:
            BrowserLaunchError: If the shared browser is unavailable
            NavigationError: If every navigation attempt failed
        """
        attempts = self._config.max_navigation_attempts
        start_time = time.time()
        last_error: Optional[NavigationError] = None

        for attempt in range(attempts):
            wait_until = self._config.wait_until_for_attempt(attempt)
            browser = await self.manager.acquire()

            try:
                result = await self._fetch_once(browser, url, wait_until)
            except NavigationError as e:
                last_error = e
                logger.warning(
                    f"Navigation attempt {attempt + 1}/{attempts} failed for {url} "
                    f"(wait_until={wait_until}, kind={e.kind.value}): {e.cause}"
                )
                if attempt + 1 < attempts:
                    await self._sleep(self._config.retry_delay)
                continue

            result.attempts = attempt + 1
            result.load_time = time.time() - start_time
            logger.info(
                f"Fetch complete: {url} (status={result.status_code}, "
                f"time={result.load_time:.2f}s, attempts={result.attempts})"
            )
            return result

        logger.error(f"Giving up on {url} after {attempts} attempts: {last_error.details}")
        raise last_error

    async def _fetch_once(self, browser: Any, url: str, wait_until: str) -> FetchResult:
        try:
            async with self.open_session(browser) as session:
                page = session.page
                response = await page.goto(
                    url,
                    wait_until=wait_until,
                    timeout=self._config.navigation_timeout,
                )
                if response is None:
                    raise NavigationError(NavigationErrorKind.NO_RESPONSE, url)

                status_code = response.status
                if status_code >= 400:
                    logger.warning(
                        f"{url} responded with HTTP {status_code}; analyzing the error page"
                    )

                # Give late script errors a chance to surface
                if self._config.settle_delay:
                    await page.wait_for_timeout(self._config.settle_delay)

                html = await page.content()
                headers = {key.lower(): value for key, value in dict(response.headers).items()}
                return FetchResult(
                    url=url,
                    final_url=page.url,
                    html=html,
                    status_code=status_code,
                    headers=headers,
                    console_errors=list(session.console_errors),
                    wait_until=wait_until,
                )
        except PlaywrightError as e:
            # Includes failures opening the session on a browser that has gone away
            raise classify_navigation_error(e, url) from e
