"""
Shared Browser Management.

This module owns the lifecycle of the single browser process shared by all
page fetches: lazy launch, liveness validation, idle recycling and
retry-with-backoff on launch failure.

The launch, health and close operations are delegated to a BrowserLauncher so
tests can substitute fakes for Playwright.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Callable, Optional, Protocol

from playwright.async_api import async_playwright

from sitecheck.browser_config import BrowserConfig, DEFAULT_BROWSER_CONFIG
from sitecheck.constants import (
    DEFAULT_INIT_WAIT_SECONDS,
    DEFAULT_MAX_IDLE_SECONDS,
    DEFAULT_MAX_LAUNCH_ATTEMPTS,
    EXPONENTIAL_BACKOFF_BASE,
    INITIAL_BACKOFF_DELAY_SECONDS,
)
from sitecheck.errors import BrowserLaunchError

logger = logging.getLogger(__name__)


class BrowserHealth(Enum):
    """Shared browser health status."""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    INITIALIZING = "initializing"
    STOPPED = "stopped"


@dataclass
class ManagerStatus:
    """Snapshot of the browser manager state."""
    health: BrowserHealth
    connected: bool
    is_initializing: bool
    launch_count: int
    consecutive_failures: int
    idle_seconds: Optional[float]
    uptime_seconds: Optional[float]
    max_idle_seconds: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "health": self.health.value,
            "connected": self.connected,
            "isInitializing": self.is_initializing,
            "launchCount": self.launch_count,
            "consecutiveFailures": self.consecutive_failures,
            "idleSeconds": self.idle_seconds,
            "uptimeSeconds": self.uptime_seconds,
            "maxIdleSeconds": self.max_idle_seconds,
        }


class BrowserLauncher(Protocol):
    """Capabilities the manager needs from a browser backend."""

    async def launch(self) -> Any: ...

    async def close(self, browser: Any) -> None: ...

    def is_connected(self, browser: Any) -> bool: ...

    async def check_health(self, browser: Any) -> bool: ...

    async def shutdown(self) -> None: ...


class PlaywrightLauncher:
    """BrowserLauncher backed by Playwright Chromium."""

    def __init__(self, config: Optional[BrowserConfig] = None):
        self.config = config or DEFAULT_BROWSER_CONFIG
        self._playwright = None

    async def launch(self) -> Any:
        """Start Playwright if needed and launch a headless Chromium."""
        if self._playwright is None:
            self._playwright = await async_playwright().start()

        return await self._playwright.chromium.launch(
            headless=self.config.headless,
            args=self.config.launch_args,
            timeout=self.config.launch_timeout,
        )

    async def close(self, browser: Any) -> None:
        await browser.close()

    def is_connected(self, browser: Any) -> bool:
        return browser.is_connected()

    async def check_health(self, browser: Any) -> bool:
        """Open and close a blank page to prove the browser is usable."""
        page = await browser.new_page()
        await page.close()
        return browser.is_connected()

    async def shutdown(self) -> None:
        """Stop the Playwright driver."""
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            finally:
                self._playwright = None


class BrowserManager:
    """
    Manages the single browser instance shared across requests.

    Usage:
        manager = BrowserManager()
        browser = await manager.acquire()
        ...
        await manager.close()

    The browser is not checked out exclusively: concurrent callers share it
    and open their own page sessions. Only (re)initialization is serialized.
    """

    def __init__(
        self,
        launcher: Optional[BrowserLauncher] = None,
        max_idle_seconds: float = DEFAULT_MAX_IDLE_SECONDS,
        max_launch_attempts: int = DEFAULT_MAX_LAUNCH_ATTEMPTS,
        backoff_base_seconds: float = INITIAL_BACKOFF_DELAY_SECONDS,
        init_wait_timeout: float = DEFAULT_INIT_WAIT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the browser manager.

        Args:
            launcher: Browser backend (defaults to Playwright Chromium)
            max_idle_seconds: Idle time after which the browser is recycled
            max_launch_attempts: Launch attempts before failing the request
            backoff_base_seconds: Delay after the first failed attempt, doubled each time
            init_wait_timeout: Longest a caller waits for another caller's initialization
            clock: Monotonic time source
        """
        if max_launch_attempts < 1:
            raise ValueError("max_launch_attempts must be at least 1")

        self.launcher = launcher or PlaywrightLauncher()
        self.max_idle_seconds = max_idle_seconds
        self.max_launch_attempts = max_launch_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self.init_wait_timeout = init_wait_timeout
        self._clock = clock

        self._browser: Any = None
        self._lock = asyncio.Lock()
        self._initializing = False
        self._last_used: Optional[float] = None
        self._launched_at: Optional[float] = None
        self._launch_count = 0
        self._consecutive_failures = 0

    async def acquire(self) -> Any:
        """
        Return a live shared browser, launching or recycling it if needed.

        Raises:
            BrowserLaunchError: If no healthy browser could be launched
        """
        if self._needs_new_browser():
            async with self._locked():
                # Another caller may have finished initialization while we waited
                if self._needs_new_browser():
                    await self._initialize()

        browser = self._browser
        if browser is None or not self._is_connected(browser):
            raise BrowserLaunchError("Browser is not available or connected")

        self._last_used = self._clock()
        return browser

    async def restart(self) -> bool:
        """
        Force-recycle the shared browser.

        Returns:
            Whether the new browser is healthy
        """
        async with self._locked():
            logger.info("Restarting shared browser on request")
            await self._initialize()
        self._last_used = self._clock()
        return await self.is_healthy()

    async def close(self) -> None:
        """
        Close the shared browser and stop the backend.

        Close failures are logged, never raised.
        """
        await self._close_current()
        try:
            await self.launcher.shutdown()
        except Exception as e:
            logger.warning(f"Error shutting down browser backend: {e}")
        logger.info("Browser manager closed")

    async def is_healthy(self) -> bool:
        """Whether a connected browser currently exists."""
        return self._browser is not None and self._is_connected(self._browser)

    def get_status(self) -> ManagerStatus:
        """Get current manager status."""
        now = self._clock()
        connected = self._browser is not None and self._is_connected(self._browser)

        if self._initializing:
            health = BrowserHealth.INITIALIZING
        elif connected:
            health = BrowserHealth.HEALTHY
        elif self._browser is None and self._consecutive_failures == 0:
            health = BrowserHealth.STOPPED
        else:
            health = BrowserHealth.UNHEALTHY

        return ManagerStatus(
            health=health,
            connected=connected,
            is_initializing=self._initializing,
            launch_count=self._launch_count,
            consecutive_failures=self._consecutive_failures,
            idle_seconds=round(now - self._last_used, 3) if self._last_used is not None else None,
            uptime_seconds=round(now - self._launched_at, 3) if self._launched_at is not None else None,
            max_idle_seconds=self.max_idle_seconds,
        )

    @property
    def is_initializing(self) -> bool:
        return self._initializing

    @property
    def launch_count(self) -> int:
        """Number of successful launches so far."""
        return self._launch_count

    def _needs_new_browser(self) -> bool:
        if self._browser is None or not self._is_connected(self._browser):
            return True
        if self._last_used is not None:
            return self._clock() - self._last_used > self.max_idle_seconds
        return False

    def _is_connected(self, browser: Any) -> bool:
        try:
            return bool(self.launcher.is_connected(browser))
        except Exception:
            return False

    @asynccontextmanager
    async def _locked(self) -> AsyncIterator[None]:
        """Hold the initialization lock, waiting at most init_wait_timeout for it."""
        try:
            async with asyncio.timeout(self.init_wait_timeout):
                await self._lock.acquire()
        except TimeoutError:
            raise BrowserLaunchError(
                "Timed out waiting for browser initialization",
                details=f"Browser initialization did not finish within {self.init_wait_timeout}s",
            )
        try:
            yield
        finally:
            self._lock.release()

    async def _initialize(self) -> None:
        """Replace the current browser. Caller must hold the lock."""
        self._initializing = True
        try:
            await self._close_current()

            last_error: Optional[str] = None
            for attempt in range(1, self.max_launch_attempts + 1):
                logger.info(
                    f"Launching new browser instance "
                    f"(attempt {attempt}/{self.max_launch_attempts})..."
                )
                try:
                    browser = await self.launcher.launch()
                except Exception as e:
                    last_error = str(e) or type(e).__name__
                    self._consecutive_failures += 1
                    logger.error(f"Browser launch attempt {attempt} failed: {last_error}")
                else:
                    if await self._verify(browser):
                        self._browser = browser
                        self._launched_at = self._clock()
                        self._launch_count += 1
                        self._consecutive_failures = 0
                        logger.info("Browser launched successfully")
                        return

                    last_error = "browser failed its health check after launch"
                    self._consecutive_failures += 1
                    logger.error(f"Browser launch attempt {attempt} failed: {last_error}")
                    await self._safe_close(browser)

                if attempt < self.max_launch_attempts:
                    delay = self.backoff_base_seconds * EXPONENTIAL_BACKOFF_BASE ** (attempt - 1)
                    logger.debug(f"Retrying browser launch in {delay:.1f}s")
                    await asyncio.sleep(delay)

            raise BrowserLaunchError(
                f"Failed to launch browser after {self.max_launch_attempts} attempts.",
                details=(
                    f"Failed to launch browser after {self.max_launch_attempts} attempts: "
                    f"{last_error}"
                ),
            )
        finally:
            self._initializing = False

    async def _verify(self, browser: Any) -> bool:
        try:
            return bool(await self.launcher.check_health(browser))
        except Exception as e:
            logger.warning(f"Browser health check raised: {e}")
            return False

    async def _close_current(self) -> None:
        browser = self._browser
        self._browser = None
        self._launched_at = None
        if browser is not None:
            await self._safe_close(browser)
            logger.info("Browser closed")

    async def _safe_close(self, browser: Any) -> None:
        try:
            await self.launcher.close(browser)
        except Exception as e:
            logger.error(f"Error closing browser: {e}")
