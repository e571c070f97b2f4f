"""
Browser configuration for the shared Playwright browser and page fetches.

This module provides a validated Pydantic configuration model for all
browser-related settings.
"""
from typing import Dict, List, Literal, Tuple

from pydantic import BaseModel, Field, field_validator

from sitecheck.constants import (
    BROWSER_LAUNCH_TIMEOUT_MS,
    CHROMIUM_LAUNCH_ARGS,
    DEFAULT_MAX_NAVIGATION_ATTEMPTS,
    DEFAULT_NAVIGATION_RETRY_DELAY_SECONDS,
    DEFAULT_NAVIGATION_TIMEOUT_MS,
    DEFAULT_SETTLE_DELAY_MS,
    DEFAULT_VIEWPORT,
    DEFAULT_WAIT_UNTIL_LADDER,
)

WaitUntil = Literal["load", "domcontentloaded", "networkidle", "commit"]


class BrowserConfig(BaseModel):
    """
    Configuration for the shared browser and the PageFetcher.

    All fields are validated by Pydantic to ensure type safety and valid values.
    """

    headless: bool = Field(
        default=True,
        description="Run browser in headless mode (no visible UI)"
    )

    launch_args: List[str] = Field(
        default_factory=lambda: list(CHROMIUM_LAUNCH_ARGS),
        description="Chromium launch arguments"
    )

    launch_timeout: int = Field(
        default=BROWSER_LAUNCH_TIMEOUT_MS,
        description="Browser launch timeout in milliseconds",
        ge=1000,
        le=300000
    )

    viewport: Dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_VIEWPORT),
        description="Viewport used for every page session"
    )

    navigation_timeout: int = Field(
        default=DEFAULT_NAVIGATION_TIMEOUT_MS,
        description="Page navigation timeout in milliseconds",
        ge=1000,
        le=300000
    )

    wait_until_ladder: Tuple[WaitUntil, ...] = Field(
        default=DEFAULT_WAIT_UNTIL_LADDER,
        description="Load conditions used by successive navigation attempts"
    )

    max_navigation_attempts: int = Field(
        default=DEFAULT_MAX_NAVIGATION_ATTEMPTS,
        description="Navigation attempts before giving up",
        ge=1,
        le=10
    )

    retry_delay: float = Field(
        default=DEFAULT_NAVIGATION_RETRY_DELAY_SECONDS,
        description="Seconds to wait between navigation attempts",
        ge=0
    )

    settle_delay: int = Field(
        default=DEFAULT_SETTLE_DELAY_MS,
        description="Milliseconds to wait after load for late script errors",
        ge=0
    )

    ignore_https_errors: bool = Field(
        default=True,
        description="Load pages with invalid certificates instead of failing navigation"
    )

    user_agent: str | None = Field(
        default=None,
        description="Custom user agent. None keeps the browser default."
    )

    class Config:
        """Pydantic model configuration."""
        frozen = False
        validate_assignment = True

    @field_validator("wait_until_ladder")
    @classmethod
    def _ladder_not_empty(cls, value):
        if not value:
            raise ValueError("wait_until_ladder needs at least one load condition")
        return value

    def wait_until_for_attempt(self, attempt: int) -> str:
        """Load condition for a zero-based navigation attempt."""
        return self.wait_until_ladder[min(attempt, len(self.wait_until_ladder) - 1)]


# Pre-configured instance used by the service
DEFAULT_BROWSER_CONFIG = BrowserConfig()
