"""
Lighthouse Performance Analyzer

Runs Google Lighthouse via CLI to collect category scores and key timing
metrics. Lighthouse launches and owns its own Chrome instance, separate from
the shared browser used for page fetches.
"""

import asyncio
import json
import os
import signal
import tempfile
from pathlib import Path
from typing import Optional, Dict, Any
import logging

from sitecheck.constants import (
    DEFAULT_LIGHTHOUSE_TIMEOUT_SECONDS,
    LIGHTHOUSE_CATEGORIES,
    LIGHTHOUSE_CHROME_FLAGS,
    LIGHTHOUSE_STDERR_TAIL,
)
from sitecheck.errors import AuditError, AuditTimeoutError
from sitecheck.infrastructure.tasks import run_with_timeout
from sitecheck.models import AuditResult
from sitecheck.scoring import round_half_up

logger = logging.getLogger(__name__)


class LighthouseRunner:
    """Runs Lighthouse audits and parses results."""

    def __init__(
        self,
        lighthouse_path: str = "lighthouse",
        chrome_flags: Optional[list[str]] = None,
        timeout: float = DEFAULT_LIGHTHOUSE_TIMEOUT_SECONDS,
        only_categories: Optional[list[str]] = None,
        preset: str = "desktop",
    ):
        """
        Initialize the Lighthouse runner.

        Args:
            lighthouse_path: Lighthouse executable
            chrome_flags: Chrome flags for the audit's own browser
            timeout: Hard wall-clock limit for one audit in seconds
            only_categories: Categories to audit (performance, accessibility, best-practices, seo)
            preset: Lighthouse emulation preset
        """
        self.lighthouse_path = lighthouse_path
        self.chrome_flags = chrome_flags or list(LIGHTHOUSE_CHROME_FLAGS)
        self.timeout = timeout
        self.only_categories = only_categories or list(LIGHTHOUSE_CATEGORIES)
        self.preset = preset

    def build_command(self, url: str, output_path: str) -> list[str]:
        """Build the Lighthouse CLI invocation for a URL."""
        cmd = [
            self.lighthouse_path,
            url,
            "--output=json",
            f"--output-path={output_path}",
            "--quiet",
            f"--preset={self.preset}",
            "--chrome-flags=" + " ".join(self.chrome_flags),
        ]
        if self.only_categories:
            cmd.append("--only-categories=" + ",".join(self.only_categories))
        return cmd

    async def run(self, url: str) -> AuditResult:
        """
        Run Lighthouse on a URL and return parsed results.

        The Lighthouse process group (including its Chrome) is killed on
        every exit path, and the temporary report file is removed.

        Args:
            url: The URL to audit

        Returns:
            AuditResult with 0-100 category scores and timing metrics

        Raises:
            AuditTimeoutError: If the audit exceeds the timeout
            AuditError: If Lighthouse cannot run or exits with an error
        """
        fd, output_path = tempfile.mkstemp(prefix="lighthouse-", suffix=".json")
        os.close(fd)
        process: Optional[asyncio.subprocess.Process] = None

        try:
            logger.info(f"Running Lighthouse on {url}")
            try:
                process = await asyncio.create_subprocess_exec(
                    *self.build_command(url, output_path),
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.PIPE,
                    start_new_session=True,
                )
            except OSError as e:
                raise AuditError(
                    "Lighthouse could not be started.",
                    details=f"Failed to start {self.lighthouse_path}: {e}",
                ) from e

            _, stderr = await run_with_timeout(
                process.communicate(),
                self.timeout,
                lambda: AuditTimeoutError(
                    "Lighthouse analysis timed out.",
                    details=f"Lighthouse did not finish within {self.timeout}s for {url}",
                ),
            )

            if process.returncode != 0:
                error_text = (stderr or b"").decode("utf-8", errors="replace")
                raise AuditError(
                    "Lighthouse analysis failed.",
                    details=(
                        f"Lighthouse exited with code {process.returncode}: "
                        f"{error_text[-LIGHTHOUSE_STDERR_TAIL:].strip()}"
                    ),
                )

            try:
                with open(output_path, "r") as f:
                    lighthouse_data = json.load(f)
            except (OSError, ValueError) as e:
                raise AuditError(
                    "Lighthouse returned no results.",
                    details=f"Could not read Lighthouse report: {e}",
                ) from e

            logger.info(f"Lighthouse completed successfully for {url}")
            return self.parse_results(lighthouse_data)

        finally:
            if process is not None:
                await self._terminate(process)
            Path(output_path).unlink(missing_ok=True)

    def parse_results(self, lhr: Dict[str, Any]) -> AuditResult:
        """
        Extract category scores and key metrics from a Lighthouse report.

        Args:
            lhr: Lighthouse report JSON (lhr = Lighthouse Result)

        Returns:
            AuditResult; missing categories score 0, missing metrics are "N/A"
        """
        if not isinstance(lhr, dict) or not lhr.get("categories"):
            raise AuditError("Lighthouse returned no results.")

        categories = lhr["categories"]
        audits = lhr.get("audits") or {}
        if not isinstance(categories, dict) or not isinstance(audits, dict):
            raise AuditError("Lighthouse returned malformed results.")

        return AuditResult(
            performance=self._get_score(categories.get("performance")),
            accessibility=self._get_score(categories.get("accessibility")),
            best_practices=self._get_score(categories.get("best-practices")),
            seo=self._get_score(categories.get("seo")),
            first_contentful_paint=self._get_display_value(audits.get("first-contentful-paint")),
            largest_contentful_paint=self._get_display_value(audits.get("largest-contentful-paint")),
            speed_index=self._get_display_value(audits.get("speed-index")),
            cumulative_layout_shift=self._get_display_value(audits.get("cumulative-layout-shift")),
            render_blocking_resources=self._count_items(audits.get("render-blocking-resources")),
        )

    def _get_score(self, category: Optional[Dict]) -> int:
        """Extract score from category (0-1) and convert to 0-100."""
        if not category or category.get("score") is None:
            return 0
        return round_half_up(category["score"] * 100)

    def _get_display_value(self, audit: Optional[Dict]) -> str:
        if not audit:
            return "N/A"
        return audit.get("displayValue") or "N/A"

    def _count_items(self, audit: Optional[Dict]) -> int:
        if not audit:
            return 0
        return len((audit.get("details") or {}).get("items") or [])

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """Kill the Lighthouse process group and reap the child."""
        try:
            if hasattr(os, "killpg"):
                os.killpg(process.pid, signal.SIGKILL)
            elif process.returncode is None:
                process.kill()
        except (ProcessLookupError, PermissionError):
            pass  # Group already gone

        if process.returncode is None:
            await process.wait()
