"""Page analyzer that combines rendering, rule checks and sub-task audits."""

import asyncio
import logging
import time
from typing import Callable, Optional, Tuple
from urllib.parse import urlparse

from sitecheck.certificate_prober import CertificateProber
from sitecheck.config import Settings, AnalysisThresholds
from sitecheck.constants import HTTPS_PORT
from sitecheck.errors import (
    AnalysisTimeoutError,
    AuditError,
    CertificateProbeError,
    InvalidURLError,
)
from sitecheck.infrastructure.browser_manager import BrowserManager
from sitecheck.infrastructure.tasks import cancel_and_wait, run_with_timeout
from sitecheck.lighthouse_runner import LighthouseRunner
from sitecheck.models import AnalysisReport, AuditResult, CertificateInfo, PageContext
from sitecheck.page_fetcher import PageFetcher
from sitecheck.rules import RuleEvaluator, merge_audit_findings, merge_certificate_findings
from sitecheck.scoring import ScoreAggregator

logger = logging.getLogger(__name__)


# Characters that may never appear in the authority part of a URL
_ILLEGAL_NETLOC_CHARS = frozenset('<>"{}|\\^`')


def validate_url(url: Optional[str]) -> str:
    """Check that a URL is an absolute http(s) URL.

    Args:
        url: Raw URL from the caller

    Returns:
        The URL with surrounding whitespace removed

    Raises:
        InvalidURLError: If the URL is missing or not absolute http(s)
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidURLError(
            "URL is required",
            details="The request body must include a non-empty 'url' field.",
        )

    url = url.strip()
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
        parsed.port  # raises ValueError for a non-numeric or out-of-range port
    except ValueError as e:
        raise InvalidURLError(
            "Invalid URL format. Please include http:// or https://",
            details=f"Could not parse '{url}': {e}",
        ) from e

    if parsed.scheme.lower() not in ("http", "https") or not hostname:
        raise InvalidURLError(
            "Invalid URL format. Please include http:// or https://",
            details=f"'{url}' is not an absolute http or https URL.",
        )

    if any(c.isspace() or c in _ILLEGAL_NETLOC_CHARS for c in parsed.netloc):
        raise InvalidURLError(
            "Invalid URL format. Please include http:// or https://",
            details=f"Could not parse '{url}': the host contains illegal characters.",
        )
    return url


class PageAnalyzer:
    """
    Runs the full analysis of one URL.

        analyzer = PageAnalyzer(manager)
        report = await analyzer.analyze("https://example.com")

    The certificate probe and Lighthouse audit start before the page fetch and
    run alongside it. Their failures become warning findings; a failed fetch
    cancels them and propagates.
    """

    def __init__(
        self,
        manager: BrowserManager,
        fetcher: Optional[PageFetcher] = None,
        prober: Optional[CertificateProber] = None,
        lighthouse: Optional[LighthouseRunner] = None,
        evaluator: Optional[RuleEvaluator] = None,
        aggregator: Optional[ScoreAggregator] = None,
        analysis_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the analyzer.

        Args:
            manager: Shared browser manager
            fetcher: Page fetcher (defaults to one on the manager)
            prober: Certificate prober
            lighthouse: Lighthouse runner, None to skip the audit
            evaluator: Rule evaluator
            aggregator: Score aggregator
            analysis_timeout: Deadline for a whole analysis in seconds, None for none
            clock: Monotonic time source for analysis timing
        """
        self.manager = manager
        self.fetcher = fetcher or PageFetcher(manager)
        self.prober = prober or CertificateProber()
        self.lighthouse = lighthouse
        self.evaluator = evaluator or RuleEvaluator()
        self.aggregator = aggregator or ScoreAggregator()
        self.analysis_timeout = analysis_timeout
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        manager: BrowserManager,
        settings: Settings,
        thresholds: Optional[AnalysisThresholds] = None,
    ) -> "PageAnalyzer":
        """Build an analyzer from environment settings."""
        lighthouse = None
        if settings.LIGHTHOUSE_ENABLED:
            lighthouse = LighthouseRunner(
                lighthouse_path=settings.LIGHTHOUSE_PATH,
                timeout=settings.LIGHTHOUSE_TIMEOUT_SECONDS,
            )
        return cls(
            manager,
            prober=CertificateProber(timeout=settings.SSL_TIMEOUT_SECONDS),
            lighthouse=lighthouse,
            evaluator=RuleEvaluator(thresholds or AnalysisThresholds.load(settings.THRESHOLDS_FILE)),
            analysis_timeout=settings.ANALYSIS_TIMEOUT_SECONDS,
        )

    async def analyze(self, url: str) -> AnalysisReport:
        """Analyze a URL.

        Args:
            url: Absolute http(s) URL

        Returns:
            AnalysisReport with findings, scores and sub-task results

        Raises:
            InvalidURLError: If the URL is not an absolute http(s) URL
            BrowserLaunchError: If the shared browser is unavailable
            NavigationError: If the page could not be loaded
            AnalysisTimeoutError: If the analysis deadline passed
        """
        target = validate_url(url)
        logger.info(f"Starting analysis for: {target}")

        if not self.analysis_timeout:
            return await self._analyze(target)

        return await run_with_timeout(
            self._analyze(target),
            self.analysis_timeout,
            lambda: AnalysisTimeoutError(
                "Analysis timed out.",
                details=f"Analysis of {target} did not finish within {self.analysis_timeout}s",
            ),
        )

    async def _analyze(self, url: str) -> AnalysisReport:
        start = self._clock()
        parsed = urlparse(url)
        is_https = parsed.scheme.lower() == "https"

        cert_task = None
        if is_https:
            cert_task = asyncio.create_task(
                self.prober.probe(parsed.hostname, parsed.port or HTTPS_PORT)
            )
        audit_task = None
        if self.lighthouse is not None:
            audit_task = asyncio.create_task(self.lighthouse.run(url))

        try:
            fetch = await self.fetcher.fetch(url)
            evaluation = self.evaluator.evaluate(PageContext.from_fetch(fetch))
            audit, audit_error = await self._settle_audit(audit_task)
            certificate, cert_error = await self._settle_certificate(cert_task)
        except (Exception, asyncio.CancelledError):
            await cancel_and_wait([cert_task, audit_task])
            raise

        if audit_task is not None:
            lighthouse_report = merge_audit_findings(evaluation, audit, audit_error)
        else:
            lighthouse_report = {"info": "Lighthouse audit is disabled."}
        ssl_info = merge_certificate_findings(evaluation, is_https, certificate, cert_error)

        evaluation.technical_info["loadTimeSeconds"] = round(fetch.load_time, 3)
        evaluation.technical_info["fetchAttempts"] = fetch.attempts
        evaluation.technical_info["waitUntil"] = fetch.wait_until

        report = AnalysisReport(
            analyzed_url=url,
            final_url=fetch.final_url,
            status_code=fetch.status_code,
            meta_info=evaluation.meta_info,
            technical_info=evaluation.technical_info,
            lighthouse_report=lighthouse_report,
            ssl_info=ssl_info,
            **evaluation.categories,
        )
        self.aggregator.apply(report, audit)
        report.analysis_time_ms = int(round((self._clock() - start) * 1000))

        logger.info(
            f"Analysis for {url} completed in {report.analysis_time_ms}ms. "
            f"Score: {report.overall_score}"
        )
        return report

    async def _settle_audit(
        self, task: Optional["asyncio.Task[AuditResult]"]
    ) -> Tuple[Optional[AuditResult], Optional[AuditError]]:
        if task is None:
            return None, None
        try:
            return await task, None
        except AuditError as e:
            logger.warning(f"Lighthouse analysis failed: {e.details}")
            return None, e
        except Exception as e:
            logger.error(f"Lighthouse analysis crashed: {e}", exc_info=True)
            return None, AuditError("Lighthouse analysis failed.", details=f"{type(e).__name__}: {e}")

    async def _settle_certificate(
        self, task: Optional["asyncio.Task[CertificateInfo]"]
    ) -> Tuple[Optional[CertificateInfo], Optional[CertificateProbeError]]:
        if task is None:
            return None, None
        try:
            return await task, None
        except CertificateProbeError as e:
            logger.warning(f"SSL analysis failed: {e.details}")
            return None, e
        except Exception as e:
            logger.error(f"SSL analysis crashed: {e}", exc_info=True)
            return None, CertificateProbeError(
                "SSL analysis failed.", details=f"{type(e).__name__}: {e}"
            )
