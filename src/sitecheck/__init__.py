"""Single-page SEO, speed, security and mobile analyzer."""

__version__ = "0.1.0"

from sitecheck.analyzer import PageAnalyzer, validate_url
from sitecheck.certificate_prober import CertificateProber
from sitecheck.lighthouse_runner import LighthouseRunner
from sitecheck.page_fetcher import PageFetcher
from sitecheck.rules import RuleEvaluator, RuleEvaluation
from sitecheck.scoring import ScoreAggregator
from sitecheck.models import (
    AnalysisReport,
    AuditResult,
    CategoryResult,
    CertificateInfo,
    FetchResult,
    PageContext,
)
from sitecheck.config import settings, AnalysisThresholds
from sitecheck.errors import (
    SiteCheckError,
    InvalidURLError,
    BrowserLaunchError,
    NavigationError,
    NavigationErrorKind,
    AnalysisTimeoutError,
    CertificateProbeError,
    CertificateTimeoutError,
    AuditError,
    AuditTimeoutError,
)

from sitecheck.infrastructure import (
    BrowserManager,
    BrowserHealth,
    ManagerStatus,
)

__all__ = [
    # Core
    "PageAnalyzer",
    "validate_url",
    "PageFetcher",
    "CertificateProber",
    "LighthouseRunner",
    "RuleEvaluator",
    "RuleEvaluation",
    "ScoreAggregator",
    # Models
    "AnalysisReport",
    "AuditResult",
    "CategoryResult",
    "CertificateInfo",
    "FetchResult",
    "PageContext",
    "settings",
    "AnalysisThresholds",
    # Errors
    "SiteCheckError",
    "InvalidURLError",
    "BrowserLaunchError",
    "NavigationError",
    "NavigationErrorKind",
    "AnalysisTimeoutError",
    "CertificateProbeError",
    "CertificateTimeoutError",
    "AuditError",
    "AuditTimeoutError",
    # Infrastructure
    "BrowserManager",
    "BrowserHealth",
    "ManagerStatus",
]
