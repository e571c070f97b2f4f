"""Data models for page analysis."""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from sitecheck.constants import CATEGORY_NAMES, REPORT_SCHEMA_VERSION


@dataclass
class FetchResult:
    """Rendered page content captured by the PageFetcher."""

    url: str
    html: str
    status_code: int
    final_url: Optional[str] = None
    headers: dict[str, str] = field(default_factory=dict)
    console_errors: list[str] = field(default_factory=list)
    load_time: float = 0.0
    wait_until: Optional[str] = None  # Load condition that succeeded
    attempts: int = 1


@dataclass
class CertificateInfo:
    """TLS certificate metadata for a host."""

    subject: str = "N/A"
    issuer: str = "N/A"
    valid_from: Optional[str] = None  # ISO-8601 UTC
    valid_to: Optional[str] = None  # ISO-8601 UTC
    is_expired: bool = False
    days_until_expiry: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject": self.subject,
            "issuer": self.issuer,
            "validFrom": self.valid_from,
            "validTo": self.valid_to,
            "isExpired": self.is_expired,
            "daysUntilExpiry": self.days_until_expiry,
        }


@dataclass
class AuditResult:
    """Scores and key metrics from a Lighthouse audit."""

    performance: int = 0
    accessibility: int = 0
    best_practices: int = 0
    seo: int = 0
    first_contentful_paint: str = "N/A"
    largest_contentful_paint: str = "N/A"
    speed_index: str = "N/A"
    cumulative_layout_shift: str = "N/A"
    render_blocking_resources: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {to_camel(key): value for key, value in asdict(self).items()}


@dataclass
class PageContext:
    """Everything the rule checks need to know about a fetched page."""

    url: str
    html: str
    headers: dict[str, str] = field(default_factory=dict)
    console_errors: list[str] = field(default_factory=list)

    @property
    def scheme(self) -> str:
        return urlparse(self.url).scheme.lower()

    @property
    def is_https(self) -> bool:
        return self.scheme == "https"

    @classmethod
    def from_fetch(cls, fetch: FetchResult) -> "PageContext":
        """Build the rule context for a fetch, keyed on the requested URL."""
        return cls(
            url=fetch.url,
            html=fetch.html,
            headers={key.lower(): value for key, value in fetch.headers.items()},
            console_errors=list(fetch.console_errors),
        )


class ReportModel(BaseModel):
    """Base for report schemas, serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class CategoryResult(ReportModel):
    """Findings and score of one check category."""

    score: int = 0
    failed: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    passed: list[str] = Field(default_factory=list)

    @property
    def total_checks(self) -> int:
        return len(self.passed) + len(self.failed) + len(self.warnings)


class AnalysisReport(ReportModel):
    """Aggregate result of analyzing one URL."""

    schema_version: str = REPORT_SCHEMA_VERSION
    analyzed_url: str
    final_url: Optional[str] = None
    status_code: Optional[int] = None
    overall_score: int = 0
    total_failed: int = 0
    total_warnings: int = 0
    total_passed: int = 0
    common_seo: CategoryResult = Field(default_factory=CategoryResult)
    speed: CategoryResult = Field(default_factory=CategoryResult)
    security: CategoryResult = Field(default_factory=CategoryResult)
    mobile: CategoryResult = Field(default_factory=CategoryResult)
    advanced_seo: CategoryResult = Field(default_factory=CategoryResult)
    meta_info: dict[str, Any] = Field(default_factory=dict)
    technical_info: dict[str, Any] = Field(default_factory=dict)
    lighthouse_report: dict[str, Any] = Field(default_factory=dict)
    ssl_info: dict[str, Any] = Field(default_factory=dict)
    analysis_time_ms: int = 0

    def categories(self) -> dict[str, CategoryResult]:
        """Category blocks keyed by their snake_case name, in report order."""
        return {name: getattr(self, name) for name in CATEGORY_NAMES}

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dictionary with camelCase keys."""
        return self.model_dump(by_alias=True)
