"""Exception hierarchy for the page analyzer.

Pipeline errors (launch, navigation, deadline) propagate to the request
boundary. Certificate and audit errors are degradable: the pipeline catches
them where the sub-task is awaited and records them as data.
"""

from enum import Enum
from typing import Optional


class SiteCheckError(Exception):
    """Base class for all analyzer errors."""

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details or message


class InvalidURLError(SiteCheckError):
    """The requested URL is missing or cannot be parsed."""


class BrowserLaunchError(SiteCheckError):
    """The shared browser could not be launched or validated."""


class NavigationErrorKind(Enum):
    """Cause of a failed page navigation."""
    DNS_RESOLUTION = "dns_resolution"
    CONNECTION_REFUSED = "connection_refused"
    CONNECTION_RESET = "connection_reset"
    CERTIFICATE = "certificate"
    TARGET_CLOSED = "target_closed"
    TIMEOUT = "timeout"
    NO_RESPONSE = "no_response"
    UNKNOWN = "unknown"

    @property
    def explanation(self) -> str:
        """Human-readable explanation of this failure cause."""
        return _NAVIGATION_EXPLANATIONS[self]


_NAVIGATION_EXPLANATIONS = {
    NavigationErrorKind.DNS_RESOLUTION: (
        "The domain name could not be resolved. Check the URL for typos."
    ),
    NavigationErrorKind.CONNECTION_REFUSED: (
        "The server refused the connection. The site may be down."
    ),
    NavigationErrorKind.CONNECTION_RESET: (
        "The connection was reset by the server. The site may be blocking automated requests."
    ),
    NavigationErrorKind.CERTIFICATE: (
        "The site's SSL certificate is invalid or untrusted."
    ),
    NavigationErrorKind.TARGET_CLOSED: (
        "The browser page closed unexpectedly while loading the site."
    ),
    NavigationErrorKind.TIMEOUT: (
        "The page took too long to load."
    ),
    NavigationErrorKind.NO_RESPONSE: (
        "No response was received from the server."
    ),
    NavigationErrorKind.UNKNOWN: (
        "The page could not be loaded."
    ),
}


class NavigationError(SiteCheckError):
    """A page navigation failed after all retries."""

    def __init__(self, kind: NavigationErrorKind, url: str, cause: Optional[str] = None):
        message = f"{kind.explanation} ({url})"
        details = f"{message}: {cause}" if cause else message
        super().__init__(message, details)
        self.kind = kind
        self.url = url
        self.cause = cause


class AnalysisTimeoutError(SiteCheckError):
    """The whole analysis exceeded its request deadline."""


class CertificateProbeError(SiteCheckError):
    """The TLS certificate could not be retrieved."""


class CertificateTimeoutError(CertificateProbeError):
    """The TLS handshake did not complete in time."""


class AuditError(SiteCheckError):
    """The Lighthouse audit failed."""


class AuditTimeoutError(AuditError):
    """The Lighthouse audit did not finish in time."""
