"""TLS certificate probing for the security checks."""

import asyncio
import logging
import ssl
from datetime import datetime, timezone
from typing import Callable, Optional

from cryptography import x509
from cryptography.x509.oid import NameOID

from sitecheck.constants import DEFAULT_SSL_TIMEOUT_SECONDS, HTTPS_PORT
from sitecheck.errors import CertificateProbeError, CertificateTimeoutError
from sitecheck.infrastructure.tasks import run_with_timeout
from sitecheck.models import CertificateInfo

logger = logging.getLogger(__name__)


def unverified_context() -> ssl.SSLContext:
    """SSL context that completes the handshake for any certificate.

    Expired, self-signed and mismatched certificates are read, not rejected.
    """
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


class CertificateProber:
    """Opens a TLS connection to a host and reads its certificate."""

    def __init__(
        self,
        timeout: float = DEFAULT_SSL_TIMEOUT_SECONDS,
        context_factory: Callable[[], ssl.SSLContext] = unverified_context,
        now: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the prober.

        Args:
            timeout: Seconds allowed for connect + handshake
            context_factory: Builds the SSL context for each probe
            now: Current UTC time source
        """
        self.timeout = timeout
        self._context_factory = context_factory
        self._now = now or (lambda: datetime.now(timezone.utc))

    async def probe(self, hostname: str, port: int = HTTPS_PORT) -> CertificateInfo:
        """
        Fetch certificate metadata for a host.

        Args:
            hostname: Host to connect to, also sent as SNI
            port: TLS port

        Returns:
            CertificateInfo for the peer certificate

        Raises:
            CertificateTimeoutError: If the handshake exceeds the timeout
            CertificateProbeError: If no certificate could be read
        """
        return await run_with_timeout(
            self._probe(hostname, port),
            self.timeout,
            lambda: CertificateTimeoutError(
                "SSL connection timed out.",
                details=f"TLS handshake with {hostname}:{port} did not complete within {self.timeout}s",
            ),
        )

    async def _probe(self, hostname: str, port: int) -> CertificateInfo:
        context = self._context_factory()
        try:
            _, writer = await asyncio.open_connection(
                hostname, port, ssl=context, server_hostname=hostname
            )
        except OSError as e:
            raise CertificateProbeError(
                "SSL connection failed.",
                details=f"TLS connection to {hostname}:{port} failed: {e}",
            ) from e

        try:
            ssl_object = writer.get_extra_info("ssl_object")
            der = ssl_object.getpeercert(binary_form=True) if ssl_object is not None else None
        finally:
            writer.close()

        if not der:
            raise CertificateProbeError("No SSL certificate found.")

        info = self.parse_certificate(der)
        if info.is_expired:
            logger.warning(f"Certificate for {hostname} expired on {info.valid_to}")
        return info

    def parse_certificate(self, der: bytes) -> CertificateInfo:
        """
        Convert a DER-encoded certificate to CertificateInfo.

        Args:
            der: Certificate bytes from getpeercert(binary_form=True)

        Returns:
            CertificateInfo with names, validity window and expiry status

        Raises:
            CertificateProbeError: If the bytes are not a valid certificate
        """
        try:
            cert = x509.load_der_x509_certificate(der)
        except ValueError as e:
            raise CertificateProbeError(
                "Could not read SSL certificate.", details=f"Invalid certificate data: {e}"
            ) from e

        valid_from = cert.not_valid_before_utc
        valid_to = cert.not_valid_after_utc
        remaining = valid_to - self._now()

        return CertificateInfo(
            subject=_common_name(cert.subject),
            issuer=_common_name(cert.issuer),
            valid_from=valid_from.isoformat(),
            valid_to=valid_to.isoformat(),
            is_expired=remaining.total_seconds() < 0,
            days_until_expiry=int(remaining.total_seconds() // 86400),
        )


def _common_name(name: x509.Name) -> str:
    attributes = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attributes:
        return "N/A"
    value = attributes[0].value
    return value.decode("utf-8", "replace") if isinstance(value, bytes) else value
