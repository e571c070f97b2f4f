"""Connectivity diagnostics for a URL: DNS resolution and certificate probe."""

import asyncio
import logging
import socket
from typing import Any, Dict
from urllib.parse import urlparse

from sitecheck.analyzer import validate_url
from sitecheck.certificate_prober import CertificateProber
from sitecheck.constants import HTTPS_PORT
from sitecheck.errors import CertificateProbeError

logger = logging.getLogger(__name__)


async def resolve_host(hostname: str) -> Dict[str, Any]:
    """Resolve a hostname to its IP addresses.

    Returns:
        {"resolved": True, "addresses": [...]} or {"resolved": False, "error": ...}
    """
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
    except OSError as e:
        logger.info(f"DNS lookup failed for {hostname}: {e}")
        return {"resolved": False, "error": str(e)}

    addresses = sorted({info[4][0] for info in infos})
    return {"resolved": True, "addresses": addresses}


async def diagnose_url(url: str, prober: CertificateProber) -> Dict[str, Any]:
    """Check whether a URL's host resolves and, for HTTPS, serves a certificate.

    Never fetches or analyzes page content.

    Args:
        url: Absolute http(s) URL
        prober: Certificate prober used for HTTPS hosts

    Returns:
        Dictionary with url, hostname, protocol, dns and ssl blocks

    Raises:
        InvalidURLError: If the URL is not an absolute http(s) URL
    """
    target = validate_url(url)
    parsed = urlparse(target)
    hostname = parsed.hostname
    scheme = parsed.scheme.lower()

    dns_task = asyncio.create_task(resolve_host(hostname))
    if scheme == "https":
        try:
            certificate = await prober.probe(hostname, parsed.port or HTTPS_PORT)
            ssl_info: Dict[str, Any] = certificate.to_dict()
        except CertificateProbeError as e:
            ssl_info = {"error": e.message, "details": e.details}
        except Exception as e:
            logger.error(f"SSL diagnostics crashed for {hostname}: {e}", exc_info=True)
            ssl_info = {"error": "SSL analysis failed.", "details": f"{type(e).__name__}: {e}"}
    else:
        ssl_info = {"info": "Site is not using HTTPS."}

    return {
        "url": target,
        "hostname": hostname,
        "protocol": f"{scheme}:",
        "dns": await dns_task,
        "ssl": ssl_info,
    }
