"""
FastAPI application for the page analyzer.
"""
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sitecheck import __version__
from sitecheck.analyzer import PageAnalyzer
from sitecheck.certificate_prober import CertificateProber
from sitecheck.config import AnalysisThresholds, Settings, settings as default_settings
from sitecheck.constants import ANALYSIS_FAILURE_SUGGESTIONS, INVALID_URL_SUGGESTIONS
from sitecheck.diagnostics import diagnose_url
from sitecheck.errors import (
    AnalysisTimeoutError,
    BrowserLaunchError,
    InvalidURLError,
    SiteCheckError,
)
from sitecheck.infrastructure.browser_manager import BrowserManager

logger = logging.getLogger(__name__)


class InvalidBodyError(Exception):
    """The request body is not a JSON document."""


async def _read_url(request: Request) -> Optional[str]:
    """Extract the url field from a JSON request body."""
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        body = json.loads(raw)
    except ValueError as e:
        raise InvalidBodyError(str(e)) from e
    if not isinstance(body, dict):
        return None
    return body.get("url")


def create_app(
    manager: Optional[BrowserManager] = None,
    analyzer: Optional[PageAnalyzer] = None,
    prober: Optional[CertificateProber] = None,
    settings: Optional[Settings] = None,
    thresholds: Optional[AnalysisThresholds] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        manager: Shared browser manager, closed on application shutdown
        analyzer: Page analyzer (built from settings when omitted)
        prober: Certificate prober for URL diagnostics
        settings: Environment settings
        thresholds: Rule thresholds for a settings-built analyzer

    Returns:
        Configured FastAPI application
    """
    settings = settings or default_settings
    manager = manager or BrowserManager(
        max_idle_seconds=settings.BROWSER_MAX_IDLE_SECONDS,
        max_launch_attempts=settings.BROWSER_MAX_LAUNCH_ATTEMPTS,
    )
    analyzer = analyzer or PageAnalyzer.from_settings(manager, settings, thresholds)
    prober = prober or CertificateProber(timeout=settings.SSL_TIMEOUT_SECONDS)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        logger.info(f"Page analyzer API starting (environment: {settings.ENVIRONMENT})")
        yield
        logger.info("Shutting down, closing shared browser...")
        await manager.close()

    app = FastAPI(
        title="sitecheck",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.manager = manager
    app.state.analyzer = analyzer
    app.state.prober = prober

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InvalidBodyError)
    async def invalid_body_handler(request: Request, exc: InvalidBodyError):
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid JSON body", "details": str(exc)},
        )

    @app.exception_handler(InvalidURLError)
    async def invalid_url_handler(request: Request, exc: InvalidURLError):
        return JSONResponse(
            status_code=400,
            content={
                "error": exc.message,
                "details": exc.details,
                "suggestions": INVALID_URL_SUGGESTIONS,
            },
        )

    @app.exception_handler(AnalysisTimeoutError)
    async def timeout_handler(request: Request, exc: AnalysisTimeoutError):
        logger.error(f"[Analysis Timeout] {exc.details}")
        return JSONResponse(
            status_code=504,
            content={
                "error": "Analysis timed out.",
                "details": exc.details,
                "suggestions": ANALYSIS_FAILURE_SUGGESTIONS,
            },
        )

    @app.exception_handler(SiteCheckError)
    async def analysis_error_handler(request: Request, exc: SiteCheckError):
        logger.error(f"[Analysis Error] {exc.details}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Failed to analyze URL.",
                "details": exc.message,
                "suggestions": ANALYSIS_FAILURE_SUGGESTIONS,
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "details": "An unexpected error occurred."},
        )

    @app.post("/api/analyze")
    async def analyze(request: Request) -> dict[str, Any]:
        """Analyze one page and return the full report."""
        url = await _read_url(request)
        report = await app.state.analyzer.analyze(url)
        return report.to_dict()

    @app.post("/api/test-url")
    async def test_url(request: Request) -> dict[str, Any]:
        """Check DNS resolution and the TLS certificate of a URL's host."""
        url = await _read_url(request)
        return await diagnose_url(url, app.state.prober)

    @app.get("/api/health")
    async def health() -> dict[str, Any]:
        """Health check endpoint."""
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "browserHealthy": await app.state.manager.is_healthy(),
        }

    @app.get("/api/browser-status")
    async def browser_status() -> dict[str, Any]:
        """Snapshot of the shared browser manager."""
        return app.state.manager.get_status().to_dict()

    @app.post("/api/restart-browser")
    async def restart_browser():
        """Force-recycle the shared browser."""
        try:
            healthy = await app.state.manager.restart()
        except BrowserLaunchError as e:
            logger.error(f"Browser restart failed: {e.details}")
            return JSONResponse(
                status_code=500,
                content={
                    "status": "ERROR",
                    "message": "Failed to restart browser.",
                    "details": e.message,
                    "browserHealthy": False,
                },
            )
        return {
            "status": "OK",
            "message": "Browser restarted.",
            "browserHealthy": healthy,
        }

    return app
