"""Tests for the HTTP API."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from sitecheck.api import create_app
from sitecheck.errors import BrowserLaunchError, CertificateTimeoutError, NavigationError, NavigationErrorKind
from sitecheck.infrastructure.browser_manager import BrowserManager
from sitecheck.models import AnalysisReport, CertificateInfo

from conftest import FakeLauncher


@pytest.fixture
def launcher():
    return FakeLauncher()


@pytest.fixture
def analyzer():
    analyzer = MagicMock()
    analyzer.analyze = AsyncMock(
        return_value=AnalysisReport(analyzed_url="https://example.com", overall_score=87)
    )
    return analyzer


@pytest.fixture
def prober():
    prober = MagicMock()
    prober.probe = AsyncMock(return_value=CertificateInfo(subject="example.com"))
    return prober


@pytest.fixture
def client(launcher, analyzer, prober):
    manager = BrowserManager(launcher=launcher, backoff_base_seconds=0)
    app = create_app(manager=manager, analyzer=analyzer, prober=prober)
    with TestClient(app) as client:
        yield client


class TestAnalyzeEndpoint:
    """Test cases for POST /api/analyze."""

    def test_analyze_returns_report(self, client, analyzer):
        response = client.post("/api/analyze", json={"url": "https://example.com"})

        assert response.status_code == 200
        data = response.json()
        assert data["analyzedUrl"] == "https://example.com"
        assert data["overallScore"] == 87
        assert "commonSeo" in data
        analyzer.analyze.assert_awaited_once_with("https://example.com")

    def test_missing_url_is_400_without_browser(self, launcher):
        manager = BrowserManager(launcher=launcher, backoff_base_seconds=0)
        # Real analyzer: validation must reject before any launch
        app = create_app(manager=manager)

        with TestClient(app) as client:
            response = client.post("/api/analyze", json={})

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "URL is required"
        assert data["suggestions"]
        assert launcher.launch_calls == 0

    def test_malformed_url_is_400(self, launcher):
        manager = BrowserManager(launcher=launcher, backoff_base_seconds=0)
        app = create_app(manager=manager)

        with TestClient(app) as client:
            response = client.post("/api/analyze", json={"url": "example.com"})

        assert response.status_code == 400
        assert "http://" in response.json()["error"]
        assert launcher.launch_calls == 0

    @pytest.mark.parametrize("url", [
        "https://example.com:99999",
        "http://example.com:abc",
        "http://exa mple.com",
    ])
    def test_unparseable_url_is_400(self, launcher, url):
        manager = BrowserManager(launcher=launcher, backoff_base_seconds=0)
        app = create_app(manager=manager)

        with TestClient(app) as client:
            response = client.post("/api/analyze", json={"url": url})

        assert response.status_code == 400
        assert "Could not parse" in response.json()["details"]
        assert launcher.launch_calls == 0

    def test_invalid_json_is_400(self, client):
        response = client.post(
            "/api/analyze",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid JSON body"

    def test_navigation_failure_is_500(self, client, analyzer):
        analyzer.analyze.side_effect = NavigationError(
            NavigationErrorKind.DNS_RESOLUTION, "https://nope.invalid", "net::ERR_NAME_NOT_RESOLVED"
        )

        response = client.post("/api/analyze", json={"url": "https://nope.invalid"})

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "Failed to analyze URL."
        assert "could not be resolved" in data["details"]
        assert len(data["suggestions"]) == 3

    def test_browser_launch_failure_is_500(self, client, analyzer):
        analyzer.analyze.side_effect = BrowserLaunchError("Failed to launch browser after 3 attempts.")

        response = client.post("/api/analyze", json={"url": "https://example.com"})

        assert response.status_code == 500
        assert response.json()["details"] == "Failed to launch browser after 3 attempts."


class TestTestUrlEndpoint:
    """Test cases for POST /api/test-url."""

    def test_https_url(self, client, prober):
        with patch(
            "sitecheck.diagnostics.resolve_host",
            AsyncMock(return_value={"resolved": True, "addresses": ["93.184.216.34"]}),
        ):
            response = client.post("/api/test-url", json={"url": "https://example.com/page"})

        assert response.status_code == 200
        data = response.json()
        assert data["hostname"] == "example.com"
        assert data["protocol"] == "https:"
        assert data["dns"] == {"resolved": True, "addresses": ["93.184.216.34"]}
        assert data["ssl"]["subject"] == "example.com"

    def test_certificate_failure(self, client, prober):
        prober.probe.side_effect = CertificateTimeoutError("SSL connection timed out.")

        with patch(
            "sitecheck.diagnostics.resolve_host",
            AsyncMock(return_value={"resolved": False, "error": "Name or service not known"}),
        ):
            response = client.post("/api/test-url", json={"url": "https://nope.invalid"})

        data = response.json()
        assert data["dns"]["resolved"] is False
        assert data["ssl"]["error"] == "SSL connection timed out."

    def test_plain_http(self, client, prober):
        with patch(
            "sitecheck.diagnostics.resolve_host",
            AsyncMock(return_value={"resolved": True, "addresses": ["127.0.0.1"]}),
        ):
            response = client.post("/api/test-url", json={"url": "http://localhost:8080"})

        data = response.json()
        assert data["protocol"] == "http:"
        assert data["ssl"] == {"info": "Site is not using HTTPS."}
        prober.probe.assert_not_called()

    def test_invalid_url(self, client):
        response = client.post("/api/test-url", json={"url": "nope"})

        assert response.status_code == 400


class TestBrowserEndpoints:
    """Test cases for health and browser management endpoints."""

    def test_health_before_launch(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "OK"
        assert data["browserHealthy"] is False
        assert "timestamp" in data

    def test_browser_status(self, client):
        response = client.get("/api/browser-status")

        assert response.status_code == 200
        assert response.json()["health"] == "stopped"

    def test_restart_browser(self, client, launcher):
        response = client.post("/api/restart-browser")

        assert response.status_code == 200
        assert response.json() == {
            "status": "OK",
            "message": "Browser restarted.",
            "browserHealthy": True,
        }
        assert launcher.launch_calls == 1

        health = client.get("/api/health").json()
        assert health["browserHealthy"] is True

    def test_restart_failure(self, launcher, analyzer, prober):
        launcher.failures = 10
        manager = BrowserManager(launcher=launcher, backoff_base_seconds=0)
        app = create_app(manager=manager, analyzer=analyzer, prober=prober)

        with TestClient(app) as client:
            response = client.post("/api/restart-browser")

        assert response.status_code == 500
        assert response.json()["browserHealthy"] is False

    def test_shutdown_closes_browser(self, launcher, analyzer, prober):
        manager = BrowserManager(launcher=launcher, backoff_base_seconds=0)
        app = create_app(manager=manager, analyzer=analyzer, prober=prober)

        with TestClient(app) as client:
            client.post("/api/restart-browser")

        assert launcher.shutdown_calls == 1
        assert launcher.closed == launcher.browsers
