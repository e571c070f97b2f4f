"""Tests for the rule evaluator and sub-task merges."""

import pytest

from sitecheck.config import AnalysisThresholds
from sitecheck.console_analyzer import ConsoleErrorAnalyzer
from sitecheck.errors import AuditTimeoutError, CertificateTimeoutError
from sitecheck.models import AuditResult, CertificateInfo, PageContext
from sitecheck.rules import (
    RuleEvaluation,
    RuleEvaluator,
    merge_audit_findings,
    merge_certificate_findings,
)

from conftest import GOOD_HTML, SECURE_HEADERS


def page(html=GOOD_HTML, url="https://example.com", headers=None, console_errors=None):
    return PageContext(
        url=url,
        html=html,
        headers=dict(SECURE_HEADERS) if headers is None else headers,
        console_errors=console_errors or [],
    )


def html_with_head(head="", body="<h1>Heading</h1>"):
    return f"<html><head>{head}</head><body>{body}</body></html>"


class TestRuleEvaluator:
    """Test cases for RuleEvaluator."""

    def test_good_page_has_no_failures(self):
        result = RuleEvaluator().evaluate(page())

        for name, category in result.categories.items():
            assert category.failed == [], name
            assert category.warnings == [], name
        assert result.meta_info["canonical"] == "https://example.com/"
        assert result.meta_info["language"] == "en"
        assert result.meta_info["h1"] == ["Example Domain"]

    def test_each_check_lands_in_one_category(self):
        result = RuleEvaluator().evaluate(page())

        counts = {name: c.total_checks for name, c in result.categories.items()}
        assert counts == {
            "common_seo": 7,
            "speed": 5,
            "security": 6,
            "mobile": 3,
            "advanced_seo": 6,
        }

    def test_deterministic(self):
        evaluator = RuleEvaluator()
        first = evaluator.evaluate(page())
        second = evaluator.evaluate(page())

        assert first.categories == second.categories
        assert first.meta_info == second.meta_info

    def test_short_title_and_missing_description(self):
        html = html_with_head("<title>Hello</title>")

        common = RuleEvaluator().evaluate(page(html=html)).categories["common_seo"]

        assert any("too short (5 characters)" in w for w in common.warnings)
        assert "Missing meta description tag." in common.failed

    def test_missing_title(self):
        result = RuleEvaluator().evaluate(page(html=html_with_head()))

        assert "Missing title tag." in result.categories["common_seo"].failed
        assert result.meta_info["title"] == "Missing title tag"

    def test_long_title_fails(self):
        html = html_with_head(f"<title>{'x' * 61}</title>")

        common = RuleEvaluator().evaluate(page(html=html)).categories["common_seo"]

        assert any("too long (61 characters)" in f for f in common.failed)

    @pytest.mark.parametrize("length,bucket", [
        (119, "warnings"),
        (120, "passed"),
        (160, "passed"),
        (161, "failed"),
    ])
    def test_description_length_boundaries(self, length, bucket):
        html = html_with_head(f'<meta name="description" content="{"d" * length}">')

        common = RuleEvaluator().evaluate(page(html=html)).categories["common_seo"]

        messages = getattr(common, bucket)
        assert any(f"({length} characters)" in m for m in messages)

    def test_thresholds_are_configurable(self):
        thresholds = AnalysisThresholds(title_min=3, title_max=10)
        html = html_with_head("<title>Hello</title>")

        common = RuleEvaluator(thresholds).evaluate(page(html=html)).categories["common_seo"]

        assert "Title tag is a good length (5 characters)." in common.passed

    @pytest.mark.parametrize("body,bucket", [
        ("<p>none</p>", "failed"),
        ("<h1>One</h1>", "passed"),
        ("<h1>One</h1><h1>Two</h1>", "warnings"),
    ])
    def test_h1_counts(self, body, bucket):
        result = RuleEvaluator().evaluate(page(html=html_with_head(body=body)))

        messages = getattr(result.categories["common_seo"], bucket)
        assert any("H1" in m for m in messages)

    def test_images_missing_alt(self):
        body = '<h1>x</h1><img src="a.png" alt="A"><img src="b.png"><img src="c.png" alt=" ">'

        result = RuleEvaluator().evaluate(page(html=html_with_head(body=body)))

        assert "2 out of 3 images are missing descriptive alt attributes." in (
            result.categories["common_seo"].failed
        )
        assert result.technical_info["imagesWithoutAlt"] == 2

    def test_no_images_skips_alt_check(self):
        result = RuleEvaluator().evaluate(page(html=html_with_head()))

        common = result.categories["common_seo"]
        assert not any("images" in m for m in common.passed + common.failed)

    def test_script_errors_are_warnings(self):
        errors = ["TypeError: x is undefined", "ReferenceError: y is not defined"]

        result = RuleEvaluator().evaluate(page(console_errors=errors))

        assert "Detected 2 JavaScript errors in the console." in result.categories["common_seo"].warnings
        assert result.technical_info["consoleErrors"] == errors
        assert result.technical_info["consoleErrorSummary"]["byType"] == {
            "TypeError": 1,
            "ReferenceError": 1,
        }

    def test_speed_limits(self):
        body = "<h1>x</h1>" + "<script></script>" * 11 + "<style></style>" * 4 + '<img alt="a">' * 21
        body += '<div style="color:red"></div>' * 7

        speed = RuleEvaluator().evaluate(page(html=html_with_head(body=body))).categories["speed"]

        assert len(speed.warnings) == 4
        assert any("11 script tags" in w for w in speed.warnings)
        assert any("4 <style> blocks" in w for w in speed.warnings)
        assert any("21 images" in w for w in speed.warnings)
        assert any("inline CSS (11 instances)" in w for w in speed.warnings)
        assert any("HTML page size is small" in p for p in speed.passed)

    def test_large_html_warns(self):
        html = html_with_head(body="<h1>x</h1>" + "<p>" + "a" * 60 * 1024 + "</p>")

        speed = RuleEvaluator().evaluate(page(html=html)).categories["speed"]

        assert any(w.startswith("HTML page size is") for w in speed.warnings)

    def test_plain_http_page(self):
        result = RuleEvaluator().evaluate(page(url="http://example.com", headers={}))

        security = result.categories["security"]
        assert "Site does not use HTTPS. This is a major security risk." in security.failed
        assert not any("mixed content" in m.lower() for m in security.passed + security.warnings)

    def test_mixed_content(self):
        html = GOOD_HTML.replace("/logo.png", "http://cdn.example.com/logo.png")

        security = RuleEvaluator().evaluate(page(html=html)).categories["security"]

        assert "Mixed content warning: Page loads assets over insecure HTTP." in security.warnings

    def test_security_headers_missing(self):
        security = RuleEvaluator().evaluate(
            page(headers={"server": "Apache/2.4.1"})
        ).categories["security"]

        assert "Server signature is visible: Apache/2.4.1." in security.warnings
        assert any("HSTS" in w for w in security.warnings)
        assert any("X-Content-Type-Options" in w for w in security.warnings)
        assert any("clickjacking" in w for w in security.warnings)

    def test_csp_frame_ancestors_counts_as_frame_protection(self):
        headers = {"content-security-policy": "default-src 'self'; frame-ancestors 'none'"}

        security = RuleEvaluator().evaluate(page(headers=headers)).categories["security"]

        assert any("Clickjacking protection" in p for p in security.passed)

    def test_viewport_missing(self):
        result = RuleEvaluator().evaluate(page(html=html_with_head()))

        assert "Viewport meta tag is missing or misconfigured." in result.categories["mobile"].failed
        # Zoom check only runs with a viewport
        assert result.categories["mobile"].total_checks == 2

    @pytest.mark.parametrize("content", [
        "width=device-width, user-scalable=no",
        "width=device-width, maximum-scale=1",
        "width=device-width, maximum-scale=1.0",
    ])
    def test_zoom_disabled(self, content):
        html = html_with_head(f'<meta name="viewport" content="{content}">')

        mobile = RuleEvaluator().evaluate(page(html=html)).categories["mobile"]

        assert "Viewport disables zooming, which hurts accessibility." in mobile.warnings

    def test_advanced_seo_missing_everything(self):
        advanced = RuleEvaluator().evaluate(page(html=html_with_head())).categories["advanced_seo"]

        assert advanced.failed == ["Favicon link is missing."]
        assert len(advanced.warnings) == 4
        assert "Page is indexable by search engines." in advanced.passed

    def test_noindex_warns(self):
        html = html_with_head('<meta name="robots" content="noindex, nofollow">')

        advanced = RuleEvaluator().evaluate(page(html=html)).categories["advanced_seo"]

        assert "Meta robots tag blocks indexing (noindex)." in advanced.warnings


class TestMergeFindings:
    """Test cases for merging sub-task results."""

    def test_audit_without_render_blocking(self):
        result = RuleEvaluation()

        data = merge_audit_findings(result, AuditResult(performance=90, render_blocking_resources=0))

        assert result.categories["speed"].passed == ["No render-blocking resources found by Lighthouse."]
        assert data["performance"] == 90

    def test_audit_with_render_blocking(self):
        result = RuleEvaluation()

        merge_audit_findings(result, AuditResult(render_blocking_resources=3))

        assert result.categories["speed"].failed == ["Lighthouse detected 3 render-blocking resources."]

    def test_audit_failure_becomes_warning(self):
        result = RuleEvaluation()
        error = AuditTimeoutError("Lighthouse analysis timed out.", details="no result within 60s")

        data = merge_audit_findings(result, None, error)

        assert result.categories["speed"].warnings == ["Lighthouse audit unavailable: no result within 60s"]
        assert data == {"error": "Lighthouse analysis failed or timed out.", "message": "no result within 60s"}

    def test_valid_certificate(self):
        result = RuleEvaluation()
        cert = CertificateInfo(subject="example.com", valid_to="2027-01-15T23:59:59+00:00")

        data = merge_certificate_findings(result, True, cert)

        assert result.categories["security"].passed == [
            "SSL certificate is valid until 2027-01-15T23:59:59+00:00."
        ]
        assert data["subject"] == "example.com"

    def test_expired_certificate(self):
        result = RuleEvaluation()
        cert = CertificateInfo(valid_to="2020-01-01T00:00:00+00:00", is_expired=True)

        merge_certificate_findings(result, True, cert)

        assert result.categories["security"].failed == ["SSL certificate expired on 2020-01-01T00:00:00+00:00."]

    def test_certificate_probe_error(self):
        result = RuleEvaluation()

        data = merge_certificate_findings(
            result, True, None, CertificateTimeoutError("SSL connection timed out.")
        )

        assert result.categories["security"].warnings == [
            "Could not verify SSL certificate: SSL connection timed out."
        ]
        assert data["error"] == "SSL connection timed out."

    def test_plain_http_adds_nothing(self):
        result = RuleEvaluation()

        data = merge_certificate_findings(result, False, None)

        assert result.categories["security"].total_checks == 0
        assert data == {"info": "Site is not using HTTPS."}


class TestConsoleErrorAnalyzer:
    """Test cases for ConsoleErrorAnalyzer."""

    def test_categorize(self):
        analyzer = ConsoleErrorAnalyzer()

        assert analyzer.categorize("TypeError: Cannot read properties of null") == "TypeError"
        assert analyzer.categorize("Failed to fetch") == "NetworkError"
        assert analyzer.categorize("Something else") == "Other"

    def test_analyze_counts_repeats(self):
        errors = ["TypeError: a"] * 3 + ["Oops"]

        summary = ConsoleErrorAnalyzer().analyze(errors)

        assert summary["total"] == 4
        assert summary["byType"] == {"TypeError": 3, "Other": 1}
        assert summary["commonErrors"][0] == {"message": "TypeError: a", "count": 3}
