"""
Deterministic page checks.

The RuleEvaluator reads a fetched page's HTML and headers and sorts every check
into one finding of one category. The merge helpers add the findings of the
certificate probe and the Lighthouse audit once those sub-tasks settle.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from sitecheck.config import AnalysisThresholds, default_thresholds
from sitecheck.console_analyzer import ConsoleErrorAnalyzer
from sitecheck.constants import CATEGORY_NAMES
from sitecheck.models import AuditResult, CategoryResult, CertificateInfo, PageContext

logger = logging.getLogger(__name__)


@dataclass
class RuleEvaluation:
    """Findings per category plus the page's metadata and technical blocks."""

    categories: Dict[str, CategoryResult] = field(
        default_factory=lambda: {name: CategoryResult() for name in CATEGORY_NAMES}
    )
    meta_info: Dict[str, Any] = field(default_factory=dict)
    technical_info: Dict[str, Any] = field(default_factory=dict)

    def passed(self, category: str, message: str) -> None:
        self.categories[category].passed.append(message)

    def failed(self, category: str, message: str) -> None:
        self.categories[category].failed.append(message)

    def warning(self, category: str, message: str) -> None:
        self.categories[category].warnings.append(message)


def _meta_content(soup: BeautifulSoup, **attrs: Any) -> Optional[str]:
    tag = soup.find('meta', attrs={
        key: re.compile(f'^{re.escape(value)}$', re.IGNORECASE)
        for key, value in attrs.items()
    })
    if tag is None:
        return None
    content = (tag.get('content') or '').strip()
    return content or None


def _rel_values(link: Any) -> List[str]:
    rel = link.get('rel') or []
    if isinstance(rel, str):
        rel = rel.split()
    return [value.lower() for value in rel]


def _find_links(soup: BeautifulSoup, token: str) -> List[Any]:
    """Links whose rel attribute contains token (substring match)."""
    return [
        link for link in soup.find_all('link')
        if token in ' '.join(_rel_values(link))
    ]


def _viewport_settings(viewport: str) -> Dict[str, str]:
    settings = {}
    for part in re.split(r'[,;]', viewport):
        key, _, value = part.partition('=')
        if key.strip():
            settings[key.strip().lower()] = value.strip().lower()
    return settings


class RuleEvaluator:
    """Runs the check battery against one page."""

    def __init__(
        self,
        thresholds: Optional[AnalysisThresholds] = None,
        console_analyzer: Optional[ConsoleErrorAnalyzer] = None,
    ):
        """Initialize evaluator with configurable thresholds.

        Args:
            thresholds: Analysis thresholds configuration
            console_analyzer: Categorizes captured script errors
        """
        self.thresholds = thresholds or default_thresholds
        self.console_analyzer = console_analyzer or ConsoleErrorAnalyzer(self.thresholds)

    def evaluate(self, page: PageContext) -> RuleEvaluation:
        """Run every check against a page.

        Args:
            page: Fetched HTML, lower-cased headers and script errors

        Returns:
            RuleEvaluation with findings, metadata and technical info
        """
        soup = BeautifulSoup(page.html, 'html.parser')
        result = RuleEvaluation()

        self._check_common_seo(soup, page, result)
        self._check_speed(soup, page, result)
        self._check_security(page, result)
        self._check_mobile(soup, result)
        self._check_advanced_seo(soup, result)

        logger.debug(
            f"Rules for {page.url}: "
            + ", ".join(
                f"{name}={len(c.passed)}/{len(c.failed)}/{len(c.warnings)}"
                for name, c in result.categories.items()
            )
        )
        return result

    def _check_common_seo(self, soup: BeautifulSoup, page: PageContext, result: RuleEvaluation) -> None:
        t = self.thresholds

        # Title
        title = soup.title.get_text().strip() if soup.title else ''
        result.meta_info['title'] = title or 'Missing title tag'
        if not title:
            result.failed('common_seo', 'Missing title tag.')
        elif len(title) < t.title_min:
            result.warning(
                'common_seo',
                f'Title tag is too short ({len(title)} characters). '
                f'Recommended is {t.title_min}-{t.title_max}.'
            )
        elif len(title) > t.title_max:
            result.failed(
                'common_seo',
                f'Title tag is too long ({len(title)} characters). '
                f'Recommended is {t.title_min}-{t.title_max}.'
            )
        else:
            result.passed('common_seo', f'Title tag is a good length ({len(title)} characters).')

        # Meta description
        description = _meta_content(soup, name='description')
        result.meta_info['metaDescription'] = description or 'Missing meta description tag.'
        if not description:
            result.failed('common_seo', 'Missing meta description tag.')
        elif len(description) < t.description_min:
            result.warning(
                'common_seo',
                f'Meta description is too short ({len(description)} characters). '
                f'Recommended is {t.description_min}-{t.description_max}.'
            )
        elif len(description) > t.description_max:
            result.failed(
                'common_seo',
                f'Meta description is too long ({len(description)} characters). '
                f'Recommended is {t.description_min}-{t.description_max}.'
            )
        else:
            result.passed(
                'common_seo',
                f'Meta description is a good length ({len(description)} characters).'
            )

        # Headings
        h1_tags = [h.get_text().strip() for h in soup.find_all('h1')]
        h2_count = len(soup.find_all('h2'))
        result.meta_info['h1'] = h1_tags
        if len(h1_tags) == 1:
            result.passed('common_seo', 'Page has exactly one H1 tag.')
        elif not h1_tags:
            result.failed('common_seo', 'Page is missing an H1 tag.')
        else:
            result.warning('common_seo', f'Page has {len(h1_tags)} H1 tags. Only one is recommended.')

        if h2_count:
            result.passed('common_seo', f'Page uses H2 subheadings ({h2_count} found).')
        else:
            result.warning('common_seo', 'Page has no H2 subheadings.')

        # Images
        images = soup.find_all('img')
        without_alt = [img for img in images if not (img.get('alt') or '').strip()]
        if images:
            if without_alt:
                result.failed(
                    'common_seo',
                    f'{len(without_alt)} out of {len(images)} images are missing descriptive alt attributes.'
                )
            else:
                result.passed('common_seo', f'All {len(images)} images have alt attributes.')

        # Viewport
        viewport = _meta_content(soup, name='viewport')
        if viewport and 'width=device-width' in viewport.replace(' ', '').lower():
            result.passed('common_seo', 'Viewport meta tag is configured for device width.')
        else:
            result.failed('common_seo', 'Viewport meta tag is missing or misconfigured.')

        # Script errors
        errors = page.console_errors
        if not errors:
            result.passed('common_seo', 'No JavaScript errors detected in the console.')
        else:
            result.warning('common_seo', f'Detected {len(errors)} JavaScript errors in the console.')

        result.technical_info['imageCount'] = len(images)
        result.technical_info['imagesWithoutAlt'] = len(without_alt)
        result.technical_info['h1Count'] = len(h1_tags)
        result.technical_info['h2Count'] = h2_count
        result.technical_info['linkCount'] = len(soup.find_all('a', href=True))
        result.technical_info['consoleErrors'] = list(errors)
        result.technical_info['consoleErrorSummary'] = self.console_analyzer.analyze(errors)

    def _check_speed(self, soup: BeautifulSoup, page: PageContext, result: RuleEvaluation) -> None:
        t = self.thresholds

        script_count = len(soup.find_all('script'))
        if script_count <= t.max_scripts:
            result.passed('speed', f'Reasonable number of script tags ({script_count}).')
        else:
            result.warning(
                'speed',
                f'Page includes {script_count} script tags. Consider bundling scripts (recommended at most {t.max_scripts}).'
            )

        style_blocks = len(soup.find_all('style'))
        if style_blocks <= t.max_style_blocks:
            result.passed('speed', f'Reasonable number of <style> blocks ({style_blocks}).')
        else:
            result.warning(
                'speed',
                f'Page includes {style_blocks} <style> blocks (recommended at most {t.max_style_blocks}).'
            )

        image_count = len(soup.find_all('img'))
        if image_count <= t.max_images:
            result.passed('speed', f'Reasonable number of images ({image_count}).')
        else:
            result.warning(
                'speed',
                f'Page loads {image_count} images. Consider lazy loading (recommended at most {t.max_images}).'
            )

        inline_css = style_blocks + len(soup.find_all(style=True))
        if inline_css > t.max_inline_styles:
            result.warning(
                'speed',
                f'High use of inline CSS ({inline_css} instances). Consider moving to external stylesheets.'
            )
        else:
            result.passed('speed', 'Low usage of inline CSS styles.')

        html_size_kb = round(len(page.html.encode('utf-8')) / 1024, 2)
        if html_size_kb < t.max_html_kb:
            result.passed('speed', f'HTML page size is small ({html_size_kb} KB).')
        else:
            result.warning('speed', f'HTML page size is {html_size_kb} KB. Consider reducing it.')

        result.technical_info['scriptCount'] = script_count
        result.technical_info['styleBlockCount'] = style_blocks
        result.technical_info['inlineCssCount'] = inline_css
        result.technical_info['htmlSizeKB'] = html_size_kb

    def _check_security(self, page: PageContext, result: RuleEvaluation) -> None:
        headers = page.headers

        if page.is_https:
            result.passed('security', 'Site uses HTTPS, which is secure.')
            if 'http://' in page.html:
                result.warning('security', 'Mixed content warning: Page loads assets over insecure HTTP.')
            else:
                result.passed('security', 'No mixed content (HTTP assets on HTTPS page) detected.')
        else:
            result.failed('security', 'Site does not use HTTPS. This is a major security risk.')

        if headers.get('strict-transport-security'):
            result.passed('security', 'HTTP Strict Transport Security (HSTS) header is present.')
        else:
            result.warning(
                'security',
                'HSTS header is not present, leaving the site vulnerable to man-in-the-middle attacks.'
            )

        server = headers.get('server')
        if not server:
            result.passed('security', 'Server signature is hidden, which is a good security practice.')
        else:
            result.warning('security', f'Server signature is visible: {server}.')

        if headers.get('x-content-type-options'):
            result.passed('security', 'X-Content-Type-Options header is present.')
        else:
            result.warning('security', 'X-Content-Type-Options header is missing.')

        csp = headers.get('content-security-policy', '').lower()
        if headers.get('x-frame-options') or 'frame-ancestors' in csp:
            result.passed('security', 'Clickjacking protection (X-Frame-Options or CSP frame-ancestors) is set.')
        else:
            result.warning('security', 'No clickjacking protection (X-Frame-Options or CSP frame-ancestors).')

    def _check_mobile(self, soup: BeautifulSoup, result: RuleEvaluation) -> None:
        viewport = _meta_content(soup, name='viewport')
        result.meta_info['viewport'] = viewport or 'N/A'
        settings = _viewport_settings(viewport or '')

        if settings.get('width') == 'device-width':
            result.passed('mobile', 'A mobile-friendly viewport is configured.')
        else:
            result.failed('mobile', 'Viewport meta tag is missing or misconfigured.')

        if viewport:
            if self._zoom_disabled(settings):
                result.warning('mobile', 'Viewport disables zooming, which hurts accessibility.')
            else:
                result.passed('mobile', 'Users can zoom the page.')

        if _find_links(soup, 'apple-touch-icon'):
            result.passed('mobile', 'Apple touch icon is specified.')
        else:
            result.warning('mobile', 'No apple-touch-icon link found for home screen shortcuts.')

    @staticmethod
    def _zoom_disabled(settings: Dict[str, str]) -> bool:
        if settings.get('user-scalable') in ('no', '0'):
            return True
        try:
            return float(settings.get('maximum-scale', '')) <= 1
        except ValueError:
            return False

    def _check_advanced_seo(self, soup: BeautifulSoup, result: RuleEvaluation) -> None:
        canonical_links = _find_links(soup, 'canonical')
        canonical = (canonical_links[0].get('href') or '').strip() if canonical_links else ''
        result.meta_info['canonical'] = canonical or 'N/A'
        if canonical:
            result.passed('advanced_seo', f'Canonical tag found, pointing to: {canonical}')
        else:
            result.warning('advanced_seo', 'No canonical tag found. This can lead to duplicate content issues.')

        if soup.find('script', attrs={'type': re.compile(r'^application/ld\+json$', re.I)}):
            result.passed('advanced_seo', 'Structured data (JSON-LD) was found on the page.')
        else:
            result.warning('advanced_seo', 'No structured data (JSON-LD) was found.')

        og_title = _meta_content(soup, property='og:title')
        og_description = _meta_content(soup, property='og:description')
        result.meta_info['ogTitle'] = og_title
        result.meta_info['ogDescription'] = og_description
        if og_title or og_description:
            result.passed('advanced_seo', 'Open Graph tags are present for social sharing.')
        else:
            result.warning('advanced_seo', 'No Open Graph tags (og:title, og:description) found.')

        if _find_links(soup, 'icon'):
            result.passed('advanced_seo', 'A favicon is specified.')
        else:
            result.failed('advanced_seo', 'Favicon link is missing.')

        html_tag = soup.find('html')
        language = (html_tag.get('lang') or '').strip() if html_tag else ''
        result.meta_info['language'] = language or 'N/A'
        if language:
            result.passed('advanced_seo', f'Page language is declared ({language}).')
        else:
            result.warning('advanced_seo', 'The <html> element has no lang attribute.')

        robots = _meta_content(soup, name='robots')
        result.meta_info['robots'] = robots or 'N/A'
        if robots and 'noindex' in robots.lower():
            result.warning('advanced_seo', 'Meta robots tag blocks indexing (noindex).')
        else:
            result.passed('advanced_seo', 'Page is indexable by search engines.')


def merge_audit_findings(
    result: RuleEvaluation,
    audit: Optional[AuditResult],
    error: Optional[Exception] = None,
) -> Dict[str, Any]:
    """Add the Lighthouse findings to the speed category.

    Args:
        result: Evaluation to extend
        audit: Successful audit, or None
        error: Why the audit failed or was skipped

    Returns:
        The lighthouse report block: audit numbers or an error marker
    """
    if audit is not None:
        if audit.render_blocking_resources == 0:
            result.passed('speed', 'No render-blocking resources found by Lighthouse.')
        else:
            result.failed(
                'speed',
                f'Lighthouse detected {audit.render_blocking_resources} render-blocking resources.'
            )
        return audit.to_dict()

    message = getattr(error, 'details', None) or str(error or 'Lighthouse audit was not run.')
    result.warning('speed', f'Lighthouse audit unavailable: {message}')
    return {'error': 'Lighthouse analysis failed or timed out.', 'message': message}


def merge_certificate_findings(
    result: RuleEvaluation,
    is_https: bool,
    certificate: Optional[CertificateInfo],
    error: Optional[Exception] = None,
) -> Dict[str, Any]:
    """Add the certificate findings to the security category.

    Args:
        result: Evaluation to extend
        is_https: Whether the page was requested over HTTPS
        certificate: Probed certificate, or None
        error: Why the probe failed

    Returns:
        The ssl info block: certificate, error marker, or plain-HTTP notice
    """
    if not is_https:
        return {'info': 'Site is not using HTTPS.'}

    if certificate is not None:
        if certificate.is_expired:
            result.failed('security', f'SSL certificate expired on {certificate.valid_to}.')
        else:
            result.passed('security', f'SSL certificate is valid until {certificate.valid_to}.')
        return certificate.to_dict()

    message = getattr(error, 'message', None) or str(error or 'SSL Info not available.')
    result.warning('security', f'Could not verify SSL certificate: {message}')
    return {
        'error': message,
        'message': getattr(error, 'details', None) or message,
    }
