"""Command-line interface for the page analyzer."""

import asyncio
import json
import logging
import sys
from typing import Optional

from sitecheck.analyzer import PageAnalyzer
from sitecheck.config import AnalysisThresholds, settings
from sitecheck.errors import SiteCheckError
from sitecheck.infrastructure.browser_manager import BrowserManager
from sitecheck.logging_config import setup_logging
from sitecheck.models import AnalysisReport

logger = logging.getLogger(__name__)

CATEGORY_LABELS = {
    "common_seo": "Common SEO",
    "speed": "Speed",
    "security": "Security",
    "mobile": "Mobile",
    "advanced_seo": "Advanced SEO",
}


def _build_manager() -> BrowserManager:
    return BrowserManager(
        max_idle_seconds=settings.BROWSER_MAX_IDLE_SECONDS,
        max_launch_attempts=settings.BROWSER_MAX_LAUNCH_ATTEMPTS,
    )


async def _run_analysis(
    url: str, lighthouse: bool, thresholds: Optional[AnalysisThresholds] = None
) -> AnalysisReport:
    """Analyze one URL with a private browser manager.

    Args:
        url: URL to analyze
        lighthouse: Whether to run the Lighthouse audit
        thresholds: Rule thresholds, None for the configured defaults

    Returns:
        AnalysisReport for the URL
    """
    manager = _build_manager()
    try:
        analyzer = PageAnalyzer.from_settings(manager, settings, thresholds)
        if not lighthouse:
            analyzer.lighthouse = None
        return await analyzer.analyze(url)
    finally:
        await manager.close()


def print_report(report: AnalysisReport):
    """Print an analysis report in a formatted way.

    Args:
        report: AnalysisReport to print
    """
    print(f"\n{'=' * 60}")
    print(f"Page Analysis for: {report.analyzed_url}")
    print(f"{'=' * 60}")
    print(f"\n📊 Overall Score: {report.overall_score}/100")
    print(
        f"   {report.total_passed} passed, {report.total_failed} failed, "
        f"{report.total_warnings} warnings ({report.analysis_time_ms} ms)"
    )

    for name, category in report.categories().items():
        print(f"\n{CATEGORY_LABELS[name]}: {category.score}/100")
        for message in category.failed:
            print(f"  ❌ {message}")
        for message in category.warnings:
            print(f"  ⚠️  {message}")
        for message in category.passed:
            print(f"  ✅ {message}")

    print(f"\n{'=' * 60}\n")


def analyze_command(args):
    """Analyze a URL and print or save the report."""
    try:
        report = asyncio.run(_run_analysis(
            args.url,
            lighthouse=not args.no_lighthouse,
            thresholds=AnalysisThresholds.load(args.thresholds),
        ))
    except SiteCheckError as e:
        print(f"\n❌ Failed to analyze {args.url}: {e.details}")
        sys.exit(1)

    if args.output == "json":
        output = json.dumps(report.to_dict(), indent=2, default=str)
        if args.output_file:
            with open(args.output_file, "w") as f:
                f.write(output)
            print(f"\nReport written to {args.output_file}")
        else:
            print(output)
    else:
        print_report(report)


def serve_command(args):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    from sitecheck.api import create_app

    manager = _build_manager()
    app = create_app(manager=manager, thresholds=AnalysisThresholds.load(args.thresholds))

    try:
        uvicorn.run(
            app,
            host=args.host,
            port=args.port,
            log_config=None,
            access_log=args.access_log,
        )
    except Exception as e:
        logger.critical(f"Server stopped with an uncaught error: {e}")
        asyncio.run(manager.close())
        sys.exit(1)


def main(argv: Optional[list[str]] = None):
    """Main CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="sitecheck - Analyze a web page for SEO, speed, security and mobile readiness"
    )

    # Global flags (before subcommands)
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=settings.LOG_LEVEL.upper(),
        help="Set logging verbosity (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        default=settings.LOG_FILE,
        help="Write logs to file in addition to console",
    )
    parser.add_argument(
        "--thresholds",
        default=settings.THRESHOLDS_FILE,
        help="JSON file of rule thresholds (default: SITECHECK_THRESHOLD_* variables)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API.")
    serve_parser.add_argument(
        "--host",
        default=settings.HOST,
        help=f"Interface to bind (default: {settings.HOST})",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=settings.PORT,
        help=f"Port to listen on (default: {settings.PORT})",
    )
    serve_parser.add_argument(
        "--access-log",
        action="store_true",
        help="Log every HTTP request",
    )
    serve_parser.set_defaults(func=serve_command)

    analyze_parser = subparsers.add_parser("analyze", help="Analyze a single URL.")
    analyze_parser.add_argument("url", help="URL to analyze")
    analyze_parser.add_argument(
        "--output",
        "-o",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    analyze_parser.add_argument(
        "--output-file",
        "-f",
        help="Write output to file (only for json format)",
    )
    analyze_parser.add_argument(
        "--no-lighthouse",
        action="store_true",
        help="Skip the Lighthouse audit",
    )
    analyze_parser.set_defaults(func=analyze_command)

    args = parser.parse_args(argv)

    setup_logging(
        level=args.log_level,
        log_file=args.log_file,
        access_log=getattr(args, "access_log", False),
    )

    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
