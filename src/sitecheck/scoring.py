"""Category and overall score aggregation."""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional, Union

from sitecheck.config import default_weights
from sitecheck.constants import EMPTY_CATEGORY_SCORE, WARNING_WEIGHT
from sitecheck.models import AnalysisReport, AuditResult, CategoryResult

logger = logging.getLogger(__name__)

Number = Union[int, float, Decimal]


def round_half_up(value: Number) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def category_score(passed: int, failed: int, warnings: int) -> int:
    """
    Score a category from its finding counts.

    score = round(100 * (passed + 0.5 * warnings) / total)

    Args:
        passed: Number of passed checks
        failed: Number of failed checks
        warnings: Number of warning checks

    Returns:
        Score 0-100, EMPTY_CATEGORY_SCORE when no checks ran
    """
    total = passed + failed + warnings
    if total == 0:
        return EMPTY_CATEGORY_SCORE
    earned = Decimal(passed) + Decimal(str(WARNING_WEIGHT)) * Decimal(warnings)
    return round_half_up(Decimal(100) * earned / Decimal(total))


def weighted_score(scores: Dict[str, int], weights: Dict[str, float]) -> int:
    """
    Weighted mean of category scores, normalized by the weights present.

    Args:
        scores: Category name -> score
        weights: Category name -> weight

    Returns:
        Rounded overall score, 0 when no weighted category is present
    """
    total = Decimal(0)
    total_weight = Decimal(0)
    for name, weight in weights.items():
        if name not in scores:
            continue
        w = Decimal(str(weight))
        total += Decimal(scores[name]) * w
        total_weight += w

    if total_weight == 0:
        return 0
    return round_half_up(total / total_weight)


class ScoreAggregator:
    """
    Computes category and overall scores for a report.

    Audit merge policy is take-the-max: a successful Lighthouse audit can raise
    the speed score (performance) and the common SEO score (seo) but never
    lowers them.
    """

    def __init__(self, weights: Optional[Dict[str, float]] = None):
        self.weights = dict(weights or default_weights)

    def score_category(self, category: CategoryResult) -> int:
        return category_score(
            len(category.passed), len(category.failed), len(category.warnings)
        )

    def apply(self, report: AnalysisReport, audit: Optional[AuditResult] = None) -> AnalysisReport:
        """
        Fill the report's score and total fields from its findings.

        Args:
            report: Report with findings already populated
            audit: Successful Lighthouse audit, or None

        Returns:
            The same report, updated in place
        """
        categories = report.categories()
        for category in categories.values():
            category.score = self.score_category(category)

        if audit is not None:
            report.speed.score = max(report.speed.score, audit.performance)
            report.common_seo.score = max(report.common_seo.score, audit.seo)

        report.overall_score = weighted_score(
            {name: category.score for name, category in categories.items()},
            self.weights,
        )
        report.total_passed = sum(len(c.passed) for c in categories.values())
        report.total_failed = sum(len(c.failed) for c in categories.values())
        report.total_warnings = sum(len(c.warnings) for c in categories.values())

        logger.debug(
            "Scores: "
            + ", ".join(f"{name}={c.score}" for name, c in categories.items())
            + f", overall={report.overall_score}"
        )
        return report
