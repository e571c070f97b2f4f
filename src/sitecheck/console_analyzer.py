"""Script error analyzer for JavaScript health assessment."""

import re
from collections import Counter
from typing import Any, Dict, List, Optional, Pattern

from sitecheck.config import AnalysisThresholds, default_thresholds


class ConsoleErrorAnalyzer:
    """Categorizes uncaught script errors captured while a page loaded."""

    # Default error type patterns (can be extended via constructor)
    DEFAULT_ERROR_PATTERNS: Dict[str, str] = {
        'TypeError': r'TypeError',
        'ReferenceError': r'ReferenceError',
        'SyntaxError': r'SyntaxError',
        'RangeError': r'RangeError',
        'URIError': r'URIError',
        'NetworkError': r'(NetworkError|Failed to fetch|net::)',
        'SecurityError': r'(SecurityError|CORS|blocked)',
        'ResourceError': r'(404|Failed to load|ERR_)',
    }

    def __init__(
        self,
        thresholds: Optional[AnalysisThresholds] = None,
        error_patterns: Optional[Dict[str, str]] = None,
    ):
        """Initialize analyzer with configurable settings.

        Args:
            thresholds: Analysis thresholds configuration
            error_patterns: Custom error categorization patterns
        """
        self.thresholds = thresholds or default_thresholds
        self.error_patterns = error_patterns or self.DEFAULT_ERROR_PATTERNS

        self._compiled_patterns: Dict[str, Pattern] = {
            name: re.compile(pattern, re.IGNORECASE)
            for name, pattern in self.error_patterns.items()
        }

    @property
    def top_errors_count(self) -> int:
        """Number of most common errors to report."""
        return self.thresholds.console_error_top_count

    def analyze(self, errors: List[str]) -> Dict[str, Any]:
        """Summarize the script errors of one page.

        Args:
            errors: Error messages in the order they were raised

        Returns:
            Dictionary with total, per-type counts and most common messages
        """
        errors_by_type: Dict[str, int] = {}
        for error in errors:
            error_type = self.categorize(error)
            errors_by_type[error_type] = errors_by_type.get(error_type, 0) + 1

        counter = Counter(error[:100] for error in errors)
        return {
            'total': len(errors),
            'byType': errors_by_type,
            'commonErrors': [
                {'message': message, 'count': count}
                for message, count in counter.most_common(self.top_errors_count)
            ],
        }

    def categorize(self, error: str) -> str:
        """Categorize an error message by type.

        Args:
            error: Error message string

        Returns:
            Error type category
        """
        for error_type, pattern in self._compiled_patterns.items():
            if pattern.search(error):
                return error_type
        return 'Other'
