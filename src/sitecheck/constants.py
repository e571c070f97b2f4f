# src/sitecheck/constants.py
"""Centralized constants for the page analyzer.

This module contains magic numbers and fixed values that are used across
multiple modules. For user-configurable thresholds, see config.py and
AnalysisThresholds.
"""

# =============================================================================
# Browser Resource Constants
# =============================================================================

# Idle time after which the shared browser is recycled (seconds)
DEFAULT_MAX_IDLE_SECONDS = 5 * 60

# Launch attempts before a browser launch is considered fatal
DEFAULT_MAX_LAUNCH_ATTEMPTS = 3

# Base for exponential backoff between launch attempts (seconds)
INITIAL_BACKOFF_DELAY_SECONDS = 2.0

# Base for exponential backoff calculation
EXPONENTIAL_BACKOFF_BASE = 2

# Maximum time a caller waits for an in-flight initialization (seconds)
DEFAULT_INIT_WAIT_SECONDS = 15.0

# Browser launch timeout (milliseconds)
BROWSER_LAUNCH_TIMEOUT_MS = 60000

# Chromium flags suited to running inside a container
CHROMIUM_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--no-first-run",
    "--no-zygote",
    "--disable-gpu",
]


# =============================================================================
# Page Fetch Constants
# =============================================================================

DEFAULT_VIEWPORT = {"width": 1920, "height": 1080}

DEFAULT_NAVIGATION_TIMEOUT_MS = 60000

DEFAULT_MAX_NAVIGATION_ATTEMPTS = 3

DEFAULT_NAVIGATION_RETRY_DELAY_SECONDS = 1.0

# Extra wait after navigation so late script errors are captured
DEFAULT_SETTLE_DELAY_MS = 1000

# Load conditions tried in order on repeated navigation failure
DEFAULT_WAIT_UNTIL_LADDER = ("networkidle", "load", "domcontentloaded")


# =============================================================================
# Sub-task Constants
# =============================================================================

HTTPS_PORT = 443

DEFAULT_SSL_TIMEOUT_SECONDS = 5.0

DEFAULT_LIGHTHOUSE_TIMEOUT_SECONDS = 60.0

LIGHTHOUSE_CATEGORIES = ["performance", "accessibility", "best-practices", "seo"]

LIGHTHOUSE_CHROME_FLAGS = [
    "--headless",
    "--no-sandbox",
    "--disable-gpu",
    "--disable-dev-shm-usage",
]

# Characters of lighthouse stderr kept in error messages
LIGHTHOUSE_STDERR_TAIL = 500


# =============================================================================
# Scoring Constants
# =============================================================================

CATEGORY_NAMES = ("common_seo", "speed", "security", "mobile", "advanced_seo")

CATEGORY_WEIGHTS = {
    "common_seo": 0.30,
    "speed": 0.30,
    "security": 0.15,
    "mobile": 0.15,
    "advanced_seo": 0.10,
}

# Score given to a category in which no check ran
EMPTY_CATEGORY_SCORE = 100

# Weight of a warning relative to a pass
WARNING_WEIGHT = 0.5

REPORT_SCHEMA_VERSION = "1.0"


# =============================================================================
# API Constants
# =============================================================================

ANALYSIS_FAILURE_SUGGESTIONS = [
    "Ensure the URL is correct and the website is online.",
    "The website may be blocking automated tools or requests.",
    "The server may be down or experiencing high traffic.",
]

INVALID_URL_SUGGESTIONS = [
    "Include the scheme, for example https://example.com.",
    "Only http:// and https:// URLs can be analyzed.",
]
