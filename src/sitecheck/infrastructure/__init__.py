"""
Infrastructure Package.

Provides the shared browser resource and the timeout-bounded task helper used
by the analysis pipeline.
"""

from .browser_manager import (
    BrowserManager,
    BrowserLauncher,
    PlaywrightLauncher,
    BrowserHealth,
    ManagerStatus,
)
from .tasks import run_with_timeout, cancel_and_wait

__all__ = [
    # Browser Manager
    "BrowserManager",
    "BrowserLauncher",
    "PlaywrightLauncher",
    "BrowserHealth",
    "ManagerStatus",
    # Tasks
    "run_with_timeout",
    "cancel_and_wait",
]
