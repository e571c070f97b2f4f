"""Logging configuration for the page analyzer and its HTTP server."""

import logging
import sys
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Library loggers that are too chatty at INFO
LIBRARY_LOG_LEVELS = {
    'asyncio': logging.WARNING,
    'playwright': logging.WARNING,
    'httpx': logging.WARNING,
    'uvicorn.access': logging.WARNING,
}

# uvicorn loggers routed through the root handlers
SERVER_LOGGERS = ('uvicorn', 'uvicorn.error')


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    access_log: bool = False,
) -> None:
    """Configure logging for the CLI and the API server.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path, parent directories are created
        format_string: Optional custom format string
        access_log: Log one line per HTTP request at INFO
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=numeric_level,
        format=format_string or DEFAULT_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name, library_level in LIBRARY_LOG_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)
    if access_log:
        logging.getLogger('uvicorn.access').setLevel(logging.INFO)

    # Server startup, shutdown and crash messages share the application's handlers
    for name in SERVER_LOGGERS:
        server_logger = logging.getLogger(name)
        server_logger.handlers.clear()
        server_logger.propagate = True
        server_logger.setLevel(numeric_level)
