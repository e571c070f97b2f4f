from dotenv import load_dotenv
from dataclasses import dataclass
from typing import Optional
from pathlib import Path
import json
import os

from sitecheck.constants import (
    CATEGORY_WEIGHTS,
    DEFAULT_LIGHTHOUSE_TIMEOUT_SECONDS,
    DEFAULT_MAX_IDLE_SECONDS,
    DEFAULT_MAX_LAUNCH_ATTEMPTS,
    DEFAULT_SSL_TIMEOUT_SECONDS,
)

load_dotenv()  # Loads variables from .env file


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if not value:
        return None
    return float(value)


class Settings:
    """
    Manages application settings loaded from environment variables.
    """
    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = int(os.getenv("PORT", "3001"))
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("LOG_FILE")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Shared browser
    BROWSER_MAX_IDLE_SECONDS = float(
        os.getenv("BROWSER_MAX_IDLE_SECONDS", str(DEFAULT_MAX_IDLE_SECONDS))
    )
    BROWSER_MAX_LAUNCH_ATTEMPTS = int(
        os.getenv("BROWSER_MAX_LAUNCH_ATTEMPTS", str(DEFAULT_MAX_LAUNCH_ATTEMPTS))
    )

    # Sub-tasks
    LIGHTHOUSE_ENABLED = _env_bool("LIGHTHOUSE_ENABLED", True)
    LIGHTHOUSE_PATH = os.getenv("LIGHTHOUSE_PATH", "lighthouse")
    LIGHTHOUSE_TIMEOUT_SECONDS = float(
        os.getenv("LIGHTHOUSE_TIMEOUT_SECONDS", str(DEFAULT_LIGHTHOUSE_TIMEOUT_SECONDS))
    )
    SSL_TIMEOUT_SECONDS = float(
        os.getenv("SSL_TIMEOUT_SECONDS", str(DEFAULT_SSL_TIMEOUT_SECONDS))
    )

    # Whole-request deadline; unset means no deadline beyond the sub-timeouts
    ANALYSIS_TIMEOUT_SECONDS = _env_float("ANALYSIS_TIMEOUT_SECONDS")

    # JSON file of rule thresholds; unset reads SITECHECK_THRESHOLD_* variables
    THRESHOLDS_FILE = os.getenv("SITECHECK_THRESHOLDS_FILE")

    @property
    def cors_origins_list(self) -> list[str]:
        """CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


settings = Settings()


@dataclass
class AnalysisThresholds:
    """Configurable thresholds for the page rule checks."""

    # Common SEO
    title_min: int = 30
    title_max: int = 60
    description_min: int = 120
    description_max: int = 160

    # Speed
    max_scripts: int = 10
    max_style_blocks: int = 3
    max_images: int = 20
    max_inline_styles: int = 10
    max_html_kb: float = 50.0

    # Console errors
    console_error_top_count: int = 10  # Number of top errors to show

    @classmethod
    def from_env(cls) -> "AnalysisThresholds":
        """Load thresholds from environment variables.

        Environment variables should be prefixed with SITECHECK_THRESHOLD_
        e.g., SITECHECK_THRESHOLD_TITLE_MAX=70

        Returns:
            AnalysisThresholds with values from environment
        """
        thresholds = cls()
        prefix = "SITECHECK_THRESHOLD_"

        for field_name in thresholds.__dataclass_fields__:
            env_key = f"{prefix}{field_name.upper()}"
            env_value = os.getenv(env_key)

            if env_value is not None:
                field_type = thresholds.__dataclass_fields__[field_name].type
                try:
                    if field_type in (int, "int"):
                        setattr(thresholds, field_name, int(env_value))
                    elif field_type in (float, "float"):
                        setattr(thresholds, field_name, float(env_value))
                except ValueError:
                    pass  # Keep default if conversion fails

        return thresholds

    @classmethod
    def from_file(cls, path: str) -> "AnalysisThresholds":
        """Load thresholds from a JSON configuration file.

        Args:
            path: Path to JSON configuration file

        Returns:
            AnalysisThresholds with values from file
        """
        thresholds = cls()
        file_path = Path(path)

        if not file_path.exists():
            return thresholds

        with open(file_path, 'r') as f:
            config = json.load(f)

        threshold_config = config.get('thresholds', config)

        for field_name in thresholds.__dataclass_fields__:
            if field_name in threshold_config:
                setattr(thresholds, field_name, threshold_config[field_name])

        return thresholds

    @classmethod
    def load(cls, path: Optional[str] = None) -> "AnalysisThresholds":
        """Load thresholds from a JSON file when one is given, else the environment."""
        if path:
            return cls.from_file(path)
        return cls.from_env()

    def to_dict(self) -> dict:
        """Convert thresholds to dictionary.

        Returns:
            Dictionary of all threshold values
        """
        return {
            field_name: getattr(self, field_name)
            for field_name in self.__dataclass_fields__
        }


# Global default thresholds instance
default_thresholds = AnalysisThresholds()

# Category weights for the overall score
default_weights = dict(CATEGORY_WEIGHTS)
