"""Configuration module for reqlog.

Loads and validates the environment variables used to wire the request
logger into an application.
"""

import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class ConfigError(Exception):
    """Raised when a configuration value is invalid."""
    pass


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self, validate: bool = True):
        """Initialize configuration and validate values.

        Args:
            validate: If False, skips filesystem checks.
                     Automatically set to False when pytest is detected.
        """
        # Auto-detect pytest environment
        if not validate or "pytest" in sys.modules:
            validate = False

        # Application settings
        self.environment = os.getenv("ENVIRONMENT", "development")
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.access_log_level = os.getenv("ACCESS_LOG_LEVEL", "") or self.log_level
        self.json_logs = self._get_bool("JSON_LOGS", self.environment == "production")

        # GeoIP database (empty = geo enrichment disabled)
        self.geoip_db_path = self._get_optional("GEOIP_DB_PATH", "") or ""

        # Header names
        self.request_id_header = os.getenv("REQUEST_ID_HEADER", "X-Request-ID")
        self.forwarded_for_header = os.getenv("FORWARDED_FOR_HEADER", "X-Forwarded-For")

        if validate:
            self.validate()

    def validate(self) -> None:
        """Check values that can only be wrong at runtime.

        Raises:
            ConfigError: If the GeoIP database path does not point to a file.
        """
        if self.geoip_db_path and not Path(self.geoip_db_path).is_file():
            raise ConfigError(
                f"GEOIP_DB_PATH '{self.geoip_db_path}' does not exist. "
                f"Unset it to disable geo enrichment."
            )
        if not self.request_id_header or not self.forwarded_for_header:
            raise ConfigError("REQUEST_ID_HEADER and FORWARDED_FOR_HEADER must not be empty.")

    def _get_bool(self, key: str, default: bool) -> bool:
        value = os.getenv(key)
        if value is None or value == "":
            return default
        return value.lower() in ("1", "true", "yes")

    def _get_optional(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get an optional environment variable.

        Args:
            key: The environment variable name.
            default: The default value if not set.

        Returns:
            The environment variable value or default.
        """
        return os.getenv(key, default)
