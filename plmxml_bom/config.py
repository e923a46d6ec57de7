"""
Configuration for PLMXML ingestion.

Settings are read from environment variables. A ``.env.<ENV>`` file (falling
back to ``.env``) is loaded first when python-dotenv finds one, so a
deployment can keep its settings next to the application.

Variables:
    ENV: "development" (default) or "production"
    PLMXML_DEBUG: "true" to log every parsed element
    PLMXML_LOG_FILE: Per-parse log file (unset = logger output only)
    PLMXML_SITE_SETTINGS: JSON file mapping site ids to external system URLs
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .utils.logging import get_logger

logger = get_logger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


def load_env_file(env: Optional[str] = None) -> Optional[str]:
    """
    Load environment variables from the .env file matching ``env``.

    Existing environment variables are not overridden.

    Returns:
        The file that was loaded, or None if there was none
    """
    env = env or os.getenv("ENV", "development")
    for candidate in (f".env.{env}", ".env"):
        if os.path.exists(candidate):
            load_dotenv(candidate, override=False)
            logger.info(f"[CONFIG] Loaded environment from {candidate} (ENV={env})")
            return candidate
    logger.debug(f"[CONFIG] No .env file found (ENV={env}), using process environment")
    return None


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class Settings:
    env: str = "development"
    debug: bool = False
    log_file: Optional[str] = None
    site_settings_path: Optional[str] = None

    @property
    def is_production(self) -> bool:
        return self.env == "production"


def get_settings() -> Settings:
    """Read settings from the current environment."""
    return Settings(
        env=os.getenv("ENV", "development"),
        debug=_env_bool("PLMXML_DEBUG"),
        log_file=os.getenv("PLMXML_LOG_FILE") or None,
        site_settings_path=os.getenv("PLMXML_SITE_SETTINGS") or None,
    )
