"""Environment configuration for the rollover client."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

DEFAULT_API_URL = "http://localhost:3001/api"
DEFAULT_TIMEOUT = 30.0


class ConfigError(Exception):
    """Raised when required configuration is missing or malformed."""

    pass


@dataclass(frozen=True)
class Settings:
    """Runtime settings read from the environment."""

    api_url: str = DEFAULT_API_URL
    api_token: Optional[str] = None
    school_id: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    log_level: str = "WARNING"

    def require_school_id(self) -> str:
        if not self.school_id:
            raise ConfigError(
                "Missing school id. Set STUDENTLY_SCHOOL_ID in the environment or in .env file."
            )
        return self.school_id


def load_env() -> None:
    """Load .env from the project directory."""
    # Try the directory containing this file first, then walk up
    here = Path(__file__).resolve().parent
    for candidate in [here / ".env", here.parent / ".env", here.parent.parent / ".env"]:
        if candidate.exists():
            load_dotenv(candidate)
            return
    # Fallback: let dotenv search from cwd
    load_dotenv()


def load_settings() -> Settings:
    """Build settings from environment variables.

    Raises:
        ConfigError: If STUDENTLY_TIMEOUT is not a positive number
    """
    raw_timeout = os.getenv("STUDENTLY_TIMEOUT")
    timeout = DEFAULT_TIMEOUT
    if raw_timeout:
        try:
            timeout = float(raw_timeout)
        except ValueError:
            raise ConfigError(f"STUDENTLY_TIMEOUT must be a number of seconds, got {raw_timeout!r}")
        if timeout <= 0:
            raise ConfigError("STUDENTLY_TIMEOUT must be positive")

    return Settings(
        api_url=os.getenv("STUDENTLY_API_URL") or DEFAULT_API_URL,
        api_token=os.getenv("STUDENTLY_API_TOKEN") or None,
        school_id=os.getenv("STUDENTLY_SCHOOL_ID") or None,
        timeout=timeout,
        log_level=(os.getenv("STUDENTLY_LOG_LEVEL") or "WARNING").upper(),
    )
