"""Runtime configuration read from the environment (and an optional .env file)."""

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()  # load environment variables from .env file


@dataclass(frozen=True)
class Settings:
    log_level: str
    script_runner_url: str | None
    script_runner_timeout: float
    mass_delete_threshold: int
    cors_origins: list[str]


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build the settings once per process.

    Call ``get_settings.cache_clear()`` after changing the environment in tests.
    """
    return Settings(
        log_level=os.getenv("SKILLGRAPH_LOG_LEVEL", "INFO").upper(),
        script_runner_url=os.getenv("SKILLGRAPH_SCRIPT_RUNNER_URL") or None,
        script_runner_timeout=_env_float("SKILLGRAPH_SCRIPT_RUNNER_TIMEOUT", 10.0),
        mass_delete_threshold=_env_int("SKILLGRAPH_MASS_DELETE_THRESHOLD", 10),
        # comma-separated values for multiple origins, or "*" for all (development only)
        cors_origins=os.getenv("CORS_ORIGINS", "*").split(","),
    )
