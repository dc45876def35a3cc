"""Application configuration using pydantic-settings."""

import logging
import sys
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be overridden via environment variables
    prefixed with JKBMS_ (e.g., JKBMS_DEVICE_ADDRESS).
    """

    device_address: str | None = None
    device_name: str = ""
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"
    connect_timeout: float = 10.0
    request_timeout: float = 10.0
    cycle_timeout: float = 30.0
    max_attempts: int = 3
    backoff_base: float = 2.0
    refresh_interval: float = 900.0
    refresh_on_start: bool = True
    persist_cache: bool = True
    state_dir: str = "/var/lib/jkbms-gateway"

    model_config = SettingsConfigDict(env_prefix="JKBMS_")

    @property
    def snapshot_file(self) -> Path:
        """Path to the file storing the cached snapshot and selected device."""
        return Path(self.state_dir) / "snapshot.json"


def setup_logging(level: str = "INFO") -> None:
    """Configure application logging.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )
