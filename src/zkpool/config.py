"""Runtime settings for the privacy pool engine.

Values are read from ``ZKPOOL_*`` environment variables, optionally via a
``.env`` file in the working directory.
"""

import logging
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class PoolSettings(BaseSettings):
    """Engine settings."""

    model_config = SettingsConfigDict(
        env_prefix="ZKPOOL_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    tree_height: int = Field(20, ge=1, le=32)
    root_history_size: int = Field(30, ge=0)
    proving_key_path: Optional[Path] = None
    verifying_key_path: Optional[Path] = None
    log_level: str = "INFO"


def setup_logging(settings: Optional[PoolSettings] = None) -> None:
    """Configure the root logger from settings."""
    settings = settings or PoolSettings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
