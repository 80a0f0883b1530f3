"""
Runtime configuration for the order pipeline.

Values come from constructor arguments or ORDER_OUTBOX_* environment
variables, e.g. ORDER_OUTBOX_DATA_DIR=/var/lib/orders.
"""

import logging
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"


class Settings(BaseSettings):
    """Settings shared by the API server, the CLI and the demo."""

    model_config = SettingsConfigDict(env_prefix="ORDER_OUTBOX_")

    data_dir: Path = Field(default=Path("data"), description="Directory holding the JSON stores")
    orders_file: str = Field(default="orders.json", description="Orders + outbox document")
    processed_file: str = Field(
        default="processed_notifications.json",
        description="Processed-mark document owned by the notification consumer",
    )
    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "INFO"
    replay_on_startup: bool = True
    notification_fail_rate: float = Field(default=0.0, ge=0.0, le=1.0)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {v}")
        return level

    @property
    def orders_path(self) -> Path:
        return self.data_dir / self.orders_file

    @property
    def processed_path(self) -> Path:
        return self.data_dir / self.processed_file


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging the same way for every entry point."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )


_default_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the settings loaded from the environment (cached)."""
    global _default_settings
    if _default_settings is None:
        _default_settings = Settings()
    return _default_settings
