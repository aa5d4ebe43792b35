"""Application configuration loaded from config.yaml + environment variables."""

from __future__ import annotations

import yaml
from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings

_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml() -> dict:
    if _CONFIG_PATH.exists():
        with open(_CONFIG_PATH) as f:
            return yaml.safe_load(f) or {}
    return {}


_yaml = _load_yaml()


class ExpiryConfig(BaseSettings):
    sweep_interval_seconds: float = 30.0
    page_size: int = 100
    purge_after_hours: int = 24
    ttl_minutes: dict[str, int] = Field(default_factory=lambda: {
        "police_checkpoint": 5,
        "accident": 2,
        "weather_alert": 2,
        "general": 10,
        "road_hazard": 15,
        "traffic_jam": 15,
    })


class RealtimeConfig(BaseSettings):
    queue_size: int = 256


class NotificationConfig(BaseSettings):
    storage_dir: str = "data/devices"
    history_limit: int = 500


class LoggingConfig(BaseSettings):
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///data/radarpro.db"
    expiry: ExpiryConfig = Field(default_factory=ExpiryConfig)
    realtime: RealtimeConfig = Field(default_factory=RealtimeConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def get_settings() -> Settings:
    """Build Settings by merging YAML defaults with env overrides."""
    y = _yaml
    exp = ExpiryConfig(**y.get("expiry", {}))
    rt = RealtimeConfig(**y.get("realtime", {}))
    notif = NotificationConfig(**y.get("notifications", {}))
    log = LoggingConfig(**y.get("logging", {}))
    db_url = y.get("database", {}).get("url", "sqlite+aiosqlite:///data/radarpro.db")
    return Settings(
        database_url=db_url,
        expiry=exp,
        realtime=rt,
        notifications=notif,
        logging=log,
    )
