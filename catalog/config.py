# catalog/config.py
import os
from dataclasses import dataclass, replace
from typing import Optional

DEFAULT_DATABASE_URL = "sqlite:///catalog.db"
DEFAULT_WESTMANGA_BASE_URL = "https://data.westmanga.me/api"
DEFAULT_CORS_ORIGINS = ("http://localhost:5173", "http://127.0.0.1:5173")

# Modes POST /api/westmanga/sync may run in; manga-only has its own route
VALID_SYNC_MODES = ("manga_and_chapters", "full")


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")
    if value < 0:
        raise ValueError(f"{name} must not be negative, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the catalog sync service.

    Every value has a default so the service runs against a local SQLite file
    and the public WestManga API without any environment set up.
    """
    database_url: str = DEFAULT_DATABASE_URL
    westmanga_base_url: str = DEFAULT_WESTMANGA_BASE_URL
    westmanga_timeout: float = 10.0
    westmanga_detail_path: str = "/contents/{slug}"
    westmanga_chapter_path: str = "/chapters/{slug}"
    westmanga_max_in_flight: int = 4
    westmanga_min_delay: float = 0.0
    westmanga_max_delay: float = 0.0
    sync_mode: str = "full"
    sync_workers: int = 1
    sync_retries: int = 2
    sync_retry_delay: float = 1.0
    sync_max_failures: int = 50
    log_level: str = "INFO"
    cors_origins: tuple = DEFAULT_CORS_ORIGINS

    def __post_init__(self):
        if self.sync_mode not in VALID_SYNC_MODES:
            raise ValueError(
                f"SYNC_MODE must be one of {', '.join(VALID_SYNC_MODES)}, got {self.sync_mode!r}"
            )
        if self.westmanga_max_delay < self.westmanga_min_delay:
            raise ValueError("WESTMANGA_MAX_DELAY must be >= WESTMANGA_MIN_DELAY")

    @classmethod
    def from_env(cls, **overrides) -> "Settings":
        """Build settings from environment variables, then apply overrides."""
        origins = os.getenv("CORS_ORIGINS")
        settings = cls(
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            westmanga_base_url=os.getenv("WESTMANGA_BASE_URL", DEFAULT_WESTMANGA_BASE_URL).rstrip("/"),
            westmanga_timeout=_env_float("WESTMANGA_TIMEOUT", 10.0),
            westmanga_detail_path=os.getenv("WESTMANGA_DETAIL_PATH", "/contents/{slug}"),
            westmanga_chapter_path=os.getenv("WESTMANGA_CHAPTER_PATH", "/chapters/{slug}"),
            westmanga_max_in_flight=_env_int("WESTMANGA_MAX_IN_FLIGHT", 4, minimum=1),
            westmanga_min_delay=_env_float("WESTMANGA_MIN_DELAY", 0.0),
            westmanga_max_delay=_env_float("WESTMANGA_MAX_DELAY", 0.0),
            sync_mode=os.getenv("SYNC_MODE", "full"),
            sync_workers=_env_int("SYNC_WORKERS", 1, minimum=1),
            sync_retries=_env_int("SYNC_RETRIES", 2),
            sync_retry_delay=_env_float("SYNC_RETRY_DELAY", 1.0),
            sync_max_failures=_env_int("SYNC_MAX_FAILURES", 50),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip())
            if origins else DEFAULT_CORS_ORIGINS,
        )
        if overrides:
            settings = replace(settings, **overrides)
        return settings


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Process-wide settings, loaded from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings
