"""
Environment-backed settings for the GoalT Messenger backend.
Values are read once per process; tests call reload_settings() after patching the environment.
"""
import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./goalt.db"
DEFAULT_GRAPH_API_URL = "https://graph.facebook.com/v2.6/me/messages"
DEFAULT_MOTIVATION_FEED_URL = "https://www.reddit.com/r/GetMotivated.json"

# Messenger drops a webhook delivery that is not acknowledged within 20 seconds
DEFAULT_WEBHOOK_TIMEOUT_SECONDS = 18.0


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    try:
        return float(raw) if raw else default
    except ValueError:
        logger.warning("Invalid float for %s=%r, using %s", name, raw, default)
        return default


@dataclass(frozen=True)
class Settings:
    """Runtime configuration. The first four fields are required to talk to Messenger."""

    app_secret: str = ""
    validation_token: str = ""
    page_access_token: str = ""
    server_url: str = ""
    database_url: str = DEFAULT_DATABASE_URL
    graph_api_url: str = DEFAULT_GRAPH_API_URL
    motivation_feed_url: str = DEFAULT_MOTIVATION_FEED_URL
    timezone: str = "UTC"
    webhook_timeout_seconds: float = DEFAULT_WEBHOOK_TIMEOUT_SECONDS
    require_signature: bool = True
    log_level: str = "INFO"

    def missing(self) -> list[str]:
        required = {
            "APP_SECRET": self.app_secret,
            "VALIDATION_TOKEN": self.validation_token,
            "PAGE_ACCESS_TOKEN": self.page_access_token,
            "SERVER_URL": self.server_url,
        }
        return [name for name, value in required.items() if not value]


def _load_settings() -> Settings:
    return Settings(
        app_secret=os.getenv("APP_SECRET", ""),
        validation_token=os.getenv("VALIDATION_TOKEN", ""),
        page_access_token=os.getenv("PAGE_ACCESS_TOKEN", ""),
        server_url=os.getenv("SERVER_URL", "").rstrip("/"),
        database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
        graph_api_url=os.getenv("GRAPH_API_URL", DEFAULT_GRAPH_API_URL),
        motivation_feed_url=os.getenv("MOTIVATION_FEED_URL", DEFAULT_MOTIVATION_FEED_URL),
        timezone=os.getenv("GOALT_TIMEZONE", "UTC"),
        webhook_timeout_seconds=_env_float("WEBHOOK_TIMEOUT_SECONDS", DEFAULT_WEBHOOK_TIMEOUT_SECONDS),
        require_signature=_env_bool("REQUIRE_SIGNATURE", True),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = _load_settings()
    return _settings


def reload_settings() -> Settings:
    """Drop the cached settings and read the environment again."""
    global _settings
    _settings = None
    return get_settings()
