import os
import logging

from dotenv import load_dotenv


# Load env early
load_dotenv()

# Logging configuration
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, log_level, logging.INFO),
)
logger = logging.getLogger("sleeperbot")

# Reduce noisy libraries
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("telegram.ext.ExtBot").setLevel(logging.WARNING)
logging.getLogger("telegram.ext.Updater").setLevel(logging.WARNING)
logging.getLogger("telegram.ext.Application").setLevel(logging.WARNING)
logging.getLogger("telegram.bot").setLevel(logging.WARNING)
logging.getLogger("discord").setLevel(logging.WARNING)
logging.getLogger("discord.gateway").setLevel(logging.WARNING)
logging.getLogger("aiosqlite").setLevel(logging.WARNING)
logging.getLogger("asyncio").setLevel(logging.WARNING)


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Application configuration read from the environment."""

    # Chat platforms
    BOT_TOKEN: str | None = os.getenv("BOT_TOKEN")
    DISCORD_BOT_TOKEN: str | None = os.getenv("DISCORD_BOT_TOKEN") or None
    ADMIN_USER_ID: int = int(os.getenv("ADMIN_USER_ID", "0"))

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///sleeperbot.db").strip()
    SQL_ECHO: bool = _env_bool("SQL_ECHO")

    # Upstream APIs
    SLEEPER_API_BASE: str = os.getenv("SLEEPER_API_BASE", "https://api.sleeper.app/v1").strip()
    NFL_SCHEDULE_API_BASE: str = os.getenv(
        "NFL_SCHEDULE_API_BASE",
        "https://site.api.espn.com/apis/site/v2/sports/football/nfl",
    ).strip()
    HTTP_TIMEOUT_SECS: float = float(os.getenv("HTTP_TIMEOUT_SECS", "10"))
    HTTP_MAX_RETRIES: int = int(os.getenv("HTTP_MAX_RETRIES", "3"))
    HTTP_BACKOFF_BASE: float = float(os.getenv("HTTP_BACKOFF_BASE", "1.0"))
    HTTP_MAX_BACKOFF: float = float(os.getenv("HTTP_MAX_BACKOFF", "30"))
    API_CACHE_MAXSIZE: int = int(os.getenv("API_CACHE_MAXSIZE", "2048"))

    # User defaults
    DEFAULT_TIMEZONE: str = os.getenv("DEFAULT_TIMEZONE", "Europe/Brussels").strip()
    DEFAULT_LANGUAGE: str = os.getenv("DEFAULT_LANGUAGE", "uk").strip()

    # Job intervals (seconds)
    DRAFT_POLL_SECS: int = int(os.getenv("DRAFT_POLL_SECS", "60"))
    NOTIFY_POLL_SECS: int = int(os.getenv("NOTIFY_POLL_SECS", "3600"))
    CACHE_REFRESH_SECS: int = int(os.getenv("CACHE_REFRESH_SECS", "300"))
    CACHE_CLEANUP_SECS: int = int(os.getenv("CACHE_CLEANUP_SECS", "86400"))
    CACHE_CLEANUP_OFFSET_SECS: int = int(os.getenv("CACHE_CLEANUP_OFFSET_SECS", "7200"))  # 02:00 UTC

    # Matchups cache
    CACHE_RETENTION_DAYS: int = int(os.getenv("CACHE_RETENTION_DAYS", "14"))
    CACHE_FRESHNESS_SECS: int = int(os.getenv("CACHE_FRESHNESS_SECS", "300"))
    REFRESH_DELAY_SECS: float = float(os.getenv("REFRESH_DELAY_SECS", "0.5"))
    DIGEST_SEND_DELAY_SECS: float = float(os.getenv("DIGEST_SEND_DELAY_SECS", "0.5"))

    @classmethod
    def validate_config(cls) -> None:
        if not cls.BOT_TOKEN:
            raise ValueError("BOT_TOKEN environment variable is required")
        if not cls.DATABASE_URL:
            raise ValueError("DATABASE_URL environment variable is required")
        if cls.ADMIN_USER_ID == 0:
            logger.warning("ADMIN_USER_ID not configured - admin commands are disabled")
        if not cls.DISCORD_BOT_TOKEN:
            logger.info("DISCORD_BOT_TOKEN not configured - Discord delivery disabled")
        if cls.SQL_ECHO:
            logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)


config = Config()
BOT_TOKEN = config.BOT_TOKEN
DISCORD_BOT_TOKEN = config.DISCORD_BOT_TOKEN
ADMIN_USER_ID = config.ADMIN_USER_ID
SLEEPER_API_BASE = config.SLEEPER_API_BASE
