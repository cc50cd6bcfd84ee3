"""Sleeper fantasy football notification bot.

Modules:
- config: environment and constants
- http: session and request helpers with retry/backoff
- api: Sleeper API and NFL schedule client with a per-resource TTL cache
- db: SQLAlchemy models and session management
- storage: persistence of users, leagues, alert preferences and the matchups cache
- i18n: message templates (en/uk)
- timeutils: per-user timezone helpers
- messenger: platform-agnostic delivery (Telegram, Discord)
- state: in-memory draft notification state
- drafts: draft start and on-the-clock notifications
- notifications: hourly team, waiver and game-day reminders
- cache_refresh: matchups cache warming and retention
- digest: week digest for /today and the 08:00 daily push
- scheduler: periodic asyncio jobs
- jobs: JobManager wiring the background jobs
- formatting: message building utilities
- auth: access control helpers
- commands: telegram command handlers
- app: application bootstrap and wiring
"""

from .config import Config, config, BOT_TOKEN, DISCORD_BOT_TOKEN, ADMIN_USER_ID, SLEEPER_API_BASE
from .http import make_session, fetch_json, build_headers, UpstreamError, UpstreamNotFound
from .api import SleeperClient, make_cache, parse_scoreboard
from .storage import Store
from .messenger import Messenger, Platform, resolve_platform
from .i18n import t
from .state import DraftNotificationState, DraftStateStore
from .drafts import DraftNotificationsJob, snake_draft_slot
from .notifications import IntelligentNotificationsJob
from .cache_refresh import CacheRefreshJob
from .digest import DailyDigestJob, DigestService
from .scheduler import PeriodicJob
from .jobs import JobManager
from .app import main, startup_health_check

__all__ = [
    # Config / HTTP
    "Config", "config", "BOT_TOKEN", "DISCORD_BOT_TOKEN", "ADMIN_USER_ID", "SLEEPER_API_BASE",
    "make_session", "fetch_json", "build_headers", "UpstreamError", "UpstreamNotFound",
    # Upstream client
    "make_cache", "SleeperClient", "parse_scoreboard",
    # Storage / delivery
    "Store", "Messenger", "Platform", "resolve_platform", "t",
    # Engines
    "DraftNotificationState", "DraftStateStore", "DraftNotificationsJob", "snake_draft_slot",
    "IntelligentNotificationsJob", "CacheRefreshJob", "DigestService", "DailyDigestJob",
    # Scheduling / App
    "PeriodicJob", "JobManager",
    "main", "startup_health_check",
]
