from __future__ import annotations

from typing import Any, Dict

from .cache_refresh import CacheRefreshJob
from .config import config, logger
from .digest import DailyDigestJob, DigestService
from .drafts import DraftNotificationsJob
from .notifications import IntelligentNotificationsJob
from .scheduler import PeriodicJob


class JobManager:
    """Owns the background timers and exposes lifecycle and manual triggers."""

    def __init__(
        self,
        draft_job: DraftNotificationsJob,
        notify_job: IntelligentNotificationsJob,
        refresh_job: CacheRefreshJob,
        digest_job: DailyDigestJob,
    ):
        self.draft_job = draft_job
        self.notify_job = notify_job
        self.refresh_job = refresh_job
        self.digest_job = digest_job
        self.running = False
        self.jobs: Dict[str, PeriodicJob] = {
            job.name: job
            for job in (
                PeriodicJob("draft_notifications", config.DRAFT_POLL_SECS, draft_job.process_tick, align=True),
                PeriodicJob("intelligent_notifications", config.NOTIFY_POLL_SECS, notify_job.process_tick, align=True),
                PeriodicJob("daily_digest", config.NOTIFY_POLL_SECS, digest_job.process_tick, align=True),
                PeriodicJob("cache_refresh", config.CACHE_REFRESH_SECS, refresh_job.refresh_active_leagues, align=True),
                PeriodicJob(
                    "cache_cleanup",
                    config.CACHE_CLEANUP_SECS,
                    refresh_job.clean_old_cache,
                    align=True,
                    offset=config.CACHE_CLEANUP_OFFSET_SECS,
                ),
            )
        }

    @classmethod
    def build(cls, client, store, messenger, digest: DigestService | None = None) -> "JobManager":
        digest = digest or DigestService(client, store)
        return cls(
            DraftNotificationsJob(client, store, messenger),
            IntelligentNotificationsJob(client, store, messenger),
            CacheRefreshJob(client, store),
            DailyDigestJob(digest, store, messenger),
        )

    def start(self) -> None:
        if self.running:
            logger.warning("Job manager is already running")
            return
        for job in self.jobs.values():
            job.start()
        self.running = True
        logger.info(f"Started {len(self.jobs)} background jobs")

    async def stop(self) -> None:
        if not self.running:
            return
        for job in self.jobs.values():
            job.stop()
        for job in self.jobs.values():
            await job.wait_stopped()
        self.running = False
        logger.info("All background jobs stopped")

    async def refresh_league(self, league_id: int, week: int | None = None) -> int:
        return await self.refresh_job.refresh_league(league_id, week)

    async def trigger_daily_digest(self, chat_id: int) -> bool:
        return await self.digest_job.trigger_for_user(chat_id)

    def get_status(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "trackedDrafts": self.draft_job.get_status()["trackedDrafts"],
            "jobs": {name: job.status() for name, job in self.jobs.items()},
        }
