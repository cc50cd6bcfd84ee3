from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict

from .config import config, logger
from .timeutils import utc_now


class CacheRefreshJob:
    """Keeps the current week's matchups warm for every league with a linked user."""

    def __init__(
        self,
        client,
        store,
        delay: float | None = None,
        retention_days: int | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        now: Callable[[], datetime] = utc_now,
        sport: str = "nfl",
    ):
        self.client = client
        self.store = store
        self.delay = config.REFRESH_DELAY_SECS if delay is None else delay
        self.retention_days = config.CACHE_RETENTION_DAYS if retention_days is None else retention_days
        self.sport = sport
        self._sleep = sleep
        self._now = now

    async def refresh_active_leagues(self) -> Dict[str, int]:
        state = await self.client.get_state(self.sport)
        leagues = await self.store.list_active_leagues(int(state.season), self.sport)
        if not leagues:
            logger.debug("No active leagues found for cache refresh")
            return {"total": 0, "refreshed": 0, "errors": 0, "week": state.week}

        refreshed = errors = 0
        for index, league in enumerate(leagues):
            if index:
                # sequential with a fixed gap to stay under the upstream rate limit
                await self._sleep(self.delay)
            try:
                await self.refresh_league(league.id, state.week)
                refreshed += 1
            except Exception as e:
                errors += 1
                logger.error(f"Failed to refresh cache for league {league.id} ({league.name}) week {state.week}: {e}")

        logger.info(f"Cache refresh completed: {refreshed}/{len(leagues)} leagues, {errors} errors, week {state.week}")
        return {"total": len(leagues), "refreshed": refreshed, "errors": errors, "week": state.week}

    async def refresh_league(self, league_id: int, week: int | None = None) -> int:
        """Fetch and store one league's matchups; returns the number of matchup rows cached."""
        if week is None:
            week = (await self.client.get_state(self.sport)).week

        league = await self.store.get_league(league_id)
        if league is None:
            raise LookupError(f"League {league_id} not found")

        matchups = await self.client.get_matchups(league.provider_league_id, week)
        await self.store.put_cached_matchups(league_id, week, matchups, fetched_at=self._now())
        logger.debug(f"Refreshed matchups for league {league_id} week {week} ({len(matchups)} rows)")
        return len(matchups)

    async def clean_old_cache(self) -> int:
        cutoff = self._now() - timedelta(days=self.retention_days)
        deleted = await self.store.delete_cache_older_than(cutoff)
        if deleted:
            logger.info(f"Cleaned {deleted} matchup cache rows older than {cutoff.isoformat()}")
        return deleted
