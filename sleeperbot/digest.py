from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from .config import config, logger
from .formatting import fmt_digest
from .i18n import t
from .timeutils import is_hour_in_timezone, utc_now
from .types import LeagueView


TOP_PLAYERS = 3
DIGEST_HOUR = 8


class DigestService:
    """Builds the per-league week summary shown by /today.

    Matchups are served from the database cache while it is fresh, otherwise
    fetched upstream and written back.
    """

    def __init__(self, client, store, freshness_secs: int | None = None,
                 now: Callable[[], datetime] = utc_now, sport: str = "nfl"):
        self.client = client
        self.store = store
        self.freshness_secs = config.CACHE_FRESHNESS_SECS if freshness_secs is None else freshness_secs
        self.sport = sport
        self._now = now

    async def get_matchups(self, league: LeagueView, week: int) -> List[Dict[str, Any]]:
        cached = await self.store.get_cached_matchups(league.id, week)
        if cached is not None:
            payload, fetched_at = cached
            if (self._now() - fetched_at).total_seconds() < self.freshness_secs:
                return payload or []

        matchups = await self.client.get_matchups(league.provider_league_id, week)
        if matchups:
            await self.store.put_cached_matchups(league.id, week, matchups, fetched_at=self._now())
        return matchups

    async def week_digest(self, chat_id: int, week: int | None = None, lang: str = "en") -> List[Dict[str, Any]]:
        if week is None:
            week = (await self.client.get_state(self.sport)).week

        leagues = await self.store.list_user_leagues(chat_id)
        digests: List[Dict[str, Any]] = []
        for league in leagues:
            try:
                digest = await self.league_digest(league, week, lang)
            except Exception as e:
                logger.error(f"Failed to build digest for league {league.id} team {league.team_id} week {week}: {e}")
                continue
            if digest is not None:
                digests.append(digest)
        return digests

    async def league_digest(self, league: LeagueView, week: int, lang: str = "en") -> Optional[Dict[str, Any]]:
        reminders = [t("waiver_reminder", lang=lang), t("lineup_reminder", lang=lang)]
        digest: Dict[str, Any] = {
            "league": league.name,
            "week": week,
            "team": f"Team {league.team_id}",
            "opponent": None,
            "my_score": None,
            "opp_score": None,
            "top_players": [],
            "reminders": reminders,
        }

        matchups = await self.get_matchups(league, week)
        if not matchups:
            return digest

        mine = next((m for m in matchups if str(m.get("roster_id")) == league.team_id), None)
        if mine is None:
            return None

        opponent = None
        if mine.get("matchup_id") is not None:
            opponent = next(
                (m for m in matchups
                 if m.get("matchup_id") == mine.get("matchup_id") and str(m.get("roster_id")) != league.team_id),
                None,
            )

        digest["my_score"] = round(float(mine.get("points") or 0), 2)
        if opponent is not None:
            digest["opponent"] = f"Team {opponent.get('roster_id')}"
            digest["opp_score"] = round(float(opponent.get("points") or 0), 2)
        digest["top_players"] = await self._top_players(mine)
        return digest

    async def _top_players(self, matchup: Dict[str, Any]) -> List[str]:
        points = matchup.get("players_points") or {}
        if not points:
            return []
        best = sorted(points.items(), key=lambda item: item[1] or 0, reverse=True)[:TOP_PLAYERS]

        try:
            players = await self.client.get_players(self.sport)
        except Exception as e:
            logger.warning(f"Player names unavailable for digest: {e}")
            players = {}

        result = []
        for player_id, pts in best:
            player = players.get(str(player_id))
            name = player.full_name if player and player.full_name else str(player_id)
            result.append(f"{name}: {round(float(pts or 0), 2)}pts")
        return result


class DailyDigestJob:
    """Pushes the week digest to every user with a league at 08:00 their time.

    Runs hourly; users are served one after another with a short pause
    between sends.
    """

    def __init__(self, service: DigestService, store, messenger, delay: float | None = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
                 now: Callable[[], datetime] = utc_now):
        self.service = service
        self.store = store
        self.messenger = messenger
        self.delay = config.DIGEST_SEND_DELAY_SECS if delay is None else delay
        self._sleep = sleep
        self._now = now

    async def process_tick(self) -> Dict[str, int]:
        now = self._now()
        users = await self.store.list_users_with_leagues_and_alerts()
        due = [u for u in users if u.leagues and is_hour_in_timezone(u.timezone, DIGEST_HOUR, now)]

        sent = errors = 0
        for i, view in enumerate(due):
            if i:
                await self._sleep(self.delay)
            try:
                if await self.send_digest(view.chat_id, view.platform):
                    sent += 1
            except Exception as e:
                errors += 1
                logger.error(f"Failed to send daily digest to {view.chat_id} (tz {view.timezone}): {e}")

        if due:
            logger.info(f"Daily digest finished: {len(due)} due of {len(users)} users, {sent} sent, {errors} errors")
        return {"users": len(users), "due": len(due), "sent": sent, "errors": errors}

    async def send_digest(self, chat_id: int, platform: str | None = None) -> bool:
        lang = await self.messenger.language_for(chat_id, platform)
        digests = await self.service.week_digest(chat_id, lang=lang)
        if not digests:
            return await self.messenger.send_raw(chat_id, t("no_games", lang=lang), platform=platform)

        message = "\n\n".join(fmt_digest(lang, digest) for digest in digests)
        delivered = await self.messenger.send_raw(chat_id, message, platform=platform)
        if delivered:
            logger.info(f"Daily digest sent to {chat_id} ({len(digests)} leagues)")
        return delivered

    async def trigger_for_user(self, chat_id: int) -> bool:
        user = await self.store.get_user(chat_id)
        return await self.send_digest(chat_id, user.platform if user else None)
