from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, List

from .config import logger
from .formatting import fmt_game_day, fmt_team_reminder, fmt_waiver_reminder
from .timeutils import (
    FRIDAY,
    MONDAY,
    SATURDAY,
    SUNDAY,
    THURSDAY,
    TUESDAY,
    WEDNESDAY,
    day_of_week_in_timezone,
    format_time_in_timezone,
    is_hour_in_timezone,
    local_now,
    utc_now,
)
from .types import UserView


TEAM_REMINDER_HOUR = 18
WAIVER_REMINDER_HOUR = 18
GAME_DAY_HOUR = 8
GAME_DAYS = (THURSDAY, FRIDAY, SATURDAY, SUNDAY, MONDAY)
INJURY_STATUSES = ("Out", "IR", "Doubtful")


def _dedupe(items: List[str]) -> List[str]:
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


class IntelligentNotificationsJob:
    """Hourly per-user evaluation of the recurring reminders.

    Each rule matches a single local hour on its day, so ticking once an hour
    sends at most one message per rule per day without extra bookkeeping.
    """

    def __init__(self, client, store, messenger, now: Callable[[], datetime] = utc_now, sport: str = "nfl"):
        self.client = client
        self.store = store
        self.messenger = messenger
        self.sport = sport
        self._now = now

    async def process_tick(self) -> Dict[str, int]:
        users = await self.store.list_users_with_leagues_and_alerts()
        sent = errors = 0
        for view in users:
            try:
                sent += len(await self.process_user(view))
            except Exception as e:
                errors += 1
                logger.error(f"Error processing notifications for user {view.chat_id}: {e}")
        if sent or errors:
            logger.info(f"Notification tick finished: {len(users)} users, {sent} sent, {errors} errors")
        return {"users": len(users), "sent": sent, "errors": errors}

    async def process_user(self, view: UserView) -> List[str]:
        now = self._now()
        day = day_of_week_in_timezone(view.timezone, now)
        sent: List[str] = []

        if day == WEDNESDAY and is_hour_in_timezone(view.timezone, TEAM_REMINDER_HOUR, now):
            if await self.send_team_management_reminder(view):
                sent.append("team_management")

        if day == TUESDAY and is_hour_in_timezone(view.timezone, WAIVER_REMINDER_HOUR, now):
            if await self.send_waiver_reminder(view):
                sent.append("waivers")

        if day in GAME_DAYS and is_hour_in_timezone(view.timezone, GAME_DAY_HOUR, now):
            if await self.send_game_day_notification(view):
                sent.append("game_day")

        return sent

    async def send_team_management_reminder(self, view: UserView) -> bool:
        leagues = view.leagues_with("pregame")
        if not leagues:
            return False

        state = await self.client.get_state(self.sport)
        if not state.season_started(self._now()):
            logger.debug(f"Season not started, skipping team reminder for {view.chat_id}")
            return False

        try:
            schedule = await self.client.get_nfl_schedule(state.week)
        except Exception as e:
            logger.warning(f"NFL schedule unavailable for week {state.week}, skipping bye detection: {e}")
            schedule = []
        injured: List[str] = []
        bye_teams: List[str] = []

        for league in leagues:
            try:
                rosters = await self.client.get_rosters(league.provider_league_id)
                roster = next((r for r in rosters if str(r.roster_id) == league.team_id), None)
                if roster is None or not roster.players:
                    continue
                players = await self.client.get_players(self.sport)
                for player_id in roster.players:
                    player = players.get(player_id)
                    if player is None:
                        continue
                    if player.injury_status in INJURY_STATUSES:
                        injured.append(f"{player.full_name} ({player.injury_status})")
                    # an empty schedule means no data, not a league-wide bye
                    if schedule and player.team and not any(g.involves(player.team) for g in schedule):
                        if player.team not in bye_teams:
                            bye_teams.append(player.team)
            except Exception as e:
                logger.error(f"Error checking roster for league {league.id} (user {view.chat_id}): {e}")

        lang = await self.messenger.language_for(view.chat_id, view.platform)
        message = fmt_team_reminder(lang, state.week, [l.name for l in leagues], _dedupe(injured), bye_teams)
        delivered = await self.messenger.send_raw(view.chat_id, message, platform=view.platform)
        if delivered:
            logger.info(f"Team management reminder sent to {view.chat_id} ({len(leagues)} leagues)")
        return delivered

    async def send_waiver_reminder(self, view: UserView) -> bool:
        leagues = view.leagues_with("waivers")
        if not leagues:
            return False

        lang = await self.messenger.language_for(view.chat_id, view.platform)
        message = fmt_waiver_reminder(lang, [l.name for l in leagues])
        delivered = await self.messenger.send_raw(view.chat_id, message, platform=view.platform)
        if delivered:
            logger.info(f"Waiver reminder sent to {view.chat_id} ({len(leagues)} leagues)")
        return delivered

    async def send_game_day_notification(self, view: UserView) -> bool:
        leagues = view.leagues_with("pregame")
        if not leagues:
            return False

        now = self._now()
        state = await self.client.get_state(self.sport)
        if not state.season_started(now):
            return False

        today = local_now(view.timezone, now).date()
        schedule = await self.client.get_nfl_schedule(state.week)
        todays_games = [g for g in schedule if local_now(view.timezone, g.start_time).date() == today]
        if not todays_games:
            return False

        playing: List[str] = []
        for league in leagues:
            try:
                rosters = await self.client.get_rosters(league.provider_league_id)
                roster = next((r for r in rosters if str(r.roster_id) == league.team_id), None)
                if roster is None or not roster.players:
                    continue
                players = await self.client.get_players(self.sport)
                for player_id in roster.players:
                    player = players.get(player_id)
                    if player and player.team and any(g.involves(player.team) for g in todays_games):
                        playing.append(f"{player.full_name} ({player.team})")
            except Exception as e:
                logger.error(f"Error checking players for league {league.id} (user {view.chat_id}): {e}")

        if not playing:
            return False

        games = [
            f"{g.away} @ {g.home} ({format_time_in_timezone(g.start_time, view.timezone)})"
            for g in sorted(todays_games, key=lambda g: g.start_time)
        ]
        lang = await self.messenger.language_for(view.chat_id, view.platform)
        message = fmt_game_day(lang, today.weekday(), state.week, [l.name for l in leagues], _dedupe(playing), games)
        delivered = await self.messenger.send_raw(view.chat_id, message, platform=view.platform)
        if delivered:
            logger.info(f"Game day notification sent to {view.chat_id} ({len(playing)} players playing)")
        return delivered
