from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Set

from .config import logger
from .formatting import escape_html
from .state import DraftNotificationState, DraftStateStore
from .timeutils import format_time_in_timezone, utc_now
from .types import DRAFT_COMPLETE, DRAFT_IN_PROGRESS, Draft


START_NOTICE_WINDOW_SECS = 3600


def draft_round(pick_number: int, teams: int) -> int:
    """Round (1-based) that overall pick ``pick_number`` belongs to."""
    return (pick_number - 1) // teams + 1


def snake_draft_slot(pick_number: int, teams: int) -> int:
    """Draft slot on the clock for overall pick ``pick_number``.

    Odd rounds run slots 1..N, even rounds run N..1.
    """
    position = (pick_number - 1) % teams
    if draft_round(pick_number, teams) % 2 == 1:
        return position + 1
    return teams - position


class DraftNotificationsJob:
    """Watches every league's drafts and sends start and on-the-clock notices."""

    def __init__(self, client, store, messenger, states: DraftStateStore | None = None,
                 now: Callable[[], datetime] = utc_now):
        self.client = client
        self.store = store
        self.messenger = messenger
        self.states = states if states is not None else DraftStateStore()
        self._now = now

    async def process_tick(self) -> Dict[str, int]:
        leagues = await self.store.list_leagues_with_members()
        processed = errors = 0
        checked: Set[str] = set()
        seen: Set[str] = set()
        for league in leagues:
            try:
                drafts = await self.client.get_drafts(league.provider_league_id)
            except Exception as e:
                errors += 1
                logger.error(f"Error checking drafts for league {league.id} ({league.provider_league_id}): {e}")
                continue

            checked.add(league.provider_league_id)
            seen.update(draft.draft_id for draft in drafts)
            for draft in drafts:
                try:
                    await self.process_draft(draft, league)
                    processed += 1
                except Exception as e:
                    errors += 1
                    logger.error(f"Error processing draft {draft.draft_id} in league {league.id}: {e}")

        evicted = self.evict_stale(checked, seen, {league.provider_league_id for league in leagues})
        if errors or evicted:
            logger.info(f"Draft tick finished: {processed} drafts processed, {errors} errors, {evicted} evicted")
        return {"leagues": len(leagues), "drafts": processed, "errors": errors}

    def evict_stale(self, checked_leagues: Set[str], seen_drafts: Set[str], active_leagues: Set[str]) -> int:
        """Drop state for drafts gone from their league, or whose league has no members left.

        Leagues whose fetch failed this tick keep their state.
        """
        stale = [
            draft_id
            for draft_id, state in self.states.items()
            if draft_id not in seen_drafts
            and (state.league_id in checked_leagues or state.league_id not in active_leagues)
        ]
        return self.states.discard_many(stale)

    async def process_draft(self, draft: Draft, league: Any) -> None:
        if draft.status == DRAFT_COMPLETE:
            await self._finish_draft(draft, league)
            return

        state = self.states.get_or_create(draft.draft_id, league.provider_league_id)

        if draft.start_time and not state.start_notice_sent:
            time_until_start = draft.start_time / 1000 - self._now().timestamp()
            if 0 < time_until_start <= START_NOTICE_WINDOW_SECS:
                await self.send_start_notifications(draft, league, state)

        if draft.status == DRAFT_IN_PROGRESS:
            state.seen_in_progress = True
            await self.check_turn(draft, league, state)

    async def send_start_notifications(self, draft: Draft, league: Any, state: DraftNotificationState) -> None:
        """Notify every league member once; members whose delivery failed are retried next tick."""
        start = datetime.fromtimestamp(draft.start_time / 1000, tz=timezone.utc)
        pending = [m for m in league.members if m.user.chat_id not in state.start_notified_users]
        logger.info(f"Sending draft start notifications for draft {draft.draft_id} ({league.name}) to {len(pending)} members")

        for member in pending:
            user = member.user
            delivered = await self.messenger.send_templated(
                user.chat_id,
                "draft_starting_soon",
                {
                    "league": escape_html(league.name),
                    "startTime": f"{format_time_in_timezone(start, user.tz, '%Y-%m-%d %H:%M')} ({user.tz})",
                },
            )
            if delivered:
                state.start_notified_users.add(user.chat_id)
            else:
                logger.warning(f"Draft start notice for draft {draft.draft_id} not delivered to {user.chat_id}, will retry")

        member_ids = {m.user.chat_id for m in league.members}
        if member_ids <= state.start_notified_users:
            state.start_notice_sent = True

    async def check_turn(self, draft: Draft, league: Any, state: DraftNotificationState) -> None:
        picks = await self.client.get_draft_picks(draft.draft_id)
        total_picks = len(picks)

        if total_picks != state.last_pick_count:
            state.last_pick_count = total_picks
            state.users_notified.clear()

        if draft.teams <= 0:
            logger.warning(f"Draft {draft.draft_id} has no team count, skipping turn check")
            return

        next_pick = total_picks + 1
        if draft.rounds and next_pick > draft.teams * draft.rounds:
            return

        current_round = draft_round(next_pick, draft.teams)
        slot = snake_draft_slot(next_pick, draft.teams)
        upstream_user_id = draft.user_for_slot(slot)
        if upstream_user_id is None or upstream_user_id in state.users_notified:
            return

        chat_id = await self.store.find_provider_link(upstream_user_id)
        if chat_id is None:
            logger.warning(f"No chat user linked to Sleeper user {upstream_user_id} (league {league.id})")
            state.users_notified.add(upstream_user_id)
            return

        delivered = await self.messenger.send_templated(
            chat_id,
            "draft_your_turn",
            {
                "league": escape_html(league.name),
                "round": current_round,
                "pickNumber": next_pick,
                "timer": draft.pick_timer,
            },
        )
        if delivered:
            state.users_notified.add(upstream_user_id)
            logger.info(f"Draft turn notice sent to {chat_id}: draft {draft.draft_id} round {current_round} pick {next_pick}")

    async def _finish_draft(self, draft: Draft, league: Any) -> None:
        state = self.states.get(draft.draft_id)
        if state is None:
            return
        if state.seen_in_progress:
            for member in league.members:
                await self.messenger.send_templated(member.user.chat_id, "draft_completed", {"league": escape_html(league.name)})
        self.states.discard(draft.draft_id)
        logger.info(f"Cleaned up completed draft {draft.draft_id}")

    def get_status(self) -> Dict[str, int]:
        return {"trackedDrafts": len(self.states)}
