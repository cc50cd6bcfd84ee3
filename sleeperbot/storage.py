from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from .config import config, logger
from .db import AlertPreference, League, MatchupsCache, Provider, User, UserLeague, get_session_factory, utcnow
from .types import AlertFlags, LeagueView, UserView


PROVIDER_SLEEPER = "sleeper"


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back naive; they are always written in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Store:
    """Persistence of users, their linked leagues, alert preferences and the matchups cache."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None):
        self._session_factory = session_factory or get_session_factory()

    # ---- reads used by the jobs ----

    async def list_leagues_with_members(self) -> List[League]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(League)
                .options(selectinload(League.members).selectinload(UserLeague.user))
                .order_by(League.id)
            )
            return list(result.scalars().all())

    async def list_users_with_leagues_and_alerts(self) -> List[UserView]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(User)
                .options(
                    selectinload(User.leagues).selectinload(UserLeague.league),
                    selectinload(User.alerts),
                )
                .order_by(User.id)
            )
            users = result.scalars().all()

        views: List[UserView] = []
        for user in users:
            alerts_by_league = {a.league_id: a for a in user.alerts}
            leagues: List[LeagueView] = []
            for ul in user.leagues:
                pref = alerts_by_league.get(ul.league_id)
                flags = AlertFlags(pref.pregame, pref.scoring, pref.waivers) if pref else AlertFlags()
                leagues.append(LeagueView(
                    id=ul.league.id,
                    name=ul.league.name,
                    provider_league_id=ul.league.provider_league_id,
                    team_id=ul.team_id,
                    alerts=flags,
                ))
            views.append(UserView(chat_id=user.chat_id, timezone=user.tz, platform=user.platform, leagues=leagues))
        return views

    async def find_provider_link(self, upstream_user_id: str, provider: str = PROVIDER_SLEEPER) -> Optional[int]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(User.chat_id)
                .join(Provider, Provider.user_id == User.id)
                .where(Provider.provider == provider, Provider.provider_user_id == upstream_user_id)
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def get_user(self, chat_id: int) -> Optional[User]:
        async with self._session_factory() as session:
            result = await session.execute(select(User).where(User.chat_id == chat_id))
            return result.scalar_one_or_none()

    async def get_league(self, league_id: int) -> Optional[League]:
        async with self._session_factory() as session:
            return await session.get(League, league_id)

    async def list_active_leagues(self, season: int, sport: str = "nfl") -> List[League]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(League)
                .where(
                    League.season == season,
                    League.sport == sport,
                    League.members.any(),
                )
                .order_by(League.id)
            )
            return list(result.scalars().all())

    async def list_user_leagues(self, chat_id: int) -> List[LeagueView]:
        for view in await self.list_users_with_leagues_and_alerts():
            if view.chat_id == chat_id:
                return view.leagues
        return []

    # ---- matchups cache ----

    async def get_cached_matchups(self, league_id: int, week: int) -> Optional[Tuple[Any, datetime]]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(MatchupsCache).where(MatchupsCache.league_id == league_id, MatchupsCache.week == week)
            )
            row = result.scalar_one_or_none()
            if row is None:
                return None
            return row.payload, _as_utc(row.fetched_at)

    async def put_cached_matchups(self, league_id: int, week: int, payload: Any, fetched_at: datetime | None = None) -> None:
        fetched_at = fetched_at or utcnow()
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                select(MatchupsCache).where(MatchupsCache.league_id == league_id, MatchupsCache.week == week)
            )
            row = result.scalar_one_or_none()
            if row is None:
                session.add(MatchupsCache(league_id=league_id, week=week, payload=payload, fetched_at=fetched_at))
            else:
                row.payload = payload
                row.fetched_at = fetched_at

    async def delete_cache_older_than(self, cutoff: datetime) -> int:
        async with self._session_factory() as session, session.begin():
            result = await session.execute(delete(MatchupsCache).where(MatchupsCache.fetched_at < cutoff))
            return result.rowcount or 0

    # ---- account linking and preferences ----

    async def sync_user_leagues(
        self,
        chat_id: int,
        platform: str,
        username: str,
        upstream_user_id: str,
        leagues: List[Dict[str, Any]],
        display_name: str | None = None,
    ) -> int:
        """Link a chat user to their upstream leagues in a single transaction.

        Each entry of ``leagues`` carries ``league_id``, ``name``, ``season``,
        ``sport`` and the user's ``team_id`` in that league. Returns the number
        of leagues linked.
        """
        linked = 0
        async with self._session_factory() as session, session.begin():
            user = (await session.execute(select(User).where(User.chat_id == chat_id))).scalar_one_or_none()
            if user is None:
                user = User(
                    chat_id=chat_id,
                    platform=platform,
                    display_name=display_name,
                    tz=config.DEFAULT_TIMEZONE,
                )
                session.add(user)
                await session.flush()
            else:
                user.platform = platform
                if display_name:
                    user.display_name = display_name

            link = (await session.execute(
                select(Provider).where(Provider.user_id == user.id, Provider.provider == PROVIDER_SLEEPER)
            )).scalar_one_or_none()
            if link is None:
                session.add(Provider(
                    user_id=user.id,
                    provider=PROVIDER_SLEEPER,
                    provider_user_id=upstream_user_id,
                    provider_username=username,
                ))
            else:
                link.provider_user_id = upstream_user_id
                link.provider_username = username

            for item in leagues:
                league = (await session.execute(
                    select(League).where(League.provider_league_id == str(item["league_id"]))
                )).scalar_one_or_none()
                if league is None:
                    league = League(
                        provider=PROVIDER_SLEEPER,
                        provider_league_id=str(item["league_id"]),
                        name=item["name"],
                        season=int(item["season"]),
                        sport=item.get("sport", "nfl"),
                    )
                    session.add(league)
                    await session.flush()
                else:
                    league.name = item["name"]
                    league.season = int(item["season"])
                    league.sport = item.get("sport", "nfl")

                team_id = item.get("team_id")
                if team_id is None:
                    continue

                membership = (await session.execute(
                    select(UserLeague).where(UserLeague.user_id == user.id, UserLeague.league_id == league.id)
                )).scalar_one_or_none()
                if membership is None:
                    session.add(UserLeague(user_id=user.id, league_id=league.id, team_id=str(team_id)))
                else:
                    membership.team_id = str(team_id)

                pref = (await session.execute(
                    select(AlertPreference).where(
                        AlertPreference.user_id == user.id, AlertPreference.league_id == league.id
                    )
                )).scalar_one_or_none()
                if pref is None:
                    session.add(AlertPreference(user_id=user.id, league_id=league.id))
                linked += 1

        logger.info(f"Synced {linked} leagues for user {chat_id} ({username})")
        return linked

    async def update_alert_preferences(self, chat_id: int, league_id: int, **flags: bool) -> AlertFlags:
        unknown = set(flags) - {"pregame", "scoring", "waivers"}
        if unknown:
            raise ValueError(f"Unknown alert flags: {', '.join(sorted(unknown))}")

        async with self._session_factory() as session, session.begin():
            user = (await session.execute(select(User).where(User.chat_id == chat_id))).scalar_one_or_none()
            if user is None:
                raise LookupError(f"User {chat_id} not found")
            membership = (await session.execute(
                select(UserLeague).where(UserLeague.user_id == user.id, UserLeague.league_id == league_id)
            )).scalar_one_or_none()
            if membership is None:
                raise LookupError(f"User {chat_id} is not linked to league {league_id}")

            pref = (await session.execute(
                select(AlertPreference).where(
                    AlertPreference.user_id == user.id, AlertPreference.league_id == league_id
                )
            )).scalar_one_or_none()
            if pref is None:
                pref = AlertPreference(user_id=user.id, league_id=league_id, pregame=True, scoring=True, waivers=True)
                session.add(pref)
            for name, value in flags.items():
                setattr(pref, name, bool(value))
            result = AlertFlags(pref.pregame, pref.scoring, pref.waivers)

        logger.info(f"Alert preferences for user {chat_id} league {league_id}: {result}")
        return result

    async def remove_user_league(self, chat_id: int, league_id: int) -> bool:
        async with self._session_factory() as session, session.begin():
            user = (await session.execute(select(User).where(User.chat_id == chat_id))).scalar_one_or_none()
            if user is None:
                return False
            await session.execute(
                delete(AlertPreference).where(AlertPreference.user_id == user.id, AlertPreference.league_id == league_id)
            )
            result = await session.execute(
                delete(UserLeague).where(UserLeague.user_id == user.id, UserLeague.league_id == league_id)
            )
            removed = bool(result.rowcount)
        if removed:
            logger.info(f"User {chat_id} removed from league {league_id}")
        return removed

    async def _upsert_user_field(self, chat_id: int, platform: str | None, **fields: Any) -> None:
        async with self._session_factory() as session, session.begin():
            user = (await session.execute(select(User).where(User.chat_id == chat_id))).scalar_one_or_none()
            if user is None:
                user = User(chat_id=chat_id, platform=platform, tz=config.DEFAULT_TIMEZONE)
                session.add(user)
            for name, value in fields.items():
                setattr(user, name, value)

    async def ensure_user(self, chat_id: int, platform: str | None = None, display_name: str | None = None) -> None:
        fields: Dict[str, Any] = {"display_name": display_name} if display_name else {}
        if platform:
            fields["platform"] = platform
        await self._upsert_user_field(chat_id, platform, **fields)

    async def set_timezone(self, chat_id: int, tz: str, platform: str | None = None) -> None:
        await self._upsert_user_field(chat_id, platform, tz=tz)
        logger.info(f"User {chat_id} timezone set to {tz}")

    async def set_language(self, chat_id: int, lang: str, platform: str | None = None) -> None:
        await self._upsert_user_field(chat_id, platform, lang=lang)
        logger.info(f"User {chat_id} language set to {lang}")
