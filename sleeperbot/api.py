from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import aiohttp
from cachetools import TLRUCache

from .config import config, logger
from .http import UpstreamNotFound, fetch_json, make_session
from .types import Draft, Game, Player, Roster, SleeperState


# Cache lifetimes per resource (seconds)
TTL_STATE = 300
TTL_USER = 300
TTL_USER_LEAGUES = 120
TTL_LEAGUE = 300
TTL_ROSTERS = 120
TTL_MATCHUPS = 60
TTL_DRAFTS = 30
TTL_DRAFT_PICKS = 15
TTL_PLAYERS = 6 * 3600
TTL_SCHEDULE = 600
TTL_DEFAULT = 60

# Cache key prefix -> lifetime
CACHE_TTLS = {
    "state": TTL_STATE,
    "user": TTL_USER,
    "leagues": TTL_USER_LEAGUES,
    "league": TTL_LEAGUE,
    "rosters": TTL_ROSTERS,
    "matchups": TTL_MATCHUPS,
    "drafts": TTL_DRAFTS,
    "picks": TTL_DRAFT_PICKS,
    "players": TTL_PLAYERS,
    "schedule": TTL_SCHEDULE,
}


def ttl_for(key: str) -> float:
    return CACHE_TTLS.get(key.split(":", 1)[0], TTL_DEFAULT)


def _cache_ttu(key: str, value: Any, now: float) -> float:
    return now + ttl_for(key)


def make_cache(maxsize: int | None = None, clock: Callable[[], float] = time.monotonic) -> TLRUCache:
    """Build the client's response cache; each entry expires after its resource's TTL."""
    return TLRUCache(maxsize=maxsize or config.API_CACHE_MAXSIZE, ttu=_cache_ttu, timer=clock)


# ESPN abbreviations that differ from Sleeper's
ESPN_TEAM_ALIASES = {
    "WSH": "WAS",
    "LAR": "LA",
    "JAC": "JAX",
}


def normalize_team(abbrev: str) -> str:
    abbrev = (abbrev or "").upper()
    return ESPN_TEAM_ALIASES.get(abbrev, abbrev)


def parse_scoreboard(data: Dict[str, Any]) -> List[Game]:
    """Parse an ESPN scoreboard payload into games keyed by Sleeper team codes."""
    games: List[Game] = []
    for event in data.get("events", []):
        competition = (event.get("competitions") or [{}])[0]
        competitors = competition.get("competitors", [])
        if len(competitors) != 2:
            continue

        home = away = None
        for c in competitors:
            abbrev = normalize_team(c.get("team", {}).get("abbreviation", ""))
            if c.get("homeAway") == "home":
                home = abbrev
            else:
                away = abbrev
        if not home or not away:
            continue

        start = event.get("date") or competition.get("date")
        if not start:
            continue
        try:
            start_time = datetime.fromisoformat(start.replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"Unparseable kickoff time '{start}' for {away} @ {home}")
            continue
        if start_time.tzinfo is None:
            start_time = start_time.replace(tzinfo=timezone.utc)
        games.append(Game(home=home, away=away, start_time=start_time.astimezone(timezone.utc)))
    return games


class SleeperClient:
    """Cached reads against the Sleeper API and the NFL schedule feed."""

    def __init__(
        self,
        cache: TLRUCache | None = None,
        base_url: str | None = None,
        schedule_base_url: str | None = None,
        session_factory: Callable[[], aiohttp.ClientSession] = make_session,
    ):
        self.cache = cache if cache is not None else make_cache()
        self.base_url = (base_url or config.SLEEPER_API_BASE).rstrip("/")
        self.schedule_base_url = (schedule_base_url or config.NFL_SCHEDULE_API_BASE).rstrip("/")
        self._session_factory = session_factory
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = self._session_factory()
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _cached(self, key: str, url: str, params: Dict[str, str] | None = None) -> Any:
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        session = await self._get_session()
        data = await fetch_json(session, url, params=params)
        if data is not None:
            self.cache[key] = data
        return data

    async def get_state(self, sport: str = "nfl") -> SleeperState:
        data = await self._cached(f"state:{sport}", f"{self.base_url}/state/{sport}")
        return SleeperState.from_api(data or {})

    async def get_user_id_by_username(self, username: str) -> Optional[str]:
        try:
            data = await self._cached(f"user:{username.lower()}", f"{self.base_url}/user/{username}")
        except UpstreamNotFound:
            return None
        return (data or {}).get("user_id")

    async def get_user_leagues(self, user_id: str, sport: str = "nfl", season: str | None = None) -> List[Dict[str, Any]]:
        season = season or str(datetime.now(timezone.utc).year)
        data = await self._cached(
            f"leagues:{user_id}:{sport}:{season}",
            f"{self.base_url}/user/{user_id}/leagues/{sport}/{season}",
        )
        return data or []

    async def get_league(self, league_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await self._cached(f"league:{league_id}", f"{self.base_url}/league/{league_id}")
        except UpstreamNotFound:
            return None

    async def get_rosters(self, league_id: str) -> List[Roster]:
        data = await self._cached(f"rosters:{league_id}", f"{self.base_url}/league/{league_id}/rosters")
        return [Roster.from_api(r) for r in (data or [])]

    async def get_matchups(self, league_id: str, week: int) -> List[Dict[str, Any]]:
        data = await self._cached(
            f"matchups:{league_id}:{week}",
            f"{self.base_url}/league/{league_id}/matchups/{week}",
        )
        return data or []

    async def get_drafts(self, league_id: str) -> List[Draft]:
        data = await self._cached(f"drafts:{league_id}", f"{self.base_url}/league/{league_id}/drafts")
        return [Draft.from_api(d) for d in (data or [])]

    async def get_draft_picks(self, draft_id: str) -> List[Dict[str, Any]]:
        data = await self._cached(f"picks:{draft_id}", f"{self.base_url}/draft/{draft_id}/picks")
        return data or []

    async def get_players(self, sport: str = "nfl") -> Dict[str, Player]:
        key = f"players:{sport}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        session = await self._get_session()
        data = await fetch_json(session, f"{self.base_url}/players/{sport}")
        players = {str(pid): Player.from_api(p) for pid, p in (data or {}).items() if isinstance(p, dict)}
        self.cache[key] = players
        logger.info(f"Loaded {len(players)} {sport} players")
        return players

    async def get_nfl_schedule(self, week: int, season: str | None = None) -> List[Game]:
        key = f"schedule:{season or 'current'}:{week}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        params = {"week": str(week), "seasontype": "2"}
        if season:
            params["dates"] = str(season)
        session = await self._get_session()
        data = await fetch_json(session, f"{self.schedule_base_url}/scoreboard", params=params)
        games = parse_scoreboard(data or {})
        self.cache[key] = games
        return games

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("Sleeper client cache cleared")

    def cache_stats(self) -> Dict[str, int]:
        return {"size": int(self.cache.currsize), "maxsize": int(self.cache.maxsize)}
