"""Typed views over upstream payloads and the per-user notification view."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional


DRAFT_PRE = "pre_draft"
DRAFT_IN_PROGRESS = "in_progress"
DRAFT_COMPLETE = "complete"


@dataclass
class SleeperState:
    week: int
    season: str
    season_start_date: Optional[date] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "SleeperState":
        start = data.get("season_start_date")
        season_start = None
        if start:
            try:
                season_start = date.fromisoformat(str(start)[:10])
            except ValueError:
                season_start = None
        return cls(
            week=int(data.get("week") or data.get("display_week") or 1),
            season=str(data.get("league_season") or data.get("season") or datetime.now(timezone.utc).year),
            season_start_date=season_start,
        )

    def season_started(self, now: datetime) -> bool:
        if self.season_start_date is None:
            return True
        return now.date() >= self.season_start_date


@dataclass
class Draft:
    draft_id: str
    status: str
    start_time: Optional[int]  # ms epoch
    teams: int
    pick_timer: int
    draft_order: Dict[str, int] = field(default_factory=dict)
    rounds: int = 0

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Draft":
        settings = data.get("settings") or {}
        order = data.get("draft_order") or {}
        return cls(
            draft_id=str(data["draft_id"]),
            status=data.get("status", DRAFT_PRE),
            start_time=data.get("start_time"),
            teams=int(settings.get("teams") or 0),
            pick_timer=int(settings.get("pick_timer") or 0),
            draft_order={str(k): int(v) for k, v in order.items()},
            rounds=int(settings.get("rounds") or 0),
        )

    def user_for_slot(self, slot: int) -> Optional[str]:
        for user_id, user_slot in self.draft_order.items():
            if user_slot == slot:
                return user_id
        return None


@dataclass
class Roster:
    roster_id: int
    owner_id: Optional[str]
    players: List[str] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Roster":
        return cls(
            roster_id=int(data["roster_id"]),
            owner_id=data.get("owner_id"),
            players=[str(p) for p in (data.get("players") or [])],
        )


@dataclass
class Player:
    first_name: str
    last_name: str
    team: Optional[str] = None
    injury_status: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Player":
        return cls(
            first_name=data.get("first_name") or "",
            last_name=data.get("last_name") or "",
            team=data.get("team"),
            injury_status=data.get("injury_status"),
        )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class Game:
    home: str
    away: str
    start_time: datetime  # UTC

    def involves(self, team: str) -> bool:
        return team in (self.home, self.away)


@dataclass
class AlertFlags:
    pregame: bool = True
    scoring: bool = True
    waivers: bool = True


@dataclass
class LeagueView:
    id: int
    name: str
    provider_league_id: str
    team_id: str
    alerts: AlertFlags = field(default_factory=AlertFlags)


@dataclass
class UserView:
    chat_id: int
    timezone: str
    platform: Optional[str] = None
    leagues: List[LeagueView] = field(default_factory=list)

    def leagues_with(self, flag: str) -> List[LeagueView]:
        return [league for league in self.leagues if getattr(league.alerts, flag)]
