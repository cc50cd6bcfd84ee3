"""Database models and session management.

Session management:
    from sleeperbot.db import get_session_factory, init_db
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from .config import config, logger


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class User(Base):
    """A chat identity on one of the supported platforms."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    chat_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)
    platform: Mapped[str | None] = mapped_column(String(20), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    lang: Mapped[str | None] = mapped_column(String(8), nullable=True)
    tz: Mapped[str] = mapped_column(String(64), nullable=False, default=lambda: config.DEFAULT_TIMEZONE)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    providers: Mapped[List["Provider"]] = relationship(back_populates="user", cascade="all, delete-orphan")
    leagues: Mapped[List["UserLeague"]] = relationship(back_populates="user", cascade="all, delete-orphan")
    alerts: Mapped[List["AlertPreference"]] = relationship(back_populates="user", cascade="all, delete-orphan")


class Provider(Base):
    """Link between a chat user and their upstream fantasy account."""

    __tablename__ = "providers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    provider: Mapped[str] = mapped_column(String(20), nullable=False, default="sleeper")
    provider_user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    provider_username: Mapped[str] = mapped_column(String(100), nullable=False)

    user: Mapped[User] = relationship(back_populates="providers")

    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_provider_user_provider"),
        Index("idx_provider_upstream_user", "provider", "provider_user_id"),
    )


class League(Base):
    __tablename__ = "leagues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    provider: Mapped[str] = mapped_column(String(20), nullable=False, default="sleeper")
    provider_league_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    season: Mapped[int] = mapped_column(Integer, nullable=False)
    sport: Mapped[str] = mapped_column(String(20), nullable=False, default="nfl")

    members: Mapped[List["UserLeague"]] = relationship(back_populates="league", cascade="all, delete-orphan")


class UserLeague(Base):
    __tablename__ = "user_leagues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    league_id: Mapped[int] = mapped_column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    team_id: Mapped[str] = mapped_column(String(32), nullable=False)

    user: Mapped[User] = relationship(back_populates="leagues")
    league: Mapped[League] = relationship(back_populates="members")

    __table_args__ = (UniqueConstraint("user_id", "league_id", name="uq_user_league"),)


class AlertPreference(Base):
    __tablename__ = "alert_preferences"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    league_id: Mapped[int] = mapped_column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    pregame: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    scoring: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    waivers: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    user: Mapped[User] = relationship(back_populates="alerts")

    __table_args__ = (UniqueConstraint("user_id", "league_id", name="uq_alert_user_league"),)


class MatchupsCache(Base):
    """Raw matchup records for one league and week."""

    __tablename__ = "matchups_cache"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    league_id: Mapped[int] = mapped_column(Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False)
    week: Mapped[int] = mapped_column(Integer, nullable=False)
    payload: Mapped[Any] = mapped_column(JSON, nullable=False)
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    __table_args__ = (UniqueConstraint("league_id", "week", name="uq_matchups_league_week"),)


# Lazy-loaded engine and session factory so importing models never connects.
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine(url: str | None = None) -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_async_engine(url or config.DATABASE_URL, echo=config.SQL_ECHO, future=True)
    return _engine


def get_session_factory(engine: AsyncEngine | None = None) -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if engine is not None:
        return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


async def init_db(engine: AsyncEngine | None = None) -> None:
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")


async def dispose_db() -> None:
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("Database connections closed")
    _engine = None
    _session_factory = None
