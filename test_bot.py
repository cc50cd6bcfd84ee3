#!/usr/bin/env python3
"""
Sleeper Fantasy Bot Test Suite
Tests configuration, the HTTP layer, the Sleeper client and time helpers
"""

import sys
import os
import asyncio
import traceback
from datetime import datetime, timezone
from pathlib import Path

import aiohttp
import pytest

# Add current directory to path for bot imports
sys.path.insert(0, str(Path(__file__).parent))

from sleeperbot import Config, SLEEPER_API_BASE, SleeperClient, UpstreamError, UpstreamNotFound, fetch_json, make_cache, make_session
from sleeperbot.api import TTL_DRAFTS, TTL_PLAYERS, TTL_STATE, normalize_team, parse_scoreboard, ttl_for
from sleeperbot.config import config
from sleeperbot.http import backoff_delay
from sleeperbot.timeutils import (
    WEDNESDAY,
    day_of_week_in_timezone,
    format_time_in_timezone,
    get_zone,
    is_hour_in_timezone,
    is_valid_timezone,
)


class FakeResponse:
    def __init__(self, status, payload=None):
        self.status = status
        self.payload = payload

    async def json(self, content_type=None):
        return self.payload

    async def text(self):
        return str(self.payload)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Replays canned responses (or raises canned errors) for session.get()."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []
        self.closed = False

    def get(self, url, params=None):
        self.calls.append((url, params))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self):
        self.closed = True


@pytest.fixture
def no_backoff(monkeypatch):
    monkeypatch.setattr(config, "HTTP_BACKOFF_BASE", 0.0)


def test_environment_variables():
    """Test that required configuration is validated at startup"""
    print("🔧 Testing environment configuration...")

    original = Config.BOT_TOKEN
    try:
        Config.BOT_TOKEN = None
        with pytest.raises(ValueError):
            Config.validate_config()
        Config.BOT_TOKEN = "123456:TEST"
        Config.validate_config()
    finally:
        Config.BOT_TOKEN = original
    print("✅ Configuration validation works")


def test_bot_configuration():
    """Test defaults of the bot configuration"""
    print("⚙️ Testing bot configuration...")

    assert SLEEPER_API_BASE, "Sleeper API base URL not configured"
    print(f"  ✅ Sleeper API: {SLEEPER_API_BASE}")
    assert config.DRAFT_POLL_SECS > 0
    assert config.CACHE_RETENTION_DAYS > 0
    assert is_valid_timezone(config.DEFAULT_TIMEZONE), "DEFAULT_TIMEZONE is not a valid IANA zone"

    assert callable(make_session), "make_session function not available"
    assert callable(fetch_json), "fetch_json function not available"
    print("✅ Bot configuration looks good")


@pytest.mark.asyncio
async def test_telegram_bot_token():
    """Test Telegram Bot token validity by calling getMe API (skipped without a token)"""
    bot_token = os.getenv('BOT_TOKEN')
    if not bot_token:
        pytest.skip("BOT_TOKEN not configured")

    assert ':' in bot_token and len(bot_token.split(':')) == 2, "BOT_TOKEN format invalid (should be ID:SECRET)"

    async with aiohttp.ClientSession() as session:
        async with session.get(f"https://api.telegram.org/bot{bot_token}/getMe") as response:
            assert response.status == 200, f"Telegram API request failed with status {response.status}"
            data = await response.json()
            assert data.get('ok'), f"Telegram API returned error: {data.get('description', 'Unknown error')}"
            print(f"✅ Bot: @{data['result'].get('username', 'Unknown')}")


@pytest.mark.asyncio
async def test_session_creation():
    """Test that we can create and close HTTP sessions properly"""
    print("🔗 Testing session management...")

    session = make_session()
    assert session is not None, "Failed to create session"
    assert session.headers["accept"] == "application/json"
    await session.close()
    print("  ✅ Session closed successfully")


def test_backoff_is_capped():
    assert backoff_delay(0, base=1, cap=30) == 1
    assert backoff_delay(3, base=1, cap=30) == 8
    assert backoff_delay(10, base=1, cap=30) == 30


@pytest.mark.asyncio
async def test_fetch_json_retries_transient_errors(no_backoff):
    session = FakeSession([
        FakeResponse(503, "unavailable"),
        aiohttp.ClientConnectionError("reset"),
        FakeResponse(200, {"week": 3}),
    ])

    assert await fetch_json(session, "https://example.test/state") == {"week": 3}
    assert len(session.calls) == 3


@pytest.mark.asyncio
async def test_fetch_json_gives_up_after_max_retries(no_backoff):
    session = FakeSession([FakeResponse(429, "slow down")] * 3)

    with pytest.raises(UpstreamError) as exc:
        await fetch_json(session, "https://example.test/state", max_retries=2)

    assert exc.value.status == 429
    assert len(session.calls) == 3


@pytest.mark.asyncio
async def test_fetch_json_does_not_retry_client_errors(no_backoff):
    session = FakeSession([FakeResponse(404, "missing")])
    with pytest.raises(UpstreamNotFound):
        await fetch_json(session, "https://example.test/user/nobody")

    session = FakeSession([FakeResponse(400, "bad request")])
    with pytest.raises(UpstreamError) as exc:
        await fetch_json(session, "https://example.test/bad")
    assert exc.value.status == 400
    assert len(session.calls) == 1


def test_ttl_cache_expiry():
    """Test that each cached resource expires after its own TTL"""
    print("🗄️ Testing API cache expiry...")

    assert ttl_for("state:nfl") == TTL_STATE
    assert ttl_for("players:nfl") == TTL_PLAYERS

    now = [0.0]
    cache = make_cache(maxsize=16, clock=lambda: now[0])
    cache["drafts:L1"] = ["draft"]
    cache["players:nfl"] = {"4046": "player"}

    now[0] = TTL_DRAFTS - 0.5
    assert cache.get("drafts:L1") == ["draft"]
    now[0] = TTL_DRAFTS + 0.5
    assert cache.get("drafts:L1") is None
    assert "players:nfl" in cache
    assert cache.currsize == 1

    cache.clear()
    assert cache.get("players:nfl") is None
    print("✅ Cache entries expire per resource")


def test_client_keeps_injected_empty_cache():
    cache = make_cache(clock=lambda: 0.0)
    client = SleeperClient(cache=cache, session_factory=lambda: None)
    assert client.cache is cache


@pytest.mark.asyncio
async def test_client_caches_reads():
    now = [0.0]
    session = FakeSession([
        FakeResponse(200, {"week": 3, "league_season": "2025", "season_start_date": "2025-09-04"}),
        FakeResponse(200, {"week": 4, "league_season": "2025"}),
    ])
    client = SleeperClient(cache=make_cache(clock=lambda: now[0]), base_url="https://sleeper.test/v1",
                           session_factory=lambda: session)

    first = await client.get_state()
    second = await client.get_state()
    assert (first.week, first.season, str(first.season_start_date)) == (3, "2025", "2025-09-04")
    assert second.week == 3
    assert session.calls == [("https://sleeper.test/v1/state/nfl", None)]

    now[0] = 301
    assert (await client.get_state()).week == 4

    client.clear_cache()
    assert client.cache_stats()["size"] == 0
    await client.close()
    assert session.closed


@pytest.mark.asyncio
async def test_client_parses_drafts_and_unknown_users():
    session = FakeSession([
        FakeResponse(404, "not found"),
        FakeResponse(200, [{
            "draft_id": "D1",
            "status": "in_progress",
            "start_time": 1755712800000,
            "settings": {"teams": 12, "pick_timer": 120, "rounds": 15},
            "draft_order": {"u1": 1, "u2": 2},
        }]),
    ])
    client = SleeperClient(base_url="https://sleeper.test/v1", session_factory=lambda: session)

    assert await client.get_user_id_by_username("ghost") is None
    [draft] = await client.get_drafts("L1")
    assert (draft.teams, draft.pick_timer, draft.rounds) == (12, 120, 15)
    assert draft.user_for_slot(2) == "u2"
    assert draft.user_for_slot(3) is None


def test_parse_scoreboard_normalizes_teams():
    data = {"events": [
        {"date": "2025-09-14T17:00Z", "competitions": [{"competitors": [
            {"homeAway": "home", "team": {"abbreviation": "WSH"}},
            {"homeAway": "away", "team": {"abbreviation": "NYG"}},
        ]}]},
        {"date": "2025-09-14T20:25Z", "competitions": [{"competitors": [
            {"homeAway": "home", "team": {"abbreviation": "LAR"}},
        ]}]},
    ]}

    [game] = parse_scoreboard(data)
    assert (game.home, game.away) == ("WAS", "NYG")
    assert game.start_time == datetime(2025, 9, 14, 17, 0, tzinfo=timezone.utc)
    assert game.involves("NYG") and not game.involves("DAL")
    assert normalize_team("jac") == "JAX"


@pytest.mark.asyncio
async def test_schedule_request_params():
    session = FakeSession([FakeResponse(200, {"events": []})])
    client = SleeperClient(schedule_base_url="https://espn.test/nfl", session_factory=lambda: session)

    assert await client.get_nfl_schedule(2) == []
    assert session.calls == [("https://espn.test/nfl/scoreboard", {"week": "2", "seasontype": "2"})]


def test_timezone_helpers():
    # Wednesday 2025-01-08 23:00 UTC is 18:00 in New York (EST)
    now = datetime(2025, 1, 8, 23, 0, tzinfo=timezone.utc)

    assert is_hour_in_timezone("America/New_York", 18, now)
    assert not is_hour_in_timezone("America/New_York", 18, now.replace(hour=22))
    assert day_of_week_in_timezone("America/New_York", now) == WEDNESDAY
    assert format_time_in_timezone(now, "Europe/Kyiv") == "01:00"
    assert not is_valid_timezone("Mars/Olympus_Mons")
    assert not is_valid_timezone("")
    assert str(get_zone("Mars/Olympus_Mons")) == config.DEFAULT_TIMEZONE


# Note: This file is configured for pytest usage
# Run with: pytest -v


async def run_all_tests():
    """Run the offline checks and return overall status"""
    print("🧪 Starting Sleeper Fantasy Bot Test Suite")
    print("=" * 50)

    tests = [
        ("Environment Variables Test", test_environment_variables, False),
        ("Bot Configuration Test", test_bot_configuration, False),
        ("Session Management Test", test_session_creation, True),
        ("TTL Cache Test", test_ttl_cache_expiry, False),
        ("Scoreboard Parsing Test", test_parse_scoreboard_normalizes_teams, False),
        ("Timezone Helpers Test", test_timezone_helpers, False),
    ]

    results = []

    for test_name, test_func, is_async in tests:
        print(f"\n🔍 Running {test_name}...")
        try:
            if is_async:
                await test_func()
            else:
                test_func()
            results.append((test_name, True))
        except Exception as e:
            print(f"❌ {test_name} failed with exception: {e}")
            print("Traceback:")
            traceback.print_exc()
            results.append((test_name, False))

    print("\n" + "=" * 50)
    print("📊 Test Results Summary:")

    passed = sum(1 for _, result in results if result)
    for test_name, result in results:
        status = "✅ PASS" if result else "❌ FAIL"
        print(f"  {status} - {test_name}")

    print(f"\nResults: {passed}/{len(results)} tests passed")
    return passed == len(results)


if __name__ == "__main__":
    try:
        success = asyncio.run(run_all_tests())
        sys.exit(0 if success else 1)
    except KeyboardInterrupt:
        print("\n⏹️ Tests interrupted by user")
        sys.exit(1)
