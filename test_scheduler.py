"""PeriodicJob and JobManager lifecycle tests."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from sleeperbot.jobs import JobManager
from sleeperbot.scheduler import PeriodicJob


DAY = 86400


def test_aligned_delay_lands_on_interval_boundary():
    job = PeriodicJob("drafts", 60, AsyncMock(), align=True, clock=lambda: 1000.0)
    assert job.next_delay() == 20.0

    job = PeriodicJob("hourly", 3600, AsyncMock(), align=True, clock=lambda: 7200.0)
    assert job.next_delay() == 3600.0


def test_aligned_delay_with_offset():
    # 01:00 UTC, next cleanup at 02:00 UTC
    job = PeriodicJob("cleanup", DAY, AsyncMock(), align=True, offset=7200, clock=lambda: 3 * DAY + 3600.0)
    assert job.next_delay() == 3600.0

    # 03:00 UTC, next cleanup at 02:00 UTC tomorrow
    job = PeriodicJob("cleanup", DAY, AsyncMock(), align=True, offset=7200, clock=lambda: 3 * DAY + 10800.0)
    assert job.next_delay() == DAY - 3600.0


def test_unaligned_delay_is_interval():
    assert PeriodicJob("x", 300, AsyncMock()).next_delay() == 300.0


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        PeriodicJob("x", 0, AsyncMock())


@pytest.mark.asyncio
async def test_job_ticks_until_stopped():
    callback = AsyncMock(return_value={"ok": True})
    job = PeriodicJob("fast", 0.01, callback)

    job.start()
    await asyncio.sleep(0.1)
    job.stop()
    await job.wait_stopped()

    assert callback.await_count >= 2
    assert job.runs == callback.await_count
    assert job.last_result == {"ok": True}
    assert not job.running
    assert job.status()["last_run"] is not None


@pytest.mark.asyncio
async def test_callback_errors_do_not_kill_the_loop():
    callback = AsyncMock(side_effect=RuntimeError("boom"))
    job = PeriodicJob("flaky", 0.01, callback)

    job.start()
    await asyncio.sleep(0.1)
    job.stop()
    await job.wait_stopped()

    assert callback.await_count >= 2
    assert job.errors == job.runs


@pytest.mark.asyncio
async def test_manual_run_skipped_while_tick_in_flight():
    release = asyncio.Event()
    calls = 0

    async def slow():
        nonlocal calls
        calls += 1
        await release.wait()
        return calls

    job = PeriodicJob("slow", 60, slow)
    first = asyncio.create_task(job.run_once())
    await asyncio.sleep(0)
    assert job.in_flight

    assert await job.run_once() is None
    release.set()
    assert await first == 1
    assert calls == 1
    assert not job.in_flight


@pytest.mark.asyncio
async def test_stop_lets_in_flight_tick_finish():
    started = asyncio.Event()
    release = asyncio.Event()
    finished = []

    async def tick():
        started.set()
        await release.wait()
        finished.append(True)

    job = PeriodicJob("graceful", 0.01, tick)
    job.start()
    await started.wait()

    job.stop()
    await asyncio.sleep(0.02)
    assert job.running

    release.set()
    await job.wait_stopped()

    assert finished == [True]
    assert job.runs == 1


def make_manager():
    draft_job = MagicMock()
    draft_job.process_tick = AsyncMock()
    draft_job.get_status.return_value = {"trackedDrafts": 2}
    notify_job = MagicMock()
    notify_job.process_tick = AsyncMock()
    refresh_job = MagicMock()
    refresh_job.refresh_active_leagues = AsyncMock()
    refresh_job.clean_old_cache = AsyncMock()
    refresh_job.refresh_league = AsyncMock(return_value=3)
    digest_job = MagicMock()
    digest_job.process_tick = AsyncMock()
    digest_job.trigger_for_user = AsyncMock(return_value=True)
    return JobManager(draft_job, notify_job, refresh_job, digest_job), refresh_job, digest_job


@pytest.mark.asyncio
async def test_job_manager_lifecycle_and_status():
    manager, _, _ = make_manager()

    status = manager.get_status()
    assert status["running"] is False
    assert set(status["jobs"]) == {
        "draft_notifications", "intelligent_notifications", "daily_digest", "cache_refresh", "cache_cleanup",
    }

    manager.start()
    status = manager.get_status()
    assert status["running"] is True
    assert status["trackedDrafts"] == 2
    assert all(job["running"] for job in status["jobs"].values())

    await manager.stop()
    status = manager.get_status()
    assert status["running"] is False
    assert not any(job["running"] for job in status["jobs"].values())


@pytest.mark.asyncio
async def test_job_manager_manual_refresh():
    manager, refresh_job, _ = make_manager()

    assert await manager.refresh_league(1, 4) == 3
    refresh_job.refresh_league.assert_awaited_once_with(1, 4)


@pytest.mark.asyncio
async def test_job_manager_manual_digest():
    manager, _, digest_job = make_manager()

    assert await manager.trigger_daily_digest(100) is True
    digest_job.trigger_for_user.assert_awaited_once_with(100)


def test_aligned_job_ticks_once_per_slot():
    now = [5 * 3600 + 0.01]
    job = PeriodicJob("hourly", 3600, AsyncMock(), align=True, clock=lambda: now[0])

    assert job.claim_slot()
    # early wake-up just before the next boundary
    now[0] = 6 * 3600 - 0.05
    assert not job.claim_slot()
    now[0] = 6 * 3600
    assert job.claim_slot()
    assert not job.claim_slot()


def test_unaligned_job_always_claims():
    job = PeriodicJob("x", 300, AsyncMock(), clock=lambda: 0.0)
    assert job.claim_slot()
    assert job.claim_slot()
