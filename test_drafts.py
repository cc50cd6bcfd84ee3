"""Draft notification engine tests: start notices, snake order and turn notices."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from conftest import RecordingMessenger, make_league
from sleeperbot.drafts import DraftNotificationsJob, draft_round, snake_draft_slot
from sleeperbot.state import DraftStateStore
from sleeperbot.types import DRAFT_COMPLETE, DRAFT_IN_PROGRESS, DRAFT_PRE, Draft


NOW = datetime(2025, 8, 20, 18, 0, tzinfo=timezone.utc)


def make_draft(status=DRAFT_PRE, starts_in=timedelta(minutes=30), teams=2, order=None, rounds=0, draft_id="D1"):
    return Draft(
        draft_id=draft_id,
        status=status,
        start_time=int((NOW + starts_in).timestamp() * 1000),
        teams=teams,
        pick_timer=90,
        draft_order=order if order is not None else {"u1": 1, "u2": 2},
        rounds=rounds,
    )


def make_job(drafts, leagues, messenger, picks=(), links=None):
    client = AsyncMock()
    client.get_drafts.return_value = drafts
    client.get_draft_picks.return_value = list(picks)
    store = AsyncMock()
    store.list_leagues_with_members.return_value = leagues
    links = {"u1": 111, "u2": 222} if links is None else links
    store.find_provider_link.side_effect = lambda uid: links.get(uid)
    job = DraftNotificationsJob(client, store, messenger, states=DraftStateStore(), now=lambda: NOW)
    return job, client, store


def test_snake_draft_slots():
    assert snake_draft_slot(7, 10) == 7
    assert snake_draft_slot(17, 10) == 4
    assert snake_draft_slot(11, 10) == 10
    assert snake_draft_slot(20, 10) == 1
    # odd team count
    assert snake_draft_slot(10, 9) == 9
    assert snake_draft_slot(18, 9) == 1
    assert snake_draft_slot(19, 9) == 1


def test_draft_round():
    assert draft_round(1, 10) == 1
    assert draft_round(10, 10) == 1
    assert draft_round(11, 10) == 2


@pytest.mark.asyncio
async def test_start_notice_sent_once_per_member():
    messenger = RecordingMessenger()
    league = make_league(members=((111, "Europe/Kyiv"), (222, "America/New_York")))
    job, _, _ = make_job([make_draft()], [league], messenger)

    for _ in range(3):
        await job.process_tick()

    sent = [(chat_id, key) for chat_id, key, _ in messenger.templated]
    assert sorted(sent) == [(111, "draft_starting_soon"), (222, "draft_starting_soon")]
    variables = {chat_id: v for chat_id, _, v in messenger.templated}
    assert variables[111]["startTime"] == "2025-08-20 21:30 (Europe/Kyiv)"
    assert variables[222]["startTime"] == "2025-08-20 14:30 (America/New_York)"
    assert job.states.get("D1").start_notice_sent


@pytest.mark.asyncio
@pytest.mark.parametrize("starts_in,expected", [
    (timedelta(hours=2), 0),
    (timedelta(seconds=3601), 0),
    (timedelta(seconds=3600), 1),
    (timedelta(seconds=1), 1),
    (timedelta(0), 0),
    (timedelta(minutes=-5), 0),
])
async def test_start_notice_window(starts_in, expected):
    messenger = RecordingMessenger()
    job, _, _ = make_job([make_draft(starts_in=starts_in)], [make_league()], messenger)

    await job.process_tick()

    assert len(messenger.templated) == expected


@pytest.mark.asyncio
async def test_start_notice_retries_failed_members_only():
    messenger = RecordingMessenger(fail_for={222})
    league = make_league(members=((111, "UTC"), (222, "UTC")))
    job, _, _ = make_job([make_draft()], [league], messenger)

    await job.process_tick()
    assert [c for c, _, _ in messenger.templated] == [111]
    assert not job.states.get("D1").start_notice_sent

    messenger.fail_for.clear()
    await job.process_tick()
    await job.process_tick()

    assert [c for c, _, _ in messenger.templated] == [111, 222]
    assert job.states.get("D1").start_notice_sent


@pytest.mark.asyncio
async def test_turn_notice_once_per_pick():
    messenger = RecordingMessenger()
    draft = make_draft(status=DRAFT_IN_PROGRESS, starts_in=timedelta(minutes=-10))
    job, client, _ = make_job([draft], [make_league()], messenger, picks=[])

    await job.process_tick()
    await job.process_tick()
    assert messenger.templated == [(111, "draft_your_turn", {
        "league": "Dynasty", "round": 1, "pickNumber": 1, "timer": 90,
    })]

    # pick 2 is slot 2 in round 1
    client.get_draft_picks.return_value = [{"pick_no": 1}]
    await job.process_tick()
    await job.process_tick()
    assert [(c, v["pickNumber"]) for c, _, v in messenger.templated] == [(111, 1), (222, 2)]

    # snake: pick 3 comes back to slot 2, so the same user is notified again
    client.get_draft_picks.return_value = [{"pick_no": 1}, {"pick_no": 2}]
    await job.process_tick()
    assert [(c, v["pickNumber"], v["round"]) for c, _, v in messenger.templated][-1] == (222, 3, 2)
    assert len(messenger.templated) == 3


@pytest.mark.asyncio
async def test_turn_notice_retried_after_failed_delivery():
    messenger = RecordingMessenger(fail_for={111})
    draft = make_draft(status=DRAFT_IN_PROGRESS, starts_in=timedelta(minutes=-10))
    job, _, _ = make_job([draft], [make_league()], messenger)

    await job.process_tick()
    assert messenger.templated == []

    messenger.fail_for.clear()
    await job.process_tick()
    assert [c for c, _, _ in messenger.templated] == [111]


@pytest.mark.asyncio
async def test_unlinked_user_looked_up_once():
    messenger = RecordingMessenger()
    draft = make_draft(status=DRAFT_IN_PROGRESS, starts_in=timedelta(minutes=-10))
    job, _, store = make_job([draft], [make_league()], messenger, links={})

    await job.process_tick()
    await job.process_tick()

    assert messenger.templated == []
    assert store.find_provider_link.await_count == 1


@pytest.mark.asyncio
async def test_no_turn_notice_after_last_pick():
    messenger = RecordingMessenger()
    draft = make_draft(status=DRAFT_IN_PROGRESS, starts_in=timedelta(minutes=-10), rounds=1)
    job, _, _ = make_job([draft], [make_league()], messenger, picks=[{}, {}])

    await job.process_tick()

    assert messenger.templated == []


@pytest.mark.asyncio
async def test_completed_draft_clears_state_and_congratulates():
    messenger = RecordingMessenger()
    league = make_league(members=((111, "UTC"), (222, "UTC")))
    draft = make_draft(status=DRAFT_IN_PROGRESS, starts_in=timedelta(minutes=-10))
    job, client, _ = make_job([draft], [league], messenger)

    await job.process_tick()
    assert "D1" in job.states

    client.get_drafts.return_value = [make_draft(status=DRAFT_COMPLETE, starts_in=timedelta(minutes=-10))]
    await job.process_tick()
    await job.process_tick()

    completed = [c for c, key, _ in messenger.templated if key == "draft_completed"]
    assert completed == [111, 222]
    assert "D1" not in job.states
    assert job.get_status() == {"trackedDrafts": 0}


@pytest.mark.asyncio
async def test_draft_already_complete_is_ignored():
    messenger = RecordingMessenger()
    job, _, _ = make_job([make_draft(status=DRAFT_COMPLETE)], [make_league()], messenger)

    await job.process_tick()

    assert messenger.templated == []
    assert len(job.states) == 0


@pytest.mark.asyncio
async def test_failing_league_does_not_stop_others():
    messenger = RecordingMessenger()
    leagues = [
        make_league(1, "One", "L1", members=((111, "UTC"),)),
        make_league(2, "Two", "L2", members=((222, "UTC"),)),
        make_league(3, "Three", "L3", members=((333, "UTC"),)),
    ]
    job, client, _ = make_job([], leagues, messenger)

    async def get_drafts(league_id):
        if league_id == "L2":
            raise RuntimeError("upstream down")
        return [make_draft(draft_id=f"D-{league_id}")]

    client.get_drafts.side_effect = get_drafts

    result = await job.process_tick()

    assert client.get_drafts.await_count == 3
    assert result == {"leagues": 3, "drafts": 2, "errors": 1}
    assert sorted(c for c, _, _ in messenger.templated) == [111, 333]


@pytest.mark.asyncio
async def test_drafts_removed_upstream_are_evicted():
    messenger = RecordingMessenger()
    far_future = make_draft(draft_id="D2", starts_in=timedelta(days=30))
    job, client, _ = make_job([make_draft(), far_future], [make_league()], messenger)

    await job.process_tick()
    assert set(job.states) == {"D1", "D2"}

    client.get_drafts.return_value = [make_draft()]
    await job.process_tick()

    assert set(job.states) == {"D1"}
    assert job.get_status() == {"trackedDrafts": 1}


@pytest.mark.asyncio
async def test_failed_league_fetch_keeps_draft_state():
    messenger = RecordingMessenger()
    job, client, _ = make_job([make_draft()], [make_league()], messenger)

    await job.process_tick()
    client.get_drafts.side_effect = RuntimeError("upstream down")
    await job.process_tick()

    assert "D1" in job.states
    assert job.states.get("D1").start_notice_sent


@pytest.mark.asyncio
async def test_state_dropped_when_league_has_no_members_left():
    messenger = RecordingMessenger()
    job, _, store = make_job([make_draft()], [make_league()], messenger)

    await job.process_tick()
    store.list_leagues_with_members.return_value = []
    await job.process_tick()

    assert len(job.states) == 0
