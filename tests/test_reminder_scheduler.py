import asyncio
from datetime import datetime, timezone

import pytest

from quifin.config import REMINDER_SETTINGS
from quifin.jobs.reminder_scheduler import ReminderScheduler
from quifin.services.reminder_engine import run_reminder_sweep

from conftest import FIXED_NOW

NEXT_RUN = datetime(2026, 3, 4, 5, 30, tzinfo=timezone.utc)


def _scheduler(store, gateway, **kwargs) -> ReminderScheduler:
    kwargs.setdefault("clock", lambda: FIXED_NOW)
    kwargs.setdefault("catch_up_on_start", False)
    return ReminderScheduler(store, gateway, time_zone="Europe/Dublin", **kwargs)


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


def test_concurrent_triggers_share_one_sweep(store, gateway, ntfy_configured, subscription_factory, ledger_rows):
    subscription_factory("Netflix", "2026-03-04")
    subscription_factory("Spotify", "2026-03-05")
    gateway.delay = 0.05
    scheduler = _scheduler(store, gateway)

    async def scenario():
        return await asyncio.gather(*(scheduler.run_now() for _ in range(5)))

    results = asyncio.run(scenario())

    assert all(r is results[0] for r in results)
    assert results[0].sent_count == 2
    assert len(gateway.sent) == 2
    assert len(ledger_rows()) == 2


def test_run_after_completion_starts_a_fresh_sweep(store, gateway, ntfy_configured, subscription_factory):
    subscription_factory("Netflix", "2026-03-04")
    scheduler = _scheduler(store, gateway)

    async def scenario():
        first = await scheduler.run_now()
        second = await scheduler.run_now()
        return first, second

    first, second = asyncio.run(scenario())

    assert first is not second
    assert (first.sent_count, second.sent_count, second.skipped_count) == (1, 0, 1)
    assert scheduler.snapshot().last_result == second


def test_cancelled_waiter_does_not_cancel_shared_sweep(store, gateway, ntfy_configured, subscription_factory):
    subscription_factory("Netflix", "2026-03-04")
    gateway.delay = 0.05
    scheduler = _scheduler(store, gateway)

    async def scenario():
        impatient = asyncio.ensure_future(scheduler.run_now())
        patient = asyncio.ensure_future(scheduler.run_now())
        await asyncio.sleep(0.01)
        impatient.cancel()
        return await patient

    result = asyncio.run(scenario())

    assert result.sent_count == 1
    assert len(gateway.sent) == 1


def test_ensure_started_arms_a_single_timer(store, gateway):
    scheduler = _scheduler(store, gateway)

    async def scenario():
        scheduler.ensure_started()
        first_timer = scheduler._timer
        scheduler.ensure_started()
        snap = scheduler.snapshot()
        same_timer = scheduler._timer is first_timer
        await scheduler.shutdown()
        return snap, same_timer, scheduler.snapshot()

    armed, same_timer, stopped = asyncio.run(scenario())

    assert same_timer
    assert armed.started and armed.timer_armed
    assert armed.next_run_at == NEXT_RUN
    assert armed.time_zone == "Europe/Dublin"
    assert not stopped.timer_armed
    assert stopped.next_run_at is None


def test_startup_runs_one_catch_up_sweep(store, gateway, ntfy_configured, subscription_factory):
    subscription_factory("Netflix", "2026-03-04")
    scheduler = _scheduler(store, gateway, catch_up_on_start=True)

    async def scenario():
        scheduler.ensure_started()
        await _wait_for(lambda: scheduler.snapshot().last_result is not None)
        snap = scheduler.snapshot()
        await scheduler.shutdown()
        return snap

    snap = asyncio.run(scenario())

    assert snap.last_result.sent_count == 1
    assert snap.timer_armed
    assert snap.next_run_at == NEXT_RUN


def test_failed_sweep_still_rearms(store, gateway):
    calls = []

    async def exploding_sweep(*args, **kwargs):
        calls.append(kwargs["now"])
        raise RuntimeError("database is gone")

    scheduler = _scheduler(store, gateway, sweep=exploding_sweep)

    async def scenario():
        scheduler.ensure_started()
        with pytest.raises(RuntimeError, match="database is gone"):
            await scheduler.run_now()
        snap = scheduler.snapshot()
        await scheduler.shutdown()
        return snap

    snap = asyncio.run(scenario())

    assert calls == [FIXED_NOW]
    assert snap.timer_armed
    assert snap.next_run_at == NEXT_RUN
    assert not snap.sweep_in_flight


def test_timer_fires_and_keeps_rescheduling_after_failures(store, gateway, monkeypatch):
    # one hundredth of a second before 05:30 in Dublin (GMT in January)
    just_before = datetime(2026, 1, 15, 5, 29, 59, 990000, tzinfo=timezone.utc)
    monkeypatch.setitem(REMINDER_SETTINGS, "min_delay_seconds", 0.01)
    calls = []

    async def flaky_sweep(*args, **kwargs):
        calls.append(kwargs["now"])
        raise RuntimeError("gateway exploded")

    scheduler = _scheduler(store, gateway, clock=lambda: just_before, sweep=flaky_sweep)

    async def scenario():
        scheduler.ensure_started()
        await _wait_for(lambda: len(calls) >= 3)
        snap = scheduler.snapshot()
        await scheduler.shutdown()
        return snap

    snap = asyncio.run(scenario())

    assert len(calls) >= 3
    assert snap.started
    assert snap.next_run_at == datetime(2026, 1, 15, 5, 30, tzinfo=timezone.utc)


def test_shutdown_waits_for_in_flight_sweep(store, gateway, ntfy_configured, subscription_factory):
    subscription_factory("Netflix", "2026-03-04")
    gateway.delay = 0.05
    scheduler = _scheduler(store, gateway)

    async def scenario():
        scheduler.ensure_started()
        waiter = asyncio.ensure_future(scheduler.run_now())
        await asyncio.sleep(0)
        await scheduler.shutdown(grace_seconds=2)
        return await waiter

    result = asyncio.run(scenario())

    assert result.sent_count == 1
    assert not scheduler.snapshot().timer_armed


def test_shutdown_gives_up_after_grace_period(store, gateway):
    async def stuck_sweep(*args, **kwargs):
        await asyncio.sleep(30)

    scheduler = _scheduler(store, gateway, sweep=stuck_sweep)

    async def scenario():
        scheduler.ensure_started()
        waiter = asyncio.ensure_future(scheduler.run_now())
        await asyncio.sleep(0)
        started = asyncio.get_running_loop().time()
        await scheduler.shutdown(grace_seconds=0.05)
        elapsed = asyncio.get_running_loop().time() - started
        with pytest.raises(asyncio.CancelledError):
            await waiter
        return elapsed

    elapsed = asyncio.run(scenario())

    assert elapsed < 1
    assert not scheduler.snapshot().sweep_in_flight


def test_default_sweep_is_the_reminder_engine(store, gateway):
    assert ReminderScheduler(store, gateway)._sweep is run_reminder_sweep


def test_timer_callback_before_start_is_rejected(store, gateway):
    scheduler = _scheduler(store, gateway)

    with pytest.raises(RuntimeError, match="scheduler not started"):
        scheduler._on_timer()
    assert not scheduler.snapshot().sweep_in_flight


def test_manual_run_replaces_the_armed_timer(store, gateway):
    scheduler = _scheduler(store, gateway)

    async def scenario():
        scheduler.ensure_started()
        before = scheduler._timer
        await scheduler.run_now()
        after = scheduler._timer
        snap = scheduler.snapshot()
        await scheduler.shutdown()
        return before, after, snap

    before, after, snap = asyncio.run(scenario())

    assert after is not before
    assert before.cancelled()
    assert snap.timer_armed
    assert snap.next_run_at == NEXT_RUN
