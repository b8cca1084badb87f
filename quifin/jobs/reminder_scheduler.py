"""Daily reminder scheduler bound to the asyncio event loop.

One ``ReminderScheduler`` is owned by the running application (created in
the FastAPI lifespan, stored on ``app.state``) and passed explicitly to
whatever needs to trigger a sweep.

State:
* ``_timer``: the single armed ``TimerHandle`` for the next daily run. Every
  re-arm cancels and replaces it, so at most one is ever live.
* ``_in_flight``: the task of the sweep currently running. Concurrent
  ``run_now`` callers await the same task instead of starting a second sweep,
  which is what keeps manual triggers from racing the scheduled one.

Lifecycle: ``ensure_started`` arms the timer and fires one catch-up sweep in
the background. After every sweep, successful or not, the timer is re-armed
for the next occurrence of the configured local time.
"""
from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Coroutine, Optional

from quifin.config import REMINDER_SETTINGS, REMINDER_TIMEZONE
from quifin.models.schemas import ReminderRunResult, SchedulerSnapshot
from quifin.services.notification_gateway import NotificationGateway
from quifin.services.reminder_engine import run_reminder_sweep
from quifin.services.reminder_store import ReminderStore
from quifin.utils import get_logger
from quifin.utils.time import compute_next_daily_run_at, utc_now

logger = get_logger(__name__)

SweepFunc = Callable[..., Awaitable[ReminderRunResult]]


class ReminderScheduler:
    def __init__(
        self,
        store: ReminderStore,
        gateway: NotificationGateway,
        *,
        time_zone: str = REMINDER_TIMEZONE,
        clock: Callable[[], datetime] = utc_now,
        sweep: SweepFunc = run_reminder_sweep,
        catch_up_on_start: bool = True,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.time_zone = time_zone
        self.clock = clock
        self._sweep = sweep
        self.catch_up_on_start = catch_up_on_start

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._started = False
        self._closed = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._next_run_at: Optional[datetime] = None
        self._in_flight: Optional[asyncio.Task[ReminderRunResult]] = None
        self._background: set[asyncio.Task[None]] = set()
        self._last_result: Optional[ReminderRunResult] = None

    @property
    def started(self) -> bool:
        return self._started

    def ensure_started(self) -> None:
        """Arm the daily timer and (unless disabled) run one catch-up sweep. Idempotent.

        Must be called from inside the running event loop.
        """
        if self._started:
            return
        self._loop = asyncio.get_running_loop()
        self._started = True
        self._closed = False
        self._arm()
        logger.info(
            "Reminder scheduler started",
            time_zone=self.time_zone,
            next_run_at=self._next_run_at,
        )
        if self.catch_up_on_start:
            self._spawn(self._guarded_sweep("startup"))

    async def run_now(self) -> ReminderRunResult:
        """Run a sweep now, or join the one already running.

        The shared sweep is shielded: cancelling one waiter does not cancel
        the sweep for the others.
        """
        if self._in_flight is None:
            self._in_flight = asyncio.get_running_loop().create_task(self._run_sweep())
        return await asyncio.shield(self._in_flight)

    def snapshot(self) -> SchedulerSnapshot:
        return SchedulerSnapshot(
            started=self._started,
            time_zone=self.time_zone,
            timer_armed=self._timer is not None and not self._timer.cancelled(),
            next_run_at=self._next_run_at,
            sweep_in_flight=self._in_flight is not None,
            last_result=self._last_result,
        )

    async def shutdown(self, grace_seconds: Optional[float] = None) -> None:
        """Stop scheduling and give an in-flight sweep a bounded time to finish."""
        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._next_run_at = None

        grace = float(grace_seconds if grace_seconds is not None else REMINDER_SETTINGS["shutdown_grace_seconds"])
        in_flight = self._in_flight
        if in_flight is not None:
            # outcome (result or error) belongs to whoever awaited run_now
            done, _ = await asyncio.wait({in_flight}, timeout=grace)
            if not done:
                logger.warning("Reminder sweep still running at shutdown; cancelling", grace_seconds=grace)
                in_flight.cancel()

        for task in list(self._background):
            task.cancel()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        self._started = False
        logger.info("Reminder scheduler stopped")

    # ------------------------------------------------------------------ #
    def _arm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._closed or self._loop is None:
            return

        now = self.clock()
        next_run_at = compute_next_daily_run_at(
            now,
            self.time_zone,
            int(REMINDER_SETTINGS["schedule_hour"]),  # type: ignore[arg-type]
            int(REMINDER_SETTINGS["schedule_minute"]),  # type: ignore[arg-type]
        )
        delay = max(float(REMINDER_SETTINGS["min_delay_seconds"]), (next_run_at - now).total_seconds())  # type: ignore[arg-type]
        self._next_run_at = next_run_at
        self._timer = self._loop.call_later(delay, self._on_timer)
        logger.debug("Reminder timer armed", next_run_at=next_run_at, delay_seconds=round(delay, 3))

    def _on_timer(self) -> None:
        self._timer = None
        self._spawn(self._guarded_sweep("scheduled"))

    def _spawn(self, coro: Coroutine[None, None, None]) -> None:
        if self._loop is None:
            coro.close()
            raise RuntimeError("scheduler not started")
        task = self._loop.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _guarded_sweep(self, trigger: str) -> None:
        try:
            await self.run_now()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.error("Reminder sweep failed", trigger=trigger, exc_info=True)

    async def _run_sweep(self) -> ReminderRunResult:
        try:
            result = await self._sweep(self.store, self.gateway, now=self.clock(), time_zone=self.time_zone)
            self._last_result = result
            return result
        finally:
            self._in_flight = None
            if self._started:
                self._arm()


__all__ = ["ReminderScheduler"]
