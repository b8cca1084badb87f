"""Reminder engine orchestrator.

Public entry point ``run_reminder_sweep(store, gateway, now=None)`` that:
1. Snapshots notification settings and the FX rate table once.
2. Resolves the gateway target (a configuration problem becomes a warning and
   every not-yet-sent candidate is skipped).
3. Computes "today" in the reminder time zone once.
4. For each window in order, selects subscriptions charging ``today + window``.
5. Per candidate: ledger check, render, deliver, then record the ledger entry.
6. Returns an aggregated ``ReminderRunResult``.

Failure policy:
* Per-candidate failures are counted and reported as warnings; the sweep
  always continues with the next candidate.
* Nothing is retried inside a sweep. The next scheduled sweep is the retry,
  and the ledger keeps it from re-sending what already went out.
* Configuration warnings and already-sent candidates share ``skipped_count``.
"""
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from quifin.config import REMINDER_SETTINGS, REMINDER_TIMEZONE, TEST_NOTIFICATION
from quifin.models.db import ReminderKind
from quifin.models.schemas import ReminderRunResult
from quifin.services.notification_gateway import (
    DeliveryError,
    GatewayConfigError,
    NotificationGateway,
    NotificationSettings,
    NotificationTarget,
    notification_settings_from,
    resolve_settings,
)
from quifin.services.reminder_messages import build_charge_reminder_body, build_test_notification_body
from quifin.services.reminder_store import ReminderLedgerKey, ReminderStore, SubscriptionSnapshot
from quifin.utils import get_logger, log_business_event, log_performance
from quifin.utils.time import add_days_to_iso, civil_now, utc_now

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ReminderCandidate:
    offset_days: int
    target_date: str
    subscription: SubscriptionSnapshot


def _windows(windows: Optional[Iterable[int]]) -> tuple[int, ...]:
    return tuple(windows if windows is not None else REMINDER_SETTINGS["windows"])  # type: ignore[arg-type]


def select_candidates(
    store: ReminderStore, today_iso: str, windows: Optional[Iterable[int]] = None
) -> list[ReminderCandidate]:
    """All (window, subscription) pairs due for ``today_iso``, windows in configured order."""
    candidates: list[ReminderCandidate] = []
    for offset_days in _windows(windows):
        target_date = add_days_to_iso(today_iso, offset_days)
        for subscription in store.list_active_by_charge_date(target_date):
            candidates.append(ReminderCandidate(offset_days, target_date, subscription))
    return candidates


def _ledger_key(subscription_id: str, target_date: str, offset_days: int) -> ReminderLedgerKey:
    return ReminderLedgerKey(
        subscription_id=subscription_id,
        target_charge_date=target_date,
        offset_days=offset_days,
        reminder_kind=ReminderKind(REMINDER_SETTINGS["kind"]),
    )


def already_sent(store: ReminderStore, subscription_id: str, target_date: str, offset_days: int) -> bool:
    return store.ledger_exists(_ledger_key(subscription_id, target_date, offset_days))


def record_sent(
    store: ReminderStore, subscription_id: str, target_date: str, offset_days: int, sent_at: datetime
) -> bool:
    """Append the ledger entry; ``False`` means another sweep recorded it first."""
    return store.ledger_insert(_ledger_key(subscription_id, target_date, offset_days), sent_at)


def _resolve_for_sweep(settings: NotificationSettings, warnings: list[str]) -> Optional[NotificationTarget]:
    try:
        return resolve_settings(settings)
    except GatewayConfigError as exc:
        warnings.append(str(exc))
        logger.warning("Reminder gateway not configured", reason=str(exc))
        return None


async def run_reminder_sweep(
    store: ReminderStore,
    gateway: NotificationGateway,
    now: Optional[datetime] = None,
    time_zone: str = REMINDER_TIMEZONE,
    windows: Optional[Sequence[int]] = None,
) -> ReminderRunResult:
    """Run one reminder check across all windows.

    Never raises for gateway or per-candidate problems; those end up in the
    returned counts and warnings. Store read failures propagate.
    """
    run_id = uuid.uuid4().hex[:12]
    started = time.perf_counter()
    run_at = now.astimezone(timezone.utc) if now is not None else utc_now()
    window_list = _windows(windows)
    warnings: list[str] = []

    fx_rates = store.list_rates()
    target = _resolve_for_sweep(notification_settings_from(store.get_all_settings()), warnings)
    today_iso = civil_now(time_zone, now).iso_date
    title = str(REMINDER_SETTINGS["title"])

    candidates_checked = sent_count = skipped_count = failed_count = 0

    logger.info("Reminder sweep started", run_id=run_id, today=today_iso, time_zone=time_zone)

    for candidate in select_candidates(store, today_iso, window_list):
        candidates_checked += 1
        subscription = candidate.subscription
        context = {
            "run_id": run_id,
            "subscription_id": subscription.id,
            "target_charge_date": candidate.target_date,
            "offset_days": candidate.offset_days,
        }

        if already_sent(store, subscription.id, candidate.target_date, candidate.offset_days):
            skipped_count += 1
            logger.debug("Reminder already sent", **context)
            continue
        if target is None:
            skipped_count += 1
            continue

        failure_prefix = (
            f"Failed to send reminder for {subscription.name} "
            f"({candidate.target_date}, offset {candidate.offset_days})"
        )
        try:
            body = build_charge_reminder_body(subscription, candidate.offset_days, fx_rates)
            await gateway.send(target, title, body)
        except DeliveryError as exc:
            failed_count += 1
            warnings.append(f"{failure_prefix}: {exc}")
            logger.warning(warnings[-1], status_code=exc.status, **context)
            continue
        except Exception as exc:
            failed_count += 1
            warnings.append(f"{failure_prefix}: {exc}")
            logger.error(warnings[-1], exc_info=True, **context)
            continue

        try:
            recorded = record_sent(store, subscription.id, candidate.target_date, candidate.offset_days, utc_now())
        except SQLAlchemyError as exc:
            failed_count += 1
            warnings.append(f"{failure_prefix}: reminder delivered but ledger write failed: {exc}")
            logger.error(warnings[-1], exc_info=True, **context)
            continue

        if recorded:
            sent_count += 1
            logger.info("Reminder sent", **context)
        else:
            skipped_count += 1

    result = ReminderRunResult(
        run_at=run_at,
        time_zone=time_zone,
        windows_checked=len(window_list),
        candidates_checked=candidates_checked,
        sent_count=sent_count,
        skipped_count=skipped_count,
        failed_count=failed_count,
        warnings=warnings,
    )

    duration_ms = (time.perf_counter() - started) * 1000
    log_business_event(
        "reminder_sweep_completed",
        {
            "today": today_iso,
            "candidates_checked": candidates_checked,
            "sent_count": sent_count,
            "skipped_count": skipped_count,
            "failed_count": failed_count,
            "warning_count": len(warnings),
        },
        run_id=run_id,
    )
    log_performance("reminder_sweep", duration_ms, {"run_id": run_id, "candidates_checked": candidates_checked})
    return result


async def send_test_notification(
    store: ReminderStore,
    gateway: NotificationGateway,
    override: Optional[NotificationSettings] = None,
    now: Optional[datetime] = None,
    time_zone: str = REMINDER_TIMEZONE,
) -> dict[str, str]:
    """Send one diagnostic message, bypassing candidates and the ledger.

    ``override`` replaces the stored settings as a whole; a field missing from
    it is treated as empty, not looked up in the store.

    Raises:
        GatewayConfigError: settings cannot be resolved to a target.
        DeliveryError: the gateway rejected or never received the message.
    """
    settings = override if override is not None else notification_settings_from(store.get_all_settings())
    target = resolve_settings(settings)
    body = build_test_notification_body(now or utc_now(), time_zone)
    await gateway.send(target, TEST_NOTIFICATION["title"], body)
    log_business_event("test_notification_sent", {"target_url": target.url, "override": override is not None})
    return {"target_url": target.url}


__all__ = [
    "ReminderCandidate",
    "select_candidates",
    "already_sent",
    "record_sent",
    "run_reminder_sweep",
    "send_test_notification",
]
