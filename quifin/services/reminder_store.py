"""Read/append access the reminder engine needs from persistence.

The engine only talks to a ``ReminderStore``; ``SqlReminderStore`` backs it
with the SQLAlchemy models and opens one short-lived session per call, so a
sweep never holds a session across gateway I/O.

Ledger inserts rely on the unique constraint over the occurrence key rather
than a lock: a losing concurrent insert surfaces as ``IntegrityError`` and is
reported as ``False`` (already recorded).
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from quifin.models.db import FxRate, ReminderKind, ReminderLog, Setting, Subscription
from quifin.services.settings import map_settings_rows
from quifin.utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class SubscriptionSnapshot:
    """Detached, read-only view of a subscription row."""
    id: str
    name: str
    amount: float
    currency: str
    cadence_months: int
    next_charge_date: str
    cancel_url: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ReminderLedgerKey:
    subscription_id: str
    target_charge_date: str
    offset_days: int
    reminder_kind: ReminderKind = ReminderKind.CHARGE


class ReminderStore(Protocol):
    def list_active_by_charge_date(self, charge_date: str) -> list[SubscriptionSnapshot]: ...

    def list_rates(self) -> dict[str, float]: ...

    def get_all_settings(self) -> dict[str, str]: ...

    def ledger_exists(self, key: ReminderLedgerKey) -> bool: ...

    def ledger_insert(self, key: ReminderLedgerKey, sent_at: datetime) -> bool: ...


def _snapshot(row: Subscription) -> SubscriptionSnapshot:
    cancel_url = row.cancel_url.strip() if isinstance(row.cancel_url, str) else None
    return SubscriptionSnapshot(
        id=row.id,
        name=row.name,
        amount=float(row.amount),
        currency=row.currency.strip().upper(),
        cadence_months=int(row.cadence_months),
        next_charge_date=row.next_charge_date,
        cancel_url=cancel_url or None,
    )


class SqlReminderStore:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def list_active_by_charge_date(self, charge_date: str) -> list[SubscriptionSnapshot]:
        """Non-archived subscriptions with reminders on, charging on ``charge_date``."""
        with self.session_factory() as session:
            rows = (
                session.query(Subscription)
                .filter(
                    Subscription.archived.is_(False),
                    Subscription.remind_cancel.is_(True),
                    Subscription.next_charge_date == charge_date,
                )
                .order_by(Subscription.next_charge_date.asc(), Subscription.created_at.asc())
                .all()
            )
            return [_snapshot(row) for row in rows]

    def list_rates(self) -> dict[str, float]:
        with self.session_factory() as session:
            return {
                currency.strip().upper(): float(rate)
                for currency, rate in session.query(FxRate.currency, FxRate.rate_to_eur).all()
            }

    def get_all_settings(self) -> dict[str, str]:
        with self.session_factory() as session:
            return map_settings_rows(session.query(Setting.key, Setting.value).all())

    def ledger_exists(self, key: ReminderLedgerKey) -> bool:
        with self.session_factory() as session:
            found = (
                session.query(ReminderLog.id)
                .filter_by(
                    subscription_id=key.subscription_id,
                    reminder_kind=key.reminder_kind,
                    target_charge_date=key.target_charge_date,
                    offset_days=key.offset_days,
                )
                .first()
            )
            return found is not None

    def ledger_insert(self, key: ReminderLedgerKey, sent_at: datetime) -> bool:
        """Append one ledger row. Returns ``False`` if the occurrence is already recorded.

        Any other database error propagates to the caller.
        """
        with self.session_factory() as session:
            session.add(ReminderLog(
                subscription_id=key.subscription_id,
                reminder_kind=key.reminder_kind,
                target_charge_date=key.target_charge_date,
                offset_days=key.offset_days,
                sent_at=sent_at,
            ))
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                # FK violations also raise IntegrityError; only a present row counts as a duplicate
                if self.ledger_exists(key):
                    logger.info(
                        "Reminder ledger entry already present",
                        subscription_id=key.subscription_id,
                        target_charge_date=key.target_charge_date,
                        offset_days=key.offset_days,
                    )
                    return False
                raise
            return True


__all__ = [
    "SubscriptionSnapshot",
    "ReminderLedgerKey",
    "ReminderStore",
    "SqlReminderStore",
]
