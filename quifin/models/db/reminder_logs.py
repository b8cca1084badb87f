from __future__ import annotations
"""SQLAlchemy model for the reminder send ledger.

One row per delivered reminder occurrence. The unique index over
(subscription_id, reminder_kind, target_charge_date, offset_days) is what
keeps sweeps idempotent; rows are never updated and only disappear through
the cascade when their subscription is deleted.
"""
from datetime import datetime
from typing import TYPE_CHECKING
from sqlalchemy import Integer, String, DateTime, ForeignKey, Enum, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .subscriptions import Subscription
from quifin.database import Base
from quifin.utils.time import utc_now
from .enums import ReminderKind

class ReminderLog(Base):
    __tablename__ = "reminder_log"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    subscription_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    reminder_kind: Mapped[ReminderKind] = mapped_column(Enum(ReminderKind), nullable=False, default=ReminderKind.CHARGE)
    target_charge_date: Mapped[str] = mapped_column(String(10), nullable=False)
    offset_days: Mapped[int] = mapped_column(Integer, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)

    subscription: Mapped["Subscription"] = relationship("Subscription", back_populates="reminder_logs")

    __table_args__ = (
        UniqueConstraint(
            "subscription_id", "reminder_kind", "target_charge_date", "offset_days",
            name="uq_reminder_log_occurrence",
        ),
        CheckConstraint("offset_days IN (1, 2)", name="reminder_log_offset_window"),
    )
