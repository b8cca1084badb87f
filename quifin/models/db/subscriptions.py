from __future__ import annotations
"""SQLAlchemy model for tracked recurring subscriptions."""
import uuid
from datetime import datetime
from typing import TYPE_CHECKING
from sqlalchemy import String, Float, Integer, Boolean, Text, DateTime, Enum, CheckConstraint
from sqlalchemy.orm import relationship, Mapped, mapped_column

if TYPE_CHECKING:  # pragma: no cover
    from .reminder_logs import ReminderLog
from quifin.database import Base
from quifin.utils.time import utc_now
from .enums import CadenceType


def _new_id() -> str:
    return str(uuid.uuid4())


class Subscription(Base):
    __tablename__ = "subscriptions"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False)
    cadence_type: Mapped[CadenceType] = mapped_column(Enum(CadenceType), nullable=False, default=CadenceType.MONTHLY)
    cadence_months: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # ISO YYYY-MM-DD, compared as text
    next_charge_date: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    remind_cancel: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    remind_lead_days: Mapped[int | None] = mapped_column(Integer, nullable=True)
    archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancel_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Python-side default keeps sub-second precision for creation ordering
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    reminder_logs: Mapped[list["ReminderLog"]] = relationship(
        "ReminderLog",
        back_populates="subscription",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("amount >= 0", name="subscription_amount_non_negative"),
        CheckConstraint("cadence_months > 0", name="subscription_cadence_positive"),
    )
