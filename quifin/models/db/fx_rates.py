from __future__ import annotations
"""SQLAlchemy model for manual currency -> EUR rates."""
from datetime import datetime
from sqlalchemy import String, Float, DateTime, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from quifin.database import Base
from quifin.utils.time import utc_now

class FxRate(Base):
    __tablename__ = "fx_rates"
    # One rate per currency (upper-case ISO-4217 code)
    currency: Mapped[str] = mapped_column(String(8), primary_key=True)
    rate_to_eur: Mapped[float] = mapped_column(Float, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        CheckConstraint("rate_to_eur > 0", name="fx_rate_positive"),
    )
