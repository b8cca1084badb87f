"""Core application configuration & tunable reminder rules.

Everything the reminder engine treats as policy (time zone, daily run time,
reminder windows, settings key aliases, gateway transport limits) is
centralized here so it can be adjusted without diving into service logic.
Values are read from the environment once at import; the dict groups stay
mutable so tests can monkeypatch individual entries.
"""
from __future__ import annotations

import os
from pathlib import Path

# Deployment environment. The manual reminder trigger is disabled in production.
ENVIRONMENT: str = os.getenv("QUIFIN_ENV", os.getenv("ENVIRONMENT", "development")).strip().lower()

# IANA zone used for "today" and for the daily run time.
REMINDER_TIMEZONE: str = os.getenv("QUIFIN_TIMEZONE", "Europe/Dublin")

# ------------------------------- Persistence ------------------------------ #
_db_path = os.getenv("QUIFIN_DB_PATH") or os.getenv("DB_PATH") or "./data/quifin.db"
DATABASE_PATH: Path = Path(_db_path)
DATABASE_URL: str = os.getenv("DATABASE_URL") or f"sqlite+pysqlite:///{DATABASE_PATH}"

# -------------------------------- Reminders ------------------------------- #
REMINDER_SETTINGS: dict[str, int | str | tuple[int, ...]] = {
	# Local wall-clock time of the daily sweep.
	"schedule_hour": 5,
	"schedule_minute": 30,
	# Lead times (days before the charge date), checked in this order.
	"windows": (1, 2),
	"kind": "charge",
	"title": "Charge Date Reminder",
	# Floor for the timer delay so a late re-arm never spins.
	"min_delay_seconds": 1,
	# Bounded offset probing when mapping local wall-clock time to UTC.
	"max_offset_iterations": 5,
	# How long shutdown waits for a sweep already in flight.
	"shutdown_grace_seconds": 10,
}

# ------------------------------ Notifications ----------------------------- #
# Settings-store keys holding the push gateway configuration. For each field
# the first key with a non-empty value wins.
NOTIFICATION_SETTING_KEYS: dict[str, tuple[str, ...]] = {
	"url": ("ntfy_url",),
	"topic": ("ntfy_topic",),
	"token": ("ntfy_bearer_token", "ntfy_token"),
}

# Transport limits for the outbound POST. A timeout surfaces as a delivery
# failure for that candidate only.
GATEWAY_SETTINGS: dict[str, float | str] = {
	"timeout_seconds": float(os.getenv("QUIFIN_GATEWAY_TIMEOUT", "30")),
	"content_type": "text/plain; charset=utf-8",
}

TEST_NOTIFICATION: dict[str, str] = {
	"title": "QuiFin Test Notification",
	"intro": "This is a QuiFin test notification.",
}

__all__ = [
	"ENVIRONMENT",
	"REMINDER_TIMEZONE",
	"DATABASE_PATH",
	"DATABASE_URL",
	# Rule groups
	"REMINDER_SETTINGS",
	"NOTIFICATION_SETTING_KEYS",
	"GATEWAY_SETTINGS",
	"TEST_NOTIFICATION",
]


def is_production() -> bool:
    return ENVIRONMENT == "production"
