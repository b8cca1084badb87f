"""Time utilities: UTC now, elapsed formatting, and civil (wall-clock) time.

Calendar dates travel through the reminder engine as ISO ``YYYY-MM-DD``
strings. Wall-clock conversion goes through ``zoneinfo``; mapping a local
time back to an instant uses bounded offset probing, so a local time inside a
DST gap yields a best-effort instant rather than an error.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from quifin.config import REMINDER_SETTINGS

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


@dataclass(frozen=True, slots=True)
class CivilDateTime:
    year: int
    month: int
    day: int
    hour: int
    minute: int
    second: int

    @property
    def iso_date(self) -> str:
        return to_iso_date(self.year, self.month, self.day)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        raise ValueError("instant must be timezone-aware")
    return instant.astimezone(timezone.utc)


def civil_at(instant: datetime, time_zone: str) -> CivilDateTime:
    """Decompose an absolute instant into the wall-clock fields seen in ``time_zone``."""
    local = _as_utc(instant).astimezone(ZoneInfo(time_zone))
    return CivilDateTime(local.year, local.month, local.day, local.hour, local.minute, local.second)


def civil_now(time_zone: str, now: datetime | None = None) -> CivilDateTime:
    return civil_at(now or utc_now(), time_zone)


def _offset_at(instant: datetime, time_zone: str) -> timedelta:
    parts = civil_at(instant, time_zone)
    local_as_utc = datetime(
        parts.year, parts.month, parts.day, parts.hour, parts.minute, parts.second, tzinfo=timezone.utc
    )
    return local_as_utc - instant.replace(microsecond=0)


def to_instant(year: int, month: int, day: int, hour: int, minute: int, time_zone: str) -> datetime:
    """Map wall-clock fields in ``time_zone`` to a UTC instant.

    Start by treating the fields as UTC, subtract the zone offset observed at
    that guess, and repeat at the corrected instant until two guesses agree
    within a second. Non-existent local times (DST gaps) never converge; the
    last estimate is returned. Ambiguous local times return whichever of the
    two instants the probing settles on first.
    """
    target_as_utc = datetime(year, month, day, hour, minute, tzinfo=timezone.utc)
    guess = target_as_utc
    for _ in range(int(REMINDER_SETTINGS["max_offset_iterations"])):  # type: ignore[arg-type]
        corrected = target_as_utc - _offset_at(guess, time_zone)
        if abs(corrected - guess) < timedelta(seconds=1):
            return corrected
        guess = corrected
    return guess


def add_days(year: int, month: int, day: int, days: int) -> tuple[int, int, int]:
    """Add calendar days on the proleptic Gregorian calendar (zone independent)."""
    shifted = date.fromordinal(date(year, month, day).toordinal() + days)
    return shifted.year, shifted.month, shifted.day


def to_iso_date(year: int, month: int, day: int) -> str:
    return f"{year:04d}-{month:02d}-{day:02d}"


def parse_iso_date(value: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` string; rejects impossible dates such as 2026-02-30."""
    if not isinstance(value, str):
        raise ValueError("ISO date must be a string")
    match = _ISO_DATE_RE.match(value)
    if not match:
        raise ValueError(f"Not an ISO YYYY-MM-DD date: {value!r}")
    year, month, day = (int(g) for g in match.groups())
    try:
        return date(year, month, day)
    except ValueError as exc:
        raise ValueError(f"Not a calendar date: {value!r}") from exc


def is_iso_date(value: object) -> bool:
    try:
        parse_iso_date(value)  # type: ignore[arg-type]
    except ValueError:
        return False
    return True


def add_days_to_iso(iso_date: str, days: int) -> str:
    parsed = parse_iso_date(iso_date)
    return to_iso_date(*add_days(parsed.year, parsed.month, parsed.day, days))


def format_display_date(iso_date: str) -> str:
    """``2026-03-05`` -> ``05/03/2026``; anything unparseable is returned as-is."""
    match = _ISO_DATE_RE.match(iso_date)
    if not match:
        return iso_date
    return f"{match.group(3)}/{match.group(2)}/{match.group(1)}"


def compute_next_daily_run_at(now: datetime, time_zone: str, hour: int, minute: int) -> datetime:
    """Next UTC instant at which the local clock in ``time_zone`` reads ``hour:minute``.

    If that time has already been reached today, the run rolls to tomorrow.
    """
    local_now = civil_now(time_zone, now)
    passed_today = local_now.hour > hour or (local_now.hour == hour and local_now.minute >= minute)
    if passed_today:
        year, month, day = add_days(local_now.year, local_now.month, local_now.day, 1)
    else:
        year, month, day = local_now.year, local_now.month, local_now.day
    return to_instant(year, month, day, hour, minute, time_zone)


__all__ = [
    "CivilDateTime",
    "utc_now",
    "civil_at",
    "civil_now",
    "to_instant",
    "add_days",
    "add_days_to_iso",
    "to_iso_date",
    "parse_iso_date",
    "is_iso_date",
    "format_display_date",
    "compute_next_daily_run_at",
]
