"""One-shot reminder sweep for cron-style deployments.

    python -m quifin.jobs.run_reminder_check [--now 2026-03-04T05:30:00+00:00] [--time-zone Europe/Dublin]

Prints the run result as JSON. Exit status is 1 when any delivery failed.
"""
from __future__ import annotations

import argparse
import asyncio
import os
import sys
from datetime import datetime, timezone
from typing import Optional, Sequence

from quifin.config import REMINDER_TIMEZONE
from quifin import database
from quifin.models.schemas import ReminderRunResult
from quifin.services.notification_gateway import NtfyGatewayClient
from quifin.services.reminder_engine import run_reminder_sweep
from quifin.services.reminder_store import SqlReminderStore
from quifin.utils import setup_logging


def _parse_now(value: str) -> datetime:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not an ISO-8601 timestamp: {value!r}") from exc
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def run_once(now: Optional[datetime] = None, time_zone: str = REMINDER_TIMEZONE) -> ReminderRunResult:
    database.init_db()
    store = SqlReminderStore(database.SessionLocal)
    return asyncio.run(run_reminder_sweep(store, NtfyGatewayClient(), now=now, time_zone=time_zone))


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run one QuiFin reminder check and print the result.")
    parser.add_argument("--now", type=_parse_now, default=None, help="instant to treat as now (naive means UTC)")
    parser.add_argument("--time-zone", default=REMINDER_TIMEZONE, help="IANA zone used for 'today'")
    args = parser.parse_args(argv)

    # stdout carries the JSON result only
    setup_logging(log_level=os.getenv("LOG_LEVEL", "WARNING"), enable_console=False)

    result = run_once(now=args.now, time_zone=args.time_zone)
    sys.stdout.write(result.model_dump_json(indent=2) + "\n")
    return 1 if result.failed_count else 0


if __name__ == "__main__":
    sys.exit(main())
