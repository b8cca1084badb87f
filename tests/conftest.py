import asyncio
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Ensure project root on sys.path so 'quifin' package resolves without an install
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from quifin.main import app  # type: ignore
from quifin.database import Base  # type: ignore
"""Pytest fixtures and factories.

Important: every model module must be imported before Base.metadata.create_all(),
otherwise the reminder_log foreign key target might not exist yet.
"""
from quifin.models.db import Subscription, FxRate, Setting, ReminderLog  # noqa: E402
from quifin.models.db.enums import CadenceType  # noqa: E402
from quifin.jobs.reminder_scheduler import ReminderScheduler  # noqa: E402
from quifin.services.notification_gateway import DeliveryError  # noqa: E402
from quifin.services.reminder_store import SqlReminderStore  # noqa: E402

# 09:00 in Dublin (GMT) on 3 March 2026: windows target 2026-03-04 and 2026-03-05
FIXED_NOW = datetime(2026, 3, 3, 9, 0, tzinfo=timezone.utc)

# File-based SQLite so the API thread and the test thread share one database.
SQLALCHEMY_TEST_URL = "sqlite+pysqlite:///./test_quifin.db"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# The lifespan and health checks look these up on the module at call time;
# rebind them so nothing touches the default ./data database.
import quifin.database as _quifin_database  # noqa: E402
_quifin_database.engine = engine  # type: ignore
_quifin_database.SessionLocal = TestingSessionLocal  # type: ignore

@pytest.fixture(scope="session", autouse=True)
def create_test_db():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    try:
        os.remove("test_quifin.db")
    except OSError:
        pass

@pytest.fixture(autouse=True)
def _isolate_test_state():
    """Empty every table and drop any scheduler a previous test left on app.state."""
    yield
    with TestingSessionLocal() as session:
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
    app.state.reminder_scheduler = None

@pytest.fixture()
def db_session():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

# ---------- Gateway fake ----------

class RecordingGateway:
    """In-memory gateway: records every send, fails for bodies naming ``fail_for`` entries (or every send with ``fail_all``)."""

    def __init__(self, fail_for: tuple[str, ...] = (), delay: float = 0.0):
        self.sent: list[dict] = []
        self.fail_for = set(fail_for)
        self.delay = delay
        self.fail_all = False

    async def send(self, target, title, body):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_all:
            raise DeliveryError("ntfy request failed (401 Unauthorized): unauthorized", status=401, response_text="unauthorized")
        for name in self.fail_for:
            if f"subscription {name} " in body:
                raise DeliveryError("ntfy request failed (503 Service Unavailable)", status=503)
        self.sent.append({"url": target.url, "token": target.bearer_token, "title": title, "body": body})

@pytest.fixture()
def gateway():
    return RecordingGateway()

@pytest.fixture()
def store():
    return SqlReminderStore(TestingSessionLocal)

@pytest.fixture()
def scheduler(store, gateway):
    """Scheduler placed on app.state the way the lifespan does; no startup sweep so tests stay deterministic."""
    sched = ReminderScheduler(
        store, gateway, time_zone="Europe/Dublin", clock=lambda: FIXED_NOW, catch_up_on_start=False
    )
    app.state.reminder_scheduler = sched
    return sched

@pytest.fixture()
def client(scheduler):
    with TestClient(app) as c:
        yield c

# ---------- Data factory helpers ----------

@pytest.fixture()
def subscription_factory(db_session):
    def _create(
        name: str = "Netflix",
        next_charge_date: str = "2026-03-05",
        *,
        amount: float = 12.99,
        currency: str = "EUR",
        cadence_months: int = 1,
        remind_cancel: bool = True,
        archived: bool = False,
        cancel_url: str | None = None,
    ) -> Subscription:
        cadence_type = {1: CadenceType.MONTHLY, 3: CadenceType.QUARTERLY, 6: CadenceType.SEMIANNUAL, 12: CadenceType.YEARLY}
        s = Subscription(
            name=name,
            amount=amount,
            currency=currency,
            cadence_type=cadence_type.get(cadence_months, CadenceType.CUSTOM),
            cadence_months=cadence_months,
            next_charge_date=next_charge_date,
            remind_cancel=remind_cancel,
            archived=archived,
            cancel_url=cancel_url,
        )
        db_session.add(s)
        db_session.commit()
        db_session.refresh(s)
        return s
    return _create

@pytest.fixture()
def fx_rate_factory(db_session):
    def _create(currency: str, rate_to_eur: float) -> FxRate:
        rate = FxRate(currency=currency, rate_to_eur=rate_to_eur)
        db_session.add(rate)
        db_session.commit()
        return rate
    return _create

@pytest.fixture()
def settings_factory(db_session):
    def _set(**values: str) -> None:
        for key, value in values.items():
            existing = db_session.get(Setting, key)
            if existing:
                existing.value = value
            else:
                db_session.add(Setting(key=key, value=value))
        db_session.commit()
    return _set

@pytest.fixture()
def ntfy_configured(settings_factory):
    settings_factory(ntfy_url="https://ntfy.example.com", ntfy_topic="quifin")

@pytest.fixture()
def ledger_rows(db_session):
    def _rows() -> list[ReminderLog]:
        db_session.expire_all()
        return db_session.query(ReminderLog).order_by(ReminderLog.id).all()
    return _rows
