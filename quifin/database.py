import sqlite3

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from quifin.config import DATABASE_PATH, DATABASE_URL

# Default is a local SQLite file under ./data; DATABASE_URL overrides it.
if DATABASE_URL == f"sqlite+pysqlite:///{DATABASE_PATH}":
	DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)

engine = create_engine(
	DATABASE_URL,
	connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
	# reminder_log rows rely on ON DELETE CASCADE from subscriptions.
	if isinstance(dbapi_connection, sqlite3.Connection):
		cursor = dbapi_connection.cursor()
		cursor.execute("PRAGMA foreign_keys=ON")
		cursor.close()


class Base(DeclarativeBase):
	pass


def init_db() -> None:
	"""Create any missing tables on the currently bound engine."""
	import quifin.models.db  # noqa: F401  registers tables on Base.metadata
	Base.metadata.create_all(bind=engine)
