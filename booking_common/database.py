"""Engine, session factory and transaction helpers shared by every service."""
from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .config import get_settings

settings = get_settings()

_is_sqlite = settings.database_url.startswith("sqlite")
_connect_args = {"check_same_thread": False, "timeout": 15} if _is_sqlite else {}

engine = create_engine(settings.database_url, connect_args=_connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


if _is_sqlite:

    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class Base(DeclarativeBase):
    pass


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def begin_write(db: Session) -> None:
    """Start a transaction that already holds the write lock.

    SQLite only takes its write lock at the first write statement, which lets
    two read-then-write units read the same snapshot. ``BEGIN IMMEDIATE`` makes
    the second writer wait until the first one commits. Other backends rely on
    the ``SELECT ... FOR UPDATE`` row locks taken by the repositories.
    """

    connection = db.connection()
    if connection.dialect.name != "sqlite":
        return
    if not connection.connection.dbapi_connection.in_transaction:
        connection.exec_driver_sql("BEGIN IMMEDIATE")


@contextmanager
def write_transaction(db: Session) -> Iterator[Session]:
    """Run a read-then-write unit atomically: commit on success, roll back on any error."""

    begin_write(db)
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
