from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Iterator

from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

load_dotenv()

DATABASE_URL_VARS = ("CASEWATCH_DATABASE_URL", "DATABASE_URL", "SQLALCHEMY_DATABASE_URL")


def _get_database_url() -> str:
    for name in DATABASE_URL_VARS:
        value = os.getenv(name)
        if value:
            return value
    raise RuntimeError(
        f"One of {', '.join(DATABASE_URL_VARS)} must be set to create the database engine."
    )


def _configure_sqlite_connection(dbapi_connection, _connection_record) -> None:
    # pysqlite's own BEGIN handling breaks SAVEPOINT; SQLAlchemy emits BEGIN instead.
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_sqlite_transaction(connection) -> None:
    connection.exec_driver_sql("BEGIN")


def _build_engine(database_url: str) -> Engine:
    connect_args = {}
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        # TestClient runs requests on a worker thread.
        connect_args["check_same_thread"] = False
    built = create_engine(database_url, future=True, connect_args=connect_args)
    if is_sqlite:
        event.listen(built, "connect", _configure_sqlite_connection)
        event.listen(built, "begin", _begin_sqlite_transaction)
    return built


DATABASE_URL = _get_database_url()
engine = _build_engine(DATABASE_URL)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


class Base(DeclarativeBase):
    pass


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for scripts: commits on success, rolls back on any error."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
