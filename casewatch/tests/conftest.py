import os
import shutil
import tempfile
from pathlib import Path

import pytest

DATABASE_URL_VARS = ("CASEWATCH_DATABASE_URL", "DATABASE_URL", "SQLALCHEMY_DATABASE_URL")


def pytest_configure(config):
    # the engine is built at import time, so the URL must exist before collection
    if any(os.getenv(name) for name in DATABASE_URL_VARS):
        return
    workdir = Path(tempfile.mkdtemp(prefix="casewatch-tests-"))
    config._casewatch_workdir = workdir
    os.environ["DATABASE_URL"] = f"sqlite:///{workdir / 'casewatch.db'}"


def pytest_unconfigure(config):
    workdir = getattr(config, "_casewatch_workdir", None)
    if workdir is not None:
        shutil.rmtree(workdir, ignore_errors=True)


@pytest.fixture(scope="session")
def sqlite_engine():
    from casewatch.app import models  # noqa: F401
    from casewatch.app.db import Base, engine

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


def _truncate_all(session) -> None:
    from casewatch.app.db import Base

    for table in reversed(Base.metadata.sorted_tables):
        session.execute(table.delete())
    session.commit()


@pytest.fixture()
def sqlite_session(sqlite_engine):
    from casewatch.app.db import SessionLocal

    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        # course-year scoping sees every row, so each test starts empty
        _truncate_all(session)
        session.close()


@pytest.fixture()
def api_client(sqlite_session):
    from fastapi.testclient import TestClient

    from casewatch.app.db import get_db
    from casewatch.app.main import app

    app.dependency_overrides[get_db] = lambda: sqlite_session
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
