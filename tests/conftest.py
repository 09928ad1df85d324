import importlib
import os
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ["CACHE_BACKEND"] = "memory"
os.environ["METRICS_ENABLED"] = "true"


def _setup_app(database_url: str):
    os.environ["DATABASE_URL"] = database_url

    import app.outpost.core.config as config
    import app.outpost.db.session as session
    import app.main as main

    importlib.reload(config)
    importlib.reload(session)
    importlib.reload(main)

    return main.create_app(), session


def _create_schema(session) -> None:
    from app.outpost.db.models import Base

    Base.metadata.create_all(bind=session.engine)


@pytest.fixture()
def app_and_session(tmp_path: Path):
    db_path = tmp_path / "test.db"
    app, session = _setup_app(f"sqlite+pysqlite:///{db_path}")
    _create_schema(session)
    yield app, session
    session.engine.dispose()


@pytest.fixture()
def app(app_and_session):
    return app_and_session[0]


@pytest.fixture()
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def db_session(app_and_session):
    _, session = app_and_session
    db = session.SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def session_factory(app_and_session):
    return app_and_session[1].SessionLocal
