from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from slawatch import database
from slawatch.main import create_app


NOW = datetime(2024, 5, 1, 12, 0, 0)


class FixedClock:
    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture()
def db_session(tmp_path: Path):
    db_path = tmp_path / "test_slawatch.db"
    database.reset_engine(f"sqlite:///{db_path}")
    database.Base.metadata.drop_all(bind=database.engine)
    database.init_db()
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(tmp_path: Path):
    db_path = tmp_path / "test_api_slawatch.db"
    database.reset_engine(f"sqlite:///{db_path}")
    database.Base.metadata.drop_all(bind=database.engine)
    database.init_db()
    app = create_app(seed_demo=False)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def default_headers() -> dict[str, str]:
    return {"x-tenant-id": "tenant-a", "x-user-id": "user-1", "x-user-role": "owner"}
