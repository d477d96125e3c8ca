# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from datetime import datetime, timedelta
from itertools import count

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")

from iceberg_daemon.api.v1.dependencies import get_session_factory
from iceberg_daemon.core.levels import TrustLevel
from iceberg_daemon.core.rules import RulesConfig
from iceberg_daemon.db.session import Base
from iceberg_daemon.db.session import get_db as app_get_session
from iceberg_daemon.db.time import utcnow
from iceberg_daemon.main import app as fastapi_app
from iceberg_daemon.models import ContentItem, VoteRecord
from iceberg_daemon.services.anti_abuse import build_guard
from iceberg_daemon.utils.hash import content_id

TEST_DB_URL = "sqlite://"

_ITEM_COUNTER = count(1)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db_session(engine: Engine, session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(
    app: FastAPI,
    db_session: Session,
    session_factory: sessionmaker[Session],
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_session_factory, None)


@pytest.fixture(autouse=True)
def fresh_guard(app: FastAPI) -> Iterator[None]:
    """Give every test its own rate-limit counters and default rules."""
    original_rules = app.state.rules
    app.state.guard = build_guard()
    app.state.rules = RulesConfig()
    try:
        yield
    finally:
        app.state.rules = original_rules


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def rules() -> RulesConfig:
    return RulesConfig()


@pytest.fixture()
def make_item(db_session: Session) -> Callable[..., ContentItem]:
    """Return a factory persisting content items."""

    def _make(
        author_id: str = "author",
        *,
        level: TrustLevel = TrustLevel.WILD,
        created_at: datetime | None = None,
        body: str | None = None,
    ) -> ContentItem:
        n = next(_ITEM_COUNTER)
        created = created_at or utcnow() - timedelta(days=1)
        body = body or f"Item body {n}"
        item = ContentItem(
            id=content_id(author_id, "", body, int(created.timestamp() * 1000) + n),
            author_id=author_id,
            title="",
            body=body,
            trust_level=int(level),
            created_at=created,
            updated_at=created,
        )
        db_session.add(item)
        db_session.commit()
        return item

    return _make


@pytest.fixture()
def add_votes(db_session: Session) -> Callable[..., None]:
    """Return a helper inserting ``n`` votes of one type from distinct voters."""
    voter_counter = count(1)

    def _add(item: ContentItem, vote_type: str, n: int, weight: float = 1.0) -> None:
        for _ in range(n):
            db_session.add(
                VoteRecord(
                    item_id=item.id,
                    voter_id=f"{vote_type}-voter-{next(voter_counter)}",
                    vote_type=vote_type,
                    weight=weight,
                )
            )
        db_session.commit()

    return _add
