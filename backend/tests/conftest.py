"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable, Iterator

import pytest
from fastapi.testclient import TestClient
from fastapi.websockets import WebSocketState
from passlib.context import CryptContext
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
for path in (ROOT_DIR, ROOT_DIR / "src"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from app.core import security
from app.core.security import get_password_hash, issue
from app.database import dispose_engine, get_db, init_engine
from app.main import app
from app.models import Base, User

# cheap hashing keeps the suite fast
security.pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"], deprecated="auto", pbkdf2_sha256__rounds=1000
)


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def test_engine() -> Iterator[Engine]:
    """Provide an in-memory SQLite engine for isolated tests."""

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    init_engine(engine=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        dispose_engine()


@pytest.fixture()
def session_factory(test_engine) -> sessionmaker[Session]:
    """Return a session factory bound to the test engine."""

    return sessionmaker(bind=test_engine, future=True)


@pytest.fixture()
def db_session(session_factory) -> Iterator[Session]:
    """Yield a SQLAlchemy session for unit tests."""

    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_user(session_factory) -> Callable[..., User]:
    """Create users directly in the database."""

    counter = {"value": 0}

    def factory(username: str | None = None, *, password: str = "secret123", **fields: Any) -> User:
        counter["value"] += 1
        username = username or f"user{counter['value']}"
        with session_factory() as session:
            user = User(
                username=username,
                email=fields.pop("email", f"{username}@example.com"),
                name=fields.pop("name", username.title()),
                hashed_password=get_password_hash(password),
                **fields,
            )
            session.add(user)
            session.commit()
            session.refresh(user)
            session.expunge(user)
        return user

    return factory


@pytest.fixture()
def token_for() -> Callable[[User], str]:
    return lambda user: issue(user.id)


@pytest.fixture()
def client(session_factory) -> Iterator[TestClient]:
    """Yield a FastAPI TestClient with the database dependency overridden."""

    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class DummyWebSocket:
    """Stand-in for a connected websocket that records outbound frames."""

    def __init__(self) -> None:
        self.application_state = WebSocketState.CONNECTED
        self.sent: list[dict[str, Any]] = []

    async def send_json(self, payload: dict[str, Any]) -> None:
        self.sent.append(payload)


@pytest.fixture()
def dummy_websocket_factory() -> Callable[[], DummyWebSocket]:
    return DummyWebSocket
