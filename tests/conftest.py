# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine as SqlEngine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from bookclub_stage.core.security import create_access_token
from bookclub_stage.db.session import Base
from bookclub_stage.db.session import get_db as app_get_session
from bookclub_stage.main import app as fastapi_app
from bookclub_stage.models import User
from bookclub_stage.models.user import ROLE_ADMIN, ROLE_MEMBER
from bookclub_stage.services.engine import Engine, build_engine, get_engine

TEST_DB_URL = "sqlite://"


@pytest.fixture()
def db_engine() -> Generator[SqlEngine, None, None]:
    """Fresh in-memory database per test; StaticPool shares its single connection."""
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
def session_factory(db_engine: SqlEngine) -> sessionmaker[Session]:
    return sessionmaker(
        bind=db_engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def engine(session_factory: sessionmaker[Session]) -> Iterator[Engine]:
    """Engine wired to the per-test database."""
    stage = build_engine(session_factory)
    try:
        yield stage
    finally:
        stage.close()


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory persisting users with the given display name and role."""

    def _make(display_name: str, role: str = ROLE_MEMBER) -> User:
        user = User(display_name=display_name, role=role)
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture()
def admin(make_user: Callable[..., User]) -> User:
    return make_user("maya", ROLE_ADMIN)


@pytest.fixture()
def member(make_user: Callable[..., User]) -> User:
    return make_user("alice")


@pytest.fixture()
def other_member(make_user: Callable[..., User]) -> User:
    return make_user("bob")


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def client(
    app: FastAPI,
    session_factory: sessionmaker[Session],
    engine: Engine,
) -> Iterator[TestClient]:
    def _get_session_override() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_engine] = lambda: engine
    try:
        with TestClient(app, base_url="http://test") as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_engine, None)


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Return a builder of bearer headers for requests made as a user."""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers
