"""
Pytest configuration and fixtures.

Each test gets a fresh in-memory SQLite database shared by the service-level
session and the FastAPI app (get_db is overridden).
"""
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from upi_gateway import models  # noqa: F401  register tables
from upi_gateway.auth import create_token
from upi_gateway.db import Base, get_db
from upi_gateway.main import app
from upi_gateway.models import ROLE_SUB_ADMIN, ROLE_SUPER_ADMIN
from upi_gateway.principals import create_principal

PASSWORD = "s3cret-pass"


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory) -> Generator[TestClient, None, None]:
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def fake_renderer():
    """Records every URI it is asked to render."""
    rendered = []

    def render(uri: str) -> str:
        rendered.append(uri)
        return "data:text/plain," + uri

    render.calls = rendered
    return render


@pytest.fixture
def super_admin(db):
    return create_principal(db, "root", PASSWORD, ROLE_SUPER_ADMIN)


@pytest.fixture
def sub_admin(db):
    return create_principal(db, "clerk", PASSWORD, ROLE_SUB_ADMIN)


@pytest.fixture
def super_headers(super_admin) -> dict:
    return {"Authorization": f"Bearer {create_token(super_admin)}"}


@pytest.fixture
def sub_headers(sub_admin) -> dict:
    return {"Authorization": f"Bearer {create_token(sub_admin)}"}
