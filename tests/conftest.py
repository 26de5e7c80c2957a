import os
from typing import Generator

import pytest

# Required settings must exist before the app module is imported
os.environ["JWT_SECRET"] = "test-secret"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["MAIL_BACKEND"] = "log"

from fooddelivery.db import Base, create_db_engine, create_session_factory, get_db  # noqa: E402
from fooddelivery.main import app  # noqa: E402
from fooddelivery.mailer import LogMailer, get_mailer  # noqa: E402


@pytest.fixture(scope="function")
def db_session() -> Generator:
    # In-memory SQLite with a single shared connection
    engine = create_db_engine("sqlite://")
    TestingSessionLocal = create_session_factory(engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture(scope="function")
def mailer() -> LogMailer:
    return LogMailer()


@pytest.fixture(scope="function")
def client(db_session, mailer):
    # Override dependencies to use the same session and a capturing mailer
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


USER = {
    "username": "alice",
    "email": "alice@example.com",
    "password": "s3cret",
    "address": "1 Main St",
    "phone": "555-0100",
    "answer": "blue",
}


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def user_token(client) -> str:
    r = client.post("/auth/register", json=USER)
    assert r.status_code == 201
    r = client.post("/auth/login", json={"email": USER["email"], "password": USER["password"]})
    assert r.status_code == 200
    return r.json()["token"]


@pytest.fixture
def admin_token(client) -> str:
    creds = {"email": "root@example.com", "password": "adminpass"}
    r = client.post("/admin/register", json=creds)
    assert r.status_code == 201
    r = client.post("/admin/login", json=creds)
    assert r.status_code == 200
    return r.json()["token"]


@pytest.fixture
def restaurant(client, admin_token) -> dict:
    r = client.post(
        "/restaurant/create",
        json={"title": "Pizza Place", "address": "2 Side St", "isOpen": True},
        headers=bearer(admin_token),
    )
    assert r.status_code == 201
    return r.json()["restaurant"]
