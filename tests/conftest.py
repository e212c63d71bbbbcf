import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("FIREBASE_PROJECT_ID", None)
os.environ.pop("SUPABASE_URL", None)

import pytest
from fastapi.testclient import TestClient
from locallink.config.db import SessionLocal, dispose_engine, init_engine
from locallink.database.migrations import create_tables, drop_tables
from locallink.errors import Unauthenticated
from locallink.main import app
from locallink.middleware.auth import get_admin_emails, get_verifier
from locallink.services.identity import Identity

IDENTITIES = {
    "token-u1": Identity(uid="u1", email="u1@example.com", name="User One"),
    "token-u2": Identity(uid="u2", email="u2@example.com", name="User Two"),
    "token-admin": Identity(uid="admin-1", email="root@example.com", name="Admin", claims={"role": "admin"}),
    "token-boss": Identity(uid="boss-1", email="Boss@Example.com", name="Boss"),
}

class StubVerifier:
    mode = "stub"

    def verify(self, token):
        try:
            return IDENTITIES[token]
        except KeyError:
            raise Unauthenticated("Invalid token")

def bearer(token):
    return {"Authorization": f"Bearer {token}"}

@pytest.fixture
def engine():
    dispose_engine()
    engine = init_engine("sqlite://")
    create_tables()
    yield engine
    drop_tables()
    dispose_engine()

@pytest.fixture
def db(engine):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture
def client(engine):
    app.dependency_overrides[get_verifier] = lambda: StubVerifier()
    app.dependency_overrides[get_admin_emails] = lambda: {"boss@example.com"}
    yield TestClient(app)
    app.dependency_overrides.clear()

@pytest.fixture
def u1():
    return IDENTITIES["token-u1"]

@pytest.fixture
def u2():
    return IDENTITIES["token-u2"]

@pytest.fixture
def streetlight():
    return {
        "title": "Broken streetlight",
        "description": "Lamp on the corner has been out for a week",
        "category": "Infrastructure",
        "latitude": 24.86,
        "longitude": 67.00,
    }
