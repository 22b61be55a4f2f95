import os
os.environ["TESTING"] = "1"
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ["DATABASE_URL"] = "sqlite:///./test_protocolo.db"
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import sys
from pathlib import Path
import uuid

sys.path.append(str(Path(__file__).resolve().parents[2]))

from protocolo.main import app
from protocolo.database import Base, get_db
from protocolo.bootstrap import init_db

SQLALCHEMY_DATABASE_URL = os.environ["DATABASE_URL"]
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.drop_all(bind=engine)
init_db(engine)

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db

ADMIN = {"username": "admin", "password": "admin123"}


@pytest.fixture
def client():
    # the session cookie is Secure, so talk https to keep it in the jar
    with TestClient(app, base_url="https://testserver") as c:
        yield c


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


def login(client, username: str = ADMIN["username"], password: str = ADMIN["password"]):
    resp = client.post("/api/login", json={"username": username, "password": password})
    assert resp.status_code == 200, f"Login failed for {username}: {resp.status_code} {resp.text}"
    return resp.json()


def role_id(client, name: str) -> int:
    roles = client.get("/api/roles").json()
    return next(r["id"] for r in roles if r["name"] == name)


def create_user(client, *, role: str, password: str = "secret"):
    """
    Create a user with the named role through the API (caller must be logged in
    with manage_users) and return its credentials.
    """
    username = f"user-{uuid.uuid4().hex[:12]}"
    resp = client.post(
        "/api/users",
        json={"username": username, "password": password, "role_id": role_id(client, role)},
    )
    assert resp.status_code == 201, resp.text
    return {"username": username, "password": password}


def create_role(client, permissions: list[str]) -> str:
    name = f"role-{uuid.uuid4().hex[:12]}"
    resp = client.post("/api/roles", json={"name": name, "permissions": permissions})
    assert resp.status_code == 201, resp.text
    return name
