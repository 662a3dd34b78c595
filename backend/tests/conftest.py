import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from splitbill.database import Base, get_db
from splitbill.main import app
from splitbill.services.categories import seed_default_categories

SQLALCHEMY_DATABASE_URL = os.environ["DATABASE_URL"]

engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.create_all(bind=engine)
    with TestingSessionLocal() as db:
        seed_default_categories(db)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    return TestClient(app)


def register(client, email, name=None, password="testpass123"):
    res = client.post("/api/auth/register", json={"email": email, "password": password, "name": name})
    data = res.json()
    return data["user"], {"Authorization": f"Bearer {data['access_token']}"}


@pytest.fixture
def auth_headers(client):
    _, headers = register(client, "test@example.com", "Test User")
    return headers


@pytest.fixture
def me(client, auth_headers):
    return client.get("/api/auth/me", headers=auth_headers).json()


@pytest.fixture
def second_user(client):
    user, _ = register(client, "user2@example.com", "User Two")
    return user


@pytest.fixture
def third_user(client):
    user, _ = register(client, "user3@example.com", "User Three")
    return user
