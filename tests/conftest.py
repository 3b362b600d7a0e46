import os

# Настройки окружения до импорта приложения: in-memory SQLite, без Redis
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = ""
os.environ["COOKIE_SECURE"] = "false"
os.environ["FRONTEND_URL"] = "http://frontend.test"

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from app.core.database import engine
from app.main import app


@pytest.fixture(autouse=True)
def fresh_database():
    """Recreates the schema for each test function."""
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    yield


@pytest.fixture
def db_session():
    with Session(engine) as session:
        yield session


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def signed_in_client(client):
    """A client signed up as Ann, with the session cookie in its jar."""
    response = client.post(
        "/signup",
        json={"email": "a@x.com", "password": "secret1", "display_name": "Ann"},
    )
    assert response.status_code == 201, response.text
    return client
