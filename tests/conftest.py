"""
Shared test fixtures: throwaway SQLite database, test client, seeded catalog.
"""

import os
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

# Point the app at the test database before importing app modules
os.environ["DATABASE_URL"] = "sqlite:///./test.db"

from stairworks.database import Base, get_db
from stairworks.main import app
from stairworks.routers.stairs import seed_stair_catalog


TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(app)


@pytest.fixture
def db():
    """Direct database session for test setup/assertions."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded(db):
    """Default stair catalog loaded into the test database."""
    seed_stair_catalog(db)
    return db


@pytest.fixture
def quote_job(client):
    """A job in the quote stage, returned as the API sees it."""
    response = client.post("/api/jobs/", json={
        "title": "Maple Ridge Lot 12",
        "lotName": "Lot 12",
        "jobLocation": "Maple Ridge",
    })
    assert response.status_code == 200
    return response.json()
