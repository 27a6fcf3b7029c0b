"""
Shared fixtures: an in-memory ledger, a SQLite-backed session and an API client.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import tripledger.models  # noqa: F401  registers tables
from tripledger.db.base import Base
from tripledger.db.session import get_db
from tripledger.main import app
from tripledger.services.trip_ledger import TripLedger
from tripledger.storage.memory import InMemoryLedgerStore
from tripledger.storage.sql import SqlLedgerStore


@pytest.fixture
def store():
    return InMemoryLedgerStore()


@pytest.fixture
def trip(store):
    return store.create_trip("Goa", "INR")


@pytest.fixture
def members(store, trip):
    """Members A, B and C, in joining order."""
    return [store.add_member(trip.id, name) for name in ("A", "B", "C")]


@pytest.fixture
def reminders():
    return []


@pytest.fixture
def ledger(store, reminders):
    return TripLedger(store, listeners=[reminders.append])


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def sql_store(db_session):
    return SqlLedgerStore(db_session)


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
