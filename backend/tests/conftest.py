"""Pytest configuration and fixtures."""

import os

# Keep the app engine off the developer database; must run before queuego imports
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from typing import Generator, List

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from queuego.core.security import create_user_token, get_password_hash
from queuego.db.base import Base
from queuego.db.session import get_db
from queuego.main import app
# Import all models to ensure they're registered with Base.metadata
from queuego.models import *  # noqa: F401,F403
from queuego.models.store import Store
from queuego.models.user import User
from queuego.services.notification_service import TicketEvent

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"


class RecordingPublisher:
    """Collects published events instead of delivering them."""

    def __init__(self):
        self.events: List[TicketEvent] = []

    def publish(self, event: TicketEvent) -> None:
        self.events.append(event)

    @property
    def kinds(self) -> List[str]:
        return [event.kind.value for event in self.events]


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    # Disable rate limiters during tests to avoid flaky failures
    from queuego.core.rate_limit import ALL_LIMITERS
    for limiter in ALL_LIMITERS:
        limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    for limiter in ALL_LIMITERS:
        limiter.enabled = True
    app.dependency_overrides.clear()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


def make_user(db: Session, email: str, name: str, phone=None) -> User:
    user = User(
        email=email,
        password_hash=get_password_hash("testpass123"),
        name=name,
        phone=phone,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_store(db: Session, owner: User, **overrides) -> Store:
    values = dict(
        owner_id=owner.id,
        name="Fade Masters",
        category="Saloon",
        address="12 High Street",
        latitude="51.5074",
        longitude="-0.1278",
        deposit=0,
        default_service_time=5,
        is_open=True,
        is_active=True,
        last_ticket_number=0,
    )
    values.update(overrides)
    store = Store(**values)
    db.add(store)
    db.commit()
    db.refresh(store)
    return store


def headers_for(user: User) -> dict:
    token = create_user_token(user.id, user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def vendor(db_session: Session) -> User:
    """Store owner."""
    return make_user(db_session, "vendor@example.com", "Vera Vendor", phone="+44 7700 900001")


@pytest.fixture
def customer(db_session: Session) -> User:
    return make_user(db_session, "alice@example.com", "Alice", phone="+44 7700 900002")


@pytest.fixture
def other_customer(db_session: Session) -> User:
    return make_user(db_session, "bob@example.com", "Bob")


@pytest.fixture
def store(db_session: Session, vendor: User) -> Store:
    """An open store with a 5 minute default service time."""
    return make_store(db_session, vendor)


@pytest.fixture
def vendor_headers(vendor: User) -> dict:
    return headers_for(vendor)


@pytest.fixture
def customer_headers(customer: User) -> dict:
    return headers_for(customer)


@pytest.fixture
def other_headers(other_customer: User) -> dict:
    return headers_for(other_customer)


@pytest.fixture
def user_factory(db_session: Session):
    """Create extra users: ``user_factory("carol@example.com", "Carol")``."""
    def _make(email: str, name: str, phone=None) -> User:
        return make_user(db_session, email, name, phone=phone)
    return _make


@pytest.fixture
def store_factory(db_session: Session, vendor: User):
    """Create stores owned by ``vendor`` unless another owner is given."""
    def _make(owner: User = None, **overrides) -> Store:
        return make_store(db_session, owner or vendor, **overrides)
    return _make


@pytest.fixture
def auth_headers_for():
    return headers_for
