"""
Pytest Configuration and Fixtures

In-memory SQLite shared through a StaticPool, a controllable clock and sample
booking data.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

from datetime import datetime, timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app import models  # noqa: E402, F401
from app.database import Base, SessionLocal, get_db  # noqa: E402
from app.domain.bookings.service import BookingService  # noqa: E402
from app.domain.drafts.service import DraftManager  # noqa: E402
from app.domain.fulfillment.service import FulfillmentService  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Booking, Driver  # noqa: E402
from app.side_effects import InlineDispatcher  # noqa: E402


class FakeClock:
    """Callable clock that only moves when told to"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    # Sessions opened outside the request (draft cleanup, worker tasks) use the same database
    SessionLocal.configure(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 15, 9, 30, 0))


@pytest.fixture
def dispatcher():
    return InlineDispatcher()


@pytest.fixture
def booking_service(db, clock, dispatcher, session_factory):
    return BookingService(db, dispatcher=dispatcher, clock=clock, session_factory=session_factory)


@pytest.fixture
def draft_manager(db, clock):
    return DraftManager(db, clock=clock)


@pytest.fixture
def fulfillment_service(db, clock):
    return FulfillmentService(db, clock=clock)


@pytest.fixture
def customer_id():
    return "customer-123"


@pytest.fixture
def pickup_address():
    return {
        "address": "12 Harbour Road",
        "contactName": "Ama Mensah",
        "phone": "+233201234567",
        "city": "Accra",
        "postalCode": "GA-100",
    }


@pytest.fixture
def delivery_address():
    return {
        "address": "4 Market Street",
        "contactName": "Kofi Boateng",
        "phone": "+233207654321",
        "city": "Kumasi",
        "postalCode": "AK-039",
        "instructions": "Leave at reception",
    }


@pytest.fixture
def sample_booking_data(customer_id, pickup_address, delivery_address):
    """Keyword arguments for BookingService.create_booking"""
    return {
        "customer_id": customer_id,
        "pickup_address": pickup_address,
        "delivery_address": delivery_address,
        "package_type": "package",
        "weight": 2.5,
        "service_type": "standard",
        "pickup_date": datetime(2024, 3, 16, 10, 0, 0),
    }


@pytest.fixture
def booking(booking_service, sample_booking_data) -> Booking:
    return booking_service.create_booking(**sample_booking_data)


def _make_driver(db, email: str, status: str = "active", total_deliveries: int = 0) -> Driver:
    driver = Driver(
        first_name="Yaw",
        last_name="Owusu",
        email=email,
        phone="+233200000000",
        status=status,
        total_deliveries=total_deliveries,
    )
    db.add(driver)
    db.commit()
    db.refresh(driver)
    return driver


@pytest.fixture
def make_driver(db):
    """Factory: make_driver(email, status="active", total_deliveries=0)"""

    def factory(email: str, status: str = "active", total_deliveries: int = 0) -> Driver:
        return _make_driver(db, email, status, total_deliveries)

    return factory


@pytest.fixture
def driver(make_driver) -> Driver:
    return make_driver("driver.one@example.com")


@pytest.fixture
def api_client(session_factory):
    """TestClient with get_db bound to the test database"""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def customer_headers(customer_id):
    return {"X-User-Id": customer_id, "X-User-Role": "customer"}


@pytest.fixture
def admin_headers():
    return {"X-User-Id": "admin-1", "X-User-Role": "admin"}
