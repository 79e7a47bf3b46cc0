# backend/tests/conftest.py
"""
Pytest configuration for the CombatBooking backend.

Tests run against an in-memory SQLite database and never talk to Stripe or
Resend: ``resend.Emails.send`` is patched for the whole session and the
payment gateway is replaced with a MagicMock returning IntentSnapshots.
"""

import os

# CRITICAL: Set testing mode BEFORE any app imports!
os.environ["CI"] = "1"  # skip backend/.env
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["IS_TESTING"] = "true"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_combatbooking"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_combatbooking"
os.environ["RESEND_API_KEY"] = "re_test_combatbooking"
os.environ["FRONTEND_URL"] = "https://app.combatbooking.test"
os.environ["ADMIN_EMAIL"] = "admin@combatbooking.test"

# CRITICAL: Mock Resend API globally to prevent real emails in ANY test
import unittest.mock

global_resend_mock = unittest.mock.patch("resend.Emails.send")
mocked_send = global_resend_mock.start()
mocked_send.return_value = {"id": "test-email-id"}

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, Optional
from unittest.mock import MagicMock

from fastapi.testclient import TestClient
import pytest
from sqlalchemy.orm import Session, sessionmaker

from app.api.dependencies.database import get_db
from app.api.dependencies.services import get_payment_gateway
from app.auth import create_access_token
from app.core.timezone_utils import utc_now, utc_today
from app.database import Base, engine
from app.main import fastapi_app as app
from app.models.booking import Booking, BookingStatus
from app.models.gym import Gym, GymStatus, Package, PackageType, PackageVariant, VerificationStatus
from app.models.profile import Profile, UserRole
from app.principal import SERVICE_ROLE, UserPrincipal
from app.services.booking_service import (
    BookingService,
    generate_booking_pin,
    generate_booking_reference,
)
from app.services.payment_gateway import (
    CaptureResult,
    CardDetails,
    IntentSnapshot,
    StripePaymentGateway,
)

TEST_INTENT_ID = "pi_test_123"

TestSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, bind=engine, expire_on_commit=False
)


@pytest.fixture(scope="function")
def db():
    """Fresh schema per test."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()

    yield session

    session.rollback()
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def sent_emails():
    """The patched ``resend.Emails.send``, reset for every test."""
    mocked_send.reset_mock()
    mocked_send.side_effect = None
    mocked_send.return_value = {"id": "test-email-id"}
    return mocked_send


@pytest.fixture
def emails_to(sent_emails: MagicMock) -> Callable[[str], list[Dict[str, Any]]]:
    """Payloads handed to Resend for one recipient."""

    def _emails_to(address: str) -> list[Dict[str, Any]]:
        return [call.args[0] for call in sent_emails.call_args_list if call.args[0]["to"] == address]

    return _emails_to


# Gateway


def _make_intent(
    intent_id: str = TEST_INTENT_ID,
    status: str = "requires_capture",
    *,
    created: int = 1_700_000_000,
    payment_method: Optional[str] = "pm_card_visa",
    client_secret: Optional[str] = None,
    metadata: Optional[Dict[str, str]] = None,
    charge_captured: bool = False,
) -> IntentSnapshot:
    return IntentSnapshot(
        id=intent_id,
        status=status,
        amount=30000,
        currency="usd",
        created=created,
        payment_method=payment_method,
        client_secret=client_secret or f"{intent_id}_secret_test",
        metadata=metadata or {},
        charge_captured=charge_captured,
    )


@pytest.fixture
def make_intent() -> Callable[..., IntentSnapshot]:
    return _make_intent


@pytest.fixture
def gateway() -> MagicMock:
    """Stand-in for StripePaymentGateway with happy-path defaults."""
    mock = MagicMock(spec=StripePaymentGateway)
    mock.configured = True
    mock.create_authorization.return_value = _make_intent(status="requires_payment_method")
    mock.retrieve_authorization.return_value = _make_intent()
    mock.capture_authorization.return_value = CaptureResult(
        intent_id=TEST_INTENT_ID, outcome="captured"
    )
    mock.cancel_authorization.return_value = _make_intent(status="canceled")
    mock.search_authorizations.return_value = []
    mock.get_card_details.return_value = CardDetails(brand="Visa", last4="4242")
    return mock


@pytest.fixture
def booking_service(db: Session, gateway: MagicMock) -> BookingService:
    return BookingService(db, gateway=gateway)


# People


def _profile(db: Session, email: str, role: str, full_name: str) -> Profile:
    profile = Profile(email=email, role=role, full_name=full_name)
    db.add(profile)
    db.commit()
    return profile


@pytest.fixture
def gym_owner(db: Session) -> Profile:
    return _profile(db, "owner@tigermuaythai.test", UserRole.OWNER.value, "Kru Somchai")


@pytest.fixture
def other_owner(db: Session) -> Profile:
    return _profile(db, "owner@elsewhere.test", UserRole.OWNER.value, "Other Owner")


@pytest.fixture
def admin_user(db: Session) -> Profile:
    return _profile(db, "ops@combatbooking.test", UserRole.ADMIN.value, "Ops Admin")


@pytest.fixture
def fighter(db: Session) -> Profile:
    return _profile(db, "fighter@example.com", UserRole.FIGHTER.value, "Sam Fighter")


def _principal_for(profile: Profile) -> UserPrincipal:
    return UserPrincipal(user_id=profile.id, email=profile.email, role=profile.role)


@pytest.fixture
def owner_principal(gym_owner: Profile) -> UserPrincipal:
    return _principal_for(gym_owner)


@pytest.fixture
def admin_principal(admin_user: Profile) -> UserPrincipal:
    return _principal_for(admin_user)


@pytest.fixture
def service_principal() -> UserPrincipal:
    return UserPrincipal(user_id="booking-worker", email="", role=SERVICE_ROLE)


def _auth_headers_for(profile: Profile) -> Dict[str, str]:
    token = create_access_token(data={"sub": profile.id, "email": profile.email, "role": profile.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for() -> Callable[[Profile], Dict[str, str]]:
    return _auth_headers_for


@pytest.fixture
def owner_headers(gym_owner: Profile) -> Dict[str, str]:
    return _auth_headers_for(gym_owner)


@pytest.fixture
def admin_headers(admin_user: Profile) -> Dict[str, str]:
    return _auth_headers_for(admin_user)


@pytest.fixture
def fighter_headers(fighter: Profile) -> Dict[str, str]:
    return _auth_headers_for(fighter)


@pytest.fixture
def service_headers() -> Dict[str, str]:
    token = create_access_token(data={"sub": "booking-worker", "role": SERVICE_ROLE})
    return {"Authorization": f"Bearer {token}"}


# Gyms and packages


@pytest.fixture
def gym(db: Session, gym_owner: Profile) -> Gym:
    gym = Gym(
        owner_id=gym_owner.id,
        name="Tiger Muay Thai",
        city="Phuket",
        country="Thailand",
        currency="USD",
        status=GymStatus.APPROVED.value,
        verification_status=VerificationStatus.VERIFIED.value,
        price_per_day=Decimal("25.00"),
        price_per_week=Decimal("150.00"),
    )
    db.add(gym)
    db.commit()
    return gym


@pytest.fixture
def training_package(db: Session, gym: Gym) -> Package:
    package = Package(
        gym_id=gym.id,
        name="Muay Thai Training",
        type=PackageType.TRAINING.value,
        price_per_day=Decimal("100.00"),
    )
    db.add(package)
    db.commit()
    return package


@pytest.fixture
def accommodation_package(db: Session, gym: Gym) -> Package:
    package = Package(
        gym_id=gym.id,
        name="Camp Bungalow",
        type=PackageType.ACCOMMODATION.value,
        price_per_day=Decimal("100.00"),
        min_stay_days=3,
    )
    db.add(package)
    db.flush()
    db.add(
        PackageVariant(
            package_id=package.id,
            name="Private room",
            room_type="private",
            price_per_day=Decimal("120.00"),
        )
    )
    db.commit()
    return package


@pytest.fixture
def create_booking(db: Session, gym: Gym) -> Callable[..., Booking]:
    """Insert a booking directly, bypassing the service (status and intent are free)."""

    def _create(
        status: str = BookingStatus.AWAITING_APPROVAL.value,
        *,
        payment_intent_id: Optional[str] = TEST_INTENT_ID,
        guest_email: str = "guest@example.com",
        total_price: Decimal = Decimal("300.00"),
        **overrides: Any,
    ) -> Booking:
        start = utc_today() + timedelta(days=14)
        values: Dict[str, Any] = {
            "booking_reference": generate_booking_reference(),
            "booking_pin": generate_booking_pin(),
            "gym_id": gym.id,
            "start_date": start,
            "end_date": start + timedelta(days=3),
            "discipline": "Muay Thai",
            "guest_name": "Alex Guest",
            "guest_email": guest_email,
            "guest_phone": "+66 555 0100",
            "total_price": total_price,
            "platform_fee": total_price * Decimal("0.15"),
            "stripe_payment_intent_id": payment_intent_id,
            "status": status,
            "request_submitted_at": utc_now(),
        }
        values.update(overrides)
        booking = Booking(**values)
        db.add(booking)
        db.commit()
        return booking

    return _create


@pytest.fixture
def stay_dates() -> Callable[..., tuple[date, date]]:
    """Check-in/check-out pair in the future."""

    def _stay_dates(offset_days: int = 14, nights: int = 3) -> tuple[date, date]:
        start = utc_today() + timedelta(days=offset_days)
        return start, start + timedelta(days=nights)

    return _stay_dates


# HTTP


@pytest.fixture
def client(db: Session, gateway: MagicMock):
    """Create a test client bound to the test session and the fake gateway."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    # Don't use context manager - lifespan is not needed
    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
    test_client.close()
