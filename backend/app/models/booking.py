# backend/app/models/booking.py
"""
Booking model for the CombatBooking platform.

A booking is a stay at one gym between a check-in and a check-out date,
optionally tied to a package and an accommodation variant. Guests without an
account are identified by their name/email/phone and reach the booking through
the reference + PIN pair or a magic-link access token.

Money columns are written once at creation; later transitions only touch
``status``, ``stripe_payment_intent_id`` and the lifecycle timestamps.
"""

from enum import Enum
import logging
from typing import Any, FrozenSet

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.timezone_utils import nights_between, utc_now
from ..database import Base

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    # Deferred-capture flow
    PENDING_PAYMENT = "pending_payment"  # no authorization yet
    AWAITING_APPROVAL = "awaiting_approval"  # authorized, gym must decide
    PENDING_CONFIRMATION = "pending_confirmation"  # legacy alias of AWAITING_APPROVAL
    CONFIRMED = "confirmed"  # captured
    DECLINED = "declined"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    # Request-to-book flow
    PENDING = "pending"
    GYM_CONFIRMED = "gym_confirmed"
    PAID = "paid"


AWAITING_DECISION_STATUSES: FrozenSet[str] = frozenset(
    {BookingStatus.AWAITING_APPROVAL.value, BookingStatus.PENDING_CONFIRMATION.value}
)


class ExperienceLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Booking(Base):
    """Stay booked at a gym, with deferred payment capture."""

    __tablename__ = "bookings"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))

    # Human-facing identifiers
    booking_reference = Column(String(16), nullable=True, unique=True, index=True)
    booking_pin = Column(String(6), nullable=True)

    # Relationships
    gym_id = Column(String(26), ForeignKey("gyms.id"), nullable=False, index=True)
    package_id = Column(String(26), ForeignKey("packages.id"), nullable=True)
    package_variant_id = Column(String(26), ForeignKey("package_variants.id"), nullable=True)
    user_id = Column(String(26), ForeignKey("profiles.id"), nullable=True, index=True)

    # Stay
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    discipline = Column(String(64), nullable=False)
    experience_level = Column(String(20), nullable=False, default=ExperienceLevel.BEGINNER.value)
    notes = Column(Text, nullable=True)

    # Guest contact (guest_email stored lower-cased)
    guest_name = Column(String(255), nullable=True)
    guest_email = Column(String(255), nullable=True, index=True)
    guest_phone = Column(String(64), nullable=True)

    # Commercial snapshot, immutable after creation
    total_price = Column(Numeric(10, 2), nullable=False)
    platform_fee = Column(Numeric(10, 2), nullable=False)

    # Payment linkage
    stripe_payment_intent_id = Column(String(255), nullable=True, index=True)

    status = Column(
        String(32), nullable=False, default=BookingStatus.PENDING_PAYMENT.value, index=True
    )

    # Lifecycle timestamps
    request_submitted_at = Column(DateTime(timezone=True), nullable=True)
    gym_confirmed_at = Column(DateTime(timezone=True), nullable=True)
    payment_captured_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    gym = relationship("Gym", back_populates="bookings")
    package = relationship("Package")
    variant = relationship("PackageVariant")
    access_tokens = relationship(
        "BookingAccessToken", back_populates="booking", cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("total_price >= 0", name="check_price_non_negative"),
        CheckConstraint("platform_fee >= 0", name="check_fee_non_negative"),
        CheckConstraint("end_date > start_date", name="check_date_order"),
        Index("ix_bookings_gym_status", "gym_id", "status"),
    )

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if not self.status:
            self.status = BookingStatus.PENDING_PAYMENT.value
        logger.info(f"Creating booking for gym {self.gym_id} ({self.start_date} to {self.end_date})")

    def __repr__(self) -> str:
        return (
            f"<Booking {self.id}: ref={self.booking_reference}, gym={self.gym_id}, "
            f"{self.start_date}->{self.end_date}, status={self.status}>"
        )

    @property
    def nights(self) -> int:
        return nights_between(self.start_date, self.end_date)

    @property
    def is_confirmed(self) -> bool:
        return self.status == BookingStatus.CONFIRMED.value

    @property
    def is_awaiting_decision(self) -> bool:
        return self.status in AWAITING_DECISION_STATUSES

    @property
    def contact_email(self) -> str | None:
        return self.guest_email
