# backend/app/models/gym.py
"""
Gym and package models.

Only the columns the booking core reads are modelled here: bookability gates
(status, verification_status), ownership, currency, and the package pricing
inputs consumed by the pricing calculator.
"""

from enum import Enum

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.timezone_utils import utc_now
from ..database import Base


class GymStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class VerificationStatus(str, Enum):
    DRAFT = "draft"
    VERIFIED = "verified"
    TRUSTED = "trusted"


class PackageType(str, Enum):
    TRAINING = "training"
    ACCOMMODATION = "accommodation"
    ALL_INCLUSIVE = "all_inclusive"


class Gym(Base):
    __tablename__ = "gyms"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    owner_id = Column(String(26), ForeignKey("profiles.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    city = Column(String(128), nullable=False, default="")
    country = Column(String(128), nullable=False, default="")
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(String(20), nullable=False, default=GymStatus.PENDING.value)
    verification_status = Column(String(20), nullable=False, default=VerificationStatus.DRAFT.value)

    # Gym-level fallback rates
    price_per_day = Column(Numeric(10, 2), nullable=True)
    price_per_week = Column(Numeric(10, 2), nullable=True)
    price_per_month = Column(Numeric(10, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    owner = relationship("Profile")
    packages = relationship("Package", back_populates="gym", cascade="all, delete-orphan")
    bookings = relationship("Booking", back_populates="gym")

    @property
    def is_bookable(self) -> bool:
        return (
            self.verification_status != VerificationStatus.DRAFT.value
            and self.status == GymStatus.APPROVED.value
        )

    def __repr__(self) -> str:
        return f"<Gym {self.id}: {self.name} ({self.status}/{self.verification_status})>"


class Package(Base):
    __tablename__ = "packages"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    gym_id = Column(String(26), ForeignKey("gyms.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(20), nullable=False, default=PackageType.TRAINING.value)
    sport = Column(String(64), nullable=True)
    currency = Column(String(3), nullable=True)

    price_per_day = Column(Numeric(10, 2), nullable=True)
    price_per_week = Column(Numeric(10, 2), nullable=True)
    price_per_month = Column(Numeric(10, 2), nullable=True)
    min_stay_days = Column(Integer, nullable=True)

    # {"mode": "fixed"|"rate", "durations": [...], "rates": {...}}
    pricing_config = Column(JSON, nullable=True)
    meal_plan_details = Column(JSON, nullable=True)
    includes_accommodation = Column(Boolean, nullable=False, default=False)
    includes_meals = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=utc_now)

    gym = relationship("Gym", back_populates="packages")
    variants = relationship("PackageVariant", back_populates="package", cascade="all, delete-orphan")


class PackageVariant(Base):
    """Accommodation tier of a package (e.g. private vs shared room)."""

    __tablename__ = "package_variants"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    package_id = Column(String(26), ForeignKey("packages.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    room_type = Column(String(20), nullable=True)

    price_per_day = Column(Numeric(10, 2), nullable=True)
    price_per_week = Column(Numeric(10, 2), nullable=True)
    price_per_month = Column(Numeric(10, 2), nullable=True)

    package = relationship("Package", back_populates="variants")
