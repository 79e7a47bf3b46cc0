# backend/app/schemas/booking.py
"""
Booking schemas for the CombatBooking platform.

Request models forbid unknown fields. Response models read from ORM objects;
``BookingResponse`` deliberately has no ``booking_pin`` field so the PIN can
only leave the server in the creation response.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import EmailStr, Field, field_validator

from ..models.booking import ExperienceLevel
from .base import Money, StandardizedModel, StrictRequestModel


class BookingCreate(StrictRequestModel):
    """
    Create a booking for a stay at a gym.

    The price is always computed server-side from the package; a
    ``total_price`` sent by the client is accepted for compatibility and
    ignored.
    """

    gym_id: str = Field(..., description="Gym to book")
    package_id: Optional[str] = Field(None, description="Package at that gym")
    package_variant_id: Optional[str] = Field(None, description="Accommodation variant of the package")
    start_date: date = Field(..., description="Check-in date")
    end_date: date = Field(..., description="Check-out date")
    discipline: str = Field(..., min_length=1, max_length=64)
    experience_level: ExperienceLevel = ExperienceLevel.BEGINNER
    notes: Optional[str] = Field(None, max_length=2000)
    guest_name: Optional[str] = Field(None, max_length=255)
    guest_email: Optional[EmailStr] = None
    guest_phone: Optional[str] = Field(None, max_length=64)
    request_to_book: bool = Field(False, description="Gym accepts the request before payment")
    total_price: Optional[Money] = Field(None, description="Ignored; recomputed server-side")

    @field_validator("guest_name", "guest_phone", "notes")
    @classmethod
    def _strip_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.strip()
        return value or None


class BookingResponse(StandardizedModel):
    """Booking as returned to owners, admins and guests (never includes the PIN)."""

    id: str
    booking_reference: Optional[str] = None
    gym_id: str
    package_id: Optional[str] = None
    package_variant_id: Optional[str] = None
    user_id: Optional[str] = None
    start_date: date
    end_date: date
    discipline: str
    experience_level: str
    notes: Optional[str] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    total_price: Money
    platform_fee: Money
    status: str
    stripe_payment_intent_id: Optional[str] = None
    request_submitted_at: Optional[datetime] = None
    gym_confirmed_at: Optional[datetime] = None
    payment_captured_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class BookingCreateResponse(BookingResponse):
    success: bool = True
    booking_pin: str
    duration_label: str
    billable_units: int
    min_stay_days: int
    below_min_stay: bool


class BookingEnvelope(StandardizedModel):
    success: bool = True
    booking: BookingResponse


class ConfirmPaymentRequest(StrictRequestModel):
    payment_intent_id: str = Field(..., alias="payment_intent", min_length=1)


class DeclineRequestBody(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=1000)


class PaymentIntentResponse(StandardizedModel):
    success: bool = True
    client_secret: Optional[str] = None
    payment_intent_id: str
    reused: bool = False


class BookingActionResponse(StandardizedModel):
    """
    Result of a lifecycle action (confirm-payment, capture, decline, ...).

    Routes exclude unset fields so each action only reports what applies.
    """

    success: bool = True
    status: Optional[str] = None
    already_confirmed: Optional[bool] = None
    already_declined: Optional[bool] = None
    skipped: Optional[bool] = None
    email_sent: Optional[bool] = None
    capture_outcome: Optional[str] = None
    payment_intent_id: Optional[str] = None
    message: Optional[str] = None


class NotifyResponse(StandardizedModel):
    success: bool = True
    skipped: Optional[bool] = None
    admin_email_sent: bool = False
    guest_email_sent: bool = False


class SyncStripeResponse(StandardizedModel):
    success: bool
    synced: bool
    already_confirmed: Optional[bool] = None
    previous_status: Optional[str] = None
    booking_status: Optional[str] = None
    stripe_status: Optional[str] = None
    payment_intent_id: Optional[str] = None
    searched_intents: Optional[int] = None
    email_sent: Optional[bool] = None
    message: Optional[str] = None


class AccessTokenRequest(StrictRequestModel):
    email: EmailStr
    expires_in_days: Optional[int] = Field(None, alias="expiresInDays")


class AccessTokenResponse(StandardizedModel):
    success: bool = True
    token: str
    magic_link: str
    expires_at: datetime


class ResolvedAccessResponse(StandardizedModel):
    booking_id: str
    email: str
    expires_at: datetime


class GuestAccessRequest(StrictRequestModel):
    booking_reference: str = Field(..., min_length=1, max_length=16)
    booking_pin: str = Field(..., min_length=1, max_length=16)


class RequestAccessRequest(StrictRequestModel):
    email: EmailStr
    booking_reference: str = Field(..., min_length=1, max_length=16)


class MessageResponse(StandardizedModel):
    success: bool = True
    message: str
