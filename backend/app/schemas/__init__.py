# backend/app/schemas/__init__.py
"""
Pydantic schemas for the CombatBooking platform.

Request models forbid unknown fields; response models read from ORM objects.
"""

from .base import Money, StandardizedModel, StrictRequestModel

# Booking schemas
from .booking import (
    AccessTokenRequest,
    AccessTokenResponse,
    BookingActionResponse,
    BookingCreate,
    BookingCreateResponse,
    BookingEnvelope,
    BookingResponse,
    ConfirmPaymentRequest,
    DeclineRequestBody,
    GuestAccessRequest,
    MessageResponse,
    NotifyResponse,
    PaymentIntentResponse,
    RequestAccessRequest,
    ResolvedAccessResponse,
    SyncStripeResponse,
)

# Webhook schemas
from .webhook import WebhookResponse

__all__ = [
    # Base
    "Money",
    "StandardizedModel",
    "StrictRequestModel",
    # Booking
    "AccessTokenRequest",
    "AccessTokenResponse",
    "BookingActionResponse",
    "BookingCreate",
    "BookingCreateResponse",
    "BookingEnvelope",
    "BookingResponse",
    "ConfirmPaymentRequest",
    "DeclineRequestBody",
    "GuestAccessRequest",
    "MessageResponse",
    "NotifyResponse",
    "PaymentIntentResponse",
    "RequestAccessRequest",
    "ResolvedAccessResponse",
    "SyncStripeResponse",
    # Webhooks
    "WebhookResponse",
]
