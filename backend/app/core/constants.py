"""Application-wide constants for the CombatBooking platform."""

from __future__ import annotations

BRAND_NAME = "CombatBooking"

# Booking reference / PIN generation
BOOKING_REFERENCE_PREFIX = "BK-"
BOOKING_REFERENCE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # no 0/O, 1/I
BOOKING_REFERENCE_LENGTH = 3
BOOKING_REFERENCE_MAX_ATTEMPTS = 10
BOOKING_PIN_LENGTH = 6

# Guest access tokens
ACCESS_TOKEN_BYTES = 32
ACCESS_TOKEN_MAX_DAYS = 365

# Pricing
DEFAULT_MIN_STAY_TRAINING = 1
DEFAULT_MIN_STAY_OTHER = 7
MONTHLY_RATE_THRESHOLD_DAYS = 28
WEEKLY_RATE_THRESHOLD_DAYS = 7
DAYS_PER_MONTH = 30
DAYS_PER_WEEK = 7

# Payment gateway
STRIPE_SEARCH_LIMIT = 10
STRIPE_ALREADY_CAPTURED_CODE = "payment_intent_already_captured"

# Guest-facing copy
PAYMENT_UNAVAILABLE_MESSAGE = "Payment system unavailable"
INVALID_ACCESS_LINK_MESSAGE = "Invalid or expired link"
REQUEST_ACCESS_MESSAGE = (
    "If a booking exists with that email and reference, a magic link has been sent."
)
DEFAULT_DECLINE_REASON = "Unfortunately, we cannot accommodate your request at this time."
