# backend/app/services/stripe_webhook_service.py
"""
Payment webhook reconciler.

Stripe delivers events at least once and in any order, so every handler is
idempotent: the only state change is the conditional confirm transition
shared with the capture endpoint, and a redelivered ``payment_intent.succeeded``
for a confirmed booking is acknowledged without side effects.
"""

import logging
from typing import Any, Callable, Dict, Optional, Union

import stripe
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ServiceException, ValidationException
from ..monitoring.prometheus_metrics import prometheus_metrics
from .base import BaseService
from .booking_service import BookingService
from .payment_gateway import get_field, to_snapshot

logger = logging.getLogger(__name__)

PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_INTENT_CANCELED = "payment_intent.canceled"
PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"


class StripeWebhookService(BaseService):
    """Verifies and applies payment provider events."""

    def __init__(self, db: Session, booking_service: Optional[BookingService] = None):
        super().__init__(db)
        self.booking_service = booking_service or BookingService(db)
        self.repository = self.booking_service.repository
        self._handlers: Dict[str, Callable[[Any], Dict[str, Any]]] = {
            PAYMENT_INTENT_SUCCEEDED: self._handle_payment_succeeded,
            PAYMENT_INTENT_CANCELED: self._handle_payment_not_completed,
            PAYMENT_INTENT_FAILED: self._handle_payment_not_completed,
        }

    def construct_event(self, payload: Union[bytes, str], signature: Optional[str]) -> Any:
        """
        Verify the signature and parse the event.

        Raises:
            ValidationException: missing or invalid signature, malformed payload
            ServiceException: webhook secret not configured
        """
        if not signature:
            self.logger.warning("Missing Stripe signature header")
            raise ValidationException("Missing stripe-signature header", code="MISSING_SIGNATURE")

        webhook_secret = settings.webhook_secret
        if not webhook_secret:
            self.logger.error("Webhook secret not configured")
            raise ServiceException("Webhook secret not configured", code="WEBHOOK_NOT_CONFIGURED")

        try:
            return stripe.Webhook.construct_event(
                payload.encode("utf-8") if isinstance(payload, str) else payload,
                signature,
                webhook_secret,
            )
        except stripe.SignatureVerificationError as e:
            self.logger.warning(f"Invalid webhook signature: {str(e)}")
            raise ValidationException("Invalid webhook signature", code="INVALID_SIGNATURE")
        except ValueError as e:
            self.logger.warning(f"Invalid webhook payload: {str(e)}")
            raise ValidationException("Invalid webhook payload", code="INVALID_PAYLOAD")

    @BaseService.measure_operation("handle_webhook_event")
    def handle_event(self, event: Any) -> Dict[str, Any]:
        """Dispatch a verified event; unknown types are acknowledged as unhandled."""
        event_type = get_field(event, "type") or "unknown"
        data = get_field(event, "data") or {}
        payload = get_field(data, "object") or {}

        handler = self._handlers.get(event_type)
        if handler is None:
            self.logger.info(f"Unhandled webhook event type: {event_type}")
            prometheus_metrics.record_webhook_event(event_type, "unhandled")
            return {"received": True, "handled": False}

        result = handler(payload)
        outcome = next(
            (key for key in ("booking_not_found", "already_confirmed", "confirmed") if result.get(key)),
            "acknowledged",
        )
        prometheus_metrics.record_webhook_event(event_type, outcome)
        return result

    def _handle_payment_succeeded(self, payment_intent: Any) -> Dict[str, Any]:
        intent = to_snapshot(payment_intent)
        booking = self.repository.get_by_payment_intent_id(intent.id)
        if not booking:
            self.logger.warning(f"No booking found for payment intent {intent.id}")
            return {"received": True, "booking_not_found": True}

        if booking.is_confirmed:
            self.logger.info(f"Booking {booking.id} already confirmed, ignoring redelivery")
            return {"received": True, "already_confirmed": True}

        won, email_sent = self.booking_service.confirm_captured_booking(
            booking, "webhook", intent.payment_method
        )
        if not won:
            return {"received": True, "already_confirmed": True}
        return {"received": True, "confirmed": True, "email_sent": email_sent}

    def _handle_payment_not_completed(self, payment_intent: Any) -> Dict[str, Any]:
        intent_id = get_field(payment_intent, "id")
        booking = self.repository.get_by_payment_intent_id(intent_id) if intent_id else None
        self.logger.info(
            f"Payment intent {intent_id} ended with status {get_field(payment_intent, 'status')}; "
            f"booking {booking.id if booking else 'unknown'} left as is"
        )
        return {"received": True, "handled": True}
