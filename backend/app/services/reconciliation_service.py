# backend/app/services/reconciliation_service.py
"""
Operator tools for bookings whose local state drifted from the gateway.

``sync_with_gateway`` is the manual twin of the webhook: it looks the
payment up at the provider and, if it succeeded, runs the same conditional
confirm transition. The other two operations only (re)send emails.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from ..core.exceptions import (
    InvalidBookingTransitionException,
    PaymentGatewayException,
    ServiceException,
)
from ..models.booking import BookingStatus
from ..principal import UserPrincipal
from .base import BaseService
from .booking_service import BookingService
from .payment_gateway import IntentSnapshot, select_payment_intent

logger = logging.getLogger(__name__)


class ReconciliationService(BaseService):
    def __init__(self, db: Session, booking_service: Optional[BookingService] = None):
        super().__init__(db)
        self.booking_service = booking_service or BookingService(db)
        self.repository = self.booking_service.repository
        self.gateway = self.booking_service.gateway
        self.notifications = self.booking_service.notifications

    def _find_intent(
        self, booking_id: str, stored_id: Optional[str], reference: Optional[str]
    ) -> Tuple[Optional[IntentSnapshot], int]:
        """
        Pick the intent to reconcile against and report how many the search returned.

        A paid stored intent is used as is. A stored intent that is missing,
        unretrievable or not paid (abandoned, canceled, still authorized) sends
        the lookup to the metadata search, where a paid intent wins.
        """
        stored: Optional[IntentSnapshot] = None
        if stored_id:
            try:
                stored = self.gateway.retrieve_authorization(stored_id)
            except PaymentGatewayException as e:
                self.logger.warning(
                    f"Stored intent {stored_id} for booking {booking_id} not retrievable, searching: {e}"
                )
            else:
                if stored.paid:
                    return stored, 0
                self.logger.info(
                    f"Stored intent {stored_id} for booking {booking_id} is {stored.status}, searching"
                )

        try:
            found = self.gateway.search_authorizations(reference, booking_id)
        except PaymentGatewayException as e:
            if stored is None:
                raise
            self.logger.warning(f"Intent search for booking {booking_id} failed, using stored intent: {e}")
            return stored, 0
        candidates = list(found)
        if stored is not None and all(intent.id != stored.id for intent in candidates):
            candidates.append(stored)
        return select_payment_intent(candidates), len(found)

    @BaseService.measure_operation("sync_with_gateway")
    def sync_with_gateway(self, booking_id: str) -> Dict[str, Any]:
        """
        Reconcile one booking against the payment provider.

        Uses the stored intent when it is paid, otherwise searches by
        metadata and picks with ``select_payment_intent``.
        """
        booking = self.booking_service.get_booking_or_404(booking_id)
        previous_status = booking.status

        if booking.is_confirmed:
            return {
                "success": True,
                "synced": True,
                "already_confirmed": True,
                "booking_status": booking.status,
                "payment_intent_id": booking.stripe_payment_intent_id,
            }

        chosen, searched = self._find_intent(
            booking.id, booking.stripe_payment_intent_id, booking.booking_reference
        )
        if chosen is None:
            self.logger.info(f"No payment intent found for booking {booking.id}")
            return {
                "success": False,
                "synced": False,
                "message": "No payment intent found for this booking",
                "searched_intents": 0,
            }

        if not chosen.paid:
            self.logger.info(
                f"Booking {booking.id}: intent {chosen.id} is {chosen.status}, nothing to sync"
            )
            return {
                "success": True,
                "synced": False,
                "stripe_status": chosen.status,
                "booking_status": booking.status,
                "payment_intent_id": chosen.id,
                "searched_intents": searched,
            }

        stored_id = booking.stripe_payment_intent_id
        if stored_id != chosen.id:
            with self.transaction():
                self.repository.set_payment_intent_id(booking.id, chosen.id)
            self.logger.info(f"Booking {booking.id}: intent id updated {stored_id} -> {chosen.id}")

        won, email_sent = self.booking_service.confirm_captured_booking(
            booking, "sync", chosen.payment_method
        )
        if not won:
            return {
                "success": True,
                "synced": True,
                "already_confirmed": True,
                "booking_status": BookingStatus.CONFIRMED.value,
                "payment_intent_id": chosen.id,
            }

        self.log_operation("booking_synced", booking_id=booking.id, payment_intent_id=chosen.id)
        return {
            "success": True,
            "synced": True,
            "previous_status": previous_status,
            "booking_status": BookingStatus.CONFIRMED.value,
            "stripe_status": chosen.status,
            "payment_intent_id": chosen.id,
            "searched_intents": searched,
            "email_sent": email_sent,
        }

    @BaseService.measure_operation("resend_confirmation")
    def resend_confirmation(self, booking_id: str) -> Dict[str, Any]:
        """Mint a fresh access link and re-send the confirmation email."""
        booking = self.booking_service.get_booking_or_404(booking_id)
        if not booking.is_confirmed:
            raise InvalidBookingTransitionException(
                "resend confirmation for", booking.status, [BookingStatus.CONFIRMED.value]
            )

        payment_method_id = None
        if booking.stripe_payment_intent_id:
            try:
                payment_method_id = self.gateway.retrieve_authorization(
                    booking.stripe_payment_intent_id
                ).payment_method
            except ServiceException as e:
                self.logger.warning(f"Card details unavailable for booking {booking.id}: {e}")

        email_sent = self.notifications.send_booking_confirmed(booking, payment_method_id)
        return {"status": booking.status, "email_sent": email_sent}

    @BaseService.measure_operation("notify_booking")
    def notify(self, booking_id: str, actor: UserPrincipal) -> Dict[str, Any]:
        """
        Send the "request received" pair of emails (admin and guest).

        Confirmed bookings are skipped; their email comes from the capture path.
        """
        booking = self.booking_service.get_booking_or_404(booking_id)
        if actor.principal_type != "service":
            self.booking_service.ensure_can_manage(booking, actor)

        if booking.is_confirmed:
            self.logger.info(f"Booking {booking.id} already confirmed, skipping notification")
            return {"skipped": True, "admin_email_sent": False, "guest_email_sent": False}

        admin_sent = self.notifications.send_admin_new_booking(booking)
        guest_sent = self.notifications.send_guest_request_received(booking)
        return {"admin_email_sent": admin_sent, "guest_email_sent": guest_sent}
