# backend/app/services/notification_service.py
"""
Notification dispatcher for booking lifecycle emails.

Every public ``send_*`` method returns ``True`` when the email was handed to
the provider and ``False`` otherwise. Failures are logged and counted, never
raised: a booking that was captured stays captured even when its
confirmation email bounces.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import ServiceException
from ..models.booking import Booking
from ..monitoring.prometheus_metrics import prometheus_metrics
from .access_token_service import AccessTokenService, IssuedToken, build_magic_link
from .base import BaseService
from .email import EmailService
from .email_subjects import EmailSubject
from .payment_gateway import StripePaymentGateway
from .template_registry import TemplateRegistry
from .template_service import TemplateService

logger = logging.getLogger(__name__)


class NotificationService(BaseService):
    """Renders and sends the booking emails (admin and guest)."""

    def __init__(
        self,
        db: Session,
        email_service: Optional[EmailService] = None,
        template_service: Optional[TemplateService] = None,
        gateway: Optional[StripePaymentGateway] = None,
        access_token_service: Optional[AccessTokenService] = None,
    ):
        super().__init__(db)
        self.email_service = email_service or EmailService(db)
        self.template_service = template_service or TemplateService(db)
        self.gateway = gateway
        self.access_token_service = access_token_service or AccessTokenService(db)

    def _booking_context(self, booking: Booking) -> Dict[str, Any]:
        gym = booking.gym
        package = booking.package
        variant = booking.variant
        return {
            "booking": booking,
            "gym_name": gym.name if gym else "your gym",
            "package_name": package.name if package else None,
            "variant_name": variant.name if variant else None,
            "currency": (gym.currency if gym else None) or settings.stripe_currency.upper(),
        }

    def _deliver(
        self,
        template: TemplateRegistry,
        to_email: Optional[str],
        subject: str,
        context: Dict[str, Any],
        booking: Booking,
    ) -> bool:
        if not to_email:
            self.logger.warning(
                f"No recipient for {template.metric_name} on booking {booking.id}, skipping"
            )
            prometheus_metrics.record_email(template.metric_name, sent=False)
            return False

        try:
            html_content = self.template_service.render_template(template, context=context)
            response = self.email_service.send_email(
                to_email=to_email, subject=subject, html_content=html_content
            )
        except ServiceException as e:
            self.logger.warning(f"Could not send {template.metric_name} for booking {booking.id}: {e}")
            prometheus_metrics.record_email(template.metric_name, sent=False)
            return False
        except Exception as e:
            self.logger.error(
                f"Unexpected error sending {template.metric_name} for booking {booking.id}: {e}"
            )
            prometheus_metrics.record_email(template.metric_name, sent=False)
            return False

        sent = not (isinstance(response, dict) and response.get("skipped"))
        prometheus_metrics.record_email(template.metric_name, sent=sent)
        if sent:
            self.log_operation(
                "booking_email_sent", booking_id=booking.id, template=template.metric_name
            )
        return sent

    def _mint_link(self, booking: Booking) -> Optional[IssuedToken]:
        """Fresh 90-day access token for the guest, committed before the email goes out."""
        try:
            with self.transaction():
                return self.access_token_service.issue_for_booking(booking)
        except Exception as e:
            self.logger.error(f"Could not mint access token for booking {booking.id}: {e}")
            return None

    @BaseService.measure_operation("send_admin_new_booking")
    def send_admin_new_booking(self, booking: Booking) -> bool:
        return self._deliver(
            TemplateRegistry.BOOKING_ADMIN_NEW_REQUEST,
            settings.admin_email,
            EmailSubject.admin_new_booking(booking.booking_reference),
            self._booking_context(booking),
            booking,
        )

    @BaseService.measure_operation("send_guest_request_received")
    def send_guest_request_received(self, booking: Booking) -> bool:
        issued = self._mint_link(booking)
        context = self._booking_context(booking)
        context["magic_link"] = build_magic_link(issued.token) if issued else None
        return self._deliver(
            TemplateRegistry.BOOKING_GUEST_REQUEST_RECEIVED,
            booking.guest_email,
            EmailSubject.guest_request_received(booking.booking_reference),
            context,
            booking,
        )

    @BaseService.measure_operation("send_booking_confirmed")
    def send_booking_confirmed(self, booking: Booking, payment_method_id: Optional[str] = None) -> bool:
        """
        Confirmation email with a freshly minted access link.

        Each call mints a new token; earlier tokens stay valid until they
        expire. Card brand/last4 are included when the gateway can supply them.
        """
        issued = self._mint_link(booking)
        if issued is None:
            prometheus_metrics.record_email(TemplateRegistry.BOOKING_GUEST_CONFIRMED.metric_name, sent=False)
            return False

        card = None
        if self.gateway is not None and payment_method_id:
            card = self.gateway.get_card_details(payment_method_id)

        context = self._booking_context(booking)
        context.update(
            {
                "magic_link": build_magic_link(issued.token),
                "link_expires_at": issued.expires_at,
                "card": card,
            }
        )
        return self._deliver(
            TemplateRegistry.BOOKING_GUEST_CONFIRMED,
            booking.guest_email,
            EmailSubject.booking_confirmed(booking.booking_reference),
            context,
            booking,
        )

    @BaseService.measure_operation("send_request_accepted")
    def send_request_accepted(self, booking: Booking) -> bool:
        context = self._booking_context(booking)
        context["payment_link"] = f"{settings.frontend_url}/bookings/{booking.id}/payment"
        return self._deliver(
            TemplateRegistry.BOOKING_GUEST_REQUEST_ACCEPTED,
            booking.guest_email,
            EmailSubject.request_accepted(booking.booking_reference),
            context,
            booking,
        )

    @BaseService.measure_operation("send_request_declined")
    def send_request_declined(self, booking: Booking, reason: str) -> bool:
        context = self._booking_context(booking)
        context["reason"] = reason
        return self._deliver(
            TemplateRegistry.BOOKING_GUEST_REQUEST_DECLINED,
            booking.guest_email,
            EmailSubject.request_declined(booking.booking_reference),
            context,
            booking,
        )

    @BaseService.measure_operation("send_magic_link")
    def send_magic_link(self, booking: Booking, issued: IssuedToken) -> bool:
        context = self._booking_context(booking)
        context.update(
            {"magic_link": build_magic_link(issued.token), "link_expires_at": issued.expires_at}
        )
        return self._deliver(
            TemplateRegistry.BOOKING_GUEST_MAGIC_LINK,
            issued.email,
            EmailSubject.magic_link(booking.booking_reference),
            context,
            booking,
        )
