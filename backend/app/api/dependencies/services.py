# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Every request gets services bound to its own session. The payment gateway is
process-wide: it only holds configuration, and tests override
``get_payment_gateway`` to inject a fake.
"""

from functools import lru_cache
import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.access_token_service import AccessTokenService
from ...services.booking_service import BookingService
from ...services.email import EmailService
from ...services.notification_service import NotificationService
from ...services.payment_gateway import StripePaymentGateway
from ...services.reconciliation_service import ReconciliationService
from ...services.stripe_webhook_service import StripeWebhookService
from ...services.template_service import TemplateService
from .database import get_db

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _gateway_singleton() -> StripePaymentGateway:
    return StripePaymentGateway()


def get_payment_gateway() -> StripePaymentGateway:
    return _gateway_singleton()


def get_template_service() -> TemplateService:
    return TemplateService()


def get_email_service(db: Session = Depends(get_db)) -> EmailService:
    return EmailService(db)


def get_access_token_service(db: Session = Depends(get_db)) -> AccessTokenService:
    return AccessTokenService(db)


def get_notification_service(
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
    template_service: TemplateService = Depends(get_template_service),
    gateway: StripePaymentGateway = Depends(get_payment_gateway),
    access_token_service: AccessTokenService = Depends(get_access_token_service),
) -> NotificationService:
    return NotificationService(
        db,
        email_service=email_service,
        template_service=template_service,
        gateway=gateway,
        access_token_service=access_token_service,
    )


def get_booking_service(
    db: Session = Depends(get_db),
    gateway: StripePaymentGateway = Depends(get_payment_gateway),
    notification_service: NotificationService = Depends(get_notification_service),
    access_token_service: AccessTokenService = Depends(get_access_token_service),
) -> BookingService:
    return BookingService(
        db,
        gateway=gateway,
        notification_service=notification_service,
        access_token_service=access_token_service,
    )


def get_reconciliation_service(
    db: Session = Depends(get_db),
    booking_service: BookingService = Depends(get_booking_service),
) -> ReconciliationService:
    return ReconciliationService(db, booking_service=booking_service)


def get_stripe_webhook_service(
    db: Session = Depends(get_db),
    booking_service: BookingService = Depends(get_booking_service),
) -> StripeWebhookService:
    return StripeWebhookService(db, booking_service=booking_service)
