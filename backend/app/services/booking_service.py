# backend/app/services/booking_service.py
"""
Booking Service for the CombatBooking platform.

Owns the booking lifecycle:

    pending_payment --confirm_authorization--> awaiting_approval
    awaiting_approval --capture_booking--> confirmed
    awaiting_approval --decline_booking--> declined

and the request-to-book branch (pending -> gym_confirmed | declined).

Money and gateway calls happen outside the transaction; every state write
is a narrow column update, and the confirm transition is conditional so the
capture endpoint, the webhook and the manual sync can race safely. Emails
are sent after commit and never fail the operation.
"""

from dataclasses import dataclass
import logging
import secrets
import string
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.constants import (
    BOOKING_PIN_LENGTH,
    BOOKING_REFERENCE_ALPHABET,
    BOOKING_REFERENCE_LENGTH,
    BOOKING_REFERENCE_MAX_ATTEMPTS,
    BOOKING_REFERENCE_PREFIX,
    DEFAULT_DECLINE_REASON,
    REQUEST_ACCESS_MESSAGE,
)
from ..core.exceptions import (
    BusinessRuleException,
    ForbiddenException,
    InvalidBookingTransitionException,
    NotFoundException,
    PaymentGatewayException,
    ServiceException,
    UnauthorizedException,
    ValidationException,
)
from ..core.timezone_utils import utc_now, utc_today
from ..models.booking import AWAITING_DECISION_STATUSES, Booking, BookingStatus
from ..models.gym import Gym, GymStatus, VerificationStatus
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..principal import UserPrincipal
from ..repositories.factory import RepositoryFactory
from ..schemas.booking import BookingCreate
from .access_token_service import AccessTokenService
from .base import BaseService
from .notification_service import NotificationService
from .payment_gateway import CANCELED, SUCCEEDED, StripePaymentGateway
from .pricing_service import (
    PriceQuote,
    RateCard,
    calculate_platform_fee,
    calculate_price,
    quote_gym_rates,
    to_minor_units,
)

logger = logging.getLogger(__name__)

AUTHORIZABLE_STATUSES = (
    BookingStatus.PENDING.value,
    BookingStatus.PENDING_PAYMENT.value,
    BookingStatus.GYM_CONFIRMED.value,
)
CAPTURABLE_STATUSES = (
    BookingStatus.AWAITING_APPROVAL.value,
    BookingStatus.PENDING_CONFIRMATION.value,
    BookingStatus.CONFIRMED.value,
)
DECLINABLE_STATUSES = (
    BookingStatus.PENDING.value,
    BookingStatus.PENDING_PAYMENT.value,
    BookingStatus.AWAITING_APPROVAL.value,
    BookingStatus.PENDING_CONFIRMATION.value,
    BookingStatus.GYM_CONFIRMED.value,
)


def generate_booking_reference() -> str:
    """``BK-`` plus three characters from an alphabet without 0/O/1/I."""
    suffix = "".join(
        secrets.choice(BOOKING_REFERENCE_ALPHABET) for _ in range(BOOKING_REFERENCE_LENGTH)
    )
    return f"{BOOKING_REFERENCE_PREFIX}{suffix}"


def generate_booking_pin() -> str:
    return "".join(secrets.choice(string.digits) for _ in range(BOOKING_PIN_LENGTH))


@dataclass
class BookingCreationResult:
    booking: Booking
    quote: PriceQuote


class BookingService(BaseService):
    """
    Service layer for booking operations.

    The gateway and notification dispatcher are injected; when omitted they
    are built from settings so routes and scripts can construct the service
    from a session alone.
    """

    def __init__(
        self,
        db: Session,
        gateway: Optional[StripePaymentGateway] = None,
        notification_service: Optional[NotificationService] = None,
        access_token_service: Optional[AccessTokenService] = None,
    ):
        super().__init__(db)
        self.repository = RepositoryFactory.create_booking_repository(db)
        self.gym_repository = RepositoryFactory.create_gym_repository(db)
        self.package_repository = RepositoryFactory.create_package_repository(db)
        self.profile_repository = RepositoryFactory.create_profile_repository(db)
        self.gateway = gateway or StripePaymentGateway()
        self.access_token_service = access_token_service or AccessTokenService(db)
        self.notifications = notification_service or NotificationService(
            db, gateway=self.gateway, access_token_service=self.access_token_service
        )

    # Lookups and permissions

    def get_booking_or_404(self, booking_id: str) -> Booking:
        booking = self.repository.get_booking_with_details(booking_id)
        if not booking:
            raise NotFoundException("Booking not found", code="BOOKING_NOT_FOUND")
        return booking

    def can_manage(self, booking: Booking, actor: Optional[UserPrincipal]) -> bool:
        """Admins manage every booking; owners manage bookings at their gyms."""
        if actor is None:
            return False
        if actor.is_admin:
            return True
        gym = booking.gym or self.gym_repository.get_by_id(booking.gym_id, load_relationships=False)
        return bool(gym and gym.owner_id == actor.id)

    def ensure_can_manage(self, booking: Booking, actor: Optional[UserPrincipal]) -> None:
        if not self.can_manage(booking, actor):
            raise ForbiddenException()

    @BaseService.measure_operation("get_booking")
    def get_booking(self, booking_id: str, actor: UserPrincipal) -> Booking:
        booking = self.get_booking_or_404(booking_id)
        if booking.user_id and booking.user_id == actor.id:
            return booking
        self.ensure_can_manage(booking, actor)
        return booking

    # Creation

    def _generate_unique_reference(self) -> str:
        for _ in range(BOOKING_REFERENCE_MAX_ATTEMPTS):
            reference = generate_booking_reference()
            if not self.repository.reference_exists(reference):
                return reference
        raise ServiceException(
            "Could not generate a unique booking reference", code="REFERENCE_SPACE_EXHAUSTED"
        )

    def _validate_gym(self, gym_id: str) -> Gym:
        gym = self.gym_repository.get_by_id(gym_id)
        if not gym:
            raise NotFoundException("Gym not found", code="GYM_NOT_FOUND")
        if gym.verification_status == VerificationStatus.DRAFT.value:
            raise ValidationException(
                "Gym is not accepting bookings yet", code="GYM_NOT_VERIFIED"
            )
        if gym.status != GymStatus.APPROVED.value:
            raise ValidationException("Gym is not approved for bookings", code="GYM_NOT_APPROVED")
        return gym

    def _quote(self, data: BookingCreate, gym: Gym) -> PriceQuote:
        duration = (data.end_date - data.start_date).days
        if not data.package_id:
            if data.package_variant_id:
                raise ValidationException(
                    "A variant requires a package", code="VARIANT_WITHOUT_PACKAGE"
                )
            return quote_gym_rates(
                duration,
                RateCard(
                    daily=gym.price_per_day, weekly=gym.price_per_week, monthly=gym.price_per_month
                ),
            )

        package = self.package_repository.get_for_gym(data.package_id, gym.id)
        if not package:
            raise ValidationException(
                "Package does not belong to this gym", code="PACKAGE_GYM_MISMATCH"
            )
        variant = None
        if data.package_variant_id:
            variant = self.package_repository.get_variant_for_package(
                data.package_variant_id, package.id
            )
            if not variant:
                raise ValidationException(
                    "Variant does not belong to this package", code="VARIANT_PACKAGE_MISMATCH"
                )
        return calculate_price(duration, package, variant)

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self, data: BookingCreate, user: Optional[UserPrincipal] = None
    ) -> BookingCreationResult:
        """
        Validate, price and persist a new booking.

        Raises:
            ValidationException: bad dates, missing guest details, gym not
                bookable, package/variant not part of the gym
            NotFoundException: gym does not exist
        """
        if data.end_date <= data.start_date:
            raise ValidationException(
                "Check-out must be after check-in", code="INVALID_DATE_RANGE"
            )
        if data.start_date < utc_today():
            raise ValidationException("Check-in cannot be in the past", code="START_DATE_IN_PAST")

        profile = self.profile_repository.get_by_id(user.id) if user else None
        guest_email = data.guest_email or (user.email if user else None)
        guest_name = data.guest_name or (profile.full_name if profile else None)
        if user is None:
            missing = [
                name
                for name, value in (
                    ("guest_name", data.guest_name),
                    ("guest_email", data.guest_email),
                    ("guest_phone", data.guest_phone),
                )
                if not value
            ]
            if missing:
                raise ValidationException(
                    "Guest name, email and phone are required",
                    code="GUEST_DETAILS_REQUIRED",
                    details={"missing": missing},
                )

        gym = self._validate_gym(data.gym_id)
        quote = self._quote(data, gym)
        if data.total_price is not None and data.total_price != quote.total:
            self.logger.info(
                f"Ignoring client total {data.total_price} for gym {gym.id}; computed {quote.total}"
            )

        status = (
            BookingStatus.PENDING.value if data.request_to_book else BookingStatus.PENDING_PAYMENT.value
        )
        with self.transaction():
            booking = self.repository.create(
                booking_reference=self._generate_unique_reference(),
                booking_pin=generate_booking_pin(),
                gym_id=gym.id,
                package_id=data.package_id,
                package_variant_id=data.package_variant_id,
                user_id=profile.id if profile else None,
                start_date=data.start_date,
                end_date=data.end_date,
                discipline=data.discipline,
                experience_level=data.experience_level.value,
                notes=data.notes,
                guest_name=guest_name,
                guest_email=guest_email.lower() if guest_email else None,
                guest_phone=data.guest_phone,
                total_price=quote.total,
                platform_fee=calculate_platform_fee(quote.total),
                status=status,
                request_submitted_at=utc_now(),
            )

        self.log_operation(
            "booking_created",
            booking_id=booking.id,
            booking_reference=booking.booking_reference,
            total_price=str(quote.total),
            below_min_stay=quote.below_min_stay,
        )
        return BookingCreationResult(booking=booking, quote=quote)

    # Deferred payment

    @BaseService.measure_operation("create_payment_authorization")
    def create_payment_authorization(
        self, booking_id: str, actor: Optional[UserPrincipal] = None
    ) -> Dict[str, Any]:
        """Create (or reuse) the manual-capture intent for a booking."""
        booking = self.get_booking_or_404(booking_id)
        if actor and booking.user_id and booking.user_id != actor.id and not actor.is_admin:
            raise ForbiddenException()
        if booking.status not in AUTHORIZABLE_STATUSES:
            raise InvalidBookingTransitionException(
                "create payment for", booking.status, list(AUTHORIZABLE_STATUSES)
            )

        previous_id = booking.stripe_payment_intent_id
        if previous_id:
            try:
                existing = self.gateway.retrieve_authorization(previous_id)
            except PaymentGatewayException as e:
                self.logger.warning(f"Stored intent {previous_id} not retrievable, creating new: {e}")
            else:
                if existing.client_secret and existing.status != CANCELED:
                    return {
                        "client_secret": existing.client_secret,
                        "payment_intent_id": existing.id,
                        "reused": True,
                    }

        currency = (booking.gym.currency if booking.gym else None) or "usd"
        intent = self.gateway.create_authorization(
            to_minor_units(booking.total_price),
            currency,
            {
                "booking_id": booking.id,
                "gym_id": booking.gym_id,
                "booking_reference": booking.booking_reference or "",
            },
            idempotency_key=f"booking-{booking.id}-{previous_id or 'initial'}",
        )

        with self.transaction():
            self.repository.set_payment_intent_id(booking.id, intent.id)

        self.log_operation("payment_authorization_created", booking_id=booking.id, payment_intent_id=intent.id)
        return {"client_secret": intent.client_secret, "payment_intent_id": intent.id, "reused": False}

    @BaseService.measure_operation("confirm_authorization")
    def confirm_authorization(self, booking_id: str, payment_intent_id: str) -> Dict[str, Any]:
        """
        Record that the guest's card was authorized and hand the booking to the gym.

        Idempotent: a booking already awaiting approval (or confirmed) is
        reported as ``already_confirmed`` and no emails are re-sent.
        """
        booking = self.get_booking_or_404(booking_id)
        if booking.status in AWAITING_DECISION_STATUSES or booking.is_confirmed:
            self.logger.info(f"Booking {booking.id} already {booking.status}, skipping notify")
            return {"already_confirmed": True, "status": booking.status}

        if booking.stripe_payment_intent_id and booking.stripe_payment_intent_id != payment_intent_id:
            raise ValidationException(
                "Invalid payment intent",
                code="PAYMENT_INTENT_MISMATCH",
                details={"payment_intent_id": payment_intent_id},
            )
        if booking.status not in AUTHORIZABLE_STATUSES:
            raise InvalidBookingTransitionException(
                "confirm payment for", booking.status, list(AUTHORIZABLE_STATUSES)
            )

        with self.transaction():
            if not booking.stripe_payment_intent_id:
                self.repository.set_payment_intent_id(booking.id, payment_intent_id)
            changed = self.repository.update_status(
                booking.id,
                BookingStatus.AWAITING_APPROVAL.value,
                allowed_statuses=AUTHORIZABLE_STATUSES,
            )
        if not changed:
            return {"already_confirmed": True, "status": booking.status}

        self.log_operation("payment_authorized", booking_id=booking.id, payment_intent_id=payment_intent_id)
        admin_sent = self.notifications.send_admin_new_booking(booking)
        guest_sent = self.notifications.send_guest_request_received(booking)
        return {
            "already_confirmed": False,
            "status": BookingStatus.AWAITING_APPROVAL.value,
            "email_sent": admin_sent and guest_sent,
        }

    def confirm_captured_booking(
        self, booking: Booking, source: str, payment_method_id: Optional[str] = None
    ) -> tuple[bool, bool]:
        """
        Flip a captured booking to ``confirmed`` and email the guest.

        Returns ``(won, email_sent)``. Only the caller whose conditional
        update changed the row sends the confirmation email.
        """
        with self.transaction():
            won = self.repository.mark_confirmed_if_not_confirmed(booking.id)
        prometheus_metrics.record_confirmation(source, won)
        if not won:
            self.logger.info(f"Booking {booking.id} was confirmed concurrently ({source})")
            return False, False

        self.log_operation("booking_confirmed", booking_id=booking.id, source=source)
        email_sent = self.notifications.send_booking_confirmed(booking, payment_method_id)
        return True, email_sent

    @BaseService.measure_operation("capture_booking")
    def capture_booking(self, booking_id: str, actor: Optional[UserPrincipal]) -> Dict[str, Any]:
        """
        Accept an authorized booking: capture the payment, then confirm.

        A confirmed booking is a no-op success and the gateway is not called.
        Fatal gateway errors propagate and leave the booking untouched.
        """
        booking = self.get_booking_or_404(booking_id)
        self.ensure_can_manage(booking, actor)

        if booking.is_confirmed:
            prometheus_metrics.record_capture("skipped")
            return {
                "already_confirmed": True,
                "status": booking.status,
                "email_sent": False,
                "payment_intent_id": booking.stripe_payment_intent_id,
            }
        if booking.status not in CAPTURABLE_STATUSES:
            raise InvalidBookingTransitionException("capture", booking.status, list(CAPTURABLE_STATUSES))
        if not booking.stripe_payment_intent_id:
            raise ValidationException(
                "Booking has no payment authorization to capture", code="NO_PAYMENT_INTENT"
            )

        intent_id = booking.stripe_payment_intent_id
        try:
            intent = self.gateway.retrieve_authorization(intent_id)
            if intent.paid:
                self.logger.info(f"Intent {intent_id} already paid ({intent.status}), skipping capture")
                outcome = "already_captured"
            else:
                outcome = self.gateway.capture_authorization(intent_id).outcome
        except ServiceException:
            prometheus_metrics.record_capture("failed")
            raise
        prometheus_metrics.record_capture(outcome)

        won, email_sent = self.confirm_captured_booking(booking, "capture", intent.payment_method)
        return {
            "already_confirmed": not won,
            "status": BookingStatus.CONFIRMED.value,
            "email_sent": email_sent,
            "capture_outcome": outcome,
            "payment_intent_id": intent_id,
        }

    @BaseService.measure_operation("decline_booking")
    def decline_booking(self, booking_id: str, actor: Optional[UserPrincipal]) -> Dict[str, Any]:
        """Release the authorization (if any) and mark the booking declined."""
        booking = self.get_booking_or_404(booking_id)
        self.ensure_can_manage(booking, actor)

        if booking.is_confirmed:
            raise BusinessRuleException(
                "Cannot decline a confirmed booking", code="BOOKING_ALREADY_CONFIRMED"
            )
        if booking.status == BookingStatus.DECLINED.value:
            return {"already_declined": True, "status": booking.status}
        if booking.status not in DECLINABLE_STATUSES:
            raise InvalidBookingTransitionException("decline", booking.status, list(DECLINABLE_STATUSES))

        intent_id = booking.stripe_payment_intent_id
        if intent_id:
            intent = self.gateway.retrieve_authorization(intent_id)
            if intent.status not in (CANCELED, SUCCEEDED):
                self.gateway.cancel_authorization(intent_id)
            elif intent.status == SUCCEEDED:
                self.logger.warning(
                    f"Declining booking {booking.id} whose intent {intent_id} already succeeded"
                )

        with self.transaction():
            changed = self.repository.update_status(
                booking.id, BookingStatus.DECLINED.value, allowed_statuses=DECLINABLE_STATUSES
            )
        if not changed:
            self.db.refresh(booking)
            raise InvalidBookingTransitionException("decline", booking.status, list(DECLINABLE_STATUSES))

        self.log_operation("booking_declined", booking_id=booking.id, payment_intent_id=intent_id)
        return {"status": BookingStatus.DECLINED.value, "payment_intent_id": intent_id}

    # Request-to-book

    @BaseService.measure_operation("accept_request")
    def accept_request(self, booking_id: str, actor: Optional[UserPrincipal]) -> Dict[str, Any]:
        booking = self.get_booking_or_404(booking_id)
        self.ensure_can_manage(booking, actor)
        if booking.status != BookingStatus.PENDING.value:
            raise InvalidBookingTransitionException(
                "accept", booking.status, [BookingStatus.PENDING.value]
            )

        with self.transaction():
            changed = self.repository.update_status(
                booking.id,
                BookingStatus.GYM_CONFIRMED.value,
                allowed_statuses=[BookingStatus.PENDING.value],
                gym_confirmed_at=utc_now(),
            )
        if not changed:
            self.db.refresh(booking)
            raise InvalidBookingTransitionException("accept", booking.status, [BookingStatus.PENDING.value])

        email_sent = self.notifications.send_request_accepted(booking)
        return {"status": BookingStatus.GYM_CONFIRMED.value, "email_sent": email_sent}

    @BaseService.measure_operation("decline_request")
    def decline_request(
        self, booking_id: str, actor: Optional[UserPrincipal], reason: Optional[str] = None
    ) -> Dict[str, Any]:
        booking = self.get_booking_or_404(booking_id)
        self.ensure_can_manage(booking, actor)
        if booking.status != BookingStatus.PENDING.value:
            raise InvalidBookingTransitionException(
                "decline", booking.status, [BookingStatus.PENDING.value]
            )

        with self.transaction():
            changed = self.repository.update_status(
                booking.id,
                BookingStatus.DECLINED.value,
                allowed_statuses=[BookingStatus.PENDING.value],
            )
        if not changed:
            self.db.refresh(booking)
            raise InvalidBookingTransitionException("decline", booking.status, [BookingStatus.PENDING.value])

        email_sent = self.notifications.send_request_declined(booking, reason or DEFAULT_DECLINE_REASON)
        return {"status": BookingStatus.DECLINED.value, "email_sent": email_sent}

    # Guest access

    @BaseService.measure_operation("guest_access")
    def guest_access(self, booking_reference: str, pin: str) -> Booking:
        """Reference + PIN lookup for guests without an account."""
        booking = self.repository.get_by_reference(booking_reference.strip())
        if not booking:
            raise NotFoundException(
                "Booking not found. Please check your booking reference.", code="BOOKING_NOT_FOUND"
            )
        if not booking.booking_pin or not secrets.compare_digest(booking.booking_pin, pin.strip()):
            raise UnauthorizedException(
                "Invalid PIN. Please check your booking confirmation email.", code="INVALID_PIN"
            )
        return booking

    @BaseService.measure_operation("request_access")
    def request_access(self, email: str, booking_reference: str) -> str:
        """
        Email a fresh magic link when email and reference match a booking.

        The returned message is identical whether or not a booking matched.
        """
        booking = self.repository.find_by_reference_and_email(booking_reference.strip(), email)
        if not booking:
            self.logger.info("Access requested for unknown reference/email pair")
            return REQUEST_ACCESS_MESSAGE

        issued = self.access_token_service.issue(booking.id, email)
        self.notifications.send_magic_link(booking, issued)
        return REQUEST_ACCESS_MESSAGE
