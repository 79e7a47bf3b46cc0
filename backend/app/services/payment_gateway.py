"""
Stripe payment gateway adapter for the CombatBooking platform.

Wraps the handful of PaymentIntent operations the booking lifecycle needs:
manual-capture authorization, capture, cancel, retrieve, metadata search and
card lookup. Results come back as small dataclasses so the state machine
never handles raw Stripe objects.

Failure semantics:
- unconfigured key or network failure -> PaymentGatewayUnavailableException
- provider rejection (declined, expired, unknown intent) -> PaymentGatewayException
- capture of an already captured intent -> CaptureResult(outcome="already_captured")
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Dict, Iterable, List, Optional

import stripe

from ..core.config import settings
from ..core.constants import STRIPE_ALREADY_CAPTURED_CODE, STRIPE_SEARCH_LIMIT
from ..core.exceptions import PaymentGatewayException, PaymentGatewayUnavailableException

logger = logging.getLogger(__name__)

SUCCEEDED = "succeeded"
CANCELED = "canceled"
REQUIRES_CAPTURE = "requires_capture"


@dataclass(frozen=True)
class IntentSnapshot:
    id: str
    status: str
    amount: Optional[int] = None
    currency: Optional[str] = None
    created: int = 0
    payment_method: Optional[str] = None
    client_secret: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    charge_captured: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCEEDED

    @property
    def paid(self) -> bool:
        """Succeeded, or its latest charge was captured outside the booking flow."""
        return self.succeeded or self.charge_captured


@dataclass(frozen=True)
class CaptureResult:
    intent_id: str
    outcome: str  # "captured" | "already_captured"

    @property
    def already_captured(self) -> bool:
        return self.outcome == "already_captured"


@dataclass(frozen=True)
class CardDetails:
    brand: str
    last4: str


def get_field(obj: Any, name: str, default: Any = None) -> Any:
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)


def charge_was_captured(charge: Any) -> bool:
    """Only an expanded charge object can be inspected; a bare id says nothing."""
    if charge is None or isinstance(charge, str):
        return False
    return get_field(charge, "status") == SUCCEEDED and get_field(charge, "captured") is True


def to_snapshot(intent: Any) -> IntentSnapshot:
    payment_method = get_field(intent, "payment_method")
    if payment_method is not None and not isinstance(payment_method, str):
        payment_method = get_field(payment_method, "id")
    metadata = get_field(intent, "metadata") or {}
    return IntentSnapshot(
        id=get_field(intent, "id"),
        status=get_field(intent, "status"),
        amount=get_field(intent, "amount"),
        currency=get_field(intent, "currency"),
        created=int(get_field(intent, "created") or 0),
        payment_method=payment_method,
        client_secret=get_field(intent, "client_secret"),
        metadata={str(k): str(v) for k, v in dict(metadata).items()},
        charge_captured=charge_was_captured(get_field(intent, "latest_charge")),
    )


def select_payment_intent(candidates: Iterable[IntentSnapshot]) -> Optional[IntentSnapshot]:
    """
    Pick the intent a booking should be reconciled against.

    Paid intents (succeeded, or with a captured charge) win; among them
    (or, when none is paid, among all candidates) the most recently created
    one is chosen.
    """
    intents = list(candidates)
    if not intents:
        return None
    paid = [intent for intent in intents if intent.paid]
    pool = paid or intents
    return max(pool, key=lambda intent: intent.created)


def is_already_captured_error(error: stripe.StripeError) -> bool:
    code = getattr(error, "code", None)
    if code == STRIPE_ALREADY_CAPTURED_CODE:
        return True
    message = (getattr(error, "user_message", None) or str(error) or "").lower()
    return code == "payment_intent_unexpected_state" and (
        "already been captured" in message or "status of succeeded" in message
    )


def build_search_query(booking_reference: Optional[str], booking_id: str) -> str:
    clauses = []
    if booking_reference:
        clauses.append(f"metadata['booking_reference']:'{booking_reference}'")
    clauses.append(f"metadata['booking_id']:'{booking_id}'")
    return " OR ".join(clauses)


class StripePaymentGateway:
    """
    Thin adapter over the Stripe SDK.

    The API key is configured once at construction; every call fails closed
    with PaymentGatewayUnavailableException when no key is present.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        timeout_seconds: Optional[int] = None,
        max_network_retries: Optional[int] = None,
    ):
        self.logger = logging.getLogger(self.__class__.__name__)
        if api_key is None:
            api_key = settings.stripe_secret_key.get_secret_value()
        self.configured = bool(api_key)

        if self.configured:
            stripe.api_key = api_key
            stripe.max_network_retries = (
                settings.stripe_max_network_retries
                if max_network_retries is None
                else max_network_retries
            )
            try:
                stripe.default_http_client = stripe.http_client.RequestsClient(
                    timeout=timeout_seconds or settings.stripe_timeout_seconds
                )
            except (AttributeError, ImportError) as exc:
                # Falls back to the SDK's default client
                self.logger.debug(f"Stripe HTTP client customization unavailable: {exc}")
        else:
            self.logger.warning("Stripe secret key not configured - payment operations disabled")

    def _check_configured(self) -> None:
        if not self.configured:
            raise PaymentGatewayUnavailableException(
                details={"reason": "STRIPE_SECRET_KEY is not configured"}
            )

    def _translate(self, action: str, error: stripe.StripeError) -> Exception:
        if isinstance(error, (stripe.APIConnectionError, stripe.AuthenticationError)):
            self.logger.error(f"Stripe unavailable while trying to {action}: {error}")
            return PaymentGatewayUnavailableException(details={"reason": str(error)})
        self.logger.error(f"Stripe error while trying to {action}: {error}")
        return PaymentGatewayException(
            f"Failed to {action}: {getattr(error, 'user_message', None) or str(error)}",
            details={"stripe_code": getattr(error, "code", None)},
        )

    def create_authorization(
        self,
        amount_cents: int,
        currency: str,
        metadata: Dict[str, str],
        *,
        idempotency_key: Optional[str] = None,
    ) -> IntentSnapshot:
        """Authorize now, capture later (capture_method=manual)."""
        self._check_configured()
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount_cents,
                currency=currency.lower(),
                capture_method="manual",
                payment_method_types=["card"],
                metadata=metadata,
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as e:
            raise self._translate("create payment authorization", e)
        snapshot = to_snapshot(intent)
        self.logger.info(
            f"Created payment intent {snapshot.id} for {amount_cents} {currency.lower()}",
            extra={"payment_intent_id": snapshot.id, "metadata": metadata},
        )
        return snapshot

    def capture_authorization(self, intent_id: str) -> CaptureResult:
        self._check_configured()
        try:
            stripe.PaymentIntent.capture(intent_id)
        except stripe.StripeError as e:
            if is_already_captured_error(e):
                self.logger.info(f"Payment intent {intent_id} was already captured")
                return CaptureResult(intent_id=intent_id, outcome="already_captured")
            raise self._translate("capture payment", e)
        self.logger.info(f"Captured payment intent {intent_id}")
        return CaptureResult(intent_id=intent_id, outcome="captured")

    def cancel_authorization(self, intent_id: str) -> IntentSnapshot:
        self._check_configured()
        try:
            intent = stripe.PaymentIntent.cancel(intent_id)
        except stripe.StripeError as e:
            raise self._translate("cancel payment intent", e)
        self.logger.info(f"Canceled payment intent {intent_id}")
        return to_snapshot(intent)

    def retrieve_authorization(self, intent_id: str) -> IntentSnapshot:
        self._check_configured()
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id, expand=["latest_charge"])
        except stripe.StripeError as e:
            raise self._translate("retrieve payment intent", e)
        return to_snapshot(intent)

    def search_authorizations(
        self, booking_reference: Optional[str], booking_id: str
    ) -> List[IntentSnapshot]:
        """Find intents whose metadata points at this booking."""
        self._check_configured()
        query = build_search_query(booking_reference, booking_id)
        try:
            result = stripe.PaymentIntent.search(query=query, limit=STRIPE_SEARCH_LIMIT)
        except stripe.StripeError as e:
            raise self._translate("search payment intents", e)
        data = get_field(result, "data") or []
        self.logger.info(f"Stripe search '{query}' returned {len(data)} intent(s)")
        return [to_snapshot(intent) for intent in data]

    def get_card_details(self, payment_method_id: Optional[str]) -> Optional[CardDetails]:
        """Card brand/last4 for email personalization; never raises."""
        if not payment_method_id or not self.configured:
            return None
        try:
            payment_method = stripe.PaymentMethod.retrieve(payment_method_id)
        except stripe.StripeError as e:
            self.logger.warning(f"Could not fetch payment method {payment_method_id}: {e}")
            return None
        card = get_field(payment_method, "card")
        if not card:
            return None
        brand = str(get_field(card, "brand") or "")
        return CardDetails(brand=brand.capitalize(), last4=str(get_field(card, "last4") or ""))
