"""StripePaymentGateway against a patched Stripe SDK."""

from types import SimpleNamespace
from unittest.mock import patch

import pytest
import stripe

from app.core.exceptions import PaymentGatewayException, PaymentGatewayUnavailableException
from app.services.payment_gateway import (
    IntentSnapshot,
    StripePaymentGateway,
    build_search_query,
    select_payment_intent,
    to_snapshot,
)


@pytest.fixture
def stripe_gateway() -> StripePaymentGateway:
    return StripePaymentGateway(api_key="sk_test_gateway")


def _intent(**overrides):
    data = {
        "id": "pi_123",
        "status": "requires_capture",
        "amount": 30000,
        "currency": "usd",
        "created": 1_700_000_000,
        "payment_method": "pm_123",
        "client_secret": "pi_123_secret",
        "metadata": {"booking_id": "b1"},
    }
    data.update(overrides)
    return data


class TestCreateAuthorization:
    def test_manual_capture_with_metadata(self, stripe_gateway):
        with patch("stripe.PaymentIntent.create", return_value=_intent()) as create:
            snapshot = stripe_gateway.create_authorization(
                30000, "USD", {"booking_id": "b1"}, idempotency_key="booking-b1-initial"
            )

        create.assert_called_once_with(
            amount=30000,
            currency="usd",
            capture_method="manual",
            payment_method_types=["card"],
            metadata={"booking_id": "b1"},
            idempotency_key="booking-b1-initial",
        )
        assert snapshot.id == "pi_123"
        assert snapshot.client_secret == "pi_123_secret"

    def test_card_error_is_fatal(self, stripe_gateway):
        error = stripe.CardError("Your card was declined.", None, "card_declined")
        with patch("stripe.PaymentIntent.create", side_effect=error):
            with pytest.raises(PaymentGatewayException) as exc_info:
                stripe_gateway.create_authorization(100, "usd", {})
        assert exc_info.value.status_code == 502


class TestCapture:
    def test_captured(self, stripe_gateway):
        with patch("stripe.PaymentIntent.capture", return_value=_intent(status="succeeded")):
            result = stripe_gateway.capture_authorization("pi_123")

        assert result.outcome == "captured"
        assert not result.already_captured

    @pytest.mark.parametrize(
        "code,message",
        [
            ("payment_intent_already_captured", "Already captured"),
            ("payment_intent_unexpected_state", "This PaymentIntent has already been captured."),
        ],
    )
    def test_already_captured_is_success(self, stripe_gateway, code, message):
        error = stripe.InvalidRequestError(message, None, code=code)
        with patch("stripe.PaymentIntent.capture", side_effect=error):
            result = stripe_gateway.capture_authorization("pi_123")

        assert result.outcome == "already_captured"

    def test_expired_authorization_is_fatal(self, stripe_gateway):
        error = stripe.InvalidRequestError(
            "This PaymentIntent could not be captured because it has a status of canceled.",
            None,
            code="payment_intent_unexpected_state",
        )
        with patch("stripe.PaymentIntent.capture", side_effect=error):
            with pytest.raises(PaymentGatewayException):
                stripe_gateway.capture_authorization("pi_123")

    def test_network_failure_is_unavailable(self, stripe_gateway):
        with patch("stripe.PaymentIntent.capture", side_effect=stripe.APIConnectionError("boom")):
            with pytest.raises(PaymentGatewayUnavailableException) as exc_info:
                stripe_gateway.capture_authorization("pi_123")
        assert exc_info.value.status_code == 503


def test_unconfigured_gateway_fails_closed():
    gateway = StripePaymentGateway(api_key="")

    with patch("stripe.PaymentIntent.retrieve") as retrieve:
        with pytest.raises(PaymentGatewayUnavailableException):
            gateway.retrieve_authorization("pi_123")
    retrieve.assert_not_called()
    assert gateway.get_card_details("pm_123") is None


def test_search_by_reference_and_id(stripe_gateway):
    result = {"data": [_intent(id="pi_a"), _intent(id="pi_b", status="succeeded")]}
    with patch("stripe.PaymentIntent.search", return_value=result) as search:
        intents = stripe_gateway.search_authorizations("BK-ABC", "b1")

    search.assert_called_once_with(
        query="metadata['booking_reference']:'BK-ABC' OR metadata['booking_id']:'b1'", limit=10
    )
    assert [intent.id for intent in intents] == ["pi_a", "pi_b"]


def test_build_search_query_without_reference():
    assert build_search_query(None, "b1") == "metadata['booking_id']:'b1'"


def test_card_details(stripe_gateway):
    payment_method = SimpleNamespace(card=SimpleNamespace(brand="visa", last4="4242"))
    with patch("stripe.PaymentMethod.retrieve", return_value=payment_method):
        card = stripe_gateway.get_card_details("pm_123")

    assert card.brand == "Visa"
    assert card.last4 == "4242"


def test_card_details_swallow_errors(stripe_gateway):
    with patch("stripe.PaymentMethod.retrieve", side_effect=stripe.InvalidRequestError("nope", None)):
        assert stripe_gateway.get_card_details("pm_123") is None


def test_to_snapshot_expands_payment_method_object():
    snapshot = to_snapshot(_intent(payment_method={"id": "pm_expanded"}))

    assert snapshot.payment_method == "pm_expanded"
    assert snapshot.metadata == {"booking_id": "b1"}


def test_to_snapshot_reads_captured_charge():
    captured = to_snapshot(
        _intent(latest_charge={"id": "ch_1", "status": "succeeded", "captured": True})
    )
    unexpanded = to_snapshot(_intent(latest_charge="ch_1"))

    assert captured.status == "requires_capture"
    assert captured.paid is True
    assert unexpanded.paid is False


def test_retrieve_expands_latest_charge(stripe_gateway):
    with patch("stripe.PaymentIntent.retrieve", return_value=_intent()) as retrieve:
        snapshot = stripe_gateway.retrieve_authorization("pi_123")

    retrieve.assert_called_once_with("pi_123", expand=["latest_charge"])
    assert snapshot.id == "pi_123"


class TestSelectPaymentIntent:
    def test_empty(self):
        assert select_payment_intent([]) is None

    def test_succeeded_wins_over_newer(self):
        old_succeeded = IntentSnapshot(id="pi_old", status="succeeded", created=100)
        newer_pending = IntentSnapshot(id="pi_new", status="requires_capture", created=200)

        assert select_payment_intent([newer_pending, old_succeeded]).id == "pi_old"

    def test_most_recent_succeeded(self):
        first = IntentSnapshot(id="pi_1", status="succeeded", created=100)
        second = IntentSnapshot(id="pi_2", status="succeeded", created=300)

        assert select_payment_intent([first, second]).id == "pi_2"

    def test_most_recent_when_none_succeeded(self):
        first = IntentSnapshot(id="pi_1", status="canceled", created=100)
        second = IntentSnapshot(id="pi_2", status="requires_capture", created=300)

        assert select_payment_intent([first, second]).id == "pi_2"

    def test_captured_charge_counts_as_paid(self):
        abandoned = IntentSnapshot(id="pi_1", status="canceled", created=300)
        captured = IntentSnapshot(
            id="pi_2", status="requires_capture", created=100, charge_captured=True
        )

        assert select_payment_intent([abandoned, captured]).id == "pi_2"
