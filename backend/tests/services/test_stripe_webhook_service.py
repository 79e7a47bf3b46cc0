import hashlib
import hmac
import json
import time
from typing import Any, Dict

from pydantic import SecretStr
import pytest

from app.core.config import settings
from app.core.exceptions import ServiceException, ValidationException
from app.models.booking import Booking, BookingStatus
from app.services.stripe_webhook_service import StripeWebhookService


def sign_payload(payload: str, secret: str = "whsec_test_combatbooking") -> str:
    timestamp = int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def intent_event(event_type: str, intent_id: str = "pi_test_123", **intent: Any) -> Dict[str, Any]:
    return {
        "id": "evt_test_1",
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": intent_id,
                "object": "payment_intent",
                "status": intent.pop("status", "succeeded"),
                "payment_method": intent.pop("payment_method", "pm_card_visa"),
                "created": 1_700_000_000,
                **intent,
            }
        },
    }


@pytest.fixture
def webhook_service(db, booking_service) -> StripeWebhookService:
    return StripeWebhookService(db, booking_service=booking_service)


class TestConstructEvent:
    def test_valid_signature(self, webhook_service):
        payload = json.dumps(intent_event("payment_intent.succeeded"))

        event = webhook_service.construct_event(payload.encode("utf-8"), sign_payload(payload))

        assert event["type"] == "payment_intent.succeeded"

    def test_missing_signature(self, webhook_service):
        with pytest.raises(ValidationException) as exc_info:
            webhook_service.construct_event(b"{}", None)
        assert exc_info.value.code == "MISSING_SIGNATURE"

    def test_bad_signature(self, webhook_service):
        payload = json.dumps(intent_event("payment_intent.succeeded"))

        with pytest.raises(ValidationException) as exc_info:
            webhook_service.construct_event(payload, sign_payload(payload, secret="whsec_wrong"))
        assert exc_info.value.code == "INVALID_SIGNATURE"
        assert exc_info.value.status_code == 400

    def test_secret_not_configured(self, webhook_service, monkeypatch):
        monkeypatch.setattr(settings, "stripe_webhook_secret", SecretStr(""))

        with pytest.raises(ServiceException) as exc_info:
            webhook_service.construct_event(b"{}", "t=1,v1=abc")
        assert exc_info.value.code == "WEBHOOK_NOT_CONFIGURED"
        assert exc_info.value.status_code == 500


class TestHandleEvent:
    def test_succeeded_confirms_booking(self, db, webhook_service, create_booking, emails_to):
        booking = create_booking()

        result = webhook_service.handle_event(intent_event("payment_intent.succeeded"))

        assert result == {"received": True, "confirmed": True, "email_sent": True}
        db.expire_all()
        assert db.get(Booking, booking.id).status == BookingStatus.CONFIRMED.value
        assert len(emails_to("guest@example.com")) == 1

    def test_redelivery_is_acknowledged_without_email(
        self, webhook_service, create_booking, sent_emails
    ):
        create_booking()
        event = intent_event("payment_intent.succeeded")
        webhook_service.handle_event(event)
        sent_emails.reset_mock()

        result = webhook_service.handle_event(event)

        assert result == {"received": True, "already_confirmed": True}
        sent_emails.assert_not_called()

    def test_unknown_intent(self, webhook_service, create_booking):
        create_booking()

        result = webhook_service.handle_event(
            intent_event("payment_intent.succeeded", intent_id="pi_unrelated")
        )

        assert result == {"received": True, "booking_not_found": True}

    @pytest.mark.parametrize("event_type", ["payment_intent.canceled", "payment_intent.payment_failed"])
    def test_not_completed_events_leave_booking_alone(
        self, db, webhook_service, create_booking, event_type
    ):
        booking = create_booking()

        result = webhook_service.handle_event(intent_event(event_type, status="canceled"))

        assert result == {"received": True, "handled": True}
        db.expire_all()
        assert db.get(Booking, booking.id).status == BookingStatus.AWAITING_APPROVAL.value

    def test_unhandled_type(self, webhook_service):
        result = webhook_service.handle_event({"type": "charge.refunded", "data": {"object": {}}})

        assert result == {"received": True, "handled": False}

    def test_signed_event_end_to_end(self, webhook_service, create_booking):
        create_booking()
        payload = json.dumps(intent_event("payment_intent.succeeded"))

        event = webhook_service.construct_event(payload, sign_payload(payload))
        result = webhook_service.handle_event(event)

        assert result["confirmed"] is True
