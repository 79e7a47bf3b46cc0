# backend/tests/routes/test_bookings_routes.py
"""
HTTP tests for /api/v1/bookings.

Error bodies use the problem-details envelope from app.errors:
``{"type", "title", "status", "detail", "instance", "code"}``.
"""

from app.core.exceptions import PaymentGatewayException, PaymentGatewayUnavailableException
from app.models.booking import Booking, BookingStatus

BASE = "/api/v1/bookings"


def _status(db, booking_id: str) -> str:
    db.expire_all()
    return db.get(Booking, booking_id).status


class TestCreateBooking:
    def test_guest_booking(self, client, gym, training_package, stay_dates):
        start, end = stay_dates(nights=3)

        response = client.post(
            BASE,
            json={
                "gym_id": gym.id,
                "package_id": training_package.id,
                "start_date": start.isoformat(),
                "end_date": end.isoformat(),
                "discipline": "Muay Thai",
                "guest_name": "Alex Guest",
                "guest_email": "alex@example.com",
                "guest_phone": "+66 555 0100",
                "total_price": 1,
            },
        )

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["total_price"] == 400.0
        assert body["platform_fee"] == 60.0
        assert body["status"] == "pending_payment"
        assert len(body["booking_pin"]) == 6
        assert body["booking_reference"].startswith("BK-")
        assert body["duration_label"] == "4 days"
        assert body["below_min_stay"] is False

    def test_unknown_fields_rejected(self, client, gym, stay_dates):
        start, end = stay_dates()

        response = client.post(
            BASE,
            json={
                "gym_id": gym.id,
                "start_date": start.isoformat(),
                "end_date": end.isoformat(),
                "discipline": "BJJ",
                "platform_fee": 0,
            },
        )

        assert response.status_code == 422

    def test_validation_error_shape(self, client, gym, stay_dates):
        start, _ = stay_dates()

        response = client.post(
            BASE,
            json={
                "gym_id": gym.id,
                "start_date": start.isoformat(),
                "end_date": start.isoformat(),
                "discipline": "BJJ",
                "guest_name": "A",
                "guest_email": "a@example.com",
                "guest_phone": "1",
            },
        )

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_DATE_RANGE"


class TestGetBooking:
    def test_requires_auth(self, client, create_booking):
        booking = create_booking()

        assert client.get(f"{BASE}/{booking.id}").status_code == 401

    def test_owner_sees_booking_without_pin(self, client, create_booking, owner_headers):
        booking = create_booking()

        response = client.get(f"{BASE}/{booking.id}", headers=owner_headers)

        assert response.status_code == 200
        assert response.json()["booking"]["id"] == booking.id
        assert "booking_pin" not in response.json()["booking"]

    def test_other_owner_forbidden(self, client, create_booking, other_owner, headers_for):
        booking = create_booking()

        response = client.get(f"{BASE}/{booking.id}", headers=headers_for(other_owner))

        assert response.status_code == 403

    def test_not_found(self, client, admin_headers):
        response = client.get(f"{BASE}/01HNOSUCHBOOKING0000000000", headers=admin_headers)

        assert response.status_code == 404
        assert response.json()["code"] == "BOOKING_NOT_FOUND"


class TestGuestAccess:
    def test_reference_and_pin(self, client, create_booking):
        booking = create_booking()

        response = client.post(
            f"{BASE}/guest-access",
            json={"booking_reference": booking.booking_reference, "booking_pin": booking.booking_pin},
        )

        assert response.status_code == 200
        assert response.json()["booking"]["id"] == booking.id
        assert "booking_pin" not in response.json()["booking"]

    def test_wrong_pin(self, client, create_booking):
        booking = create_booking(booking_pin="111111")

        response = client.post(
            f"{BASE}/guest-access",
            json={"booking_reference": booking.booking_reference, "booking_pin": "222222"},
        )

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_PIN"

    def test_request_access_does_not_enumerate(self, client, create_booking, sent_emails):
        booking = create_booking()

        matched = client.post(
            f"{BASE}/request-access",
            json={"email": "guest@example.com", "booking_reference": booking.booking_reference},
        )
        unmatched = client.post(
            f"{BASE}/request-access",
            json={"email": "nobody@example.com", "booking_reference": "BK-ZZZ"},
        )

        assert matched.status_code == unmatched.status_code == 200
        assert matched.json() == unmatched.json()
        assert sent_emails.call_count == 1


class TestAccessTokens:
    def test_issue_and_resolve(self, client, create_booking):
        booking = create_booking()

        issued = client.post(
            f"{BASE}/{booking.id}/access-token",
            json={"email": "Guest@Example.com", "expiresInDays": 30},
        )
        assert issued.status_code == 200
        token = issued.json()["token"]
        assert issued.json()["magic_link"].endswith(f"/bookings/access/{token}")

        resolved = client.get(f"{BASE}/access/{token}")

        assert resolved.status_code == 200
        assert resolved.json()["booking_id"] == booking.id
        assert resolved.json()["email"] == "guest@example.com"

    def test_email_mismatch_forbidden(self, client, create_booking):
        booking = create_booking()

        response = client.post(
            f"{BASE}/{booking.id}/access-token", json={"email": "other@example.com"}
        )

        assert response.status_code == 403

    def test_expired_and_unknown_look_identical(self, client, create_booking):
        booking = create_booking()
        token = client.post(
            f"{BASE}/{booking.id}/access-token",
            json={"email": "guest@example.com", "expiresInDays": 0},
        ).json()["token"]

        expired = client.get(f"{BASE}/access/{token}")
        unknown = client.get(f"{BASE}/access/{'f' * 64}")

        assert expired.status_code == unknown.status_code == 404
        for response in (expired, unknown):
            assert response.json()["detail"] == "Invalid or expired link"
            assert response.json()["code"] == "INVALID_ACCESS_LINK"

    def test_short_token_is_bad_request(self, client):
        assert client.get(f"{BASE}/access/abc").status_code == 400


class TestPaymentFlow:
    def test_payment_intent(self, client, create_booking):
        booking = create_booking(BookingStatus.PENDING_PAYMENT.value, payment_intent_id=None)

        response = client.post(f"{BASE}/{booking.id}/payment-intent")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "client_secret": "pi_test_123_secret_test",
            "payment_intent_id": "pi_test_123",
            "reused": False,
        }

    def test_payment_unavailable_is_masked(self, client, gateway, create_booking):
        booking = create_booking(BookingStatus.PENDING_PAYMENT.value, payment_intent_id=None)
        gateway.create_authorization.side_effect = PaymentGatewayUnavailableException(
            details={"reason": "STRIPE_SECRET_KEY is not configured"}
        )

        response = client.post(f"{BASE}/{booking.id}/payment-intent")

        assert response.status_code == 503
        assert response.json()["detail"] == "Payment system unavailable"
        assert "STRIPE_SECRET_KEY" not in response.text

    def test_confirm_payment(self, db, client, create_booking, emails_to):
        booking = create_booking(BookingStatus.PENDING_PAYMENT.value)

        response = client.post(
            f"{BASE}/{booking.id}/confirm-payment", json={"payment_intent": "pi_test_123"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "already_confirmed": False,
            "status": "awaiting_approval",
            "email_sent": True,
        }
        assert _status(db, booking.id) == BookingStatus.AWAITING_APPROVAL.value
        assert len(emails_to("admin@combatbooking.test")) == 1

    def test_confirm_payment_mismatch(self, client, create_booking):
        booking = create_booking(BookingStatus.PENDING_PAYMENT.value)

        response = client.post(
            f"{BASE}/{booking.id}/confirm-payment", json={"payment_intent_id": "pi_other"}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "PAYMENT_INTENT_MISMATCH"


class TestOwnerActions:
    def test_capture(self, db, client, create_booking, owner_headers):
        booking = create_booking()

        response = client.post(f"{BASE}/{booking.id}/capture", headers=owner_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "confirmed"
        assert body["already_confirmed"] is False
        assert body["email_sent"] is True
        assert _status(db, booking.id) == BookingStatus.CONFIRMED.value

        again = client.post(f"{BASE}/{booking.id}/capture", headers=owner_headers)
        assert again.status_code == 200
        assert again.json()["already_confirmed"] is True

    def test_capture_requires_manager(self, client, create_booking, fighter_headers):
        booking = create_booking()

        response = client.post(f"{BASE}/{booking.id}/capture", headers=fighter_headers)

        assert response.status_code == 403

    def test_fighter_denied_before_booking_lookup(self, client, fighter_headers):
        for action in ("capture", "decline", "accept-request", "decline-request"):
            response = client.post(f"{BASE}/does-not-exist/{action}", headers=fighter_headers)

            assert response.status_code == 403, action
            assert response.json()["detail"] == "Forbidden"
            assert response.json()["code"] == "FORBIDDEN"

    def test_role_and_ownership_denials_look_identical(
        self, client, create_booking, fighter_headers, other_owner, headers_for
    ):
        booking = create_booking()

        by_role = client.post(f"{BASE}/{booking.id}/capture", headers=fighter_headers)
        by_ownership = client.post(f"{BASE}/{booking.id}/capture", headers=headers_for(other_owner))

        assert by_role.status_code == by_ownership.status_code == 403
        assert by_role.json() == by_ownership.json()

    def test_capture_gateway_failure(self, db, client, gateway, create_booking, owner_headers):
        booking = create_booking()
        gateway.capture_authorization.side_effect = PaymentGatewayException(
            "Failed to capture payment: authorization expired"
        )

        response = client.post(f"{BASE}/{booking.id}/capture", headers=owner_headers)

        assert response.status_code == 502
        assert "authorization expired" in response.json()["detail"]
        assert _status(db, booking.id) == BookingStatus.AWAITING_APPROVAL.value

    def test_capture_unexpected_error(self, client, gateway, create_booking, admin_headers):
        booking = create_booking()
        gateway.retrieve_authorization.side_effect = RuntimeError("kaboom")

        response = client.post(f"{BASE}/{booking.id}/capture", headers=admin_headers)

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to capture payment: kaboom"

    def test_decline(self, db, client, gateway, create_booking, owner_headers):
        booking = create_booking()

        response = client.post(f"{BASE}/{booking.id}/decline", headers=owner_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "declined"
        gateway.cancel_authorization.assert_called_once_with("pi_test_123")

    def test_decline_confirmed_is_unprocessable(self, client, create_booking, owner_headers):
        booking = create_booking(BookingStatus.CONFIRMED.value)

        response = client.post(f"{BASE}/{booking.id}/decline", headers=owner_headers)

        assert response.status_code == 422

    def test_accept_request(self, db, client, create_booking, owner_headers):
        booking = create_booking(BookingStatus.PENDING.value, payment_intent_id=None)

        response = client.post(f"{BASE}/{booking.id}/accept-request", headers=owner_headers)

        assert response.status_code == 200
        assert response.json() == {"success": True, "status": "gym_confirmed", "email_sent": True}

    def test_decline_request_with_reason(self, client, create_booking, owner_headers, emails_to):
        booking = create_booking(BookingStatus.PENDING.value, payment_intent_id=None)

        response = client.post(
            f"{BASE}/{booking.id}/decline-request",
            json={"reason": "Camp is full that week"},
            headers=owner_headers,
        )

        assert response.status_code == 200
        assert "Camp is full that week" in emails_to("guest@example.com")[0]["html"]

    def test_decline_request_without_body(self, client, create_booking, owner_headers):
        booking = create_booking(BookingStatus.PENDING.value, payment_intent_id=None)

        response = client.post(f"{BASE}/{booking.id}/decline-request", headers=owner_headers)

        assert response.status_code == 200
        assert response.json()["status"] == "declined"


class TestOperatorEndpoints:
    def test_notify_roles(self, client, create_booking, fighter_headers, service_headers):
        booking = create_booking()

        denied = client.post(f"{BASE}/{booking.id}/notify", headers=fighter_headers)
        allowed = client.post(f"{BASE}/{booking.id}/notify", headers=service_headers)

        assert denied.status_code == 403
        assert denied.json()["detail"] == "Forbidden"
        assert allowed.status_code == 200
        assert allowed.json() == {"success": True, "admin_email_sent": True, "guest_email_sent": True}

    def test_notify_skips_confirmed(self, client, create_booking, admin_headers):
        booking = create_booking(BookingStatus.CONFIRMED.value)

        response = client.post(f"{BASE}/{booking.id}/notify", headers=admin_headers)

        assert response.json()["skipped"] is True

    def test_resend_confirmation_is_admin_only(self, client, create_booking, owner_headers):
        booking = create_booking(BookingStatus.CONFIRMED.value)

        response = client.post(f"{BASE}/{booking.id}/resend-confirmation", headers=owner_headers)

        assert response.status_code == 403
        assert response.json()["detail"] == "Forbidden"

    def test_resend_confirmation(self, client, create_booking, admin_headers):
        booking = create_booking(BookingStatus.CONFIRMED.value)

        response = client.post(f"{BASE}/{booking.id}/resend-confirmation", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {"success": True, "status": "confirmed", "email_sent": True}

    def test_resend_confirmation_requires_confirmed(self, client, create_booking, admin_headers):
        booking = create_booking()

        response = client.post(f"{BASE}/{booking.id}/resend-confirmation", headers=admin_headers)

        assert response.status_code == 400

    def test_sync_stripe(self, db, client, gateway, create_booking, admin_headers, make_intent):
        booking = create_booking()
        gateway.retrieve_authorization.return_value = make_intent(status="succeeded")

        response = client.post(f"{BASE}/{booking.id}/sync-stripe", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["synced"] is True
        assert response.json()["previous_status"] == "awaiting_approval"
        assert _status(db, booking.id) == BookingStatus.CONFIRMED.value

    def test_sync_stripe_nothing_found(self, client, create_booking, admin_headers):
        booking = create_booking(payment_intent_id=None)

        response = client.post(f"{BASE}/{booking.id}/sync-stripe", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {
            "success": False,
            "synced": False,
            "message": "No payment intent found for this booking",
            "searched_intents": 0,
        }
