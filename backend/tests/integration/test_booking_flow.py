"""
End-to-end booking lifecycle over HTTP: create, authorize, confirm, capture,
then a late webhook for the same payment.
"""

import hashlib
import hmac
import json
import time

from app.models.booking import Booking, BookingStatus


def _confirmation_emails(emails_to, reference: str) -> list:
    return [
        email
        for email in emails_to("fighter.guest@example.com")
        if email["subject"] == f"Booking Confirmed - {reference}"
    ]


def test_guest_booking_lifecycle(
    db, client, gateway, gym, accommodation_package, stay_dates, owner_headers, emails_to
):
    start, end = stay_dates(nights=3)

    created = client.post(
        "/api/v1/bookings",
        json={
            "gym_id": gym.id,
            "package_id": accommodation_package.id,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "discipline": "Muay Thai",
            "guest_name": "Jordan Guest",
            "guest_email": "fighter.guest@example.com",
            "guest_phone": "+66 555 0199",
        },
    )
    assert created.status_code == 201
    booking = created.json()
    assert booking["total_price"] == 300.0
    assert booking["platform_fee"] == 45.0
    booking_id, reference = booking["id"], booking["booking_reference"]

    intent = client.post(f"/api/v1/bookings/{booking_id}/payment-intent")
    assert intent.status_code == 200
    intent_id = intent.json()["payment_intent_id"]
    gateway.create_authorization.assert_called_once()

    confirmed = client.post(
        f"/api/v1/bookings/{booking_id}/confirm-payment", json={"payment_intent": intent_id}
    )
    assert confirmed.json()["status"] == BookingStatus.AWAITING_APPROVAL.value
    assert len(emails_to("admin@combatbooking.test")) == 1
    assert _confirmation_emails(emails_to, reference) == []

    captured = client.post(f"/api/v1/bookings/{booking_id}/capture", headers=owner_headers)
    assert captured.status_code == 200
    assert captured.json()["status"] == BookingStatus.CONFIRMED.value
    assert captured.json()["already_confirmed"] is False
    gateway.capture_authorization.assert_called_once_with(intent_id)

    payload = json.dumps(
        {
            "id": "evt_flow_1",
            "type": "payment_intent.succeeded",
            "data": {"object": {"id": intent_id, "status": "succeeded"}},
        }
    )
    timestamp = int(time.time())
    signature = hmac.new(
        b"whsec_test_combatbooking", f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256
    ).hexdigest()
    webhook = client.post(
        "/api/v1/webhooks/payments",
        content=payload,
        headers={"stripe-signature": f"t={timestamp},v1={signature}"},
    )
    assert webhook.json() == {"received": True, "already_confirmed": True}

    db.expire_all()
    stored = db.get(Booking, booking_id)
    assert stored.status == BookingStatus.CONFIRMED.value
    assert stored.payment_captured_at is not None
    assert len(_confirmation_emails(emails_to, reference)) == 1
