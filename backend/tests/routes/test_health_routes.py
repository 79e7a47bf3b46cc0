from fastapi.testclient import TestClient


def test_health_reports_providers(client: TestClient) -> None:
    res = client.get("/api/v1/health")

    assert res.status_code == 200
    payload = res.json()
    assert payload["status"] == "healthy"
    assert payload["service"] == "combatbooking-api"
    assert payload["database"] is True
    assert payload["payments_configured"] is True
    assert payload["email_configured"] is True
    assert res.headers["cache-control"] == "no-store"


def test_root_health_alias(client: TestClient) -> None:
    assert client.get("/health").json()["status"] == "healthy"


def test_metrics_exposes_service_counters(client: TestClient, create_booking, owner_headers) -> None:
    booking = create_booking()
    client.post(f"/api/v1/bookings/{booking.id}/capture", headers=owner_headers)

    res = client.get("/metrics")

    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/plain")
    assert "combatbooking_" in res.text
