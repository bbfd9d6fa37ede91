import logging

import pytest
from rest_framework.test import APIClient

from accounts import api as accounts_api
from accounts.models import User
from accounts.services.identity import FirebaseIdentity
from bookings import api as bookings_api
from core.exceptions import UpstreamError
from payments import api as payments_api
from payments.models import Payment
from payments.services.invoicing import StubInvoicingClient


class DownInvoicing:
    def issue_invoice(self, booking):
        raise UpstreamError("Stripe is unavailable.")


def register(client, uid, role):
    response = client.post(
        "/api/auth/register/",
        {"id_token": f"token-{uid}", "role": role, "first_name": uid.title()},
        format="json",
    )
    assert response.status_code == 201
    return response.data["access"]


def authed(access_token):
    client = APIClient()
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {access_token}")
    return client


@pytest.mark.django_db
def test_end_to_end_booking_flow(monkeypatch, caplog):
    monkeypatch.setattr(
        accounts_api,
        "verify_id_token",
        lambda token: FirebaseIdentity(uid=token.removeprefix("token-"), email=f"{token.removeprefix('token-')}@example.com"),
    )
    anonymous = APIClient()

    # Register a lender and a renter
    lender = authed(register(anonymous, "lena", User.LENDER))
    renter = authed(register(anonymous, "rory", User.RENTER))

    # Lender lists a storage location
    location_response = lender.post(
        "/api/storage-locations/",
        {
            "name": "Campus Garage",
            "lat": 40.42,
            "lng": -86.91,
            "storage_length": 6,
            "storage_width": 3,
            "storage_height": 2.5,
            "price": 50000,
        },
        format="json",
    )
    assert location_response.status_code == 201
    location_id = location_response.data["id"]

    # Renter books [Jun 1, Jun 10)
    create_response = renter.post(
        "/api/bookings/",
        {"storage_location": location_id, "start_date": "2025-06-01", "end_date": "2025-06-10", "total_price": 50000},
        format="json",
    )
    assert create_response.status_code == 201
    booking = create_response.json()["data"]
    assert booking["status"] == "PENDING"
    assert booking["payment"]["status"] == Payment.DRAFT
    booking_id = booking["id"]
    payment_id = booking["payment"]["id"]

    # Overlapping request is rejected
    conflict_response = renter.post(
        "/api/bookings/",
        {"storage_location": location_id, "start_date": "2025-06-05", "end_date": "2025-06-15", "total_price": 30000},
        format="json",
    )
    assert conflict_response.status_code == 409

    availability = renter.get(
        "/api/availability/",
        {"storage_location": location_id, "start_date": "2025-06-10", "end_date": "2025-06-15"},
    )
    assert availability.json()["data"]["available"] is True

    # Confirm while invoicing is down: booking stays confirmed, payment stays draft
    monkeypatch.setattr(bookings_api, "get_invoicing_client", lambda: DownInvoicing())
    with caplog.at_level(logging.ERROR):
        confirm_response = lender.put(f"/api/bookings/{booking_id}/confirm/")
    assert confirm_response.status_code == 200
    confirmed = confirm_response.json()["data"]
    assert confirmed["status"] == "CONFIRMED"
    assert confirmed["invoice_issued"] is False
    assert confirmed["payment"]["status"] == Payment.DRAFT
    assert confirmed["payment"]["stripe_invoice_id"] is None
    assert "requires manual attention" in caplog.text

    # Invoice is re-issued once the provider is back
    monkeypatch.setattr(bookings_api, "get_invoicing_client", lambda: StubInvoicingClient())
    retry_response = lender.put(f"/api/bookings/{booking_id}/invoice/")
    assert retry_response.status_code == 200
    invoice_id = retry_response.json()["data"]["payment"]["stripe_invoice_id"]
    assert invoice_id

    invoice_url = renter.get(f"/api/payments/{payment_id}/invoice-url/")
    assert invoice_url.status_code == 200

    # Stripe reports the invoice paid
    event = {"id": "evt_paid", "type": "invoice.paid", "data": {"object": {"id": invoice_id}}}
    monkeypatch.setattr(payments_api, "construct_webhook_event", lambda payload, sig, secret: event)
    webhook_response = anonymous.post(
        "/api/webhooks/stripe/",
        data=b"{}",
        content_type="application/json",
        HTTP_STRIPE_SIGNATURE="t=1,v1=abc",
    )
    assert webhook_response.status_code == 200

    detail = renter.get(f"/api/bookings/{booking_id}/").json()["data"]
    assert detail["payment"]["status"] == Payment.PAID
    assert detail["status"] == "CONFIRMED"
