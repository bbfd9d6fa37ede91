import logging

import pytest
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction

from payments.models import Payment
from payments.services.reconciliation import handle_invoice_event

User = get_user_model()


@pytest.fixture
def payment(db):
    renter = User.objects.create_user(username="renter@example.com", email="renter@example.com")
    lender = User.objects.create_user(username="lender@example.com", email="lender@example.com", role=User.LENDER)
    return Payment.objects.create(
        renter=renter,
        lender=lender,
        stripe_invoice_id="in_123",
        amount_charged=10000,
        platform_fee=300,
        amount_transferred=9700,
        status=Payment.OPEN,
    )


@pytest.mark.parametrize(
    "event_type, expected",
    [
        ("invoice.paid", Payment.PAID),
        ("invoice.payment_failed", Payment.UNCOLLECTIBLE),
        ("invoice.marked_uncollectible", Payment.UNCOLLECTIBLE),
        ("invoice.voided", Payment.VOID),
    ],
)
def test_event_types_map_to_payment_status(payment, event_type, expected):
    handle_invoice_event(event_type, {"id": "in_123", "object": "invoice"})

    payment.refresh_from_db()
    assert payment.status == expected


def test_paid_event_is_idempotent(payment, caplog):
    handle_invoice_event("invoice.paid", {"id": "in_123"})
    with caplog.at_level(logging.INFO, logger="payments.services.reconciliation"):
        result = handle_invoice_event("invoice.paid", {"id": "in_123"})

    assert result.status == Payment.PAID
    payment.refresh_from_db()
    assert payment.status == Payment.PAID
    assert "nothing to do" in caplog.text


def test_invoice_id_may_be_passed_directly(payment):
    handle_invoice_event("invoice.voided", "in_123")

    payment.refresh_from_db()
    assert payment.status == Payment.VOID


def test_unknown_invoice_is_ignored(payment, caplog):
    with caplog.at_level(logging.WARNING, logger="payments.services.reconciliation"):
        assert handle_invoice_event("invoice.paid", {"id": "in_unknown"}) is None

    payment.refresh_from_db()
    assert payment.status == Payment.OPEN
    assert "no matching payment" in caplog.text


def test_failed_payment_can_still_be_paid(payment):
    handle_invoice_event("invoice.payment_failed", {"id": "in_123"})
    handle_invoice_event("invoice.paid", {"id": "in_123"})

    payment.refresh_from_db()
    assert payment.status == Payment.PAID


def test_late_events_do_not_reopen_final_status(payment):
    handle_invoice_event("invoice.paid", {"id": "in_123"})
    handle_invoice_event("invoice.payment_failed", {"id": "in_123"})
    handle_invoice_event("invoice.voided", {"id": "in_123"})

    payment.refresh_from_db()
    assert payment.status == Payment.PAID


def test_unsupported_event_is_ignored(payment):
    assert handle_invoice_event("invoice.created", {"id": "in_123"}) is None

    payment.refresh_from_db()
    assert payment.status == Payment.OPEN


def test_amounts_must_balance(db):
    renter = User.objects.create_user(username="r@example.com", email="r@example.com")
    lender = User.objects.create_user(username="l@example.com", email="l@example.com", role=User.LENDER)
    with pytest.raises(IntegrityError), transaction.atomic():
        Payment.objects.create(
            renter=renter,
            lender=lender,
            amount_charged=100,
            platform_fee=3,
            amount_transferred=90,
        )
