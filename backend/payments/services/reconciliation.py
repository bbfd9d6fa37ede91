from __future__ import annotations

import logging

from django.db import transaction

from payments.models import Payment

logger = logging.getLogger(__name__)

INVOICE_EVENT_STATUSES = {
    "invoice.paid": Payment.PAID,
    "invoice.payment_failed": Payment.UNCOLLECTIBLE,
    "invoice.marked_uncollectible": Payment.UNCOLLECTIBLE,
    "invoice.voided": Payment.VOID,
}


def _invoice_id(invoice) -> str | None:
    if isinstance(invoice, str):
        return invoice
    if isinstance(invoice, dict):
        return invoice.get("id")
    return getattr(invoice, "id", None)


def handle_invoice_event(event_type: str, invoice) -> Payment | None:
    """
    Apply an invoice webhook to the matching payment.

    ``invoice`` may be the Stripe invoice object or its id. Events for unknown
    invoices are ignored, repeated deliveries are no-ops, and a payment that
    already reached PAID or VOID is never moved again. Booking status is not
    touched here.
    """

    target_status = INVOICE_EVENT_STATUSES.get(event_type)
    if target_status is None:
        logger.info("Ignoring unsupported invoice event %s", event_type)
        return None

    invoice_id = _invoice_id(invoice)
    if not invoice_id:
        logger.warning("Received %s without an invoice id", event_type)
        return None

    with transaction.atomic():
        payment = (
            Payment.objects.select_for_update()
            .filter(stripe_invoice_id=invoice_id)
            .first()
        )
        if payment is None:
            logger.warning(
                "Received %s for invoice %s, but no matching payment record was found.",
                event_type,
                invoice_id,
            )
            return None

        if payment.status == target_status:
            logger.info(
                "Payment %s already %s for invoice %s; nothing to do.",
                payment.pk,
                target_status,
                invoice_id,
            )
            return payment

        if payment.status in Payment.FINAL_STATUSES:
            logger.warning(
                "Ignoring %s for invoice %s: payment %s is already %s.",
                event_type,
                invoice_id,
                payment.pk,
                payment.status,
            )
            return payment

        previous = payment.status
        payment.status = target_status
        payment.save(update_fields=["status", "updated_at"])

    logger.info(
        "Payment %s moved %s -> %s from %s (invoice %s)",
        payment.pk,
        previous,
        target_status,
        event_type,
        invoice_id,
    )
    return payment
