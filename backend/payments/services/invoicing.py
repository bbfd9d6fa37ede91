from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

import stripe
from django.conf import settings

from accounts.models import LenderProfile, RenterProfile
from core.exceptions import UpstreamError

logger = logging.getLogger(__name__)


@dataclass
class IssuedInvoice:
    """The subset of a Stripe invoice the booking workflow consumes."""

    id: str
    status: str
    hosted_invoice_url: str | None = None


def build_invoice_preview_url(*, booking_id, invoice_id: str) -> str:
    return (
        f"{settings.FRONTEND_URL.rstrip('/')}/payments/preview?"
        f"booking={booking_id}&invoice={invoice_id}"
    )


class StubInvoicingClient:
    """
    Stand-in for Stripe invoicing used in tests and local development.

    Nothing leaves the process; invoices get predictable ``in_test_`` ids and a
    frontend preview URL so the rest of the flow behaves as if Stripe responded.
    """

    def issue_invoice(self, booking) -> IssuedInvoice:
        invoice_id = f"in_test_{uuid4().hex}"
        return IssuedInvoice(
            id=invoice_id,
            status="open",
            hosted_invoice_url=build_invoice_preview_url(booking_id=booking.pk, invoice_id=invoice_id),
        )

    def void_invoice(self, invoice: IssuedInvoice):
        logger.info("Stub void of invoice %s", invoice.id)

    def get_hosted_invoice_url(self, invoice_id: str) -> str | None:
        return f"{settings.FRONTEND_URL.rstrip('/')}/payments/preview?invoice={invoice_id}"


class StripeInvoicingClient:
    """Issue and look up invoices for bookings through the Stripe API."""

    def __init__(self, api_key: str, *, currency: str = "usd", days_until_due: int = 5):
        if not api_key:
            raise RuntimeError("Stripe secret key is not configured.")
        self.api_key = api_key
        self.currency = currency
        self.days_until_due = days_until_due

    def _ensure_customer(self, renter) -> str:
        profile, _ = RenterProfile.objects.get_or_create(user=renter)
        if profile.stripe_customer_id:
            return profile.stripe_customer_id

        customer = stripe.Customer.create(
            email=renter.email,
            name=renter.display_name or renter.get_full_name() or renter.email,
            metadata={"user_id": str(renter.pk)},
            api_key=self.api_key,
        )
        profile.stripe_customer_id = customer.id
        profile.save(update_fields=["stripe_customer_id", "updated_at"])
        return customer.id

    def _lender_account_id(self, lender) -> str:
        account_id = (
            LenderProfile.objects.filter(user=lender)
            .values_list("stripe_account_id", flat=True)
            .first()
        )
        if not account_id:
            raise UpstreamError(f"Lender {lender.pk} has no connected payout account.")
        return account_id

    def issue_invoice(self, booking) -> IssuedInvoice:
        """
        Create, itemize and finalize a send-invoice Stripe invoice for the booking.

        The platform fee is taken as the application fee and the remainder is
        transferred to the lender's connected account. Raises ``UpstreamError``
        when Stripe rejects any step or the lender cannot receive transfers.
        """

        payment = booking.payment
        location = booking.storage_location
        try:
            customer_id = self._ensure_customer(booking.renter)
            destination = self._lender_account_id(payment.lender)

            invoice = stripe.Invoice.create(
                customer=customer_id,
                collection_method="send_invoice",
                days_until_due=self.days_until_due,
                transfer_data={"destination": destination},
                application_fee_amount=payment.platform_fee,
                metadata={
                    "booking_id": str(booking.pk),
                    "payment_id": str(payment.pk),
                },
                description=f"Invoice for booking {booking.pk}",
                api_key=self.api_key,
            )
        except stripe.StripeError as exc:
            logger.exception("Stripe error creating invoice for booking %s: %s", booking.pk, exc)
            raise UpstreamError(f"Stripe error creating invoice: {exc}") from exc
        logger.info("Created draft invoice %s for booking %s", invoice.id, booking.pk)

        try:
            stripe.InvoiceItem.create(
                customer=customer_id,
                invoice=invoice.id,
                amount=payment.amount_charged,
                currency=payment.currency or self.currency,
                description=(
                    f"Storage rental: {location.name} "
                    f"({booking.start_date:%Y-%m-%d} to {booking.end_date:%Y-%m-%d})"
                ),
                api_key=self.api_key,
            )
        except stripe.StripeError as exc:
            logger.exception("Stripe error itemizing invoice %s for booking %s: %s", invoice.id, booking.pk, exc)
            self._delete_draft(invoice.id)
            raise UpstreamError(f"Stripe error creating invoice: {exc}") from exc

        if invoice.status == "draft":
            try:
                invoice = stripe.Invoice.finalize_invoice(
                    invoice.id, auto_advance=True, api_key=self.api_key
                )
            except stripe.StripeError as exc:
                # The draft exists on Stripe; keep its id so it can be finalized from the dashboard.
                logger.error("Stripe error finalizing invoice %s: %s", invoice.id, exc)

        return IssuedInvoice(
            id=invoice.id,
            status=invoice.status,
            hosted_invoice_url=getattr(invoice, "hosted_invoice_url", None),
        )

    def _delete_draft(self, invoice_id: str):
        try:
            stripe.Invoice.delete(invoice_id, api_key=self.api_key)
        except stripe.StripeError as exc:
            logger.error("Could not delete draft invoice %s; requires manual attention: %s", invoice_id, exc)
        else:
            logger.info("Deleted incomplete draft invoice %s", invoice_id)

    def void_invoice(self, invoice: IssuedInvoice):
        """
        Withdraw an invoice that will not be tracked locally.

        Drafts are deleted; finalized invoices are voided so the renter cannot pay them.
        """
        if invoice.status == "draft":
            self._delete_draft(invoice.id)
            return
        try:
            stripe.Invoice.void_invoice(invoice.id, api_key=self.api_key)
        except stripe.StripeError as exc:
            logger.exception("Stripe error voiding invoice %s: %s", invoice.id, exc)
            raise UpstreamError(f"Stripe error voiding invoice: {exc}") from exc
        logger.info("Voided invoice %s", invoice.id)

    def get_hosted_invoice_url(self, invoice_id: str) -> str | None:
        try:
            invoice = stripe.Invoice.retrieve(invoice_id, api_key=self.api_key)
        except stripe.StripeError as exc:
            logger.exception("Stripe error fetching invoice %s: %s", invoice_id, exc)
            raise UpstreamError("Failed to retrieve invoice details from Stripe.") from exc
        return getattr(invoice, "hosted_invoice_url", None) or None


def _get_stripe_api_key() -> Optional[str]:
    key = getattr(settings, "STRIPE_SECRET_KEY", "")
    return key or None


def _should_use_stub() -> bool:
    if getattr(settings, "STRIPE_USE_STUB", False):
        return True
    return _get_stripe_api_key() is None


def get_invoicing_client():
    """Build the invoicing collaborator from process configuration."""

    if _should_use_stub():
        return StubInvoicingClient()
    return StripeInvoicingClient(
        _get_stripe_api_key(),
        currency=settings.PAYMENT_CURRENCY,
        days_until_due=settings.STRIPE_INVOICE_DAYS_UNTIL_DUE,
    )


def construct_webhook_event(payload: bytes, sig_header: str | None, secret: str):
    """
    Verify the Stripe signature and parse the event.

    Raises ``ValueError`` for malformed payloads and
    ``stripe.SignatureVerificationError`` for bad signatures.
    """
    return stripe.Webhook.construct_event(payload, sig_header, secret)
