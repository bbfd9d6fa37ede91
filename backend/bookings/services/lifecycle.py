"""
Booking lifecycle: creation with its draft payment, confirmation with invoice
issuance, cancellation, updates and invoice webhook reconciliation.

Writes that depend on availability run inside ``transaction.atomic()`` with the
storage location row locked, so two requests for the same location are
serialized between the availability read and the insert/update. On PostgreSQL
the ``booking_no_overlapping_dates`` exclusion constraint backs this up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, IntegrityError, transaction

from availability.services.conflicts import is_available, validate_range
from bookings.models import Booking
from core.exceptions import (
    ConflictError,
    InternalError,
    InvalidStateError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from listings.services import LocationRef, get_location
from payments.fees import compute_fee_split
from payments.models import Payment
from payments.services import reconciliation
from payments.services.invoicing import get_invoicing_client

logger = logging.getLogger(__name__)

OVERLAP_CONSTRAINT = "booking_no_overlapping_dates"


@dataclass
class ConfirmationResult:
    booking: Booking
    invoice_issued: bool


def _validate_price(total_price) -> int:
    try:
        value = int(str(total_price))
    except ValueError as exc:
        raise ValidationError("Total price must be a whole number of minor currency units.") from exc
    if value <= 0:
        raise ValidationError("Total price must be greater than zero.")
    return value


def _raise_for_write_failure(exc: Exception, action: str):
    if isinstance(exc, IntegrityError) and OVERLAP_CONSTRAINT in str(exc):
        raise ConflictError("The storage location is already booked for these dates.") from exc
    logger.exception("Failed to %s", action)
    raise InternalError(f"Failed to {action}.") from exc


class BookingService:
    """
    Coordinates booking state with its payment record and the invoicing provider.

    ``invoicing`` is any object with ``issue_invoice(booking)`` and
    ``void_invoice(issued)``; by default the client configured in settings
    (Stripe or the local stub) is used.
    """

    def __init__(self, invoicing=None, *, fee_percent: Decimal | None = None, currency: str | None = None):
        self.invoicing = invoicing if invoicing is not None else get_invoicing_client()
        self.fee_percent = Decimal(str(fee_percent if fee_percent is not None else settings.PLATFORM_FEE_PERCENT))
        self.currency = currency or settings.PAYMENT_CURRENCY
        self.issue_timeout = timedelta(seconds=settings.INVOICE_ISSUE_TIMEOUT_SECONDS)

    # Lookups

    def get_booking(self, booking_id, *, queryset=None) -> Booking:
        queryset = queryset if queryset is not None else Booking.objects.all()
        try:
            return queryset.select_related("payment", "storage_location", "renter").get(pk=booking_id)
        except (Booking.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFoundError(f"Booking {booking_id} not found.")

    def _lock_booking(self, booking_id) -> Booking:
        try:
            return (
                Booking.objects.select_for_update(of=("self",))
                .select_related("payment", "storage_location", "renter")
                .get(pk=booking_id)
            )
        except (Booking.DoesNotExist, DjangoValidationError, ValueError):
            raise NotFoundError(f"Booking {booking_id} not found.")

    def is_available(self, storage_location_id, start_date, end_date) -> bool:
        location = get_location(storage_location_id)
        return is_available(location.id, start_date, end_date)

    # Creation

    def _create_draft_payment(self, booking: Booking, location: LocationRef) -> Payment:
        split = compute_fee_split(booking.total_price, self.fee_percent)
        return Payment.objects.create(
            renter_id=booking.renter_id,
            lender_id=location.owner_id,
            amount_charged=split.amount_charged,
            platform_fee=split.platform_fee,
            amount_transferred=split.amount_transferred,
            currency=self.currency,
            status=Payment.DRAFT,
        )

    def create_booking(self, *, renter_id, storage_location_id, start_date, end_date, total_price) -> Booking:
        """
        Create a PENDING booking together with its DRAFT payment.

        Both rows are written in one transaction; if the payment cannot be
        created the booking is rolled back too.
        """

        start, end = validate_range(start_date, end_date)
        price = _validate_price(total_price)

        try:
            with transaction.atomic():
                location = get_location(storage_location_id, for_update=True)
                if not is_available(location.id, start, end):
                    raise ConflictError("The storage location is already booked for these dates.")

                booking = Booking.objects.create(
                    renter_id=renter_id,
                    storage_location_id=location.id,
                    start_date=start,
                    end_date=end,
                    total_price=price,
                    status=Booking.PENDING,
                )
                payment = self._create_draft_payment(booking, location)
                booking.attach_payment(payment)
        except DatabaseError as exc:
            _raise_for_write_failure(exc, "create booking")

        logger.info(
            "Booking %s created for location %s (%s to %s): total=%s fee=%s transfer=%s",
            booking.pk,
            location.id,
            start,
            end,
            payment.amount_charged,
            payment.platform_fee,
            payment.amount_transferred,
        )
        return self.get_booking(booking.pk)

    # Transitions

    def confirm(self, booking_id) -> ConfirmationResult:
        """
        Move a PENDING booking with a DRAFT payment to CONFIRMED, then invoice it.

        The status change and the claim on invoice issuance commit before the
        provider is called. An invoicing failure leaves the booking CONFIRMED
        with an uninvoiced payment and is reported through ``invoice_issued``.
        """

        with transaction.atomic():
            booking = self._lock_booking(booking_id)
            if booking.status != Booking.PENDING:
                raise InvalidStateError(f"Only pending bookings can be confirmed (booking is {booking.status}).")
            payment = self._lock_payment(booking.payment_id)
            if payment is None or payment.status != Payment.DRAFT:
                raise InvalidStateError("Bookings can only be confirmed while their payment is still a draft.")
            booking.status = Booking.CONFIRMED
            booking.save(update_fields=["status", "updated_at"])
            payment.claim_invoice_issuance()

        logger.info("Booking %s confirmed", booking.pk)
        invoice_issued = self._issue_invoice(booking)
        return ConfirmationResult(booking=self.get_booking(booking.pk), invoice_issued=invoice_issued)

    def retry_invoice(self, booking_id) -> Booking:
        """Issue the invoice for a confirmed booking whose earlier issuance failed."""

        with transaction.atomic():
            booking = self._lock_booking(booking_id)
            if booking.status != Booking.CONFIRMED:
                raise InvalidStateError("Invoices are only issued for confirmed bookings.")
            payment = self._lock_payment(booking.payment_id)
            if payment is None or payment.is_invoiced or payment.status != Payment.DRAFT:
                raise InvalidStateError("An invoice has already been issued for this booking.")
            if payment.issuance_in_flight(self.issue_timeout):
                raise ConflictError("An invoice is already being issued for this booking.")
            payment.claim_invoice_issuance()

        if not self._issue_invoice(booking):
            raise UpstreamError("The invoice could not be issued. Try again later.")
        return self.get_booking(booking.pk)

    def _lock_payment(self, payment_id) -> Payment | None:
        if payment_id is None:
            return None
        return Payment.objects.select_for_update().filter(pk=payment_id).first()

    def _issue_invoice(self, booking: Booking) -> bool:
        """Call the provider under a claim taken by the caller and record the result."""

        try:
            issued = self.invoicing.issue_invoice(booking)
        except Exception:
            logger.exception(
                "Invoice issuance failed for confirmed booking %s (payment %s); requires manual attention",
                booking.pk,
                booking.payment_id,
            )
            self._release_claim(booking.payment_id)
            return False

        try:
            with transaction.atomic():
                payment = Payment.objects.select_for_update().get(pk=booking.payment_id)
                recorded_id = payment.stripe_invoice_id
                if not payment.is_invoiced:
                    payment.record_invoice(issued.id, issued.status)
        except DatabaseError:
            logger.exception(
                "Invoice %s issued for booking %s could not be recorded; requires manual attention",
                issued.id,
                booking.pk,
            )
            self._void(issued)
            self._release_claim(booking.payment_id)
            return False

        if recorded_id:
            logger.warning(
                "Payment %s already carries invoice %s; voiding duplicate %s",
                booking.payment_id,
                recorded_id,
                issued.id,
            )
            self._void(issued)
            return True

        logger.info("Invoice %s issued for booking %s (%s)", issued.id, booking.pk, issued.status)
        return True

    def _void(self, issued):
        try:
            self.invoicing.void_invoice(issued)
        except Exception:
            logger.exception("Could not void untracked invoice %s; requires manual attention", issued.id)

    def _release_claim(self, payment_id):
        try:
            Payment.objects.filter(pk=payment_id, stripe_invoice_id__isnull=True).update(invoice_requested_at=None)
        except DatabaseError:
            logger.exception("Could not release the invoice claim on payment %s", payment_id)

    def cancel(self, booking_id) -> Booking:
        with transaction.atomic():
            booking = self._lock_booking(booking_id)
            if not booking.can_transition_to(Booking.CANCELLED):
                raise InvalidStateError("Booking is already cancelled.")
            booking.status = Booking.CANCELLED
            booking.save(update_fields=["status", "updated_at"])

        logger.info("Booking %s cancelled", booking.pk)
        return self.get_booking(booking.pk)

    def update_booking(self, booking_id, *, start_date=None, end_date=None, total_price=None) -> Booking:
        """
        Change the dates and/or price of a booking that is not cancelled.

        The new range is checked against every other non-cancelled booking of
        the location. An uninvoiced payment follows a price change; once an
        invoice exists the price is fixed.
        """

        current = self.get_booking(booking_id)
        start, end = validate_range(
            start_date if start_date is not None else current.start_date,
            end_date if end_date is not None else current.end_date,
        )
        price = _validate_price(total_price) if total_price is not None else current.total_price

        try:
            with transaction.atomic():
                get_location(current.storage_location_id, for_update=True)
                booking = self._lock_booking(booking_id)
                if booking.status == Booking.CANCELLED:
                    raise InvalidStateError("Cancelled bookings cannot be updated.")

                if not is_available(booking.storage_location_id, start, end, exclude_booking_id=booking.pk):
                    raise ConflictError("The storage location is already booked for these dates.")

                payment = self._lock_payment(booking.payment_id)
                if price != booking.total_price and payment is not None:
                    if payment.is_invoiced or payment.status != Payment.DRAFT:
                        raise InvalidStateError("The price cannot change after the invoice has been issued.")
                    if payment.issuance_in_flight(self.issue_timeout):
                        raise InvalidStateError("The price cannot change while the invoice is being issued.")
                    split = compute_fee_split(price, self.fee_percent)
                    payment.apply_fee_split(split.amount_charged, split.platform_fee, split.amount_transferred)

                booking.start_date = start
                booking.end_date = end
                booking.total_price = price
                booking.save(update_fields=["start_date", "end_date", "total_price", "updated_at"])
        except DatabaseError as exc:
            _raise_for_write_failure(exc, "update booking")

        logger.info("Booking %s updated (%s to %s, total=%s)", booking.pk, start, end, price)
        return self.get_booking(booking.pk)

    # Webhooks

    def handle_invoice_event(self, event_type: str, invoice) -> Payment | None:
        return reconciliation.handle_invoice_event(event_type, invoice)
