"""
Date-range conflict detection for storage locations.

Bookings occupy the half-open interval ``[start_date, end_date)``: a booking
that ends on a date never conflicts with one starting that same date. Every
overlap check in the project goes through ``intervals_overlap`` or
``overlap_q`` so the rule stays identical for creation, updates and queries.
"""

from __future__ import annotations

from datetime import date, datetime

from django.db.models import Q, QuerySet

from bookings.models import Booking
from core.exceptions import ValidationError


def normalize_date(value) -> date:
    """Return the calendar date for ``value``; time of day is dropped."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError as exc:
            raise ValidationError(f"Invalid date: {value!r}.") from exc
    raise ValidationError(f"Invalid date: {value!r}.")


def validate_range(start, end) -> tuple[date, date]:
    start, end = normalize_date(start), normalize_date(end)
    if start >= end:
        raise ValidationError("Start date must be before end date.")
    return start, end


def intervals_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    return start_a < end_b and start_b < end_a


def overlap_q(start: date, end: date) -> Q:
    """ORM filter matching bookings whose range overlaps ``[start, end)``."""
    return Q(start_date__lt=end, end_date__gt=start)


def blocking_bookings(location_id, start, end, *, exclude_booking_id=None) -> QuerySet:
    start, end = validate_range(start, end)
    queryset = (
        Booking.objects.filter(storage_location_id=location_id)
        .exclude(status=Booking.CANCELLED)
        .filter(overlap_q(start, end))
    )
    if exclude_booking_id is not None:
        queryset = queryset.exclude(pk=exclude_booking_id)
    return queryset


def is_available(location_id, start, end, *, exclude_booking_id=None) -> bool:
    """
    True when no non-cancelled booking for the location overlaps ``[start, end)``.

    ``exclude_booking_id`` leaves one booking out of the comparison, which is how
    an update checks a booking against all of the others. The answer is only
    valid at the instant of the read; callers that act on it hold the location
    lock (see ``listings.services.get_location``).
    """

    return not blocking_bookings(
        location_id, start, end, exclude_booking_id=exclude_booking_id
    ).exists()


def bookings_in_range(start, end, *, queryset: QuerySet | None = None) -> QuerySet:
    """Non-cancelled bookings overlapping ``[start, end)``, across all locations by default."""

    start, end = validate_range(start, end)
    if queryset is None:
        queryset = Booking.objects.all()
    return queryset.exclude(status=Booking.CANCELLED).filter(overlap_q(start, end))
