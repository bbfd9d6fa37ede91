import uuid
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class BookingQuerySet(models.QuerySet):
    def active(self):
        return self.exclude(status=Booking.CANCELLED)

    def visible_to(self, user):
        if user.is_superuser or user.is_staff:
            return self
        if user.is_lender:
            return self.filter(storage_location__owner=user)
        return self.filter(renter=user)

    def upcoming(self, today=None):
        today = today or timezone.localdate()
        return self.active().filter(start_date__gt=today)

    def current(self, today=None):
        today = today or timezone.localdate()
        return self.active().filter(start_date__lte=today, end_date__gt=today)

    def expired(self, today=None):
        today = today or timezone.localdate()
        return self.active().filter(end_date__lte=today)

    def starting_within(self, days: int, today=None):
        today = today or timezone.localdate()
        return self.active().filter(start_date__gte=today, start_date__lte=today + timedelta(days=days))


class Booking(models.Model):
    """A renter's reservation of a storage location for ``[start_date, end_date)``."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    STATUSES = [
        (PENDING, "Pending"),
        (CONFIRMED, "Confirmed"),
        (CANCELLED, "Cancelled"),
    ]

    TRANSITIONS = {
        PENDING: {CONFIRMED, CANCELLED},
        CONFIRMED: {CANCELLED},
        CANCELLED: set(),
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    renter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    storage_location = models.ForeignKey(
        "listings.StorageLocation",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    start_date = models.DateField()
    end_date = models.DateField()
    total_price = models.PositiveIntegerField(help_text="Total in the currency's minor unit.")
    status = models.CharField(max_length=12, choices=STATUSES, default=PENDING)
    payment = models.OneToOneField(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="booking",
        null=True,
        blank=True,
        editable=False,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BookingQuerySet.as_manager()

    class Meta:
        ordering = ["start_date", "created_at"]
        indexes = [
            models.Index(fields=["storage_location", "start_date", "end_date"], name="booking_location_dates_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(start_date__lt=F("end_date")),
                name="booking_start_before_end",
            ),
            models.CheckConstraint(
                condition=Q(total_price__gt=0),
                name="booking_total_price_positive",
            ),
        ]

    def __str__(self):
        return f"Booking {self.id} ({self.status})"

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days

    def can_transition_to(self, status: str) -> bool:
        return status in self.TRANSITIONS.get(self.status, set())

    def attach_payment(self, payment):
        """Link the booking's payment record; a booking owns exactly one payment."""
        if self.payment_id is not None and self.payment_id != payment.pk:
            raise ValueError(f"Booking {self.pk} already has payment {self.payment_id}.")
        self.payment = payment
        self.save(update_fields=["payment", "updated_at"])
