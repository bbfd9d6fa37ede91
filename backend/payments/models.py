import uuid
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class Payment(models.Model):
    """
    The single payment record owned by a booking.

    Created in DRAFT alongside the booking; the invoice id is filled in when the
    booking is confirmed and the status afterwards only moves through webhook
    reconciliation.
    """

    DRAFT = "DRAFT"
    OPEN = "OPEN"
    PAID = "PAID"
    UNCOLLECTIBLE = "UNCOLLECTIBLE"
    VOID = "VOID"
    STATUSES = [
        (DRAFT, "Draft"),
        (OPEN, "Open"),
        (PAID, "Paid"),
        (UNCOLLECTIBLE, "Uncollectible"),
        (VOID, "Void"),
    ]

    # Stripe invoices cannot leave these states.
    FINAL_STATUSES = {PAID, VOID}

    PROVIDER_STATUS_MAP = {
        "draft": DRAFT,
        "open": OPEN,
        "paid": PAID,
        "void": VOID,
        "uncollectible": UNCOLLECTIBLE,
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    renter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payments_made",
    )
    lender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payments_received",
    )
    stripe_invoice_id = models.CharField(max_length=255, unique=True, null=True, blank=True)
    amount_charged = models.PositiveIntegerField()
    platform_fee = models.PositiveIntegerField()
    amount_transferred = models.PositiveIntegerField()
    currency = models.CharField(max_length=10, default="usd")
    status = models.CharField(max_length=20, choices=STATUSES, default=DRAFT)
    # Set while an invoice is being requested from the provider; cleared once recorded.
    invoice_requested_at = models.DateTimeField(null=True, blank=True, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount_charged=F("platform_fee") + F("amount_transferred")),
                name="payment_amounts_balance",
            ),
        ]

    def __str__(self):
        return f"Payment {self.id} ({self.status})"

    @classmethod
    def status_from_provider(cls, provider_status: str | None) -> str:
        return cls.PROVIDER_STATUS_MAP.get((provider_status or "").lower(), cls.DRAFT)

    @classmethod
    def status_at_issuance(cls, provider_status: str | None) -> str:
        """Only DRAFT or OPEN; later statuses arrive through webhook reconciliation."""
        return cls.DRAFT if cls.status_from_provider(provider_status) == cls.DRAFT else cls.OPEN

    @property
    def is_invoiced(self) -> bool:
        return bool(self.stripe_invoice_id)

    def issuance_in_flight(self, ttl: timedelta) -> bool:
        if self.is_invoiced or self.invoice_requested_at is None:
            return False
        return self.invoice_requested_at > timezone.now() - ttl

    def claim_invoice_issuance(self):
        self.invoice_requested_at = timezone.now()
        self.save(update_fields=["invoice_requested_at", "updated_at"])

    def record_invoice(self, invoice_id: str, provider_status: str | None):
        self.stripe_invoice_id = invoice_id
        self.status = self.status_at_issuance(provider_status)
        self.invoice_requested_at = None
        self.save(update_fields=["stripe_invoice_id", "status", "invoice_requested_at", "updated_at"])

    def apply_fee_split(self, amount_charged: int, platform_fee: int, amount_transferred: int):
        self.amount_charged = amount_charged
        self.platform_fee = platform_fee
        self.amount_transferred = amount_transferred
        self.save(update_fields=["amount_charged", "platform_fee", "amount_transferred", "updated_at"])
