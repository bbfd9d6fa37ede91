from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Marketplace user; ``role`` decides which billing profile applies."""

    RENTER = "RENTER"
    LENDER = "LENDER"
    ROLES = [
        (RENTER, "Renter"),
        (LENDER, "Lender"),
    ]

    firebase_uid = models.CharField(max_length=128, unique=True, null=True, blank=True)
    display_name = models.CharField(max_length=120, blank=True)
    role = models.CharField(max_length=10, choices=ROLES, default=RENTER)

    @property
    def is_renter(self) -> bool:
        return self.role == self.RENTER

    @property
    def is_lender(self) -> bool:
        return self.role == self.LENDER

    @property
    def billing_profile(self):
        """Return the RenterProfile or LenderProfile matching the role, creating it if missing."""
        if self.is_lender:
            profile, _ = LenderProfile.objects.get_or_create(user=self)
        else:
            profile, _ = RenterProfile.objects.get_or_create(user=self)
        return profile


class RenterProfile(models.Model):
    """Customer-billing reference for a renter."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="renter_profile",
    )
    stripe_customer_id = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.user.email} (renter)"


class LenderProfile(models.Model):
    """Payout-account reference for a lender (Stripe Connect Express account)."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="lender_profile",
    )
    stripe_account_id = models.CharField(max_length=255, blank=True)
    charges_enabled = models.BooleanField(default=False)
    payouts_enabled = models.BooleanField(default=False)
    details_submitted = models.BooleanField(default=False)
    onboarding_link_url = models.URLField(blank=True)
    onboarding_expires_at = models.DateTimeField(null=True, blank=True)
    last_webhook_received_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.user.email} (lender)"

    @property
    def can_receive_payouts(self) -> bool:
        return bool(self.stripe_account_id) and self.payouts_enabled
