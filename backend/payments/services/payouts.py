from __future__ import annotations

import logging
from datetime import datetime, timezone

import stripe
from django.conf import settings

from accounts.models import LenderProfile

logger = logging.getLogger(__name__)


def configure_stripe():
    if not settings.STRIPE_SECRET_KEY:
        raise RuntimeError("STRIPE_SECRET_KEY is not configured.")
    stripe.api_key = settings.STRIPE_SECRET_KEY


def sync_account_from_stripe(profile: LenderProfile, stripe_account) -> None:
    changed_fields: list[str] = []
    for field in ("charges_enabled", "payouts_enabled", "details_submitted"):
        value = bool(getattr(stripe_account, field, False))
        if getattr(profile, field) != value:
            setattr(profile, field, value)
            changed_fields.append(field)

    if changed_fields:
        changed_fields.append("updated_at")
        profile.save(update_fields=changed_fields)


def create_onboarding_link(profile: LenderProfile):
    """
    Create (or refresh) a Stripe Express onboarding link for the lender.

    Creates the connected account on first use. Returns the Stripe AccountLink.
    """

    if profile.stripe_account_id:
        stripe_account = stripe.Account.retrieve(profile.stripe_account_id)
        sync_account_from_stripe(profile, stripe_account)
    else:
        stripe_account = stripe.Account.create(
            type="express",
            email=profile.user.email or None,
            business_type="individual",
            capabilities={
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
            metadata={"user_id": str(profile.user_id)},
        )
        profile.stripe_account_id = stripe_account.id
        profile.save(update_fields=["stripe_account_id", "updated_at"])
        sync_account_from_stripe(profile, stripe_account)

    link = stripe.AccountLink.create(
        account=profile.stripe_account_id,
        type="account_onboarding",
        refresh_url=settings.STRIPE_CONNECT_REFRESH_URL,
        return_url=settings.STRIPE_CONNECT_RETURN_URL,
    )
    profile.onboarding_link_url = link.url
    profile.onboarding_expires_at = datetime.fromtimestamp(link.expires_at, tz=timezone.utc)
    profile.save(update_fields=["onboarding_link_url", "onboarding_expires_at", "updated_at"])
    return link


def handle_account_event(account_id: str | None) -> LenderProfile | None:
    """Refresh the lender payout flags after an ``account.updated`` webhook."""

    if not account_id:
        return None
    profile = LenderProfile.objects.filter(stripe_account_id=account_id).first()
    if profile is None:
        logger.info("Ignoring account event for untracked Stripe account %s", account_id)
        return None

    stripe_account = stripe.Account.retrieve(account_id)
    sync_account_from_stripe(profile, stripe_account)
    profile.last_webhook_received_at = datetime.now(tz=timezone.utc)
    profile.save(update_fields=["last_webhook_received_at", "updated_at"])
    return profile
