import logging

import stripe
from django.conf import settings
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.models import LenderProfile
from accounts.permissions import IsLender, IsRenter
from core.exceptions import InternalError, InvalidStateError, UpstreamError
from core.responses import envelope

from .models import Payment
from .serializers import OnboardingLinkSerializer, PaymentSerializer, PayoutAccountStatusSerializer
from .services.invoicing import construct_webhook_event, get_invoicing_client
from .services.payouts import (
    configure_stripe,
    create_onboarding_link,
    handle_account_event,
    sync_account_from_stripe,
)
from .services.reconciliation import INVOICE_EVENT_STATUSES, handle_invoice_event

logger = logging.getLogger(__name__)


def _get_payment_for(user, payment_id) -> Payment:
    payment = get_object_or_404(
        Payment.objects.select_related("renter", "lender"), pk=payment_id
    )
    if not user.is_superuser and user.pk not in {payment.renter_id, payment.lender_id}:
        raise PermissionDenied("You do not have access to this payment.")
    return payment


class PaymentDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, payment_id, *args, **kwargs):
        payment = _get_payment_for(request.user, payment_id)
        return envelope(PaymentSerializer(payment).data)


class InvoiceUrlView(APIView):
    """Return the hosted invoice page for the renter to pay."""

    permission_classes = [IsAuthenticated, IsRenter]

    def get(self, request, payment_id, *args, **kwargs):
        payment = _get_payment_for(request.user, payment_id)
        if not payment.is_invoiced:
            raise InvalidStateError("No invoice has been issued for this payment yet.")

        url = get_invoicing_client().get_hosted_invoice_url(payment.stripe_invoice_id)
        if not url:
            raise UpstreamError("The payment provider did not return an invoice URL.")
        return envelope({"payment_id": str(payment.pk), "invoice_url": url})


def _configure_stripe_or_fail():
    try:
        configure_stripe()
    except RuntimeError as exc:
        raise InternalError(str(exc)) from exc


class ConnectOnboardingLinkView(APIView):
    """Create (or refresh) the lender's Stripe Express onboarding link."""

    permission_classes = [IsAuthenticated, IsLender]

    def post(self, request, *args, **kwargs):
        _configure_stripe_or_fail()
        if not settings.STRIPE_CONNECT_RETURN_URL or not settings.STRIPE_CONNECT_REFRESH_URL:
            raise InternalError(
                "Stripe connect return/refresh URLs are not configured. "
                "Set STRIPE_CONNECT_RETURN_URL and STRIPE_CONNECT_REFRESH_URL."
            )

        profile, _ = LenderProfile.objects.get_or_create(user=request.user)
        try:
            create_onboarding_link(profile)
        except stripe.StripeError as exc:
            logger.exception("Failed to create Stripe onboarding link: %s", exc)
            raise UpstreamError(str(exc)) from exc

        serializer = OnboardingLinkSerializer(
            {"url": profile.onboarding_link_url, "expires_at": profile.onboarding_expires_at}
        )
        return envelope(serializer.data, message="Onboarding link created.", status=status.HTTP_201_CREATED)


class ConnectStatusView(APIView):
    """Return the lender's payout account status, refreshed from Stripe when connected."""

    permission_classes = [IsAuthenticated, IsLender]

    def get(self, request, *args, **kwargs):
        profile = LenderProfile.objects.filter(user=request.user).first()
        if profile and profile.stripe_account_id:
            _configure_stripe_or_fail()
            try:
                stripe_account = stripe.Account.retrieve(profile.stripe_account_id)
                sync_account_from_stripe(profile, stripe_account)
            except stripe.StripeError as exc:
                logger.exception("Failed to refresh Stripe account status: %s", exc)

        return envelope(PayoutAccountStatusSerializer.from_profile(profile))


class StripeWebhookView(APIView):
    """Receive Stripe webhook events (invoices and Connect accounts)."""

    permission_classes: list = []
    authentication_classes: list = []

    def post(self, request, *args, **kwargs):
        payload = request.body
        sig_header = request.META.get("HTTP_STRIPE_SIGNATURE")
        if not settings.STRIPE_WEBHOOK_SECRET:
            logger.error("Stripe webhook secret not configured.")
            return Response(status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        try:
            event = construct_webhook_event(payload, sig_header, settings.STRIPE_WEBHOOK_SECRET)
        except ValueError:
            logger.warning("Invalid payload received on Stripe webhook.")
            return Response(status=status.HTTP_400_BAD_REQUEST)
        except stripe.SignatureVerificationError:
            logger.warning("Invalid Stripe signature.")
            return Response(status=status.HTTP_400_BAD_REQUEST)

        event_type = event["type"]
        data_object = event["data"]["object"]

        try:
            if event_type in INVOICE_EVENT_STATUSES:
                handle_invoice_event(event_type, data_object)
            elif event_type == "account.updated":
                configure_stripe()
                handle_account_event(data_object.get("id") or event.get("account"))
            else:
                logger.info("Ignoring Stripe event %s", event_type)
        except Exception:
            # Stripe retries non-2xx deliveries; failures are investigated from the logs.
            logger.exception("Error handling Stripe event %s (%s)", event.get("id"), event_type)

        return Response(status=status.HTTP_200_OK)
