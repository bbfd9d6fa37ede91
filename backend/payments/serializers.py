from rest_framework import serializers

from accounts.models import LenderProfile

from .models import Payment


class PaymentSerializer(serializers.ModelSerializer):
    booking_id = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        fields = [
            "id",
            "booking_id",
            "renter",
            "lender",
            "stripe_invoice_id",
            "amount_charged",
            "platform_fee",
            "amount_transferred",
            "currency",
            "status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_booking_id(self, obj):
        booking = getattr(obj, "booking", None)
        return str(booking.pk) if booking else None


class OnboardingLinkSerializer(serializers.Serializer):
    url = serializers.URLField()
    expires_at = serializers.DateTimeField()


class PayoutAccountStatusSerializer(serializers.Serializer):
    connected = serializers.BooleanField()
    account_id = serializers.CharField(allow_null=True, required=False)
    charges_enabled = serializers.BooleanField(required=False)
    payouts_enabled = serializers.BooleanField(required=False)
    details_submitted = serializers.BooleanField(required=False)
    onboarding_link_url = serializers.CharField(allow_blank=True, required=False)
    onboarding_expires_at = serializers.DateTimeField(required=False, allow_null=True)
    last_webhook_received_at = serializers.DateTimeField(required=False, allow_null=True)

    @staticmethod
    def from_profile(profile: LenderProfile | None) -> dict:
        if profile is None or not profile.stripe_account_id:
            return {"connected": False}

        return {
            "connected": True,
            "account_id": profile.stripe_account_id,
            "charges_enabled": profile.charges_enabled,
            "payouts_enabled": profile.payouts_enabled,
            "details_submitted": profile.details_submitted,
            "onboarding_link_url": profile.onboarding_link_url or "",
            "onboarding_expires_at": profile.onboarding_expires_at,
            "last_webhook_received_at": profile.last_webhook_received_at,
        }
