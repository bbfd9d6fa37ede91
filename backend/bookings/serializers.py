from rest_framework import serializers

from payments.models import Payment

from .models import Booking


class BookingPaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payment
        fields = [
            "id",
            "stripe_invoice_id",
            "amount_charged",
            "platform_fee",
            "amount_transferred",
            "currency",
            "status",
        ]
        read_only_fields = fields


class BookingSerializer(serializers.ModelSerializer):
    storage_location_name = serializers.CharField(source="storage_location.name", read_only=True)
    renter_email = serializers.EmailField(source="renter.email", read_only=True)
    payment = BookingPaymentSerializer(read_only=True)
    duration_days = serializers.IntegerField(read_only=True)

    class Meta:
        model = Booking
        fields = [
            "id",
            "renter",
            "renter_email",
            "storage_location",
            "storage_location_name",
            "start_date",
            "end_date",
            "duration_days",
            "total_price",
            "status",
            "payment",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BookingCreateSerializer(serializers.Serializer):
    storage_location = serializers.IntegerField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    total_price = serializers.IntegerField(min_value=1)

    def validate(self, attrs):
        if attrs["start_date"] >= attrs["end_date"]:
            raise serializers.ValidationError({"end_date": "End date must be after start date."})
        return attrs


class BookingUpdateSerializer(serializers.Serializer):
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    total_price = serializers.IntegerField(min_value=1, required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide start_date, end_date or total_price.")
        start, end = attrs.get("start_date"), attrs.get("end_date")
        if start and end and start >= end:
            raise serializers.ValidationError({"end_date": "End date must be after start date."})
        return attrs


class DateRangeQuerySerializer(serializers.Serializer):
    start_date = serializers.DateField()
    end_date = serializers.DateField()

    def validate(self, attrs):
        if attrs["start_date"] >= attrs["end_date"]:
            raise serializers.ValidationError({"end_date": "End date must be after start date."})
        return attrs
