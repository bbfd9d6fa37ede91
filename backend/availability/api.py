from rest_framework import serializers
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from core.responses import envelope
from listings.services import get_location

from .services.conflicts import is_available


class AvailabilityQuerySerializer(serializers.Serializer):
    storage_location = serializers.IntegerField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()

    def validate(self, attrs):
        if attrs["start_date"] >= attrs["end_date"]:
            raise serializers.ValidationError({"end_date": "End date must be after start date."})
        return attrs


class AvailabilityView(APIView):
    """Answer whether a storage location is free for ``[start_date, end_date)``."""

    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        query = AvailabilityQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data

        location = get_location(params["storage_location"])
        available = is_available(location.id, params["start_date"], params["end_date"])
        return envelope(
            {
                "storage_location": location.id,
                "start_date": params["start_date"].isoformat(),
                "end_date": params["end_date"].isoformat(),
                "available": available,
            },
            message="Available." if available else "Not available.",
        )
