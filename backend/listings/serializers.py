from rest_framework import serializers

from .models import StorageLocation


class StorageLocationSerializer(serializers.ModelSerializer):
    owner_name = serializers.CharField(source="owner.display_name", read_only=True)
    storage_volume_total = serializers.FloatField(read_only=True)

    class Meta:
        model = StorageLocation
        fields = [
            "id",
            "owner",
            "owner_name",
            "name",
            "description",
            "lat",
            "lng",
            "storage_length",
            "storage_width",
            "storage_height",
            "storage_volume_total",
            "price",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "owner", "owner_name", "created_at", "updated_at"]

    def validate_lat(self, value):
        if not -90 <= value <= 90:
            raise serializers.ValidationError("Latitude must be between -90 and 90.")
        return value

    def validate_lng(self, value):
        if not -180 <= value <= 180:
            raise serializers.ValidationError("Longitude must be between -180 and 180.")
        return value
