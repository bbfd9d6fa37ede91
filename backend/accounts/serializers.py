from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import LenderProfile, RenterProfile

User = get_user_model()


class UserSerializer(serializers.ModelSerializer):
    """Expose the public fields for the custom user model."""

    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "display_name",
            "role",
        ]
        read_only_fields = ["id", "username", "email", "role"]


class RegisterSerializer(serializers.Serializer):
    """Validate a signup request backed by a verified Firebase identity."""

    id_token = serializers.CharField(write_only=True)
    role = serializers.ChoiceField(choices=User.ROLES)
    first_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    last_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    display_name = serializers.CharField(max_length=120, required=False, allow_blank=True)

    def validate(self, attrs):
        identity = self.context["identity"]
        if User.objects.filter(firebase_uid=identity.uid).exists():
            raise serializers.ValidationError({"id_token": "This identity is already registered."})
        if User.objects.filter(email__iexact=identity.email).exists():
            raise serializers.ValidationError({"email": "A user with this email already exists."})
        return attrs

    def create(self, validated_data):
        """Persist the user and the billing profile for the requested role."""
        identity = self.context["identity"]
        validated_data.pop("id_token", None)
        role = validated_data.pop("role")
        user = User.objects.create_user(
            username=identity.email,
            email=identity.email,
            firebase_uid=identity.uid,
            role=role,
            **validated_data,
        )
        if not user.display_name:
            user.display_name = (
                f"{user.first_name} {user.last_name}".strip() or identity.name or identity.email
            )
        user.save(update_fields=["display_name"])

        if role == User.LENDER:
            LenderProfile.objects.create(user=user)
        else:
            RenterProfile.objects.create(user=user)
        return user


class LoginSerializer(serializers.Serializer):
    id_token = serializers.CharField(write_only=True)


class ProfileUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ["first_name", "last_name", "display_name"]
