import logging

from django.contrib.auth import get_user_model
from rest_framework import status
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken

from .serializers import (
    LoginSerializer,
    ProfileUpdateSerializer,
    RegisterSerializer,
    UserSerializer,
)
from .services.identity import verify_id_token

User = get_user_model()
logger = logging.getLogger(__name__)


def issue_tokens(user) -> dict:
    """Issue a SimpleJWT pair carrying the user's role claim."""
    refresh = RefreshToken.for_user(user)
    refresh["role"] = user.role
    access = refresh.access_token
    access["role"] = user.role
    return {"access": str(access), "refresh": str(refresh)}


class RegisterView(APIView):
    """Create a user from a verified Firebase identity and issue an initial JWT pair."""

    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):
        identity = verify_id_token(request.data.get("id_token", ""))
        serializer = RegisterSerializer(data=request.data, context={"identity": identity})
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        logger.info("Registered %s as %s", user.email, user.role)
        return Response(
            {"user": UserSerializer(user).data, **issue_tokens(user)},
            status=status.HTTP_201_CREATED,
        )


class LoginView(APIView):
    """Exchange a Firebase ID token for a JWT pair."""

    permission_classes = [AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        identity = verify_id_token(serializer.validated_data["id_token"])

        user = User.objects.filter(firebase_uid=identity.uid).first()
        if user is None or not user.is_active:
            raise AuthenticationFailed("No active account is registered for this identity.")

        return Response({"user": UserSerializer(user).data, **issue_tokens(user)})


class MeView(APIView):
    """Return the serialized profile for the current authenticated user."""

    def get(self, request, *args, **kwargs):
        return Response(UserSerializer(request.user).data)

    def patch(self, request, *args, **kwargs):
        """Update the current user's profile."""
        serializer = ProfileUpdateSerializer(
            instance=request.user, data=request.data, partial=True
        )
        serializer.is_valid(raise_exception=True)
        user = serializer.save()
        return Response(UserSerializer(user).data)
