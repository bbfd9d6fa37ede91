from __future__ import annotations

import logging
from dataclasses import dataclass

import firebase_admin
from django.conf import settings
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from rest_framework.exceptions import AuthenticationFailed

logger = logging.getLogger(__name__)


@dataclass
class FirebaseIdentity:
    """Verified claims extracted from a Firebase ID token."""

    uid: str
    email: str
    name: str = ""


def get_firebase_app() -> firebase_admin.App:
    """Return the default Firebase app, initializing it from settings on first use."""

    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    options = {}
    if settings.FIREBASE_PROJECT_ID:
        options["projectId"] = settings.FIREBASE_PROJECT_ID

    if settings.FIREBASE_CREDENTIALS_FILE:
        credential = credentials.Certificate(settings.FIREBASE_CREDENTIALS_FILE)
    else:
        credential = credentials.ApplicationDefault()
    return firebase_admin.initialize_app(credential, options or None)


def verify_id_token(id_token: str) -> FirebaseIdentity:
    """
    Verify a Firebase ID token and return the caller's identity.

    Raises ``AuthenticationFailed`` for malformed, expired, revoked or otherwise
    invalid tokens.
    """

    if not id_token:
        raise AuthenticationFailed("A Firebase ID token is required.")

    try:
        claims = firebase_auth.verify_id_token(id_token, app=get_firebase_app())
    except (
        firebase_auth.InvalidIdTokenError,
        firebase_auth.ExpiredIdTokenError,
        firebase_auth.RevokedIdTokenError,
        firebase_auth.CertificateFetchError,
        ValueError,
    ) as exc:
        logger.warning("Firebase token verification failed: %s", exc)
        raise AuthenticationFailed("Invalid or expired identity token.") from exc

    email = (claims.get("email") or "").lower()
    if not email:
        raise AuthenticationFailed("Identity token does not carry an email address.")

    return FirebaseIdentity(
        uid=claims["uid"],
        email=email,
        name=claims.get("name", "") or "",
    )
