import pytest
from django.contrib.auth import get_user_model
from rest_framework.exceptions import AuthenticationFailed
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import AccessToken

from accounts import api as accounts_api
from accounts.models import LenderProfile, RenterProfile
from accounts.services import identity as identity_service
from accounts.services.identity import FirebaseIdentity

User = get_user_model()


@pytest.fixture
def client():
    return APIClient()


@pytest.fixture
def firebase_identity(monkeypatch):
    """Accept any token of the form ``token-<uid>`` and map it to an identity."""

    def fake_verify(id_token):
        if not id_token or not id_token.startswith("token-"):
            raise AuthenticationFailed("Invalid or expired identity token.")
        uid = id_token.removeprefix("token-")
        return FirebaseIdentity(uid=uid, email=f"{uid}@example.com", name=uid.title())

    monkeypatch.setattr(accounts_api, "verify_id_token", fake_verify)


@pytest.fixture
def renter(db):
    return User.objects.create_user(
        username="renter@example.com",
        email="renter@example.com",
        firebase_uid="renter",
        role=User.RENTER,
        first_name="Rita",
        last_name="Renter",
    )


def test_register_creates_lender_with_profile_and_role_claim(db, client, firebase_identity):
    payload = {
        "id_token": "token-lena",
        "role": User.LENDER,
        "first_name": "Lena",
        "last_name": "Lender",
    }
    response = client.post("/api/auth/register/", payload, format="json")

    assert response.status_code == 201
    body = response.json()
    assert body["user"]["email"] == "lena@example.com"
    assert body["user"]["role"] == User.LENDER
    assert body["user"]["display_name"] == "Lena Lender"

    user = User.objects.get(email="lena@example.com")
    assert user.firebase_uid == "lena"
    assert LenderProfile.objects.filter(user=user).exists()
    assert not RenterProfile.objects.filter(user=user).exists()
    assert AccessToken(body["access"])["role"] == User.LENDER


def test_register_renter_gets_renter_profile(db, client, firebase_identity):
    response = client.post(
        "/api/auth/register/",
        {"id_token": "token-rob", "role": User.RENTER},
        format="json",
    )

    assert response.status_code == 201
    user = User.objects.get(firebase_uid="rob")
    assert user.is_renter
    assert isinstance(user.billing_profile, RenterProfile)


def test_register_with_existing_identity_is_rejected(db, client, firebase_identity, renter):
    response = client.post(
        "/api/auth/register/",
        {"id_token": "token-renter", "role": User.RENTER},
        format="json",
    )

    assert response.status_code == 400
    body = response.json()
    assert body["status"] == 400
    assert "id_token" in body["data"]


def test_register_with_invalid_token_is_unauthorized(db, client, firebase_identity):
    response = client.post(
        "/api/auth/register/",
        {"id_token": "garbage", "role": User.RENTER},
        format="json",
    )

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid or expired identity token."
    assert not User.objects.exists()


def test_login_returns_tokens_and_user_payload(db, client, firebase_identity, renter):
    response = client.post("/api/auth/login/", {"id_token": "token-renter"}, format="json")

    assert response.status_code == 200
    data = response.json()
    assert set(data.keys()) == {"access", "refresh", "user"}
    assert data["user"]["email"] == "renter@example.com"
    assert AccessToken(data["access"])["role"] == User.RENTER


def test_login_for_unknown_identity_is_rejected(db, client, firebase_identity):
    response = client.post("/api/auth/login/", {"id_token": "token-stranger"}, format="json")

    assert response.status_code == 401


def test_refresh_issues_new_access_token(db, client, firebase_identity, renter):
    login_response = client.post("/api/auth/login/", {"id_token": "token-renter"}, format="json")

    refresh_token = login_response.json()["refresh"]
    refresh_response = client.post("/api/auth/refresh/", {"refresh": refresh_token}, format="json")

    assert refresh_response.status_code == 200
    assert "access" in refresh_response.json()


def test_me_requires_authentication(db, client):
    response = client.get("/api/auth/me/")

    assert response.status_code == 401
    assert response.json()["status"] == 401


def test_me_accepts_bearer_token_and_updates_profile(db, client, firebase_identity, renter):
    access = client.post("/api/auth/login/", {"id_token": "token-renter"}, format="json").json()["access"]
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {access}")

    response = client.get("/api/auth/me/")
    assert response.status_code == 200
    assert response.json()["role"] == User.RENTER

    response = client.patch("/api/auth/me/", {"display_name": "Rita R.", "role": User.LENDER}, format="json")
    assert response.status_code == 200
    renter.refresh_from_db()
    assert renter.display_name == "Rita R."
    assert renter.role == User.RENTER


def test_verify_id_token_maps_firebase_errors(monkeypatch):
    def raise_invalid(token, app=None):
        raise ValueError("malformed token")

    monkeypatch.setattr(identity_service, "get_firebase_app", lambda: None)
    monkeypatch.setattr(identity_service.firebase_auth, "verify_id_token", raise_invalid)

    with pytest.raises(AuthenticationFailed):
        identity_service.verify_id_token("abc")


def test_verify_id_token_returns_identity(monkeypatch):
    monkeypatch.setattr(identity_service, "get_firebase_app", lambda: None)
    monkeypatch.setattr(
        identity_service.firebase_auth,
        "verify_id_token",
        lambda token, app=None: {"uid": "u-1", "email": "Person@Example.com", "name": "Person"},
    )

    result = identity_service.verify_id_token("abc")

    assert result == FirebaseIdentity(uid="u-1", email="person@example.com", name="Person")
