from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from firebase_admin import auth as firebase_auth

from solicitudes_api.errors import (
    ConflictError,
    InvalidTokenError,
    NotFoundError,
    TokenExpiredError,
)
from solicitudes_api.services.identity import FirebaseIdentityProvider, initialize_firebase


@pytest.fixture
def provider():
    return FirebaseIdentityProvider(app=MagicMock())


@patch("solicitudes_api.services.identity.firebase_auth.verify_id_token")
def test_verify_returns_claims(mock_verify, provider):
    mock_verify.return_value = {"uid": "u1", "email": "a@b.co"}

    assert provider.verify("tok")["uid"] == "u1"
    assert mock_verify.call_args.kwargs["check_revoked"] is True


@pytest.mark.parametrize(
    "error, expected",
    [
        (firebase_auth.ExpiredIdTokenError("expired", None), TokenExpiredError),
        (firebase_auth.RevokedIdTokenError("revoked"), InvalidTokenError),
        (firebase_auth.UserDisabledError("disabled"), InvalidTokenError),
        (firebase_auth.InvalidIdTokenError("bad signature"), InvalidTokenError),
        (ValueError("malformed"), InvalidTokenError),
    ],
)
@patch("solicitudes_api.services.identity.firebase_auth.verify_id_token")
def test_verify_maps_sdk_errors(mock_verify, error, expected, provider):
    mock_verify.side_effect = error
    with pytest.raises(expected):
        provider.verify("tok")


@patch("solicitudes_api.services.identity.firebase_auth.get_user")
def test_get_user_maps_record(mock_get_user, provider):
    mock_get_user.return_value = SimpleNamespace(
        uid="u1",
        email="a@b.co",
        display_name="Ana",
        email_verified=True,
        photo_url=None,
        disabled=False,
        custom_claims={"role": "admin"},
    )

    user = provider.get_user("u1")

    assert user["displayName"] == "Ana"
    assert user["customClaims"] == {"role": "admin"}


@patch("solicitudes_api.services.identity.firebase_auth.get_user")
def test_get_user_not_found(mock_get_user, provider):
    mock_get_user.side_effect = firebase_auth.UserNotFoundError("no user")
    with pytest.raises(NotFoundError):
        provider.get_user("missing")


@patch("solicitudes_api.services.identity.firebase_auth.create_user")
def test_create_user_duplicate_email(mock_create, provider):
    mock_create.side_effect = firebase_auth.EmailAlreadyExistsError("exists", None, None)
    with pytest.raises(ConflictError):
        provider.create_user("a@b.co", "secret123")


@patch("solicitudes_api.services.identity.firebase_admin.get_app")
def test_initialize_reuses_existing_app(mock_get_app):
    mock_get_app.return_value = "existing-app"
    assert initialize_firebase() == "existing-app"
