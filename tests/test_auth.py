"""
Unit tests for password hashing and bearer token issuance/verification.
"""

from datetime import timedelta

import pytest
from jose import jwt

from admin_service import auth
from admin_service.auth import (
    hash_password,
    verify_password,
    create_access_token,
    decode_access_token,
    SecretNotConfiguredError,
    TokenExpiredError,
    InvalidTokenError,
)
from admin_service.config import settings


@pytest.fixture
def no_secret(monkeypatch):
    """Simulate a deployment without JWT_SECRET_KEY."""
    monkeypatch.setattr(settings, "JWT_SECRET_KEY", None)


class TestPasswordHashing:
    """bcrypt hashing and verification."""

    def test_hash_is_not_plaintext(self):
        hashed = hash_password("password123")
        assert hashed != "password123"
        assert hashed.startswith("$2")

    def test_same_password_hashes_differently(self):
        """Each hash carries its own salt."""
        assert hash_password("password123") != hash_password("password123")

    def test_verify_correct_password(self):
        assert verify_password("password123", hash_password("password123")) is True

    def test_verify_wrong_password(self):
        assert verify_password("wrong-password", hash_password("password123")) is False

    def test_verify_against_garbage_hash(self):
        """A stored value that is not a bcrypt hash never verifies."""
        assert verify_password("password123", "not-a-bcrypt-hash") is False


class TestTokens:
    """JWT issuance and verification."""

    def test_round_trip_preserves_claims(self):
        """A token issued for (id, email) verifies back to the same pair."""
        token = create_access_token(42, "alice@example.com")
        data = decode_access_token(token)
        assert data.user_id == 42
        assert data.email == "alice@example.com"

    def test_default_expiry_is_seven_days(self):
        token = create_access_token(1, "a@example.com")
        claims = jwt.get_unverified_claims(token)
        assert claims["exp"] - claims["iat"] == 7 * 24 * 60 * 60

    def test_expired_token_rejected_as_expired(self):
        token = create_access_token(1, "a@example.com", expires_delta=timedelta(seconds=-10))
        with pytest.raises(TokenExpiredError):
            decode_access_token(token)

    def test_token_signed_with_other_secret_is_invalid(self):
        token = jwt.encode(
            {"sub": "1", "email": "a@example.com"},
            "another-secret-key-that-is-also-long-enough",
            algorithm="HS256",
        )
        with pytest.raises(InvalidTokenError):
            decode_access_token(token)

    def test_garbage_token_is_invalid(self):
        with pytest.raises(InvalidTokenError):
            decode_access_token("not.a.jwt")

    def test_token_without_subject_is_invalid(self):
        token = jwt.encode({"email": "a@example.com"}, settings.JWT_SECRET_KEY, algorithm="HS256")
        with pytest.raises(InvalidTokenError):
            decode_access_token(token)

    def test_non_numeric_subject_is_invalid(self):
        token = jwt.encode(
            {"sub": "abc", "email": "a@example.com"}, settings.JWT_SECRET_KEY, algorithm="HS256"
        )
        with pytest.raises(InvalidTokenError):
            decode_access_token(token)

    def test_expired_is_distinct_from_invalid(self):
        assert not issubclass(TokenExpiredError, InvalidTokenError)
        assert issubclass(TokenExpiredError, auth.TokenError)

    def test_issuance_requires_secret(self, no_secret):
        with pytest.raises(SecretNotConfiguredError, match="JWT secret not configured"):
            create_access_token(1, "a@example.com")

    def test_verification_requires_secret(self, no_secret):
        with pytest.raises(SecretNotConfiguredError):
            decode_access_token("anything")
