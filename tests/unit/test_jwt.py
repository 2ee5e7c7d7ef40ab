"""Tests for JWT token management."""

from datetime import timedelta

import jwt
import pytest

from tipster.auth.jwt import _sign, create_access_token, create_refresh_token, verify_token


class TestAccessToken:
    def test_create_and_verify(self):
        token = create_access_token(user_id=1, email="ana@example.com", role="admin")
        payload = verify_token(token, expected_type="access")
        assert payload["sub"] == "1"
        assert payload["email"] == "ana@example.com"
        assert payload["role"] == "admin"
        assert payload["type"] == "access"
        assert payload["iss"] == "tipster"

    def test_default_role(self):
        payload = verify_token(create_access_token(user_id=2, email="b@example.com"))
        assert payload["role"] == "user"

    def test_wrong_type_rejected(self):
        token = create_refresh_token(user_id=1, token_id="test-id")
        with pytest.raises(jwt.InvalidTokenError, match="Expected token type"):
            verify_token(token, expected_type="access")

    def test_tampered_token_rejected(self):
        token = create_access_token(user_id=1, email="ana@example.com")
        with pytest.raises(jwt.InvalidTokenError):
            verify_token(token[:-4] + "AAAA")


class TestRefreshToken:
    def test_create_includes_jti(self):
        payload = verify_token(create_refresh_token(user_id=1, token_id="abc-123"), expected_type="refresh")
        assert payload["jti"] == "abc-123"
        assert payload["type"] == "refresh"
        assert "email" not in payload


class TestExpiry:
    def test_expired_token_rejected(self):
        token = _sign("access", 1, timedelta(seconds=-30), email="ana@example.com", role="user")
        with pytest.raises(jwt.InvalidTokenError, match="Token has expired"):
            verify_token(token)
