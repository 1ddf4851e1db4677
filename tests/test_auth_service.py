"""Tests for authentication service"""

import pytest
from datetime import timedelta
from jose import jwt

from forpharma.config import Settings
from forpharma.services.auth_service import AuthService

from conftest import TEST_SECRET, make_token


@pytest.fixture
def auth_service(settings) -> AuthService:
    return AuthService(settings)


class TestDecodeToken:
    """Test signature verification"""

    def test_decode_valid_token(self, auth_service):
        """Test decoding a token signed with the configured secret"""
        token = make_token(
            sub="123e4567-e89b-12d3-a456-426614174000",
            email="rep@acme.example",
            role="MEDICAL_REPRESENTATIVE",
        )
        payload = auth_service.decode_token(token)

        assert payload is not None
        assert payload["email"] == "rep@acme.example"
        assert payload["role"] == "MEDICAL_REPRESENTATIVE"
        assert payload["type"] == "access"

    def test_decode_invalid_token(self, auth_service):
        """Test decoding garbage"""
        assert auth_service.decode_token("invalid.token.here") is None

    def test_decode_wrong_secret(self, auth_service):
        token = make_token(secret="not-the-secret", email="rep@acme.example")

        assert auth_service.decode_token(token) is None

    def test_jwt_secret_takes_precedence(self, tmp_path):
        """Test jwt_secret overrides secret_key when both are set"""
        settings = Settings(
            database_url=f"sqlite+aiosqlite:///{tmp_path}/control.db",
            tenant_database_url_template=f"sqlite+aiosqlite:///{tmp_path}/{{schema_name}}.db",
            secret_key=TEST_SECRET,
            jwt_secret="dedicated-jwt-secret",
        )
        auth_service = AuthService(settings)

        assert auth_service.decode_token(make_token(email="a@b.c")) is None
        assert auth_service.decode_token(
            make_token(secret="dedicated-jwt-secret", email="a@b.c")
        ) is not None


class TestValidateToken:
    """Test token type and expiration checks"""

    def test_validate_access_token(self, auth_service):
        token = make_token(email="rep@acme.example")
        payload = auth_service.validate_token(token, token_type="access")

        assert payload is not None
        assert payload["email"] == "rep@acme.example"

    def test_token_without_type_is_access(self, auth_service):
        """Test tokens issued without a type claim are accepted as access tokens"""
        untyped = jwt.encode({"email": "rep@acme.example"}, TEST_SECRET, algorithm="HS256")

        assert auth_service.validate_token(untyped) is not None
        assert auth_service.validate_token(untyped, token_type="refresh") is None

    def test_validate_wrong_token_type(self, auth_service):
        """Test that a refresh token is not accepted as an access token"""
        token = make_token(email="rep@acme.example", type="refresh")

        assert auth_service.validate_token(token, token_type="access") is None
        assert auth_service.validate_token(token, token_type="refresh") is not None

    def test_expired_token(self, auth_service):
        token = make_token(email="rep@acme.example", expires_in=timedelta(seconds=-30))

        assert auth_service.validate_token(token) is None
