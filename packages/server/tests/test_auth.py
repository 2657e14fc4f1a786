"""
Tests for Authentication.

Covers:
- Password hashing and strength rules
- Email validation
- JWT creation, decoding, expiry and tampering
- Bearer header parsing and the 401 error codes
- Registration, login and /api/users/me
"""

from __future__ import annotations

from datetime import timedelta

import jwt as pyjwt
import pytest

from app.core.auth import (
    AuthContext,
    InvalidTokenError,
    create_jwt,
    decode_jwt,
    extract_bearer_token,
    hash_password,
    validate_email,
    validate_password,
    verify_password,
)
from app.core.errors import APIError
from tmember_shared.schemas.common import MembershipRole


# ---------------------------------------------------------------------------
# Unit Tests: Password hashing
# ---------------------------------------------------------------------------

class TestPasswordHashing:
    def test_hash_and_verify(self):
        password = "MySecureP@ssw0rd!"
        hashed = hash_password(password)
        assert hashed != password
        assert verify_password(password, hashed)

    def test_wrong_password_fails(self):
        hashed = hash_password("correct-password")
        assert not verify_password("wrong-password", hashed)

    def test_different_hashes_for_same_password(self):
        """bcrypt uses random salt, so hashes differ."""
        h1 = hash_password("same")
        h2 = hash_password("same")
        assert h1 != h2
        assert verify_password("same", h1)
        assert verify_password("same", h2)


class TestCredentialRules:
    @pytest.mark.parametrize(
        "email",
        ["user@example.com", "first.last+tag@sub.example.org", "a_b%c@host.io"],
    )
    def test_valid_emails(self, email):
        assert validate_email(email)

    @pytest.mark.parametrize(
        "email",
        ["", "plainaddress", "@example.com", "user@", "user@host", "user@host.c"],
    )
    def test_invalid_emails(self, email):
        assert not validate_email(email)

    def test_strong_password_accepted(self):
        assert validate_password("Sup3rSecretPass") is None

    @pytest.mark.parametrize(
        "password, fragment",
        [
            ("Sh0rt", "at least 8 characters"),
            ("alllowercase1", "uppercase"),
            ("ALLUPPERCASE1", "lowercase"),
            ("NoDigitsHere", "digit"),
        ],
    )
    def test_weak_passwords_rejected(self, password, fragment):
        problem = validate_password(password)
        assert problem is not None
        assert fragment in problem


# ---------------------------------------------------------------------------
# Unit Tests: JWT
# ---------------------------------------------------------------------------

class TestJWT:
    def test_create_and_decode(self):
        token = create_jwt(42, "user@example.com")
        claims = decode_jwt(token)
        assert claims.user_id == 42
        assert claims.email == "user@example.com"

    def test_token_carries_issuer_and_expiry(self):
        token = create_jwt(7, "user@example.com")
        payload = pyjwt.decode(token, options={"verify_signature": False})
        assert payload["iss"] == "tmember"
        assert payload["sub"] == "7"
        assert payload["exp"] - payload["iat"] == 24 * 60 * 60

    def test_expired_jwt_raises(self):
        token = create_jwt(1, "user@example.com", expires_delta=timedelta(seconds=-1))
        with pytest.raises(InvalidTokenError, match="invalid or expired token"):
            decode_jwt(token)

    def test_tampered_jwt_raises(self):
        token = create_jwt(1, "user@example.com")
        header, payload, signature = token.split(".")
        tampered = ".".join([header, payload, signature[::-1]])
        with pytest.raises(InvalidTokenError):
            decode_jwt(tampered)

    def test_wrong_secret_raises(self):
        token = pyjwt.encode(
            {"user_id": 1, "email": "x@example.com", "iss": "tmember", "iat": 0, "exp": 4102444800},
            "some-other-secret",
            algorithm="HS256",
        )
        with pytest.raises(InvalidTokenError):
            decode_jwt(token)

    def test_malformed_raises(self):
        with pytest.raises(InvalidTokenError):
            decode_jwt("not-a-jwt")


# ---------------------------------------------------------------------------
# Unit Tests: Bearer header parsing & context
# ---------------------------------------------------------------------------

class TestBearerHeader:
    @pytest.mark.parametrize(
        "header, code",
        [
            (None, "MISSING_AUTH_HEADER"),
            ("", "MISSING_AUTH_HEADER"),
            ("Token abc", "INVALID_AUTH_FORMAT"),
            ("bearer abc", "INVALID_AUTH_FORMAT"),
            ("Bearer ", "MISSING_TOKEN"),
            ("Bearer", "INVALID_AUTH_FORMAT"),
        ],
    )
    def test_rejections(self, header, code):
        with pytest.raises(APIError) as exc_info:
            extract_bearer_token(header)
        assert exc_info.value.status_code == 401
        assert exc_info.value.code == code

    def test_extracts_token(self):
        assert extract_bearer_token("Bearer abc.def.ghi") == "abc.def.ghi"

    def test_blank_token_left_for_signature_check(self):
        token = extract_bearer_token("Bearer    ")
        assert token == "   "
        with pytest.raises(InvalidTokenError):
            decode_jwt(token)


class TestAuthContext:
    def test_with_organization_returns_scoped_copy(self):
        base = AuthContext(user_id=1, email="a@example.com")
        scoped = base.with_organization(9, MembershipRole.ADMIN)
        assert base.organization_id is None
        assert scoped.organization_id == 9
        assert scoped.role == MembershipRole.ADMIN
        assert scoped.is_admin
        assert scoped.user_id == base.user_id


# ---------------------------------------------------------------------------
# Integration: auth-protected routes
# ---------------------------------------------------------------------------

class TestAuthMiddleware:
    async def test_missing_header(self, client):
        response = await client.get("/api/organizations")
        assert response.status_code == 401
        body = response.json()
        assert body["code"] == "MISSING_AUTH_HEADER"
        assert body["error"] == "Unauthorized"
        assert body["message"]

    async def test_wrong_scheme(self, client):
        response = await client.get(
            "/api/organizations", headers={"Authorization": "Basic dXNlcjpwYXNz"}
        )
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_AUTH_FORMAT"

    async def test_bare_bearer_scheme(self, client):
        response = await client.get("/api/organizations", headers={"Authorization": "Bearer"})
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_AUTH_FORMAT"

    async def test_invalid_token(self, client):
        response = await client.get(
            "/api/organizations", headers={"Authorization": "Bearer garbage"}
        )
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_TOKEN"

    async def test_expired_token(self, client, alice):
        token = create_jwt(alice["user"]["id"], "alice@example.com", expires_delta=timedelta(seconds=-5))
        response = await client.get(
            "/api/users/me", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_TOKEN"


# ---------------------------------------------------------------------------
# Integration: register / login / me
# ---------------------------------------------------------------------------

class TestRegister:
    async def test_register_returns_user_and_token(self, client):
        response = await client.post(
            "/api/auth/register",
            json={"email": "new@example.com", "password": "Sup3rSecretPass"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["user"]["email"] == "new@example.com"
        assert "password_hash" not in data["user"]
        assert decode_jwt(data["token"]).user_id == data["user"]["id"]

    async def test_invalid_email(self, client):
        response = await client.post(
            "/api/auth/register", json={"email": "not-an-email", "password": "Sup3rSecretPass"}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_EMAIL"

    async def test_weak_password(self, client):
        response = await client.post(
            "/api/auth/register", json={"email": "weak@example.com", "password": "password"}
        )
        assert response.status_code == 400
        assert response.json()["code"] == "WEAK_PASSWORD"

    async def test_duplicate_email(self, client, alice):
        response = await client.post(
            "/api/auth/register",
            json={"email": "alice@example.com", "password": "An0therPassword"},
        )
        assert response.status_code == 409
        assert response.json()["code"] == "EMAIL_EXISTS"

    async def test_email_match_is_case_sensitive(self, client, alice):
        response = await client.post(
            "/api/auth/register",
            json={"email": "Alice@example.com", "password": "An0therPassword"},
        )
        assert response.status_code == 201

    async def test_invalid_json(self, client):
        response = await client.post(
            "/api/auth/register",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_JSON"


class TestLogin:
    async def test_valid_credentials(self, client, alice):
        response = await client.post(
            "/api/auth/login",
            json={"email": "alice@example.com", "password": "Sup3rSecretPass"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["user"]["id"] == alice["user"]["id"]
        assert decode_jwt(data["token"]).email == "alice@example.com"

    async def test_wrong_password(self, client, alice):
        response = await client.post(
            "/api/auth/login",
            json={"email": "alice@example.com", "password": "WrongPassw0rd"},
        )
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_CREDENTIALS"

    async def test_unknown_user(self, client):
        response = await client.post(
            "/api/auth/login",
            json={"email": "ghost@example.com", "password": "Sup3rSecretPass"},
        )
        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_CREDENTIALS"


class TestCurrentUser:
    async def test_me_lists_organizations(self, client, alice):
        await client.post("/api/organizations", json={"name": "Acme"}, headers=alice["headers"])
        response = await client.get("/api/users/me", headers=alice["headers"])
        assert response.status_code == 200
        data = response.json()
        assert data["user"]["email"] == "alice@example.com"
        assert [org["name"] for org in data["organizations"]] == ["Acme"]
        assert data["organizations"][0]["role"] == "admin"

    async def test_me_for_unknown_user(self, client):
        token = create_jwt(999_999, "ghost@example.com")
        response = await client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 404
        assert response.json()["code"] == "USER_NOT_FOUND"
