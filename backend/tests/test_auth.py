"""
Companion Backend — Auth Tests
================================

What:  Password hashing, bearer tokens and the /api/auth endpoints.

What we test:
    ✅ Register → token + FAN account + verification token stored
    ✅ Duplicate email → 409, wrong password → 401
    ✅ Verify email consumes the token; expired tokens are deleted
    ✅ Missing, malformed and unknown-user tokens → 401, suspended → 403
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt
from sqlalchemy import select

from companion.models.user import User, UserStatus, VerificationToken
from companion.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from companion.exceptions import AuthenticationError

from conftest import TEST_PASSWORD, auth_headers


class TestSecurityHelpers:

    def test_password_hash_round_trip(self):
        hashed = hash_password("s3cret-pass")
        assert hashed != "s3cret-pass"
        assert verify_password("s3cret-pass", hashed) is True
        assert verify_password("wrong-pass", hashed) is False

    def test_verify_without_hash(self):
        """Accounts without a password can't log in with one."""
        assert verify_password("anything", None) is False

    def test_token_carries_user_id(self):
        user = User(id=uuid.uuid4(), email="t@example.com", role="FAN")
        assert decode_access_token(create_access_token(user)) == user.id

    def test_token_signed_with_other_secret_rejected(self):
        forged = jwt.encode({"sub": str(uuid.uuid4()), "rol": "ADMIN"}, "not-our-secret", algorithm="HS256")
        with pytest.raises(AuthenticationError):
            decode_access_token(forged)


class TestRegisterAndLogin:

    @pytest.mark.asyncio
    async def test_register_creates_fan_and_token(self, client, db_session):
        response = await client.post(
            "/api/auth/register",
            json={"name": " New Fan ", "email": "New@Example.com", "password": "password123"},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["email"] == "new@example.com"
        assert body["user"]["name"] == "New Fan"
        assert body["user"]["role"] == "FAN"
        assert body["user"]["is_creator"] is False
        assert body["user"]["kyc_status"] == "NOT_STARTED"

        user_id = uuid.UUID(body["user"]["id"])
        tokens = (
            await db_session.execute(
                select(VerificationToken).where(VerificationToken.user_id == user_id)
            )
        ).scalars().all()
        assert len(tokens) == 1
        assert tokens[0].expires_at > datetime.now(timezone.utc) + timedelta(hours=23)

    @pytest.mark.asyncio
    async def test_register_duplicate_email(self, client, fan):
        response = await client.post(
            "/api/auth/register",
            json={"name": "Again", "email": "FAN@example.com", "password": "password123"},
        )
        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    @pytest.mark.asyncio
    async def test_register_rejects_short_password(self, client):
        response = await client.post(
            "/api/auth/register",
            json={"name": "Short", "email": "short@example.com", "password": "abc"},
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    @pytest.mark.parametrize("email", ["x@-.-", "no-at-sign", "two@@example.com", "a@b"])
    async def test_register_rejects_malformed_email(self, client, db_session, email):
        response = await client.post(
            "/api/auth/register",
            json={"name": "Bad", "email": email, "password": "password123"},
        )
        assert response.status_code == 422
        assert (await db_session.execute(select(User))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_login_rejects_malformed_email(self, client):
        response = await client.post(
            "/api/auth/login", json={"email": "x@-.-", "password": "password123"}
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_login_success(self, client, fan):
        response = await client.post(
            "/api/auth/login", json={"email": "fan@example.com", "password": TEST_PASSWORD}
        )
        assert response.status_code == 200
        token = response.json()["access_token"]

        profile = await client.get("/api/users/profile", headers={"Authorization": f"Bearer {token}"})
        assert profile.status_code == 200
        assert profile.json()["email"] == "fan@example.com"

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client, fan):
        response = await client.post(
            "/api/auth/login", json={"email": "fan@example.com", "password": "not-the-password"}
        )
        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_login_suspended(self, client, make_user):
        await make_user(email="banned@example.com", status=UserStatus.SUSPENDED)
        response = await client.post(
            "/api/auth/login", json={"email": "banned@example.com", "password": TEST_PASSWORD}
        )
        assert response.status_code == 403


class TestEmailVerification:

    async def _token(self, db_session, user, expires_in: timedelta) -> VerificationToken:
        record = VerificationToken(
            user_id=user.id,
            token=f"tok-{uuid.uuid4().hex}",
            expires_at=datetime.now(timezone.utc) + expires_in,
        )
        db_session.add(record)
        await db_session.commit()
        return record

    @pytest.mark.asyncio
    async def test_verify_email_marks_user(self, client, db_session, fan):
        record = await self._token(db_session, fan, timedelta(hours=1))

        response = await client.get("/api/auth/verify-email", params={"token": record.token})

        assert response.status_code == 200
        assert response.json()["email"] == "fan@example.com"
        await db_session.refresh(fan)
        assert fan.email_verified_at is not None
        remaining = await db_session.execute(select(VerificationToken))
        assert remaining.scalars().all() == []

    @pytest.mark.asyncio
    async def test_expired_token_is_deleted(self, client, db_session, fan):
        record = await self._token(db_session, fan, timedelta(hours=-1))

        response = await client.get("/api/auth/verify-email", params={"token": record.token})

        assert response.status_code == 400
        assert "expired" in response.json()["message"]
        remaining = await db_session.execute(select(VerificationToken))
        assert remaining.scalars().all() == []

    @pytest.mark.asyncio
    async def test_unknown_token(self, client):
        response = await client.get("/api/auth/verify-email", params={"token": "nope"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/auth/verify-email")
        assert response.status_code == 400


class TestProtectedRoutes:

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/users/profile")
        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"

    @pytest.mark.asyncio
    async def test_garbage_token(self, client):
        response = await client.get(
            "/api/users/profile", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_token_for_deleted_user(self, client):
        ghost = User(id=uuid.uuid4(), email="ghost@example.com", role="FAN")
        response = await client.get("/api/users/profile", headers=auth_headers(ghost))
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_suspended_user_forbidden(self, client, make_user):
        user = await make_user(status=UserStatus.SUSPENDED)
        response = await client.get("/api/users/profile", headers=auth_headers(user))
        assert response.status_code == 403
