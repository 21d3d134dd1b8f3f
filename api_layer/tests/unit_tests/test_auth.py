"""Tests for bearer tokens, password rules and the authentication endpoints."""

from contextlib import asynccontextmanager
from datetime import timedelta
from unittest.mock import AsyncMock
from unittest.mock import MagicMock
from uuid import uuid4

import jwt
import pytest
from fastapi import status

from tests.consts import API_BASE
from vdr_api.auth.passwords import check_new_password
from vdr_api.auth.passwords import hash_password
from vdr_api.auth.passwords import verify_password
from vdr_api.auth.tokens import Principal
from vdr_api.auth.tokens import TokenService
from vdr_api.db.repository_one_time_code import OneTimeCodeRepository
from vdr_api.enums import TokenType
from vdr_api.errors import AuthError
from vdr_api.errors import ForbiddenError
from vdr_api.errors import InputValidationError


class TestTokenService:
    """Tests for issuing and decoding bearer tokens."""

    def test_round_trip_keeps_claims(self, token_service):
        principal = Principal(email="a@example.com", role="admin", name="Ann")

        decoded = token_service.decode(token_service.issue(principal, timedelta(minutes=5)))

        assert decoded == principal
        assert decoded.is_admin

    def test_organization_principal_is_not_admin(self, token_service):
        org_id = str(uuid4())
        token = token_service.issue(
            Principal(email="org@example.com", role="admin", type=TokenType.ORGANIZATION, org_id=org_id),
            timedelta(minutes=5),
        )

        decoded = token_service.decode(token)

        assert decoded.type == TokenType.ORGANIZATION
        assert decoded.org_id == org_id
        assert not decoded.is_admin

    def test_expired_token(self, token_service):
        token = token_service.issue(Principal(email="a@example.com"), timedelta(seconds=-1))

        with pytest.raises(AuthError, match="Token expired"):
            token_service.decode(token)

    def test_wrong_secret(self, token_service):
        other = TokenService("another-secret-with-enough-length-for-hs256")
        token = other.issue(Principal(email="a@example.com"), timedelta(minutes=5))

        with pytest.raises(ForbiddenError):
            token_service.decode(token)

    def test_token_without_email(self, token_service):
        token = jwt.encode({"role": "user"}, token_service.secret, algorithm="HS256")

        with pytest.raises(ForbiddenError, match="Invalid token"):
            token_service.decode(token)

    def test_unknown_token_type(self, token_service):
        token = jwt.encode({"email": "a@example.com", "type": "robot"}, token_service.secret, algorithm="HS256")

        with pytest.raises(ForbiddenError):
            token_service.decode(token)


class TestPasswords:
    """Tests for password hashing and change rules."""

    def test_hash_and_verify(self):
        hashed = hash_password("s3cret!")

        assert hashed != "s3cret!"
        assert verify_password("s3cret!", hashed)
        assert not verify_password("wrong", hashed)

    def test_malformed_hash_never_matches(self):
        assert not verify_password("s3cret!", "not-a-bcrypt-hash")

    def test_mismatched_confirmation(self):
        with pytest.raises(InputValidationError, match="do not match"):
            check_new_password("abcdef", "abcdeg")

    def test_too_short(self):
        with pytest.raises(InputValidationError, match="at least 6"):
            check_new_password("abc", "abc")

    def test_valid_password(self):
        check_new_password("abcdef", "abcdef")


class TestRequestOtp:
    """Tests for POST /auth/request-otp."""

    def test_otp_issued(self, unauthenticated_client, repos):
        repos.users.exists.return_value = True
        repos.codes.issue.return_value = "123456"

        response = unauthenticated_client.post(f"{API_BASE}/auth/request-otp", json={"email": "user@example.com"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["message"] == "OTP sent to email"
        repos.codes.issue.assert_awaited_once_with("login_otp", "user@example.com", 300)

    def test_unknown_user(self, unauthenticated_client, repos):
        repos.users.exists.return_value = False

        response = unauthenticated_client.post(f"{API_BASE}/auth/request-otp", json={"email": "ghost@example.com"})

        assert response.status_code == status.HTTP_404_NOT_FOUND
        repos.codes.issue.assert_not_called()

    def test_missing_email(self, unauthenticated_client, repos):
        response = unauthenticated_client.post(f"{API_BASE}/auth/request-otp", json={})

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestVerifyOtp:
    """Tests for POST /auth/verify-otp."""

    def test_valid_code_returns_token(self, unauthenticated_client, repos, token_service):
        repos.codes.consume.return_value = True
        repos.users.get_by_email.return_value = {
            "id": str(uuid4()),
            "name": "Test User",
            "email": "user@example.com",
            "role": "user",
        }

        response = unauthenticated_client.post(
            f"{API_BASE}/auth/verify-otp", json={"email": "user@example.com", "otp": " 123456 "}
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["role"] == "user"
        assert token_service.decode(data["token"]).email == "user@example.com"
        repos.codes.consume.assert_awaited_once_with("login_otp", "user@example.com", "123456")

    def test_invalid_code(self, unauthenticated_client, repos):
        repos.codes.consume.return_value = False

        response = unauthenticated_client.post(
            f"{API_BASE}/auth/verify-otp", json={"email": "user@example.com", "otp": "000000"}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["error"] == "Invalid or expired OTP"


class TestRegister:
    """Tests for POST /auth/register."""

    def _body(self, **overrides):
        body = {"name": "New User", "email": "new@example.com", "password": "abcdef"}
        body.update(overrides)
        return body

    def test_registered(self, unauthenticated_client, repos):
        user_id = str(uuid4())
        repos.users.exists.return_value = False
        repos.users.create.return_value = user_id

        response = unauthenticated_client.post(f"{API_BASE}/auth/register", json=self._body())

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["id"] == user_id
        stored_hash = repos.users.create.await_args.args[2]
        assert verify_password("abcdef", stored_hash)

    def test_duplicate_email(self, unauthenticated_client, repos):
        repos.users.exists.return_value = True

        response = unauthenticated_client.post(f"{API_BASE}/auth/register", json=self._body())

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_short_password(self, unauthenticated_client, repos):
        response = unauthenticated_client.post(f"{API_BASE}/auth/register", json=self._body(password="abc"))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        repos.users.create.assert_not_called()


class TestPasswordReset:
    """Tests for forgot-password and reset-password."""

    def test_forgot_password_unknown_email_looks_identical(self, unauthenticated_client, repos):
        repos.users.exists.return_value = False

        response = unauthenticated_client.post(
            f"{API_BASE}/auth/forgot-password", json={"email": "ghost@example.com"}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["message"] == "If the email exists, a password reset OTP has been sent"
        repos.codes.issue.assert_not_called()

    def test_forgot_password_issues_code(self, unauthenticated_client, repos):
        repos.users.exists.return_value = True
        repos.codes.issue.return_value = "654321"

        response = unauthenticated_client.post(
            f"{API_BASE}/auth/forgot-password", json={"email": "user@example.com"}
        )

        assert response.status_code == status.HTTP_200_OK
        repos.codes.issue.assert_awaited_once_with("password_reset", "user@example.com", 600)

    def test_reset_with_valid_code(self, unauthenticated_client, repos):
        repos.codes.consume.return_value = True
        repos.users.update_password.return_value = True

        response = unauthenticated_client.post(
            f"{API_BASE}/auth/reset-password",
            json={
                "email": "user@example.com",
                "token": "654321",
                "newPassword": "newpass",
                "confirmPassword": "newpass",
            },
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["message"] == "Password reset successfully"

    def test_reset_with_used_code(self, unauthenticated_client, repos):
        repos.codes.consume.return_value = False

        response = unauthenticated_client.post(
            f"{API_BASE}/auth/reset-password",
            json={
                "email": "user@example.com",
                "token": "654321",
                "newPassword": "newpass",
                "confirmPassword": "newpass",
            },
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        repos.users.update_password.assert_not_called()


class TestOneTimeCodeRepository:
    """Tests for the one-time code store statements."""

    @staticmethod
    def _repository(consumed=None):
        conn = MagicMock()
        conn.execute = AsyncMock(return_value="OK")
        conn.fetchval = AsyncMock(return_value=consumed)

        @asynccontextmanager
        async def borrow():
            yield conn

        db = MagicMock()
        db.acquire = borrow
        db.transaction = borrow
        return OneTimeCodeRepository(db), conn

    @pytest.mark.asyncio
    async def test_issue_sweeps_expired_and_upserts(self):
        repository, conn = self._repository()

        code = await repository.issue("login_otp", "user@example.com", 300)

        assert len(code) == 6 and code.isdigit()
        sweep, upsert = conn.execute.await_args_list
        assert "expires_at < NOW()" in sweep.args[0]
        assert "ON CONFLICT (purpose, email)" in upsert.args[0]
        assert upsert.args[1:] == ("login_otp", "user@example.com", code, 300.0)

    @pytest.mark.asyncio
    async def test_consume_is_single_use_delete(self):
        repository, conn = self._repository(consumed="user@example.com")

        assert await repository.consume("login_otp", "user@example.com", "123456")
        statement = conn.fetchval.await_args.args[0]
        assert "DELETE FROM one_time_codes" in statement
        assert "expires_at >= NOW()" in statement

    @pytest.mark.asyncio
    async def test_consume_unknown_or_expired(self):
        repository, _ = self._repository(consumed=None)

        assert not await repository.consume("password_reset", "user@example.com", "000000")
