"""
Integration tests for authentication endpoints.
"""

import pytest
from httpx import AsyncClient

from mpbusinesshub.models import User
from mpbusinesshub.services import accounts

pytestmark = pytest.mark.integration


class TestLoginEndpoint:
    """Test POST /api/auth/login endpoint."""

    @pytest.mark.asyncio
    async def test_login_success(self, client: AsyncClient, owner: User, make_business):
        """Test successful login with correct credentials."""
        await make_business(owner)

        response = await client.post(
            "/api/auth/login",
            json={"email": "owner@lodge.co.za", "password": "password123", "device_name": "pytest"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["message"] == "Login successful"
        assert "|" in body["data"]["token"]
        assert body["data"]["user"]["email"] == "owner@lodge.co.za"
        assert body["data"]["business"]["name"] == "Crocodile River Lodge"

    @pytest.mark.asyncio
    async def test_login_email_is_case_insensitive(self, client: AsyncClient, owner: User):
        response = await client.post(
            "/api/auth/login",
            json={"email": "Owner@Lodge.co.za", "password": "password123"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["business"] is None

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client: AsyncClient, owner: User):
        """Test login with incorrect password."""
        response = await client.post(
            "/api/auth/login",
            json={"email": "owner@lodge.co.za", "password": "wrongpassword"},
        )

        assert response.status_code == 422
        body = response.json()
        assert body["status"] == "error"
        assert body["errors"]["email"] == ["The provided credentials are incorrect."]

    @pytest.mark.asyncio
    async def test_login_nonexistent_user(self, client: AsyncClient):
        """Test login with non-existent email."""
        response = await client.post(
            "/api/auth/login",
            json={"email": "nobody@lodge.co.za", "password": "somepassword"},
        )

        assert response.status_code == 422
        assert response.json()["errors"]["email"] == ["The provided credentials are incorrect."]

    @pytest.mark.asyncio
    async def test_login_missing_password(self, client: AsyncClient):
        response = await client.post("/api/auth/login", json={"email": "owner@lodge.co.za"})

        assert response.status_code == 422
        assert "password" in response.json()["errors"]

    @pytest.mark.asyncio
    async def test_login_unverified_email(self, client: AsyncClient, make_user):
        user = await make_user("new@shop.co.za", verified=False)

        response = await client.post(
            "/api/auth/login",
            json={"email": "new@shop.co.za", "password": "password123"},
        )

        assert response.status_code == 403
        body = response.json()
        assert body["email_verified"] is False
        assert body["user_id"] == str(user.id)
        assert body["email"] == "new@shop.co.za"

    @pytest.mark.asyncio
    async def test_lockout_after_five_failures(self, client: AsyncClient, owner: User):
        """The fifth wrong password is still a 422 but locks the account for later attempts."""
        for _ in range(5):
            response = await client.post(
                "/api/auth/login",
                json={"email": "owner@lodge.co.za", "password": "wrongpassword"},
            )
            assert response.status_code == 422
            assert "email" in response.json()["errors"]

        assert owner.locked_until is not None

        response = await client.post(
            "/api/auth/login",
            json={"email": "owner@lodge.co.za", "password": "wrongpassword"},
        )
        assert response.status_code == 403
        assert "locked_until" in response.json()

        response = await client.post(
            "/api/auth/login",
            json={"email": "owner@lodge.co.za", "password": "password123"},
        )
        assert response.status_code == 403
        assert "locked" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_success_resets_failed_attempts(self, client: AsyncClient, owner: User):
        await client.post("/api/auth/login", json={"email": "owner@lodge.co.za", "password": "wrong"})

        response = await client.post(
            "/api/auth/login",
            json={"email": "owner@lodge.co.za", "password": "password123"},
        )

        assert response.status_code == 200
        assert owner.failed_login_attempts == 0


class TestCurrentUserEndpoints:
    """Test /api/auth/me, /api/auth/role and logout."""

    @pytest.mark.asyncio
    async def test_me_requires_token(self, client: AsyncClient):
        response = await client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json()["message"] == "Unauthenticated."

    @pytest.mark.asyncio
    async def test_me_invalid_token(self, client: AsyncClient):
        response = await client.get("/api/auth/me", headers={"Authorization": "Bearer nonsense"})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me(self, client: AsyncClient, owner: User, owner_token: str):
        response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {owner_token}"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user"]["id"] == str(owner.id)
        assert data["user"]["email_verified"] is True

    @pytest.mark.asyncio
    async def test_role(self, client: AsyncClient, admin_token: str):
        response = await client.get("/api/auth/role", headers={"Authorization": f"Bearer {admin_token}"})

        assert response.json()["data"] == {"role": "admin"}

    @pytest.mark.asyncio
    async def test_logout_revokes_all_tokens(self, client: AsyncClient, owner: User, owner_token: str, make_token):
        other_token = await make_token(owner, "phone")

        response = await client.post("/api/auth/logout", headers={"Authorization": f"Bearer {owner_token}"})
        assert response.status_code == 200

        for token in (owner_token, other_token):
            response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
            assert response.status_code == 401


class TestEmailVerification:
    """Test POST /api/email/verify and the resend endpoint."""

    @pytest.mark.asyncio
    async def test_verify_email(self, client: AsyncClient, make_user):
        user = await make_user("new@shop.co.za", verified=False)
        token = accounts.send_verification_link(user)

        response = await client.post("/api/email/verify", json={"token": token})

        assert response.status_code == 200
        assert response.json()["message"] == "Email verified successfully"
        assert user.email_verified_at is not None

        response = await client.post("/api/email/verify", json={"token": token})
        assert response.json()["message"] == "Email already verified"

    @pytest.mark.asyncio
    async def test_verify_email_invalid_token(self, client: AsyncClient):
        response = await client.post("/api/email/verify", json={"token": "not-a-token"})

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_reset_token_cannot_verify_email(self, client: AsyncClient, make_user):
        user = await make_user("new@shop.co.za", verified=False)
        token = accounts.send_password_reset_link(user)

        response = await client.post("/api/email/verify", json={"token": token})

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_resend_when_already_verified(self, client: AsyncClient, owner_token: str):
        response = await client.post(
            "/api/email/verification-notification",
            headers={"Authorization": f"Bearer {owner_token}"},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_resend(self, client: AsyncClient, make_user, make_token):
        user = await make_user("new@shop.co.za", verified=False)
        token = await make_token(user)

        response = await client.post(
            "/api/email/verification-notification",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Verification link sent"


class TestPasswordReset:
    """Test the forgot/reset password flow."""

    @pytest.mark.asyncio
    async def test_forgot_password_unknown_email(self, client: AsyncClient):
        response = await client.post("/api/password/email", json={"email": "nobody@shop.co.za"})

        assert response.status_code == 422
        assert "email" in response.json()["errors"]

    @pytest.mark.asyncio
    async def test_forgot_password(self, client: AsyncClient, owner: User):
        response = await client.post("/api/password/email", json={"email": "owner@lodge.co.za"})

        assert response.status_code == 200
        assert response.json()["message"] == "We have emailed your password reset link."

    @pytest.mark.asyncio
    async def test_reset_password(self, client: AsyncClient, owner: User, owner_token: str):
        token = accounts.send_password_reset_link(owner)

        response = await client.post(
            "/api/password/reset",
            json={
                "token": token,
                "email": "owner@lodge.co.za",
                "password": "newpassword1",
                "password_confirmation": "newpassword1",
            },
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Your password has been reset."

        # Existing sessions are revoked
        response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {owner_token}"})
        assert response.status_code == 401

        response = await client.post(
            "/api/auth/login",
            json={"email": "owner@lodge.co.za", "password": "newpassword1"},
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_reset_token_is_single_use(self, client: AsyncClient, owner: User):
        token = accounts.send_password_reset_link(owner)
        payload = {
            "token": token,
            "email": "owner@lodge.co.za",
            "password": "newpassword1",
            "password_confirmation": "newpassword1",
        }

        assert (await client.post("/api/password/reset", json=payload)).status_code == 200

        payload["password"] = payload["password_confirmation"] = "another-pass"
        response = await client.post("/api/password/reset", json=payload)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_reset_password_wrong_email(self, client: AsyncClient, owner: User):
        token = accounts.send_password_reset_link(owner)

        response = await client.post(
            "/api/password/reset",
            json={
                "token": token,
                "email": "someone@else.co.za",
                "password": "newpassword1",
                "password_confirmation": "newpassword1",
            },
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_reset_password_confirmation_mismatch(self, client: AsyncClient, owner: User):
        response = await client.post(
            "/api/password/reset",
            json={
                "token": "x",
                "email": "owner@lodge.co.za",
                "password": "newpassword1",
                "password_confirmation": "different1",
            },
        )

        assert response.status_code == 422
        assert response.json()["errors"]["request"] == ["The password confirmation does not match."]
