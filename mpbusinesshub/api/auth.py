"""
Authentication API routes.

Provides endpoints for:
- Login (session token issue, lockout) and logout
- Current user and role lookup
- Email verification
- Password reset
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, EmailStr, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from mpbusinesshub.api.responses import success
from mpbusinesshub.database import get_db
from mpbusinesshub.middleware.auth import client_ip, get_current_user
from mpbusinesshub.models import User
from mpbusinesshub.services import accounts
from mpbusinesshub.services.tokens import SessionTokenManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["authentication"])

INVALID_CREDENTIALS = "The provided credentials are incorrect."


# Pydantic schemas
class LoginRequest(BaseModel):
    """Schema for login request."""

    email: EmailStr
    password: str = Field(..., min_length=1)
    device_name: Optional[str] = Field(None, max_length=255)


class VerifyEmailRequest(BaseModel):
    token: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Schema for password reset."""

    token: str
    email: EmailStr
    password: str = Field(..., min_length=8)
    password_confirmation: str

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.password_confirmation:
            raise ValueError("The password confirmation does not match.")
        return self


def _validation_error(field: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"message": "Validation failed", "errors": {field: [message]}},
    )


@router.post("/auth/login")
async def login(login_data: LoginRequest, request: Request, db: AsyncSession = Depends(get_db)):
    """
    Authenticate user and return a session token.

    Raises:
        HTTPException: 422 on bad credentials, 403 when locked or unverified
    """
    token_name = login_data.device_name or client_ip(request) or "Unknown device"
    try:
        user, issued = await accounts.authenticate(db, login_data.email, login_data.password, token_name)
    except accounts.InvalidCredentialsError:
        raise _validation_error("email", INVALID_CREDENTIALS)
    except accounts.AccountLockedError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": (
                    "Too many failed login attempts. Your account is locked for "
                    f"{e.minutes_remaining} minute(s)."
                ),
                "locked_until": e.locked_until.isoformat(),
            },
        )
    except accounts.EmailNotVerifiedError as e:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": "Please verify your email address before logging in.",
                "email_verified": False,
                "user_id": str(e.user.id),
                "email": e.user.email,
            },
        )

    business = await accounts.get_user_business(db, user.id)
    return success(
        {
            "token": issued.plain_text,
            "user": accounts.serialize_user(user),
            "business": accounts.business_summary(business),
        },
        "Login successful",
    )


@router.post("/auth/logout")
async def logout(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    """Revoke every session token of the current user."""
    await SessionTokenManager(db).revoke_all(current_user.id)
    await db.commit()
    logger.info("User logged out", extra={"user_id": str(current_user.id)})
    return success(message="Logged out successfully")


@router.get("/auth/me")
async def me(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    business = await accounts.get_user_business(db, current_user.id)
    return success(
        {
            "user": accounts.serialize_user(current_user),
            "business": accounts.business_summary(business),
        }
    )


@router.get("/auth/role")
async def role(current_user: User = Depends(get_current_user)):
    return success({"role": current_user.role})


@router.post("/email/verify")
async def verify_email(payload: VerifyEmailRequest, db: AsyncSession = Depends(get_db)):
    try:
        user, already_verified = await accounts.verify_email(db, payload.token)
    except accounts.InvalidTokenError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    if already_verified:
        return success(message="Email already verified")
    return success({"user": accounts.serialize_user(user)}, "Email verified successfully")


@router.post("/email/verification-notification")
async def resend_verification(current_user: User = Depends(get_current_user)):
    if current_user.email_verified:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already verified")
    accounts.send_verification_link(current_user)
    return success(message="Verification link sent")


@router.post("/password/email")
async def forgot_password(payload: ForgotPasswordRequest, db: AsyncSession = Depends(get_db)):
    user = await accounts.get_user_by_email(db, payload.email)
    if user is None:
        raise _validation_error("email", "We can't find a user with that email address.")
    accounts.send_password_reset_link(user)
    return success(message="We have emailed your password reset link.")


@router.post("/password/reset")
async def reset_password(payload: ResetPasswordRequest, db: AsyncSession = Depends(get_db)):
    try:
        await accounts.reset_password(db, payload.token, payload.email, payload.password)
    except accounts.InvalidTokenError as e:
        raise _validation_error("email", str(e))
    return success(message="Your password has been reset.")
