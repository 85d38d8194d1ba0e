"""
Account operations: login with lockout, business registration, password
reset and email verification.

Outgoing emails are not sent by this service. Links are written to the log.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from jose import JWTError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mpbusinesshub.config.settings import get_settings
from mpbusinesshub.models import Business, Package, User
from mpbusinesshub.models.base import utc_now
from mpbusinesshub.models.business import STATUS_PENDING
from mpbusinesshub.models.user import ROLE_USER
from mpbusinesshub.security import (
    EMAIL_VERIFICATION,
    PASSWORD_RESET,
    create_email_verification_token,
    create_password_reset_token,
    hash_password,
    password_fingerprint,
    verify_password,
    verify_signed_token,
)
from mpbusinesshub.services.tiers import BASIC
from mpbusinesshub.services.tokens import IssuedToken, SessionTokenManager

logger = logging.getLogger(__name__)


class InvalidCredentialsError(Exception):
    pass


class AccountLockedError(Exception):
    def __init__(self, locked_until: datetime, now: Optional[datetime] = None):
        self.locked_until = locked_until
        now = now or utc_now()
        self.minutes_remaining = max(1, int((locked_until - now).total_seconds() // 60) + 1)
        super().__init__(f"Account locked until {locked_until.isoformat()}")


class EmailNotVerifiedError(Exception):
    def __init__(self, user: User):
        self.user = user
        super().__init__("Email not verified")


class InvalidTokenError(Exception):
    pass


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
    return result.scalar_one_or_none()


async def email_taken(db: AsyncSession, email: str, exclude_user_id: Optional[UUID] = None) -> bool:
    stmt = select(User.id).where(func.lower(User.email) == email.strip().lower())
    if exclude_user_id is not None:
        stmt = stmt.where(User.id != exclude_user_id)
    result = await db.execute(stmt)
    return result.first() is not None


async def get_user_business(db: AsyncSession, user_id: UUID) -> Optional[Business]:
    result = await db.execute(select(Business).where(Business.user_id == user_id))
    return result.scalar_one_or_none()


async def authenticate(
    db: AsyncSession,
    email: str,
    password: str,
    token_name: str,
) -> tuple:
    """
    Check credentials and issue a session token.

    Failed passwords count towards a temporary lockout. The lock is checked
    before the password so a locked account cannot be guessed against.

    Returns:
        Tuple of (user, IssuedToken)

    Raises:
        InvalidCredentialsError: Unknown email or wrong password. The failure
            that reaches the attempt limit sets the lock and still raises this.
        AccountLockedError: Login attempted while the lock is active
        EmailNotVerifiedError: Correct password but unverified email
    """
    settings = get_settings()
    now = utc_now()

    user = await get_user_by_email(db, email)
    if user is None:
        logger.warning("Login attempt for unknown email")
        raise InvalidCredentialsError()

    if user.is_locked(now):
        logger.warning(f"Login attempt on locked account {user.id}")
        raise AccountLockedError(user.locked_until, now)

    if not verify_password(password, user.hashed_password):
        user.failed_login_attempts += 1
        if user.failed_login_attempts >= settings.max_login_attempts:
            user.locked_until = now + timedelta(minutes=settings.lockout_minutes)
            logger.warning(
                "Account locked after repeated failures",
                extra={"user_id": str(user.id), "attempts": user.failed_login_attempts},
            )
        await db.commit()
        raise InvalidCredentialsError()

    user.failed_login_attempts = 0
    user.locked_until = None

    if not user.email_verified:
        await db.commit()
        raise EmailNotVerifiedError(user)

    user.last_login_at = now
    issued = await SessionTokenManager(db).create_token(user, token_name)
    await db.commit()

    logger.info("User logged in", extra={"user_id": str(user.id), "device": token_name})
    return user, issued


async def register_business(db: AsyncSession, data: dict) -> tuple:
    """
    Create the owner account, its business listing and a session token in
    a single transaction.

    Args:
        db: Database session
        data: Validated registration fields (snake_case)

    Returns:
        Tuple of (user, business, IssuedToken)
    """
    result = await db.execute(select(Package).where(Package.name == BASIC))
    basic_package = result.scalar_one_or_none()

    user = User(
        name=data["business_name"],
        email=data["email"].strip().lower(),
        hashed_password=hash_password(data["password"]),
        role=ROLE_USER,
    )
    db.add(user)
    await db.flush()

    business = Business(
        user_id=user.id,
        package_id=basic_package.id if basic_package else None,
        name=data["business_name"],
        category=data["category"],
        district=data["district"],
        description=data["description"],
        phone=data["phone"],
        email=user.email,
        website=data.get("website"),
        address=data["address"],
        package_type=BASIC,
        status=STATUS_PENDING,
        adverts_remaining=0,
        social_features_remaining=0,
    )
    db.add(business)

    issued: IssuedToken = await SessionTokenManager(db).create_token(user, "auth_token")
    await db.commit()
    await db.refresh(business)

    send_verification_link(user)
    logger.info(
        "Business registered",
        extra={"user_id": str(user.id), "business_id": str(business.id), "category": business.category},
    )
    return user, business, issued


def send_verification_link(user: User) -> str:
    settings = get_settings()
    token = create_email_verification_token(str(user.id), user.email)
    link = f"{settings.frontend_url.rstrip('/')}/verify-email?token={token}"
    logger.info("Email verification link issued", extra={"user_id": str(user.id), "link": link})
    return token


async def verify_email(db: AsyncSession, token: str) -> tuple:
    """
    Mark the token's user as verified.

    Returns:
        Tuple of (user, already_verified)

    Raises:
        InvalidTokenError: If the token is invalid, expired or stale
    """
    try:
        payload = verify_signed_token(token, EMAIL_VERIFICATION)
        user_id = UUID(payload.get("sub", ""))
    except (JWTError, ValueError):
        raise InvalidTokenError("Invalid or expired verification link")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None or user.email.lower() != str(payload.get("email", "")).lower():
        raise InvalidTokenError("Invalid or expired verification link")

    if user.email_verified:
        return user, True

    user.email_verified_at = utc_now()
    await db.commit()
    logger.info("Email verified", extra={"user_id": str(user.id)})
    return user, False


def send_password_reset_link(user: User) -> str:
    settings = get_settings()
    token = create_password_reset_token(str(user.id), user.email, user.hashed_password)
    link = f"{settings.frontend_url.rstrip('/')}/reset-password?token={token}&email={user.email}"
    logger.info("Password reset link issued", extra={"user_id": str(user.id), "link": link})
    return token


async def reset_password(db: AsyncSession, token: str, email: str, password: str) -> User:
    """
    Set a new password using a reset token.

    All sessions of the user are revoked and any lockout is cleared.

    Raises:
        InvalidTokenError: If the token is invalid, expired, already used or
            issued for a different email
    """
    try:
        payload = verify_signed_token(token, PASSWORD_RESET)
        user_id = UUID(payload.get("sub", ""))
    except (JWTError, ValueError):
        raise InvalidTokenError("This password reset token is invalid.")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if (
        user is None
        or user.email.lower() != email.strip().lower()
        or payload.get("pwd") != password_fingerprint(user.hashed_password)
    ):
        raise InvalidTokenError("This password reset token is invalid.")

    user.hashed_password = hash_password(password)
    user.password_changed_at = utc_now()
    user.failed_login_attempts = 0
    user.locked_until = None
    await SessionTokenManager(db).revoke_all(user.id)
    await db.commit()

    logger.info("Password reset", extra={"user_id": str(user.id)})
    return user


def serialize_user(user: User) -> dict:
    return {
        "id": str(user.id),
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "email_verified": user.email_verified,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def business_summary(business: Optional[Business]) -> Optional[dict]:
    if business is None:
        return None
    return {
        "id": str(business.id),
        "name": business.name,
        "status": business.status,
        "package_type": business.package_type,
    }
