"""
Security utilities.

Provides bcrypt password hashing, signed single-purpose tokens (password
reset and email verification links) built on JWT, and helpers for opaque
session token secrets.
"""

import hashlib
import secrets
import string
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
from jose import jwt

from mpbusinesshub.config.settings import get_settings

settings = get_settings()

PASSWORD_RESET = "password_reset"
EMAIL_VERIFICATION = "email_verification"

_TOKEN_ALPHABET = string.ascii_letters + string.digits


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Hashed password as string
    """
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    """
    Verify a password against its hash.

    Args:
        password: Plain text password to verify
        hashed_password: Previously hashed password

    Returns:
        True if password matches, False otherwise
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except Exception:
        return False


def generate_token_secret(length: int = 40) -> str:
    """Random alphanumeric secret for personal access tokens."""
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))


def hash_token(token: str) -> str:
    """SHA-256 hex digest used to store token secrets."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def password_fingerprint(hashed_password: str) -> str:
    """Short digest of the stored password hash.

    Embedded in reset tokens so a token stops working once the password
    has changed.
    """
    return hashlib.sha256(hashed_password.encode("utf-8")).hexdigest()[:16]


def create_signed_token(
    subject: str,
    token_type: str,
    expires_delta: timedelta,
    extra_claims: Optional[dict] = None,
) -> str:
    """
    Create a signed JWT for a single purpose.

    Args:
        subject: Token subject (user id)
        token_type: Purpose claim, e.g. ``password_reset``
        expires_delta: Lifetime of the token
        extra_claims: Additional claims to embed

    Returns:
        Encoded JWT token string
    """
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": subject,
        "exp": now + expires_delta,
        "iat": now,
        "type": token_type,
        "jti": str(uuid.uuid4()),
    }
    if extra_claims:
        to_encode.update(extra_claims)

    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def verify_signed_token(token: str, token_type: str) -> dict:
    """
    Verify and decode a signed token.

    Args:
        token: JWT token string
        token_type: Expected purpose claim

    Returns:
        Decoded token payload

    Raises:
        JWTError: If token is invalid or expired
        ValueError: If token type doesn't match
    """
    payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])

    if payload.get("type") != token_type:
        raise ValueError(f"Invalid token type. Expected {token_type}, got {payload.get('type')}")

    return payload


def create_password_reset_token(user_id: str, email: str, hashed_password: str) -> str:
    return create_signed_token(
        subject=user_id,
        token_type=PASSWORD_RESET,
        expires_delta=timedelta(minutes=settings.password_reset_expire_minutes),
        extra_claims={"email": email, "pwd": password_fingerprint(hashed_password)},
    )


def create_email_verification_token(user_id: str, email: str) -> str:
    return create_signed_token(
        subject=user_id,
        token_type=EMAIL_VERIFICATION,
        expires_delta=timedelta(minutes=settings.email_verification_expire_minutes),
        extra_claims={"email": email},
    )
