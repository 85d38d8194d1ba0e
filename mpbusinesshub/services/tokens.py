"""Session Token Management

Purpose: Handle personal access token lifecycle operations

Tokens are issued at login and registration and identify an API session
(one per device). They are stored in the ``personal_access_tokens`` table.

Key Features:
- Plain token format ``"<token id>|<40 char secret>"``
- SHA-256 hashing of the secret for storage
- Expiration after ``token_expiration_minutes``
- Last activity tracking (time and IP)
- Per-user listing and revocation
- Cleanup of expired tokens

Security Considerations:
- The secret is never stored in plaintext
- Hashes are compared in constant time
"""

import hmac
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from mpbusinesshub.config.settings import get_settings
from mpbusinesshub.models import AccessToken, User
from mpbusinesshub.models.base import utc_now
from mpbusinesshub.security import generate_token_secret, hash_token

logger = logging.getLogger(__name__)


@dataclass
class IssuedToken:
    """A freshly created token together with its one-time plain text value."""

    token: AccessToken
    plain_text: str


class SessionTokenManager:
    """Personal access token store backed by the database session."""

    def __init__(self, db: AsyncSession, expiration_minutes: Optional[int] = None):
        """Initialize token manager

        Args:
            db: Database session used for token storage
            expiration_minutes: Token lifetime, defaults to settings
        """
        self.db = db
        if expiration_minutes is None:
            expiration_minutes = get_settings().token_expiration_minutes
        self.expiration_minutes = expiration_minutes

    async def create_token(self, user: User, name: str) -> IssuedToken:
        """Generate and store a new token for ``user``.

        The caller commits the session.
        """
        secret = generate_token_secret()
        now = utc_now()
        token = AccessToken(
            user_id=user.id,
            name=name[:255] if name else "Unknown device",
            token_hash=hash_token(secret),
            created_at=now,
            expires_at=now + timedelta(minutes=self.expiration_minutes) if self.expiration_minutes else None,
        )
        self.db.add(token)
        await self.db.flush()

        logger.info(f"Created token for user {user.id} (token_id: {token.id})")
        return IssuedToken(token=token, plain_text=f"{token.id}|{secret}")

    async def find_token(self, plain_text: str) -> Optional[AccessToken]:
        """Resolve a plain text token to its stored record.

        Returns None for malformed, unknown, mismatched or expired tokens.
        """
        if not plain_text or "|" not in plain_text:
            return None

        token_id, secret = plain_text.split("|", 1)
        try:
            token_uuid = UUID(token_id)
        except ValueError:
            return None

        result = await self.db.execute(select(AccessToken).where(AccessToken.id == token_uuid))
        token = result.scalar_one_or_none()
        if token is None:
            return None

        if not hmac.compare_digest(token.token_hash, hash_token(secret)):
            logger.warning(f"Token hash mismatch for token_id {token.id}")
            return None

        if token.is_expired():
            logger.info(f"Rejected expired token {token.id}")
            return None

        return token

    def touch(self, token: AccessToken, ip_address: Optional[str] = None) -> None:
        """Record activity on ``token``. The caller commits the session."""
        token.last_used_at = utc_now()
        if ip_address:
            token.last_used_ip = ip_address

    async def list_tokens(self, user_id: UUID) -> List[AccessToken]:
        """All tokens of a user, newest first."""
        result = await self.db.execute(
            select(AccessToken)
            .where(AccessToken.user_id == user_id)
            .order_by(AccessToken.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_user_token(self, user_id: UUID, token_id: UUID) -> Optional[AccessToken]:
        result = await self.db.execute(
            select(AccessToken).where(AccessToken.id == token_id, AccessToken.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def revoke_token(self, token: AccessToken) -> None:
        await self.db.delete(token)
        logger.info(f"Revoked token {token.id} for user {token.user_id}")

    async def revoke_all(self, user_id: UUID, except_token_id: Optional[UUID] = None) -> int:
        """Revoke every token of a user, optionally keeping one.

        Returns:
            Number of tokens revoked
        """
        stmt = delete(AccessToken).where(AccessToken.user_id == user_id)
        if except_token_id is not None:
            stmt = stmt.where(AccessToken.id != except_token_id)
        result = await self.db.execute(stmt.execution_options(synchronize_session="fetch"))
        logger.info(f"Revoked {result.rowcount} tokens for user {user_id}")
        return result.rowcount

    async def prune_expired(self, now: Optional[datetime] = None) -> int:
        """Delete expired tokens.

        Returns:
            Number of tokens deleted
        """
        now = now or utc_now()
        result = await self.db.execute(
            delete(AccessToken)
            .where(AccessToken.expires_at.is_not(None), AccessToken.expires_at <= now)
            .execution_options(synchronize_session="fetch")
        )
        logger.info(f"Pruned {result.rowcount} expired tokens")
        return result.rowcount
