"""
Session token authentication and role authorization.

Provides FastAPI dependencies for:
- Personal access token validation (with activity tracking)
- Current user resolution
- Admin-only access
- Loading the current user's business
"""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mpbusinesshub.database import get_db
from mpbusinesshub.models import AccessToken, Business, User
from mpbusinesshub.services.tokens import SessionTokenManager

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme. Missing credentials are reported as 401 below.
security = HTTPBearer(auto_error=False)


def client_ip(request: Request) -> Optional[str]:
    """Client address, honouring the first X-Forwarded-For hop."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _unauthenticated() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthenticated.",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> AccessToken:
    """
    Validate the bearer token and record its use.

    Raises:
        HTTPException: 401 if the token is missing, unknown or expired
    """
    if credentials is None:
        raise _unauthenticated()

    manager = SessionTokenManager(db)
    token = await manager.find_token(credentials.credentials)
    if token is None:
        raise _unauthenticated()

    manager.touch(token, client_ip(request))
    await db.commit()
    return token


async def get_current_user(
    token: AccessToken = Depends(get_current_token),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Return the user owning the current token.

    Raises:
        HTTPException: 401 if the user no longer exists
    """
    result = await db.execute(select(User).where(User.id == token.user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise _unauthenticated()
    return user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """
    Require the current user to have the admin role.

    Raises:
        HTTPException: 403 for non-admin users
    """
    if not current_user.is_admin:
        logger.warning(f"Non-admin user {current_user.id} attempted admin access")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user


async def get_current_business(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Business:
    """
    Business owned by the current user.

    Raises:
        HTTPException: 404 if the user has no business
    """
    result = await db.execute(select(Business).where(Business.user_id == current_user.id))
    business = result.scalar_one_or_none()
    if business is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Business not found"
        )
    return business
