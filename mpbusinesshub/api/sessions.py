"""
Session (personal access token) management routes.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from mpbusinesshub.api.responses import success
from mpbusinesshub.database import get_db
from mpbusinesshub.middleware.auth import client_ip, get_current_token
from mpbusinesshub.models import AccessToken
from mpbusinesshub.services.tokens import SessionTokenManager

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


def serialize_session(token: AccessToken, current_token_id: UUID) -> dict:
    return {
        "id": str(token.id),
        "device": token.name,
        "ip_address": token.last_used_ip or "Unknown",
        "last_active": token.last_used_at.isoformat() if token.last_used_at else None,
        "created_at": token.created_at.isoformat(),
        "expires_at": token.expires_at.isoformat() if token.expires_at else None,
        "is_current_device": token.id == current_token_id,
    }


@router.get("")
async def list_sessions(
    current_token: AccessToken = Depends(get_current_token),
    db: AsyncSession = Depends(get_db),
):
    """List all active sessions of the current user."""
    tokens = await SessionTokenManager(db).list_tokens(current_token.user_id)
    return success([serialize_session(t, current_token.id) for t in tokens])


@router.delete("/{session_id}")
async def revoke_session(
    session_id: UUID,
    current_token: AccessToken = Depends(get_current_token),
    db: AsyncSession = Depends(get_db),
):
    """Revoke one of the current user's other sessions."""
    if session_id == current_token.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot revoke the current session"
        )

    manager = SessionTokenManager(db)
    token = await manager.get_user_token(current_token.user_id, session_id)
    if token is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")

    await manager.revoke_token(token)
    await db.commit()
    return success(message="Session revoked successfully")


@router.delete("")
async def revoke_other_sessions(
    current_token: AccessToken = Depends(get_current_token),
    db: AsyncSession = Depends(get_db),
):
    """Revoke every session except the current one."""
    revoked = await SessionTokenManager(db).revoke_all(current_token.user_id, except_token_id=current_token.id)
    await db.commit()
    return success({"revoked": revoked}, "All other sessions revoked successfully")


@router.post("/activity")
async def record_activity(
    request: Request,
    current_token: AccessToken = Depends(get_current_token),
    db: AsyncSession = Depends(get_db),
):
    """Refresh the last activity of the current session."""
    SessionTokenManager(db).touch(current_token, client_ip(request))
    await db.commit()
    return success(
        {"last_active": current_token.last_used_at.isoformat()},
        "Session activity updated",
    )
