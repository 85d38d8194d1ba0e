"""
Business registration route.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from mpbusinesshub.api.responses import success
from mpbusinesshub.api.schemas import RegisterBusinessRequest
from mpbusinesshub.database import get_db
from mpbusinesshub.services import accounts

router = APIRouter(prefix="/api/businesses", tags=["registration"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register_business(payload: RegisterBusinessRequest, db: AsyncSession = Depends(get_db)):
    """
    Register an owner account together with its business listing.

    The listing starts as ``pending`` on the Basic package and the account
    must verify its email before it can log in again.

    Raises:
        HTTPException: 422 if the email is already registered
    """
    if await accounts.email_taken(db, payload.email):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "message": "Validation failed",
                "errors": {"email": ["The email has already been taken."]},
            },
        )

    user, business, issued = await accounts.register_business(
        db,
        {
            "business_name": payload.business_name,
            "category": payload.category,
            "district": payload.district,
            "description": payload.description,
            "phone": payload.phone,
            "email": payload.email,
            "website": payload.website_str(),
            "address": payload.address,
            "password": payload.password,
        },
    )

    return success(
        {
            "token": issued.plain_text,
            "user": accounts.serialize_user(user),
            "business": accounts.business_summary(business),
        },
        "Business registered successfully",
        status_code=status.HTTP_201_CREATED,
    )
