"""
Product catalog routes.

Only Silver and Gold businesses can add products, up to their tier limit.
"""

import logging
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials
from pydantic import BaseModel, Field
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mpbusinesshub.api.responses import success
from mpbusinesshub.database import get_db
from mpbusinesshub.middleware.auth import get_current_business, get_current_token, get_current_user, security
from mpbusinesshub.models import Business, Product
from mpbusinesshub.models.catalog import PRODUCT_ACTIVE
from mpbusinesshub.services.directory import serialize_product
from mpbusinesshub.services.tiers import PRODUCTS, TierRestrictionError, require_feature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/products", tags=["products"])

PRODUCTS_NOT_SUPPORTED = (
    "Your package does not support adding products. Please upgrade to Silver or Gold."
)


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = Field(None, max_length=500)
    is_featured: bool = False
    status: Literal["active", "inactive"] = PRODUCT_ACTIVE


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = Field(None, max_length=500)
    is_featured: Optional[bool] = None
    status: Optional[Literal["active", "inactive"]] = None


async def _owned_product(db: AsyncSession, business: Business, product_id: UUID) -> Product:
    result = await db.execute(
        select(Product).where(Product.id == product_id, Product.business_id == business.id)
    )
    product = result.scalar_one_or_none()
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


@router.get("")
async def list_products(
    request: Request,
    business_id: Optional[UUID] = None,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
):
    """
    With ``business_id``: that business's active products (public).
    Without it: every product of the authenticated owner.
    """
    if business_id is not None:
        result = await db.execute(
            select(Product)
            .where(Product.business_id == business_id, Product.status == PRODUCT_ACTIVE)
            .order_by(Product.is_featured.desc(), Product.created_at.desc())
        )
        return success([serialize_product(p) for p in result.scalars().all()])

    token = await get_current_token(request, credentials, db)
    user = await get_current_user(token, db)
    business = await get_current_business(user, db)
    result = await db.execute(
        select(Product)
        .where(Product.business_id == business.id)
        .order_by(Product.created_at.desc())
    )
    return success([serialize_product(p) for p in result.scalars().all()])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    business: Business = Depends(get_current_business),
    db: AsyncSession = Depends(get_db),
):
    """
    Add a product to the current business.

    Raises:
        HTTPException: 403 if the package has no products or the limit is reached
    """
    try:
        tier = require_feature(business.package_type, PRODUCTS, PRODUCTS_NOT_SUPPORTED)
    except TierRestrictionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    count = (
        await db.execute(select(func.count(Product.id)).where(Product.business_id == business.id))
    ).scalar_one()
    if count >= tier.product_limit:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You have reached the limit of {tier.product_limit} products for your package."
        )

    product = Product(business_id=business.id, **payload.model_dump())
    db.add(product)
    await db.commit()
    await db.refresh(product)

    logger.info("Product created", extra={"product_id": str(product.id), "business_id": str(business.id)})
    return success(serialize_product(product), "Product created successfully", status.HTTP_201_CREATED)


@router.get("/{product_id}")
async def show_product(product_id: UUID, db: AsyncSession = Depends(get_db)):
    product = await db.get(Product, product_id)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return success(serialize_product(product))


@router.put("/{product_id}")
async def update_product(
    product_id: UUID,
    payload: ProductUpdate,
    business: Business = Depends(get_current_business),
    db: AsyncSession = Depends(get_db),
):
    product = await _owned_product(db, business, product_id)

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in ("name", "price", "is_featured", "status"):
            continue
        setattr(product, field, value)

    await db.commit()
    await db.refresh(product)
    return success(serialize_product(product), "Product updated successfully")


@router.delete("/{product_id}")
async def delete_product(
    product_id: UUID,
    business: Business = Depends(get_current_business),
    db: AsyncSession = Depends(get_db),
):
    product = await _owned_product(db, business, product_id)
    await db.delete(product)
    await db.commit()
    logger.info("Product deleted", extra={"product_id": str(product_id), "business_id": str(business.id)})
    return success(message="Product deleted successfully")
