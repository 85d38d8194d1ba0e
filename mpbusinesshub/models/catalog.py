"""
Products, adverts and social feature requests owned by a business.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, Date, DateTime, Boolean, Numeric, Text, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from mpbusinesshub.models.base import Base, utc_now

PRODUCT_ACTIVE = "active"
PRODUCT_INACTIVE = "inactive"
PRODUCT_STATUSES = (PRODUCT_ACTIVE, PRODUCT_INACTIVE)

ADVERT_ACTIVE = "active"
ADVERT_SCHEDULED = "scheduled"
ADVERT_EXPIRED = "expired"

FEATURE_PLATFORMS = ("facebook", "instagram", "twitter", "linkedin")


class Product(Base):
    __tablename__ = "products"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    business_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=PRODUCT_ACTIVE, nullable=False, index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name={self.name})>"


class Advert(Base):
    """Time-boxed promotion. Creating one consumes a monthly advert slot."""

    __tablename__ = "adverts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    business_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=ADVERT_SCHEDULED, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    def current_status(self, today: date) -> str:
        """Status derived from the advert window."""
        if self.end_date < today:
            return ADVERT_EXPIRED
        if self.start_date <= today:
            return ADVERT_ACTIVE
        return ADVERT_SCHEDULED


class SocialFeature(Base):
    """Request to feature a business post on one of the directory's social accounts."""

    __tablename__ = "social_features"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    business_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    platform: Mapped[str] = mapped_column(String(20), nullable=False)
    content: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
