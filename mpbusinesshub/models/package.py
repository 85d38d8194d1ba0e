"""
Subscription package model.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import String, DateTime, Boolean, Integer, Numeric, Text, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from mpbusinesshub.models.base import Base, utc_now

BILLING_MONTHLY = "monthly"
BILLING_ANNUAL = "annual"
BILLING_CYCLES = (BILLING_MONTHLY, BILLING_ANNUAL)


class Package(Base):
    """Purchasable tier with monthly and annual pricing."""

    __tablename__ = "packages"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)

    price_monthly: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"), nullable=False)
    price_annual: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"), nullable=False)

    advert_limit: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    product_limit: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    social_feature_limit: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    features: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Package(name={self.name})>"

    def price_for(self, billing_cycle: str) -> Decimal:
        """Price for the given billing cycle."""
        if billing_cycle == BILLING_ANNUAL:
            return Decimal(self.price_annual)
        return Decimal(self.price_monthly)
