"""
Business listing model and its weekly operating hours.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, DateTime, Integer, Text, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mpbusinesshub.models.base import Base, utc_now

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
BUSINESS_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)

CATEGORIES = ("Tourism", "Agriculture", "Construction", "Events")
DISTRICTS = ("Mbombela", "Emalahleni", "Bushbuckridge")

DAYS_OF_WEEK = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

SOCIAL_PLATFORMS = ("facebook", "instagram", "twitter", "linkedin", "youtube", "tiktok")


class Business(Base):
    """
    A business listed in the directory.

    ``package_type`` mirrors the name of the subscribed package so tier
    gating can run without joining ``packages``. Both change together in
    ``apply_subscription``.
    """

    __tablename__ = "businesses"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
        index=True
    )
    package_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("packages.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    # Listing
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    district: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str] = mapped_column(String(20), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    website: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[str] = mapped_column(String(255), nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Subscription
    package_type: Mapped[str] = mapped_column(String(20), default="Basic", nullable=False, index=True)
    billing_cycle: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    subscription_ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    adverts_remaining: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    social_features_remaining: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_adverts_reset: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Moderation
    status: Mapped[str] = mapped_column(String(20), default=STATUS_PENDING, nullable=False, index=True)
    status_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status_changed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Counters
    view_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    contact_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    review_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Social links
    facebook: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    instagram: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    twitter: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    linkedin: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    youtube: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    tiktok: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    owner: Mapped["User"] = relationship("User", back_populates="business")
    operating_hours: Mapped[list["OperatingHour"]] = relationship(
        "OperatingHour",
        back_populates="business",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Business(id={self.id}, name={self.name}, status={self.status})>"

    @property
    def is_approved(self) -> bool:
        return self.status == STATUS_APPROVED

    def social_links(self) -> dict:
        return {platform: getattr(self, platform) for platform in SOCIAL_PLATFORMS}


class OperatingHour(Base):
    """Opening hours for one day. A day with no times is closed."""

    __tablename__ = "operating_hours"
    __table_args__ = (UniqueConstraint("business_id", "day", name="uq_operating_hours_day"),)

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    business_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    day: Mapped[str] = mapped_column(String(10), nullable=False)
    open_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    close_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)

    business: Mapped["Business"] = relationship("Business", back_populates="operating_hours")

    @property
    def display(self) -> str:
        if not self.open_time or not self.close_time:
            return "Closed"
        return f"{self.open_time} - {self.close_time}"
