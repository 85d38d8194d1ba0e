"""
Personal access token model (API sessions).

Only a SHA-256 hash of the token secret is stored. The plain text form
``"<id>|<secret>"`` is returned once at creation time.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mpbusinesshub.models.base import Base, utc_now


class AccessToken(Base):
    __tablename__ = "personal_access_tokens"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)  # device name or client IP
    token_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)

    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_used_ip: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="tokens")

    def __repr__(self) -> str:
        return f"<AccessToken(id={self.id}, user_id={self.user_id}, name={self.name})>"

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or utc_now()
        return self.expires_at is not None and self.expires_at <= now
