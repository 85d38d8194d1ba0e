"""
Invoice and payment models.

Payments only move forward: ``pending`` to ``completed``, ``failed`` or
``cancelled``.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import String, Date, DateTime, Integer, Numeric, ForeignKey, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mpbusinesshub.models.base import Base, utc_now

INVOICE_PENDING = "pending"
INVOICE_PAID = "paid"
INVOICE_CANCELLED = "cancelled"

PAYMENT_PENDING = "pending"
PAYMENT_COMPLETED = "completed"
PAYMENT_FAILED = "failed"
PAYMENT_CANCELLED = "cancelled"
PAYMENT_TERMINAL_STATUSES = (PAYMENT_COMPLETED, PAYMENT_FAILED, PAYMENT_CANCELLED)


class Invoice(Base):
    __tablename__ = "invoices"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    invoice_number: Mapped[str] = mapped_column(String(30), unique=True, nullable=False, index=True)

    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    business_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    package_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("packages.id", ondelete="SET NULL"),
        nullable=True
    )

    description: Mapped[str] = mapped_column(String(255), nullable=False)
    billing_cycle: Mapped[str] = mapped_column(String(10), nullable=False)
    change_type: Mapped[str] = mapped_column(String(20), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    tax: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="ZAR", nullable=False)

    status: Mapped[str] = mapped_column(String(20), default=INVOICE_PENDING, nullable=False, index=True)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    paid_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    payment_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    def __repr__(self) -> str:
        return f"<Invoice(number={self.invoice_number}, status={self.status})>"


class InvoiceSequence(Base):
    """Last invoice number handed out per calendar year."""

    __tablename__ = "invoice_sequences"

    year: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    last_number: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    business_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("businesses.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    package_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("packages.id", ondelete="SET NULL"),
        nullable=True
    )
    invoice_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("invoices.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="ZAR", nullable=False)
    billing_cycle: Mapped[str] = mapped_column(String(10), nullable=False)
    change_type: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(20), default="payfast", nullable=False)

    status: Mapped[str] = mapped_column(String(20), default=PAYMENT_PENDING, nullable=False, index=True)
    transaction_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    gateway_payload: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    invoice: Mapped[Optional["Invoice"]] = relationship("Invoice")

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, status={self.status}, amount={self.amount})>"

    @property
    def is_terminal(self) -> bool:
        return self.status in PAYMENT_TERMINAL_STATUSES
