"""
Invoice numbering and lifecycle.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from mpbusinesshub.config.settings import get_settings
from mpbusinesshub.models import Business, Invoice, InvoiceSequence, Package, Payment
from mpbusinesshub.models.base import utc_now
from mpbusinesshub.models.billing import INVOICE_CANCELLED, INVOICE_PAID, INVOICE_PENDING
from mpbusinesshub.services.packages import money

logger = logging.getLogger(__name__)


async def _bump_sequence(db: AsyncSession, year: int) -> bool:
    result = await db.execute(
        update(InvoiceSequence)
        .where(InvoiceSequence.year == year)
        .values(last_number=InvoiceSequence.last_number + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


async def _highest_issued(db: AsyncSession, prefix: str) -> int:
    result = await db.execute(select(Invoice.invoice_number).where(Invoice.invoice_number.like(f"{prefix}%")))
    suffixes = [number[len(prefix):] for number in result.scalars().all()]
    return max((int(s) for s in suffixes if s.isdigit()), default=0)


async def next_invoice_number(db: AsyncSession, now: Optional[datetime] = None) -> str:
    """
    ``INV-<year>-<sequence>``, the sequence restarting every year.

    The yearly counter row is bumped with an UPDATE, so concurrent purchases
    queue on its row lock instead of reading the same count. The first
    invoice of a year creates the row, continuing after any number already
    issued that year.
    """
    now = now or utc_now()
    prefix = f"INV-{now.year}-"

    if not await _bump_sequence(db, now.year):
        start = await _highest_issued(db, prefix)
        try:
            async with db.begin_nested():
                db.add(InvoiceSequence(year=now.year, last_number=start))
        except IntegrityError:
            logger.info(f"Invoice sequence for {now.year} was created by another request")
        await _bump_sequence(db, now.year)

    result = await db.execute(select(InvoiceSequence.last_number).where(InvoiceSequence.year == now.year))
    return f"{prefix}{result.scalar_one():03d}"


async def create_invoice(
    db: AsyncSession,
    business: Business,
    package: Package,
    amount: Decimal,
    billing_cycle: str,
    change_type: str,
    now: Optional[datetime] = None,
) -> Invoice:
    """
    Create a pending invoice for a package purchase.

    Tax is charged on top of ``amount`` at the configured VAT rate.
    """
    settings = get_settings()
    now = now or utc_now()
    amount = money(amount)
    tax = money(amount * Decimal(str(settings.vat_rate)))

    invoice = Invoice(
        invoice_number=await next_invoice_number(db, now),
        user_id=business.user_id,
        business_id=business.id,
        package_id=package.id,
        description=f"{package.name} package ({billing_cycle}) - {change_type}",
        billing_cycle=billing_cycle,
        change_type=change_type,
        amount=amount,
        tax=tax,
        total=amount + tax,
        currency=settings.currency,
        status=INVOICE_PENDING,
        issue_date=now.date(),
        due_date=(now + timedelta(days=settings.invoice_due_days)).date(),
    )
    db.add(invoice)
    await db.flush()

    logger.info(
        "Invoice created",
        extra={"invoice_number": invoice.invoice_number, "business_id": str(business.id)},
    )
    return invoice


def mark_paid(invoice: Invoice, payment: Optional[Payment] = None, now: Optional[datetime] = None) -> Invoice:
    invoice.status = INVOICE_PAID
    invoice.paid_date = now or utc_now()
    if payment is not None:
        invoice.payment_id = payment.id
    return invoice


def mark_cancelled(invoice: Invoice) -> Invoice:
    if invoice.status != INVOICE_PAID:
        invoice.status = INVOICE_CANCELLED
    return invoice


def serialize_invoice(invoice: Invoice) -> dict:
    return {
        "id": str(invoice.id),
        "invoice_number": invoice.invoice_number,
        "description": invoice.description,
        "billing_cycle": invoice.billing_cycle,
        "change_type": invoice.change_type,
        "amount": float(invoice.amount),
        "tax": float(invoice.tax),
        "total": float(invoice.total),
        "currency": invoice.currency,
        "status": invoice.status,
        "issue_date": invoice.issue_date.isoformat(),
        "due_date": invoice.due_date.isoformat(),
        "paid_date": invoice.paid_date.isoformat() if invoice.paid_date else None,
        "payment_id": str(invoice.payment_id) if invoice.payment_id else None,
    }
