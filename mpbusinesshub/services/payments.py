"""
Package purchase flow.

A paid change creates a pending invoice and payment and hands the client a
PayFast checkout. The package only switches when a verified ITN reports
``COMPLETE``. Changes with nothing to pay are applied immediately.
"""

import logging
from typing import Dict, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mpbusinesshub.models import Business, Invoice, Package, Payment, User
from mpbusinesshub.models.base import utc_now
from mpbusinesshub.models.billing import (
    PAYMENT_CANCELLED,
    PAYMENT_COMPLETED,
    PAYMENT_FAILED,
    PAYMENT_PENDING,
)
from mpbusinesshub.services import invoices
from mpbusinesshub.services.packages import (
    apply_subscription,
    ensure_change_allowed,
    money,
    quote_change,
)
from mpbusinesshub.services.payfast import (
    PAYFAST_CANCELLED,
    PAYFAST_COMPLETE,
    PAYFAST_FAILED,
    ItnValidationError,
    PayFastGateway,
)

logger = logging.getLogger(__name__)


class PaymentNotFoundError(Exception):
    """Raised when an ITN references an unknown payment."""


async def get_package(db: AsyncSession, package_id) -> Optional[Package]:
    if package_id is None:
        return None
    result = await db.execute(select(Package).where(Package.id == package_id))
    return result.scalar_one_or_none()


async def request_package_change(
    db: AsyncSession,
    user: User,
    business: Business,
    package: Package,
    billing_cycle: str,
    gateway: Optional[PayFastGateway] = None,
) -> Dict:
    """
    Start a package change for ``business``.

    Returns:
        Dict describing the outcome. ``requires_payment`` tells the caller
        whether a checkout was created.

    Raises:
        PackageChangeError: If the change is not allowed
    """
    now = utc_now()
    ensure_change_allowed(business, package, billing_cycle, now)
    current_package = await get_package(db, business.package_id)
    quote = quote_change(business, current_package, package, billing_cycle, now)

    invoice = await invoices.create_invoice(
        db, business, package, quote.amount_due, billing_cycle, quote.change_type, now
    )

    if quote.amount_due <= 0:
        invoices.mark_paid(invoice, now=now)
        apply_subscription(business, package, billing_cycle, now)
        await db.commit()
        await db.refresh(business)
        logger.info(
            "Package changed without payment",
            extra={"business_id": str(business.id), "package": package.name},
        )
        return {
            "requires_payment": False,
            "change_type": quote.change_type,
            "quote": quote.to_dict(),
            "invoice_id": str(invoice.id),
        }

    payment = Payment(
        user_id=user.id,
        business_id=business.id,
        package_id=package.id,
        invoice_id=invoice.id,
        amount=invoice.total,
        currency=invoice.currency,
        billing_cycle=billing_cycle,
        change_type=quote.change_type,
        status=PAYMENT_PENDING,
    )
    db.add(payment)
    await db.flush()

    gateway = gateway or PayFastGateway()
    checkout = gateway.build_checkout(
        payment_id=str(payment.id),
        amount=payment.amount,
        item_name=f"Invoice #{invoice.invoice_number}",
        item_description=invoice.description,
        buyer_name=user.name,
        buyer_email=user.email,
        custom={
            "custom_str1": str(invoice.id),
            "custom_str2": str(business.id),
            "custom_str3": quote.change_type,
        },
    )
    await db.commit()

    logger.info(
        "Checkout created",
        extra={
            "payment_id": str(payment.id),
            "business_id": str(business.id),
            "amount": str(payment.amount),
        },
    )
    return {
        "requires_payment": True,
        "change_type": quote.change_type,
        "quote": quote.to_dict(),
        "payment_id": str(payment.id),
        "invoice_id": str(invoice.id),
        **checkout,
    }


async def process_itn(
    db: AsyncSession,
    data: Dict[str, str],
    source_ip: Optional[str],
    gateway: Optional[PayFastGateway] = None,
) -> Payment:
    """
    Verify a PayFast ITN and move the payment to its final state.

    Replayed notifications for a payment that already reached a final
    state are accepted without changes.

    Raises:
        ItnValidationError: If any verification step fails
        PaymentNotFoundError: If ``m_payment_id`` is unknown
    """
    gateway = gateway or PayFastGateway()
    gateway.verify_payload(data, source_ip)

    try:
        payment_id = UUID(data.get("m_payment_id", ""))
    except ValueError:
        raise PaymentNotFoundError(data.get("m_payment_id"))

    result = await db.execute(select(Payment).where(Payment.id == payment_id))
    payment = result.scalar_one_or_none()
    if payment is None:
        raise PaymentNotFoundError(str(payment_id))

    gateway.verify_amount(data, payment.amount)
    await gateway.confirm_with_server(data)

    if payment.is_terminal:
        logger.info(f"Ignoring ITN for payment {payment.id} already {payment.status}")
        return payment

    invoice = None
    if payment.invoice_id is not None:
        result = await db.execute(select(Invoice).where(Invoice.id == payment.invoice_id))
        invoice = result.scalar_one_or_none()

    status = (data.get("payment_status") or "").upper()
    now = utc_now()
    payment.gateway_payload = dict(data)
    payment.transaction_id = data.get("pf_payment_id") or payment.transaction_id

    if status == PAYFAST_COMPLETE:
        result = await db.execute(select(Business).where(Business.id == payment.business_id))
        business = result.scalar_one()
        package = await get_package(db, payment.package_id)
        if package is None:
            raise ItnValidationError(f"Package for payment {payment.id} no longer exists")

        payment.status = PAYMENT_COMPLETED
        payment.completed_at = now
        if invoice is not None:
            invoices.mark_paid(invoice, payment, now)
        apply_subscription(business, package, payment.billing_cycle, now)
    elif status == PAYFAST_FAILED:
        payment.status = PAYMENT_FAILED
    elif status == PAYFAST_CANCELLED:
        payment.status = PAYMENT_CANCELLED
        if invoice is not None:
            invoices.mark_cancelled(invoice)
    else:
        logger.warning(f"Unhandled PayFast status {status!r} for payment {payment.id}")

    await db.commit()
    logger.info(
        "ITN processed",
        extra={"payment_id": str(payment.id), "payment_status": payment.status},
    )
    return payment


def serialize_payment(payment: Payment) -> dict:
    return {
        "id": str(payment.id),
        "amount": float(money(payment.amount)),
        "currency": payment.currency,
        "billing_cycle": payment.billing_cycle,
        "change_type": payment.change_type,
        "payment_method": payment.payment_method,
        "status": payment.status,
        "transaction_id": payment.transaction_id,
        "invoice_id": str(payment.invoice_id) if payment.invoice_id else None,
        "created_at": payment.created_at.isoformat(),
        "completed_at": payment.completed_at.isoformat() if payment.completed_at else None,
    }
