"""
Payment routes: PayFast checkout, ITN webhook, browser returns, payment
history and invoices.
"""

import logging
from typing import Literal, Optional
from urllib.parse import parse_qsl
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse, RedirectResponse
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mpbusinesshub.api.responses import pagination, success
from mpbusinesshub.config.settings import get_settings
from mpbusinesshub.database import get_db
from mpbusinesshub.middleware.auth import client_ip, get_current_user
from mpbusinesshub.models import Business, Invoice, Payment, User
from mpbusinesshub.services import payments
from mpbusinesshub.services.invoices import serialize_invoice
from mpbusinesshub.services.packages import PackageChangeError
from mpbusinesshub.services.payfast import ItnValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["payments"])


class InitiatePaymentRequest(BaseModel):
    business_id: UUID
    package_id: UUID
    billing_cycle: Literal["monthly", "annual"]


def _invalid(field: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={"message": "Validation failed", "errors": {field: [message]}},
    )


@router.post("/payments/initiate")
async def initiate_payment(
    payload: InitiatePaymentRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create an invoice and pending payment and return the PayFast checkout."""
    business = await db.get(Business, payload.business_id)
    if business is None:
        raise _invalid("business_id", "The selected business is invalid.")
    if business.user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only pay for your own business"
        )

    package = await payments.get_package(db, payload.package_id)
    if package is None:
        raise _invalid("package_id", "The selected package is invalid.")

    try:
        outcome = await payments.request_package_change(
            db, current_user, business, package, payload.billing_cycle
        )
    except PackageChangeError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    if outcome["requires_payment"]:
        return success(outcome, "Payment initiated", redirect_url=outcome["redirect_url"])
    return success(outcome, f"Package changed to {package.name}")


@router.post("/payfast/notify", response_class=PlainTextResponse)
async def payfast_notify(request: Request, db: AsyncSession = Depends(get_db)):
    """
    PayFast ITN webhook.

    The body is form encoded and field order matters for the signature, so
    it is parsed from the raw body.
    """
    body = (await request.body()).decode("utf-8")
    data = dict(parse_qsl(body, keep_blank_values=True))
    source_ip = client_ip(request)

    try:
        payment = await payments.process_itn(db, data, source_ip)
    except ItnValidationError as e:
        logger.warning(f"Rejected ITN from {source_ip}: {e}")
        return PlainTextResponse("Invalid ITN", status_code=status.HTTP_400_BAD_REQUEST)
    except payments.PaymentNotFoundError as e:
        logger.warning(f"ITN for unknown payment {e}")
        return PlainTextResponse("Payment not found", status_code=status.HTTP_404_NOT_FOUND)

    logger.info(f"ITN accepted for payment {payment.id} ({payment.status})")
    return PlainTextResponse("OK")


@router.get("/payments/return")
async def payment_return():
    settings = get_settings()
    return RedirectResponse(
        f"{settings.frontend_url.rstrip('/')}/dashboard?payment=success",
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/payments/cancel")
async def payment_cancel():
    settings = get_settings()
    return RedirectResponse(
        f"{settings.frontend_url.rstrip('/')}/dashboard?payment=cancelled",
        status_code=status.HTTP_302_FOUND,
    )


@router.get("/payments")
async def payment_history(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Payment)
        .where(Payment.user_id == current_user.id)
        .order_by(Payment.created_at.desc())
    )
    return success([payments.serialize_payment(p) for p in result.scalars().all()])


@router.get("/invoices")
async def list_invoices(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    invoice_status: Optional[str] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    filters = [Invoice.user_id == current_user.id]
    if invoice_status:
        filters.append(Invoice.status == invoice_status)

    total = (await db.execute(select(func.count(Invoice.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(Invoice)
        .where(*filters)
        .order_by(Invoice.created_at.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return success(
        [serialize_invoice(i) for i in result.scalars().all()],
        pagination=pagination(total, page, per_page),
    )


@router.get("/invoices/{invoice_id}")
async def show_invoice(
    invoice_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Invoice).where(Invoice.id == invoice_id, Invoice.user_id == current_user.id)
    )
    invoice = result.scalar_one_or_none()
    if invoice is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return success(serialize_invoice(invoice))
