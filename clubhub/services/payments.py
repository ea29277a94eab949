from __future__ import annotations

import re
from typing import List

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from clubhub.core.deps import Principal
from clubhub.models.event import Event
from clubhub.models.payment import Payment, PaymentReceipt, Receipt
from clubhub.models.user import User
from clubhub.services.errors import ForbiddenError, NotFoundError, ValidationError
from clubhub.services.receipts import ReceiptView, RenderedReceipt, render_receipt_pdf


def _check_owner(owner_id: int, principal: Principal) -> None:
    if owner_id != principal.user_id and not principal.is_admin:
        raise ForbiddenError("Unauthorized")


async def get_payment_proof(db: AsyncSession, payment_id: int, principal: Principal) -> dict:
    payment = await db.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError("Payment not found")
    _check_owner(payment.user_id, principal)

    event = await db.get(Event, payment.event_id)
    user = await db.get(User, payment.user_id)
    res = await db.execute(select(Receipt).where(Receipt.payment_id == payment.id))
    receipt = res.scalar_one_or_none()

    return {
        "payment": {
            "id": payment.id,
            "transaction_id": payment.transaction_id,
            "amount": float(payment.amount),
            "currency": payment.currency,
            "status": payment.status,
            "payment_method": payment.payment_method,
            "payment_date": payment.payment_date,
            "event": {"id": event.id, "name": event.title, "date": event.date} if event else None,
            "user": {"id": user.id, "name": user.name or user.email} if user else None,
        },
        "receipt": None
        if receipt is None
        else {
            "id": receipt.id,
            "receipt_id": receipt.receipt_id,
            "pdf_generated": receipt.pdf_generated_at is not None,
        },
    }


async def list_user_receipts(db: AsyncSession, user_id: int) -> List[dict]:
    res = await db.execute(
        select(Receipt).where(Receipt.user_id == user_id).order_by(Receipt.created_at.desc(), Receipt.id.desc())
    )
    return [
        {
            "id": r.id,
            "receipt_id": r.receipt_id,
            "event_name": r.event_name,
            "event_date": r.event_date,
            "amount": float(r.amount),
            "currency": r.currency,
            "payment_date": r.payment_date,
            "transaction_id": r.transaction_id,
            "pdf_generated": r.pdf_generated_at is not None,
        }
        for r in res.scalars().all()
    ]


async def _find_receipt(db: AsyncSession, key: str) -> Receipt:
    cond = Receipt.receipt_id == key
    if key.isdigit():
        cond = or_(cond, Receipt.id == int(key))
    res = await db.execute(select(Receipt).where(cond))
    receipt = res.scalars().first()
    if receipt is None:
        raise NotFoundError("Receipt not found")
    return receipt


async def _verification_status(db: AsyncSession, receipt: Receipt) -> str:
    # the registration's receipt row decides; a Receipt left over from an
    # earlier registration has none
    res = await db.execute(
        select(PaymentReceipt.payment_status).where(
            PaymentReceipt.payment_id == receipt.payment_id,
            PaymentReceipt.receipt_number == receipt.receipt_id,
        )
    )
    return res.scalar_one_or_none() or "Unregistered"


async def render_receipt_document(db: AsyncSession, key: str, principal: Principal) -> RenderedReceipt:
    receipt = await _find_receipt(db, key)
    _check_owner(receipt.user_id, principal)

    status = await _verification_status(db, receipt)
    if status != "Verified":
        raise ValidationError(f"Receipt not available: payment status is {status}")
    if receipt.payment.status != "paid":
        raise ValidationError(f"Receipt not available: payment status is {receipt.payment.status}")

    user = await db.get(User, receipt.user_id)
    view = ReceiptView(
        receipt_number=receipt.receipt_id,
        payment_date=receipt.payment_date,
        payer_name=receipt.user_name,
        payer_email=user.email if user else "",
        matric_number=None,
        event_title=receipt.event_name,
        event_date=receipt.event_date,
        payment_method=receipt.payment.payment_method,
        transaction_id=receipt.transaction_id,
        payment_status="Verified",
        amount=float(receipt.amount),
        currency=receipt.currency,
    )
    safe_event = re.sub(r"[^a-zA-Z0-9]", "_", receipt.event_name)
    return RenderedReceipt(
        content=render_receipt_pdf(view),
        media_type="application/pdf",
        filename=f"Receipt-{receipt.receipt_id}-{safe_event}.pdf",
    )
