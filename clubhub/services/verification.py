from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clubhub.core.clock import utcnow
from clubhub.models.event import Event, Registration
from clubhub.models.payment import Payment, PaymentReceipt
from clubhub.models.registration_mirror import RegistrationMirror
from clubhub.models.user import User
from clubhub.services.errors import ConflictError, NotFoundError, ValidationError
from clubhub.services.realtime import broadcast

logger = logging.getLogger(__name__)

DEFAULT_REJECTION_REASON = "Payment receipt rejected by admin"

# receipt verification status -> linked Payment status
_PAYMENT_STATUS_FOR = {"Verified": "paid", "Rejected": "failed"}


async def _get_payment_receipt(db: AsyncSession, receipt_id: int) -> PaymentReceipt:
    res = await db.execute(select(PaymentReceipt).where(PaymentReceipt.id == receipt_id))
    pr = res.scalar_one_or_none()
    if pr is None:
        raise NotFoundError("Payment receipt not found")
    return pr


async def _get_by_index(db: AsyncSession, event_id: int, registration_index: int) -> PaymentReceipt:
    res = await db.execute(select(Event).where(Event.id == event_id))
    event = res.scalar_one_or_none()
    if event is None:
        raise NotFoundError("Event not found")

    if registration_index < 0 or registration_index >= len(event.registrations):
        raise NotFoundError("Registration not found")

    pr = event.registrations[registration_index].payment_receipt
    if pr is None:
        raise NotFoundError("Registration has no payment receipt")
    return pr


async def _transition(
    db: AsyncSession,
    pr: PaymentReceipt,
    *,
    target: str,
    admin_id: int,
    reason: Optional[str] = None,
) -> PaymentReceipt:
    if pr.payment_status == target:
        raise ConflictError(f"Payment already {target.lower()}")

    pr.payment_status = target
    pr.verified_by = admin_id
    pr.verified_at = utcnow()
    pr.rejection_reason = (reason or DEFAULT_REJECTION_REASON) if target == "Rejected" else None

    if pr.payment_id is not None:
        res = await db.execute(select(Payment).where(Payment.id == pr.payment_id))
        payment = res.scalar_one_or_none()
        if payment is not None:
            payment.status = _PAYMENT_STATUS_FOR[target]

    res = await db.execute(
        select(RegistrationMirror).where(
            RegistrationMirror.event_id == pr.event_id,
            RegistrationMirror.user_id == pr.user_id,
        )
    )
    mirror = res.scalar_one_or_none()
    if mirror is not None:
        mirror.payment_status = target

    await db.commit()
    logger.info("[verification] receipt=%s -> %s by admin=%s", pr.receipt_number, target, admin_id)

    await broadcast(
        "paymentReceipt:update",
        {
            "id": pr.id,
            "event_id": pr.event_id,
            "user_id": pr.user_id,
            "payment_status": pr.payment_status,
        },
    )
    return pr


async def approve(db: AsyncSession, receipt_id: int, admin_id: int) -> PaymentReceipt:
    pr = await _get_payment_receipt(db, receipt_id)
    return await _transition(db, pr, target="Verified", admin_id=admin_id)


async def reject(db: AsyncSession, receipt_id: int, admin_id: int, reason: Optional[str] = None) -> PaymentReceipt:
    pr = await _get_payment_receipt(db, receipt_id)
    return await _transition(db, pr, target="Rejected", admin_id=admin_id, reason=reason)


async def approve_by_index(db: AsyncSession, event_id: int, registration_index: int, admin_id: int) -> PaymentReceipt:
    pr = await _get_by_index(db, event_id, registration_index)
    return await _transition(db, pr, target="Verified", admin_id=admin_id)


async def reject_by_index(
    db: AsyncSession,
    event_id: int,
    registration_index: int,
    admin_id: int,
    reason: Optional[str] = None,
) -> PaymentReceipt:
    pr = await _get_by_index(db, event_id, registration_index)
    return await _transition(db, pr, target="Rejected", admin_id=admin_id, reason=reason)


async def list_payments(db: AsyncSession, status: Optional[str] = None) -> List[dict]:
    if status is not None and status not in ("Pending", "Verified", "Rejected"):
        raise ValidationError("status must be one of Pending, Verified, Rejected")

    stmt = (
        select(PaymentReceipt, User, Event)
        .join(User, User.id == PaymentReceipt.user_id)
        .join(Event, Event.id == PaymentReceipt.event_id)
        .order_by(PaymentReceipt.submitted_at.desc(), PaymentReceipt.id.desc())
    )
    if status:
        stmt = stmt.where(PaymentReceipt.payment_status == status)

    res = await db.execute(stmt)
    items: List[dict] = []
    for pr, user, event in res.all():
        registration: Registration = pr.registration
        items.append(
            {
                "id": pr.id,
                "receipt_number": pr.receipt_number,
                "receipt_url": pr.receipt_url,
                "amount": float(pr.amount or 0),
                "currency": pr.currency,
                "payment_type": pr.payment_type,
                "payment_method": pr.payment_method,
                "payment_status": pr.payment_status,
                "submitted_at": pr.submitted_at,
                "verified_by": pr.verified_by,
                "verified_at": pr.verified_at,
                "rejection_reason": pr.rejection_reason,
                "user": {"id": user.id, "name": user.name, "email": user.email},
                "event": {"id": event.id, "title": event.title, "date": event.date},
                "registration_name": registration.registration_name if registration else None,
                "matric_number": registration.matric_number if registration else None,
            }
        )
    return items


async def list_registrations(db: AsyncSession, event_id: Optional[int] = None) -> List[dict]:
    stmt = select(Event).order_by(Event.date.desc())
    if event_id is not None:
        stmt = stmt.where(Event.id == event_id)
    res = await db.execute(stmt)
    events = res.scalars().all()
    if event_id is not None and not events:
        raise NotFoundError("Event not found")

    user_ids = {r.user_id for e in events for r in e.registrations}
    users = {}
    if user_ids:
        res = await db.execute(select(User).where(User.id.in_(user_ids)))
        users = {u.id: u for u in res.scalars().all()}

    items: List[dict] = []
    for event in events:
        for idx, reg in enumerate(event.registrations):
            user = users.get(reg.user_id)
            pr = reg.payment_receipt
            items.append(
                {
                    "event_id": event.id,
                    "event_title": event.title,
                    "event_date": event.date,
                    "registration_index": idx,
                    "user_id": reg.user_id,
                    "user_name": user.name if user else None,
                    "user_email": user.email if user else None,
                    "registration_name": reg.registration_name,
                    "registration_email": reg.registration_email,
                    "matric_number": reg.matric_number,
                    "phone": reg.phone,
                    "notes": reg.notes,
                    "registered_at": reg.registered_at,
                    "payment_receipt": None
                    if pr is None
                    else {
                        "id": pr.id,
                        "receipt_number": pr.receipt_number,
                        "receipt_url": pr.receipt_url,
                        "amount": float(pr.amount or 0),
                        "payment_method": pr.payment_method,
                        "payment_status": pr.payment_status,
                        "verified_at": pr.verified_at,
                        "rejection_reason": pr.rejection_reason,
                    },
                }
            )
    return items
