from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clubhub.core.clock import utcnow
from clubhub.core.config import settings
from clubhub.models.event import Event, Registration
from clubhub.models.payment import Payment, PaymentReceipt, Receipt
from clubhub.models.registration_mirror import RegistrationMirror
from clubhub.models.user import User
from clubhub.services.errors import ConflictError, NotFoundError
from clubhub.services.hooks import HookOutcome, hooks
from clubhub.services.identifiers import generate_receipt_number, generate_transaction_id
from clubhub.services.realtime import broadcast
from clubhub.services.receipts import build_receipt_view, render_receipt_pdf
from clubhub.services.storage import UploadedReceipt, get_storage, store_receipt_upload

logger = logging.getLogger(__name__)

DEFAULT_PAYMENT_METHOD = "Online Banking"

TOPIC_CREATED = "registration.created"
TOPIC_REMOVED = "registration.removed"


@dataclass
class RegistrationForm:
    name: Optional[str] = None
    email: Optional[str] = None
    matric_number: Optional[str] = None
    phone: Optional[str] = None
    notes: Optional[str] = None
    payment_method: Optional[str] = None


@dataclass
class RegistrationCreated:
    event_id: int
    user_id: int
    registration_id: int
    registration_index: int
    requires_payment: bool
    payment_id: Optional[int] = None
    receipt_id: Optional[int] = None


@dataclass
class RegistrationRemoved:
    event_id: int
    user_id: int
    registration_index: int


@dataclass
class RegistrationResult:
    event: Event
    receipt: Optional[PaymentReceipt]
    pdf_generated: bool = False
    hook_outcomes: List[HookOutcome] = field(default_factory=list)


def payment_requirement(event: Event) -> Tuple[float, bool]:
    """
    Amount due and whether payment is required.

    Events carry two historical shapes (requires_payment + payment_amount, and
    a flat fee); either one being set with a positive amount means payment.
    """
    payment_amount = float(event.payment_amount or 0)
    fee = float(event.fee or 0)
    amount = payment_amount or fee or 0.0
    requires = (bool(event.requires_payment) and payment_amount > 0) or fee > 0
    return amount, requires and amount > 0


async def _get_event(db: AsyncSession, event_id: int, *, refresh: bool = False) -> Event:
    stmt = select(Event).where(Event.id == event_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    res = await db.execute(stmt)
    event = res.scalar_one_or_none()
    if event is None:
        raise NotFoundError("Event not found")
    return event


async def _get_user(db: AsyncSession, user_id: int, *, refresh: bool = False) -> User:
    stmt = select(User).where(User.id == user_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    res = await db.execute(stmt)
    user = res.scalar_one_or_none()
    if user is None:
        raise NotFoundError("User not found")
    return user


def _find_registration(event: Event, user_id: int) -> Tuple[int, Optional[Registration]]:
    for idx, reg in enumerate(event.registrations):
        if reg.user_id == user_id:
            return idx, reg
    return -1, None


async def _create_payment_records(
    db: AsyncSession,
    *,
    event: Event,
    user: User,
    amount: float,
    payment_method: str,
    receipt_number: str,
) -> Tuple[Payment, Receipt]:
    """
    Payment (pending) + Receipt snapshot.

    Only a still-pending Payment for (user, event) is reused; a settled one belongs
    to an earlier registration and stays attached to it. A reused Receipt takes the
    new receipt number so it matches the registration's receipt row.
    """
    res = await db.execute(
        select(Payment)
        .where(Payment.user_id == user.id, Payment.event_id == event.id, Payment.status == "pending")
        .order_by(Payment.id.desc())
    )
    payment = res.scalars().first()

    if payment is None:
        payment = Payment(
            user_id=user.id,
            event_id=event.id,
            amount=amount,
            currency=settings.PAYMENT_CURRENCY,
            transaction_id=generate_transaction_id(),
            status="pending",
            payment_method=payment_method,
            meta={"event_title": event.title, "user_email": user.email},
        )
        db.add(payment)
        await db.flush()

    res = await db.execute(select(Receipt).where(Receipt.payment_id == payment.id))
    receipt = res.scalar_one_or_none()
    if receipt is None:
        receipt = Receipt(
            receipt_id=receipt_number,
            payment_id=payment.id,
            user_id=user.id,
            event_id=event.id,
            user_name=user.name or user.email,
            event_name=event.title,
            event_date=event.date,
            payment_date=payment.payment_date or utcnow(),
            amount=amount,
            currency=payment.currency,
            transaction_id=payment.transaction_id,
        )
        db.add(receipt)
    else:
        receipt.receipt_id = receipt_number
        receipt.amount = amount
        receipt.pdf_path = None
        receipt.pdf_generated_at = None

    await db.commit()
    return payment, receipt


async def register(
    db: AsyncSession,
    event_id: int,
    user_id: int,
    form: RegistrationForm,
    upload: Optional[UploadedReceipt] = None,
) -> RegistrationResult:
    event = await _get_event(db, event_id)

    _, existing = _find_registration(event, user_id)
    if existing is not None:
        raise ConflictError("Already registered for this event")

    user = await _get_user(db, user_id)

    stored = await store_receipt_upload(upload) if upload is not None else None
    receipt_url = stored.url if stored else None

    amount, requires_payment = payment_requirement(event)
    payment_method = form.payment_method or DEFAULT_PAYMENT_METHOD
    receipt_number = generate_receipt_number() if (requires_payment or receipt_url) else None

    payment: Optional[Payment] = None
    receipt: Optional[Receipt] = None
    if requires_payment:
        try:
            payment, receipt = await _create_payment_records(
                db,
                event=event,
                user=user,
                amount=amount,
                payment_method=payment_method,
                receipt_number=receipt_number,
            )
        except Exception:
            logger.exception("[register] payment bookkeeping failed event=%s user=%s", event_id, user_id)
            await db.rollback()
            payment, receipt = None, None
            event = await _get_event(db, event_id, refresh=True)
            user = await _get_user(db, user_id, refresh=True)

    registration = Registration(
        event_id=event.id,
        user_id=user.id,
        registered_at=utcnow(),
        registration_name=form.name or user.name,
        registration_email=form.email or user.email,
        matric_number=form.matric_number or None,
        phone=form.phone or None,
        notes=form.notes or None,
    )

    if receipt_number is not None:
        registration.payment_receipt = PaymentReceipt(
            user_id=user.id,
            event_id=event.id,
            payment_id=payment.id if payment else None,
            receipt_number=receipt_number,
            receipt_url=receipt_url,
            amount=amount,
            currency=settings.DEFAULT_CURRENCY,
            payment_method=payment_method if requires_payment else None,
            # callers can't pre-verify their own receipt
            payment_status="Pending",
        )

    event.registrations.append(registration)
    event.attendees = len(event.registrations)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        res = await db.execute(
            select(Registration.id).where(Registration.event_id == event_id, Registration.user_id == user_id)
        )
        if res.scalar_one_or_none() is not None:
            raise ConflictError("Already registered for this event")
        raise

    logger.info(
        "[register] event=%s user=%s requires_payment=%s receipt=%s",
        event.id,
        user.id,
        requires_payment,
        receipt_number,
    )

    fact = RegistrationCreated(
        event_id=event.id,
        user_id=user.id,
        registration_id=registration.id,
        registration_index=len(event.registrations) - 1,
        requires_payment=requires_payment,
        payment_id=payment.id if payment else None,
        receipt_id=receipt.id if receipt else None,
    )
    outcomes = await hooks.publish(db, TOPIC_CREATED, fact)

    event = await _get_event(db, event_id, refresh=True)
    _, registration = _find_registration(event, user_id)
    pdf_generated = any(o.name == "receipt_pdf" and o.ok and o.result for o in outcomes)

    return RegistrationResult(
        event=event,
        receipt=registration.payment_receipt if registration else None,
        pdf_generated=pdf_generated,
        hook_outcomes=outcomes,
    )


async def unregister(db: AsyncSession, event_id: int, user_id: int) -> Event:
    event = await _get_event(db, event_id)

    idx, registration = _find_registration(event, user_id)
    if registration is None:
        return event

    event.registrations.remove(registration)
    event.attendees = len(event.registrations)
    await db.commit()

    logger.info("[unregister] event=%s user=%s", event_id, user_id)

    await hooks.publish(
        db, TOPIC_REMOVED, RegistrationRemoved(event_id=event_id, user_id=user_id, registration_index=idx)
    )
    return await _get_event(db, event_id, refresh=True)


# -------------------------
# Post-commit hook handlers
# -------------------------
# Handlers reload what they touch by id: an earlier handler's rollback expires
# every instance in the session.
async def _get_registration(db: AsyncSession, registration_id: int) -> Registration:
    res = await db.execute(
        select(Registration)
        .where(Registration.id == registration_id)
        .execution_options(populate_existing=True)
    )
    return res.scalar_one()


async def mirror_registration(db: AsyncSession, fact: RegistrationCreated) -> bool:
    if not settings.REGISTRATION_MIRROR_ENABLED:
        return False

    registration = await _get_registration(db, fact.registration_id)
    event = await _get_event(db, fact.event_id, refresh=True)
    pr = registration.payment_receipt

    res = await db.execute(
        select(RegistrationMirror).where(
            RegistrationMirror.event_id == fact.event_id,
            RegistrationMirror.user_id == fact.user_id,
        )
    )
    row = res.scalar_one_or_none()
    if row is None:
        row = RegistrationMirror(event_id=fact.event_id, user_id=fact.user_id)
        db.add(row)

    row.registration_index = fact.registration_index
    row.event_title = event.title
    row.registration_name = registration.registration_name
    row.registration_email = registration.registration_email
    row.matric_number = registration.matric_number
    row.phone = registration.phone
    row.receipt_number = pr.receipt_number if pr else None
    row.payment_status = pr.payment_status if pr else None
    row.registered_at = registration.registered_at
    row.mirrored_at = utcnow()
    return True


async def unmirror_registration(db: AsyncSession, fact: RegistrationRemoved) -> bool:
    if not settings.REGISTRATION_MIRROR_ENABLED:
        return False
    await db.execute(
        delete(RegistrationMirror).where(
            RegistrationMirror.event_id == fact.event_id,
            RegistrationMirror.user_id == fact.user_id,
        )
    )

    # later registrations shifted down by one
    event = await _get_event(db, fact.event_id, refresh=True)
    positions = {reg.user_id: idx for idx, reg in enumerate(event.registrations)}
    res = await db.execute(select(RegistrationMirror).where(RegistrationMirror.event_id == fact.event_id))
    for row in res.scalars().all():
        if row.user_id in positions:
            row.registration_index = positions[row.user_id]
    return True


async def broadcast_registration(db: AsyncSession, fact) -> None:
    event = await _get_event(db, fact.event_id, refresh=True)
    action = "registered" if isinstance(fact, RegistrationCreated) else "unregistered"
    payload = {
        "event_id": event.id,
        "user_id": fact.user_id,
        "action": action,
        "attendees": event.attendees,
    }
    # room subscribers are connections too; one publish reaches each socket once
    await broadcast("event:update", payload)


async def pregenerate_receipt_pdf(db: AsyncSession, fact: RegistrationCreated) -> bool:
    if not (settings.RECEIPT_PDF_PREGENERATE and fact.requires_payment and fact.receipt_id):
        return False

    res = await db.execute(
        select(Receipt).where(Receipt.id == fact.receipt_id).execution_options(populate_existing=True)
    )
    receipt = res.scalar_one()
    registration = await _get_registration(db, fact.registration_id)
    event = await _get_event(db, fact.event_id, refresh=True)
    user = await _get_user(db, fact.user_id, refresh=True)

    view = build_receipt_view(event, registration, user)
    view.transaction_id = receipt.transaction_id
    pdf_bytes = render_receipt_pdf(view)

    stored = await get_storage().save("receipts/pdf", f"{receipt.receipt_id}.pdf", pdf_bytes)
    receipt.pdf_path = stored.url
    receipt.pdf_generated_at = utcnow()
    registration.payment_receipt.transaction_id = receipt.transaction_id
    return True


def install_registration_hooks() -> None:
    hooks.subscribe(TOPIC_CREATED, "registration_mirror", mirror_registration)
    hooks.subscribe(TOPIC_CREATED, "live_broadcast", broadcast_registration)
    hooks.subscribe(TOPIC_CREATED, "receipt_pdf", pregenerate_receipt_pdf)

    hooks.subscribe(TOPIC_REMOVED, "registration_mirror", unmirror_registration)
    hooks.subscribe(TOPIC_REMOVED, "live_broadcast", broadcast_registration)
