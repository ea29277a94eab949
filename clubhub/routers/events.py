from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from clubhub.core.db import get_db
from clubhub.core.deps import Principal, get_optional_principal, require_member
from clubhub.schemas.events import EventListOut, EventOut, PaymentReceiptOut, RegisterOut, UnregisterOut
from clubhub.services import events as events_service
from clubhub.services import registrations as registration_service
from clubhub.services.errors import ServiceError
from clubhub.services.storage import UploadedReceipt

router = APIRouter(prefix="/events", tags=["Events"])


@router.get("", response_model=EventListOut)
async def list_events(
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_optional_principal),
):
    return {"events": await events_service.list_events(db, principal)}


@router.get("/upcoming", response_model=EventListOut)
async def upcoming_events(
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_optional_principal),
):
    return {"events": await events_service.list_upcoming(db, principal)}


@router.get("/past", response_model=EventListOut)
async def past_events(
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_optional_principal),
):
    return {"events": await events_service.list_past(db, principal)}


@router.get("/type/{event_type}", response_model=EventListOut)
async def events_by_type(
    event_type: str,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_optional_principal),
):
    try:
        return {"events": await events_service.list_by_type(db, event_type, principal)}
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/{event_id}", response_model=EventOut)
async def get_event(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_optional_principal),
):
    try:
        return await events_service.get_event(db, event_id, principal)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/{event_id}/register", response_model=RegisterOut)
async def register_for_event(
    event_id: int,
    name: Optional[str] = Form(default=None),
    email: Optional[str] = Form(default=None),
    matric_number: Optional[str] = Form(default=None, alias="matricNumber"),
    phone: Optional[str] = Form(default=None),
    notes: Optional[str] = Form(default=None),
    payment_method: Optional[str] = Form(default=None, alias="paymentMethod"),
    receipt: Optional[UploadFile] = File(default=None),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_member),
):
    upload = None
    if receipt is not None and receipt.filename:
        upload = UploadedReceipt(
            filename=receipt.filename,
            content_type=receipt.content_type,
            data=await receipt.read(),
        )

    form = registration_service.RegistrationForm(
        name=name,
        email=email,
        matric_number=matric_number,
        phone=phone,
        notes=notes,
        payment_method=payment_method,
    )

    try:
        result = await registration_service.register(db, event_id, principal.user_id, form, upload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return RegisterOut(
        message="Successfully registered for event",
        event=EventOut.model_validate(result.event),
        receipt=PaymentReceiptOut.model_validate(result.receipt) if result.receipt else None,
        pdf_generated=result.pdf_generated,
    )


@router.post("/{event_id}/unregister", response_model=UnregisterOut)
async def unregister_from_event(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(require_member),
):
    try:
        event = await registration_service.unregister(db, event_id, principal.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return UnregisterOut(message="Successfully unregistered from event", event=EventOut.model_validate(event))
