from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clubhub.core.db import get_db
from clubhub.core.deps import Principal, require_admin
from clubhub.schemas.payments import RejectIn, VerificationOut, VerificationResponse
from clubhub.services import verification
from clubhub.services.errors import ServiceError

router = APIRouter(prefix="/admin", tags=["Admin - Payments"])


def _verified(pr, message: str) -> VerificationResponse:
    return VerificationResponse(message=message, payment_receipt=VerificationOut.model_validate(pr))


@router.get("/payments")
async def list_payments(
    status: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    _=Depends(require_admin),
):
    try:
        return {"payments": await verification.list_payments(db, status)}
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/registrations")
async def list_registrations(
    event_id: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    _=Depends(require_admin),
):
    try:
        return {"registrations": await verification.list_registrations(db, event_id)}
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/payments/{receipt_id}/approve", response_model=VerificationResponse)
async def approve_payment(
    receipt_id: int,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    try:
        pr = await verification.approve(db, receipt_id, admin.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return _verified(pr, "Payment approved")


@router.patch("/payments/{receipt_id}/reject", response_model=VerificationResponse)
async def reject_payment(
    receipt_id: int,
    body: Optional[RejectIn] = Body(default=None),
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    try:
        pr = await verification.reject(db, receipt_id, admin.user_id, body.reason if body else None)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return _verified(pr, "Payment rejected")


@router.patch("/payments/{event_id}/{registration_index}/approve", response_model=VerificationResponse)
async def approve_registration_payment(
    event_id: int,
    registration_index: int,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    try:
        pr = await verification.approve_by_index(db, event_id, registration_index, admin.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return _verified(pr, "Payment approved")


@router.patch("/payments/{event_id}/{registration_index}/reject", response_model=VerificationResponse)
async def reject_registration_payment(
    event_id: int,
    registration_index: int,
    body: Optional[RejectIn] = Body(default=None),
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    try:
        pr = await verification.reject_by_index(
            db, event_id, registration_index, admin.user_id, body.reason if body else None
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return _verified(pr, "Payment rejected")
