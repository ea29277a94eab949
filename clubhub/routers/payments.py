from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import Response

from clubhub.core.db import get_db
from clubhub.core.deps import Principal, get_current_principal
from clubhub.services import payments as payment_service
from clubhub.services.errors import ServiceError

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.get("/proof/{payment_id}")
async def payment_proof(
    payment_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    try:
        return await payment_service.get_payment_proof(db, payment_id, principal)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/receipts")
async def my_receipts(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return {"receipts": await payment_service.list_user_receipts(db, principal.user_id)}


@router.get("/receipts/{receipt_id}/download")
async def download_receipt(
    receipt_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    try:
        rendered = await payment_service.render_receipt_document(db, receipt_id, principal)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return Response(
        content=rendered.content,
        media_type=rendered.media_type,
        headers={"Content-Disposition": f'attachment; filename="{rendered.filename}"'},
    )
