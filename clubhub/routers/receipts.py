from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import Response

from clubhub.core.db import get_db
from clubhub.core.deps import Principal, get_current_principal
from clubhub.schemas.payments import ShareOut
from clubhub.services import receipts as receipt_service
from clubhub.services.errors import ServiceError

router = APIRouter(prefix="/receipts", tags=["Receipts"])


def _target_user(principal: Principal, user_id: Optional[int]) -> int:
    if user_id is None or user_id == principal.user_id:
        return principal.user_id
    if not principal.is_admin:
        raise HTTPException(status_code=403, detail="Not allowed to access another user's receipt")
    return user_id


@router.get("/user/receipts")
async def my_receipts(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    return {"receipts": await receipt_service.list_user_receipts(db, principal.user_id)}


@router.get("/event/{event_id}")
async def get_receipt(
    event_id: int,
    user_id: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    target = _target_user(principal, user_id)
    try:
        return {"receipt": await receipt_service.get_receipt(db, event_id, target)}
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/event/{event_id}/download")
async def download_receipt(
    event_id: int,
    format: str = Query(default="pdf"),
    user_id: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    target = _target_user(principal, user_id)
    try:
        rendered = await receipt_service.render_receipt(db, event_id, target, format)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    if rendered.media_type == "application/pdf":
        return Response(
            content=rendered.content,
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="{rendered.filename}"'},
        )
    return HTMLResponse(content=rendered.content)


@router.get("/event/{event_id}/share", response_model=ShareOut)
async def share_receipt(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    try:
        return await receipt_service.share_receipt(db, event_id, principal.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.get("/shared/{token:path}", response_class=HTMLResponse)
async def view_shared_receipt(token: str, db: AsyncSession = Depends(get_db)):
    try:
        return HTMLResponse(content=await receipt_service.view_shared_receipt(db, token))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
