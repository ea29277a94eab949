from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from clubhub.core.db import get_db
from clubhub.core.deps import require_admin
from clubhub.schemas.email_config import EmailConfigIn, EmailConfigOut, EmailTestIn
from clubhub.services import email_config as email_config_service
from clubhub.services.errors import ServiceError

router = APIRouter(prefix="/admin/email-config", tags=["Admin - Email"])


@router.get("")
async def get_email_config(
    db: AsyncSession = Depends(get_db),
    _=Depends(require_admin),
):
    config = await email_config_service.get_active_config(db)
    if config is None:
        return {"config": None, "message": "No email configuration found. Please configure email settings."}
    return {"config": EmailConfigOut.model_validate(config)}


async def _save(body: EmailConfigIn, db: AsyncSession):
    try:
        config = await email_config_service.save_config(db, body)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return {"message": "Email configuration saved successfully", "config": EmailConfigOut.model_validate(config)}


@router.post("")
async def create_email_config(
    body: EmailConfigIn,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_admin),
):
    return await _save(body, db)


@router.patch("")
async def update_email_config(
    body: EmailConfigIn,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_admin),
):
    return await _save(body, db)


@router.post("/test")
async def test_email_config(
    body: EmailTestIn,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_admin),
):
    try:
        await email_config_service.send_test_email(db, body.test_email)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return {"message": "Test email sent successfully"}
