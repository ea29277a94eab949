from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clubhub.core.db import get_db
from clubhub.core.deps import Principal, require_admin
from clubhub.schemas.auth import RoleUpdate, UserOut
from clubhub.services import users as users_service
from clubhub.services.errors import ServiceError

router = APIRouter(prefix="/admin/users", tags=["Admin - Users"])


@router.get("", response_model=list[UserOut])
async def list_users(
    role: Optional[str] = Query(default=None),
    q: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
    _=Depends(require_admin),
):
    return await users_service.list_users(db, role=role, q=q)


@router.patch("/{user_id}/role", response_model=UserOut)
async def update_role(
    user_id: int,
    body: RoleUpdate,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_admin),
):
    try:
        return await users_service.set_role(db, user_id, body.role)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{user_id}/deactivate", response_model=UserOut)
async def deactivate_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_admin),
):
    try:
        return await users_service.set_active(db, user_id, False)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{user_id}/activate", response_model=UserOut)
async def activate_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_admin),
):
    try:
        return await users_service.set_active(db, user_id, True)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
):
    try:
        await users_service.delete_user(db, user_id, acting_admin_id=admin.user_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return {"message": "User deleted"}
