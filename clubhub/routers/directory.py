from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from clubhub.core.db import get_db
from clubhub.core.deps import require_admin
from clubhub.schemas.directory import (
    CommitteeCreate,
    CommitteeMemberCreate,
    CommitteeMemberOut,
    CommitteeOut,
    HODCreate,
    HODOut,
    HODUpdate,
)
from clubhub.services import directory as directory_service
from clubhub.services.errors import ServiceError

router = APIRouter(tags=["Directory"])


# HODs
@router.get("/hods", response_model=list[HODOut])
async def list_hods(db: AsyncSession = Depends(get_db)):
    return await directory_service.list_hods(db)


@router.get("/hods/{hod_id}", response_model=HODOut)
async def get_hod(hod_id: int, db: AsyncSession = Depends(get_db)):
    try:
        return await directory_service.get_hod(db, hod_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post("/hods", response_model=HODOut, status_code=status.HTTP_201_CREATED)
async def create_hod(body: HODCreate, db: AsyncSession = Depends(get_db), _=Depends(require_admin)):
    return await directory_service.create_hod(db, body)


@router.patch("/hods/{hod_id}", response_model=HODOut)
async def update_hod(
    hod_id: int,
    body: HODUpdate,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_admin),
):
    try:
        return await directory_service.update_hod(db, hod_id, body)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/hods/{hod_id}")
async def delete_hod(hod_id: int, db: AsyncSession = Depends(get_db), _=Depends(require_admin)):
    try:
        await directory_service.delete_hod(db, hod_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return {"message": "HOD deleted"}


# Committees
@router.get("/committees", response_model=list[CommitteeOut])
async def list_committees(db: AsyncSession = Depends(get_db)):
    return await directory_service.list_committees(db)


@router.post("/committees", response_model=CommitteeOut, status_code=status.HTTP_201_CREATED)
async def create_committee(body: CommitteeCreate, db: AsyncSession = Depends(get_db), _=Depends(require_admin)):
    try:
        return await directory_service.create_committee(db, body)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.post(
    "/committees/{committee_id}/members",
    response_model=CommitteeMemberOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_committee_member(
    committee_id: int,
    body: CommitteeMemberCreate,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_admin),
):
    try:
        return await directory_service.add_member(db, committee_id, body)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/committees/{committee_id}/members/{member_id}")
async def delete_committee_member(
    committee_id: int,
    member_id: int,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_admin),
):
    try:
        await directory_service.delete_member(db, committee_id, member_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return {"message": "Committee member deleted"}
