# clubhub/routers/admin_events.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from clubhub.core.db import get_db
from clubhub.core.deps import require_admin
from clubhub.schemas.events import EventCreate, EventListOut, EventOut, EventUpdate
from clubhub.services import events as events_service
from clubhub.services.errors import ServiceError

router = APIRouter(prefix="/admin/events", tags=["Admin - Events"])


@router.get("", response_model=EventListOut)
async def list_events(
    db: AsyncSession = Depends(get_db),
    _=Depends(require_admin),
):
    return {"events": await events_service.list_admin_events(db)}


@router.post("", response_model=EventOut, status_code=status.HTTP_201_CREATED)
async def create_event(
    body: EventCreate,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_admin),
):
    try:
        return await events_service.create_event(db, body)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{event_id}", response_model=EventOut)
async def update_event(
    event_id: int,
    body: EventUpdate,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_admin),
):
    try:
        return await events_service.update_event(db, event_id, body)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.patch("/{event_id}/cancel", response_model=EventOut)
async def cancel_event(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_admin),
):
    try:
        return await events_service.cancel_event(db, event_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


@router.delete("/{event_id}")
async def delete_event(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    _=Depends(require_admin),
):
    try:
        await events_service.delete_event(db, event_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))
    return {"message": "Event deleted"}
