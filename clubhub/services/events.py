from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clubhub.core.clock import utcnow
from clubhub.core.deps import Principal
from clubhub.models.event import EVENT_CATEGORIES, EVENT_TYPES, Event
from clubhub.schemas.events import EventCreate, EventUpdate
from clubhub.services.errors import ForbiddenError, NotFoundError, ValidationError
from clubhub.services.realtime import broadcast

logger = logging.getLogger(__name__)

UPCOMING_LIMIT = 10
BY_TYPE_LIMIT = 10


def _visible(stmt, principal: Optional[Principal]):
    # anonymous callers only see public events
    if principal is None:
        stmt = stmt.where(Event.is_public.is_(True))
    return stmt


def _only_events(stmt):
    return stmt.where(Event.type == "event", Event.category != "News")


async def list_events(db: AsyncSession, principal: Optional[Principal]) -> List[Event]:
    stmt = _visible(_only_events(select(Event)), principal).order_by(Event.date.desc())
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def list_upcoming(db: AsyncSession, principal: Optional[Principal]) -> List[Event]:
    stmt = (
        _visible(_only_events(select(Event)), principal)
        .where(Event.date >= utcnow())
        .order_by(Event.date.asc())
        .limit(UPCOMING_LIMIT)
    )
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def list_past(db: AsyncSession, principal: Optional[Principal]) -> List[Event]:
    stmt = (
        _visible(_only_events(select(Event)), principal)
        .where(Event.date < utcnow(), Event.cancelled.is_(False))
        .order_by(Event.date.desc())
    )
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def list_by_type(db: AsyncSession, event_type: str, principal: Optional[Principal]) -> List[Event]:
    if event_type not in EVENT_TYPES:
        raise ValidationError(f"type must be one of {', '.join(EVENT_TYPES)}")
    stmt = (
        _visible(select(Event).where(Event.type == event_type), principal)
        .order_by(Event.date.desc())
        .limit(BY_TYPE_LIMIT)
    )
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def get_event(db: AsyncSession, event_id: int, principal: Optional[Principal] = None) -> Event:
    event = await db.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event not found")
    if principal is None and not event.is_public:
        raise ForbiddenError("This event is for members only")
    return event


# -------------------------
# Admin
# -------------------------
def _check_choices(category: Optional[str], event_type: Optional[str]) -> None:
    if category is not None and category not in EVENT_CATEGORIES:
        raise ValidationError(f"category must be one of {', '.join(EVENT_CATEGORIES)}")
    if event_type is not None and event_type not in EVENT_TYPES:
        raise ValidationError(f"type must be one of {', '.join(EVENT_TYPES)}")


async def _notify(event: Event, action: str) -> None:
    await broadcast("event:update", {"event_id": event.id, "action": action})


async def list_admin_events(db: AsyncSession) -> List[Event]:
    res = await db.execute(
        select(Event).where(Event.type.in_(("event", "activity"))).order_by(Event.date.desc())
    )
    return list(res.scalars().all())


async def create_event(db: AsyncSession, body: EventCreate) -> Event:
    _check_choices(body.category, body.type)

    event = Event(**body.model_dump())
    db.add(event)
    await db.commit()
    await db.refresh(event)

    logger.info("[events] created id=%s title=%s", event.id, event.title)
    await _notify(event, "created")
    return event


async def update_event(db: AsyncSession, event_id: int, body: EventUpdate) -> Event:
    event = await db.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event not found")

    changes = body.model_dump(exclude_unset=True)
    _check_choices(changes.get("category"), changes.get("type"))

    for field_name, value in changes.items():
        if value is None and field_name not in ("payment_amount", "fee", "schedule"):
            continue
        setattr(event, field_name, value)

    await db.commit()
    await db.refresh(event)

    await _notify(event, "updated")
    return event


async def cancel_event(db: AsyncSession, event_id: int) -> Event:
    event = await db.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event not found")

    event.cancelled = True
    await db.commit()
    await db.refresh(event)

    logger.info("[events] cancelled id=%s", event.id)
    await _notify(event, "cancelled")
    return event


async def delete_event(db: AsyncSession, event_id: int) -> None:
    event = await db.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event not found")

    await db.delete(event)
    await db.commit()

    logger.info("[events] deleted id=%s", event_id)
    await broadcast("event:update", {"event_id": event_id, "action": "deleted"})
