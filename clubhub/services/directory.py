from __future__ import annotations

from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clubhub.models.directory import HOD, Committee, CommitteeMember
from clubhub.schemas.directory import CommitteeCreate, CommitteeMemberCreate, HODCreate, HODUpdate
from clubhub.services.errors import ConflictError, NotFoundError


# -------------------------
# HODs
# -------------------------
async def list_hods(db: AsyncSession) -> List[HOD]:
    res = await db.execute(select(HOD).order_by(HOD.order.asc(), HOD.created_at.desc()))
    return list(res.scalars().all())


async def get_hod(db: AsyncSession, hod_id: int) -> HOD:
    hod = await db.get(HOD, hod_id)
    if hod is None:
        raise NotFoundError("HOD not found")
    return hod


async def create_hod(db: AsyncSession, body: HODCreate) -> HOD:
    hod = HOD(**body.model_dump())
    db.add(hod)
    await db.commit()
    await db.refresh(hod)
    return hod


async def update_hod(db: AsyncSession, hod_id: int, body: HODUpdate) -> HOD:
    hod = await get_hod(db, hod_id)
    for field_name, value in body.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(hod, field_name, value)
    await db.commit()
    await db.refresh(hod)
    return hod


async def delete_hod(db: AsyncSession, hod_id: int) -> None:
    hod = await get_hod(db, hod_id)
    await db.delete(hod)
    await db.commit()


# -------------------------
# Committees
# -------------------------
async def list_committees(db: AsyncSession) -> List[Committee]:
    # committees without a priority go last
    res = await db.execute(
        select(Committee).order_by(Committee.priority.is_(None), Committee.priority.asc(), Committee.name.asc())
    )
    return list(res.scalars().all())


async def create_committee(db: AsyncSession, body: CommitteeCreate) -> Committee:
    committee = Committee(name=body.name.strip(), priority=body.priority)
    db.add(committee)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Committee already exists")
    await db.refresh(committee)
    return committee


async def add_member(db: AsyncSession, committee_id: int, body: CommitteeMemberCreate) -> CommitteeMember:
    committee = await db.get(Committee, committee_id)
    if committee is None:
        raise NotFoundError("Committee not found")

    member = CommitteeMember(committee_id=committee.id, **body.model_dump())
    db.add(member)
    await db.commit()
    await db.refresh(member)
    return member


async def delete_member(db: AsyncSession, committee_id: int, member_id: int) -> None:
    member = await db.get(CommitteeMember, member_id)
    if member is None or member.committee_id != committee_id:
        raise NotFoundError("Committee member not found")
    await db.delete(member)
    await db.commit()
