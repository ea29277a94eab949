from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from clubhub.models.user import USER_ROLES, User
from clubhub.services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


async def _get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def list_users(db: AsyncSession, *, role: Optional[str] = None, q: Optional[str] = None) -> List[User]:
    stmt = select(User).order_by(User.created_at.desc(), User.id.desc())
    if role:
        stmt = stmt.where(User.role == role)
    if q:
        like = f"%{q.strip()}%"
        stmt = stmt.where(or_(User.name.ilike(like), User.email.ilike(like)))
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def set_role(db: AsyncSession, user_id: int, role: str) -> User:
    if role not in USER_ROLES:
        raise ValidationError(f"role must be one of {', '.join(USER_ROLES)}")
    user = await _get_user(db, user_id)
    user.role = role
    await db.commit()
    logger.info("[users] role user=%s -> %s", user_id, role)
    return user


async def set_active(db: AsyncSession, user_id: int, is_active: bool) -> User:
    user = await _get_user(db, user_id)
    user.is_active = is_active
    await db.commit()
    logger.info("[users] active user=%s -> %s", user_id, is_active)
    return user


async def delete_user(db: AsyncSession, user_id: int, *, acting_admin_id: int) -> None:
    if user_id == acting_admin_id:
        raise ValidationError("You cannot delete your own account")
    user = await _get_user(db, user_id)
    await db.delete(user)
    await db.commit()
    logger.info("[users] deleted user=%s by admin=%s", user_id, acting_admin_id)
