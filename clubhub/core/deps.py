from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clubhub.core.db import get_db
from clubhub.core.security import decode_token, TokenError
from clubhub.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


@dataclass(frozen=True)
class Principal:
    """Caller identity as carried by the token claims (no database round-trip)."""

    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def _principal_from_token(token: str) -> Principal:
    try:
        payload = decode_token(token)
    except TokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    if payload.get("type") != "access":
        raise HTTPException(status_code=401, detail="Invalid token type")

    user_id = payload.get("sub")
    if user_id is None:
        raise HTTPException(status_code=401, detail="Token missing user id (sub)")

    try:
        user_id_int = int(user_id)
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid user id in token")

    return Principal(user_id=user_id_int, role=str(payload.get("role") or "visitor"))


async def get_current_principal(token: str = Depends(oauth2_scheme)) -> Principal:
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")
    return _principal_from_token(token)


async def get_optional_principal(
    token: Optional[str] = Depends(optional_oauth2_scheme),
) -> Optional[Principal]:
    if not token:
        return None
    try:
        return _principal_from_token(token)
    except HTTPException:
        return None


async def get_current_user(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> User:
    res = await db.execute(select(User).where(User.id == principal.user_id))
    user = res.scalar_one_or_none()

    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="User inactive")

    return user


def require_roles(*roles: str):
    def _checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in roles:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return principal

    return _checker


require_member = require_roles("member", "admin")
require_admin = require_roles("admin")
