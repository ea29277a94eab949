from __future__ import annotations

import logging
import re
from datetime import timedelta
from typing import Optional, Tuple
from urllib.parse import urlencode

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clubhub.core.clock import as_utc, utcnow
from clubhub.core.config import settings
from clubhub.core.security import (
    create_access_token,
    generate_random_token,
    hash_password,
    hash_token,
    verify_password,
)
from clubhub.models.user import User
from clubhub.services.email import password_reset_email, send_email_safely, verification_email
from clubhub.services.errors import AuthError, ConflictError, ForbiddenError, ValidationError

logger = logging.getLogger(__name__)

PASSWORD_MIN = 8
PASSWORD_MAX = 128

GENERIC_RESET_MESSAGE = "If the email exists, reset instructions have been sent"
GENERIC_RESEND_MESSAGE = "If the email exists, a link has been sent"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def check_password_policy(password: str) -> None:
    if not (PASSWORD_MIN <= len(password or "") <= PASSWORD_MAX):
        raise ValidationError(f"Password must be between {PASSWORD_MIN} and {PASSWORD_MAX} characters")
    if not re.search(r"[a-z]", password) or not re.search(r"[A-Z]", password) or not re.search(r"\d", password):
        raise ValidationError("Password must contain at least one uppercase letter, one lowercase letter and one number")


def _verify_url(token: str, email: str) -> str:
    query = urlencode({"token": token, "email": email})
    return f"{settings.SERVER_BASE_URL.rstrip('/')}/auth/verify-email?{query}"


def _reset_url(token: str, email: str) -> str:
    query = urlencode({"token": token, "email": email})
    return f"{settings.CLIENT_BASE_URL.rstrip('/')}/reset-password?{query}"


def _issue_verification_token(user: User) -> str:
    token = generate_random_token()
    user.email_verification_token_hash = hash_token(token)
    user.email_verification_token_expires_at = utcnow() + timedelta(minutes=settings.EMAIL_TOKEN_TTL_MINUTES)
    return token


async def _get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    res = await db.execute(select(User).where(User.email == normalize_email(email)))
    return res.scalar_one_or_none()


async def signup(db: AsyncSession, *, name: str, email: str, password: str) -> dict:
    email = normalize_email(email)
    check_password_policy(password)

    if await _get_user_by_email(db, email) is not None:
        raise ConflictError("Email already in use")

    user = User(name=name.strip() or None, email=email, password_hash=hash_password(password), role="member")
    token = _issue_verification_token(user)
    db.add(user)
    await db.commit()

    verify_url = _verify_url(token, email)
    subject, text, html = verification_email(user.name, verify_url)
    sent = await send_email_safely(db, email, subject, text, html)

    logger.info("[auth] signup user=%s email_sent=%s", user.id, sent)

    out = {
        "message": "Signup successful. Please check your email to verify your account."
        if sent
        else "Signup successful, but the verification email could not be sent.",
        "user_id": user.id,
    }
    if not settings.is_production:
        out["verify_url"] = verify_url
    return out


async def verify_email(db: AsyncSession, *, token: str, email: str) -> None:
    if not token or not email:
        raise ValidationError("Invalid verification link")

    res = await db.execute(
        select(User).where(
            User.email == normalize_email(email),
            User.email_verification_token_hash == hash_token(token),
        )
    )
    user = res.scalar_one_or_none()
    if user is None:
        raise ValidationError("Invalid or already used token")

    expires = user.email_verification_token_expires_at
    if expires is None or as_utc(expires) < utcnow():
        raise ValidationError("Verification token expired")

    user.email_verified_at = utcnow()
    user.email_verification_token_hash = None
    user.email_verification_token_expires_at = None
    await db.commit()


async def login(db: AsyncSession, *, email: str, password: str) -> Tuple[str, User]:
    user = await _get_user_by_email(db, email)
    if user is None:
        raise AuthError("Invalid email or password")
    if not user.is_active:
        raise ForbiddenError("Account is deactivated")
    if not verify_password(password, user.password_hash):
        raise AuthError("Invalid email or password")
    if not user.is_email_verified:
        raise ForbiddenError("Email not verified")

    token = create_access_token(user_id=user.id, role=user.role)
    logger.info("[auth] login user=%s", user.id)
    return token, user


async def request_password_reset(db: AsyncSession, *, email: str) -> dict:
    user = await _get_user_by_email(db, email)
    out = {"message": GENERIC_RESET_MESSAGE}
    if user is None:
        return out

    token = generate_random_token()
    user.password_reset_token_hash = hash_token(token)
    user.password_reset_token_expires_at = utcnow() + timedelta(minutes=settings.PASSWORD_RESET_TTL_MINUTES)
    await db.commit()

    reset_url = _reset_url(token, user.email)
    subject, text, html = password_reset_email(user.name, reset_url)
    await send_email_safely(db, user.email, subject, text, html)

    if not settings.is_production:
        out["reset_url"] = reset_url
    return out


async def reset_password(db: AsyncSession, *, token: str, email: str, new_password: str) -> None:
    res = await db.execute(
        select(User).where(
            User.email == normalize_email(email),
            User.password_reset_token_hash == hash_token(token or ""),
        )
    )
    user = res.scalar_one_or_none()
    if user is None:
        raise ValidationError("Invalid or expired token")

    expires = user.password_reset_token_expires_at
    if expires is None or as_utc(expires) < utcnow():
        raise ValidationError("Invalid or expired token")

    check_password_policy(new_password)

    user.password_hash = hash_password(new_password)
    user.password_reset_token_hash = None
    user.password_reset_token_expires_at = None
    await db.commit()
    logger.info("[auth] password reset user=%s", user.id)


async def resend_verification(db: AsyncSession, *, email: str) -> dict:
    user = await _get_user_by_email(db, email)
    if user is None:
        return {"message": GENERIC_RESEND_MESSAGE}
    if user.is_email_verified:
        return {"message": "Email already verified"}

    token = _issue_verification_token(user)
    await db.commit()

    verify_url = _verify_url(token, user.email)
    subject, text, html = verification_email(user.name, verify_url)
    await send_email_safely(db, user.email, subject, text, html)

    out = {"message": "Verification link sent"}
    if not settings.is_production:
        out["verify_url"] = verify_url
    return out


async def change_password(db: AsyncSession, user: User, *, current: str, new: str, confirm: str) -> None:
    if new != confirm:
        raise ValidationError("New password and confirmation do not match.")
    if not verify_password(current, user.password_hash):
        raise ValidationError("Current password is incorrect.")
    if verify_password(new, user.password_hash):
        raise ValidationError("New password must be different from current password.")
    check_password_policy(new)

    user.password_hash = hash_password(new)
    await db.commit()
