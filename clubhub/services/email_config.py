from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from clubhub.core.config import settings
from clubhub.models.email_config import EMAIL_PROVIDERS, EmailConfig
from clubhub.schemas.email_config import EmailConfigIn
from clubhub.services.email import send_email, transport_cache
from clubhub.services.errors import ServiceError, ValidationError

logger = logging.getLogger(__name__)

# fields that only ever flow in; never echoed back
SECRET_FIELDS = ("gmail_app_password", "smtp_pass")


async def get_active_config(db: AsyncSession) -> Optional[EmailConfig]:
    res = await db.execute(
        select(EmailConfig).where(EmailConfig.is_active.is_(True)).order_by(EmailConfig.updated_at.desc())
    )
    return res.scalars().first()


def _validate(body: EmailConfigIn) -> None:
    if body.provider is not None and body.provider not in EMAIL_PROVIDERS:
        raise ValidationError('Provider must be "gmail" or "smtp"')
    if body.provider == "gmail" and not (body.gmail_user and body.gmail_app_password):
        raise ValidationError("Gmail configuration requires gmail_user and gmail_app_password")
    if body.provider == "smtp" and not (body.smtp_host and body.smtp_user and body.smtp_pass):
        raise ValidationError("SMTP configuration requires smtp_host, smtp_user, and smtp_pass")


async def save_config(db: AsyncSession, body: EmailConfigIn) -> EmailConfig:
    _validate(body)

    config = await get_active_config(db)
    if config is None:
        config = EmailConfig(
            provider=body.provider or "gmail",
            smtp_port=body.smtp_port or 587,
            smtp_secure=bool(body.smtp_secure),
            is_active=True if body.is_active is None else body.is_active,
        )
        db.add(config)

    for field_name, value in body.model_dump(exclude_unset=True).items():
        setattr(config, field_name, value)

    await db.flush()

    if config.is_active:
        await db.execute(
            update(EmailConfig).where(EmailConfig.id != config.id).values(is_active=False)
        )

    await db.commit()
    await db.refresh(config)

    transport_cache.invalidate()
    logger.info("[email-config] saved provider=%s active=%s", config.provider, config.is_active)
    return config


async def send_test_email(db: AsyncSession, to: str) -> None:
    if not to:
        raise ValidationError("test_email is required")

    name = settings.CLUB_NAME
    try:
        await send_email(
            db,
            to=to,
            subject=f"{name} - Email Configuration Test",
            text=f"This is a test email from {name}. Your email configuration is working correctly!",
            html=f"<p>This is a test email from {name}.</p><p>Your email configuration is working correctly!</p>",
        )
    except Exception as e:
        logger.exception("[email-config] test email failed to=%s", to)
        err = ServiceError(f"Failed to send test email: {e}")
        err.status_code = 502
        raise err from e
