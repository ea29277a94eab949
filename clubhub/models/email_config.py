from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from clubhub.core.clock import utcnow
from clubhub.core.db import Base, BigIntPK

EMAIL_PROVIDERS = ("gmail", "smtp")


class EmailConfig(Base):
    __tablename__ = "email_configs"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    provider: Mapped[str] = mapped_column(String(16), nullable=False, default="gmail")

    gmail_user: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    gmail_app_password: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    smtp_host: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    smtp_port: Mapped[int] = mapped_column(Integer, nullable=False, default=587)
    smtp_secure: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    smtp_user: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    smtp_pass: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    smtp_from: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
