from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field


class EmailConfigIn(BaseModel):
    provider: str | None = None

    gmail_user: str | None = None
    gmail_app_password: str | None = None

    smtp_host: str | None = None
    smtp_port: int | None = Field(default=None, ge=1, le=65535)
    smtp_secure: bool | None = None
    smtp_user: str | None = None
    smtp_pass: str | None = None
    smtp_from: str | None = None

    is_active: bool | None = None


class EmailConfigOut(BaseModel):
    id: int
    provider: str
    gmail_user: str | None = None
    smtp_host: str | None = None
    smtp_port: int
    smtp_secure: bool
    smtp_user: str | None = None
    smtp_from: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class EmailTestIn(BaseModel):
    test_email: EmailStr
