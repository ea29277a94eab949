from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class RejectIn(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class VerificationOut(BaseModel):
    id: int
    receipt_number: str
    event_id: int
    user_id: int
    payment_status: str
    verified_by: int | None = None
    verified_at: datetime | None = None
    rejection_reason: str | None = None

    class Config:
        from_attributes = True


class VerificationResponse(BaseModel):
    message: str
    payment_receipt: VerificationOut


class ShareOut(BaseModel):
    share_url: str
    share_token: str
    message: str
