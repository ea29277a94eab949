from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from clubhub.core.clock import as_utc


class PaymentReceiptOut(BaseModel):
    id: int
    receipt_number: str
    receipt_url: str | None = None
    generated_at: datetime
    amount: float
    currency: str
    payment_method: str | None = None
    payment_status: str
    transaction_id: str | None = None
    verified_by: int | None = None
    verified_at: datetime | None = None
    rejection_reason: str | None = None

    class Config:
        from_attributes = True


class RegistrationOut(BaseModel):
    id: int
    user_id: int
    registered_at: datetime
    registration_name: str | None = None
    registration_email: str | None = None
    matric_number: str | None = None
    phone: str | None = None
    notes: str | None = None
    payment_receipt: PaymentReceiptOut | None = None

    class Config:
        from_attributes = True


class EventOut(BaseModel):
    id: int
    title: str
    description: str
    date: datetime
    location: str
    category: str
    type: str
    schedule: str | None = None
    is_recurring: bool
    is_public: bool
    cancelled: bool
    requires_payment: bool
    payment_amount: float | None = None
    fee: float | None = None
    attendees: int
    registered_users: list[int] = Field(default_factory=list)
    registrations: list[RegistrationOut] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    date: datetime
    location: str = Field(..., min_length=1, max_length=255)
    category: str
    type: str = "event"
    schedule: str | None = None
    is_recurring: bool = False
    is_public: bool = True
    requires_payment: bool = False
    payment_amount: float | None = Field(default=None, ge=0)
    fee: float | None = Field(default=None, ge=0)

    @field_validator("date")
    @classmethod
    def _utc_date(cls, v: datetime) -> datetime:
        return as_utc(v)


class EventUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    date: datetime | None = None
    location: str | None = None
    category: str | None = None
    type: str | None = None
    schedule: str | None = None
    is_recurring: bool | None = None
    is_public: bool | None = None
    cancelled: bool | None = None
    requires_payment: bool | None = None
    payment_amount: float | None = Field(default=None, ge=0)
    fee: float | None = Field(default=None, ge=0)

    @field_validator("date")
    @classmethod
    def _utc_date(cls, v: datetime | None) -> datetime | None:
        return as_utc(v)


class EventListOut(BaseModel):
    events: list[EventOut]


class RegisterOut(BaseModel):
    message: str
    event: EventOut
    receipt: PaymentReceiptOut | None = None
    pdf_generated: bool = False


class UnregisterOut(BaseModel):
    message: str
    event: EventOut
