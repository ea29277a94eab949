from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clubhub.core.clock import utcnow
from clubhub.core.db import Base, BigIntPK

EVENT_CATEGORIES = ("News", "Announcement", "Activity", "Cultural", "Academic", "Social")
EVENT_TYPES = ("event", "announcement", "activity")


class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="event")

    schedule: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)  # e.g. "Every Wednesday, 8:00 PM"
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    cancelled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # two historical payment shapes: requires_payment+payment_amount, and the older flat fee
    requires_payment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payment_amount: Mapped[Optional[float]] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    fee: Mapped[Optional[float]] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)

    attendees: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    registrations: Mapped[List["Registration"]] = relationship(
        "Registration",
        back_populates="event",
        cascade="all, delete-orphan",
        order_by="Registration.id",
        lazy="selectin",
    )

    @property
    def registered_users(self) -> List[int]:
        return [r.user_id for r in self.registrations]


class Registration(Base):
    __tablename__ = "registrations"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_registrations_event_user"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    event_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    registration_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    registration_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    matric_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    event: Mapped["Event"] = relationship("Event", back_populates="registrations")
    payment_receipt: Mapped[Optional["PaymentReceipt"]] = relationship(
        "PaymentReceipt",
        back_populates="registration",
        cascade="all, delete-orphan",
        uselist=False,
        lazy="selectin",
    )


Index("ix_events_date", Event.date.desc())
Index("ix_events_type_category", Event.type, Event.category)
Index("ix_registrations_user", Registration.user_id)
