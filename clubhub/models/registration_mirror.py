from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from clubhub.core.clock import utcnow
from clubhub.core.db import Base, BigIntPK


class RegistrationMirror(Base):
    """Denormalized copy of a registration for querying outside the event."""

    __tablename__ = "registration_mirrors"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_registration_mirrors_event_user"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    event_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    registration_index: Mapped[int] = mapped_column(Integer, nullable=False)

    event_title: Mapped[str] = mapped_column(String(255), nullable=False)
    registration_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    registration_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    matric_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    receipt_number: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    payment_status: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    mirrored_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
