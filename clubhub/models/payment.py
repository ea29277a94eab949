from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clubhub.core.clock import utcnow
from clubhub.core.db import Base, BigIntPK, JSONType

PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")
RECEIPT_STATUSES = ("Pending", "Verified", "Rejected")
PAYMENT_TYPES = ("Event Registration", "Membership Fee", "Donation", "Other")


class Payment(Base):
    """Monetary transaction for a (user, event) pair."""

    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    event_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)

    amount: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="MYR")
    transaction_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    payment_method: Mapped[str] = mapped_column(String(64), nullable=False, default="online")
    payment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    # "metadata" is reserved on declarative classes
    meta: Mapped[dict] = mapped_column("metadata", JSONType, nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class Receipt(Base):
    """Proof of payment; snapshot of user/event so later edits don't rewrite history."""

    __tablename__ = "receipts"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    receipt_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    payment_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("payments.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    user_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    event_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)

    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    event_name: Mapped[str] = mapped_column(String(255), nullable=False)
    event_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    payment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    amount: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="MYR")
    transaction_id: Mapped[str] = mapped_column(String(64), nullable=False)

    pdf_generated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    pdf_path: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    payment: Mapped["Payment"] = relationship("Payment", lazy="selectin")


class PaymentReceipt(Base):
    """
    Verification record for a registration's payment.

    One row per (user, event); the registration reaches it through
    Registration.payment_receipt, and the admin ledger lists the same rows.
    """

    __tablename__ = "payment_receipts"
    __table_args__ = (UniqueConstraint("user_id", "event_id", name="uq_payment_receipts_user_event"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    registration_id: Mapped[int] = mapped_column(
        BigIntPK, ForeignKey("registrations.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    user_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    event_id: Mapped[int] = mapped_column(BigIntPK, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    payment_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("payments.id", ondelete="SET NULL"), nullable=True
    )

    receipt_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    receipt_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    amount: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="RM")
    payment_type: Mapped[str] = mapped_column(String(32), nullable=False, default="Event Registration")
    payment_method: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False, default="Pending")
    transaction_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    verified_by: Mapped[Optional[int]] = mapped_column(
        BigIntPK, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    registration: Mapped["Registration"] = relationship(
        "Registration", back_populates="payment_receipt", lazy="selectin"
    )


Index("ix_payments_user_event", Payment.user_id, Payment.event_id)
Index("ix_payments_status", Payment.status)
Index("ix_receipts_user", Receipt.user_id)
Index("ix_payment_receipts_status_submitted", PaymentReceipt.payment_status, PaymentReceipt.submitted_at.desc())
