"""
PayPortal — ORM Models: Payments, Release Batches & Payment Audit Log
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payportal.database import Base

STATUS_PENDING = "pending"
STATUS_VERIFIED = "verified"
STATUS_SUBMITTED = "submitted"
STATUS_COMPLETED = "completed"
STATUS_REJECTED = "rejected"

PAYMENT_STATUSES = (
    STATUS_PENDING,
    STATUS_VERIFIED,
    STATUS_SUBMITTED,
    STATUS_COMPLETED,
    STATUS_REJECTED,
)

BATCH_RELEASING = "releasing"
BATCH_ACCEPTED = "accepted"
BATCH_FAILED = "failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Payment(Base):
    """International payment instruction under maker-checker control."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Maker: always the submitting customer
    owner_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(precision=18, scale=2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    provider: Mapped[str] = mapped_column(String(10), nullable=False, default="SWIFT")

    # Payee
    payee_account_number: Mapped[str] = mapped_column(String(16), nullable=False)
    payee_account_name: Mapped[str] = mapped_column(String(100), nullable=False)
    payee_bank_name: Mapped[str] = mapped_column(String(100), nullable=False)
    swift_code: Mapped[str] = mapped_column(String(11), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_PENDING)

    # Checker: set on pending -> verified
    verified_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Release: set on verified -> submitted
    batch_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("release_batches.id"), nullable=True, index=True
    )
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    rejected_by: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "verified_by IS NULL OR verified_by != owner_id",
            name="ck_payments_no_self_verification",
        ),
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        CheckConstraint(
            "status IN ('pending', 'verified', 'submitted', 'completed', 'rejected')",
            name="ck_payments_status",
        ),
        Index("ix_payments_status_created_at", "status", "created_at"),
    )

    batch: Mapped[Optional["ReleaseBatch"]] = relationship("ReleaseBatch", back_populates="payments")

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, status={self.status}, amount={self.amount} {self.currency})>"


class ReleaseBatch(Base):
    """One release attempt handed to the settlement network."""

    __tablename__ = "release_batches"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    released_by: Mapped[str] = mapped_column(String(36), nullable=False)
    payment_count: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(10), nullable=False)  # releasing | accepted | failed
    settlement_reference: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("payment_count > 0", name="ck_release_batches_not_empty"),
    )

    payments: Mapped[List["Payment"]] = relationship("Payment", back_populates="batch")


class PaymentAuditLog(Base):
    """Payment-specific audit log entries. Append-only."""

    __tablename__ = "payment_audit_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    payment_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("payments.id"), nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    payment: Mapped[Optional["Payment"]] = relationship("Payment")
