"""
PayPortal — Payment Store
Canonical record of every payment. Status changes go through a single
compare-and-set UPDATE so concurrent actors on the same payment have exactly
one winner, while different payments never contend.

The store flushes but never commits; the caller owns the unit of work.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from payportal.config import get_settings
from payportal.core.exceptions import (
    ConflictError,
    FieldValidationError,
    PaymentNotFoundError,
)
from payportal.models.payments import (
    PAYMENT_STATUSES,
    STATUS_PENDING,
    Payment,
    PaymentAuditLog,
)
from payportal.services.state_machine import advance_state
from payportal.services.validator import CleanPayment

logger = logging.getLogger("payportal.store")

# Columns a transition may set besides status; payment terms are never among them
TRANSITION_COLUMNS = frozenset(
    {
        "verified_by",
        "verified_at",
        "batch_id",
        "submitted_at",
        "completed_at",
        "rejected_by",
        "rejected_at",
        "rejection_reason",
    }
)


class PaymentStore:
    def __init__(self, session: Session) -> None:
        self.session = session

    # ── Creation ──────────────────────────────────────────────────────────────

    def create(self, owner_id: str, fields: CleanPayment) -> Payment:
        """Persist an already-validated payment as pending."""
        payment = Payment(
            owner_id=owner_id,
            amount=fields.amount,
            currency=fields.currency,
            provider=get_settings().PAYMENT_PROVIDER,
            payee_account_number=fields.payee_account_number,
            payee_account_name=fields.payee_account_name,
            payee_bank_name=fields.payee_bank_name,
            swift_code=fields.swift_code,
            status=STATUS_PENDING,
            created_at=datetime.now(timezone.utc),
        )
        self.session.add(payment)
        self.session.flush()
        return payment

    # ── Reads ─────────────────────────────────────────────────────────────────

    def get(self, payment_id: str) -> Payment:
        payment = self.session.get(Payment, payment_id)
        if payment is None:
            raise PaymentNotFoundError(payment_id)
        return payment

    def get_many(self, payment_ids: Iterable[str]) -> Dict[str, Payment]:
        ids = list(payment_ids)
        if not ids:
            return {}
        rows = self.session.execute(
            select(Payment)
            .where(Payment.id.in_(ids))
            .execution_options(populate_existing=True)
        ).scalars()
        return {p.id: p for p in rows}

    def list_by_owner(self, owner_id: str) -> List[Payment]:
        """All payments created by one customer, newest first."""
        stmt = (
            select(Payment)
            .where(Payment.owner_id == owner_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
        )
        return list(self.session.execute(stmt).scalars())

    def list_by_status(self, status: Optional[str] = None) -> List[Payment]:
        """Payments in `status` (or all when empty), newest first."""
        stmt = select(Payment)
        if status:
            if status not in PAYMENT_STATUSES:
                raise FieldValidationError(
                    [{"field": "status", "error": f"Unknown status {status!r}"}]
                )
            stmt = stmt.where(Payment.status == status)
        stmt = stmt.order_by(Payment.created_at.desc(), Payment.id.desc())
        return list(self.session.execute(stmt).scalars())

    def list_by_batch(self, batch_id: str) -> List[Payment]:
        stmt = select(Payment).where(Payment.batch_id == batch_id).order_by(Payment.id)
        return list(self.session.execute(stmt).scalars())

    def current_status(self, payment_id: str) -> Optional[str]:
        return self.session.execute(
            select(Payment.status).where(Payment.id == payment_id)
        ).scalar_one_or_none()

    # ── Compare-and-set transition ────────────────────────────────────────────

    def transition(
        self,
        payment_id: str,
        from_status: str,
        to_status: str,
        actor_id: str,
        **changes: Any,
    ) -> Payment:
        """
        Move a payment from `from_status` to `to_status` iff it is currently in
        `from_status`. A lost race raises ConflictError and writes nothing.
        """
        advance_state(from_status, to_status, payment_id)

        unknown = set(changes) - TRANSITION_COLUMNS
        if unknown:
            raise ValueError(f"Columns {sorted(unknown)} cannot change on transition")

        result = self.session.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status == from_status)
            .values(status=to_status, updated_at=datetime.now(timezone.utc), **changes)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            actual = self.current_status(payment_id)
            if actual is None:
                raise PaymentNotFoundError(payment_id)
            logger.info(
                "CAS lost on payment=%s actor=%s expected=%s actual=%s",
                payment_id,
                actor_id,
                from_status,
                actual,
            )
            raise ConflictError(payment_id, from_status, actual)

        return self.session.execute(
            select(Payment)
            .where(Payment.id == payment_id)
            .execution_options(populate_existing=True)
        ).scalar_one()

    # ── Audit ─────────────────────────────────────────────────────────────────

    def audit(
        self,
        payment_id: Optional[str],
        user_id: str,
        action: str,
        details: str = "",
    ) -> None:
        self.session.add(
            PaymentAuditLog(
                payment_id=payment_id,
                user_id=user_id,
                action=action,
                details=details or None,
            )
        )

    def audit_trail(self, payment_id: str) -> List[PaymentAuditLog]:
        stmt = (
            select(PaymentAuditLog)
            .where(PaymentAuditLog.payment_id == payment_id)
            .order_by(PaymentAuditLog.created_at)
        )
        return list(self.session.execute(stmt).scalars())
