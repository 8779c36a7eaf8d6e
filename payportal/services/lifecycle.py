"""
PayPortal — Payment Lifecycle Engine
Creation, per-payment verification, rejection and settlement confirmation
under maker-checker control.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional

from sqlalchemy.orm import Session

from payportal.core.exceptions import (
    BatchNotFoundError,
    FieldValidationError,
    SelfApprovalError,
)
from payportal.core.security import Principal
from payportal.models.payments import (
    BATCH_ACCEPTED,
    STATUS_COMPLETED,
    STATUS_PENDING,
    STATUS_REJECTED,
    STATUS_SUBMITTED,
    STATUS_VERIFIED,
    Payment,
    ReleaseBatch,
)
from payportal.services import rbac as ops
from payportal.services.payment_store import PaymentStore
from payportal.services.state_machine import advance_state
from payportal.services.validator import sanitize, validate_payment

logger = logging.getLogger("payportal.lifecycle")


def ensure_not_owner(
    store: PaymentStore, actor: Principal, payment: Payment, operation: str
) -> None:
    """
    Dual control: the customer who made a payment never acts on it as staff.
    Role separation already makes this unreachable for distinct accounts; the id
    check covers a shared id across roles. The attempt is audited before refusing.
    """
    if payment.owner_id != actor.id:
        return
    store.audit(payment.id, actor.id, "SELF_APPROVAL_ATTEMPT", operation)
    store.session.commit()
    logger.warning(
        "Blocked %s on payment=%s by its owner %s", operation, payment.id, actor.id
    )
    raise SelfApprovalError(actor.id, payment.id, operation)


class LifecycleEngine:
    def __init__(
        self,
        session: Session,
        store: Optional[PaymentStore] = None,
        rbac: Optional[ops.RBACService] = None,
    ) -> None:
        self.session = session
        self.store = store or PaymentStore(session)
        self.rbac = rbac or ops.RBACService()

    # ── create ────────────────────────────────────────────────────────────────

    def create(self, actor: Principal, fields: Mapping[str, Any]) -> Payment:
        """
        Validate and persist a new pending payment owned by `actor`.
        Any owner supplied in `fields` is ignored.
        """
        self.rbac.authorize(actor, ops.CREATE_PAYMENT)
        clean = validate_payment(fields)

        try:
            payment = self.store.create(actor.id, clean)
            self.store.audit(
                payment.id,
                actor.id,
                "PAYMENT_CREATED",
                f"amount={clean.amount} currency={clean.currency} swift={clean.swift_code}",
            )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info(
            "Payment %s created by %s: %s %s",
            payment.id,
            actor.id,
            payment.amount,
            payment.currency,
        )
        return payment

    # ── verify ────────────────────────────────────────────────────────────────

    def verify(self, actor: Principal, payment_id: str) -> Payment:
        """pending -> verified, one payment at a time. There is no bulk verify."""
        self.rbac.authorize(actor, ops.VERIFY_PAYMENT)
        payment = self.store.get(payment_id)
        ensure_not_owner(self.store, actor, payment, "verify")
        advance_state(payment.status, STATUS_VERIFIED, payment_id)

        try:
            payment = self.store.transition(
                payment_id,
                STATUS_PENDING,
                STATUS_VERIFIED,
                actor.id,
                verified_by=actor.id,
                verified_at=datetime.now(timezone.utc),
            )
            self.store.audit(payment_id, actor.id, "PAYMENT_VERIFIED")
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info("Payment %s verified by %s", payment_id, actor.id)
        return payment

    # ── reject ────────────────────────────────────────────────────────────────

    def reject(self, actor: Principal, payment_id: str, reason: str) -> Payment:
        """pending|verified -> rejected with a recorded reason."""
        self.rbac.authorize(actor, ops.REJECT_PAYMENT)
        reason = sanitize(reason) if isinstance(reason, str) else ""
        if not reason:
            raise FieldValidationError(
                [{"field": "reason", "error": "A rejection reason is required"}]
            )

        payment = self.store.get(payment_id)
        ensure_not_owner(self.store, actor, payment, "reject")
        current = payment.status
        advance_state(current, STATUS_REJECTED, payment_id)

        try:
            payment = self.store.transition(
                payment_id,
                current,
                STATUS_REJECTED,
                actor.id,
                rejected_by=actor.id,
                rejected_at=datetime.now(timezone.utc),
                rejection_reason=reason,
            )
            self.store.audit(payment_id, actor.id, "PAYMENT_REJECTED", reason)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info("Payment %s rejected by %s from %s", payment_id, actor.id, current)
        return payment

    # ── settlement confirmation ───────────────────────────────────────────────

    def confirm_settlement(self, batch_id: str) -> List[Payment]:
        """
        submitted -> completed for every payment of an accepted batch, applied as
        one unit. Payments already completed are left as they are, so repeated
        callbacks for the same batch are harmless.
        """
        batch = self.session.get(ReleaseBatch, batch_id)
        if batch is None or batch.status != BATCH_ACCEPTED:
            raise BatchNotFoundError(batch_id)

        now = datetime.now(timezone.utc)
        completed: List[Payment] = []
        try:
            for payment in self.store.list_by_batch(batch_id):
                if payment.status == STATUS_COMPLETED:
                    completed.append(payment)
                    continue
                completed.append(
                    self.store.transition(
                        payment.id,
                        STATUS_SUBMITTED,
                        STATUS_COMPLETED,
                        "settlement",
                        completed_at=now,
                    )
                )
                self.store.audit(payment.id, "settlement", "PAYMENT_COMPLETED", batch_id)
            if batch.confirmed_at is None:
                batch.confirmed_at = now
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info("Batch %s settled: %d payment(s) completed", batch_id, len(completed))
        return completed
