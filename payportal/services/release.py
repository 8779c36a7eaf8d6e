"""
PayPortal — Release Coordinator
Hands a set of verified payments to the settlement network as one batch.
All-or-nothing: either every payment in the batch becomes submitted, or none
of them changes status.

The payments are claimed (verified -> submitted, flushed, uncommitted) before
the settlement network is called. A concurrent release of any of them blocks
on the claimed rows and then loses its compare-and-set, so no payment is ever
handed to the network twice. The claim is committed only once the network has
accepted the batch and rolled back otherwise.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from payportal.config import get_settings
from payportal.core.exceptions import (
    BatchRejectedError,
    EmptyBatchError,
    ExternalSettlementError,
    SettlementTimeoutError,
)
from payportal.core.security import Principal
from payportal.models.payments import (
    BATCH_ACCEPTED,
    BATCH_FAILED,
    BATCH_RELEASING,
    STATUS_SUBMITTED,
    STATUS_VERIFIED,
    ReleaseBatch,
)
from payportal.services import rbac as ops
from payportal.services.lifecycle import ensure_not_owner
from payportal.services.payment_store import PaymentStore
from payportal.services.settlement import (
    SettlementGateway,
    SettlementGatewayError,
    SettlementInstruction,
    SettlementReceipt,
)

logger = logging.getLogger("payportal.release")


@dataclass
class BatchResult:
    batch_id: str
    count: int
    payment_ids: List[str]
    submitted_at: datetime
    settlement_reference: Optional[str] = None


class ReleaseCoordinator:
    def __init__(
        self,
        session: Session,
        gateway: SettlementGateway,
        store: Optional[PaymentStore] = None,
        rbac: Optional[ops.RBACService] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.session = session
        self.gateway = gateway
        self.store = store or PaymentStore(session)
        self.rbac = rbac or ops.RBACService()
        self.timeout = timeout or get_settings().SETTLEMENT_TIMEOUT_SECONDS

    def release(self, payment_ids: Iterable[str], actor: Principal) -> BatchResult:
        self.rbac.authorize(actor, ops.SUBMIT_BATCH)

        # A selection is a set; keep first-seen order for the response
        ids = list(dict.fromkeys(pid for pid in payment_ids if pid))
        if not ids:
            raise EmptyBatchError()

        payments = self.store.get_many(ids)
        offending = {
            pid: (payments[pid].status if pid in payments else "not_found")
            for pid in ids
            if pid not in payments or payments[pid].status != STATUS_VERIFIED
        }
        if offending:
            logger.info("Batch refused by %s: %s", actor.id, offending)
            raise BatchRejectedError(offending)

        for pid in ids:
            ensure_not_owner(self.store, actor, payments[pid], "release")

        instructions = [
            SettlementInstruction(
                payment_id=p.id,
                amount=p.amount,
                currency=p.currency,
                payee_account_number=p.payee_account_number,
                payee_account_name=p.payee_account_name,
                payee_bank_name=p.payee_bank_name,
                swift_code=p.swift_code,
            )
            for p in (payments[pid] for pid in ids)
        ]
        # End the read transaction so the claim below starts with a write
        self.session.commit()

        batch_id = str(uuid.uuid4())
        submitted_at = datetime.now(timezone.utc)
        batch = self._claim(batch_id, actor, ids, submitted_at)

        receipt = self._send(batch_id, actor, ids, instructions)

        try:
            batch.status = BATCH_ACCEPTED
            batch.settlement_reference = receipt.reference
            self.session.commit()
        except Exception:
            self.session.rollback()
            logger.error(
                "Batch %s accepted by settlement (ref=%s) but could not be committed",
                batch_id,
                receipt.reference,
            )
            raise

        logger.info(
            "Batch %s released by %s: %d payment(s), ref=%s",
            batch_id,
            actor.id,
            len(ids),
            receipt.reference,
        )
        return BatchResult(
            batch_id=batch_id,
            count=len(ids),
            payment_ids=ids,
            submitted_at=submitted_at,
            settlement_reference=receipt.reference,
        )

    # ── steps ─────────────────────────────────────────────────────────────────

    def _claim(
        self, batch_id: str, actor: Principal, ids: List[str], submitted_at: datetime
    ) -> ReleaseBatch:
        """Move every payment to submitted inside an open transaction."""
        try:
            batch = ReleaseBatch(
                id=batch_id,
                released_by=actor.id,
                payment_count=len(ids),
                status=BATCH_RELEASING,
                created_at=submitted_at,
            )
            self.session.add(batch)
            self.session.flush()
            for pid in ids:
                self.store.transition(
                    pid,
                    STATUS_VERIFIED,
                    STATUS_SUBMITTED,
                    actor.id,
                    submitted_at=submitted_at,
                    batch_id=batch_id,
                )
                self.store.audit(pid, actor.id, "PAYMENT_SUBMITTED", f"batch={batch_id}")
            self.session.flush()
        except Exception:
            self.session.rollback()
            logger.info("Batch %s by %s lost its claim; nothing was sent", batch_id, actor.id)
            raise
        return batch

    def _send(
        self,
        batch_id: str,
        actor: Principal,
        ids: List[str],
        instructions: List[SettlementInstruction],
    ) -> SettlementReceipt:
        """Call the network once. Any outcome but acceptance releases the claim."""
        try:
            receipt = self.gateway.release_batch(batch_id, instructions, self.timeout)
        except TimeoutError as exc:
            self._record_failure(batch_id, actor, ids, f"timeout: {exc}")
            raise SettlementTimeoutError(batch_id, str(exc), ids) from exc
        except SettlementGatewayError as exc:
            self._record_failure(batch_id, actor, ids, str(exc))
            raise ExternalSettlementError(batch_id, str(exc), ids) from exc
        except Exception:
            self.session.rollback()
            raise

        if not receipt.accepted:
            reason = receipt.error or "batch refused"
            self._record_failure(batch_id, actor, ids, reason)
            raise ExternalSettlementError(batch_id, reason, ids)
        return receipt

    def _record_failure(
        self, batch_id: str, actor: Principal, ids: List[str], reason: str
    ) -> None:
        self.session.rollback()
        logger.warning("Batch %s not accepted by settlement: %s", batch_id, reason)
        self.session.add(
            ReleaseBatch(
                id=batch_id,
                released_by=actor.id,
                payment_count=len(ids),
                status=BATCH_FAILED,
                error=reason,
            )
        )
        self.session.commit()
