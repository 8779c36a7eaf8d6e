"""
PayPortal — Payment Service
The logical operations exposed to callers. Every operation takes the resolved
Principal explicitly; authorization happens before any business logic.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional

from sqlalchemy.orm import Session

from payportal.core.security import Principal
from payportal.models.payments import Payment
from payportal.services import rbac as ops
from payportal.services.lifecycle import LifecycleEngine
from payportal.services.payment_store import PaymentStore
from payportal.services.release import BatchResult, ReleaseCoordinator
from payportal.services.settlement import MockSettlementGateway, SettlementGateway


class PaymentService:
    def __init__(
        self,
        session: Session,
        gateway: Optional[SettlementGateway] = None,
    ) -> None:
        self.session = session
        self.rbac = ops.RBACService()
        self.store = PaymentStore(session)
        self.engine = LifecycleEngine(session, self.store, self.rbac)
        self.coordinator = ReleaseCoordinator(
            session, gateway or MockSettlementGateway(), self.store, self.rbac
        )

    def create_payment(self, principal: Principal, fields: Mapping[str, Any]) -> Payment:
        return self.engine.create(principal, fields)

    def list_my_payments(self, principal: Principal) -> List[Payment]:
        self.rbac.authorize(principal, ops.LIST_MY_PAYMENTS)
        return self.store.list_by_owner(principal.id)

    def list_payments(
        self, principal: Principal, status: Optional[str] = None
    ) -> List[Payment]:
        self.rbac.authorize(principal, ops.LIST_PAYMENTS)
        return self.store.list_by_status(status)

    def verify_payment(self, principal: Principal, payment_id: str) -> Payment:
        return self.engine.verify(principal, payment_id)

    def reject_payment(
        self, principal: Principal, payment_id: str, reason: str
    ) -> Payment:
        return self.engine.reject(principal, payment_id, reason)

    def submit_batch(
        self, principal: Principal, payment_ids: Iterable[str]
    ) -> BatchResult:
        return self.coordinator.release(payment_ids, principal)

    def confirm_settlement(self, batch_id: str) -> List[Payment]:
        return self.engine.confirm_settlement(batch_id)
