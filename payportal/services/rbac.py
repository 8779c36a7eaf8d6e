"""
PayPortal — Operation Authorization
Exact-match role allow-list per operation. There is no role hierarchy: a
customer can never perform an employee operation and vice versa.
"""

from __future__ import annotations

import logging
from typing import Dict, FrozenSet

from payportal.core.exceptions import AuthorizationError
from payportal.core.security import ROLE_CUSTOMER, ROLE_EMPLOYEE, Principal

logger = logging.getLogger("payportal.rbac")

# ─── Operations ───────────────────────────────────────────────────────────────

CREATE_PAYMENT = "create_payment"
LIST_MY_PAYMENTS = "list_my_payments"
LIST_PAYMENTS = "list_payments"
VERIFY_PAYMENT = "verify_payment"
REJECT_PAYMENT = "reject_payment"
SUBMIT_BATCH = "submit_batch"

# ─── Permission matrix ────────────────────────────────────────────────────────

OPERATION_ROLES: Dict[str, FrozenSet[str]] = {
    CREATE_PAYMENT: frozenset({ROLE_CUSTOMER}),
    LIST_MY_PAYMENTS: frozenset({ROLE_CUSTOMER}),
    LIST_PAYMENTS: frozenset({ROLE_EMPLOYEE}),
    VERIFY_PAYMENT: frozenset({ROLE_EMPLOYEE}),
    REJECT_PAYMENT: frozenset({ROLE_EMPLOYEE}),
    SUBMIT_BATCH: frozenset({ROLE_EMPLOYEE}),
}


class RBACService:
    """Checks whether a principal's role may perform an operation."""

    def __init__(self, matrix: Dict[str, FrozenSet[str]] | None = None) -> None:
        self.matrix = matrix if matrix is not None else OPERATION_ROLES

    def authorize(self, principal: Principal, operation: str) -> bool:
        """
        Return True if the principal's role is on the operation's allow-list.
        Raise AuthorizationError otherwise. Unknown operations are denied.
        """
        allowed = self.matrix.get(operation, frozenset())
        if principal.role not in allowed:
            logger.warning(
                "Denied %s for principal=%s role=%s",
                operation,
                principal.id,
                principal.role,
            )
            raise AuthorizationError(principal.role, operation)
        return True

    def is_authorized(self, principal: Principal, operation: str) -> bool:
        """Non-raising version of authorize(). Returns True/False."""
        try:
            return self.authorize(principal, operation)
        except AuthorizationError:
            return False
