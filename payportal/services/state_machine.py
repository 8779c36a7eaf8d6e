"""
PayPortal — Payment State Machine
Statuses only ever move forward along these edges; terminal states have none.
"""

from __future__ import annotations

from typing import Dict, FrozenSet

from payportal.core.exceptions import InvalidTransitionError
from payportal.models.payments import (
    STATUS_COMPLETED,
    STATUS_PENDING,
    STATUS_REJECTED,
    STATUS_SUBMITTED,
    STATUS_VERIFIED,
)

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    STATUS_PENDING: frozenset({STATUS_VERIFIED, STATUS_REJECTED}),
    STATUS_VERIFIED: frozenset({STATUS_SUBMITTED, STATUS_REJECTED}),
    STATUS_SUBMITTED: frozenset({STATUS_COMPLETED}),
    STATUS_COMPLETED: frozenset(),
    STATUS_REJECTED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def advance_state(current: str, target: str, payment_id: str = "") -> str:
    """Validate and advance the payment state machine."""
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target, payment_id)
    return target
