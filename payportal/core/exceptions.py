"""
PayPortal — Unified Custom Exceptions.
Each exception carries: message, error_code, http_status_code, optional detail dict.
Retryable errors leave no partial state behind, so the caller may safely repeat.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

# ─────────────────────────────────────────────────────────────────────────────
# BASE
# ─────────────────────────────────────────────────────────────────────────────


class PayPortalError(Exception):
    """Root exception for all PayPortal errors."""

    http_status_code: int = 400
    error_code: str = "PAYPORTAL_ERROR"
    retryable: bool = False

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.detail = detail or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "detail": self.detail,
            "retryable": self.retryable,
        }


# ─────────────────────────────────────────────────────────────────────────────
# VALIDATION
# ─────────────────────────────────────────────────────────────────────────────


class ValidationError(PayPortalError):
    http_status_code = 422
    error_code = "VALIDATION_ERROR"


class FieldValidationError(ValidationError):
    """Per-field syntactic failures, surfaced together."""

    subject: str = "Request"

    def __init__(self, errors: List[Dict[str, str]]) -> None:
        self.errors = errors
        super().__init__(
            message=f"{self.subject} validation failed with {len(errors)} error(s)",
            detail={"validation_errors": errors},
        )

    @property
    def fields(self) -> List[str]:
        return [e["field"] for e in self.errors]


class PaymentValidationError(FieldValidationError):
    error_code = "PAYMENT_VALIDATION_ERROR"
    subject = "Payment"


class EmptyBatchError(ValidationError):
    error_code = "EMPTY_BATCH"

    def __init__(self) -> None:
        super().__init__(
            message="Select at least one verified payment to submit",
            detail={},
        )


# ─────────────────────────────────────────────────────────────────────────────
# AUTHENTICATION / AUTHORIZATION
# ─────────────────────────────────────────────────────────────────────────────


class AuthenticationError(PayPortalError):
    http_status_code = 401
    error_code = "AUTHENTICATION_ERROR"

    def __init__(self, reason: str = "Invalid or expired token") -> None:
        super().__init__(message=reason, detail={"reason": reason})


class AuthorizationError(PayPortalError):
    http_status_code = 403
    error_code = "PERMISSION_DENIED"

    def __init__(
        self,
        role: str,
        operation: str = "",
        message: Optional[str] = None,
        detail: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.role = role
        self.operation = operation
        super().__init__(
            message=message
            or f"Role '{role}' is not permitted to perform {operation}",
            detail=detail or {"role": role, "operation": operation},
        )


class SelfApprovalError(AuthorizationError):
    """The owner of a payment attempted a staff action on it."""

    error_code = "SELF_APPROVAL_FORBIDDEN"

    def __init__(self, user_id: str, payment_id: str, operation: str) -> None:
        self.user_id = user_id
        self.payment_id = payment_id
        super().__init__(
            role="owner",
            operation=operation,
            message=f"User '{user_id}' owns payment {payment_id} and cannot {operation} it",
            detail={
                "user_id": user_id,
                "payment_id": payment_id,
                "operation": operation,
            },
        )


# ─────────────────────────────────────────────────────────────────────────────
# LIFECYCLE
# ─────────────────────────────────────────────────────────────────────────────


class PaymentNotFoundError(PayPortalError):
    http_status_code = 404
    error_code = "PAYMENT_NOT_FOUND"

    def __init__(self, payment_id: str) -> None:
        self.payment_id = payment_id
        super().__init__(
            message=f"Payment {payment_id} not found", detail={"payment_id": payment_id}
        )


class InvalidTransitionError(PayPortalError):
    http_status_code = 409
    error_code = "INVALID_TRANSITION"

    def __init__(
        self,
        current: str,
        target: str,
        payment_id: str = "",
        message: Optional[str] = None,
        detail: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.current_state = current
        self.target_state = target
        self.payment_id = payment_id
        super().__init__(
            message=message or f"Cannot transition from '{current}' to '{target}'",
            detail=detail
            or {
                "payment_id": payment_id,
                "current_state": current,
                "target_state": target,
            },
        )


class ConflictError(PayPortalError):
    """Lost a compare-and-set race: the stored status moved underneath us."""

    http_status_code = 409
    error_code = "CONFLICT"
    retryable = True

    def __init__(self, payment_id: str, expected: str, actual: str) -> None:
        self.payment_id = payment_id
        self.expected_state = expected
        self.actual_state = actual
        super().__init__(
            message=(
                f"Payment {payment_id} was modified concurrently: "
                f"expected '{expected}', found '{actual}'"
            ),
            detail={
                "payment_id": payment_id,
                "expected_state": expected,
                "actual_state": actual,
            },
        )


class BatchRejectedError(InvalidTransitionError):
    """A release batch referenced payments that are not all verified."""

    error_code = "BATCH_REJECTED"

    def __init__(self, offending: Dict[str, str]) -> None:
        self.offending = offending
        super().__init__(
            current=",".join(sorted(set(offending.values()))),
            target="submitted",
            message=(
                f"Batch rejected: {len(offending)} payment(s) are not in "
                "'verified' status; no payment was submitted"
            ),
            detail={"offending_payments": offending},
        )


# ─────────────────────────────────────────────────────────────────────────────
# SETTLEMENT NETWORK
# ─────────────────────────────────────────────────────────────────────────────


class ExternalSettlementError(PayPortalError):
    http_status_code = 502
    error_code = "SETTLEMENT_UNAVAILABLE"
    retryable = True

    def __init__(
        self, batch_id: str, reason: str, payment_ids: Iterable[str] = ()
    ) -> None:
        self.batch_id = batch_id
        self.reason = reason
        super().__init__(
            message=f"Settlement network did not accept batch {batch_id}: {reason}",
            detail={
                "batch_id": batch_id,
                "reason": reason,
                "payment_ids": sorted(payment_ids),
            },
        )


class SettlementTimeoutError(ExternalSettlementError):
    http_status_code = 504
    error_code = "SETTLEMENT_TIMEOUT"


class BatchNotFoundError(PayPortalError):
    http_status_code = 404
    error_code = "BATCH_NOT_FOUND"

    def __init__(self, batch_id: str) -> None:
        self.batch_id = batch_id
        super().__init__(
            message=f"Release batch {batch_id} not found",
            detail={"batch_id": batch_id},
        )
