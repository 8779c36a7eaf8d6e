"""
PayPortal — API v1: Payments
Responses use the web client's field names: `_id`, camelCase keys, a numeric
amount, list results wrapped as `{"payments": [...]}`, and owner / verifier
summaries in `userId` / `verifiedBy`.
"""

from __future__ import annotations

import hmac
from datetime import datetime
from decimal import Decimal
from functools import lru_cache
from typing import Annotated, Dict, List, Optional, Sequence, Union

from fastapi import APIRouter, Depends, Header, Query, status
from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from sqlalchemy.orm import Session

from payportal.config import get_settings
from payportal.core.exceptions import AuthenticationError
from payportal.core.security import Principal, get_current_principal
from payportal.database import get_db
from payportal.models.payments import Payment
from payportal.models.users import User
from payportal.services.auth import get_users_by_ids
from payportal.services.payment_service import PaymentService
from payportal.services.settlement import MockSettlementGateway, SettlementGateway

router = APIRouter(prefix="/payments", tags=["payments"])


@lru_cache()
def get_settlement_gateway() -> SettlementGateway:
    """Process-wide settlement channel. Override in tests or deployments."""
    return MockSettlementGateway()


def get_payment_service(
    db: Session = Depends(get_db),
    gateway: SettlementGateway = Depends(get_settlement_gateway),
) -> PaymentService:
    return PaymentService(db, gateway)


# ── Request schemas ───────────────────────────────────────────────────────────


class CreatePaymentRequest(BaseModel):
    """Client-supplied owner fields are not part of the schema and are dropped."""

    model_config = ConfigDict(populate_by_name=True)

    amount: Union[str, Decimal]
    currency: str
    payee_account_number: str = Field(..., alias="payeeAccountNumber")
    payee_account_name: str = Field(..., alias="payeeAccountName")
    payee_bank_name: str = Field(..., alias="payeeBankName")
    swift_code: str = Field(..., alias="swiftCode")


class RejectPaymentRequest(BaseModel):
    reason: str


class SubmitBatchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    payment_ids: List[str] = Field(..., alias="paymentIds")


# ── Response schemas ──────────────────────────────────────────────────────────

# Stored as Decimal; the client formats it with Number.toFixed
WireAmount = Annotated[
    Decimal, PlainSerializer(lambda v: float(v), return_type=float, when_used="json")
]


class UserSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    full_name: Optional[str] = Field(default=None, alias="fullName")
    account_number: Optional[str] = Field(default=None, alias="accountNumber")


class PaymentResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    user_id: UserSummary = Field(..., alias="userId")
    amount: WireAmount
    currency: str
    provider: str
    payee_account_number: str = Field(..., alias="payeeAccountNumber")
    payee_account_name: str = Field(..., alias="payeeAccountName")
    payee_bank_name: str = Field(..., alias="payeeBankName")
    swift_code: str = Field(..., alias="swiftCode")
    status: str
    verified_by: Optional[UserSummary] = Field(default=None, alias="verifiedBy")
    verified_at: Optional[datetime] = Field(default=None, alias="verifiedAt")
    batch_id: Optional[str] = Field(default=None, alias="batchId")
    submitted_at: Optional[datetime] = Field(default=None, alias="submittedAt")
    completed_at: Optional[datetime] = Field(default=None, alias="completedAt")
    rejection_reason: Optional[str] = Field(default=None, alias="rejectionReason")
    created_at: datetime = Field(..., alias="createdAt")


class PaymentEnvelope(BaseModel):
    message: str
    payment: PaymentResponse


class PaymentListResponse(BaseModel):
    count: int
    payments: List[PaymentResponse]


class BatchResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    batch_id: str = Field(..., alias="batchId")
    count: int
    payment_ids: List[str] = Field(..., alias="paymentIds")
    submitted_at: datetime = Field(..., alias="submittedAt")
    settlement_reference: Optional[str] = Field(default=None, alias="settlementReference")
    message: str


class SettlementConfirmResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    batch_id: str = Field(..., alias="batchId")
    completed: List[str]


def _summary(user_id: str, users: Dict[str, User]) -> UserSummary:
    user = users.get(user_id)
    return UserSummary(
        id=user_id,
        full_name=user.full_name if user else None,
        account_number=user.account_number if user else None,
    )


def _to_responses(db: Session, payments: Sequence[Payment]) -> List[PaymentResponse]:
    users = get_users_by_ids(
        db, [p.owner_id for p in payments] + [p.verified_by for p in payments]
    )
    return [
        PaymentResponse(
            id=p.id,
            user_id=_summary(p.owner_id, users),
            amount=p.amount,
            currency=p.currency,
            provider=p.provider,
            payee_account_number=p.payee_account_number,
            payee_account_name=p.payee_account_name,
            payee_bank_name=p.payee_bank_name,
            swift_code=p.swift_code,
            status=p.status,
            verified_by=_summary(p.verified_by, users) if p.verified_by else None,
            verified_at=p.verified_at,
            batch_id=p.batch_id,
            submitted_at=p.submitted_at,
            completed_at=p.completed_at,
            rejection_reason=p.rejection_reason,
            created_at=p.created_at,
        )
        for p in payments
    ]


def _envelope(service: PaymentService, payment: Payment, message: str) -> PaymentEnvelope:
    return PaymentEnvelope(
        message=message, payment=_to_responses(service.session, [payment])[0]
    )


def _listing(service: PaymentService, payments: Sequence[Payment]) -> PaymentListResponse:
    return PaymentListResponse(
        count=len(payments), payments=_to_responses(service.session, payments)
    )


# ── Customer endpoints ────────────────────────────────────────────────────────


@router.post("", response_model=PaymentEnvelope, status_code=status.HTTP_201_CREATED)
def create_payment(
    req: CreatePaymentRequest,
    principal: Principal = Depends(get_current_principal),
    service: PaymentService = Depends(get_payment_service),
):
    payment = service.create_payment(principal, req.model_dump())
    return _envelope(service, payment, "Payment submitted successfully")


@router.get("/my-payments", response_model=PaymentListResponse)
def list_my_payments(
    principal: Principal = Depends(get_current_principal),
    service: PaymentService = Depends(get_payment_service),
):
    return _listing(service, service.list_my_payments(principal))


# ── Employee endpoints ────────────────────────────────────────────────────────


@router.get("/all", response_model=PaymentListResponse)
def list_payments(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    principal: Principal = Depends(get_current_principal),
    service: PaymentService = Depends(get_payment_service),
):
    return _listing(service, service.list_payments(principal, status_filter))


@router.put("/{payment_id}/verify", response_model=PaymentEnvelope)
def verify_payment(
    payment_id: str,
    principal: Principal = Depends(get_current_principal),
    service: PaymentService = Depends(get_payment_service),
):
    payment = service.verify_payment(principal, payment_id)
    return _envelope(service, payment, "Payment verified successfully")


@router.put("/{payment_id}/reject", response_model=PaymentEnvelope)
def reject_payment(
    payment_id: str,
    req: RejectPaymentRequest,
    principal: Principal = Depends(get_current_principal),
    service: PaymentService = Depends(get_payment_service),
):
    payment = service.reject_payment(principal, payment_id, req.reason)
    return _envelope(service, payment, "Payment rejected")


@router.post("/submit-swift", response_model=BatchResponse)
def submit_batch(
    req: SubmitBatchRequest,
    principal: Principal = Depends(get_current_principal),
    service: PaymentService = Depends(get_payment_service),
):
    result = service.submit_batch(principal, req.payment_ids)
    return BatchResponse(
        batch_id=result.batch_id,
        count=result.count,
        payment_ids=result.payment_ids,
        submitted_at=result.submitted_at,
        settlement_reference=result.settlement_reference,
        message=f"{result.count} payment(s) submitted to SWIFT",
    )


# ── Settlement network callback ───────────────────────────────────────────────


@router.post("/settlement/{batch_id}/confirm", response_model=SettlementConfirmResponse)
def confirm_settlement(
    batch_id: str,
    x_settlement_secret: Optional[str] = Header(default=None),
    service: PaymentService = Depends(get_payment_service),
):
    expected = get_settings().SETTLEMENT_CALLBACK_SECRET
    if not x_settlement_secret or not hmac.compare_digest(
        x_settlement_secret.encode("utf-8"), expected.encode("utf-8")
    ):
        raise AuthenticationError("Invalid settlement callback credential")

    completed = service.confirm_settlement(batch_id)
    return SettlementConfirmResponse(
        batch_id=batch_id, completed=[p.id for p in completed]
    )
