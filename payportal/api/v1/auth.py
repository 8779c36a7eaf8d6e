"""
PayPortal — API v1: Auth
Login, current-principal and logout endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from payportal.core.exceptions import AuthenticationError, FieldValidationError
from payportal.core.security import Principal, create_access_token, get_current_principal
from payportal.database import get_db
from payportal.models.users import User
from payportal.services.auth import authenticate
from payportal.services.validator import sanitize, validate_field

router = APIRouter(prefix="/auth", tags=["auth"])


# ── Request / Response schemas ────────────────────────────────────────────────


class LoginRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: str
    account_number: Optional[str] = Field(default=None, alias="accountNumber")
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    username: str
    full_name: Optional[str]
    role: str
    account_number: Optional[str]


class MeResponse(BaseModel):
    user_id: str
    username: str
    full_name: Optional[str]
    role: str
    account_number: Optional[str]
    last_login: Optional[datetime]


# ── Endpoints ─────────────────────────────────────────────────────────────────


@router.post("/login", response_model=LoginResponse)
def login(body: LoginRequest, db: Session = Depends(get_db)):
    """
    Authenticate with username + account number + password.
    Returns a JWT access token the client presents as a Bearer credential.
    """
    username = sanitize(body.username)
    account_number = sanitize(body.account_number) or None

    checks = [("username", username)]
    if account_number is not None:
        checks.append(("account_number", account_number))
    errors = []
    for name, value in checks:
        err = validate_field(name, value)
        if err:
            errors.append({"field": name, "error": err})
    if errors:
        raise FieldValidationError(errors)

    user = authenticate(db, username, body.password, account_number)
    if not user:
        raise AuthenticationError("Invalid username, account number or password.")

    token = create_access_token(user.id, user.role, account_number=user.account_number)

    return LoginResponse(
        access_token=token,
        user_id=user.id,
        username=user.username,
        full_name=user.full_name,
        role=user.role,
        account_number=user.account_number,
    )


@router.get("/me", response_model=MeResponse)
def me(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    """Return the currently authenticated user's profile."""
    user = db.get(User, principal.id)
    if not user or not user.is_active:
        raise AuthenticationError("User not found or inactive.")

    return MeResponse(
        user_id=user.id,
        username=user.username,
        full_name=user.full_name,
        role=user.role,
        account_number=user.account_number,
        last_login=user.last_login,
    )


@router.post("/logout")
def logout(principal: Principal = Depends(get_current_principal)):
    """Tokens are stateless; the client discards its copy."""
    return {"message": "Logged out", "user_id": principal.id}
