"""
PayPortal — Security Layer
Password hashing, JWT creation/verification, principal resolution dependency.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from payportal.config import get_settings
from payportal.core.exceptions import AuthenticationError

settings = get_settings()

ROLE_CUSTOMER = "customer"
ROLE_EMPLOYEE = "employee"
ROLES = (ROLE_CUSTOMER, ROLE_EMPLOYEE)

# ─── Password hashing ─────────────────────────────────────────────────────────
# pbkdf2_sha256 avoids the bcrypt 72-byte limit
_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# auto_error=False so a missing header surfaces as AuthenticationError (401)
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Return hash of the given plain-text password."""
    return _pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Return True if the plain password matches the hash."""
    return _pwd_context.verify(plain_password, hashed_password)


# ─── JWT ──────────────────────────────────────────────────────────────────────


def create_access_token(
    subject: str,
    role: str,
    account_number: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    """
    Create a signed JWT access token.

    :param subject: The user id.
    :param role: 'customer' or 'employee'.
    :param account_number: Customer account number, embedded for customers only.
    :param extra: Additional claims to embed.
    :param expires_minutes: Override default expiry from settings. May be negative
        to mint an already-expired token.
    """
    expiry = (
        expires_minutes if expires_minutes is not None else settings.JWT_EXPIRY_MINUTES
    )
    now = datetime.now(tz=timezone.utc)
    expire = now + timedelta(minutes=expiry)

    payload: Dict[str, Any] = {
        "sub": subject,
        "role": role,
        "iat": now,
        "exp": expire,
    }
    if account_number:
        payload["account_number"] = account_number
    if extra:
        payload.update(extra)

    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT access token.
    Raises AuthenticationError on any failure.
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError as exc:
        raise AuthenticationError(f"Invalid or expired token: {exc}") from exc


# ─── Principal ────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Principal:
    """The authenticated caller. Immutable for the duration of a request."""

    id: str
    role: str
    account_number: Optional[str] = None
    raw_claims: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_customer(self) -> bool:
        return self.role == ROLE_CUSTOMER

    @property
    def is_employee(self) -> bool:
        return self.role == ROLE_EMPLOYEE


def resolve_principal(token: Optional[str]) -> Principal:
    """
    Resolve a bearer credential into a Principal.
    Every failure mode raises AuthenticationError before any business logic runs.
    """
    if not token:
        raise AuthenticationError("Missing bearer credential")

    payload = decode_access_token(token)
    user_id: Optional[str] = payload.get("sub")
    role: Optional[str] = payload.get("role")

    if not user_id or not role:
        raise AuthenticationError("Token missing 'sub' or 'role' claim")
    if role not in ROLES:
        raise AuthenticationError(f"Token carries unknown role {role!r}")

    account_number = payload.get("account_number") if role == ROLE_CUSTOMER else None
    return Principal(
        id=user_id, role=role, account_number=account_number, raw_claims=payload
    )


# ─── FastAPI dependency ───────────────────────────────────────────────────────


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    """
    FastAPI dependency: extracts and validates the Bearer JWT,
    returning the calling Principal.
    """
    token = credentials.credentials if credentials else None
    return resolve_principal(token)
