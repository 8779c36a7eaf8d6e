"""
PayPortal — Payment Field Validator
Sanitization and purely syntactic per-field checks. A payment enters the
lifecycle only when every field passes; there is no partial acceptance.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from payportal.config import get_settings
from payportal.core.decimal_utils import (
    fractional_places,
    is_positive,
    monetary,
    parse_amount,
    to_cents,
)
from payportal.core.exceptions import PaymentValidationError

settings = get_settings()

# ─── Patterns ─────────────────────────────────────────────────────────────────

USERNAME_REGEX = re.compile(r"[a-z0-9_]{3,30}")
PASSWORD_REGEX = re.compile(
    r"(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}",
    re.ASCII,
)
ACCOUNT_NUMBER_REGEX = re.compile(r"[0-9]{10,16}")
SWIFT_REGEX = re.compile(r"[A-Z]{6}[A-Z0-9]{2}([A-Z0-9]{3})?")
ACCOUNT_NAME_REGEX = re.compile(r"[A-Za-z '’\-]{2,100}")
BANK_NAME_REGEX = re.compile(r"[A-Za-z0-9 &'\-]{2,100}")
AMOUNT_REGEX = re.compile(r"-?\d+(\.\d+)?", re.ASCII)

# Numeric(18, 2) column ceiling
MAX_AMOUNT = Decimal("9999999999999999.99")

# camelCase names used by the web client map onto the canonical field names
FIELD_ALIASES: Dict[str, str] = {
    "accountNumber": "account_number",
    "payeeAccountNumber": "payee_account_number",
    "payeeAccountName": "payee_account_name",
    "payeeBankName": "payee_bank_name",
    "swiftCode": "swift_code",
}

PAYMENT_FIELDS = (
    "amount",
    "currency",
    "payee_account_number",
    "payee_account_name",
    "payee_bank_name",
    "swift_code",
)


@dataclass(frozen=True)
class CleanPayment:
    """Sanitized, validated and normalized payment fields."""

    amount: Decimal
    currency: str
    payee_account_number: str
    payee_account_name: str
    payee_bank_name: str
    swift_code: str


# ─── Sanitization ─────────────────────────────────────────────────────────────


def sanitize(value: Any) -> Any:
    """Trim whitespace and drop angle brackets. Non-strings pass through untouched."""
    if not isinstance(value, str):
        return value
    return value.strip().replace("<", "").replace(">", "")


# ─── Per-field checks ─────────────────────────────────────────────────────────


def _amount_error(value: Any) -> Optional[str]:
    if value is None or value == "":
        return "Amount is required"
    if isinstance(value, str) and not AMOUNT_REGEX.fullmatch(value):
        return "Invalid amount"
    amount = parse_amount(value)
    if amount is None:
        return "Invalid amount"
    if not is_positive(amount):
        return "Amount must be greater than zero"
    if fractional_places(amount) > 2:
        return "Amount may have at most two decimal places"
    if amount > MAX_AMOUNT:
        return "Amount exceeds the maximum allowed"
    return None


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def validate_field(name: str, value: Any) -> Optional[str]:
    """
    Return a human-readable error for `value`, or None when it is valid.
    Unknown field names are not validated.
    """
    name = FIELD_ALIASES.get(name, name)

    if name == "username":
        if not USERNAME_REGEX.fullmatch(_text(value)):
            return "Username must be 3-30 characters (lowercase letters, numbers, underscore)"
    elif name == "password":
        if not PASSWORD_REGEX.fullmatch(_text(value)):
            return (
                "Password must be at least 8 characters with uppercase, lowercase, "
                "number and special character"
            )
    elif name in ("account_number", "payee_account_number"):
        if not ACCOUNT_NUMBER_REGEX.fullmatch(_text(value)):
            return "Account number must be 10-16 digits"
    elif name == "swift_code":
        if not SWIFT_REGEX.fullmatch(_text(value).upper()):
            return "Invalid SWIFT code format (e.g., AAAABBCCXXX)"
    elif name == "amount":
        return _amount_error(value)
    elif name == "currency":
        if _text(value).upper() not in settings.SUPPORTED_CURRENCIES:
            return f"Currency must be one of {', '.join(settings.SUPPORTED_CURRENCIES)}"
    elif name == "payee_account_name":
        if not ACCOUNT_NAME_REGEX.fullmatch(_text(value)):
            return "Invalid account name format"
    elif name == "payee_bank_name":
        if not BANK_NAME_REGEX.fullmatch(_text(value)):
            return "Invalid bank name format"
    return None


# ─── Whole-payment validation ─────────────────────────────────────────────────


def validate_payment(fields: Mapping[str, Any]) -> CleanPayment:
    """
    Sanitize and validate every payment field.
    Raises PaymentValidationError listing all failing fields; nothing is returned
    unless the whole payment is acceptable.
    """
    canonical = {FIELD_ALIASES.get(k, k): v for k, v in fields.items()}
    cleaned = {name: sanitize(canonical.get(name)) for name in PAYMENT_FIELDS}

    errors: List[Dict[str, str]] = []
    for name in PAYMENT_FIELDS:
        err = validate_field(name, cleaned[name])
        if err:
            errors.append({"field": name, "error": err})
    if errors:
        raise PaymentValidationError(errors)

    return CleanPayment(
        amount=to_cents(monetary(cleaned["amount"])),
        currency=cleaned["currency"].upper(),
        payee_account_number=cleaned["payee_account_number"],
        payee_account_name=cleaned["payee_account_name"],
        payee_bank_name=cleaned["payee_bank_name"],
        swift_code=cleaned["swift_code"].upper(),
    )
