"""
PayPortal — Settlement Network Interface
The SWIFT release channel is an external collaborator: it receives one batch
per call and is idempotent per batch id. Implementations either return a
SettlementReceipt or raise TimeoutError when the outcome is unknown.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional, Protocol, Sequence


@dataclass(frozen=True)
class SettlementInstruction:
    payment_id: str
    amount: Decimal
    currency: str
    payee_account_number: str
    payee_account_name: str
    payee_bank_name: str
    swift_code: str


@dataclass(frozen=True)
class SettlementReceipt:
    batch_id: str
    accepted: bool
    reference: Optional[str] = None
    error: Optional[str] = None


class SettlementGatewayError(Exception):
    """The settlement channel could not be reached or refused the connection."""


class SettlementGateway(Protocol):
    def release_batch(
        self,
        batch_id: str,
        instructions: Sequence[SettlementInstruction],
        timeout: float,
    ) -> SettlementReceipt: ...


class MockSettlementGateway:
    """
    In-process settlement network for development and tests.

    mode="accept"  — every batch is accepted
    mode="reject"  — every batch is refused with `error`
    mode="timeout" — raises TimeoutError (outcome unknown)
    mode="down"    — raises SettlementGatewayError
    """

    MODES = ("accept", "reject", "timeout", "down")

    def __init__(self, mode: str = "accept", error: str = "Rejected by network") -> None:
        if mode not in self.MODES:
            raise ValueError(f"mode must be one of {self.MODES}")
        self.mode = mode
        self.error = error
        self.calls: int = 0
        self.released: Dict[str, SettlementReceipt] = {}
        self.instructions: Dict[str, Sequence[SettlementInstruction]] = {}
        self._lock = threading.RLock()

    def release_batch(
        self,
        batch_id: str,
        instructions: Sequence[SettlementInstruction],
        timeout: float,
    ) -> SettlementReceipt:
        with self._lock:
            self.calls += 1
            # Idempotent per batch id
            if batch_id in self.released:
                return self.released[batch_id]

            if self.mode == "timeout":
                raise TimeoutError(f"No answer from settlement network within {timeout}s")
            if self.mode == "down":
                raise SettlementGatewayError("Settlement network unreachable")
            if self.mode == "reject":
                return SettlementReceipt(batch_id=batch_id, accepted=False, error=self.error)

            receipt = SettlementReceipt(
                batch_id=batch_id,
                accepted=True,
                reference=f"SWIFT-{datetime.now(timezone.utc):%Y%m%d}-{batch_id[:8].upper()}",
            )
            self.released[batch_id] = receipt
            self.instructions[batch_id] = list(instructions)
            return receipt
