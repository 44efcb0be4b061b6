"""
Settlement Domain Models.

The persisted outcome of ``exit_engines.settlement.compute_settlement`` for
one exit request, plus its payment status.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID


class SettlementStatus(str, Enum):
    CALCULATED = "calculated"
    APPROVED = "approved"
    PAID = "paid"

    @classmethod
    def awaiting_payment(cls) -> frozenset[SettlementStatus]:
        return frozenset({cls.CALCULATED, cls.APPROVED})


@dataclass(frozen=True)
class Settlement:
    """
    A calculated settlement.

    ``breakdown`` is the engine's itemized breakdown as stored (amounts
    appear as fixed-point strings).
    """

    id: UUID
    exit_request_id: UUID
    total_payable: Decimal
    total_recoverable: Decimal
    net_settlement_amount: Decimal
    settlement_status: SettlementStatus
    calculated_by: UUID
    calculated_at: datetime | None = None
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    paid_by: UUID | None = None
    paid_at: datetime | None = None
    payment_reference: str | None = None
    breakdown: dict[str, Any] = field(default_factory=dict)

    @property
    def direction(self) -> str | None:
        return self.breakdown.get("direction")
