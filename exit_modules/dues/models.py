"""Dues Domain Models.

Payable dues are owed to the employee beyond standard payroll; recoverable
dues are owed to the company and are partitioned by ``due_type`` into
loan, advance and other for settlement.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from exit_engines.settlement import DueLine, RecoverableDueCategory


@dataclass(frozen=True)
class PayableDue:
    id: UUID
    exit_request_id: UUID
    due_type: str
    amount: Decimal
    description: str | None = None
    notes: str | None = None
    calculated_by: UUID | None = None

    def to_line(self) -> DueLine:
        return DueLine(due_type=self.due_type, amount=self.amount, description=self.description)


@dataclass(frozen=True)
class RecoverableDue:
    id: UUID
    exit_request_id: UUID
    due_type: str
    amount: Decimal
    description: str | None = None
    notes: str | None = None
    calculated_by: UUID | None = None

    @property
    def category(self) -> RecoverableDueCategory:
        return RecoverableDueCategory.of(self.due_type)

    def to_line(self) -> DueLine:
        return DueLine(due_type=self.due_type, amount=self.amount, description=self.description)
