"""
Statutory Domain Models.

Gratuity as persisted for an exit request, and the provident-fund exit
tracking record.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class PFWithdrawalStatus(str, Enum):
    PENDING = "pending"
    INITIATED = "initiated"
    PROCESSED = "processed"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Gratuity:
    id: UUID
    exit_request_id: UUID
    eligible: bool
    years_of_service: int
    completed_years: int
    last_drawn_salary: Decimal
    gratuity_amount: Decimal
    join_date: date | None = None
    last_working_day: date | None = None
    calculated_by: UUID | None = None


@dataclass(frozen=True)
class PFManagement:
    id: UUID
    exit_request_id: UUID
    pf_exit_initiated: bool
    pf_withdrawal_status: PFWithdrawalStatus
    pf_detail_id: UUID | None = None
    pf_exit_initiated_by: UUID | None = None
    pf_exit_initiated_at: datetime | None = None
    pf_withdrawal_amount: Decimal | None = None
