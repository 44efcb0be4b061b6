"""
Exit Request Domain Models.

The root aggregate of employee offboarding: the request itself, its
per-department clearance items, and read-side views (aggregate, progress,
dashboard metrics).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from exit_kernel.services.activity_log import ExitActivityEntry

if TYPE_CHECKING:
    from exit_modules.settlement.models import Settlement


class ExitStatus(str, Enum):
    """Exit request lifecycle states."""

    INITIATED = "initiated"
    MANAGER_APPROVED = "manager_approved"
    HR_APPROVED = "hr_approved"
    CLEARANCE_PENDING = "clearance_pending"
    CLEARANCE_COMPLETED = "clearance_completed"
    SETTLEMENT_PENDING = "settlement_pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def terminal(cls) -> frozenset[ExitStatus]:
        return frozenset({cls.COMPLETED, cls.CANCELLED})

    @property
    def is_active(self) -> bool:
        return self not in ExitStatus.terminal()


class ExitType(str, Enum):
    RESIGNATION = "Resignation"
    TERMINATION = "Termination"
    ABSCONDED = "Absconded"
    CONTRACT_END = "Contract End"


class ClearanceStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalRole(str, Enum):
    """The ``role`` argument of approve_exit_request."""

    MANAGER = "manager"
    HR = "hr"


class PromotionAction(str, Enum):
    """Manual HR/Admin gates between approval and completion."""

    START_CLEARANCE = "start_clearance"
    COMPLETE_CLEARANCE = "complete_clearance"
    BEGIN_SETTLEMENT = "begin_settlement"


@dataclass(frozen=True)
class ExitRequestDraft:
    """Input for create_exit_request.  The exiting employee is the caller."""

    resignation_date: date | None
    last_working_day: date | None
    exit_type: ExitType | str = ExitType.RESIGNATION
    manager_id: UUID | None = None
    reason_category: str | None = None
    reason_details: str | None = None
    employee_code: str | None = None
    full_name: str | None = None
    department: str | None = None


@dataclass(frozen=True)
class ExitRequest:
    id: UUID
    user_id: UUID
    status: ExitStatus
    exit_type: ExitType
    resignation_date: date
    last_working_day: date
    version: int
    initiated_by: UUID
    manager_id: UUID | None = None
    employee_code: str | None = None
    full_name: str | None = None
    department: str | None = None
    reason_category: str | None = None
    reason_details: str | None = None
    manager_approved_at: datetime | None = None
    hr_approved_at: datetime | None = None
    clearance_started_at: datetime | None = None
    clearance_completed_at: datetime | None = None
    settlement_started_at: datetime | None = None
    settlement_completed_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status.is_active


@dataclass(frozen=True)
class ClearanceItem:
    id: UUID
    exit_request_id: UUID
    department: str
    status: ClearanceStatus
    approver_id: UUID | None = None
    comments: str | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class ExitRequestAggregate:
    """Everything a viewer sees for one exit request."""

    request: ExitRequest
    clearance: tuple[ClearanceItem, ...] = ()
    activity: tuple[ExitActivityEntry, ...] = ()
    settlement: Settlement | None = None


@dataclass(frozen=True)
class ExitProgress:
    exit_request_id: UUID
    status: ExitStatus
    percentage: int
    steps: dict[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class ExitMetrics:
    by_status: dict[str, int]
    active: int
    total: int
    pending_settlement_amount: Decimal = Decimal("0")
