"""
Exit Request ORM Persistence Models (``exit_modules.exit_request.orm``).

Responsibility:
    SQLAlchemy models persisting ``ExitRequest`` and ``ClearanceItem``
    with ``to_dto()`` / ``from_dto()`` conversion.

Invariants enforced:
    - status is constrained to the lifecycle state values.
    - At most one row per user_id whose status is neither completed nor
      cancelled (partial unique index uq_exit_request_active_user, honoured
      by PostgreSQL and SQLite).
    - One clearance item per (exit_request_id, department).
    - Lifecycle timestamps are written only by the state machine's
      compare-and-swap UPDATE, never through attribute assignment.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from exit_kernel.db.base import TrackedBase
from exit_kernel.db.types import as_utc

_STATUS_VALUES = (
    "'initiated', 'manager_approved', 'hr_approved', 'clearance_pending', "
    "'clearance_completed', 'settlement_pending', 'completed', 'cancelled'"
)
_ACTIVE_PREDICATE = text("status NOT IN ('completed', 'cancelled')")


class ExitRequestModel(TrackedBase):
    """
    ORM model for ``ExitRequest``.

    Contract:
        ``version`` is the compare-and-swap token; every status write
        increments it.
    """

    __tablename__ = "exit_requests"

    user_id: Mapped[UUID] = mapped_column(nullable=False)
    manager_id: Mapped[UUID | None] = mapped_column(nullable=True)
    initiated_by: Mapped[UUID] = mapped_column(nullable=False)
    employee_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)
    exit_type: Mapped[str] = mapped_column(String(50), nullable=False, default="Resignation")
    reason_category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reason_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    resignation_date: Mapped[date] = mapped_column(Date, nullable=False)
    last_working_day: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="initiated")
    version: Mapped[int] = mapped_column(BigInteger, nullable=False, default=1)

    manager_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    hr_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    clearance_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    clearance_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    settlement_started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    settlement_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="chk_exit_request_status"),
        CheckConstraint("last_working_day >= resignation_date", name="chk_exit_request_dates"),
        Index(
            "uq_exit_request_active_user",
            "user_id",
            unique=True,
            postgresql_where=_ACTIVE_PREDICATE,
            sqlite_where=_ACTIVE_PREDICATE,
        ),
        Index("idx_exit_request_status", "status"),
        Index("idx_exit_request_manager", "manager_id"),
        Index("idx_exit_request_department", "department"),
    )

    def to_dto(self):
        from exit_modules.exit_request.models import ExitRequest, ExitStatus, ExitType
        return ExitRequest(
            id=self.id,
            user_id=self.user_id,
            status=ExitStatus(self.status),
            exit_type=ExitType(self.exit_type),
            resignation_date=self.resignation_date,
            last_working_day=self.last_working_day,
            version=self.version,
            initiated_by=self.initiated_by,
            manager_id=self.manager_id,
            employee_code=self.employee_code,
            full_name=self.full_name,
            department=self.department,
            reason_category=self.reason_category,
            reason_details=self.reason_details,
            manager_approved_at=as_utc(self.manager_approved_at),
            hr_approved_at=as_utc(self.hr_approved_at),
            clearance_started_at=as_utc(self.clearance_started_at),
            clearance_completed_at=as_utc(self.clearance_completed_at),
            settlement_started_at=as_utc(self.settlement_started_at),
            settlement_completed_at=as_utc(self.settlement_completed_at),
            completed_at=as_utc(self.completed_at),
            cancelled_at=as_utc(self.cancelled_at),
            created_at=as_utc(self.created_at),
        )

    @classmethod
    def from_draft(cls, draft, user_id: UUID, created_by_id: UUID) -> "ExitRequestModel":
        exit_type = draft.exit_type.value if hasattr(draft.exit_type, "value") else draft.exit_type
        return cls(
            user_id=user_id,
            manager_id=draft.manager_id,
            initiated_by=created_by_id,
            employee_code=draft.employee_code,
            full_name=draft.full_name,
            department=draft.department,
            exit_type=exit_type,
            reason_category=draft.reason_category,
            reason_details=draft.reason_details,
            resignation_date=draft.resignation_date,
            last_working_day=draft.last_working_day,
            status="initiated",
            version=1,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<ExitRequestModel {self.id} user={self.user_id} ({self.status} v{self.version})>"


class ClearanceItemModel(TrackedBase):
    """ORM model for ``ClearanceItem``."""

    __tablename__ = "exit_clearance_items"

    exit_request_id: Mapped[UUID] = mapped_column(ForeignKey("exit_requests.id"), nullable=False)
    department: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    approver_id: Mapped[UUID | None] = mapped_column(nullable=True)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("exit_request_id", "department", name="uq_exit_clearance_department"),
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')", name="chk_exit_clearance_status",
        ),
    )

    def to_dto(self):
        from exit_modules.exit_request.models import ClearanceItem, ClearanceStatus
        return ClearanceItem(
            id=self.id,
            exit_request_id=self.exit_request_id,
            department=self.department,
            status=ClearanceStatus(self.status),
            approver_id=self.approver_id,
            comments=self.comments,
            completed_at=as_utc(self.completed_at),
        )

    def __repr__(self) -> str:
        return f"<ClearanceItemModel {self.department}: {self.status}>"
