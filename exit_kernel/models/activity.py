"""
Module: exit_kernel.models.activity
Responsibility: ORM persistence for the per-exit-request activity log.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Activity rows are append-only.  Services never UPDATE them; they are
      removed only when the owning exit request is deleted.
    - (exit_request_id, seq) is unique; seq starts at 1 and increases by 1.
    - hash = H(exit_request_id | seq | action | payload_hash | prev_hash).
      Validated by ActivityLogService.verify_chain().

Audit relevance:
    Every lifecycle transition and every money-affecting write on an exit
    request appends one row.  The hash chain makes retroactive edits to the
    trail detectable.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from exit_kernel.db.base import Base, UUIDString


class ActivityAction(str, Enum):
    """Kinds of activity recorded against an exit request."""

    # Lifecycle
    CREATED = "created"
    UPDATED = "updated"
    MANAGER_APPROVED = "manager_approved"
    HR_APPROVED = "hr_approved"
    CANCELLED = "cancelled"
    CLEARANCE_STARTED = "clearance_started"
    CLEARANCE_COMPLETED = "clearance_completed"
    SETTLEMENT_STARTED = "settlement_started"
    COMPLETED = "completed"

    # Child records
    CLEARANCE_UPDATED = "clearance_updated"
    PAYABLE_DUE_RECORDED = "payable_due_recorded"
    RECOVERABLE_DUE_RECORDED = "recoverable_due_recorded"
    ASSET_RECOVERY_RECORDED = "asset_recovery_recorded"
    GRATUITY_CALCULATED = "gratuity_calculated"
    PF_EXIT_INITIATED = "pf_exit_initiated"

    # Settlement
    SETTLEMENT_CALCULATED = "settlement_calculated"
    SETTLEMENT_APPROVED = "settlement_approved"
    SETTLEMENT_PAID = "settlement_paid"


class ExitActivity(Base):
    """
    One entry in an exit request's hash-chained activity log.

    Contract:
        Rows are append-only and chained per exit request: ``prev_hash`` is
        the ``hash`` of the entry with ``seq - 1`` (None for seq 1).

    Non-goals:
        - This model does NOT compute hashes; ActivityLogService does.
    """

    __tablename__ = "exit_activities"

    __table_args__ = (
        UniqueConstraint("exit_request_id", "seq", name="uq_exit_activity_seq"),
        Index("idx_exit_activity_request", "exit_request_id"),
        Index("idx_exit_activity_action", "action"),
    )

    exit_request_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    seq: Mapped[int] = mapped_column(BigInteger, nullable=False)

    action: Mapped[str] = mapped_column(String(50), nullable=False)

    from_status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    to_status: Mapped[str | None] = mapped_column(String(50), nullable=True)

    performed_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    prev_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    hash: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<ExitActivity {self.action} #{self.seq} on {self.exit_request_id}>"

    @property
    def is_genesis(self) -> bool:
        return self.prev_hash is None
