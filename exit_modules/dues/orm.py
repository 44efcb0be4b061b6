"""
Dues ORM Persistence Models (``exit_modules.dues.orm``).

Invariants enforced:
    - Each row is one line item.  Several rows may share a due_type; the
      settlement sums them per category.
    - amount >= 0 (check constraint); direction is carried by the table,
      never by sign.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from exit_kernel.db.base import TrackedBase


class PayableDueModel(TrackedBase):
    """ORM model for ``PayableDue``."""

    __tablename__ = "exit_payable_dues"

    exit_request_id: Mapped[UUID] = mapped_column(ForeignKey("exit_requests.id"), nullable=False)
    due_type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    calculated_by: Mapped[UUID | None] = mapped_column(nullable=True)

    __table_args__ = (
        Index("idx_exit_payable_due_request", "exit_request_id"),
        CheckConstraint("amount >= 0", name="chk_exit_payable_due_amount"),
    )

    def to_dto(self):
        from exit_modules.dues.models import PayableDue
        return PayableDue(
            id=self.id,
            exit_request_id=self.exit_request_id,
            due_type=self.due_type,
            amount=self.amount,
            description=self.description,
            notes=self.notes,
            calculated_by=self.calculated_by,
        )


class RecoverableDueModel(TrackedBase):
    """ORM model for ``RecoverableDue``."""

    __tablename__ = "exit_recoverable_dues"

    exit_request_id: Mapped[UUID] = mapped_column(ForeignKey("exit_requests.id"), nullable=False)
    due_type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    calculated_by: Mapped[UUID | None] = mapped_column(nullable=True)

    __table_args__ = (
        Index("idx_exit_recoverable_due_request", "exit_request_id"),
        CheckConstraint("amount >= 0", name="chk_exit_recoverable_due_amount"),
    )

    def to_dto(self):
        from exit_modules.dues.models import RecoverableDue
        return RecoverableDue(
            id=self.id,
            exit_request_id=self.exit_request_id,
            due_type=self.due_type,
            amount=self.amount,
            description=self.description,
            notes=self.notes,
            calculated_by=self.calculated_by,
        )
