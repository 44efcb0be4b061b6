"""
Statutory ORM Persistence Models (``exit_modules.statutory.orm``).

Invariants enforced:
    - At most one gratuity row and one PF row per exit request; both are
      upserted on exit_request_id.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from exit_kernel.db.base import TrackedBase
from exit_kernel.db.types import as_utc


class GratuityModel(TrackedBase):
    """ORM model for ``Gratuity``."""

    __tablename__ = "exit_gratuities"

    exit_request_id: Mapped[UUID] = mapped_column(
        ForeignKey("exit_requests.id"), nullable=False, unique=True,
    )
    eligible: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    years_of_service: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_years: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_drawn_salary: Mapped[Decimal] = mapped_column(nullable=False)
    gratuity_amount: Mapped[Decimal] = mapped_column(nullable=False)
    join_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_working_day: Mapped[date | None] = mapped_column(Date, nullable=True)
    calculated_by: Mapped[UUID | None] = mapped_column(nullable=True)

    def to_dto(self):
        from exit_modules.statutory.models import Gratuity
        return Gratuity(
            id=self.id,
            exit_request_id=self.exit_request_id,
            eligible=self.eligible,
            years_of_service=self.years_of_service,
            completed_years=self.completed_years,
            last_drawn_salary=self.last_drawn_salary,
            gratuity_amount=self.gratuity_amount,
            join_date=self.join_date,
            last_working_day=self.last_working_day,
            calculated_by=self.calculated_by,
        )


class PFManagementModel(TrackedBase):
    """ORM model for ``PFManagement``."""

    __tablename__ = "exit_pf_management"

    exit_request_id: Mapped[UUID] = mapped_column(
        ForeignKey("exit_requests.id"), nullable=False, unique=True,
    )
    pf_detail_id: Mapped[UUID | None] = mapped_column(nullable=True)
    pf_exit_initiated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pf_exit_initiated_by: Mapped[UUID | None] = mapped_column(nullable=True)
    pf_exit_initiated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    pf_withdrawal_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    pf_withdrawal_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    __table_args__ = (
        CheckConstraint(
            "pf_withdrawal_status IN ('pending', 'initiated', 'processed', 'completed')",
            name="chk_exit_pf_withdrawal_status",
        ),
    )

    def to_dto(self):
        from exit_modules.statutory.models import PFManagement, PFWithdrawalStatus
        return PFManagement(
            id=self.id,
            exit_request_id=self.exit_request_id,
            pf_exit_initiated=self.pf_exit_initiated,
            pf_withdrawal_status=PFWithdrawalStatus(self.pf_withdrawal_status),
            pf_detail_id=self.pf_detail_id,
            pf_exit_initiated_by=self.pf_exit_initiated_by,
            pf_exit_initiated_at=as_utc(self.pf_exit_initiated_at),
            pf_withdrawal_amount=self.pf_withdrawal_amount,
        )
