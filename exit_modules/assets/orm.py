"""
Asset Recovery ORM Persistence Models (``exit_modules.assets.orm``).

Invariants enforced:
    - One recovery per (exit_request_id, employee_asset_id).
    - recovery_status constrained to returned, lost, damaged, pending.
    - employee_asset_id carries no foreign key; a missing asset degrades
      the settlement breakdown instead of blocking it.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from exit_kernel.db.base import TrackedBase


class EmployeeAssetModel(TrackedBase):
    """ORM model for ``EmployeeAsset``."""

    __tablename__ = "employee_assets"

    user_id: Mapped[UUID] = mapped_column(nullable=False)
    asset_name: Mapped[str] = mapped_column(String(200), nullable=False)
    asset_category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    serial_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    assigned_date: Mapped[date] = mapped_column(Date, nullable=False)
    asset_value: Mapped[Decimal | None] = mapped_column(nullable=True)

    __table_args__ = (
        Index("idx_employee_asset_user", "user_id"),
    )

    def to_dto(self):
        from exit_modules.assets.models import EmployeeAsset
        return EmployeeAsset(
            id=self.id,
            user_id=self.user_id,
            asset_name=self.asset_name,
            assigned_date=self.assigned_date,
            asset_category=self.asset_category,
            serial_number=self.serial_number,
            asset_value=self.asset_value,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "EmployeeAssetModel":
        return cls(
            id=dto.id,
            user_id=dto.user_id,
            asset_name=dto.asset_name,
            asset_category=dto.asset_category,
            serial_number=dto.serial_number,
            assigned_date=dto.assigned_date,
            asset_value=dto.asset_value,
            created_by_id=created_by_id,
        )


class AssetRecoveryModel(TrackedBase):
    """ORM model for ``AssetRecovery``."""

    __tablename__ = "exit_asset_recoveries"

    exit_request_id: Mapped[UUID] = mapped_column(ForeignKey("exit_requests.id"), nullable=False)
    employee_asset_id: Mapped[UUID] = mapped_column(nullable=False)
    recovery_status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    cost_recovery: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    condition_on_return: Mapped[str | None] = mapped_column(String(200), nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    recovered_by: Mapped[UUID | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("exit_request_id", "employee_asset_id", name="uq_exit_asset_recovery"),
        CheckConstraint(
            "recovery_status IN ('returned', 'lost', 'damaged', 'pending')",
            name="chk_exit_asset_recovery_status",
        ),
        CheckConstraint("cost_recovery >= 0", name="chk_exit_asset_cost_recovery"),
    )

    def to_dto(self):
        from exit_modules.assets.models import AssetRecovery, RecoveryStatus
        return AssetRecovery(
            id=self.id,
            exit_request_id=self.exit_request_id,
            employee_asset_id=self.employee_asset_id,
            recovery_status=RecoveryStatus(self.recovery_status),
            cost_recovery=self.cost_recovery,
            condition_on_return=self.condition_on_return,
            remarks=self.remarks,
            recovered_by=self.recovered_by,
        )
