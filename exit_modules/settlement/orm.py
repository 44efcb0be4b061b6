"""
Settlement ORM Persistence Model (``exit_modules.settlement.orm``).

Invariants enforced:
    - One settlement per exit request (unique exit_request_id); recalculation
      overwrites figures and notes in place.
    - ``notes`` holds the breakdown as canonical JSON text, so identical
      computations store byte-identical notes.
"""

from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from exit_kernel.db.base import TrackedBase
from exit_kernel.db.types import as_utc


class SettlementModel(TrackedBase):
    """ORM model for ``Settlement``."""

    __tablename__ = "exit_settlements"

    exit_request_id: Mapped[UUID] = mapped_column(
        ForeignKey("exit_requests.id"), nullable=False, unique=True,
    )
    total_payable: Mapped[Decimal] = mapped_column(nullable=False)
    total_recoverable: Mapped[Decimal] = mapped_column(nullable=False)
    net_settlement_amount: Mapped[Decimal] = mapped_column(nullable=False)
    settlement_status: Mapped[str] = mapped_column(String(20), nullable=False, default="calculated")
    calculated_by: Mapped[UUID] = mapped_column(nullable=False)
    calculated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_by: Mapped[UUID | None] = mapped_column(nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="{}")

    __table_args__ = (
        CheckConstraint(
            "settlement_status IN ('calculated', 'approved', 'paid')",
            name="chk_exit_settlement_status",
        ),
        CheckConstraint("total_payable >= 0", name="chk_exit_settlement_payable"),
        CheckConstraint("total_recoverable >= 0", name="chk_exit_settlement_recoverable"),
        Index("idx_exit_settlement_status", "settlement_status"),
    )

    def to_dto(self):
        from exit_modules.settlement.models import Settlement, SettlementStatus
        return Settlement(
            id=self.id,
            exit_request_id=self.exit_request_id,
            total_payable=self.total_payable,
            total_recoverable=self.total_recoverable,
            net_settlement_amount=self.net_settlement_amount,
            settlement_status=SettlementStatus(self.settlement_status),
            calculated_by=self.calculated_by,
            calculated_at=as_utc(self.calculated_at),
            approved_by=self.approved_by,
            approved_at=as_utc(self.approved_at),
            paid_by=self.paid_by,
            paid_at=as_utc(self.paid_at),
            payment_reference=self.payment_reference,
            breakdown=json.loads(self.notes or "{}"),
        )

    def __repr__(self) -> str:
        return f"<SettlementModel {self.exit_request_id} net={self.net_settlement_amount} ({self.settlement_status})>"
