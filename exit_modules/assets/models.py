"""Asset Recovery Domain Models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class RecoveryStatus(str, Enum):
    RETURNED = "returned"
    LOST = "lost"
    DAMAGED = "damaged"
    PENDING = "pending"

    @property
    def is_resolved(self) -> bool:
        return self is not RecoveryStatus.PENDING


@dataclass(frozen=True)
class EmployeeAsset:
    """An asset assigned to an employee."""

    id: UUID
    user_id: UUID
    asset_name: str
    assigned_date: date
    asset_category: str | None = None
    serial_number: str | None = None
    asset_value: Decimal | None = None


@dataclass(frozen=True)
class AssetRecovery:
    """
    Recovery outcome for one employee asset on one exit request.

    ``employee_asset_id`` is a soft reference: the asset row may have been
    removed, in which case settlement reports a data-quality gap.
    """

    id: UUID
    exit_request_id: UUID
    employee_asset_id: UUID
    recovery_status: RecoveryStatus
    cost_recovery: Decimal = Decimal("0")
    condition_on_return: str | None = None
    remarks: str | None = None
    recovered_by: UUID | None = None
