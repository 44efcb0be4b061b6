"""
Asset Ledger Service (``exit_modules.assets.service``).

Responsibility
--------------
Employee asset assignments and their recovery outcome on exit.  Recoveries
are upserted by ``(exit_request_id, employee_asset_id)``; only ``lost`` and
``damaged`` recoveries count toward the settlement's asset deduction.

Failure modes
-------------
* ``ForbiddenError`` -- writes by a caller who is not HR/Admin.
* ``ValidationError`` -- missing asset name/user/assigned date, unknown
  recovery status, negative or non-numeric amounts.
* ``ExitRequestNotFoundError`` -- recovery for an unknown exit request.

The read methods satisfy ``AssetReader``.
"""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from exit_kernel.db.types import ZERO, money
from exit_kernel.domain.caller import CallerContext
from exit_kernel.domain.clock import Clock, SystemClock
from exit_kernel.domain.results import OperationResult
from exit_kernel.exceptions import FieldError, ValidationError
from exit_kernel.logging_config import get_logger
from exit_kernel.models.activity import ActivityAction
from exit_kernel.services.activity_log import ActivityLogService
from exit_modules._service_helpers import amount_errors, require_text, rollback
from exit_modules.assets.models import AssetRecovery, EmployeeAsset, RecoveryStatus
from exit_modules.assets.orm import AssetRecoveryModel, EmployeeAssetModel
from exit_modules.exit_request.queries import load_exit_request
from exit_modules.exit_request.workflows import require_hr_or_admin

logger = get_logger("modules.assets.service")


class AssetLedgerService:
    """Employee assets and their recovery records."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._activity = ActivityLogService(session, self._clock)

    def create_employee_asset(
        self,
        caller: CallerContext,
        user_id: UUID | None,
        asset_name: str | None,
        assigned_date: date | None,
        asset_category: str | None = None,
        serial_number: str | None = None,
        asset_value: Any = None,
    ) -> OperationResult[EmployeeAsset]:
        require_hr_or_admin(caller, "create employee asset")

        errors: list[FieldError] = []
        if user_id is None:
            errors.append(FieldError("user_id", "is required"))
        errors += require_text("asset_name", asset_name)
        if assigned_date is None:
            errors.append(FieldError("assigned_date", "is required"))
        errors += amount_errors("asset_value", asset_value, required=False)
        if errors:
            raise ValidationError(errors)

        dto = EmployeeAsset(
            id=uuid4(),
            user_id=user_id,
            asset_name=asset_name.strip(),
            assigned_date=assigned_date,
            asset_category=asset_category,
            serial_number=serial_number,
            asset_value=money(asset_value) if asset_value is not None else None,
        )
        try:
            self._session.add(EmployeeAssetModel.from_dto(dto, created_by_id=caller.user_id))
            self._session.commit()
        except Exception as exc:
            rollback(self._session, "create employee asset", exc)
            raise

        logger.info(
            "employee_asset_created",
            extra={
                "employee_asset_id": str(dto.id),
                "user_id": str(user_id),
                "asset_name": dto.asset_name,
                "actor_id": str(caller.user_id),
            },
        )
        return OperationResult(dto, f"Asset '{dto.asset_name}' assigned")

    def upsert_asset_recovery(
        self,
        caller: CallerContext,
        exit_request_id: UUID,
        employee_asset_id: UUID,
        recovery_status: RecoveryStatus | str,
        cost_recovery: Any = ZERO,
        condition_on_return: str | None = None,
        remarks: str | None = None,
    ) -> OperationResult[AssetRecovery]:
        require_hr_or_admin(caller, "record asset recovery")

        errors: list[FieldError] = []
        try:
            status = RecoveryStatus(recovery_status)
        except ValueError:
            status = None
            errors.append(FieldError(
                "recovery_status",
                f"must be one of {', '.join(s.value for s in RecoveryStatus)}",
            ))
        errors += amount_errors("cost_recovery", cost_recovery)
        if errors:
            raise ValidationError(errors)
        amount = money(cost_recovery)

        try:
            request = load_exit_request(self._session, exit_request_id, for_update=True)
            row = self._session.execute(
                select(AssetRecoveryModel).where(
                    AssetRecoveryModel.exit_request_id == exit_request_id,
                    AssetRecoveryModel.employee_asset_id == employee_asset_id,
                )
            ).scalar_one_or_none()
            if row is None:
                row = AssetRecoveryModel(
                    exit_request_id=exit_request_id,
                    employee_asset_id=employee_asset_id,
                    created_by_id=caller.user_id,
                )
                self._session.add(row)
            else:
                row.updated_by_id = caller.user_id
            row.recovery_status = status.value
            row.cost_recovery = amount
            row.condition_on_return = condition_on_return
            row.remarks = remarks
            row.recovered_by = caller.user_id
            self._session.flush()

            self._activity.record(
                exit_request_id,
                ActivityAction.ASSET_RECOVERY_RECORDED,
                caller.user_id,
                from_status=request.status,
                to_status=request.status,
                details={
                    "employee_asset_id": employee_asset_id,
                    "recovery_status": status.value,
                    "cost_recovery": amount,
                },
            )
            self._session.commit()
        except Exception as exc:
            rollback(self._session, "record asset recovery", exc)
            raise

        if self.get_employee_asset(employee_asset_id) is None:
            logger.warning(
                "asset_recovery_references_unknown_asset",
                extra={
                    "exit_request_id": str(exit_request_id),
                    "employee_asset_id": str(employee_asset_id),
                },
            )
        logger.info(
            "asset_recovery_recorded",
            extra={
                "exit_request_id": str(exit_request_id),
                "employee_asset_id": str(employee_asset_id),
                "recovery_status": status.value,
                "cost_recovery": str(amount),
            },
        )
        return OperationResult(row.to_dto(), f"Asset recovery marked {status.value}")

    # Reads

    def get_employee_assets(self, user_id: UUID) -> list[EmployeeAsset]:
        rows = self._session.execute(
            select(EmployeeAssetModel)
            .where(EmployeeAssetModel.user_id == user_id)
            .order_by(EmployeeAssetModel.assigned_date, EmployeeAssetModel.asset_name)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def get_employee_asset(self, employee_asset_id: UUID) -> EmployeeAsset | None:
        row = self._session.get(EmployeeAssetModel, employee_asset_id)
        return row.to_dto() if row else None

    def get_asset_recovery(self, exit_request_id: UUID) -> list[AssetRecovery]:
        rows = self._session.execute(
            select(AssetRecoveryModel)
            .where(AssetRecoveryModel.exit_request_id == exit_request_id)
            .order_by(AssetRecoveryModel.created_at, AssetRecoveryModel.employee_asset_id)
        ).scalars().all()
        return [r.to_dto() for r in rows]

