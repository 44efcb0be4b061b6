"""
Statutory Service (``exit_modules.statutory.service``).

Responsibility
--------------
Persists the standalone gratuity calculation for an exit request and
tracks provident-fund exit initiation.  The gratuity figure itself comes
from ``exit_engines.gratuity``; this service only validates caller input,
applies the policy's gratuity terms and upserts the result.

Invariants enforced
-------------------
* Writes are HR/Admin only and require an existing exit request.
* One gratuity row and one PF row per exit request (upsert).
* Each write appends one activity entry.
"""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from exit_config import ExitPolicy, get_active_policy
from exit_config.bridges import build_gratuity_terms
from exit_engines.gratuity import calculate_gratuity
from exit_kernel.db.types import money
from exit_kernel.domain.caller import CallerContext
from exit_kernel.domain.clock import Clock, SystemClock
from exit_kernel.domain.results import OperationResult
from exit_kernel.exceptions import FieldError, ValidationError
from exit_kernel.logging_config import get_logger
from exit_kernel.models.activity import ActivityAction
from exit_kernel.services.activity_log import ActivityLogService
from exit_modules._service_helpers import amount_errors, rollback
from exit_modules.exit_request.queries import load_exit_request
from exit_modules.exit_request.workflows import require_hr_or_admin
from exit_modules.statutory.models import Gratuity, PFManagement, PFWithdrawalStatus
from exit_modules.statutory.orm import GratuityModel, PFManagementModel

logger = get_logger("modules.statutory.service")


class StatutoryService:
    """Gratuity and PF exit records for exit requests."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: ExitPolicy | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._policy = policy or get_active_policy()
        self._activity = ActivityLogService(session, self._clock)

    def calculate_gratuity(
        self,
        caller: CallerContext,
        exit_request_id: UUID,
        last_drawn_salary: Any,
        join_date: date | None,
        last_working_day: date | None,
    ) -> OperationResult[Gratuity]:
        """
        Compute and store gratuity for an exit request.

        Raises:
            ForbiddenError: Caller is not HR/Admin.
            ValidationError: Any of the three inputs is missing or invalid.
            ExitRequestNotFoundError: Unknown exit request.
        """
        require_hr_or_admin(caller, "calculate gratuity")

        errors: list[FieldError] = amount_errors("last_drawn_salary", last_drawn_salary)
        if join_date is None:
            errors.append(FieldError("join_date", "is required"))
        if last_working_day is None:
            errors.append(FieldError("last_working_day", "is required"))
        if errors:
            raise ValidationError(errors)

        try:
            request = load_exit_request(self._session, exit_request_id, for_update=True)
            result = calculate_gratuity(
                last_drawn_salary=money(last_drawn_salary),
                join_date=join_date,
                last_working_day=last_working_day,
                terms=build_gratuity_terms(self._policy),
            )

            row = self._session.execute(
                select(GratuityModel).where(GratuityModel.exit_request_id == exit_request_id)
            ).scalar_one_or_none()
            if row is None:
                row = GratuityModel(exit_request_id=exit_request_id, created_by_id=caller.user_id)
                self._session.add(row)
            else:
                row.updated_by_id = caller.user_id
            row.eligible = result.eligible
            row.years_of_service = result.years_of_service
            row.completed_years = result.completed_years
            row.last_drawn_salary = result.last_drawn_salary
            row.gratuity_amount = result.gratuity_amount
            row.join_date = join_date
            row.last_working_day = last_working_day
            row.calculated_by = caller.user_id
            self._session.flush()

            self._activity.record(
                exit_request_id,
                ActivityAction.GRATUITY_CALCULATED,
                caller.user_id,
                from_status=request.status,
                to_status=request.status,
                details=result.to_dict(),
            )
            self._session.commit()
        except Exception as exc:
            rollback(self._session, "calculate gratuity", exc)
            raise

        logger.info(
            "gratuity_calculated",
            extra={
                "exit_request_id": str(exit_request_id),
                "eligible": result.eligible,
                "years_of_service": result.years_of_service,
                "gratuity_amount": str(result.gratuity_amount),
            },
        )
        message = "Gratuity calculated" if result.eligible else "Not eligible for gratuity"
        return OperationResult(row.to_dto(), message)

    def get_gratuity(self, exit_request_id: UUID) -> Gratuity | None:
        row = self._session.execute(
            select(GratuityModel).where(GratuityModel.exit_request_id == exit_request_id)
        ).scalar_one_or_none()
        return row.to_dto() if row else None

    def initiate_pf_exit(
        self,
        caller: CallerContext,
        exit_request_id: UUID,
        pf_detail_id: UUID | None = None,
        pf_withdrawal_amount: Any = None,
    ) -> OperationResult[PFManagement]:
        """Mark PF exit as initiated.  Re-initiating overwrites the record."""
        require_hr_or_admin(caller, "initiate PF exit")
        errors = amount_errors("pf_withdrawal_amount", pf_withdrawal_amount, required=False)
        if errors:
            raise ValidationError(errors)
        amount = money(pf_withdrawal_amount) if pf_withdrawal_amount is not None else None

        try:
            request = load_exit_request(self._session, exit_request_id, for_update=True)
            row = self._session.execute(
                select(PFManagementModel).where(PFManagementModel.exit_request_id == exit_request_id)
            ).scalar_one_or_none()
            if row is None:
                row = PFManagementModel(exit_request_id=exit_request_id, created_by_id=caller.user_id)
                self._session.add(row)
            else:
                row.updated_by_id = caller.user_id
            row.pf_detail_id = pf_detail_id
            row.pf_exit_initiated = True
            row.pf_exit_initiated_by = caller.user_id
            row.pf_exit_initiated_at = self._clock.now()
            row.pf_withdrawal_amount = amount
            row.pf_withdrawal_status = PFWithdrawalStatus.INITIATED.value
            self._session.flush()

            self._activity.record(
                exit_request_id,
                ActivityAction.PF_EXIT_INITIATED,
                caller.user_id,
                from_status=request.status,
                to_status=request.status,
                details={"pf_detail_id": pf_detail_id, "pf_withdrawal_amount": amount},
            )
            self._session.commit()
        except Exception as exc:
            rollback(self._session, "initiate PF exit", exc)
            raise

        logger.info(
            "pf_exit_initiated",
            extra={"exit_request_id": str(exit_request_id), "actor_id": str(caller.user_id)},
        )
        return OperationResult(row.to_dto(), "PF exit initiated")

    def get_pf_management(self, exit_request_id: UUID) -> PFManagement | None:
        row = self._session.execute(
            select(PFManagementModel).where(PFManagementModel.exit_request_id == exit_request_id)
        ).scalar_one_or_none()
        return row.to_dto() if row else None

