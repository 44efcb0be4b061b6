"""
Dues Ledger Service (``exit_modules.dues.service``).

Responsibility
--------------
Records what the company owes the employee (payable dues) and what the
employee owes the company (recoverable dues) for one exit request.  Each
write without a ``due_id`` adds a new line item, so two loans are two rows
and both are recovered.  A write that names an existing ``due_id`` updates
that line in place.

Invariants enforced
-------------------
* Writes are HR/Admin only.
* ``amount >= 0``; non-numeric and float amounts are rejected.
* A ``due_id`` must belong to the same exit request and ledger.
* Every write appends one activity entry to the exit request's chain.

Failure modes
-------------
* ``ForbiddenError`` -- caller is not HR/Admin.
* ``ValidationError`` -- blank due_type or bad amount.
* ``ExitRequestNotFoundError`` -- unknown exit request.
* ``DueNotFoundError`` -- ``due_id`` not found on this exit request.

The read methods satisfy ``DuesReader`` and are used by settlement input
assembly.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from exit_kernel.db.types import money
from exit_kernel.domain.caller import CallerContext
from exit_kernel.domain.clock import Clock, SystemClock
from exit_kernel.domain.results import OperationResult
from exit_kernel.exceptions import DueNotFoundError, ValidationError
from exit_kernel.logging_config import get_logger
from exit_kernel.models.activity import ActivityAction
from exit_kernel.services.activity_log import ActivityLogService
from exit_modules._service_helpers import amount_errors, require_text, rollback
from exit_modules.dues.models import PayableDue, RecoverableDue
from exit_modules.dues.orm import PayableDueModel, RecoverableDueModel
from exit_modules.exit_request.queries import load_exit_request
from exit_modules.exit_request.workflows import require_hr_or_admin

logger = get_logger("modules.dues.service")


class DuesLedgerService:
    """
    Payable and recoverable dues for exit requests.

    Transaction boundary: write methods commit on success and roll back on
    any exception.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._activity = ActivityLogService(session, self._clock)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_payable_due(
        self,
        caller: CallerContext,
        exit_request_id: UUID,
        due_type: str,
        amount: Any,
        description: str | None = None,
        notes: str | None = None,
        due_id: UUID | None = None,
    ) -> OperationResult[PayableDue]:
        row = self._upsert(
            PayableDueModel, ActivityAction.PAYABLE_DUE_RECORDED, "upsert payable due",
            caller, exit_request_id, due_type, amount, description, notes, due_id,
        )
        return OperationResult(row.to_dto(), f"Payable due '{row.due_type}' recorded")

    def upsert_recoverable_due(
        self,
        caller: CallerContext,
        exit_request_id: UUID,
        due_type: str,
        amount: Any,
        description: str | None = None,
        notes: str | None = None,
        due_id: UUID | None = None,
    ) -> OperationResult[RecoverableDue]:
        row = self._upsert(
            RecoverableDueModel, ActivityAction.RECOVERABLE_DUE_RECORDED, "upsert recoverable due",
            caller, exit_request_id, due_type, amount, description, notes, due_id,
        )
        return OperationResult(row.to_dto(), f"Recoverable due '{row.due_type}' recorded")

    def _upsert(
        self,
        model_cls,
        activity: ActivityAction,
        operation: str,
        caller: CallerContext,
        exit_request_id: UUID,
        due_type: str,
        amount: Any,
        description: str | None,
        notes: str | None,
        due_id: UUID | None,
    ):
        require_hr_or_admin(caller, operation)
        errors = require_text("due_type", due_type) + amount_errors("amount", amount)
        if errors:
            raise ValidationError(errors)
        due_type = due_type.strip()
        value = money(amount)

        try:
            request = load_exit_request(self._session, exit_request_id, for_update=True)
            if due_id is None:
                row = model_cls(
                    exit_request_id=exit_request_id,
                    due_type=due_type,
                    created_by_id=caller.user_id,
                )
                self._session.add(row)
                previous = None
            else:
                row = self._session.execute(
                    select(model_cls).where(
                        model_cls.id == due_id,
                        model_cls.exit_request_id == exit_request_id,
                    )
                ).scalar_one_or_none()
                if row is None:
                    raise DueNotFoundError(due_id)
                previous = row.amount
                row.due_type = due_type
                row.updated_by_id = caller.user_id
            row.amount = value
            row.description = description
            row.notes = notes
            row.calculated_by = caller.user_id
            self._session.flush()

            self._activity.record(
                exit_request_id,
                activity,
                caller.user_id,
                from_status=request.status,
                to_status=request.status,
                details={
                    "due_id": str(row.id),
                    "due_type": due_type,
                    "amount": value,
                    "previous_amount": previous,
                },
            )
            self._session.commit()
        except Exception as exc:
            rollback(self._session, operation, exc)
            raise

        logger.info(
            "exit_due_recorded",
            extra={
                "exit_request_id": str(exit_request_id),
                "ledger": model_cls.__tablename__,
                "due_id": str(row.id),
                "due_type": due_type,
                "amount": str(value),
                "actor_id": str(caller.user_id),
            },
        )
        return row

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_payable_dues(self, exit_request_id: UUID) -> list[PayableDue]:
        rows = self._session.execute(
            select(PayableDueModel)
            .where(PayableDueModel.exit_request_id == exit_request_id)
            .order_by(PayableDueModel.due_type, PayableDueModel.created_at)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def get_recoverable_dues(self, exit_request_id: UUID) -> list[RecoverableDue]:
        rows = self._session.execute(
            select(RecoverableDueModel)
            .where(RecoverableDueModel.exit_request_id == exit_request_id)
            .order_by(RecoverableDueModel.due_type, RecoverableDueModel.created_at)
        ).scalars().all()
        return [r.to_dto() for r in rows]
