"""
Settlement Module Service (``exit_modules.settlement.service``).

Responsibility
--------------
Orchestrates the final settlement for an exit request: guard the caller
and the request's lifecycle state, assemble inputs from the collaborators,
run the pure ``compute_settlement`` engine, and upsert one settlement row
with the canonical-JSON breakdown.  Also drives the settlement's own
``calculated -> approved -> paid`` lifecycle.

Invariants enforced
-------------------
* Only HR/Admin calculate or move a settlement.
* Calculation requires the exit request in hr_approved, clearance_pending,
  clearance_completed or settlement_pending.
* One settlement per exit request.  Recalculation overwrites the figures
  and returns an approved settlement to ``calculated``; a ``paid``
  settlement is never recalculated.
* Status writes are compare-and-swap on the current settlement status.
* Marking ``paid`` stamps ``settlement_completed_at`` on the exit request
  exactly once.
* Each public write method owns the transaction boundary (commit on
  success, rollback on any exception).

Failure modes
-------------
* ``ForbiddenError`` -- caller is not HR/Admin.
* ``ExitRequestNotFoundError`` / ``ProfileNotFoundError`` -- mandatory
  source missing.
* ``InvalidStatusError`` / ``AlreadyInStateError`` -- wrong lifecycle state.
* ``ValidationError`` -- malformed inputs; nothing is persisted.
* ``DependencyError`` -- an optional collaborator failed.

Usage::

    service = SettlementService(session, clock=clock, policy=policy)
    result = service.calculate_settlement(
        caller, exit_request_id,
        SettlementAdjustments(leave_balance=Decimal("12"), notice_period_served_days=10),
    )
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from exit_config import ExitPolicy, get_active_policy
from exit_config.bridges import build_settlement_terms
from exit_engines.settlement import SettlementAdjustments, compute_settlement
from exit_kernel.domain.caller import CallerContext
from exit_kernel.domain.clock import Clock, SystemClock
from exit_kernel.domain.results import OperationResult
from exit_kernel.exceptions import (
    ConcurrentTransitionError,
    InvalidStatusError,
    SettlementNotFoundError,
)
from exit_kernel.logging_config import LogContext, get_logger
from exit_kernel.models.activity import ActivityAction
from exit_kernel.services.activity_log import ActivityLogService
from exit_kernel.utils.hashing import canonicalize_json
from exit_modules._service_helpers import rollback
from exit_modules.assets.service import AssetLedgerService
from exit_modules.dues.service import DuesLedgerService
from exit_modules.exit_request.queries import load_exit_request, stamp_settlement_completed
from exit_modules.exit_request.workflows import SETTLEMENT_CALCULABLE_STATUSES, require_hr_or_admin
from exit_modules.payroll_inputs.protocols import AssetReader, DuesReader, PayrollHistory, ProfileStore
from exit_modules.payroll_inputs.stores import SqlPayrollHistory, SqlProfileStore
from exit_modules.settlement.assembler import SettlementInputAssembler
from exit_modules.settlement.models import Settlement, SettlementStatus
from exit_modules.settlement.orm import SettlementModel
from exit_modules.settlement.workflows import resolve_settlement_transition

logger = get_logger("modules.settlement.service")

_STATUS_ACTIVITY = {
    SettlementStatus.APPROVED: ActivityAction.SETTLEMENT_APPROVED,
    SettlementStatus.PAID: ActivityAction.SETTLEMENT_PAID,
}


class SettlementService:
    """
    Final settlement calculation and payment lifecycle.

    Collaborators default to the SQL-backed stores on the same session.
    Fan-out across ``policy.fanout_workers`` threads is used only when all
    four collaborators are supplied by the caller.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: ExitPolicy | None = None,
        *,
        profiles: ProfileStore | None = None,
        payroll: PayrollHistory | None = None,
        dues: DuesReader | None = None,
        assets: AssetReader | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._policy = policy or get_active_policy()
        self._terms = build_settlement_terms(self._policy)
        self._activity = ActivityLogService(session, self._clock)

        injected = all(c is not None for c in (profiles, payroll, dues, assets))
        workers = self._policy.fanout_workers if injected else 1
        self._assembler = SettlementInputAssembler(
            profiles or SqlProfileStore(session),
            payroll or SqlPayrollHistory(session),
            dues or DuesLedgerService(session, self._clock),
            assets or AssetLedgerService(session, self._clock),
            workers=workers,
        )

    # ------------------------------------------------------------------
    # Calculation
    # ------------------------------------------------------------------

    def calculate_settlement(
        self,
        caller: CallerContext,
        exit_request_id: UUID,
        adjustments: SettlementAdjustments | None = None,
    ) -> OperationResult[Settlement]:
        """
        Compute and store the settlement for an exit request.

        A concurrent first insert for the same exit request surfaces as an
        IntegrityError; the whole operation is retried once and then
        updates the row the other writer created.
        """
        require_hr_or_admin(caller, "calculate settlement")
        adjustments = adjustments or SettlementAdjustments()

        with LogContext.bind(actor_id=caller.user_id, exit_request_id=exit_request_id,
                             operation="calculate_settlement"):
            for attempt in (1, 2):
                try:
                    row, recalculated = self._calculate(caller, exit_request_id, adjustments)
                    self._session.commit()
                    break
                except IntegrityError as exc:
                    rollback(self._session, "calculate settlement", exc)
                    if attempt == 2:
                        raise
                    logger.warning("settlement_insert_race_retry", extra={"attempt": attempt})
                except Exception as exc:
                    rollback(self._session, "calculate settlement", exc)
                    raise

            settlement = row.to_dto()
            logger.info(
                "settlement_calculated",
                extra={
                    "settlement_id": str(settlement.id),
                    "total_payable": str(settlement.total_payable),
                    "total_recoverable": str(settlement.total_recoverable),
                    "net_settlement_amount": str(settlement.net_settlement_amount),
                    "direction": settlement.direction,
                    "recalculated": recalculated,
                },
            )
        message = "Settlement recalculated" if recalculated else "Settlement calculated"
        return OperationResult(settlement, message)

    def _calculate(
        self,
        caller: CallerContext,
        exit_request_id: UUID,
        adjustments: SettlementAdjustments,
    ) -> tuple[SettlementModel, bool]:
        request = load_exit_request(self._session, exit_request_id, for_update=True).to_dto()
        if request.status not in SETTLEMENT_CALCULABLE_STATUSES:
            raise InvalidStatusError(
                "Exit request", request.id, "calculate settlement", request.status.value,
                (s.value for s in SETTLEMENT_CALCULABLE_STATUSES),
            )

        row = self._load_settlement(exit_request_id, for_update=True)
        if row is not None and row.settlement_status == SettlementStatus.PAID.value:
            raise InvalidStatusError(
                "Settlement", row.id, "recalculate", row.settlement_status,
                (SettlementStatus.CALCULATED.value, SettlementStatus.APPROVED.value),
            )

        inputs = self._assembler.assemble(request, adjustments)
        computation = compute_settlement(inputs=inputs, terms=self._terms)
        now = self._clock.now()

        recalculated = row is not None
        previous_status = row.settlement_status if row is not None else None
        if row is None:
            row = SettlementModel(exit_request_id=exit_request_id, created_by_id=caller.user_id)
            self._session.add(row)
        else:
            row.updated_by_id = caller.user_id
        row.total_payable = computation.total_payable
        row.total_recoverable = computation.total_recoverable
        row.net_settlement_amount = computation.net_settlement_amount
        row.settlement_status = SettlementStatus.CALCULATED.value
        row.calculated_by = caller.user_id
        row.calculated_at = now
        row.approved_by = None
        row.approved_at = None
        row.notes = canonicalize_json(computation.breakdown)
        self._session.flush()

        self._activity.record(
            exit_request_id,
            ActivityAction.SETTLEMENT_CALCULATED,
            caller.user_id,
            from_status=request.status.value,
            to_status=request.status.value,
            details={
                "total_payable": computation.total_payable,
                "total_recoverable": computation.total_recoverable,
                "net_settlement_amount": computation.net_settlement_amount,
                "direction": computation.direction,
                "previous_settlement_status": previous_status,
                "policy_checksum": self._terms.policy_checksum,
            },
        )
        return row, recalculated

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def update_settlement_status(
        self,
        caller: CallerContext,
        exit_request_id: UUID,
        status: SettlementStatus | str,
        payment_reference: str | None = None,
    ) -> OperationResult[Settlement]:
        """
        Move a settlement to ``approved`` or ``paid``.

        Raises:
            ForbiddenError: Caller is not HR/Admin.
            SettlementNotFoundError: Nothing calculated yet.
            ValidationError: Unknown status.
            AlreadyInStateError: Settlement is already in ``status``.
            InvalidStatusError: ``status`` is not the next step.
            ConcurrentTransitionError: Another writer moved it first.
        """
        require_hr_or_admin(caller, "update settlement status")

        try:
            request = load_exit_request(self._session, exit_request_id, for_update=True)
            exit_status = request.status
            row = self._load_settlement(exit_request_id, for_update=True)
            if row is None:
                raise SettlementNotFoundError(exit_request_id)

            current = SettlementStatus(row.settlement_status)
            transition = resolve_settlement_transition(row.id, current, status)
            target = SettlementStatus(transition.to_state)
            now = self._clock.now()

            values = {
                "settlement_status": target.value,
                transition.stamp_field: now,
                transition.stamp_field.replace("_at", "_by"): caller.user_id,
                "updated_by_id": caller.user_id,
                "updated_at": now,
            }
            if payment_reference is not None:
                values["payment_reference"] = payment_reference

            result = self._session.execute(
                update(SettlementModel)
                .where(
                    SettlementModel.id == row.id,
                    SettlementModel.settlement_status == current.value,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise ConcurrentTransitionError("Settlement", row.id, transition.action, current.value)
            self._session.refresh(row)

            stamped = False
            if target is SettlementStatus.PAID:
                stamped = stamp_settlement_completed(self._session, exit_request_id, now)

            self._activity.record(
                exit_request_id,
                _STATUS_ACTIVITY[target],
                caller.user_id,
                from_status=exit_status,
                to_status=exit_status,
                details={
                    "settlement_id": row.id,
                    "from_settlement_status": current.value,
                    "to_settlement_status": target.value,
                    "payment_reference": row.payment_reference,
                    "settlement_completed_stamped": stamped,
                },
            )
            self._session.commit()
        except Exception as exc:
            rollback(self._session, "update settlement status", exc)
            raise

        settlement = row.to_dto()
        logger.info(
            "settlement_status_updated",
            extra={
                "exit_request_id": str(exit_request_id),
                "settlement_id": str(settlement.id),
                "from_status": current.value,
                "to_status": target.value,
                "actor_id": str(caller.user_id),
            },
        )
        return OperationResult(settlement, f"Settlement marked {target.value}")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_settlement(self, exit_request_id: UUID) -> Settlement | None:
        row = self._load_settlement(exit_request_id)
        return row.to_dto() if row else None

    def _load_settlement(self, exit_request_id: UUID, *, for_update: bool = False) -> SettlementModel | None:
        stmt = (
            select(SettlementModel)
            .where(SettlementModel.exit_request_id == exit_request_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self._session.execute(stmt).scalar_one_or_none()

