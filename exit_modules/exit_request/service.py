"""
Exit Request Module Service (``exit_modules.exit_request.service``).

Responsibility
--------------
The caller-facing surface of the exit lifecycle: create, read, list, edit,
approve, cancel, promote, complete and delete exit requests, upsert
department clearance, and report progress and dashboard metrics.

Architecture position
---------------------
**Modules layer** -- guards come from ``workflows.py``; every status write
goes through ``_apply_transition``, which performs a single
compare-and-swap UPDATE and appends the activity entry in the same
transaction.

Invariants enforced
-------------------
* At most one non-terminal exit request per user (service check plus the
  partial unique index ``uq_exit_request_active_user``).
* Status, lifecycle stamp and version change together in one
  ``UPDATE ... WHERE id AND status AND version``; zero rows updated means
  another writer won.
* Guards are evaluated before any write; a rejected call changes nothing.
* Each public write method owns the transaction boundary (commit on
  success, rollback on any exception).

Failure modes
-------------
* ``ValidationError`` / ``ActiveExitRequestExistsError`` -- bad input or a
  live request already exists.
* ``ForbiddenError`` -- guard rejected the caller.
* ``InvalidStatusError`` / ``AlreadyInStateError`` /
  ``ConcurrentTransitionError`` -- lifecycle conflicts.
* ``ExitRequestNotFoundError`` -- unknown id.

Audit relevance
---------------
Every write appends to the exit request's hash-chained activity log and
emits a structured log event.

Usage::

    service = ExitRequestService(session, clock=clock)
    created = service.create_exit_request(
        CallerContext.employee(user_id),
        ExitRequestDraft(resignation_date=date(2024, 1, 1),
                         last_working_day=date(2024, 1, 31),
                         manager_id=manager_id),
    )
    service.approve_exit_request(CallerContext.manager(manager_id),
                                 created.value.id, role="manager")
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
from typing import Any
from uuid import UUID

from sqlalchemy import delete, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from exit_kernel.db.types import ZERO, round_money
from exit_kernel.domain.caller import CallerContext
from exit_kernel.domain.clock import Clock, SystemClock
from exit_kernel.domain.results import OperationResult
from exit_kernel.exceptions import (
    ActiveExitRequestExistsError,
    ConcurrentTransitionError,
    FieldError,
    ForbiddenError,
    ValidationError,
)
from exit_kernel.logging_config import LogContext, get_logger
from exit_kernel.models.activity import ActivityAction
from exit_kernel.services.activity_log import ActivityLogService
from exit_modules._service_helpers import require_text, rollback
from exit_modules.assets.models import RecoveryStatus
from exit_modules.assets.orm import AssetRecoveryModel
from exit_modules.dues.orm import PayableDueModel, RecoverableDueModel
from exit_modules.exit_request.models import (
    ApprovalRole,
    ClearanceItem,
    ClearanceStatus,
    ExitMetrics,
    ExitProgress,
    ExitRequest,
    ExitRequestAggregate,
    ExitRequestDraft,
    ExitStatus,
    ExitType,
    PromotionAction,
)
from exit_modules.exit_request.orm import ClearanceItemModel, ExitRequestModel
from exit_modules.exit_request.queries import load_exit_request
from exit_modules.exit_request.workflows import (
    APPROVE_HR,
    APPROVE_MANAGER,
    CANCEL,
    COMPLETE,
    TRANSITION_ACTIVITY,
    authorize_edit,
    authorize_transition,
    can_view,
    require_hr_or_admin,
)
from exit_modules.settlement.models import SettlementStatus
from exit_modules.settlement.orm import SettlementModel
from exit_modules.statutory.orm import GratuityModel, PFManagementModel

logger = get_logger("modules.exit_request.service")

# Fields an update may touch.  manager_id is HR/Admin only.
EDITABLE_FIELDS = frozenset({
    "resignation_date",
    "last_working_day",
    "exit_type",
    "reason_category",
    "reason_details",
    "employee_code",
    "full_name",
    "department",
    "manager_id",
})
HR_ONLY_FIELDS = frozenset({"manager_id"})

# Child tables removed with the exit request, leaf-first
_CHILD_MODELS = (
    ClearanceItemModel,
    PayableDueModel,
    RecoverableDueModel,
    AssetRecoveryModel,
    GratuityModel,
    PFManagementModel,
    SettlementModel,
)

PROGRESS_WEIGHTS: dict[str, int] = {
    "left_initiated": 10,
    "manager_approved": 10,
    "hr_approved": 10,
    "clearance_approved": 20,
    "assets_resolved": 15,
    "settlement_calculated": 15,
    "settlement_approved": 10,
    "completed": 10,
}

_APPROVAL_ACTIONS = {
    ApprovalRole.MANAGER: APPROVE_MANAGER,
    ApprovalRole.HR: APPROVE_HR,
}

_TRANSITION_MESSAGES = {
    APPROVE_MANAGER: "Exit request approved by manager",
    APPROVE_HR: "Exit request approved by HR",
    CANCEL: "Exit request cancelled",
    PromotionAction.START_CLEARANCE.value: "Clearance started",
    PromotionAction.COMPLETE_CLEARANCE.value: "Clearance completed",
    PromotionAction.BEGIN_SETTLEMENT.value: "Settlement started",
    COMPLETE: "Exit completed",
}


def _parse_exit_type(value: Any, errors: list[FieldError]) -> ExitType | None:
    try:
        return ExitType(value)
    except ValueError:
        errors.append(FieldError(
            "exit_type", f"must be one of {', '.join(t.value for t in ExitType)}",
        ))
        return None


class ExitRequestService:
    """
    Orchestrates the exit request lifecycle.

    Contract
    --------
    * Write methods return ``OperationResult`` carrying the updated DTO.
    * Reads return DTOs or raise ``ExitRequestNotFoundError``.

    Non-goals
    ---------
    * Does NOT advance status automatically when clearance or settlement
      children change; promotion is always an explicit call.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()
        self._activity = ActivityLogService(session, self._clock)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_exit_request(
        self,
        caller: CallerContext,
        draft: ExitRequestDraft,
    ) -> OperationResult[ExitRequest]:
        """
        Open an exit request for the caller.

        Raises:
            ValidationError: Missing dates, last working day before the
                resignation date, or unknown exit type.
            ActiveExitRequestExistsError: Caller already has a live request.
        """
        errors: list[FieldError] = []
        if draft.resignation_date is None:
            errors.append(FieldError("resignation_date", "is required"))
        if draft.last_working_day is None:
            errors.append(FieldError("last_working_day", "is required"))
        if (
            draft.resignation_date is not None
            and draft.last_working_day is not None
            and draft.last_working_day < draft.resignation_date
        ):
            errors.append(FieldError("last_working_day", "must not be before resignation_date"))
        exit_type = _parse_exit_type(draft.exit_type, errors)
        if errors:
            raise ValidationError(errors)

        user_id = caller.user_id
        with LogContext.bind(actor_id=user_id, operation="create_exit_request"):
            try:
                existing = self._session.execute(
                    select(ExitRequestModel.id).where(
                        ExitRequestModel.user_id == user_id,
                        ExitRequestModel.status.not_in([s.value for s in ExitStatus.terminal()]),
                    )
                ).scalars().first()
                if existing is not None:
                    raise ActiveExitRequestExistsError(user_id, existing)

                model = ExitRequestModel.from_draft(draft, user_id=user_id, created_by_id=user_id)
                model.exit_type = exit_type.value
                self._session.add(model)
                try:
                    self._session.flush()
                except IntegrityError as exc:
                    raise ActiveExitRequestExistsError(user_id) from exc

                self._activity.record(
                    model.id,
                    ActivityAction.CREATED,
                    user_id,
                    from_status=None,
                    to_status=ExitStatus.INITIATED.value,
                    details={
                        "exit_type": exit_type.value,
                        "resignation_date": draft.resignation_date,
                        "last_working_day": draft.last_working_day,
                        "manager_id": draft.manager_id,
                    },
                )
                self._session.commit()
            except Exception as exc:
                rollback(self._session, "create exit request", exc)
                raise

            request = model.to_dto()
            logger.info(
                "exit_request_created",
                extra={
                    "exit_request_id": str(request.id),
                    "user_id": str(user_id),
                    "exit_type": request.exit_type.value,
                    "last_working_day": request.last_working_day,
                },
            )
        return OperationResult(request, "Exit request created")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_exit_request(self, caller: CallerContext, exit_request_id: UUID) -> ExitRequestAggregate:
        """The request with its clearance items, activity trail and settlement."""
        request = self._viewable(caller, exit_request_id)

        clearance = self._session.execute(
            select(ClearanceItemModel)
            .where(ClearanceItemModel.exit_request_id == exit_request_id)
            .order_by(ClearanceItemModel.department)
        ).scalars().all()
        settlement = self._session.execute(
            select(SettlementModel).where(SettlementModel.exit_request_id == exit_request_id)
        ).scalar_one_or_none()

        return ExitRequestAggregate(
            request=request,
            clearance=tuple(c.to_dto() for c in clearance),
            activity=self._activity.get_trail(exit_request_id),
            settlement=settlement.to_dto() if settlement else None,
        )

    def list_exit_requests(
        self,
        caller: CallerContext,
        status: ExitStatus | str | None = None,
        department: str | None = None,
        manager_id: UUID | None = None,
    ) -> list[ExitRequest]:
        """
        Exit requests visible to the caller, newest first.

        HR/Admin see every request; everyone else sees their own and those
        they manage.
        """
        stmt = select(ExitRequestModel)
        if not caller.is_hr_or_admin:
            stmt = stmt.where(or_(
                ExitRequestModel.user_id == caller.user_id,
                ExitRequestModel.manager_id == caller.user_id,
            ))
        if status is not None:
            try:
                status = ExitStatus(status)
            except ValueError:
                raise ValidationError.single(
                    "status", f"must be one of {', '.join(s.value for s in ExitStatus)}",
                ) from None
            stmt = stmt.where(ExitRequestModel.status == status.value)
        if department is not None:
            stmt = stmt.where(ExitRequestModel.department == department)
        if manager_id is not None:
            stmt = stmt.where(ExitRequestModel.manager_id == manager_id)
        stmt = stmt.order_by(ExitRequestModel.created_at.desc(), ExitRequestModel.id)

        return [m.to_dto() for m in self._session.execute(stmt).scalars().all()]

    # ------------------------------------------------------------------
    # Edit
    # ------------------------------------------------------------------

    def update_exit_request(
        self,
        caller: CallerContext,
        exit_request_id: UUID,
        changes: Mapping[str, Any],
    ) -> OperationResult[ExitRequest]:
        """
        Edit descriptive fields and dates.

        Owners may edit while the request is initiated or cancelled; HR and
        Admin may edit in any state.  Status is never editable here.
        """
        unknown = sorted(set(changes) - EDITABLE_FIELDS)
        if unknown:
            raise ValidationError([FieldError(name, "is not editable") for name in unknown])
        if not changes:
            raise ValidationError.single("changes", "no fields to update")

        try:
            model = load_exit_request(self._session, exit_request_id, for_update=True)
            current = model.to_dto()
            authorize_edit(caller, current)
            if not caller.is_hr_or_admin and HR_ONLY_FIELDS & set(changes):
                raise ForbiddenError(
                    "change manager", caller.user_id, "Only HR or Admin may reassign the manager",
                )

            errors: list[FieldError] = []
            values = dict(changes)
            if "exit_type" in values:
                parsed = _parse_exit_type(values["exit_type"], errors)
                values["exit_type"] = parsed.value if parsed else None
            for field_name in ("resignation_date", "last_working_day"):
                if field_name in values and values[field_name] is None:
                    errors.append(FieldError(field_name, "is required"))
            resignation = values.get("resignation_date", current.resignation_date)
            last_day = values.get("last_working_day", current.last_working_day)
            if resignation is not None and last_day is not None and last_day < resignation:
                errors.append(FieldError("last_working_day", "must not be before resignation_date"))
            if errors:
                raise ValidationError(errors)

            diff: dict[str, dict[str, Any]] = {}
            for name, value in sorted(values.items()):
                old = getattr(model, name)
                if old != value:
                    diff[name] = {"from": old, "to": value}
                    setattr(model, name, value)
            model.updated_by_id = caller.user_id
            self._session.flush()

            self._activity.record(
                exit_request_id,
                ActivityAction.UPDATED,
                caller.user_id,
                from_status=model.status,
                to_status=model.status,
                details={"changes": diff},
            )
            self._session.commit()
        except Exception as exc:
            rollback(self._session, "update exit request", exc)
            raise

        logger.info(
            "exit_request_updated",
            extra={
                "exit_request_id": str(exit_request_id),
                "fields": sorted(diff),
                "actor_id": str(caller.user_id),
            },
        )
        return OperationResult(model.to_dto(), "Exit request updated")

    # ------------------------------------------------------------------
    # Lifecycle transitions
    # ------------------------------------------------------------------

    def approve_exit_request(
        self,
        caller: CallerContext,
        exit_request_id: UUID,
        role: ApprovalRole | str,
    ) -> OperationResult[ExitRequest]:
        """
        Record a manager or HR approval.

        Raises:
            ValidationError: ``role`` is neither manager nor hr.
        """
        try:
            approval_role = ApprovalRole(role)
        except ValueError:
            raise ValidationError.single("role", "must be 'manager' or 'hr'") from None
        return self._apply_transition(caller, exit_request_id, _APPROVAL_ACTIONS[approval_role])

    def cancel_exit_request(self, caller: CallerContext, exit_request_id: UUID) -> OperationResult[ExitRequest]:
        return self._apply_transition(caller, exit_request_id, CANCEL)

    def promote_exit_request(
        self,
        caller: CallerContext,
        exit_request_id: UUID,
        action: PromotionAction | str,
    ) -> OperationResult[ExitRequest]:
        """Advance through clearance and settlement stages (HR/Admin)."""
        try:
            promotion = PromotionAction(action)
        except ValueError:
            raise ValidationError.single(
                "action", f"must be one of {', '.join(a.value for a in PromotionAction)}",
            ) from None
        return self._apply_transition(caller, exit_request_id, promotion.value)

    def complete_exit(self, caller: CallerContext, exit_request_id: UUID) -> OperationResult[ExitRequest]:
        return self._apply_transition(caller, exit_request_id, COMPLETE)

    def _apply_transition(
        self,
        caller: CallerContext,
        exit_request_id: UUID,
        action: str,
    ) -> OperationResult[ExitRequest]:
        """
        Guard, then compare-and-swap the status.

        Postconditions:
            - On success: status, stamp and version written in one UPDATE
              and exactly one activity entry appended.
            - On failure: nothing written.
        """
        with LogContext.bind(actor_id=caller.user_id, exit_request_id=exit_request_id, operation=action):
            try:
                model = load_exit_request(self._session, exit_request_id)
                request = model.to_dto()
                transition = authorize_transition(action, caller, request)
                now = self._clock.now()

                values: dict[str, Any] = {
                    "status": transition.to_state,
                    "version": ExitRequestModel.version + 1,
                    "updated_by_id": caller.user_id,
                    "updated_at": now,
                }
                if transition.stamp_field:
                    values[transition.stamp_field] = now

                result = self._session.execute(
                    update(ExitRequestModel)
                    .where(
                        ExitRequestModel.id == exit_request_id,
                        ExitRequestModel.status == request.status.value,
                        ExitRequestModel.version == request.version,
                    )
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    logger.warning(
                        "exit_request_transition_lost_race",
                        extra={"action": action, "expected_status": request.status.value},
                    )
                    raise ConcurrentTransitionError(
                        "Exit request", exit_request_id, action, request.status.value,
                    )
                self._session.refresh(model)

                self._activity.record(
                    exit_request_id,
                    TRANSITION_ACTIVITY[action],
                    caller.user_id,
                    from_status=transition.from_state,
                    to_status=transition.to_state,
                    details={"action": action, "version": model.version},
                )
                self._session.commit()
            except Exception as exc:
                rollback(self._session, action, exc)
                raise

            updated = model.to_dto()
            logger.info(
                "exit_request_transitioned",
                extra={
                    "action": action,
                    "from_status": transition.from_state,
                    "to_status": transition.to_state,
                    "version": updated.version,
                },
            )
        return OperationResult(updated, _TRANSITION_MESSAGES[action])

    # ------------------------------------------------------------------
    # Clearance
    # ------------------------------------------------------------------

    def update_clearance(
        self,
        caller: CallerContext,
        exit_request_id: UUID,
        department: str,
        status: ClearanceStatus | str,
        comments: str | None = None,
    ) -> OperationResult[ClearanceItem]:
        """
        Upsert the clearance item for one department (HR/Admin).

        ``completed_at`` is stamped on each approval and kept when the item
        later moves back to pending or rejected.
        """
        require_hr_or_admin(caller, "update clearance")
        errors = require_text("department", department)
        try:
            clearance_status = ClearanceStatus(status)
        except ValueError:
            clearance_status = None
            errors.append(FieldError(
                "status", f"must be one of {', '.join(s.value for s in ClearanceStatus)}",
            ))
        if errors:
            raise ValidationError(errors)
        department = department.strip()

        try:
            request = load_exit_request(self._session, exit_request_id, for_update=True)
            item = self._session.execute(
                select(ClearanceItemModel).where(
                    ClearanceItemModel.exit_request_id == exit_request_id,
                    ClearanceItemModel.department == department,
                )
            ).scalar_one_or_none()
            previous = item.status if item is not None else None
            if item is None:
                item = ClearanceItemModel(
                    exit_request_id=exit_request_id,
                    department=department,
                    created_by_id=caller.user_id,
                )
                self._session.add(item)
            else:
                item.updated_by_id = caller.user_id
            item.status = clearance_status.value
            item.approver_id = caller.user_id
            item.comments = comments
            if clearance_status is ClearanceStatus.APPROVED:
                item.completed_at = self._clock.now()
            self._session.flush()

            self._activity.record(
                exit_request_id,
                ActivityAction.CLEARANCE_UPDATED,
                caller.user_id,
                from_status=request.status,
                to_status=request.status,
                details={
                    "department": department,
                    "from": previous,
                    "to": clearance_status.value,
                },
            )
            self._session.commit()
        except Exception as exc:
            rollback(self._session, "update clearance", exc)
            raise

        logger.info(
            "exit_clearance_updated",
            extra={
                "exit_request_id": str(exit_request_id),
                "department": department,
                "status": clearance_status.value,
            },
        )
        return OperationResult(item.to_dto(), f"{department} clearance marked {clearance_status.value}")

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_exit_request(self, caller: CallerContext, exit_request_id: UUID) -> OperationResult[UUID]:
        """Delete the request and every child record (HR/Admin)."""
        require_hr_or_admin(caller, "delete exit request")
        try:
            model = load_exit_request(self._session, exit_request_id, for_update=True)
            removed: dict[str, int] = {}
            for child in _CHILD_MODELS:
                result = self._session.execute(
                    delete(child).where(child.exit_request_id == exit_request_id)
                )
                removed[child.__tablename__] = result.rowcount or 0
            removed["exit_activities"] = self._activity.purge(exit_request_id)
            self._session.delete(model)
            self._session.commit()
        except Exception as exc:
            rollback(self._session, "delete exit request", exc)
            raise

        logger.info(
            "exit_request_deleted",
            extra={
                "exit_request_id": str(exit_request_id),
                "actor_id": str(caller.user_id),
                "removed": removed,
            },
        )
        return OperationResult(exit_request_id, "Exit request deleted")

    # ------------------------------------------------------------------
    # Progress & metrics
    # ------------------------------------------------------------------

    def get_exit_progress(self, caller: CallerContext, exit_request_id: UUID) -> ExitProgress:
        request = self._viewable(caller, exit_request_id)

        clearance = self._session.execute(
            select(ClearanceItemModel.status)
            .where(ClearanceItemModel.exit_request_id == exit_request_id)
        ).scalars().all()
        recoveries = self._session.execute(
            select(AssetRecoveryModel.recovery_status)
            .where(AssetRecoveryModel.exit_request_id == exit_request_id)
        ).scalars().all()
        settlement_status = self._session.execute(
            select(SettlementModel.settlement_status)
            .where(SettlementModel.exit_request_id == exit_request_id)
        ).scalar_one_or_none()

        steps = {
            "left_initiated": request.status not in (ExitStatus.INITIATED, ExitStatus.CANCELLED),
            "manager_approved": request.manager_approved_at is not None,
            "hr_approved": request.hr_approved_at is not None,
            "clearance_approved": bool(clearance) and all(
                s == ClearanceStatus.APPROVED.value for s in clearance
            ),
            "assets_resolved": bool(recoveries) and all(
                RecoveryStatus(s).is_resolved for s in recoveries
            ),
            "settlement_calculated": settlement_status is not None,
            "settlement_approved": settlement_status in (
                SettlementStatus.APPROVED.value, SettlementStatus.PAID.value,
            ),
            "completed": request.status is ExitStatus.COMPLETED,
        }
        percentage = sum(PROGRESS_WEIGHTS[name] for name, done in steps.items() if done)
        return ExitProgress(
            exit_request_id=exit_request_id,
            status=request.status,
            percentage=percentage,
            steps=steps,
        )

    def get_exit_metrics(self, caller: CallerContext) -> ExitMetrics:
        """Dashboard counts per status (HR/Admin)."""
        require_hr_or_admin(caller, "view exit metrics")

        statuses = Counter(self._session.execute(select(ExitRequestModel.status)).scalars().all())
        by_status = {s.value: statuses.get(s.value, 0) for s in ExitStatus}
        active = sum(count for name, count in by_status.items() if ExitStatus(name).is_active)

        pending = self._session.execute(
            select(SettlementModel.net_settlement_amount).where(
                SettlementModel.settlement_status.in_(
                    [s.value for s in SettlementStatus.awaiting_payment()]
                )
            )
        ).scalars().all()

        return ExitMetrics(
            by_status=by_status,
            active=active,
            total=sum(by_status.values()),
            pending_settlement_amount=round_money(sum(pending, ZERO)),
        )

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def verify_activity_chain(self, caller: CallerContext, exit_request_id: UUID) -> bool:
        """Recompute the request's activity hash chain (HR/Admin)."""
        require_hr_or_admin(caller, "verify activity chain")
        load_exit_request(self._session, exit_request_id)
        return self._activity.verify_chain(exit_request_id)

    def _viewable(self, caller: CallerContext, exit_request_id: UUID) -> ExitRequest:
        request = load_exit_request(self._session, exit_request_id).to_dto()
        if not can_view(caller, request):
            raise ForbiddenError(
                "view exit request", caller.user_id,
                "Caller is not the employee, their manager, HR or Admin",
            )
        return request
