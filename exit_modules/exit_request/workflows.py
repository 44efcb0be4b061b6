"""Exit Request Workflows.

State machine for the exit request lifecycle and the role guards that
gate each transition:

    initiated -> manager_approved -> hr_approved -> clearance_pending
      -> clearance_completed -> settlement_pending -> completed
    initiated -> cancelled

``completed`` is also reachable straight from ``clearance_completed``.
Nothing advances automatically; clearance and settlement promotions are
explicit HR/Admin actions.

Authorization is decided before state: a caller the guard rejects gets
ForbiddenError even when the request is also in the wrong state.
"""

from __future__ import annotations

from collections.abc import Callable

from exit_kernel.domain.caller import CallerContext
from exit_kernel.domain.workflow import Guard, Transition, Workflow
from exit_kernel.exceptions import (
    AlreadyInStateError,
    ForbiddenError,
    InvalidStatusError,
    ValidationError,
)
from exit_kernel.logging_config import get_logger
from exit_kernel.models.activity import ActivityAction
from exit_modules.exit_request.models import ExitRequest, ExitStatus

logger = get_logger("modules.exit_request.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

IS_MANAGER_OR_HR = Guard(
    name="is_manager_or_hr",
    description="Caller is the request's manager, or holds the HR or Admin role",
)

IS_HR_OR_ADMIN = Guard(
    name="is_hr_or_admin",
    description="Caller holds the HR or Admin role",
)

IS_OWNER_OR_HR = Guard(
    name="is_owner_or_hr",
    description="Caller is the exiting employee, or holds the HR or Admin role",
)

GuardEvaluator = Callable[[CallerContext, ExitRequest], bool]

GUARD_EVALUATORS: dict[str, GuardEvaluator] = {
    IS_MANAGER_OR_HR.name: lambda caller, req: caller.is_user(req.manager_id) or caller.is_hr_or_admin,
    IS_HR_OR_ADMIN.name: lambda caller, req: caller.is_hr_or_admin,
    IS_OWNER_OR_HR.name: lambda caller, req: caller.is_user(req.user_id) or caller.is_hr_or_admin,
}

logger.info(
    "exit_request_workflow_guards_defined",
    extra={"guards": sorted(GUARD_EVALUATORS)},
)


# -----------------------------------------------------------------------------
# Actions
# -----------------------------------------------------------------------------

APPROVE_MANAGER = "approve_manager"
APPROVE_HR = "approve_hr"
CANCEL = "cancel"
START_CLEARANCE = "start_clearance"
COMPLETE_CLEARANCE = "complete_clearance"
BEGIN_SETTLEMENT = "begin_settlement"
COMPLETE = "complete"

S = ExitStatus

EXIT_REQUEST_WORKFLOW = Workflow(
    name="exit_request",
    description="Employee exit request lifecycle",
    initial_state=S.INITIATED.value,
    states=tuple(s.value for s in ExitStatus),
    transitions=(
        Transition(S.INITIATED.value, S.MANAGER_APPROVED.value, action=APPROVE_MANAGER,
                   guard=IS_MANAGER_OR_HR, stamp_field="manager_approved_at"),
        Transition(S.MANAGER_APPROVED.value, S.HR_APPROVED.value, action=APPROVE_HR,
                   guard=IS_HR_OR_ADMIN, stamp_field="hr_approved_at"),
        Transition(S.INITIATED.value, S.CANCELLED.value, action=CANCEL,
                   guard=IS_OWNER_OR_HR, stamp_field="cancelled_at"),
        Transition(S.HR_APPROVED.value, S.CLEARANCE_PENDING.value, action=START_CLEARANCE,
                   guard=IS_HR_OR_ADMIN, stamp_field="clearance_started_at"),
        Transition(S.CLEARANCE_PENDING.value, S.CLEARANCE_COMPLETED.value, action=COMPLETE_CLEARANCE,
                   guard=IS_HR_OR_ADMIN, stamp_field="clearance_completed_at"),
        Transition(S.CLEARANCE_COMPLETED.value, S.SETTLEMENT_PENDING.value, action=BEGIN_SETTLEMENT,
                   guard=IS_HR_OR_ADMIN, stamp_field="settlement_started_at"),
        Transition(S.CLEARANCE_COMPLETED.value, S.COMPLETED.value, action=COMPLETE,
                   guard=IS_HR_OR_ADMIN, stamp_field="completed_at"),
        Transition(S.SETTLEMENT_PENDING.value, S.COMPLETED.value, action=COMPLETE,
                   guard=IS_HR_OR_ADMIN, stamp_field="completed_at"),
    ),
    terminal_states=(S.COMPLETED.value, S.CANCELLED.value),
)

TRANSITION_ACTIVITY: dict[str, ActivityAction] = {
    APPROVE_MANAGER: ActivityAction.MANAGER_APPROVED,
    APPROVE_HR: ActivityAction.HR_APPROVED,
    CANCEL: ActivityAction.CANCELLED,
    START_CLEARANCE: ActivityAction.CLEARANCE_STARTED,
    COMPLETE_CLEARANCE: ActivityAction.CLEARANCE_COMPLETED,
    BEGIN_SETTLEMENT: ActivityAction.SETTLEMENT_STARTED,
    COMPLETE: ActivityAction.COMPLETED,
}

# Statuses in which an owner may still edit their own request
OWNER_EDITABLE_STATUSES = frozenset({S.INITIATED, S.CANCELLED})

# Statuses from which a settlement may be (re)calculated
SETTLEMENT_CALCULABLE_STATUSES = frozenset({
    S.HR_APPROVED, S.CLEARANCE_PENDING, S.CLEARANCE_COMPLETED, S.SETTLEMENT_PENDING,
})

logger.info(
    "exit_request_workflow_registered",
    extra={
        "workflow": EXIT_REQUEST_WORKFLOW.name,
        "states": list(EXIT_REQUEST_WORKFLOW.states),
        "transitions": len(EXIT_REQUEST_WORKFLOW.transitions),
    },
)


# -----------------------------------------------------------------------------
# Guard evaluation
# -----------------------------------------------------------------------------


def authorize_transition(action: str, caller: CallerContext, request: ExitRequest) -> Transition:
    """
    Resolve the transition ``action`` fires from the request's current state.

    Raises:
        ValidationError: Unknown action.
        ForbiddenError: The action's guard rejects the caller.
        AlreadyInStateError: The request already sits in the target state.
        InvalidStatusError: The current state does not admit the action.
    """
    candidates = EXIT_REQUEST_WORKFLOW.transitions_for(action)
    if not candidates:
        raise ValidationError.single("action", f"Unknown exit request action: {action}")

    guard = candidates[0].guard
    if guard is not None and not GUARD_EVALUATORS[guard.name](caller, request):
        logger.warning(
            "exit_request_guard_rejected",
            extra={
                "exit_request_id": str(request.id),
                "action": action,
                "guard": guard.name,
                "actor_id": str(caller.user_id),
            },
        )
        raise ForbiddenError(action, caller.user_id, guard.description)

    current = request.status.value
    transition = EXIT_REQUEST_WORKFLOW.find(action, current)
    if transition is not None:
        return transition

    targets = {t.to_state for t in candidates}
    if current in targets:
        raise AlreadyInStateError("Exit request", request.id, action, current)
    raise InvalidStatusError(
        "Exit request", request.id, action, current, EXIT_REQUEST_WORKFLOW.allowed_from(action),
    )


def require_hr_or_admin(caller: CallerContext, action: str) -> None:
    if not caller.is_hr_or_admin:
        raise ForbiddenError(action, caller.user_id, IS_HR_OR_ADMIN.description)


def can_view(caller: CallerContext, request: ExitRequest) -> bool:
    return (
        caller.is_user(request.user_id)
        or caller.is_user(request.manager_id)
        or caller.is_hr_or_admin
    )


def authorize_edit(caller: CallerContext, request: ExitRequest) -> None:
    """
    Owners edit only while the request is initiated or cancelled; HR and
    Admin edit in any state.
    """
    if caller.is_hr_or_admin:
        return
    if not caller.is_user(request.user_id):
        raise ForbiddenError("update exit request", caller.user_id, IS_OWNER_OR_HR.description)
    if request.status not in OWNER_EDITABLE_STATUSES:
        raise InvalidStatusError(
            "Exit request", request.id, "update", request.status.value,
            (s.value for s in OWNER_EDITABLE_STATUSES),
        )
