"""Settlement Workflows.

    calculated -> approved -> paid

Both transitions are HR/Admin actions.  ``paid`` is terminal.
"""

from __future__ import annotations

from exit_kernel.domain.workflow import Guard, Transition, Workflow
from exit_kernel.exceptions import AlreadyInStateError, InvalidStatusError, ValidationError
from exit_kernel.logging_config import get_logger
from exit_modules.settlement.models import SettlementStatus

logger = get_logger("modules.settlement.workflows")

IS_HR_OR_ADMIN = Guard(
    name="is_hr_or_admin",
    description="Caller holds the HR or Admin role",
)

APPROVE = "approve"
MARK_PAID = "mark_paid"

SETTLEMENT_WORKFLOW = Workflow(
    name="settlement",
    description="Final settlement payment lifecycle",
    initial_state=SettlementStatus.CALCULATED.value,
    states=tuple(s.value for s in SettlementStatus),
    transitions=(
        Transition(SettlementStatus.CALCULATED.value, SettlementStatus.APPROVED.value,
                   action=APPROVE, guard=IS_HR_OR_ADMIN, stamp_field="approved_at"),
        Transition(SettlementStatus.APPROVED.value, SettlementStatus.PAID.value,
                   action=MARK_PAID, guard=IS_HR_OR_ADMIN, stamp_field="paid_at"),
    ),
    terminal_states=(SettlementStatus.PAID.value,),
)

ACTION_FOR_TARGET = {
    SettlementStatus.APPROVED: APPROVE,
    SettlementStatus.PAID: MARK_PAID,
}

logger.info(
    "settlement_workflow_registered",
    extra={
        "workflow": SETTLEMENT_WORKFLOW.name,
        "states": list(SETTLEMENT_WORKFLOW.states),
        "transitions": len(SETTLEMENT_WORKFLOW.transitions),
    },
)


def resolve_settlement_transition(settlement_id, current: SettlementStatus, target) -> Transition:
    """
    Resolve the transition from ``current`` to ``target``.

    Raises:
        ValidationError: ``target`` is not a settlement status.
        AlreadyInStateError: Settlement is already in ``target``.
        InvalidStatusError: ``target`` is not the next status.
    """
    try:
        target = SettlementStatus(target)
    except ValueError:
        raise ValidationError.single(
            "status", f"must be one of {', '.join(s.value for s in SettlementStatus)}",
        ) from None

    if target is current:
        raise AlreadyInStateError("Settlement", settlement_id, f"mark {target.value}", current.value)

    action = ACTION_FOR_TARGET.get(target)
    transition = SETTLEMENT_WORKFLOW.find(action, current.value) if action else None
    if transition is None:
        allowed = SETTLEMENT_WORKFLOW.allowed_from(action) if action else ()
        raise InvalidStatusError("Settlement", settlement_id, f"mark {target.value}", current.value, allowed)
    return transition
