"""
Exit Request (``exit_modules.exit_request``).

The root aggregate of employee offboarding and the state machine that
gates every change to it.  Import ``ExitRequestService`` from
``exit_modules.exit_request.service``.
"""

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
from exit_modules.exit_request.workflows import EXIT_REQUEST_WORKFLOW

__all__ = [
    "ApprovalRole",
    "ClearanceItem",
    "ClearanceStatus",
    "ExitMetrics",
    "ExitProgress",
    "ExitRequest",
    "ExitRequestAggregate",
    "ExitRequestDraft",
    "ExitStatus",
    "ExitType",
    "PromotionAction",
    "EXIT_REQUEST_WORKFLOW",
]
