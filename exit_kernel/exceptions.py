"""
Typed Exception Hierarchy for the Exit Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Exit processing moves money and gates employee-visible state.  Callers must
be able to tell a permission problem from a stale status from a bad input
without parsing message strings:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Every exception has a KIND (the category a caller maps to a response)
  4. Exceptions carry structured DATA (not just a message string)

Example - RIGHT way:
    try:
        service.approve_exit_request(caller, request_id, role="manager")
    except AlreadyInStateError:
        pass                              # someone already approved it
    except ConflictError as e:
        respond(409, e.to_dict())         # stale status or lost race
    except ForbiddenError as e:
        respond(403, e.to_dict())

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ExitKernelError (base)
    |
    +-- ValidationError                   kind=validation
    |   +-- ActiveExitRequestExistsError
    |
    +-- NotFoundError                     kind=not_found
    |   +-- ExitRequestNotFoundError
    |   +-- ProfileNotFoundError
    |   +-- SettlementNotFoundError
    |   +-- DueNotFoundError
    |
    +-- ForbiddenError                    kind=forbidden
    |
    +-- ConflictError                     kind=conflict
    |   +-- InvalidStatusError            (wrong prior state)
    |   |   +-- ConcurrentTransitionError (lost the compare-and-swap)
    |   +-- AlreadyInStateError           (already in the target state)
    |
    +-- DependencyError                   kind=dependency
    |
    +-- ActivityChainBrokenError          kind=integrity

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Kind        | Code                          | When Raised
------------|-------------------------------|-----------------------------------
validation  | VALIDATION_FAILED             | One or more fields rejected
            | ACTIVE_EXIT_REQUEST_EXISTS    | User already has a live request
not_found   | EXIT_REQUEST_NOT_FOUND        | No exit request with that id
            | PROFILE_NOT_FOUND             | Profile store has no record
            | SETTLEMENT_NOT_FOUND          | No settlement calculated yet
            | DUE_NOT_FOUND                 | No due line with that id
forbidden   | FORBIDDEN                     | Caller lacks the role/ownership
conflict    | INVALID_STATUS                | Wrong prior state for the action
            | CONCURRENT_TRANSITION         | Status changed under the caller
            | ALREADY_IN_STATE              | Target state already reached
dependency  | DEPENDENCY_FAILED             | A collaborator read failed
integrity   | ACTIVITY_CHAIN_BROKEN         | Activity hash chain mismatch

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Guard and validation failures are raised BEFORE any write.  A raised
   error therefore never leaves a partially applied transition behind.

2. AlreadyInStateError and InvalidStatusError are siblings so a caller can
   treat "already done" as an idempotent success while still rejecting a
   genuinely out-of-order request.

3. ValidationError collects every offending field instead of stopping at
   the first one.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable
from uuid import UUID


@dataclass(frozen=True)
class FieldError:
    """A single rejected input field."""

    field: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "message": self.message}


class ExitKernelError(Exception):
    """
    Base exception for all exit kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification and a ``kind`` naming the error category.
    """

    code: str = "EXIT_KERNEL_ERROR"
    kind: str = "internal"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a structured, API-safe payload."""
        payload: dict[str, Any] = {
            "kind": self.kind,
            "code": self.code,
            "message": str(self),
        }
        for key, value in vars(self).items():
            if key.startswith("_"):
                continue
            if isinstance(value, UUID):
                value = str(value)
            elif isinstance(value, tuple) and value and isinstance(value[0], FieldError):
                value = [fe.to_dict() for fe in value]
            payload[key] = value
        return payload


# Validation


class ValidationError(ExitKernelError):
    """Input was malformed or out of range.  Lists every offending field."""

    code: str = "VALIDATION_FAILED"
    kind: str = "validation"

    def __init__(self, field_errors: Iterable[FieldError], message: str | None = None):
        self.field_errors = tuple(field_errors)
        detail = "; ".join(f"{fe.field}: {fe.message}" for fe in self.field_errors)
        super().__init__(message or f"Validation failed: {detail}")

    @classmethod
    def single(cls, field: str, message: str) -> ValidationError:
        return cls([FieldError(field, message)])

    @property
    def fields(self) -> tuple[str, ...]:
        return tuple(fe.field for fe in self.field_errors)


class ActiveExitRequestExistsError(ValidationError):
    """The user already has an exit request that is neither completed nor cancelled."""

    code: str = "ACTIVE_EXIT_REQUEST_EXISTS"

    def __init__(self, user_id: UUID, existing_request_id: UUID | None = None):
        self.user_id = user_id
        self.existing_request_id = existing_request_id
        super().__init__(
            [FieldError("user_id", "User already has an active exit request")],
            message=f"User {user_id} already has an active exit request",
        )


# Not found


class NotFoundError(ExitKernelError):
    """A required record does not exist."""

    code: str = "NOT_FOUND"
    kind: str = "not_found"

    def __init__(self, entity: str, entity_id: Any):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class ExitRequestNotFoundError(NotFoundError):
    code: str = "EXIT_REQUEST_NOT_FOUND"

    def __init__(self, exit_request_id: UUID):
        self.exit_request_id = exit_request_id
        super().__init__("Exit request", exit_request_id)


class ProfileNotFoundError(NotFoundError):
    code: str = "PROFILE_NOT_FOUND"

    def __init__(self, user_id: UUID):
        self.user_id = user_id
        super().__init__("Employee profile", user_id)


class SettlementNotFoundError(NotFoundError):
    code: str = "SETTLEMENT_NOT_FOUND"

    def __init__(self, exit_request_id: UUID):
        self.exit_request_id = exit_request_id
        super().__init__("Settlement", exit_request_id)


class DueNotFoundError(NotFoundError):
    code: str = "DUE_NOT_FOUND"

    def __init__(self, due_id: UUID):
        self.due_id = due_id
        super().__init__("Due", due_id)


# Authorization


class ForbiddenError(ExitKernelError):
    """The caller's identity or roles do not permit the action."""

    code: str = "FORBIDDEN"
    kind: str = "forbidden"

    def __init__(self, action: str, actor_id: UUID, reason: str):
        self.action = action
        self.actor_id = actor_id
        self.reason = reason
        super().__init__(f"Not allowed to {action}: {reason}")


# State conflicts


class ConflictError(ExitKernelError):
    """The record's current state does not admit the action."""

    code: str = "CONFLICT"
    kind: str = "conflict"


class InvalidStatusError(ConflictError):
    """
    The record is in a state from which the action is not allowed.

    Hard reject: the caller is acting on a stale or wrong view.
    """

    code: str = "INVALID_STATUS"

    def __init__(
        self,
        entity: str,
        entity_id: UUID,
        action: str,
        current_status: str,
        allowed_statuses: Iterable[str] = (),
    ):
        self.entity = entity
        self.entity_id = entity_id
        self.action = action
        self.current_status = current_status
        self.allowed_statuses = tuple(sorted(allowed_statuses))
        allowed = ", ".join(self.allowed_statuses) or "none"
        super().__init__(
            f"Cannot {action} {entity} {entity_id} in status "
            f"'{current_status}' (allowed: {allowed})"
        )


class ConcurrentTransitionError(InvalidStatusError):
    """Another writer changed the status between read and compare-and-swap."""

    code: str = "CONCURRENT_TRANSITION"

    def __init__(self, entity: str, entity_id: UUID, action: str, expected_status: str):
        self.expected_status = expected_status
        super().__init__(entity, entity_id, action, expected_status)
        self.args = (
            f"Cannot {action} {entity} {entity_id}: status changed "
            f"concurrently (expected '{expected_status}')",
        )


class AlreadyInStateError(ConflictError):
    """
    The record already sits in the action's target state.

    Callers retrying an operation may treat this as success.
    """

    code: str = "ALREADY_IN_STATE"

    def __init__(self, entity: str, entity_id: UUID, action: str, status: str):
        self.entity = entity
        self.entity_id = entity_id
        self.action = action
        self.status = status
        super().__init__(f"{entity} {entity_id} is already '{status}'; {action} is a no-op")


# Collaborators


class DependencyError(ExitKernelError):
    """A collaborator read (payroll, assets, dues) failed."""

    code: str = "DEPENDENCY_FAILED"
    kind: str = "dependency"

    def __init__(self, source: str, detail: str):
        self.source = source
        self.detail = detail
        super().__init__(f"Failed to read {source}: {detail}")


# Integrity


class ActivityChainBrokenError(ExitKernelError):
    """The activity log hash chain for an exit request does not verify."""

    code: str = "ACTIVITY_CHAIN_BROKEN"
    kind: str = "integrity"

    def __init__(self, exit_request_id: UUID, seq: int, expected_hash: str, actual_hash: str):
        self.exit_request_id = exit_request_id
        self.seq = seq
        self.expected_hash = expected_hash
        self.actual_hash = actual_hash
        super().__init__(
            f"Activity chain broken for exit request {exit_request_id} at seq {seq}: "
            f"expected {expected_hash}, got {actual_hash}"
        )
