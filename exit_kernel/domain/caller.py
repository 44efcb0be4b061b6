"""
Caller identity (``exit_kernel.domain.caller``).

Responsibility
--------------
Value object describing the already-authenticated principal on whose
behalf an operation runs.  Authentication and session issuance happen
upstream; every service operation receives a ``CallerContext`` and makes
its authorization decision from it plus the record being acted on.

Architecture position
---------------------
**Kernel domain layer** -- pure value object.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID


class Role(str, Enum):
    """Role flags carried by a caller."""

    EMPLOYEE = "employee"
    MANAGER = "manager"
    HR = "hr"
    ADMIN = "admin"


@dataclass(frozen=True)
class CallerContext:
    """An authenticated caller.

    Contract: frozen.  ``roles`` is the full set of role flags the upstream
    identity provider granted; ownership (``user_id`` match) is evaluated
    against the record by the guard, not encoded here.
    """

    user_id: UUID
    roles: frozenset[Role] = field(default_factory=lambda: frozenset({Role.EMPLOYEE}))

    def __post_init__(self) -> None:
        object.__setattr__(self, "roles", frozenset(Role(r) for r in self.roles))

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles

    @property
    def is_hr(self) -> bool:
        return Role.HR in self.roles

    @property
    def is_hr_or_admin(self) -> bool:
        return self.is_admin or self.is_hr

    def is_user(self, user_id: UUID | None) -> bool:
        return user_id is not None and self.user_id == user_id

    @classmethod
    def employee(cls, user_id: UUID) -> CallerContext:
        return cls(user_id=user_id, roles=frozenset({Role.EMPLOYEE}))

    @classmethod
    def manager(cls, user_id: UUID) -> CallerContext:
        return cls(user_id=user_id, roles=frozenset({Role.EMPLOYEE, Role.MANAGER}))

    @classmethod
    def hr(cls, user_id: UUID) -> CallerContext:
        return cls(user_id=user_id, roles=frozenset({Role.EMPLOYEE, Role.HR}))

    @classmethod
    def admin(cls, user_id: UUID) -> CallerContext:
        return cls(user_id=user_id, roles=frozenset({Role.ADMIN}))
