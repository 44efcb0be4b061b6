"""
Shared helpers for module services.

Used by exit_modules/*/service.py to reduce duplication around the
transaction boundary and input validation.

Architecture: Modules layer. Imports only from exit_kernel.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from exit_kernel.db.types import ZERO, money
from exit_kernel.exceptions import ExitKernelError, FieldError
from exit_kernel.logging_config import get_logger

logger = get_logger("modules.transactions")


def rollback(session: Session, operation: str, exc: BaseException) -> None:
    """Roll back the session and record why."""
    session.rollback()
    extra: dict[str, Any] = {"operation": operation, "error_type": type(exc).__name__}
    if isinstance(exc, ExitKernelError):
        extra["error_code"] = exc.code
    logger.warning("transaction_rolled_back", extra=extra)


def amount_errors(field: str, value: Any, *, required: bool = True) -> list[FieldError]:
    if value is None:
        return [FieldError(field, "is required")] if required else []
    try:
        amount = money(value)
    except (TypeError, ValueError) as exc:
        return [FieldError(field, str(exc))]
    if not amount.is_finite():
        return [FieldError(field, "must be a finite amount")]
    if amount < ZERO:
        return [FieldError(field, "must be non-negative")]
    return []


def require_text(field: str, value: str | None) -> list[FieldError]:
    if value is None or not str(value).strip():
        return [FieldError(field, "is required")]
    return []
