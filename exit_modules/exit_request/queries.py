"""Shared exit request lookups used by every module service."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from exit_kernel.exceptions import ExitRequestNotFoundError
from exit_modules.exit_request.orm import ExitRequestModel


def load_exit_request(session: Session, exit_request_id: UUID, *, for_update: bool = False) -> ExitRequestModel:
    """
    Load an exit request row.

    ``for_update`` takes a row lock (PostgreSQL) so activity appends on the
    request's children are serialized with status transitions.  Rows are
    always re-read, since status and stamps are written by bulk UPDATEs
    that bypass the identity map.

    Raises:
        ExitRequestNotFoundError: No such exit request.
    """
    stmt = (
        select(ExitRequestModel)
        .where(ExitRequestModel.id == exit_request_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    model = session.execute(stmt).scalar_one_or_none()
    if model is None:
        raise ExitRequestNotFoundError(exit_request_id)
    return model


def stamp_settlement_completed(session: Session, exit_request_id: UUID, when) -> bool:
    """
    Set settlement_completed_at once.

    Returns:
        True if this call wrote the stamp, False if it was already set.
    """
    result = session.execute(
        update(ExitRequestModel)
        .where(
            ExitRequestModel.id == exit_request_id,
            ExitRequestModel.settlement_completed_at.is_(None),
        )
        .values(settlement_completed_at=when)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
