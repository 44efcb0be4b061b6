"""
ActivityLogService -- hash-chained activity trail per exit request.

Responsibility:
    Appends one ``ExitActivity`` row for every lifecycle transition and
    money-affecting write on an exit request, linking each row to its
    predecessor by hash.  Provides trail reads and chain verification.

Architecture position:
    Kernel > Services -- imperative shell, called by every module service
    that mutates an exit request or its children.

Invariants enforced:
    - Append-only: rows are never updated.
    - Per-request sequence: seq = previous seq + 1.  Callers append while
      holding the exit request row (compare-and-swap UPDATE or
      SELECT ... FOR UPDATE), and (exit_request_id, seq) is unique, so a
      racing append fails instead of forking the chain.
    - hash = H(exit_request_id | seq | action | payload_hash | prev_hash).

Failure modes:
    - ActivityChainBrokenError from verify_chain() on any mismatch.
    - IntegrityError if two writers append the same seq concurrently.

Audit relevance:
    This is the exit request's audit trail.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from exit_kernel.db.types import as_utc
from exit_kernel.domain.clock import Clock, SystemClock
from exit_kernel.exceptions import ActivityChainBrokenError
from exit_kernel.logging_config import get_logger
from exit_kernel.models.activity import ActivityAction, ExitActivity
from exit_kernel.utils.hashing import canonicalize_json, hash_activity_entry, hash_payload

logger = get_logger("services.activity_log")


@dataclass(frozen=True)
class ExitActivityEntry:
    """A single entry in an exit request's activity trail."""

    seq: int
    action: ActivityAction
    from_status: str | None
    to_status: str | None
    performed_by: UUID
    occurred_at: datetime
    details: dict[str, Any]
    hash: str


def _entry_payload(
    from_status: str | None,
    to_status: str | None,
    performed_by: UUID,
    occurred_at: datetime,
    details: dict[str, Any],
) -> dict[str, Any]:
    return {
        "from_status": from_status,
        "to_status": to_status,
        "performed_by": str(performed_by),
        "occurred_at": as_utc(occurred_at).isoformat(),
        "details": details,
    }


def _to_entry(row: ExitActivity) -> ExitActivityEntry:
    return ExitActivityEntry(
        seq=row.seq,
        action=ActivityAction(row.action),
        from_status=row.from_status,
        to_status=row.to_status,
        performed_by=row.performed_by,
        occurred_at=as_utc(row.occurred_at),
        details=dict(row.details or {}),
        hash=row.hash,
    )


class ActivityLogService:
    """
    Creates and validates hash-chained activity entries.

    Contract:
        ``record()`` flushes a new row inside the caller's transaction.

    Non-goals:
        - Does NOT call ``session.commit()`` -- the calling module service
          owns the transaction boundary.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def _last_entry(self, exit_request_id: UUID) -> ExitActivity | None:
        return self._session.execute(
            select(ExitActivity)
            .where(ExitActivity.exit_request_id == exit_request_id)
            .order_by(ExitActivity.seq.desc())
            .limit(1)
        ).scalar_one_or_none()

    def record(
        self,
        exit_request_id: UUID,
        action: ActivityAction,
        performed_by: UUID,
        *,
        from_status: str | None = None,
        to_status: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> ExitActivityEntry:
        """
        Append one activity entry.

        Postconditions:
            - A new row is flushed with seq = last seq + 1 and
              prev_hash = last hash.
        """
        last = self._last_entry(exit_request_id)
        seq = (last.seq + 1) if last else 1
        prev_hash = last.hash if last else None
        occurred_at = self._clock.now()

        # Round-trip through canonical JSON so stored details hash identically
        # when read back.
        normalized = json.loads(canonicalize_json(details or {}))
        payload_hash = hash_payload(
            _entry_payload(from_status, to_status, performed_by, occurred_at, normalized)
        )
        entry_hash = hash_activity_entry(
            exit_request_id=str(exit_request_id),
            seq=seq,
            action=action.value,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
        )

        row = ExitActivity(
            exit_request_id=exit_request_id,
            seq=seq,
            action=action.value,
            from_status=from_status,
            to_status=to_status,
            performed_by=performed_by,
            occurred_at=occurred_at,
            details=normalized,
            payload_hash=payload_hash,
            prev_hash=prev_hash,
            hash=entry_hash,
        )
        self._session.add(row)
        self._session.flush()

        logger.debug(
            "activity_recorded",
            extra={
                "exit_request_id": str(exit_request_id),
                "seq": seq,
                "action": action.value,
            },
        )
        return _to_entry(row)

    def get_trail(self, exit_request_id: UUID) -> tuple[ExitActivityEntry, ...]:
        rows = self._session.execute(
            select(ExitActivity)
            .where(ExitActivity.exit_request_id == exit_request_id)
            .order_by(ExitActivity.seq)
        ).scalars().all()
        return tuple(_to_entry(r) for r in rows)

    def verify_chain(self, exit_request_id: UUID) -> bool:
        """
        Recompute every hash in the trail.

        Returns:
            True when the chain verifies (an empty trail verifies).

        Raises:
            ActivityChainBrokenError: On the first mismatching entry.
        """
        rows = self._session.execute(
            select(ExitActivity)
            .where(ExitActivity.exit_request_id == exit_request_id)
            .order_by(ExitActivity.seq)
        ).scalars().all()

        prev_hash: str | None = None
        for expected_seq, row in enumerate(rows, start=1):
            if row.seq != expected_seq or row.prev_hash != prev_hash:
                raise ActivityChainBrokenError(
                    exit_request_id, row.seq, prev_hash or "GENESIS", row.prev_hash or "GENESIS",
                )
            payload_hash = hash_payload(
                _entry_payload(
                    row.from_status, row.to_status, row.performed_by,
                    row.occurred_at, row.details or {},
                )
            )
            expected = hash_activity_entry(
                exit_request_id=str(exit_request_id),
                seq=row.seq,
                action=row.action,
                payload_hash=payload_hash,
                prev_hash=prev_hash,
            )
            if expected != row.hash:
                logger.error(
                    "activity_chain_broken",
                    extra={"exit_request_id": str(exit_request_id), "seq": row.seq},
                )
                raise ActivityChainBrokenError(exit_request_id, row.seq, expected, row.hash)
            prev_hash = row.hash

        return True

    def purge(self, exit_request_id: UUID) -> int:
        """Delete the trail together with its exit request."""
        result = self._session.execute(
            delete(ExitActivity).where(ExitActivity.exit_request_id == exit_request_id)
        )
        return result.rowcount or 0
