"""
Activity log hash chain tests.

Every write on an exit request appends one entry linked to its predecessor;
editing, re-hashing or removing any stored entry must be detected.
"""

from uuid import uuid4

import pytest
from sqlalchemy import delete, select, update

from exit_kernel.domain.caller import CallerContext
from exit_kernel.exceptions import ActivityChainBrokenError
from exit_kernel.models.activity import ActivityAction, ExitActivity
from exit_kernel.services.activity_log import ActivityLogService


@pytest.fixture
def activity(session, clock) -> ActivityLogService:
    return ActivityLogService(session, clock)


@pytest.fixture
def approved_with_trail(hr_approved_request):
    """An exit request with a three-entry trail: created, manager and HR approval."""
    return hr_approved_request.id


def tamper(session, exit_request_id, seq, **values):
    session.execute(
        update(ExitActivity)
        .where(ExitActivity.exit_request_id == exit_request_id, ExitActivity.seq == seq)
        .values(**values)
    )
    session.commit()
    session.expire_all()


class TestChainStructure:
    def test_entries_are_linked(self, session, activity, approved_with_trail):
        rows = session.execute(
            select(ExitActivity)
            .where(ExitActivity.exit_request_id == approved_with_trail)
            .order_by(ExitActivity.seq)
        ).scalars().all()

        assert [r.seq for r in rows] == [1, 2, 3]
        assert rows[0].is_genesis
        assert rows[1].prev_hash == rows[0].hash
        assert rows[2].prev_hash == rows[1].hash
        assert len({r.hash for r in rows}) == 3

    def test_trail_reads_back(self, activity, approved_with_trail, manager):
        trail = activity.get_trail(approved_with_trail)
        assert trail[1].action is ActivityAction.MANAGER_APPROVED
        assert trail[1].performed_by == manager.user_id
        assert trail[1].from_status == "initiated"
        assert trail[1].to_status == "manager_approved"
        assert trail[1].details == {"action": "approve_manager", "version": 2}

    def test_intact_chain_verifies(self, activity, approved_with_trail):
        assert activity.verify_chain(approved_with_trail) is True

    def test_empty_trail_verifies(self, activity):
        assert activity.verify_chain(uuid4()) is True

    def test_trails_are_per_request(self, exit_service, activity, hr, make_draft, approved_with_trail):
        other = exit_service.create_exit_request(CallerContext.employee(uuid4()), make_draft()).value
        assert [e.seq for e in activity.get_trail(other.id)] == [1]
        assert activity.verify_chain(other.id) is True


class TestTamperDetection:
    def test_edited_details(self, session, activity, approved_with_trail):
        tamper(session, approved_with_trail, 2, details={"action": "approve_manager", "version": 9})

        with pytest.raises(ActivityChainBrokenError) as exc_info:
            activity.verify_chain(approved_with_trail)
        assert exc_info.value.seq == 2
        assert exc_info.value.kind == "integrity"

    def test_edited_status(self, session, activity, approved_with_trail):
        tamper(session, approved_with_trail, 3, to_status="completed")
        with pytest.raises(ActivityChainBrokenError) as exc_info:
            activity.verify_chain(approved_with_trail)
        assert exc_info.value.seq == 3

    def test_rehashed_entry(self, session, activity, approved_with_trail):
        tamper(session, approved_with_trail, 1, hash="0" * 64)
        with pytest.raises(ActivityChainBrokenError) as exc_info:
            activity.verify_chain(approved_with_trail)
        assert exc_info.value.seq == 1

    def test_removed_entry(self, session, activity, approved_with_trail):
        session.execute(
            delete(ExitActivity).where(
                ExitActivity.exit_request_id == approved_with_trail, ExitActivity.seq == 2,
            )
        )
        session.commit()

        with pytest.raises(ActivityChainBrokenError) as exc_info:
            activity.verify_chain(approved_with_trail)
        assert exc_info.value.seq == 3

    def test_service_surfaces_break(self, session, exit_service, hr, approved_with_trail, captured_logs):
        tamper(session, approved_with_trail, 2, performed_by=hr.user_id)
        with pytest.raises(ActivityChainBrokenError):
            exit_service.verify_activity_chain(hr, approved_with_trail)
        assert any(r["message"] == "activity_chain_broken" for r in captured_logs())
