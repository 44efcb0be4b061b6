"""
Tests for SettlementService and settlement input assembly.

The worked example: five years of service on 60,000/month, a final
payslip of 58,000, a lost laptop (5,000), a loan (10,000) and 10 of 30
notice days served.  Net payable is 176,076.92.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from exit_config import ExitPolicy
from exit_engines.settlement import DueLine, SettlementAdjustments
from exit_kernel.exceptions import (
    AlreadyInStateError,
    DependencyError,
    ForbiddenError,
    InvalidStatusError,
    ProfileNotFoundError,
    SettlementNotFoundError,
    ValidationError,
)
from exit_kernel.models.activity import ActivityAction
from exit_modules.assets.models import AssetRecovery, EmployeeAsset, RecoveryStatus
from exit_modules.assets.service import AssetLedgerService
from exit_modules.dues.service import DuesLedgerService
from exit_modules.exit_request.models import ExitRequest, ExitStatus, ExitType
from exit_modules.payroll_inputs.models import EmployeeProfile, Payslip
from exit_modules.settlement.assembler import SettlementInputAssembler
from exit_modules.settlement.models import SettlementStatus
from exit_modules.settlement.service import SettlementService

SHORT_NOTICE = SettlementAdjustments(notice_period_required_days=30, notice_period_served_days=10)


@pytest.fixture
def settlement_service(session, clock, policy) -> SettlementService:
    return SettlementService(session, clock=clock, policy=policy)


@pytest.fixture
def worked_example(session, clock, hr, employee_id, hr_approved_request, seed_profile, seed_payslip):
    """Seed every input of the worked example and return the exit request id."""
    seed_profile(employee_id)
    seed_payslip(employee_id, 2024, 1, "58000")

    assets = AssetLedgerService(session, clock)
    laptop = assets.create_employee_asset(hr, employee_id, "Laptop", date(2020, 3, 1)).value
    assets.upsert_asset_recovery(hr, hr_approved_request.id, laptop.id, "lost", cost_recovery="5000")
    DuesLedgerService(session, clock).upsert_recoverable_due(hr, hr_approved_request.id, "loan", "10000")
    return hr_approved_request.id


# =============================================================================
# Calculation
# =============================================================================


class TestCalculateSettlement:
    def test_worked_example(self, settlement_service, hr, worked_example):
        result = settlement_service.calculate_settlement(hr, worked_example, SHORT_NOTICE)

        settlement = result.value
        assert result.message == "Settlement calculated"
        assert settlement.settlement_status is SettlementStatus.CALCULATED
        assert settlement.total_payable == Decimal("231076.92")
        assert settlement.total_recoverable == Decimal("55000.00")
        assert settlement.net_settlement_amount == Decimal("176076.92")
        assert settlement.direction == "company_pays_employee"
        assert settlement.calculated_by == hr.user_id

    def test_breakdown_persisted(self, settlement_service, hr, worked_example):
        settlement_service.calculate_settlement(hr, worked_example, SHORT_NOTICE)

        stored = settlement_service.get_settlement(worked_example)
        assert stored.breakdown["earnings"]["gratuity"] == "173076.92"
        assert stored.breakdown["deductions"]["notice_period_recovery"] == "40000.00"
        assert stored.breakdown["deductions"]["loan_recovery"] == "10000.00"
        assert stored.breakdown["assets"][0]["asset_name"] == "Laptop"
        assert stored.breakdown["data_quality_gaps"] == []

    def test_every_loan_line_recovered(self, session, clock, settlement_service, hr, worked_example):
        DuesLedgerService(session, clock).upsert_recoverable_due(
            hr, worked_example, "loan", "5000", description="housing loan",
        )

        settlement = settlement_service.calculate_settlement(hr, worked_example, SHORT_NOTICE).value
        assert settlement.breakdown["deductions"]["loan_recovery"] == "15000.00"
        assert settlement.total_recoverable == Decimal("60000.00")
        assert settlement.net_settlement_amount == Decimal("171076.92")

    def test_activity_recorded(self, settlement_service, exit_service, hr, worked_example):
        settlement_service.calculate_settlement(hr, worked_example, SHORT_NOTICE)

        entry = exit_service.get_exit_request(hr, worked_example).activity[-1]
        assert entry.action is ActivityAction.SETTLEMENT_CALCULATED
        assert entry.details["net_settlement_amount"] == "176076.92"
        assert entry.details["previous_settlement_status"] is None
        assert exit_service.verify_activity_chain(hr, worked_example) is True

    def test_employee_owes_company(self, session, clock, settlement_service, hr, employee_id,
                                   hr_approved_request, seed_profile, seed_payslip):
        seed_profile(employee_id, join_date=date(2022, 1, 10))
        seed_payslip(employee_id, 2024, 1, "10000")
        DuesLedgerService(session, clock).upsert_recoverable_due(
            hr, hr_approved_request.id, "advance", "25000",
        )

        settlement = settlement_service.calculate_settlement(
            hr, hr_approved_request.id, SettlementAdjustments(notice_period_required_days=0),
        ).value
        assert settlement.net_settlement_amount == Decimal("-15000.00")
        assert settlement.direction == "employee_pays_company"

    def test_missing_payslip_recorded_as_gap(self, settlement_service, hr, employee_id,
                                             hr_approved_request, seed_profile):
        seed_profile(employee_id)
        settlement = settlement_service.calculate_settlement(hr, hr_approved_request.id).value
        assert settlement.breakdown["data_quality_gaps"]

    def test_missing_profile(self, settlement_service, hr, hr_approved_request):
        with pytest.raises(ProfileNotFoundError):
            settlement_service.calculate_settlement(hr, hr_approved_request.id)
        assert settlement_service.get_settlement(hr_approved_request.id) is None

    def test_float_adjustment_rejected(self, settlement_service, hr, worked_example, captured_logs):
        with pytest.raises(ValidationError) as exc_info:
            settlement_service.calculate_settlement(
                hr, worked_example, SettlementAdjustments(leave_balance=12.5),
            )
        assert exc_info.value.fields == ("leave_balance",)
        assert settlement_service.get_settlement(worked_example) is None
        rollbacks = [r for r in captured_logs() if r["message"] == "transaction_rolled_back"]
        assert rollbacks[-1]["error_code"] == "VALIDATION_FAILED"

    def test_requires_hr(self, settlement_service, employee, hr_approved_request):
        with pytest.raises(ForbiddenError):
            settlement_service.calculate_settlement(employee, hr_approved_request.id)

    def test_request_not_yet_approved(self, settlement_service, hr, employee_id, open_request, seed_profile):
        seed_profile(employee_id)
        with pytest.raises(InvalidStatusError) as exc_info:
            settlement_service.calculate_settlement(hr, open_request.id)
        assert exc_info.value.current_status == "initiated"
        assert "hr_approved" in exc_info.value.allowed_statuses

    def test_allowed_after_settlement_started(self, settlement_service, exit_service, hr, worked_example):
        exit_service.promote_exit_request(hr, worked_example, "start_clearance")
        exit_service.promote_exit_request(hr, worked_example, "complete_clearance")
        exit_service.promote_exit_request(hr, worked_example, "begin_settlement")
        result = settlement_service.calculate_settlement(hr, worked_example, SHORT_NOTICE)
        assert result.value.net_settlement_amount == Decimal("176076.92")

    def test_not_allowed_once_completed(self, settlement_service, exit_service, hr, worked_example):
        exit_service.promote_exit_request(hr, worked_example, "start_clearance")
        exit_service.promote_exit_request(hr, worked_example, "complete_clearance")
        exit_service.complete_exit(hr, worked_example)
        with pytest.raises(InvalidStatusError):
            settlement_service.calculate_settlement(hr, worked_example)


class TestRecalculation:
    def test_recalculation_overwrites(self, session, clock, settlement_service, hr, worked_example):
        first = settlement_service.calculate_settlement(hr, worked_example, SHORT_NOTICE).value
        DuesLedgerService(session, clock).upsert_recoverable_due(
            hr, worked_example, "loan", "10000", description="second loan",
        )

        result = settlement_service.calculate_settlement(hr, worked_example, SHORT_NOTICE)
        assert result.message == "Settlement recalculated"
        assert result.value.id == first.id
        assert result.value.net_settlement_amount == Decimal("166076.92")

    def test_recalculation_resets_approval(self, settlement_service, hr, worked_example):
        settlement_service.calculate_settlement(hr, worked_example, SHORT_NOTICE)
        settlement_service.update_settlement_status(hr, worked_example, "approved")

        settlement = settlement_service.calculate_settlement(hr, worked_example, SHORT_NOTICE).value
        assert settlement.settlement_status is SettlementStatus.CALCULATED
        assert settlement.approved_at is None
        assert settlement.approved_by is None

    def test_paid_settlement_is_final(self, settlement_service, hr, worked_example):
        settlement_service.calculate_settlement(hr, worked_example, SHORT_NOTICE)
        settlement_service.update_settlement_status(hr, worked_example, "approved")
        settlement_service.update_settlement_status(hr, worked_example, "paid")

        with pytest.raises(InvalidStatusError) as exc_info:
            settlement_service.calculate_settlement(hr, worked_example, SHORT_NOTICE)
        assert exc_info.value.current_status == "paid"


# =============================================================================
# Payment lifecycle
# =============================================================================


class TestSettlementStatus:
    def test_approve_then_pay(self, settlement_service, exit_service, clock, hr, worked_example):
        settlement_service.calculate_settlement(hr, worked_example, SHORT_NOTICE)

        clock.advance(3600)
        approved = settlement_service.update_settlement_status(hr, worked_example, SettlementStatus.APPROVED)
        assert approved.message == "Settlement marked approved"
        assert approved.value.approved_at == clock.now()
        assert approved.value.approved_by == hr.user_id

        clock.advance(3600)
        paid = settlement_service.update_settlement_status(
            hr, worked_example, "paid", payment_reference="UTR-0001",
        )
        assert paid.value.settlement_status is SettlementStatus.PAID
        assert paid.value.paid_at == clock.now()
        assert paid.value.payment_reference == "UTR-0001"

        request = exit_service.get_exit_request(hr, worked_example).request
        assert request.settlement_completed_at == clock.now()
        assert request.status is ExitStatus.HR_APPROVED

        trail = exit_service.get_exit_request(hr, worked_example).activity
        assert [e.action for e in trail[-2:]] == [
            ActivityAction.SETTLEMENT_APPROVED,
            ActivityAction.SETTLEMENT_PAID,
        ]
        assert trail[-1].details["settlement_completed_stamped"] is True

    def test_cannot_pay_before_approval(self, settlement_service, hr, worked_example):
        settlement_service.calculate_settlement(hr, worked_example, SHORT_NOTICE)
        with pytest.raises(InvalidStatusError):
            settlement_service.update_settlement_status(hr, worked_example, "paid")

    def test_pay_twice(self, settlement_service, hr, worked_example):
        settlement_service.calculate_settlement(hr, worked_example, SHORT_NOTICE)
        settlement_service.update_settlement_status(hr, worked_example, "approved")
        settlement_service.update_settlement_status(hr, worked_example, "paid")
        with pytest.raises(AlreadyInStateError):
            settlement_service.update_settlement_status(hr, worked_example, "paid")

    def test_nothing_calculated(self, settlement_service, hr, hr_approved_request):
        with pytest.raises(SettlementNotFoundError):
            settlement_service.update_settlement_status(hr, hr_approved_request.id, "approved")

    def test_requires_hr(self, settlement_service, manager, hr, worked_example):
        settlement_service.calculate_settlement(hr, worked_example, SHORT_NOTICE)
        with pytest.raises(ForbiddenError):
            settlement_service.update_settlement_status(manager, worked_example, "approved")


class TestSettlementReporting:
    def test_metrics_sum_unpaid_settlements(self, settlement_service, exit_service, hr, worked_example):
        settlement_service.calculate_settlement(hr, worked_example, SHORT_NOTICE)
        assert exit_service.get_exit_metrics(hr).pending_settlement_amount == Decimal("176076.92")

        settlement_service.update_settlement_status(hr, worked_example, "approved")
        assert exit_service.get_exit_metrics(hr).pending_settlement_amount == Decimal("176076.92")

        settlement_service.update_settlement_status(hr, worked_example, "paid")
        assert exit_service.get_exit_metrics(hr).pending_settlement_amount == Decimal("0.00")

    def test_progress_steps(self, settlement_service, exit_service, hr, worked_example):
        settlement_service.calculate_settlement(hr, worked_example, SHORT_NOTICE)
        steps = exit_service.get_exit_progress(hr, worked_example).steps
        assert steps["settlement_calculated"] is True
        assert steps["settlement_approved"] is False

        settlement_service.update_settlement_status(hr, worked_example, "approved")
        assert exit_service.get_exit_progress(hr, worked_example).steps["settlement_approved"] is True


# =============================================================================
# Input assembly
# =============================================================================


USER_ID = uuid4()
LAPTOP = EmployeeAsset(id=uuid4(), user_id=USER_ID, asset_name="Laptop", assigned_date=date(2020, 3, 1))


class FakeProfiles:
    def __init__(self, profile=None, error=None):
        self.profile = profile
        self.error = error

    def get_profile_by_id(self, user_id):
        if self.error:
            raise self.error
        return self.profile


class FakePayroll:
    def __init__(self, payslips=(), error=None):
        self.payslips = list(payslips)
        self.error = error

    def get_payslips(self, user_id, year, month):
        if self.error:
            raise self.error
        return [p for p in self.payslips if (p.year, p.month) == (year, month)]


class FakeDues:
    def get_payable_dues(self, exit_request_id):
        return [DueLine("reimbursement", Decimal("1500"))]

    def get_recoverable_dues(self, exit_request_id):
        return [DueLine("loan", Decimal("10000"))]


class FakeAssets:
    def get_employee_assets(self, user_id):
        return [LAPTOP]

    def get_asset_recovery(self, exit_request_id):
        return [AssetRecovery(
            id=uuid4(),
            exit_request_id=exit_request_id,
            employee_asset_id=LAPTOP.id,
            recovery_status=RecoveryStatus.LOST,
            cost_recovery=Decimal("5000"),
        )]


def make_request() -> ExitRequest:
    return ExitRequest(
        id=uuid4(),
        user_id=USER_ID,
        status=ExitStatus.HR_APPROVED,
        exit_type=ExitType.RESIGNATION,
        resignation_date=date(2024, 1, 5),
        last_working_day=date(2024, 1, 15),
        version=3,
        initiated_by=USER_ID,
    )


def make_assembler(workers=1, profiles=None, payroll=None) -> SettlementInputAssembler:
    return SettlementInputAssembler(
        profiles or FakeProfiles(EmployeeProfile(
            user_id=USER_ID, monthly_ctc=Decimal("60000"), join_date=date(2019, 1, 10),
        )),
        payroll or FakePayroll([
            Payslip(USER_ID, 2024, 1, date(2024, 1, 28), Decimal("58000"), Decimal("58000")),
            Payslip(USER_ID, 2023, 12, date(2023, 12, 28), Decimal("60000"), Decimal("60000")),
        ]),
        FakeDues(),
        FakeAssets(),
        workers=workers,
    )


class TestSettlementInputAssembler:
    def test_inputs_from_collaborators(self):
        request = make_request()
        inputs = make_assembler().assemble(request, SHORT_NOTICE)

        assert inputs.exit_request_id == request.id
        assert inputs.compensation.monthly_ctc == Decimal("60000")
        assert inputs.payslip.net_pay == Decimal("58000")
        assert inputs.payslip.month == 1
        assert inputs.asset_recoveries[0].asset_name == "Laptop"
        assert inputs.asset_recoveries[0].recovery_status == "lost"
        assert inputs.asset_recoveries[0].asset_found is True
        assert inputs.recoverable_dues == (DueLine("loan", Decimal("10000")),)
        assert inputs.adjustments == SHORT_NOTICE

    def test_fan_out_matches_sequential(self):
        request = make_request()
        sequential = make_assembler(workers=1).assemble(request, SHORT_NOTICE)
        fanned_out = make_assembler(workers=4).assemble(request, SHORT_NOTICE)
        assert fanned_out == sequential

    def test_missing_profile(self):
        with pytest.raises(ProfileNotFoundError):
            make_assembler(profiles=FakeProfiles(None)).assemble(make_request(), SHORT_NOTICE)

    @pytest.mark.parametrize("workers", [1, 4])
    def test_failing_collaborator_wrapped(self, workers, captured_logs):
        payroll = FakePayroll(error=ConnectionError("payroll unavailable"))
        with pytest.raises(DependencyError) as exc_info:
            make_assembler(workers=workers, payroll=payroll).assemble(make_request(), SHORT_NOTICE)
        assert exc_info.value.source == "payslips"
        assert "payroll unavailable" in str(exc_info.value)
        assert any(r["message"] == "settlement_dependency_failed" for r in captured_logs())

    def test_kernel_errors_pass_through(self):
        profiles = FakeProfiles(error=ProfileNotFoundError(USER_ID))
        with pytest.raises(ProfileNotFoundError):
            make_assembler(profiles=profiles).assemble(make_request(), SHORT_NOTICE)

    def test_workers_must_be_positive(self):
        with pytest.raises(ValueError):
            make_assembler(workers=0)


class TestInjectedCollaborators:
    def test_service_fans_out_over_injected_stores(self, session, clock, hr, hr_approved_request):
        policy = ExitPolicy(
            name="fanout",
            salary_proration_basis="payslip_net",
            statutory_components=(),
            fanout_workers=4,
        )
        employee_id = hr_approved_request.user_id
        service = SettlementService(
            session,
            clock=clock,
            policy=policy,
            profiles=FakeProfiles(EmployeeProfile(
                user_id=employee_id, monthly_ctc=Decimal("60000"), join_date=date(2019, 1, 10),
            )),
            payroll=FakePayroll([
                Payslip(employee_id, 2024, 1, date(2024, 1, 28), Decimal("58000"), Decimal("58000")),
            ]),
            dues=FakeDues(),
            assets=FakeAssets(),
        )

        settlement = service.calculate_settlement(hr, hr_approved_request.id, SHORT_NOTICE).value
        # worked example plus the 1,500 reimbursement due
        assert settlement.net_settlement_amount == Decimal("177576.92")

    def test_dependency_failure_persists_nothing(self, session, clock, hr, policy, hr_approved_request):
        service = SettlementService(
            session,
            clock=clock,
            policy=policy,
            profiles=FakeProfiles(EmployeeProfile(user_id=hr_approved_request.user_id)),
            payroll=FakePayroll(error=TimeoutError("timed out")),
            dues=FakeDues(),
            assets=FakeAssets(),
        )
        with pytest.raises(DependencyError):
            service.calculate_settlement(hr, hr_approved_request.id)
        assert service.get_settlement(hr_approved_request.id) is None
