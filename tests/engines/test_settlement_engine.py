"""
Tests for the final settlement engine.

Covers:
- The five-year resignation example end to end
- Salary proration bases and statutory deductions
- Asset and recoverable-due partitioning
- Missing payslip / join date degradation
- Validation that collects every error
- Sum invariants and determinism (property-based)
"""

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from exit_engines.settlement import (
    AssetRecoveryLine,
    CompensationFacts,
    DueLine,
    GratuityWageBasis,
    PayslipFacts,
    RecoverableDueCategory,
    SalaryProrationBasis,
    SettlementAdjustments,
    SettlementDirection,
    SettlementInputs,
    SettlementTerms,
    compute_settlement,
)
from exit_kernel.exceptions import ValidationError
from exit_kernel.utils.hashing import canonicalize_json

LAPTOP_ID = UUID("00000000-0000-0000-0000-00000000000a")
PHONE_ID = UUID("00000000-0000-0000-0000-00000000000b")
BADGE_ID = UUID("00000000-0000-0000-0000-00000000000c")

PAYSLIP_NET_TERMS = SettlementTerms(
    salary_proration_basis=SalaryProrationBasis.PAYSLIP_NET,
    statutory_components=(),
)


def make_inputs(**overrides) -> SettlementInputs:
    values = dict(
        exit_request_id=UUID("11111111-1111-1111-1111-111111111111"),
        resignation_date=date(2024, 1, 5),
        last_working_day=date(2024, 1, 15),
        compensation=CompensationFacts(
            monthly_ctc=Decimal("60000"),
            basic_salary=None,
            join_date=date(2019, 1, 10),
        ),
        payslip=PayslipFacts(year=2024, month=1, net_pay=Decimal("58000")),
        asset_recoveries=(
            AssetRecoveryLine(LAPTOP_ID, "lost", Decimal("5000"), asset_name="Laptop"),
        ),
        recoverable_dues=(DueLine("loan", Decimal("10000")),),
        adjustments=SettlementAdjustments(
            notice_period_required_days=30,
            notice_period_served_days=10,
        ),
    )
    values.update(overrides)
    return SettlementInputs(**values)


class TestFiveYearResignation:
    """Five years of service, short notice, a lost laptop and a loan."""

    def setup_method(self):
        self.result = compute_settlement(inputs=make_inputs(), terms=PAYSLIP_NET_TERMS)

    def test_gratuity(self):
        assert self.result.earnings["gratuity"] == Decimal("173076.92")
        assert self.result.gratuity.eligible is True
        assert self.result.gratuity.years_of_service == 5

    def test_notice_recovery(self):
        assert self.result.deductions["notice_period_recovery"] == Decimal("40000.00")
        assert self.result.notice.shortfall_days == 20

    def test_recoverable_total(self):
        assert self.result.deductions["asset_recovery"] == Decimal("5000.00")
        assert self.result.deductions["loan_recovery"] == Decimal("10000.00")
        assert self.result.total_recoverable == Decimal("55000.00")

    def test_payable_total_and_net(self):
        assert self.result.earnings["final_period_salary"] == Decimal("58000.00")
        assert self.result.total_payable == Decimal("231076.92")
        assert self.result.net_settlement_amount == Decimal("176076.92")
        assert self.result.direction is SettlementDirection.COMPANY_PAYS_EMPLOYEE

    def test_salary_paid_till_date_is_payslip_net(self):
        assert self.result.salary_paid_till_date == Decimal("58000.00")

    def test_breakdown_mirrors_totals(self):
        breakdown = self.result.breakdown
        assert breakdown["total_payable"] == self.result.total_payable
        assert breakdown["net_settlement_amount"] == self.result.net_settlement_amount
        assert breakdown["direction"] == "company_pays_employee"
        assert breakdown["assets"][0]["asset_name"] == "Laptop"
        assert breakdown["data_quality_gaps"] == []


class TestEarnings:
    def test_prorated_payslip_net_is_default(self):
        result = compute_settlement(inputs=make_inputs(), terms=SettlementTerms(statutory_components=()))
        # 58000 * 15 / 31
        assert result.earnings["final_period_salary"] == Decimal("28064.52")

    def test_prorated_gross_ignores_payslip(self):
        terms = SettlementTerms(
            salary_proration_basis=SalaryProrationBasis.PRORATED_GROSS,
            statutory_components=(),
        )
        result = compute_settlement(inputs=make_inputs(), terms=terms)
        # 60000 * 15 / 31
        assert result.earnings["final_period_salary"] == Decimal("29032.26")

    def test_leave_encashment_uses_derived_basic(self):
        inputs = make_inputs(adjustments=SettlementAdjustments(leave_balance=Decimal("10")))
        result = compute_settlement(inputs=inputs, terms=PAYSLIP_NET_TERMS)
        # basic = 0.4 * 60000; 10 days of basic / 30
        assert result.earnings["leave_encashment"] == Decimal("8000.00")

    def test_leave_encashment_prefers_profile_basic(self):
        inputs = make_inputs(
            compensation=CompensationFacts(
                monthly_ctc=Decimal("60000"), basic_salary=Decimal("30000"), join_date=date(2019, 1, 10),
            ),
            adjustments=SettlementAdjustments(leave_balance=Decimal("3")),
        )
        result = compute_settlement(inputs=inputs, terms=PAYSLIP_NET_TERMS)
        assert result.earnings["leave_encashment"] == Decimal("3000.00")

    def test_caller_supplied_amounts_included(self):
        inputs = make_inputs(adjustments=SettlementAdjustments(
            bonus_amount=Decimal("1000.005"),
            incentives_amount=Decimal("250"),
            reimbursements=Decimal("99.99"),
            notice_period_required_days=0,
        ))
        result = compute_settlement(inputs=inputs, terms=PAYSLIP_NET_TERMS)
        assert result.earnings["bonus"] == Decimal("1000.01")
        assert result.earnings["incentives"] == Decimal("250.00")
        assert result.earnings["reimbursements"] == Decimal("99.99")

    def test_payable_dues_summed(self):
        inputs = make_inputs(payable_dues=(
            DueLine("travel", Decimal("1200.50")),
            DueLine("relocation", Decimal("800")),
        ))
        result = compute_settlement(inputs=inputs, terms=PAYSLIP_NET_TERMS)
        assert result.earnings["payable_dues"] == Decimal("2000.50")
        assert [d["due_type"] for d in result.breakdown["payable_dues"]] == ["relocation", "travel"]

    def test_gratuity_on_basic_wage(self):
        terms = SettlementTerms(
            salary_proration_basis=SalaryProrationBasis.PAYSLIP_NET,
            statutory_components=(),
            gratuity_wage_basis=GratuityWageBasis.BASIC,
        )
        result = compute_settlement(inputs=make_inputs(), terms=terms)
        # 24000 / 26 * 15 * 5
        assert result.earnings["gratuity"] == Decimal("69230.77")

    def test_gratuity_excluded_by_terms(self):
        terms = SettlementTerms(
            salary_proration_basis=SalaryProrationBasis.PAYSLIP_NET,
            statutory_components=(),
            include_gratuity=False,
        )
        result = compute_settlement(inputs=make_inputs(), terms=terms)
        assert result.earnings["gratuity"] == Decimal("0.00")
        assert result.gratuity is None


class TestDeductions:
    def test_statutory_components_from_payslip(self):
        payslip = PayslipFacts(
            year=2024, month=1, net_pay=Decimal("58000"),
            deductions={
                "pf_employee": Decimal("1800"),
                "pf_employer": Decimal("1800"),
                "tds": Decimal("500"),
            },
        )
        result = compute_settlement(inputs=make_inputs(payslip=payslip), terms=SettlementTerms())
        # pf_employer is not an employee deduction
        assert result.deductions["statutory_deductions"] == Decimal("2300.00")
        assert result.breakdown["statutory_components"]["esi_employee"] == Decimal("0.00")

    def test_only_lost_or_damaged_assets_recovered(self):
        inputs = make_inputs(asset_recoveries=(
            AssetRecoveryLine(LAPTOP_ID, "lost", Decimal("5000")),
            AssetRecoveryLine(PHONE_ID, "returned", Decimal("3000")),
            AssetRecoveryLine(BADGE_ID, "damaged", Decimal("700")),
        ))
        result = compute_settlement(inputs=inputs, terms=PAYSLIP_NET_TERMS)
        assert result.deductions["asset_recovery"] == Decimal("5700.00")
        returned = [a for a in result.breakdown["assets"] if a["recovery_status"] == "returned"]
        assert returned[0]["cost_recovery"] == Decimal("0.00")

    def test_recoverable_dues_partitioned_by_type(self):
        inputs = make_inputs(recoverable_dues=(
            DueLine("Loan ", Decimal("100")),
            DueLine("ADVANCE", Decimal("200")),
            DueLine("canteen", Decimal("30")),
            DueLine("library", Decimal("20")),
        ))
        result = compute_settlement(inputs=inputs, terms=PAYSLIP_NET_TERMS)
        assert result.deductions["loan_recovery"] == Decimal("100.00")
        assert result.deductions["advance_recovery"] == Decimal("200.00")
        assert result.deductions["other_recovery"] == Decimal("50.00")

    def test_category_lookup(self):
        assert RecoverableDueCategory.of("loan") is RecoverableDueCategory.LOAN
        assert RecoverableDueCategory.of("Advance") is RecoverableDueCategory.ADVANCE
        assert RecoverableDueCategory.of("") is RecoverableDueCategory.OTHER

    def test_default_notice_days_when_not_supplied(self):
        inputs = make_inputs(adjustments=SettlementAdjustments(notice_period_served_days=25))
        result = compute_settlement(inputs=inputs, terms=PAYSLIP_NET_TERMS)
        # default 30 required, 5 short at 2000 a day
        assert result.deductions["notice_period_recovery"] == Decimal("10000.00")

    def test_employee_owes_company(self):
        terms = SettlementTerms(
            salary_proration_basis=SalaryProrationBasis.PAYSLIP_NET,
            statutory_components=(),
            include_gratuity=False,
        )
        inputs = make_inputs(recoverable_dues=(DueLine("advance", Decimal("100000")),))
        result = compute_settlement(inputs=inputs, terms=terms)
        # 58000 - (40000 + 5000 + 100000)
        assert result.net_settlement_amount == Decimal("-87000.00")
        assert result.direction is SettlementDirection.EMPLOYEE_PAYS_COMPANY


class TestDegradedInputs:
    def test_missing_payslip(self):
        result = compute_settlement(inputs=make_inputs(payslip=None), terms=PAYSLIP_NET_TERMS)
        assert result.salary_paid_till_date == Decimal("0.00")
        assert result.earnings["final_period_salary"] == Decimal("29032.26")
        assert result.deductions["statutory_deductions"] == Decimal("0.00")
        assert {"type": "payslip_missing", "year": 2024, "month": 1} in result.breakdown["data_quality_gaps"]

    def test_missing_payslip_applies_statutory_rate(self):
        terms = SettlementTerms(statutory_deduction_rate=Decimal("0.1"))
        result = compute_settlement(inputs=make_inputs(payslip=None), terms=terms)
        assert result.deductions["statutory_deductions"] == Decimal("2903.23")

    def test_missing_join_date_falls_back_to_resignation_date(self):
        inputs = make_inputs(compensation=CompensationFacts(monthly_ctc=Decimal("60000"), basic_salary=None))
        result = compute_settlement(inputs=inputs, terms=PAYSLIP_NET_TERMS)
        assert result.gratuity.eligible is False
        assert result.earnings["gratuity"] == Decimal("0.00")
        gap_types = [g["type"] for g in result.breakdown["data_quality_gaps"]]
        assert "join_date_missing" in gap_types

    def test_missing_asset_reported_as_gap(self):
        inputs = make_inputs(asset_recoveries=(
            AssetRecoveryLine(LAPTOP_ID, "lost", Decimal("5000"), asset_found=False),
        ))
        result = compute_settlement(inputs=inputs, terms=PAYSLIP_NET_TERMS)
        assert result.deductions["asset_recovery"] == Decimal("5000.00")
        assert {"type": "employee_asset_missing", "employee_asset_id": LAPTOP_ID} in (
            result.breakdown["data_quality_gaps"]
        )

    def test_basic_salary_only_profile(self):
        inputs = make_inputs(compensation=CompensationFacts(
            monthly_ctc=None, basic_salary=Decimal("30000"), join_date=date(2019, 1, 10),
        ))
        result = compute_settlement(inputs=inputs, terms=PAYSLIP_NET_TERMS)
        # daily pay falls back to basic: 30000 / 30 * 20
        assert result.deductions["notice_period_recovery"] == Decimal("20000.00")


class TestValidation:
    def test_all_errors_collected(self):
        inputs = make_inputs(
            compensation=CompensationFacts(monthly_ctc=None, basic_salary=None),
            adjustments=SettlementAdjustments(
                bonus_amount=Decimal("-1"),
                notice_period_served_days=-3,
            ),
            recoverable_dues=(DueLine("loan", Decimal("-5")),),
        )
        with pytest.raises(ValidationError) as exc_info:
            compute_settlement(inputs=inputs, terms=PAYSLIP_NET_TERMS)
        assert set(exc_info.value.fields) == {
            "bonus_amount",
            "notice_period_served_days",
            "monthly_ctc",
            "recoverable_dues[0].amount",
        }

    @pytest.mark.parametrize("field,value", [
        ("leave_balance", 12.5),
        ("bonus_amount", "5000"),
        ("incentives_amount", 1000),
        ("reimbursements", Decimal("NaN")),
        ("reimbursements", None),
    ])
    def test_non_decimal_amount_rejected(self, field, value):
        inputs = make_inputs(adjustments=SettlementAdjustments(**{field: value}))
        with pytest.raises(ValidationError) as exc_info:
            compute_settlement(inputs=inputs, terms=PAYSLIP_NET_TERMS)
        assert exc_info.value.fields == (field,)

    @pytest.mark.parametrize("field,value", [
        ("notice_period_required_days", 30.0),
        ("notice_period_served_days", None),
        ("notice_period_served_days", Decimal("10")),
    ])
    def test_malformed_notice_days_rejected(self, field, value):
        inputs = make_inputs(adjustments=SettlementAdjustments(**{field: value}))
        with pytest.raises(ValidationError) as exc_info:
            compute_settlement(inputs=inputs, terms=PAYSLIP_NET_TERMS)
        assert exc_info.value.fields == (field,)

    def test_every_malformed_adjustment_listed(self):
        inputs = make_inputs(adjustments=SettlementAdjustments(
            leave_balance=12.5, bonus_amount=100.0, notice_period_served_days=None,
        ))
        with pytest.raises(ValidationError) as exc_info:
            compute_settlement(inputs=inputs, terms=PAYSLIP_NET_TERMS)
        assert set(exc_info.value.fields) == {"leave_balance", "bonus_amount", "notice_period_served_days"}

    def test_decimal_amounts_accepted(self):
        inputs = make_inputs(adjustments=SettlementAdjustments(bonus_amount=Decimal("1000"), notice_period_served_days=30))
        result = compute_settlement(inputs=inputs, terms=PAYSLIP_NET_TERMS)
        assert result.earnings["bonus"] == Decimal("1000.00")

    def test_last_working_day_before_resignation(self):
        inputs = make_inputs(resignation_date=date(2024, 2, 1))
        with pytest.raises(ValidationError) as exc_info:
            compute_settlement(inputs=inputs, terms=PAYSLIP_NET_TERMS)
        assert "last_working_day" in exc_info.value.fields

    def test_join_date_after_last_working_day(self):
        inputs = make_inputs(compensation=CompensationFacts(
            monthly_ctc=Decimal("60000"), basic_salary=None, join_date=date(2024, 6, 1),
        ))
        with pytest.raises(ValidationError) as exc_info:
            compute_settlement(inputs=inputs, terms=PAYSLIP_NET_TERMS)
        assert exc_info.value.fields == ("join_date",)


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------

amounts = st.decimals(min_value=Decimal("0"), max_value=Decimal("1000000"), places=3)
due_lines = st.lists(
    st.builds(DueLine, due_type=st.sampled_from(["loan", "advance", "canteen", "travel"]), amount=amounts),
    max_size=4,
)
asset_lines = st.lists(
    st.builds(
        AssetRecoveryLine,
        employee_asset_id=st.uuids(),
        recovery_status=st.sampled_from(["returned", "lost", "damaged", "pending"]),
        cost_recovery=amounts,
    ),
    max_size=4,
)
adjustments = st.builds(
    SettlementAdjustments,
    leave_balance=st.decimals(min_value=Decimal("0"), max_value=Decimal("90"), places=1),
    bonus_amount=amounts,
    incentives_amount=amounts,
    reimbursements=amounts,
    notice_period_required_days=st.one_of(st.none(), st.integers(min_value=0, max_value=90)),
    notice_period_served_days=st.integers(min_value=0, max_value=90),
)


class TestSettlementProperties:
    @given(adj=adjustments, payable=due_lines, recoverable=due_lines, assets=asset_lines)
    @settings(max_examples=150)
    def test_totals_are_sums_of_rounded_components(self, adj, payable, recoverable, assets):
        result = compute_settlement(
            inputs=make_inputs(
                adjustments=adj,
                payable_dues=tuple(payable),
                recoverable_dues=tuple(recoverable),
                asset_recoveries=tuple(assets),
            ),
            terms=PAYSLIP_NET_TERMS,
        )
        for value in list(result.earnings.values()) + list(result.deductions.values()):
            assert value >= 0
            assert value.as_tuple().exponent == -2
        assert result.total_payable == sum(result.earnings.values())
        assert result.total_recoverable == sum(result.deductions.values())
        assert result.net_settlement_amount == result.total_payable - result.total_recoverable

        net = result.net_settlement_amount
        expected = (
            SettlementDirection.COMPANY_PAYS_EMPLOYEE if net > 0
            else SettlementDirection.EMPLOYEE_PAYS_COMPANY if net < 0
            else SettlementDirection.FULLY_SETTLED
        )
        assert result.direction is expected

    @given(adj=adjustments, recoverable=due_lines, assets=asset_lines)
    @settings(max_examples=50)
    def test_deterministic(self, adj, recoverable, assets):
        inputs = make_inputs(
            adjustments=adj,
            recoverable_dues=tuple(recoverable),
            asset_recoveries=tuple(assets),
        )
        first = compute_settlement(inputs=inputs, terms=PAYSLIP_NET_TERMS)
        second = compute_settlement(inputs=inputs, terms=PAYSLIP_NET_TERMS)
        assert canonicalize_json(first.breakdown) == canonicalize_json(second.breakdown)

    def test_dues_order_does_not_change_breakdown(self):
        dues = (DueLine("loan", Decimal("10")), DueLine("advance", Decimal("20")))
        a = compute_settlement(inputs=make_inputs(recoverable_dues=dues), terms=PAYSLIP_NET_TERMS)
        b = compute_settlement(inputs=make_inputs(recoverable_dues=dues[::-1]), terms=PAYSLIP_NET_TERMS)
        assert canonicalize_json(a.breakdown) == canonicalize_json(b.breakdown)

    def test_exit_request_id_does_not_affect_breakdown(self):
        a = compute_settlement(inputs=make_inputs(), terms=PAYSLIP_NET_TERMS)
        b = compute_settlement(inputs=make_inputs(exit_request_id=uuid4()), terms=PAYSLIP_NET_TERMS)
        assert a.breakdown == b.breakdown
