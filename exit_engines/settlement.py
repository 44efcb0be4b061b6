"""
exit_engines.settlement -- Final settlement computation.

Responsibility:
    Combine compensation facts, the final-month payslip, asset recoveries,
    payable and recoverable dues, notice-period compliance and gratuity
    into one net settlement figure with an itemized breakdown.

Architecture position:
    Engines -- pure calculation layer, zero I/O, no clock access.
    Consumed by ``exit_modules.settlement.service``, which assembles the
    inputs from collaborators and persists the result.

Invariants enforced:
    - Determinism: identical inputs produce identical totals and an
      identical breakdown (no timestamps, sorted keys on serialization).
    - Every component is rounded half-up to 2 places BEFORE summation, so
      total_payable and total_recoverable are exact sums of the breakdown
      and net_settlement_amount == total_payable - total_recoverable.
    - Asset cost recovery counts only recoveries in status lost or damaged.
    - Recoverable dues are partitioned by due_type into loan, advance and
      other; unknown due types fall into other.
    - A missing payslip is tolerated: salary-paid-till-date is 0 and the
      final-period salary falls back to prorated monthly gross.

Failure modes:
    - ValidationError listing every malformed or out-of-range input.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

from exit_engines.gratuity import GratuityResult, GratuityTerms, calculate_gratuity
from exit_engines.notice_period import NoticeShortfall, daily_equivalent_pay, evaluate_notice_shortfall
from exit_engines.tracer import traced_engine
from exit_kernel.db.types import ZERO, round_money
from exit_kernel.exceptions import FieldError, ValidationError
from exit_kernel.logging_config import get_logger

logger = get_logger("engines.settlement")

RECOVERABLE_ASSET_STATUSES = frozenset({"lost", "damaged"})


class SalaryProrationBasis(str, Enum):
    """How the final-period salary is derived."""

    PRORATED_PAYSLIP_NET = "prorated_payslip_net"  # net pay x worked days / days in month
    PAYSLIP_NET = "payslip_net"                    # final payslip already covers worked days
    PRORATED_GROSS = "prorated_gross"              # monthly gross x worked days / days in month


class GratuityWageBasis(str, Enum):
    MONTHLY_GROSS = "monthly_gross"
    BASIC = "basic"


class SettlementDirection(str, Enum):
    COMPANY_PAYS_EMPLOYEE = "company_pays_employee"
    EMPLOYEE_PAYS_COMPANY = "employee_pays_company"
    FULLY_SETTLED = "fully_settled"


class RecoverableDueCategory(str, Enum):
    LOAN = "loan"
    ADVANCE = "advance"
    OTHER = "other"

    @classmethod
    def of(cls, due_type: str) -> RecoverableDueCategory:
        normalized = (due_type or "").strip().lower()
        if normalized == cls.LOAN.value:
            return cls.LOAN
        if normalized == cls.ADVANCE.value:
            return cls.ADVANCE
        return cls.OTHER


@dataclass(frozen=True)
class SettlementTerms:
    """Organization settlement policy parameters."""

    basic_salary_ratio: Decimal = Decimal("0.4")
    salary_proration_basis: SalaryProrationBasis = SalaryProrationBasis.PRORATED_PAYSLIP_NET
    leave_encashment_divisor: Decimal = Decimal("30")
    leave_encashment_rate: Decimal = Decimal("1")
    daily_pay_divisor: Decimal = Decimal("30")
    notice_period_days_default: int = 30
    statutory_components: tuple[str, ...] = ("pf_employee", "esi_employee", "professional_tax", "tds")
    statutory_deduction_rate: Decimal = Decimal("0")
    include_gratuity: bool = True
    gratuity_wage_basis: GratuityWageBasis = GratuityWageBasis.MONTHLY_GROSS
    gratuity: GratuityTerms = GratuityTerms()
    policy_checksum: str | None = None


@dataclass(frozen=True)
class CompensationFacts:
    """Salary facts from the employee profile."""

    monthly_ctc: Decimal | None
    basic_salary: Decimal | None
    join_date: date | None = None
    employment_type: str | None = None


@dataclass(frozen=True)
class PayslipFacts:
    """The most recent payslip for the last-working-day month."""

    year: int
    month: int
    net_pay: Decimal
    deductions: Mapping[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class AssetRecoveryLine:
    employee_asset_id: UUID
    recovery_status: str
    cost_recovery: Decimal
    asset_name: str | None = None
    asset_found: bool = True


@dataclass(frozen=True)
class DueLine:
    due_type: str
    amount: Decimal
    description: str | None = None


@dataclass(frozen=True)
class SettlementAdjustments:
    """Caller-supplied settlement inputs."""

    leave_balance: Decimal = ZERO
    bonus_amount: Decimal = ZERO
    incentives_amount: Decimal = ZERO
    reimbursements: Decimal = ZERO
    notice_period_required_days: int | None = None
    notice_period_served_days: int = 0


@dataclass(frozen=True)
class SettlementInputs:
    exit_request_id: UUID
    resignation_date: date
    last_working_day: date
    compensation: CompensationFacts
    payslip: PayslipFacts | None = None
    asset_recoveries: tuple[AssetRecoveryLine, ...] = ()
    payable_dues: tuple[DueLine, ...] = ()
    recoverable_dues: tuple[DueLine, ...] = ()
    adjustments: SettlementAdjustments = SettlementAdjustments()


@dataclass(frozen=True)
class SettlementComputation:
    earnings: dict[str, Decimal]
    deductions: dict[str, Decimal]
    total_payable: Decimal
    total_recoverable: Decimal
    net_settlement_amount: Decimal
    direction: SettlementDirection
    salary_paid_till_date: Decimal
    notice: NoticeShortfall
    gratuity: GratuityResult | None
    breakdown: dict[str, Any]


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _amount_problem(value: Any) -> str | None:
    if not isinstance(value, Decimal):
        return f"must be a Decimal amount, got {type(value).__name__}"
    if not value.is_finite():
        return "must be a finite amount"
    if value < ZERO:
        return "must be non-negative"
    return None


def _days_problem(value: Any, *, optional: bool) -> str | None:
    if value is None:
        return None if optional else "is required"
    if isinstance(value, bool) or not isinstance(value, int):
        return f"must be a whole number of days, got {type(value).__name__}"
    if value < 0:
        return "must be non-negative"
    return None


def validate_settlement_inputs(inputs: SettlementInputs, terms: SettlementTerms) -> list[FieldError]:
    """Collect every problem with the inputs; empty list means valid."""
    errors: list[FieldError] = []
    adj = inputs.adjustments

    for name in ("leave_balance", "bonus_amount", "incentives_amount", "reimbursements"):
        problem = _amount_problem(getattr(adj, name))
        if problem:
            errors.append(FieldError(name, problem))
    for name, optional in (("notice_period_required_days", True), ("notice_period_served_days", False)):
        problem = _days_problem(getattr(adj, name), optional=optional)
        if problem:
            errors.append(FieldError(name, problem))

    comp = inputs.compensation
    if comp.monthly_ctc is None and comp.basic_salary is None:
        errors.append(FieldError("monthly_ctc", "profile has neither monthly_ctc nor basic_salary"))
    for name in ("monthly_ctc", "basic_salary"):
        value = getattr(comp, name)
        if value is not None and value < ZERO:
            errors.append(FieldError(name, "must be non-negative"))
    if comp.join_date is not None and comp.join_date > inputs.last_working_day:
        errors.append(FieldError("join_date", "must not be after last_working_day"))

    if inputs.last_working_day < inputs.resignation_date:
        errors.append(FieldError("last_working_day", "must not be before resignation_date"))

    if inputs.payslip is not None and inputs.payslip.net_pay < ZERO:
        errors.append(FieldError("payslip.net_pay", "must be non-negative"))

    for i, line in enumerate(inputs.asset_recoveries):
        if line.cost_recovery < ZERO:
            errors.append(FieldError(f"asset_recoveries[{i}].cost_recovery", "must be non-negative"))
    for label, dues in (("payable_dues", inputs.payable_dues), ("recoverable_dues", inputs.recoverable_dues)):
        for i, due in enumerate(dues):
            if due.amount < ZERO:
                errors.append(FieldError(f"{label}[{i}].amount", "must be non-negative"))

    if terms.leave_encashment_divisor <= ZERO:
        errors.append(FieldError("leave_encashment_divisor", "must be positive"))
    if terms.daily_pay_divisor <= ZERO:
        errors.append(FieldError("daily_pay_divisor", "must be positive"))

    return errors


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


def monthly_gross_of(comp: CompensationFacts) -> Decimal:
    if comp.monthly_ctc is not None:
        return comp.monthly_ctc
    return comp.basic_salary if comp.basic_salary is not None else ZERO


def basic_salary_of(comp: CompensationFacts, terms: SettlementTerms) -> Decimal:
    if comp.basic_salary is not None:
        return comp.basic_salary
    return monthly_gross_of(comp) * terms.basic_salary_ratio


def final_period_salary(
    last_working_day: date,
    monthly_gross: Decimal,
    payslip: PayslipFacts | None,
    basis: SalaryProrationBasis,
) -> Decimal:
    """Salary earned in the last-working-day month, before rounding."""
    days_in_month = calendar.monthrange(last_working_day.year, last_working_day.month)[1]
    worked = Decimal(last_working_day.day) / Decimal(days_in_month)

    if payslip is not None and basis is SalaryProrationBasis.PAYSLIP_NET:
        return payslip.net_pay
    if payslip is not None and basis is SalaryProrationBasis.PRORATED_PAYSLIP_NET:
        return payslip.net_pay * worked
    return monthly_gross * worked


def statutory_deductions(
    payslip: PayslipFacts | None,
    final_salary: Decimal,
    terms: SettlementTerms,
) -> tuple[Decimal, dict[str, Decimal]]:
    """Total statutory deductions and the per-component detail."""
    if payslip is None:
        amount = round_money(final_salary * terms.statutory_deduction_rate)
        return amount, {"rate_based": amount}

    detail = {
        name: round_money(payslip.deductions.get(name, ZERO))
        for name in terms.statutory_components
    }
    return round_money(sum(detail.values(), ZERO)), detail


def _sum_rounded(amounts) -> Decimal:
    return round_money(sum(amounts, ZERO))


def _ordered(dues: tuple[DueLine, ...]) -> list[DueLine]:
    return sorted(dues, key=lambda d: (d.due_type, d.description or "", d.amount))


def _direction(net: Decimal) -> SettlementDirection:
    if net > ZERO:
        return SettlementDirection.COMPANY_PAYS_EMPLOYEE
    if net < ZERO:
        return SettlementDirection.EMPLOYEE_PAYS_COMPANY
    return SettlementDirection.FULLY_SETTLED


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


@traced_engine("settlement", "1.0", fingerprint_fields=("inputs", "terms"))
def compute_settlement(*, inputs: SettlementInputs, terms: SettlementTerms = SettlementTerms()) -> SettlementComputation:
    """
    Compute the final settlement.

    Raises:
        ValidationError: Listing every invalid input; nothing is computed.
    """
    errors = validate_settlement_inputs(inputs, terms)
    if errors:
        logger.warning(
            "settlement_inputs_invalid",
            extra={
                "exit_request_id": str(inputs.exit_request_id),
                "fields": [e.field for e in errors],
            },
        )
        raise ValidationError(errors)

    comp = inputs.compensation
    adj = inputs.adjustments
    gaps: list[dict[str, Any]] = []

    monthly_gross = monthly_gross_of(comp)
    basic = basic_salary_of(comp, terms)

    if inputs.payslip is None:
        gaps.append({"type": "payslip_missing", "year": inputs.last_working_day.year,
                     "month": inputs.last_working_day.month})
    salary_paid_till_date = round_money(inputs.payslip.net_pay) if inputs.payslip else round_money(ZERO)

    # Earnings
    final_salary = round_money(
        final_period_salary(inputs.last_working_day, monthly_gross, inputs.payslip, terms.salary_proration_basis)
    )
    leave_encashment = round_money(
        adj.leave_balance * basic / terms.leave_encashment_divisor * terms.leave_encashment_rate
    )
    payable_dues = _sum_rounded(d.amount for d in inputs.payable_dues)

    gratuity: GratuityResult | None = None
    gratuity_amount = round_money(ZERO)
    if terms.include_gratuity:
        join_date = comp.join_date
        if join_date is None:
            join_date = inputs.resignation_date
            gaps.append({"type": "join_date_missing", "fallback": "resignation_date"})
        wage = monthly_gross if terms.gratuity_wage_basis is GratuityWageBasis.MONTHLY_GROSS else basic
        gratuity = calculate_gratuity(
            last_drawn_salary=wage,
            join_date=join_date,
            last_working_day=inputs.last_working_day,
            terms=terms.gratuity,
        )
        gratuity_amount = gratuity.gratuity_amount

    earnings: dict[str, Decimal] = {
        "final_period_salary": final_salary,
        "leave_encashment": leave_encashment,
        "bonus": round_money(adj.bonus_amount),
        "incentives": round_money(adj.incentives_amount),
        "reimbursements": round_money(adj.reimbursements),
        "payable_dues": payable_dues,
        "gratuity": gratuity_amount,
    }

    # Deductions
    statutory_total, statutory_detail = statutory_deductions(inputs.payslip, final_salary, terms)

    required_days = (
        adj.notice_period_required_days
        if adj.notice_period_required_days is not None
        else terms.notice_period_days_default
    )
    notice = evaluate_notice_shortfall(
        required_days=required_days,
        served_days=adj.notice_period_served_days,
        daily_pay=daily_equivalent_pay(monthly_gross, terms.daily_pay_divisor),
    )

    asset_lines: list[dict[str, Any]] = []
    asset_recovery = round_money(ZERO)
    for line in sorted(inputs.asset_recoveries, key=lambda l: str(l.employee_asset_id)):
        counted = line.recovery_status in RECOVERABLE_ASSET_STATUSES
        amount = round_money(line.cost_recovery) if counted else round_money(ZERO)
        asset_recovery += amount
        asset_lines.append({
            "employee_asset_id": line.employee_asset_id,
            "asset_name": line.asset_name,
            "recovery_status": line.recovery_status,
            "cost_recovery": amount,
        })
        if not line.asset_found:
            gaps.append({"type": "employee_asset_missing", "employee_asset_id": line.employee_asset_id})

    by_category: dict[RecoverableDueCategory, Decimal] = {c: round_money(ZERO) for c in RecoverableDueCategory}
    for due in inputs.recoverable_dues:
        by_category[RecoverableDueCategory.of(due.due_type)] += round_money(due.amount)

    deductions: dict[str, Decimal] = {
        "statutory_deductions": statutory_total,
        "notice_period_recovery": notice.recovery_amount,
        "asset_recovery": asset_recovery,
        "loan_recovery": by_category[RecoverableDueCategory.LOAN],
        "advance_recovery": by_category[RecoverableDueCategory.ADVANCE],
        "other_recovery": by_category[RecoverableDueCategory.OTHER],
    }

    total_payable = sum(earnings.values(), ZERO)
    total_recoverable = sum(deductions.values(), ZERO)
    net = total_payable - total_recoverable
    direction = _direction(net)

    breakdown: dict[str, Any] = {
        "earnings": earnings,
        "deductions": deductions,
        "total_payable": total_payable,
        "total_recoverable": total_recoverable,
        "net_settlement_amount": net,
        "direction": direction.value,
        "salary_paid_till_date": salary_paid_till_date,
        "statutory_components": statutory_detail,
        "notice_period": notice.to_dict(),
        "gratuity": gratuity.to_dict() if gratuity else None,
        "assets": asset_lines,
        "recoverable_dues": [
            {"due_type": d.due_type, "category": RecoverableDueCategory.of(d.due_type).value,
             "amount": round_money(d.amount), "description": d.description}
            for d in _ordered(inputs.recoverable_dues)
        ],
        "payable_dues": [
            {"due_type": d.due_type, "amount": round_money(d.amount), "description": d.description}
            for d in _ordered(inputs.payable_dues)
        ],
        "inputs": {
            "monthly_gross": monthly_gross,
            "basic_salary": basic,
            "leave_balance": adj.leave_balance,
            "last_working_day": inputs.last_working_day,
            "salary_proration_basis": terms.salary_proration_basis.value,
        },
        "data_quality_gaps": gaps,
        "policy_checksum": terms.policy_checksum,
    }

    return SettlementComputation(
        earnings=earnings,
        deductions=deductions,
        total_payable=total_payable,
        total_recoverable=total_recoverable,
        net_settlement_amount=net,
        direction=direction,
        salary_paid_till_date=salary_paid_till_date,
        notice=notice,
        gratuity=gratuity,
        breakdown=breakdown,
    )
