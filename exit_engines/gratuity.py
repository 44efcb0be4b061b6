"""
exit_engines.gratuity -- Tenure-based gratuity eligibility and amount.

Responsibility:
    Pure function of (last drawn salary, join date, last working day,
    terms) -> eligibility, years of service and gratuity amount.

Architecture position:
    Engines -- pure calculation layer, zero I/O, no clock access.

Invariants enforced:
    - Service span is inclusive of both join date and last working day.
      Completed years are counted as whole anniversaries of the join date
      on or before the day after the last working day.  An anniversary of
      29 February falls on 28 February in non-leap years.
    - Eligibility uses completed years only: exactly the threshold is
      eligible, one day short is not.
    - Reported years of service round up by one when the months completed
      in the final partial year reach ``round_up_months``.
    - Ineligible -> amount 0.00 and eligible False (never an error).
    - amount = salary / wage_divisor * days_per_year * years_of_service,
      capped when a cap is configured, rounded half-up to 2 places.

Failure modes:
    - ValidationError for negative salary, last working day before the
      join date, or non-positive divisors.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal

from exit_engines.tracer import traced_engine
from exit_kernel.db.types import ZERO, round_money
from exit_kernel.exceptions import FieldError, ValidationError


@dataclass(frozen=True)
class GratuityTerms:
    """Organization gratuity policy parameters."""

    eligibility_years: int = 5
    round_up_months: int = 6
    days_per_year: Decimal = Decimal("15")
    wage_divisor: Decimal = Decimal("26")
    cap: Decimal | None = None


@dataclass(frozen=True)
class ServiceSpan:
    """Whole years and months served in the final partial year."""

    completed_years: int
    residual_months: int


@dataclass(frozen=True)
class GratuityResult:
    eligible: bool
    completed_years: int
    years_of_service: int
    residual_months: int
    last_drawn_salary: Decimal
    gratuity_amount: Decimal

    def to_dict(self) -> dict[str, object]:
        return {
            "eligible": self.eligible,
            "completed_years": self.completed_years,
            "years_of_service": self.years_of_service,
            "residual_months": self.residual_months,
            "last_drawn_salary": self.last_drawn_salary,
            "gratuity_amount": self.gratuity_amount,
        }


def add_months(start: date, months: int) -> date:
    """Shift ``start`` by whole months, clamping to the last day of the month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def service_span(join_date: date, last_working_day: date) -> ServiceSpan:
    """Count completed years and residual months of the inclusive span."""
    end = last_working_day + timedelta(days=1)

    years = end.year - join_date.year
    if add_months(join_date, 12 * years) > end:
        years -= 1
    years = max(years, 0)

    anniversary = add_months(join_date, 12 * years)
    months = 0
    while months < 11 and add_months(anniversary, months + 1) <= end:
        months += 1

    return ServiceSpan(completed_years=years, residual_months=months)


def _validate(last_drawn_salary: Decimal, join_date: date, last_working_day: date, terms: GratuityTerms) -> None:
    errors: list[FieldError] = []
    if last_drawn_salary < ZERO:
        errors.append(FieldError("last_drawn_salary", "must be non-negative"))
    if last_working_day < join_date:
        errors.append(FieldError("last_working_day", "must not be before join_date"))
    if terms.wage_divisor <= ZERO:
        errors.append(FieldError("gratuity_wage_divisor", "must be positive"))
    if terms.eligibility_years < 0:
        errors.append(FieldError("gratuity_eligibility_years", "must be non-negative"))
    if errors:
        raise ValidationError(errors)


@traced_engine(
    "gratuity", "1.0",
    fingerprint_fields=("last_drawn_salary", "join_date", "last_working_day", "terms"),
)
def calculate_gratuity(
    *,
    last_drawn_salary: Decimal,
    join_date: date,
    last_working_day: date,
    terms: GratuityTerms = GratuityTerms(),
) -> GratuityResult:
    """
    Compute gratuity eligibility and amount.

    Preconditions: last_drawn_salary >= 0 and last_working_day >= join_date.
    Postconditions: gratuity_amount has 2 decimal places and is 0.00 when
        ineligible.
    """
    _validate(last_drawn_salary, join_date, last_working_day, terms)

    span = service_span(join_date, last_working_day)
    years_of_service = span.completed_years
    if span.residual_months >= terms.round_up_months:
        years_of_service += 1

    eligible = span.completed_years >= terms.eligibility_years

    amount = ZERO
    if eligible:
        amount = last_drawn_salary / terms.wage_divisor * terms.days_per_year * years_of_service
        if terms.cap is not None:
            amount = min(amount, terms.cap)

    return GratuityResult(
        eligible=eligible,
        completed_years=span.completed_years,
        years_of_service=years_of_service,
        residual_months=span.residual_months,
        last_drawn_salary=last_drawn_salary,
        gratuity_amount=round_money(amount),
    )
