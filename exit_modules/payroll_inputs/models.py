"""
Payroll input DTOs (``exit_modules.payroll_inputs.models``).

Read-only views of the employee profile and payslip records the settlement
engine consumes.  Owned by upstream HR/payroll systems; exit processing
never writes them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from uuid import UUID

PAYSLIP_DEDUCTION_COMPONENTS = (
    "pf_employee",
    "pf_employer",
    "esi_employee",
    "esi_employer",
    "professional_tax",
    "tds",
    "other_deductions",
)


@dataclass(frozen=True)
class EmployeeProfile:
    user_id: UUID
    monthly_ctc: Decimal | None = None
    basic_salary: Decimal | None = None
    join_date: date | None = None
    employment_type: str | None = None
    full_name: str | None = None
    employee_code: str | None = None
    department: str | None = None


@dataclass(frozen=True)
class Payslip:
    """One issued payslip.  ``deductions`` is keyed by component name."""

    user_id: UUID
    year: int
    month: int
    pay_date: date
    gross_pay: Decimal
    net_pay: Decimal
    deductions: dict[str, Decimal] = field(default_factory=dict)
