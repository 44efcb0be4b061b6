"""
Exit policy schema (``exit_config.schema``).

Frozen dataclass describing every organization-policy constant the
calculators and services consume: gratuity threshold and formula,
notice-period defaults, leave encashment, salary proration, statutory
deductions and input fan-out width.

Validation runs in ``__post_init__`` and raises ``ValueError`` naming the
offending key, so a bad YAML file fails at load time rather than at the
first settlement.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass, field
from decimal import Decimal

from exit_kernel.logging_config import get_logger

logger = get_logger("config.schema")

SALARY_PRORATION_BASES = ("prorated_payslip_net", "payslip_net", "prorated_gross")
GRATUITY_WAGE_BASES = ("monthly_gross", "basic")


@dataclass(frozen=True)
class ExitPolicy:
    """Organization exit and settlement policy."""

    name: str = "default"
    version: int = 1

    # Gratuity
    gratuity_eligibility_years: int = 5
    gratuity_round_up_months: int = 6
    gratuity_days_per_year: Decimal = Decimal("15")
    gratuity_wage_divisor: Decimal = Decimal("26")
    gratuity_cap: Decimal | None = None
    gratuity_wage_basis: str = "monthly_gross"
    include_gratuity_in_settlement: bool = True

    # Notice period
    notice_period_days_default: int = 30
    daily_pay_divisor: Decimal = Decimal("30")

    # Earnings
    basic_salary_ratio: Decimal = Decimal("0.4")
    leave_encashment_divisor: Decimal = Decimal("30")
    leave_encashment_rate: Decimal = Decimal("1")
    salary_proration_basis: str = "prorated_payslip_net"

    # Deductions
    statutory_components: tuple[str, ...] = field(
        default=("pf_employee", "esi_employee", "professional_tax", "tds")
    )
    statutory_deduction_rate: Decimal = Decimal("0")

    # Input assembly
    fanout_workers: int = 1

    def __post_init__(self) -> None:
        errors: list[str] = []
        if self.gratuity_eligibility_years < 0:
            errors.append("gratuity_eligibility_years must be >= 0")
        if not 0 <= self.gratuity_round_up_months <= 12:
            errors.append("gratuity_round_up_months must be between 0 and 12")
        if self.gratuity_days_per_year < 0:
            errors.append("gratuity_days_per_year must be >= 0")
        if self.gratuity_cap is not None and self.gratuity_cap < 0:
            errors.append("gratuity_cap must be >= 0")
        for name in ("gratuity_wage_divisor", "daily_pay_divisor", "leave_encashment_divisor"):
            if getattr(self, name) <= 0:
                errors.append(f"{name} must be > 0")
        if self.notice_period_days_default < 0:
            errors.append("notice_period_days_default must be >= 0")
        if not 0 <= self.basic_salary_ratio <= 1:
            errors.append("basic_salary_ratio must be between 0 and 1")
        if self.leave_encashment_rate < 0:
            errors.append("leave_encashment_rate must be >= 0")
        if not 0 <= self.statutory_deduction_rate <= 1:
            errors.append("statutory_deduction_rate must be between 0 and 1")
        if self.salary_proration_basis not in SALARY_PRORATION_BASES:
            errors.append(f"salary_proration_basis must be one of {SALARY_PRORATION_BASES}")
        if self.gratuity_wage_basis not in GRATUITY_WAGE_BASES:
            errors.append(f"gratuity_wage_basis must be one of {GRATUITY_WAGE_BASES}")
        if self.fanout_workers < 1:
            errors.append("fanout_workers must be >= 1")
        if errors:
            logger.error("exit_policy_invalid", extra={"policy": self.name, "errors": errors})
            raise ValueError(f"Invalid exit policy {self.name!r}: " + "; ".join(errors))

    @property
    def checksum(self) -> str:
        """SHA-256 over the canonical JSON form of every policy field."""
        canonical = json.dumps(asdict(self), sort_keys=True, default=str)
        return hashlib.sha256(canonical.encode()).hexdigest()
