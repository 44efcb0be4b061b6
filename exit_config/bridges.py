"""
Policy -> engine bridges (``exit_config.bridges``).

Translate the flat ``ExitPolicy`` into the parameter objects the pure
engines accept, so engines never import configuration.
"""

from __future__ import annotations

from exit_config.schema import ExitPolicy
from exit_engines.gratuity import GratuityTerms
from exit_engines.settlement import GratuityWageBasis, SalaryProrationBasis, SettlementTerms


def build_gratuity_terms(policy: ExitPolicy) -> GratuityTerms:
    return GratuityTerms(
        eligibility_years=policy.gratuity_eligibility_years,
        round_up_months=policy.gratuity_round_up_months,
        days_per_year=policy.gratuity_days_per_year,
        wage_divisor=policy.gratuity_wage_divisor,
        cap=policy.gratuity_cap,
    )


def build_settlement_terms(policy: ExitPolicy) -> SettlementTerms:
    return SettlementTerms(
        basic_salary_ratio=policy.basic_salary_ratio,
        salary_proration_basis=SalaryProrationBasis(policy.salary_proration_basis),
        leave_encashment_divisor=policy.leave_encashment_divisor,
        leave_encashment_rate=policy.leave_encashment_rate,
        daily_pay_divisor=policy.daily_pay_divisor,
        notice_period_days_default=policy.notice_period_days_default,
        statutory_components=policy.statutory_components,
        statutory_deduction_rate=policy.statutory_deduction_rate,
        include_gratuity=policy.include_gratuity_in_settlement,
        gratuity_wage_basis=GratuityWageBasis(policy.gratuity_wage_basis),
        gratuity=build_gratuity_terms(policy),
        policy_checksum=policy.checksum,
    )
