"""
Module: exit_engines
Responsibility:
    Re-exports the pure calculators used by settlement processing.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  May import exit_kernel
    (exceptions, types, logging) only.  MUST NOT import exit_modules or
    exit_config.

Invariants enforced:
    - Engines never read the clock; dates are explicit parameters.
    - Decimal-only arithmetic; floats are forbidden.
    - Identical inputs always produce identical outputs.
"""

from exit_engines.gratuity import GratuityResult, GratuityTerms, calculate_gratuity, service_span
from exit_engines.notice_period import NoticeShortfall, daily_equivalent_pay, evaluate_notice_shortfall
from exit_engines.settlement import (
    AssetRecoveryLine,
    CompensationFacts,
    DueLine,
    PayslipFacts,
    SettlementAdjustments,
    SettlementComputation,
    SettlementDirection,
    SettlementInputs,
    SettlementTerms,
    compute_settlement,
)

__all__ = [
    "GratuityResult",
    "GratuityTerms",
    "calculate_gratuity",
    "service_span",
    "NoticeShortfall",
    "daily_equivalent_pay",
    "evaluate_notice_shortfall",
    "AssetRecoveryLine",
    "CompensationFacts",
    "DueLine",
    "PayslipFacts",
    "SettlementAdjustments",
    "SettlementComputation",
    "SettlementDirection",
    "SettlementInputs",
    "SettlementTerms",
    "compute_settlement",
]
