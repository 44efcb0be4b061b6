"""
Final Settlement (``exit_modules.settlement``).

Assembles collaborator data for one exit request, runs the pure settlement
engine, and persists the result with its payment lifecycle
(calculated -> approved -> paid).
"""

from exit_modules.settlement.assembler import SettlementInputAssembler
from exit_modules.settlement.models import Settlement, SettlementStatus
from exit_modules.settlement.service import SettlementService
from exit_modules.settlement.workflows import SETTLEMENT_WORKFLOW

__all__ = [
    "Settlement",
    "SettlementStatus",
    "SettlementInputAssembler",
    "SettlementService",
    "SETTLEMENT_WORKFLOW",
]
