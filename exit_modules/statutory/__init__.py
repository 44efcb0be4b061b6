"""
Statutory (``exit_modules.statutory``).

Standalone gratuity calculation records and provident-fund exit tracking.
"""

from exit_modules.statutory.models import Gratuity, PFManagement, PFWithdrawalStatus
from exit_modules.statutory.service import StatutoryService

__all__ = [
    "Gratuity",
    "PFManagement",
    "PFWithdrawalStatus",
    "StatutoryService",
]
