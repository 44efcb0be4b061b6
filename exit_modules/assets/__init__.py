"""
Asset Recovery Ledger (``exit_modules.assets``).

Employee asset assignments and the recovery outcome recorded for them on
exit.
"""

from exit_modules.assets.models import AssetRecovery, EmployeeAsset, RecoveryStatus
from exit_modules.assets.service import AssetLedgerService

__all__ = [
    "AssetRecovery",
    "EmployeeAsset",
    "RecoveryStatus",
    "AssetLedgerService",
]
