"""
Dues Ledger (``exit_modules.dues``).

Payable and recoverable dues scoped to one exit request, upserted by
``(exit_request_id, due_type)``.
"""

from exit_modules.dues.models import PayableDue, RecoverableDue
from exit_modules.dues.service import DuesLedgerService

__all__ = [
    "PayableDue",
    "RecoverableDue",
    "DuesLedgerService",
]
