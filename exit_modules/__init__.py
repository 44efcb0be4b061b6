"""
Exit feature modules.

Each module follows the same shape: ``models.py`` (frozen dataclass DTOs),
``orm.py`` (SQLAlchemy persistence), ``service.py`` (transaction-owning
service) and, where a lifecycle exists, ``workflows.py``.

    exit_request    lifecycle state machine, clearance, progress, metrics
    dues            payable and recoverable dues ledger
    assets          employee assets and recovery outcomes
    statutory       gratuity records and PF exit tracking
    settlement      final settlement calculation and payment lifecycle
    payroll_inputs  employee profile and payslip collaborators
"""
