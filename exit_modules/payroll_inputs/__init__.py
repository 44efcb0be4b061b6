"""
Payroll inputs (``exit_modules.payroll_inputs``).

Employee profile and payslip records read by the settlement engine, the
collaborator protocols for reading them, and SQL-backed defaults.
"""

from exit_modules.payroll_inputs.models import EmployeeProfile, Payslip
from exit_modules.payroll_inputs.protocols import AssetReader, DuesReader, PayrollHistory, ProfileStore
from exit_modules.payroll_inputs.stores import SqlPayrollHistory, SqlProfileStore

__all__ = [
    "EmployeeProfile",
    "Payslip",
    "AssetReader",
    "DuesReader",
    "PayrollHistory",
    "ProfileStore",
    "SqlPayrollHistory",
    "SqlProfileStore",
]
