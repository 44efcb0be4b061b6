"""
Collaborator protocols consumed by settlement input assembly.

Structural typing only: any object with these methods can stand in for
the SQL-backed defaults in ``stores.py`` (an HTTP client to the payroll
system, an in-memory fake in tests).
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable
from uuid import UUID

from exit_modules.payroll_inputs.models import EmployeeProfile, Payslip


@runtime_checkable
class ProfileStore(Protocol):
    def get_profile_by_id(self, user_id: UUID) -> EmployeeProfile | None: ...


@runtime_checkable
class PayrollHistory(Protocol):
    def get_payslips(self, user_id: UUID, year: int, month: int) -> Sequence[Payslip]:
        """Payslips for the period, most recent first."""
        ...


@runtime_checkable
class DuesReader(Protocol):
    def get_payable_dues(self, exit_request_id: UUID) -> Sequence: ...

    def get_recoverable_dues(self, exit_request_id: UUID) -> Sequence: ...


@runtime_checkable
class AssetReader(Protocol):
    def get_employee_assets(self, user_id: UUID) -> Sequence: ...

    def get_asset_recovery(self, exit_request_id: UUID) -> Sequence: ...
