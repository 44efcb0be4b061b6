"""SQL-backed ``ProfileStore`` and ``PayrollHistory``."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from exit_modules.payroll_inputs.models import EmployeeProfile, Payslip
from exit_modules.payroll_inputs.orm import EmployeeProfileModel, PayslipModel


class SqlProfileStore:
    def __init__(self, session: Session):
        self._session = session

    def get_profile_by_id(self, user_id: UUID) -> EmployeeProfile | None:
        row = self._session.execute(
            select(EmployeeProfileModel).where(EmployeeProfileModel.user_id == user_id)
        ).scalar_one_or_none()
        return row.to_dto() if row else None


class SqlPayrollHistory:
    def __init__(self, session: Session):
        self._session = session

    def get_payslips(self, user_id: UUID, year: int, month: int) -> list[Payslip]:
        rows = self._session.execute(
            select(PayslipModel)
            .where(
                PayslipModel.user_id == user_id,
                PayslipModel.year == year,
                PayslipModel.month == month,
            )
            .order_by(PayslipModel.pay_date.desc(), PayslipModel.created_at.desc())
        ).scalars().all()
        return [r.to_dto() for r in rows]
