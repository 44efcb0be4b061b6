"""
Payroll input ORM models (``exit_modules.payroll_inputs.orm``).

SQLAlchemy tables backing the default profile store and payroll history.
Deployments that keep these records elsewhere supply their own
``ProfileStore`` / ``PayrollHistory`` implementations instead.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import BigInteger, Date, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from exit_kernel.db.base import TrackedBase


class EmployeeProfileModel(TrackedBase):
    """
    ORM model for ``EmployeeProfile``.

    Guarantees:
        - One profile per ``user_id`` (uq_employee_profile_user).
    """

    __tablename__ = "employee_profiles"

    user_id: Mapped[UUID] = mapped_column(nullable=False)
    monthly_ctc: Mapped[Decimal | None] = mapped_column(nullable=True)
    basic_salary: Mapped[Decimal | None] = mapped_column(nullable=True)
    join_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    employment_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    employee_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", name="uq_employee_profile_user"),
    )

    def to_dto(self):
        from exit_modules.payroll_inputs.models import EmployeeProfile
        return EmployeeProfile(
            user_id=self.user_id,
            monthly_ctc=self.monthly_ctc,
            basic_salary=self.basic_salary,
            join_date=self.join_date,
            employment_type=self.employment_type,
            full_name=self.full_name,
            employee_code=self.employee_code,
            department=self.department,
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "EmployeeProfileModel":
        return cls(
            user_id=dto.user_id,
            monthly_ctc=dto.monthly_ctc,
            basic_salary=dto.basic_salary,
            join_date=dto.join_date,
            employment_type=dto.employment_type,
            full_name=dto.full_name,
            employee_code=dto.employee_code,
            department=dto.department,
            created_by_id=created_by_id,
        )


class PayslipModel(TrackedBase):
    """
    ORM model for ``Payslip``.  Deduction components are flat columns.
    """

    __tablename__ = "payslips"

    user_id: Mapped[UUID] = mapped_column(nullable=False)
    year: Mapped[int] = mapped_column(BigInteger, nullable=False)
    month: Mapped[int] = mapped_column(BigInteger, nullable=False)
    pay_date: Mapped[date] = mapped_column(Date, nullable=False)
    gross_pay: Mapped[Decimal] = mapped_column(nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(nullable=False)
    pf_employee: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    pf_employer: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    esi_employee: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    esi_employer: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    professional_tax: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    tds: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)
    other_deductions: Mapped[Decimal] = mapped_column(default=Decimal("0"), nullable=False)

    __table_args__ = (
        Index("idx_payslip_user_period", "user_id", "year", "month"),
    )

    def to_dto(self):
        from exit_modules.payroll_inputs.models import PAYSLIP_DEDUCTION_COMPONENTS, Payslip
        return Payslip(
            user_id=self.user_id,
            year=self.year,
            month=self.month,
            pay_date=self.pay_date,
            gross_pay=self.gross_pay,
            net_pay=self.net_pay,
            deductions={name: getattr(self, name) for name in PAYSLIP_DEDUCTION_COMPONENTS},
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "PayslipModel":
        from exit_modules.payroll_inputs.models import PAYSLIP_DEDUCTION_COMPONENTS
        components = {
            name: dto.deductions.get(name, Decimal("0")) for name in PAYSLIP_DEDUCTION_COMPONENTS
        }
        return cls(
            user_id=dto.user_id,
            year=dto.year,
            month=dto.month,
            pay_date=dto.pay_date,
            gross_pay=dto.gross_pay,
            net_pay=dto.net_pay,
            created_by_id=created_by_id,
            **components,
        )
