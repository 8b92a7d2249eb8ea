"""SQLAlchemy ORM models for the payroll core."""

from ee_payroll.models.base import Base, IdMixin, TimestampMixin, UpdatedAtMixin
from ee_payroll.models.declaration import TSDDeclaration, TSDRow
from ee_payroll.models.employee import Employee, SalaryComponent
from ee_payroll.models.leave import AbsenceType, LeaveBalance, LeaveRecord
from ee_payroll.models.payroll import PayrollRun, Payslip

__all__ = [
    "AbsenceType",
    "Base",
    "Employee",
    "IdMixin",
    "LeaveBalance",
    "LeaveRecord",
    "PayrollRun",
    "Payslip",
    "SalaryComponent",
    "TSDDeclaration",
    "TSDRow",
    "TimestampMixin",
    "UpdatedAtMixin",
]
