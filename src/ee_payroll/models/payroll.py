"""Payroll run and payslip models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Date,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ee_payroll.entities import PaymentStatus
from ee_payroll.models.base import Base, IdMixin, TimestampMixin, UpdatedAtMixin
from ee_payroll.services.state_machine import PayrollStatus

MONEY = Numeric(15, 2)


class PayrollRun(Base, IdMixin, UpdatedAtMixin):
    """Payroll run, one per tenant and period."""

    __tablename__ = "payroll_runs"

    tenant_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_month: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[PayrollStatus] = mapped_column(
        Enum(PayrollStatus, native_enum=False, length=20),
        nullable=False,
        default=PayrollStatus.DRAFT,
    )
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_gross: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total_net: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total_employer_cost: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "period_year", "period_month", name="payroll_runs_period_unique"
        ),
        CheckConstraint("period_year BETWEEN 2020 AND 2100", name="payroll_runs_year_check"),
        CheckConstraint("period_month BETWEEN 1 AND 12", name="payroll_runs_month_check"),
    )


class Payslip(Base, IdMixin, TimestampMixin):
    """Calculated payslip for one employee in one run."""

    __tablename__ = "payslips"

    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_runs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="RESTRICT"),
        nullable=False,
    )

    gross_salary: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    basic_exemption: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    taxable_income: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    # Employee deductions
    income_tax: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    unemployment_insurance_employee: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    funded_pension: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    other_deductions: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    net_salary: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    # Employer costs
    social_tax: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    unemployment_insurance_employer: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    total_employer_cost: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, native_enum=False, length=20),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("payroll_run_id", "employee_id", name="payslips_run_employee_unique"),
    )
