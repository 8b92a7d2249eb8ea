"""Employee and salary component models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ee_payroll.entities import ComponentType, EmploymentType
from ee_payroll.models.base import Base, IdMixin, TimestampMixin, UpdatedAtMixin


class Employee(Base, IdMixin, UpdatedAtMixin):
    """Employee record. End-dated, never deleted."""

    __tablename__ = "employees"

    tenant_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    employee_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    personal_code: Mapped[str] = mapped_column(String(11), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    employment_type: Mapped[EmploymentType] = mapped_column(
        Enum(EmploymentType, native_enum=False, length=20),
        nullable=False,
        default=EmploymentType.FULL_TIME,
    )
    tax_residency: Mapped[str] = mapped_column(String(2), nullable=False, default="EE")
    apply_basic_exemption: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    basic_exemption_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("700.00")
    )
    funded_pension_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 4), nullable=False, default=Decimal("0.02")
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "personal_code", name="employees_tenant_code_unique"),
        CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="employees_dates_check",
        ),
    )


class SalaryComponent(Base, IdMixin, TimestampMixin):
    """Recurring or one-off pay element with an effective window."""

    __tablename__ = "salary_components"

    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    component_type: Mapped[ComponentType] = mapped_column(
        Enum(ComponentType, native_enum=False, length=20),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    is_taxable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        Index("salary_components_employee_idx", "tenant_id", "employee_id"),
    )
