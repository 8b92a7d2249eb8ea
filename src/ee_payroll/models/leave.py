"""Absence type, leave balance and leave record models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from ee_payroll.models.base import Base, IdMixin, TimestampMixin, UpdatedAtMixin
from ee_payroll.services.state_machine import LeaveStatus

DAYS = Numeric(6, 2)


class AbsenceType(Base, IdMixin, TimestampMixin):
    """Tenant-configured leave category."""

    __tablename__ = "absence_types"

    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    code: Mapped[str] = mapped_column(String(30), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    name_et: Mapped[str | None] = mapped_column(String(100), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    affects_salary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    requires_document: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    default_days_per_year: Mapped[Decimal] = mapped_column(
        DAYS, nullable=False, default=Decimal("0")
    )
    max_carryover_days: Mapped[Decimal] = mapped_column(DAYS, nullable=False, default=Decimal("0"))
    tsd_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="absence_types_tenant_code_unique"),
    )


class LeaveBalance(Base, IdMixin, UpdatedAtMixin):
    """Yearly balance per employee and absence type."""

    __tablename__ = "leave_balances"

    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    absence_type_id: Mapped[UUID] = mapped_column(
        ForeignKey("absence_types.id", ondelete="CASCADE"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    entitled_days: Mapped[Decimal] = mapped_column(DAYS, nullable=False, default=Decimal("0"))
    carryover_days: Mapped[Decimal] = mapped_column(DAYS, nullable=False, default=Decimal("0"))
    used_days: Mapped[Decimal] = mapped_column(DAYS, nullable=False, default=Decimal("0"))
    pending_days: Mapped[Decimal] = mapped_column(DAYS, nullable=False, default=Decimal("0"))
    remaining_days: Mapped[Decimal] = mapped_column(DAYS, nullable=False, default=Decimal("0"))
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id",
            "employee_id",
            "absence_type_id",
            "year",
            name="leave_balances_key_unique",
        ),
        CheckConstraint("used_days >= 0", name="leave_balances_used_check"),
        CheckConstraint("pending_days >= 0", name="leave_balances_pending_check"),
    )


class LeaveRecord(Base, IdMixin, UpdatedAtMixin):
    """A leave request and its approval trail."""

    __tablename__ = "leave_records"

    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    absence_type_id: Mapped[UUID] = mapped_column(
        ForeignKey("absence_types.id", ondelete="RESTRICT"),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_days: Mapped[Decimal] = mapped_column(DAYS, nullable=False)
    working_days: Mapped[Decimal] = mapped_column(DAYS, nullable=False)
    status: Mapped[LeaveStatus] = mapped_column(
        Enum(LeaveStatus, native_enum=False, length=20),
        nullable=False,
        default=LeaveStatus.PENDING,
    )
    document_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    document_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    document_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    requested_at: Mapped[datetime | None] = mapped_column(nullable=True)
    requested_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        Index("leave_records_employee_idx", "tenant_id", "employee_id", "start_date"),
        CheckConstraint("end_date >= start_date", name="leave_records_dates_check"),
        CheckConstraint("working_days > 0", name="leave_records_working_days_check"),
    )
