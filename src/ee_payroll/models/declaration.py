"""TSD declaration and row models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Enum, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ee_payroll.models.base import Base, IdMixin, TimestampMixin, UpdatedAtMixin
from ee_payroll.services.state_machine import DeclarationStatus

MONEY = Numeric(15, 2)


class TSDDeclaration(Base, IdMixin, UpdatedAtMixin):
    """Monthly TSD declaration, one per tenant and period."""

    __tablename__ = "tsd_declarations"

    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    period_year: Mapped[int] = mapped_column(Integer, nullable=False)
    period_month: Mapped[int] = mapped_column(Integer, nullable=False)
    payroll_run_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_runs.id", ondelete="SET NULL"),
        nullable=True,
    )
    total_payments: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total_income_tax: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total_social_tax: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    total_unemployment_employer: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    total_unemployment_employee: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    total_funded_pension: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    status: Mapped[DeclarationStatus] = mapped_column(
        Enum(DeclarationStatus, native_enum=False, length=20),
        nullable=False,
        default=DeclarationStatus.DRAFT,
    )
    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    emta_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "period_year", "period_month", name="tsd_declarations_period_unique"
        ),
    )


class TSDRow(Base, IdMixin, TimestampMixin):
    """Annex 1 row: payments to one resident employee."""

    __tablename__ = "tsd_rows"

    tenant_id: Mapped[UUID] = mapped_column(nullable=False)
    declaration_id: Mapped[UUID] = mapped_column(
        ForeignKey("tsd_declarations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    personal_code: Mapped[str] = mapped_column(String(11), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    payment_type: Mapped[str] = mapped_column(String(10), nullable=False)
    gross_payment: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    basic_exemption: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    taxable_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    income_tax: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    social_tax: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    unemployment_insurance_employee: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    unemployment_insurance_employer: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    funded_pension: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
