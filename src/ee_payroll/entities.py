"""Domain entities for the payroll core.

These are plain dataclasses passed between the services and the persistence
port. Relations (``Payslip.employee``, ``LeaveBalance.absence_type``,
``TSDDeclaration.rows`` ...) are owned optional fields filled by an explicit
hydrate step in the store, never loaded lazily.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Callable
from uuid import UUID, uuid4

from ee_payroll.services.state_machine import DeclarationStatus, LeaveStatus, PayrollStatus

ZERO = Decimal("0")

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EmploymentType(str, Enum):
    FULL_TIME = "FULL_TIME"
    PART_TIME = "PART_TIME"
    CONTRACT = "CONTRACT"


class ComponentType(str, Enum):
    """Salary component kinds. Only BASE_SALARY is set by the engine."""

    BASE_SALARY = "BASE_SALARY"
    BONUS = "BONUS"
    COMMISSION = "COMMISSION"
    BENEFIT = "BENEFIT"
    DEDUCTION = "DEDUCTION"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"


# TSD payment type for regular salary
PAYMENT_TYPE_SALARY = "10"


@dataclass
class Employee:
    tenant_id: UUID
    first_name: str
    last_name: str
    personal_code: str
    start_date: date
    id: UUID = field(default_factory=uuid4)
    employee_number: str | None = None
    email: str | None = None
    end_date: date | None = None
    employment_type: EmploymentType = EmploymentType.FULL_TIME
    tax_residency: str = "EE"
    apply_basic_exemption: bool = True
    basic_exemption_amount: Decimal = Decimal("700.00")
    funded_pension_rate: Decimal = Decimal("0.02")
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def exemption_amount(self) -> Decimal:
        """Basic exemption applied to this employee's income tax."""
        return self.basic_exemption_amount if self.apply_basic_exemption else ZERO


@dataclass
class SalaryComponent:
    tenant_id: UUID
    employee_id: UUID
    component_type: ComponentType
    name: str
    amount: Decimal
    effective_from: date
    id: UUID = field(default_factory=uuid4)
    is_taxable: bool = True
    is_recurring: bool = True
    effective_to: date | None = None
    created_at: datetime | None = None

    def is_effective_on(self, day: date) -> bool:
        if self.effective_from > day:
            return False
        return self.effective_to is None or self.effective_to >= day


@dataclass
class Payslip:
    tenant_id: UUID
    payroll_run_id: UUID
    employee_id: UUID
    gross_salary: Decimal
    basic_exemption: Decimal
    taxable_income: Decimal
    income_tax: Decimal
    unemployment_insurance_employee: Decimal
    funded_pension: Decimal
    other_deductions: Decimal
    net_salary: Decimal
    social_tax: Decimal
    unemployment_insurance_employer: Decimal
    total_employer_cost: Decimal
    id: UUID = field(default_factory=uuid4)
    payment_status: PaymentStatus = PaymentStatus.PENDING
    paid_at: datetime | None = None
    created_at: datetime | None = None
    employee: Employee | None = None


@dataclass
class PayrollRun:
    tenant_id: UUID
    period_year: int
    period_month: int
    id: UUID = field(default_factory=uuid4)
    status: PayrollStatus = PayrollStatus.DRAFT
    payment_date: date | None = None
    total_gross: Decimal = ZERO
    total_net: Decimal = ZERO
    total_employer_cost: Decimal = ZERO
    notes: str | None = None
    created_by: str | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    payslips: list[Payslip] = field(default_factory=list)

    @property
    def period(self) -> str:
        return f"{self.period_year:04d}-{self.period_month:02d}"


@dataclass
class AbsenceType:
    tenant_id: UUID
    code: str
    name: str
    id: UUID = field(default_factory=uuid4)
    name_et: str | None = None
    description: str | None = None
    is_paid: bool = True
    affects_salary: bool = False
    requires_document: bool = False
    default_days_per_year: Decimal = ZERO
    max_carryover_days: Decimal = ZERO
    tsd_code: str | None = None
    is_system: bool = False
    is_active: bool = True
    sort_order: int = 0
    created_at: datetime | None = None


@dataclass
class LeaveBalance:
    tenant_id: UUID
    employee_id: UUID
    absence_type_id: UUID
    year: int
    id: UUID = field(default_factory=uuid4)
    entitled_days: Decimal = ZERO
    carryover_days: Decimal = ZERO
    used_days: Decimal = ZERO
    pending_days: Decimal = ZERO
    remaining_days: Decimal = ZERO
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    absence_type: AbsenceType | None = None

    def recalculate(self) -> None:
        """Clamp usage at zero and recompute remaining days."""
        if self.pending_days < 0:
            self.pending_days = ZERO
        if self.used_days < 0:
            self.used_days = ZERO
        self.remaining_days = (
            self.entitled_days + self.carryover_days - self.used_days - self.pending_days
        )


@dataclass
class LeaveRecord:
    tenant_id: UUID
    employee_id: UUID
    absence_type_id: UUID
    start_date: date
    end_date: date
    total_days: Decimal
    working_days: Decimal
    id: UUID = field(default_factory=uuid4)
    status: LeaveStatus = LeaveStatus.PENDING
    document_number: str | None = None
    document_date: date | None = None
    document_url: str | None = None
    notes: str | None = None
    rejection_reason: str | None = None
    requested_at: datetime | None = None
    requested_by: str | None = None
    approved_at: datetime | None = None
    approved_by: str | None = None
    rejected_at: datetime | None = None
    rejected_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    absence_type: AbsenceType | None = None
    employee: Employee | None = None


@dataclass
class TSDRow:
    tenant_id: UUID
    declaration_id: UUID
    employee_id: UUID
    personal_code: str
    first_name: str
    last_name: str
    payment_type: str
    gross_payment: Decimal
    basic_exemption: Decimal
    taxable_amount: Decimal
    income_tax: Decimal
    social_tax: Decimal
    unemployment_insurance_employee: Decimal
    unemployment_insurance_employer: Decimal
    funded_pension: Decimal
    id: UUID = field(default_factory=uuid4)
    created_at: datetime | None = None


@dataclass
class TSDDeclaration:
    tenant_id: UUID
    period_year: int
    period_month: int
    payroll_run_id: UUID | None = None
    id: UUID = field(default_factory=uuid4)
    total_payments: Decimal = ZERO
    total_income_tax: Decimal = ZERO
    total_social_tax: Decimal = ZERO
    total_unemployment_employer: Decimal = ZERO
    total_unemployment_employee: Decimal = ZERO
    total_funded_pension: Decimal = ZERO
    status: DeclarationStatus = DeclarationStatus.DRAFT
    submitted_at: datetime | None = None
    emta_reference: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    rows: list[TSDRow] = field(default_factory=list)

    @property
    def period(self) -> str:
        return f"{self.period_year:04d}-{self.period_month:02d}"


@dataclass(frozen=True)
class DeclarationSummary:
    """Summary view of a declaration."""

    period: str
    employee_count: int
    total_gross_payments: Decimal
    total_employee_taxes: Decimal
    total_employer_costs: Decimal
    status: DeclarationStatus
    submitted_at: datetime | None = None

    @classmethod
    def from_declaration(cls, declaration: TSDDeclaration) -> DeclarationSummary:
        return cls(
            period=declaration.period,
            employee_count=len(declaration.rows),
            total_gross_payments=declaration.total_payments,
            total_employee_taxes=(
                declaration.total_income_tax
                + declaration.total_unemployment_employee
                + declaration.total_funded_pension
            ),
            total_employer_costs=(
                declaration.total_social_tax + declaration.total_unemployment_employer
            ),
            status=declaration.status,
            submitted_at=declaration.submitted_at,
        )
