"""Pytest fixtures for payroll core tests."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
import pytest_asyncio

from ee_payroll.entities import AbsenceType, Employee, LeaveBalance, PayrollRun
from ee_payroll.persistence.memory import InMemoryStore
from ee_payroll.schemas import CreatePayrollRunRequest
from ee_payroll.services.declaration_service import DeclarationGenerator
from ee_payroll.services.leave_service import LeaveBalanceLedger
from ee_payroll.services.payroll_run_service import PayrollRunEngine

FIXED_NOW = datetime(2025, 3, 15, 9, 30, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


def make_employee(tenant_id: UUID, **overrides) -> Employee:
    values = dict(
        tenant_id=tenant_id,
        first_name="Mari",
        last_name="Tamm",
        personal_code="48001010005",
        start_date=date(2024, 1, 1),
        apply_basic_exemption=True,
        basic_exemption_amount=Decimal("700.00"),
        funded_pension_rate=Decimal("0.02"),
    )
    values.update(overrides)
    return Employee(**values)


@pytest.fixture
def tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def ledger(store: InMemoryStore) -> LeaveBalanceLedger:
    return LeaveBalanceLedger(store, clock=fixed_clock)


@pytest.fixture
def engine(store: InMemoryStore) -> PayrollRunEngine:
    return PayrollRunEngine(store, clock=fixed_clock)


@pytest.fixture
def generator(store: InMemoryStore) -> DeclarationGenerator:
    return DeclarationGenerator(store, clock=fixed_clock)


@pytest_asyncio.fixture
async def annual_leave(store: InMemoryStore, tenant_id: UUID) -> AbsenceType:
    return await store.add_absence_type(
        AbsenceType(
            tenant_id=tenant_id,
            code="ANNUAL_LEAVE",
            name="Annual Leave",
            default_days_per_year=Decimal("28"),
            max_carryover_days=Decimal("28"),
            sort_order=1,
        )
    )


@pytest_asyncio.fixture
async def employee(store: InMemoryStore, tenant_id: UUID) -> Employee:
    return await store.add_employee(make_employee(tenant_id))


@pytest_asyncio.fixture
async def annual_balance(
    store: InMemoryStore, tenant_id: UUID, employee: Employee, annual_leave: AbsenceType
) -> LeaveBalance:
    """Annual leave balance with 28 entitled days for 2025."""
    balance = LeaveBalance(
        tenant_id=tenant_id,
        employee_id=employee.id,
        absence_type_id=annual_leave.id,
        year=2025,
        entitled_days=Decimal("28"),
    )
    balance.recalculate()
    return await store.add_leave_balance(balance)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def employee_factory(tenant_id: UUID):
    """Build unsaved employees for the test tenant with sensible defaults."""

    def factory(**overrides) -> Employee:
        return make_employee(tenant_id, **overrides)

    return factory


@pytest_asyncio.fixture
async def staff(store, engine, tenant_id, employee, employee_factory):
    """Two salaried employees (Tamm 2000, Kask 1500) and one without a salary."""
    await engine.set_base_salary(tenant_id, employee.id, Decimal("2000.00"), date(2025, 1, 1))

    jaan = await store.add_employee(
        employee_factory(first_name="Jaan", last_name="Kask", personal_code="38001010009")
    )
    await engine.set_base_salary(tenant_id, jaan.id, Decimal("1500.00"), date(2025, 1, 1))

    await store.add_employee(
        employee_factory(first_name="Peeter", last_name="Saar", personal_code="39001010008")
    )
    return employee, jaan


@pytest_asyncio.fixture
async def draft_run(engine, tenant_id) -> PayrollRun:
    return await engine.create_payroll_run(
        tenant_id,
        "admin",
        CreatePayrollRunRequest(period_year=2025, period_month=3, payment_date=date(2025, 4, 10)),
    )


@pytest_asyncio.fixture
async def approved_run(engine, tenant_id, staff, draft_run) -> PayrollRun:
    await engine.calculate_payroll(tenant_id, draft_run.id)
    await engine.approve_payroll_run(tenant_id, draft_run.id, "cfo")
    return await engine.get_payroll_run(tenant_id, draft_run.id)
