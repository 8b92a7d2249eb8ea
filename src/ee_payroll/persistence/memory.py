"""In-memory implementation of the persistence port.

Deterministic and single-threaded. Entities are deep-copied on the way in and
out so callers cannot mutate stored state behind the store's back, and a
transaction restores a snapshot of every table when its block raises.
"""

from __future__ import annotations

import copy
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import AsyncIterator, TypeVar
from uuid import UUID

from ee_payroll.entities import (
    AbsenceType,
    ComponentType,
    Employee,
    LeaveBalance,
    LeaveRecord,
    PayrollRun,
    Payslip,
    SalaryComponent,
    TSDDeclaration,
    TSDRow,
)
from ee_payroll.errors import PersistenceError
from ee_payroll.services.state_machine import PayrollStatus

T = TypeVar("T")


@dataclass
class _Tables:
    employees: dict[UUID, Employee] = field(default_factory=dict)
    salary_components: dict[UUID, SalaryComponent] = field(default_factory=dict)
    payroll_runs: dict[UUID, PayrollRun] = field(default_factory=dict)
    payslips: dict[UUID, Payslip] = field(default_factory=dict)
    absence_types: dict[UUID, AbsenceType] = field(default_factory=dict)
    leave_balances: dict[UUID, LeaveBalance] = field(default_factory=dict)
    leave_records: dict[UUID, LeaveRecord] = field(default_factory=dict)
    declarations: dict[UUID, TSDDeclaration] = field(default_factory=dict)
    declaration_rows: dict[UUID, TSDRow] = field(default_factory=dict)


def _copy(entity: T) -> T:
    return copy.deepcopy(entity)


class InMemoryStore:
    """Dictionary-backed PayrollStore for tests and local tooling."""

    def __init__(self) -> None:
        self._tables = _Tables()
        self._failures: dict[str, Exception] = {}

    # ------------------------------------------------------------------
    # Failure injection
    # ------------------------------------------------------------------

    def fail_on(self, operation: str, cause: Exception | None = None) -> None:
        """Make the next call to ``operation`` raise PersistenceError."""
        self._failures[operation] = cause or RuntimeError("injected failure")

    def _check(self, operation: str) -> None:
        cause = self._failures.pop(operation, None)
        if cause is not None:
            raise PersistenceError(operation, cause) from cause

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[InMemoryStore]:
        snapshot = copy.deepcopy(self._tables)
        try:
            yield self
        except BaseException:
            self._tables = snapshot
            raise

    # ------------------------------------------------------------------
    # Employees
    # ------------------------------------------------------------------

    async def add_employee(self, employee: Employee) -> Employee:
        self._check("add_employee")
        self._tables.employees[employee.id] = _copy(employee)
        return _copy(employee)

    async def get_employee(self, tenant_id: UUID, employee_id: UUID) -> Employee | None:
        self._check("get_employee")
        employee = self._tables.employees.get(employee_id)
        if employee is None or employee.tenant_id != tenant_id:
            return None
        return _copy(employee)

    async def list_active_employees(self, tenant_id: UUID) -> list[Employee]:
        self._check("list_active_employees")
        employees = [
            e for e in self._tables.employees.values() if e.tenant_id == tenant_id and e.is_active
        ]
        employees.sort(key=lambda e: (e.last_name, e.first_name))
        return [_copy(e) for e in employees]

    async def list_salary_components(
        self, tenant_id: UUID, employee_id: UUID
    ) -> list[SalaryComponent]:
        self._check("list_salary_components")
        components = [
            c
            for c in self._tables.salary_components.values()
            if c.tenant_id == tenant_id and c.employee_id == employee_id
        ]
        components.sort(key=lambda c: c.effective_from)
        return [_copy(c) for c in components]

    async def add_salary_component(self, component: SalaryComponent) -> SalaryComponent:
        self._check("add_salary_component")
        self._tables.salary_components[component.id] = _copy(component)
        return _copy(component)

    async def close_open_base_salary(
        self, tenant_id: UUID, employee_id: UUID, effective_to: date
    ) -> int:
        self._check("close_open_base_salary")
        closed = 0
        for component in self._tables.salary_components.values():
            if (
                component.tenant_id == tenant_id
                and component.employee_id == employee_id
                and component.component_type == ComponentType.BASE_SALARY
                and component.is_recurring
                and component.effective_to is None
            ):
                component.effective_to = effective_to
                closed += 1
        return closed

    # ------------------------------------------------------------------
    # Payroll runs
    # ------------------------------------------------------------------

    async def add_payroll_run(self, run: PayrollRun) -> PayrollRun:
        self._check("add_payroll_run")
        stored = _copy(run)
        stored.payslips = []
        self._tables.payroll_runs[run.id] = stored
        return _copy(stored)

    async def get_payroll_run(
        self, tenant_id: UUID, run_id: UUID, for_update: bool = False
    ) -> PayrollRun | None:
        self._check("get_payroll_run")
        run = self._tables.payroll_runs.get(run_id)
        if run is None or run.tenant_id != tenant_id:
            return None
        return _copy(run)

    async def list_payroll_runs(
        self, tenant_id: UUID, year: int | None = None
    ) -> list[PayrollRun]:
        self._check("list_payroll_runs")
        runs = [
            r
            for r in self._tables.payroll_runs.values()
            if r.tenant_id == tenant_id and (year is None or r.period_year == year)
        ]
        runs.sort(key=lambda r: (r.period_year, r.period_month), reverse=True)
        return [_copy(r) for r in runs]

    async def update_payroll_run(self, run: PayrollRun) -> None:
        self._check("update_payroll_run")
        stored = _copy(run)
        stored.payslips = []
        self._tables.payroll_runs[run.id] = stored

    async def approve_payroll_run(
        self, tenant_id: UUID, run_id: UUID, approved_by: str, approved_at: datetime
    ) -> int:
        self._check("approve_payroll_run")
        run = self._tables.payroll_runs.get(run_id)
        if run is None or run.tenant_id != tenant_id or run.status != PayrollStatus.CALCULATED:
            return 0
        run.status = PayrollStatus.APPROVED
        run.approved_by = approved_by
        run.approved_at = approved_at
        run.updated_at = approved_at
        return 1

    async def delete_payslips(self, tenant_id: UUID, run_id: UUID) -> int:
        self._check("delete_payslips")
        doomed = [
            p.id
            for p in self._tables.payslips.values()
            if p.tenant_id == tenant_id and p.payroll_run_id == run_id
        ]
        for payslip_id in doomed:
            del self._tables.payslips[payslip_id]
        return len(doomed)

    async def add_payslips(self, payslips: list[Payslip]) -> None:
        self._check("add_payslips")
        for payslip in payslips:
            stored = _copy(payslip)
            stored.employee = None
            self._tables.payslips[payslip.id] = stored

    async def list_payslips(
        self, tenant_id: UUID, run_id: UUID, with_employees: bool = False
    ) -> list[Payslip]:
        self._check("list_payslips")
        payslips = [
            _copy(p)
            for p in self._tables.payslips.values()
            if p.tenant_id == tenant_id and p.payroll_run_id == run_id
        ]
        if with_employees:
            for payslip in payslips:
                employee = self._tables.employees.get(payslip.employee_id)
                if employee is not None and employee.tenant_id == tenant_id:
                    payslip.employee = _copy(employee)
            payslips.sort(
                key=lambda p: (p.employee.last_name, p.employee.first_name)
                if p.employee
                else ("", "")
            )
        return payslips

    # ------------------------------------------------------------------
    # Leave
    # ------------------------------------------------------------------

    def _hydrate_balance(self, balance: LeaveBalance) -> LeaveBalance:
        hydrated = _copy(balance)
        absence_type = self._tables.absence_types.get(balance.absence_type_id)
        hydrated.absence_type = _copy(absence_type) if absence_type else None
        return hydrated

    def _hydrate_record(self, record: LeaveRecord) -> LeaveRecord:
        hydrated = _copy(record)
        absence_type = self._tables.absence_types.get(record.absence_type_id)
        employee = self._tables.employees.get(record.employee_id)
        hydrated.absence_type = _copy(absence_type) if absence_type else None
        hydrated.employee = _copy(employee) if employee else None
        return hydrated

    async def add_absence_type(self, absence_type: AbsenceType) -> AbsenceType:
        self._check("add_absence_type")
        self._tables.absence_types[absence_type.id] = _copy(absence_type)
        return _copy(absence_type)

    async def get_absence_type(
        self, tenant_id: UUID, absence_type_id: UUID
    ) -> AbsenceType | None:
        self._check("get_absence_type")
        absence_type = self._tables.absence_types.get(absence_type_id)
        if absence_type is None or absence_type.tenant_id != tenant_id:
            return None
        return _copy(absence_type)

    async def list_absence_types(
        self, tenant_id: UUID, active_only: bool = True
    ) -> list[AbsenceType]:
        self._check("list_absence_types")
        types = [
            t
            for t in self._tables.absence_types.values()
            if t.tenant_id == tenant_id and (t.is_active or not active_only)
        ]
        types.sort(key=lambda t: (t.sort_order, t.name))
        return [_copy(t) for t in types]

    async def get_leave_balance(
        self,
        tenant_id: UUID,
        employee_id: UUID,
        absence_type_id: UUID,
        year: int,
        for_update: bool = False,
    ) -> LeaveBalance | None:
        self._check("get_leave_balance")
        for balance in self._tables.leave_balances.values():
            if (
                balance.tenant_id == tenant_id
                and balance.employee_id == employee_id
                and balance.absence_type_id == absence_type_id
                and balance.year == year
            ):
                return self._hydrate_balance(balance)
        return None

    async def list_leave_balances(
        self, tenant_id: UUID, employee_id: UUID, year: int
    ) -> list[LeaveBalance]:
        self._check("list_leave_balances")
        balances = [
            self._hydrate_balance(b)
            for b in self._tables.leave_balances.values()
            if b.tenant_id == tenant_id and b.employee_id == employee_id and b.year == year
        ]
        balances.sort(
            key=lambda b: (b.absence_type.sort_order, b.absence_type.name)
            if b.absence_type
            else (0, "")
        )
        return balances

    async def add_leave_balance(self, balance: LeaveBalance) -> LeaveBalance:
        self._check("add_leave_balance")
        stored = _copy(balance)
        stored.absence_type = None
        self._tables.leave_balances[balance.id] = stored
        return self._hydrate_balance(stored)

    async def update_leave_balance(self, balance: LeaveBalance) -> None:
        self._check("update_leave_balance")
        stored = _copy(balance)
        stored.absence_type = None
        self._tables.leave_balances[balance.id] = stored

    async def add_leave_record(self, record: LeaveRecord) -> LeaveRecord:
        self._check("add_leave_record")
        stored = _copy(record)
        stored.absence_type = None
        stored.employee = None
        self._tables.leave_records[record.id] = stored
        return self._hydrate_record(stored)

    async def get_leave_record(self, tenant_id: UUID, record_id: UUID) -> LeaveRecord | None:
        self._check("get_leave_record")
        record = self._tables.leave_records.get(record_id)
        if record is None or record.tenant_id != tenant_id:
            return None
        return self._hydrate_record(record)

    async def list_leave_records(
        self,
        tenant_id: UUID,
        employee_id: UUID | None = None,
        year: int | None = None,
    ) -> list[LeaveRecord]:
        self._check("list_leave_records")
        records = [
            r
            for r in self._tables.leave_records.values()
            if r.tenant_id == tenant_id
            and (employee_id is None or r.employee_id == employee_id)
            and (year is None or r.start_date.year == year)
        ]
        records.sort(key=lambda r: r.start_date, reverse=True)
        return [self._hydrate_record(r) for r in records]

    async def update_leave_record(self, record: LeaveRecord) -> None:
        self._check("update_leave_record")
        stored = _copy(record)
        stored.absence_type = None
        stored.employee = None
        self._tables.leave_records[record.id] = stored

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def _with_rows(self, declaration: TSDDeclaration) -> TSDDeclaration:
        loaded = _copy(declaration)
        rows = [r for r in self._tables.declaration_rows.values() if r.declaration_id == declaration.id]
        rows.sort(key=lambda r: (r.last_name, r.first_name))
        loaded.rows = [_copy(r) for r in rows]
        return loaded

    async def get_declaration(
        self, tenant_id: UUID, year: int, month: int, with_rows: bool = True
    ) -> TSDDeclaration | None:
        self._check("get_declaration")
        for declaration in self._tables.declarations.values():
            if (
                declaration.tenant_id == tenant_id
                and declaration.period_year == year
                and declaration.period_month == month
            ):
                return self._with_rows(declaration) if with_rows else _copy(declaration)
        return None

    async def get_declaration_by_id(
        self, tenant_id: UUID, declaration_id: UUID
    ) -> TSDDeclaration | None:
        self._check("get_declaration_by_id")
        declaration = self._tables.declarations.get(declaration_id)
        if declaration is None or declaration.tenant_id != tenant_id:
            return None
        return self._with_rows(declaration)

    async def list_declarations(self, tenant_id: UUID) -> list[TSDDeclaration]:
        self._check("list_declarations")
        declarations = [d for d in self._tables.declarations.values() if d.tenant_id == tenant_id]
        declarations.sort(key=lambda d: (d.period_year, d.period_month), reverse=True)
        return [_copy(d) for d in declarations]

    async def add_declaration(self, declaration: TSDDeclaration) -> TSDDeclaration:
        self._check("add_declaration")
        stored = _copy(declaration)
        stored.rows = []
        self._tables.declarations[declaration.id] = stored
        for row in declaration.rows:
            self._check("add_declaration_row")
            self._tables.declaration_rows[row.id] = _copy(row)
        return self._with_rows(stored)

    async def update_declaration(self, declaration: TSDDeclaration) -> None:
        self._check("update_declaration")
        stored = _copy(declaration)
        stored.rows = []
        self._tables.declarations[declaration.id] = stored

    async def delete_declaration(self, tenant_id: UUID, declaration_id: UUID) -> None:
        self._check("delete_declaration")
        declaration = self._tables.declarations.get(declaration_id)
        if declaration is None or declaration.tenant_id != tenant_id:
            return
        doomed = [
            r.id for r in self._tables.declaration_rows.values() if r.declaration_id == declaration_id
        ]
        for row_id in doomed:
            del self._tables.declaration_rows[row_id]
        del self._tables.declarations[declaration_id]
