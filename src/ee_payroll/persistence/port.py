"""Persistence port consumed by the payroll services.

Every call is scoped by tenant id. Reads return ``None`` (single entity) or an
empty list when nothing matches; the services decide which absence is an
error. Stores return copies: mutating a returned entity has no effect until it
is written back through an ``update_*`` call.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import AsyncContextManager, Protocol
from uuid import UUID

from ee_payroll.entities import (
    AbsenceType,
    Employee,
    LeaveBalance,
    LeaveRecord,
    PayrollRun,
    Payslip,
    SalaryComponent,
    TSDDeclaration,
)


class EmployeeStore(Protocol):
    """Employees and their salary components."""

    async def add_employee(self, employee: Employee) -> Employee: ...

    async def get_employee(self, tenant_id: UUID, employee_id: UUID) -> Employee | None: ...

    async def list_active_employees(self, tenant_id: UUID) -> list[Employee]: ...

    async def list_salary_components(
        self, tenant_id: UUID, employee_id: UUID
    ) -> list[SalaryComponent]: ...

    async def add_salary_component(self, component: SalaryComponent) -> SalaryComponent: ...

    async def close_open_base_salary(
        self, tenant_id: UUID, employee_id: UUID, effective_to: date
    ) -> int:
        """End-date the open recurring base salary. Returns rows affected."""
        ...


class PayrollRunStore(Protocol):
    """Payroll runs and payslips."""

    async def add_payroll_run(self, run: PayrollRun) -> PayrollRun: ...

    async def get_payroll_run(
        self, tenant_id: UUID, run_id: UUID, for_update: bool = False
    ) -> PayrollRun | None:
        """Load one run; ``for_update`` locks it like ``get_leave_balance``."""
        ...

    async def list_payroll_runs(
        self, tenant_id: UUID, year: int | None = None
    ) -> list[PayrollRun]:
        """List runs, newest period first."""
        ...

    async def update_payroll_run(self, run: PayrollRun) -> None: ...

    async def approve_payroll_run(
        self, tenant_id: UUID, run_id: UUID, approved_by: str, approved_at: datetime
    ) -> int:
        """Conditionally move a CALCULATED run to APPROVED. Returns rows affected."""
        ...

    async def delete_payslips(self, tenant_id: UUID, run_id: UUID) -> int: ...

    async def add_payslips(self, payslips: list[Payslip]) -> None: ...

    async def list_payslips(
        self, tenant_id: UUID, run_id: UUID, with_employees: bool = False
    ) -> list[Payslip]:
        """List payslips of a run.

        With ``with_employees`` each payslip's ``employee`` is filled, or left
        ``None`` when the employee row cannot be loaded.
        """
        ...


class LeaveStore(Protocol):
    """Absence types, leave balances and leave records.

    Balances and records come back with ``absence_type`` filled; records also
    carry ``employee`` when it can be loaded.
    """

    async def add_absence_type(self, absence_type: AbsenceType) -> AbsenceType: ...

    async def get_absence_type(
        self, tenant_id: UUID, absence_type_id: UUID
    ) -> AbsenceType | None: ...

    async def list_absence_types(
        self, tenant_id: UUID, active_only: bool = True
    ) -> list[AbsenceType]:
        """List absence types ordered by sort order then name."""
        ...

    async def get_leave_balance(
        self,
        tenant_id: UUID,
        employee_id: UUID,
        absence_type_id: UUID,
        year: int,
        for_update: bool = False,
    ) -> LeaveBalance | None:
        """Load one balance row.

        ``for_update`` locks the row until the enclosing transaction ends on
        stores that support row locks.
        """
        ...

    async def list_leave_balances(
        self, tenant_id: UUID, employee_id: UUID, year: int
    ) -> list[LeaveBalance]: ...

    async def add_leave_balance(self, balance: LeaveBalance) -> LeaveBalance: ...

    async def update_leave_balance(self, balance: LeaveBalance) -> None: ...

    async def add_leave_record(self, record: LeaveRecord) -> LeaveRecord: ...

    async def get_leave_record(self, tenant_id: UUID, record_id: UUID) -> LeaveRecord | None: ...

    async def list_leave_records(
        self,
        tenant_id: UUID,
        employee_id: UUID | None = None,
        year: int | None = None,
    ) -> list[LeaveRecord]:
        """List records, latest start date first. ``year`` matches the start date."""
        ...

    async def update_leave_record(self, record: LeaveRecord) -> None: ...


class DeclarationStore(Protocol):
    """TSD declarations and their rows."""

    async def get_declaration(
        self, tenant_id: UUID, year: int, month: int, with_rows: bool = True
    ) -> TSDDeclaration | None:
        """Load the declaration for a period, rows ordered by last then first name."""
        ...

    async def get_declaration_by_id(
        self, tenant_id: UUID, declaration_id: UUID
    ) -> TSDDeclaration | None: ...

    async def list_declarations(self, tenant_id: UUID) -> list[TSDDeclaration]:
        """List declarations without rows, newest period first."""
        ...

    async def add_declaration(self, declaration: TSDDeclaration) -> TSDDeclaration:
        """Insert a declaration together with its rows."""
        ...

    async def update_declaration(self, declaration: TSDDeclaration) -> None:
        """Write declaration status fields. Rows are not touched."""
        ...

    async def delete_declaration(self, tenant_id: UUID, declaration_id: UUID) -> None:
        """Delete a declaration and its rows."""
        ...


class PayrollStore(EmployeeStore, PayrollRunStore, LeaveStore, DeclarationStore, Protocol):
    """The full persistence port."""

    def transaction(self) -> AsyncContextManager[PayrollStore]:
        """Open an atomic scope.

        Commits on normal exit, rolls back every write made through the
        yielded store when the block raises. Scopes may nest.
        """
        ...
