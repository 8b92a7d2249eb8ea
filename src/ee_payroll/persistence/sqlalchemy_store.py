"""SQLAlchemy implementation of the persistence port.

The store works on a caller-owned AsyncSession. ``transaction()`` opens a
SAVEPOINT when the session is already inside a transaction and a real
transaction otherwise, so atomic units nest inside the caller's unit of work;
committing the session stays with its owner (see ``database.get_session``).

Writes go through ORM-enabled ``update``/``delete`` statements and reads load
with ``populate_existing`` so the identity map never serves stale rows.
SQLAlchemy errors are re-raised as PersistenceError carrying the operation
name.
"""

from __future__ import annotations

import functools
import logging
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ee_payroll import entities
from ee_payroll import models as orm
from ee_payroll.errors import PersistenceError
from ee_payroll.services.state_machine import PayrollStatus

logger = logging.getLogger(__name__)

E = TypeVar("E")
F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def _translate_errors(fn: F) -> F:
    """Wrap SQLAlchemyError raised by a store method in PersistenceError."""

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await fn(*args, **kwargs)
        except SQLAlchemyError as exc:
            logger.error("Persistence operation %s failed: %s", fn.__name__, exc)
            raise PersistenceError(fn.__name__, exc) from exc

    return wrapper  # type: ignore[return-value]


def _to_entity(row: orm.Base, cls: type[E]) -> E:
    return cls(**row.to_dict())


def _column_values(entity: Any, model: type[orm.Base]) -> dict[str, Any]:
    return {c.name: getattr(entity, c.name) for c in model.__table__.columns}


def _to_model(entity: Any, model: type[orm.Base]) -> orm.Base:
    # Unset values fall back to the column defaults
    values = {k: v for k, v in _column_values(entity, model).items() if v is not None}
    return model(**values)


class SqlAlchemyStore:
    """PayrollStore backed by an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SqlAlchemyStore]:
        if self.session.in_transaction():
            scope = self.session.begin_nested()
        else:
            scope = self.session.begin()
        try:
            async with scope:
                yield self
        except SQLAlchemyError as exc:
            raise PersistenceError("transaction", exc) from exc

    async def _first(self, stmt: Any) -> Any:
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return result.scalars().first()

    async def _all(self, stmt: Any) -> list[Any]:
        result = await self.session.execute(stmt.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def _insert(self, entity: Any, model: type[orm.Base]) -> orm.Base:
        row = _to_model(entity, model)
        self.session.add(row)
        await self.session.flush()
        return row

    async def _update(self, entity: Any, model: type[orm.Base]) -> None:
        values = _column_values(entity, model)
        values.pop("id")
        values.pop("created_at", None)
        await self.session.execute(
            update(model).where(model.id == entity.id).values(**values)
        )

    # ------------------------------------------------------------------
    # Employees
    # ------------------------------------------------------------------

    @_translate_errors
    async def add_employee(self, employee: entities.Employee) -> entities.Employee:
        row = await self._insert(employee, orm.Employee)
        return _to_entity(row, entities.Employee)

    @_translate_errors
    async def get_employee(
        self, tenant_id: UUID, employee_id: UUID
    ) -> entities.Employee | None:
        row = await self._first(
            select(orm.Employee).where(
                orm.Employee.tenant_id == tenant_id,
                orm.Employee.id == employee_id,
            )
        )
        return _to_entity(row, entities.Employee) if row else None

    @_translate_errors
    async def list_active_employees(self, tenant_id: UUID) -> list[entities.Employee]:
        rows = await self._all(
            select(orm.Employee)
            .where(orm.Employee.tenant_id == tenant_id, orm.Employee.is_active.is_(True))
            .order_by(orm.Employee.last_name, orm.Employee.first_name)
        )
        return [_to_entity(r, entities.Employee) for r in rows]

    @_translate_errors
    async def list_salary_components(
        self, tenant_id: UUID, employee_id: UUID
    ) -> list[entities.SalaryComponent]:
        rows = await self._all(
            select(orm.SalaryComponent)
            .where(
                orm.SalaryComponent.tenant_id == tenant_id,
                orm.SalaryComponent.employee_id == employee_id,
            )
            .order_by(orm.SalaryComponent.effective_from)
        )
        return [_to_entity(r, entities.SalaryComponent) for r in rows]

    @_translate_errors
    async def add_salary_component(
        self, component: entities.SalaryComponent
    ) -> entities.SalaryComponent:
        row = await self._insert(component, orm.SalaryComponent)
        return _to_entity(row, entities.SalaryComponent)

    @_translate_errors
    async def close_open_base_salary(
        self, tenant_id: UUID, employee_id: UUID, effective_to: date
    ) -> int:
        result = await self.session.execute(
            update(orm.SalaryComponent)
            .where(
                orm.SalaryComponent.tenant_id == tenant_id,
                orm.SalaryComponent.employee_id == employee_id,
                orm.SalaryComponent.component_type == entities.ComponentType.BASE_SALARY,
                orm.SalaryComponent.is_recurring.is_(True),
                orm.SalaryComponent.effective_to.is_(None),
            )
            .values(effective_to=effective_to)
        )
        return result.rowcount

    # ------------------------------------------------------------------
    # Payroll runs
    # ------------------------------------------------------------------

    @_translate_errors
    async def add_payroll_run(self, run: entities.PayrollRun) -> entities.PayrollRun:
        row = await self._insert(run, orm.PayrollRun)
        return _to_entity(row, entities.PayrollRun)

    @_translate_errors
    async def get_payroll_run(
        self, tenant_id: UUID, run_id: UUID, for_update: bool = False
    ) -> entities.PayrollRun | None:
        stmt = select(orm.PayrollRun).where(
            orm.PayrollRun.tenant_id == tenant_id,
            orm.PayrollRun.id == run_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        row = await self._first(stmt)
        return _to_entity(row, entities.PayrollRun) if row else None

    @_translate_errors
    async def list_payroll_runs(
        self, tenant_id: UUID, year: int | None = None
    ) -> list[entities.PayrollRun]:
        stmt = select(orm.PayrollRun).where(orm.PayrollRun.tenant_id == tenant_id)
        if year is not None:
            stmt = stmt.where(orm.PayrollRun.period_year == year)
        rows = await self._all(
            stmt.order_by(orm.PayrollRun.period_year.desc(), orm.PayrollRun.period_month.desc())
        )
        return [_to_entity(r, entities.PayrollRun) for r in rows]

    @_translate_errors
    async def update_payroll_run(self, run: entities.PayrollRun) -> None:
        await self._update(run, orm.PayrollRun)

    @_translate_errors
    async def approve_payroll_run(
        self, tenant_id: UUID, run_id: UUID, approved_by: str, approved_at: datetime
    ) -> int:
        result = await self.session.execute(
            update(orm.PayrollRun)
            .where(
                orm.PayrollRun.tenant_id == tenant_id,
                orm.PayrollRun.id == run_id,
                orm.PayrollRun.status == PayrollStatus.CALCULATED,
            )
            .values(
                status=PayrollStatus.APPROVED,
                approved_by=approved_by,
                approved_at=approved_at,
                updated_at=approved_at,
            )
        )
        return result.rowcount

    @_translate_errors
    async def delete_payslips(self, tenant_id: UUID, run_id: UUID) -> int:
        result = await self.session.execute(
            delete(orm.Payslip).where(
                orm.Payslip.tenant_id == tenant_id,
                orm.Payslip.payroll_run_id == run_id,
            )
        )
        return result.rowcount

    @_translate_errors
    async def add_payslips(self, payslips: list[entities.Payslip]) -> None:
        self.session.add_all([_to_model(p, orm.Payslip) for p in payslips])
        await self.session.flush()

    @_translate_errors
    async def list_payslips(
        self, tenant_id: UUID, run_id: UUID, with_employees: bool = False
    ) -> list[entities.Payslip]:
        rows = await self._all(
            select(orm.Payslip).where(
                orm.Payslip.tenant_id == tenant_id,
                orm.Payslip.payroll_run_id == run_id,
            )
        )
        payslips = [_to_entity(r, entities.Payslip) for r in rows]
        if not with_employees or not payslips:
            return payslips

        employee_rows = await self._all(
            select(orm.Employee).where(
                orm.Employee.tenant_id == tenant_id,
                orm.Employee.id.in_({p.employee_id for p in payslips}),
            )
        )
        employees = {r.id: _to_entity(r, entities.Employee) for r in employee_rows}
        for payslip in payslips:
            payslip.employee = employees.get(payslip.employee_id)
        payslips.sort(
            key=lambda p: (p.employee.last_name, p.employee.first_name)
            if p.employee
            else ("", "")
        )
        return payslips

    # ------------------------------------------------------------------
    # Leave
    # ------------------------------------------------------------------

    async def _absence_types_by_id(self, ids: set[UUID]) -> dict[UUID, entities.AbsenceType]:
        if not ids:
            return {}
        rows = await self._all(select(orm.AbsenceType).where(orm.AbsenceType.id.in_(ids)))
        return {r.id: _to_entity(r, entities.AbsenceType) for r in rows}

    async def _hydrate_balances(
        self, balances: list[entities.LeaveBalance]
    ) -> list[entities.LeaveBalance]:
        types = await self._absence_types_by_id({b.absence_type_id for b in balances})
        for balance in balances:
            balance.absence_type = types.get(balance.absence_type_id)
        return balances

    async def _hydrate_records(
        self, records: list[entities.LeaveRecord]
    ) -> list[entities.LeaveRecord]:
        types = await self._absence_types_by_id({r.absence_type_id for r in records})
        employee_ids = {r.employee_id for r in records}
        employees: dict[UUID, entities.Employee] = {}
        if employee_ids:
            rows = await self._all(select(orm.Employee).where(orm.Employee.id.in_(employee_ids)))
            employees = {r.id: _to_entity(r, entities.Employee) for r in rows}
        for record in records:
            record.absence_type = types.get(record.absence_type_id)
            record.employee = employees.get(record.employee_id)
        return records

    @_translate_errors
    async def add_absence_type(self, absence_type: entities.AbsenceType) -> entities.AbsenceType:
        row = await self._insert(absence_type, orm.AbsenceType)
        return _to_entity(row, entities.AbsenceType)

    @_translate_errors
    async def get_absence_type(
        self, tenant_id: UUID, absence_type_id: UUID
    ) -> entities.AbsenceType | None:
        row = await self._first(
            select(orm.AbsenceType).where(
                orm.AbsenceType.tenant_id == tenant_id,
                orm.AbsenceType.id == absence_type_id,
            )
        )
        return _to_entity(row, entities.AbsenceType) if row else None

    @_translate_errors
    async def list_absence_types(
        self, tenant_id: UUID, active_only: bool = True
    ) -> list[entities.AbsenceType]:
        stmt = select(orm.AbsenceType).where(orm.AbsenceType.tenant_id == tenant_id)
        if active_only:
            stmt = stmt.where(orm.AbsenceType.is_active.is_(True))
        rows = await self._all(stmt.order_by(orm.AbsenceType.sort_order, orm.AbsenceType.name))
        return [_to_entity(r, entities.AbsenceType) for r in rows]

    @_translate_errors
    async def get_leave_balance(
        self,
        tenant_id: UUID,
        employee_id: UUID,
        absence_type_id: UUID,
        year: int,
        for_update: bool = False,
    ) -> entities.LeaveBalance | None:
        stmt = select(orm.LeaveBalance).where(
            orm.LeaveBalance.tenant_id == tenant_id,
            orm.LeaveBalance.employee_id == employee_id,
            orm.LeaveBalance.absence_type_id == absence_type_id,
            orm.LeaveBalance.year == year,
        )
        if for_update:
            stmt = stmt.with_for_update()
        row = await self._first(stmt)
        if row is None:
            return None
        return (await self._hydrate_balances([_to_entity(row, entities.LeaveBalance)]))[0]

    @_translate_errors
    async def list_leave_balances(
        self, tenant_id: UUID, employee_id: UUID, year: int
    ) -> list[entities.LeaveBalance]:
        rows = await self._all(
            select(orm.LeaveBalance)
            .join(orm.AbsenceType, orm.AbsenceType.id == orm.LeaveBalance.absence_type_id)
            .where(
                orm.LeaveBalance.tenant_id == tenant_id,
                orm.LeaveBalance.employee_id == employee_id,
                orm.LeaveBalance.year == year,
            )
            .order_by(orm.AbsenceType.sort_order, orm.AbsenceType.name)
        )
        return await self._hydrate_balances([_to_entity(r, entities.LeaveBalance) for r in rows])

    @_translate_errors
    async def add_leave_balance(self, balance: entities.LeaveBalance) -> entities.LeaveBalance:
        row = await self._insert(balance, orm.LeaveBalance)
        return (await self._hydrate_balances([_to_entity(row, entities.LeaveBalance)]))[0]

    @_translate_errors
    async def update_leave_balance(self, balance: entities.LeaveBalance) -> None:
        await self._update(balance, orm.LeaveBalance)

    @_translate_errors
    async def add_leave_record(self, record: entities.LeaveRecord) -> entities.LeaveRecord:
        row = await self._insert(record, orm.LeaveRecord)
        return (await self._hydrate_records([_to_entity(row, entities.LeaveRecord)]))[0]

    @_translate_errors
    async def get_leave_record(
        self, tenant_id: UUID, record_id: UUID
    ) -> entities.LeaveRecord | None:
        row = await self._first(
            select(orm.LeaveRecord).where(
                orm.LeaveRecord.tenant_id == tenant_id,
                orm.LeaveRecord.id == record_id,
            )
        )
        if row is None:
            return None
        return (await self._hydrate_records([_to_entity(row, entities.LeaveRecord)]))[0]

    @_translate_errors
    async def list_leave_records(
        self,
        tenant_id: UUID,
        employee_id: UUID | None = None,
        year: int | None = None,
    ) -> list[entities.LeaveRecord]:
        stmt = select(orm.LeaveRecord).where(orm.LeaveRecord.tenant_id == tenant_id)
        if employee_id is not None:
            stmt = stmt.where(orm.LeaveRecord.employee_id == employee_id)
        if year is not None:
            stmt = stmt.where(
                orm.LeaveRecord.start_date >= date(year, 1, 1),
                orm.LeaveRecord.start_date <= date(year, 12, 31),
            )
        rows = await self._all(stmt.order_by(orm.LeaveRecord.start_date.desc()))
        return await self._hydrate_records([_to_entity(r, entities.LeaveRecord) for r in rows])

    @_translate_errors
    async def update_leave_record(self, record: entities.LeaveRecord) -> None:
        await self._update(record, orm.LeaveRecord)

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    async def _load_rows(self, declaration: entities.TSDDeclaration) -> entities.TSDDeclaration:
        rows = await self._all(
            select(orm.TSDRow)
            .where(orm.TSDRow.declaration_id == declaration.id)
            .order_by(orm.TSDRow.last_name, orm.TSDRow.first_name)
        )
        declaration.rows = [_to_entity(r, entities.TSDRow) for r in rows]
        return declaration

    @_translate_errors
    async def get_declaration(
        self, tenant_id: UUID, year: int, month: int, with_rows: bool = True
    ) -> entities.TSDDeclaration | None:
        row = await self._first(
            select(orm.TSDDeclaration).where(
                orm.TSDDeclaration.tenant_id == tenant_id,
                orm.TSDDeclaration.period_year == year,
                orm.TSDDeclaration.period_month == month,
            )
        )
        if row is None:
            return None
        declaration = _to_entity(row, entities.TSDDeclaration)
        return await self._load_rows(declaration) if with_rows else declaration

    @_translate_errors
    async def get_declaration_by_id(
        self, tenant_id: UUID, declaration_id: UUID
    ) -> entities.TSDDeclaration | None:
        row = await self._first(
            select(orm.TSDDeclaration).where(
                orm.TSDDeclaration.tenant_id == tenant_id,
                orm.TSDDeclaration.id == declaration_id,
            )
        )
        if row is None:
            return None
        return await self._load_rows(_to_entity(row, entities.TSDDeclaration))

    @_translate_errors
    async def list_declarations(self, tenant_id: UUID) -> list[entities.TSDDeclaration]:
        rows = await self._all(
            select(orm.TSDDeclaration)
            .where(orm.TSDDeclaration.tenant_id == tenant_id)
            .order_by(
                orm.TSDDeclaration.period_year.desc(),
                orm.TSDDeclaration.period_month.desc(),
            )
        )
        return [_to_entity(r, entities.TSDDeclaration) for r in rows]

    @_translate_errors
    async def add_declaration(
        self, declaration: entities.TSDDeclaration
    ) -> entities.TSDDeclaration:
        await self._insert(declaration, orm.TSDDeclaration)
        self.session.add_all([_to_model(r, orm.TSDRow) for r in declaration.rows])
        await self.session.flush()
        return await self.get_declaration_by_id(declaration.tenant_id, declaration.id)

    @_translate_errors
    async def update_declaration(self, declaration: entities.TSDDeclaration) -> None:
        await self._update(declaration, orm.TSDDeclaration)

    @_translate_errors
    async def delete_declaration(self, tenant_id: UUID, declaration_id: UUID) -> None:
        await self.session.execute(
            delete(orm.TSDRow).where(
                orm.TSDRow.tenant_id == tenant_id,
                orm.TSDRow.declaration_id == declaration_id,
            )
        )
        await self.session.execute(
            delete(orm.TSDDeclaration).where(
                orm.TSDDeclaration.tenant_id == tenant_id,
                orm.TSDDeclaration.id == declaration_id,
            )
        )
