"""Payroll run engine - calculates, approves and closes monthly payroll runs."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from ee_payroll.calculators.tax_calculator import TaxCalculator
from ee_payroll.config import DEFAULT_RATES, RateTable
from ee_payroll.entities import (
    ZERO,
    Clock,
    ComponentType,
    Employee,
    PayrollRun,
    Payslip,
    SalaryComponent,
    utc_now,
)
from ee_payroll.errors import (
    EmployeeNotFoundError,
    PayrollRunNotFoundError,
    PersistenceError,
    ValidationError,
)
from ee_payroll.persistence.port import PayrollStore
from ee_payroll.schemas import CreatePayrollRunRequest
from ee_payroll.services.state_machine import PayrollRunStateMachine, PayrollStatus

logger = logging.getLogger(__name__)

MIN_PERIOD_YEAR = 2020
MAX_PERIOD_YEAR = 2100


class PayrollRunEngine:
    """Service for the payroll run lifecycle.

    Operations:
    - create_payroll_run: Open a DRAFT run for a period
    - calculate_payroll: Build one payslip per paid active employee
    - approve_payroll_run: Conditional CALCULATED → APPROVED update
    - mark_payroll_run_paid / mark_payroll_run_declared: Close out the run
    - set_base_salary / get_current_salary: Recurring salary bookkeeping

    Calculation replaces, never accumulates: the run's payslips are deleted
    and rebuilt, and the run's totals are written in the same transaction.
    """

    def __init__(
        self,
        store: PayrollStore,
        rates: RateTable = DEFAULT_RATES,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.calculator = TaxCalculator(rates)
        self.clock = clock

    # ------------------------------------------------------------------
    # Salary
    # ------------------------------------------------------------------

    async def set_base_salary(
        self,
        tenant_id: UUID,
        employee_id: UUID,
        amount: Decimal,
        effective_from: date,
    ) -> SalaryComponent:
        """Start a new recurring base salary, closing the open one the day before."""
        if amount <= 0:
            raise ValidationError("base salary must be positive", field="amount")

        async with self.store.transaction() as tx:
            if await tx.get_employee(tenant_id, employee_id) is None:
                raise EmployeeNotFoundError(employee_id)

            closed = await tx.close_open_base_salary(
                tenant_id, employee_id, effective_from - timedelta(days=1)
            )
            component = await tx.add_salary_component(
                SalaryComponent(
                    tenant_id=tenant_id,
                    employee_id=employee_id,
                    component_type=ComponentType.BASE_SALARY,
                    name="Base Salary",
                    amount=amount,
                    effective_from=effective_from,
                    is_taxable=True,
                    is_recurring=True,
                    created_at=self.clock(),
                )
            )

        logger.info(
            "Base salary for employee %s set to %s from %s (closed %d)",
            employee_id,
            amount,
            effective_from,
            closed,
        )
        return component

    async def get_current_salary(
        self, tenant_id: UUID, employee_id: UUID, as_of: date | None = None
    ) -> Decimal:
        """Sum of recurring salary components effective on ``as_of`` (default today)."""
        day = as_of or self.clock().date()
        components = await self.store.list_salary_components(tenant_id, employee_id)
        return sum(
            (c.amount for c in components if c.is_recurring and c.is_effective_on(day)),
            ZERO,
        )

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    async def create_payroll_run(
        self,
        tenant_id: UUID,
        created_by: str,
        request: CreatePayrollRunRequest,
    ) -> PayrollRun:
        if not MIN_PERIOD_YEAR <= request.period_year <= MAX_PERIOD_YEAR:
            raise ValidationError("invalid period year", field="period_year")
        if not 1 <= request.period_month <= 12:
            raise ValidationError("invalid period month", field="period_month")

        now = self.clock()
        run = await self.store.add_payroll_run(
            PayrollRun(
                tenant_id=tenant_id,
                period_year=request.period_year,
                period_month=request.period_month,
                status=PayrollStatus.DRAFT,
                payment_date=request.payment_date,
                notes=request.notes,
                created_by=created_by,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info("Payroll run %s created for %s", run.id, run.period)
        return run

    async def get_payroll_run(
        self, tenant_id: UUID, run_id: UUID, load_payslips: bool = False
    ) -> PayrollRun:
        run = await self.store.get_payroll_run(tenant_id, run_id)
        if run is None:
            raise PayrollRunNotFoundError(run_id)
        if load_payslips:
            run.payslips = await self.store.list_payslips(tenant_id, run_id, with_employees=True)
        return run

    async def list_payroll_runs(self, tenant_id: UUID, year: int | None = None) -> list[PayrollRun]:
        return await self.store.list_payroll_runs(tenant_id, year)

    async def calculate_payroll(self, tenant_id: UUID, run_id: UUID) -> PayrollRun:
        """Calculate payslips for every active employee with a salary.

        Employees whose current salary is zero or cannot be read are skipped.
        Raises InvalidTransitionError unless the run is DRAFT.
        """
        run = await self.get_payroll_run(tenant_id, run_id)
        PayrollRunStateMachine.validate_transition(
            run.status,
            PayrollStatus.CALCULATED,
            "payroll run must be in DRAFT status to calculate",
        )

        today = self.clock().date()
        payslips: list[Payslip] = []
        for employee in await self.store.list_active_employees(tenant_id):
            payslip = await self._build_payslip(run, employee, today)
            if payslip is not None:
                payslips.append(payslip)

        async with self.store.transaction() as tx:
            # Re-check under the row lock; an approval may have landed meanwhile
            run = await tx.get_payroll_run(tenant_id, run_id, for_update=True)
            if run is None:
                raise PayrollRunNotFoundError(run_id)
            PayrollRunStateMachine.validate_transition(
                run.status,
                PayrollStatus.CALCULATED,
                "payroll run must be in DRAFT status to calculate",
            )
            await tx.delete_payslips(tenant_id, run_id)
            await tx.add_payslips(payslips)

            run.total_gross = sum((p.gross_salary for p in payslips), ZERO)
            run.total_net = sum((p.net_salary for p in payslips), ZERO)
            run.total_employer_cost = sum((p.total_employer_cost for p in payslips), ZERO)
            run.status = PayrollStatus.CALCULATED
            run.updated_at = self.clock()
            await tx.update_payroll_run(run)

        run.payslips = payslips
        logger.info(
            "Payroll run %s calculated: %d payslips, gross=%s net=%s employer_cost=%s",
            run_id,
            len(payslips),
            run.total_gross,
            run.total_net,
            run.total_employer_cost,
        )
        return run

    async def approve_payroll_run(self, tenant_id: UUID, run_id: UUID, approved_by: str) -> None:
        """Approve a CALCULATED run.

        A single conditional update; a missing run and a run in the wrong
        status both raise PayrollRunNotFoundError.
        """
        affected = await self.store.approve_payroll_run(
            tenant_id, run_id, approved_by, self.clock()
        )
        if affected == 0:
            raise PayrollRunNotFoundError(run_id)
        logger.info("Payroll run %s approved by %s", run_id, approved_by)

    async def mark_payroll_run_paid(
        self, tenant_id: UUID, run_id: UUID, payment_date: date | None = None
    ) -> PayrollRun:
        run = await self.get_payroll_run(tenant_id, run_id)
        PayrollRunStateMachine.validate_transition(run.status, PayrollStatus.PAID)

        run.status = PayrollStatus.PAID
        if payment_date is not None:
            run.payment_date = payment_date
        run.updated_at = self.clock()
        await self.store.update_payroll_run(run)

        logger.info("Payroll run %s marked paid", run_id)
        return run

    async def mark_payroll_run_declared(self, tenant_id: UUID, run_id: UUID) -> PayrollRun:
        run = await self.get_payroll_run(tenant_id, run_id)
        PayrollRunStateMachine.validate_transition(run.status, PayrollStatus.DECLARED)

        run.status = PayrollStatus.DECLARED
        run.updated_at = self.clock()
        await self.store.update_payroll_run(run)

        logger.info("Payroll run %s marked declared", run_id)
        return run

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _build_payslip(
        self, run: PayrollRun, employee: Employee, today: date
    ) -> Payslip | None:
        try:
            salary = await self.get_current_salary(run.tenant_id, employee.id, today)
        except PersistenceError as exc:
            logger.debug("Skipping employee %s: salary unavailable (%s)", employee.id, exc)
            return None
        if salary == 0:
            logger.debug("Skipping employee %s: no current salary", employee.id)
            return None

        exemption = employee.exemption_amount()
        breakdown = self.calculator.calculate(salary, exemption, employee.funded_pension_rate)

        return Payslip(
            tenant_id=run.tenant_id,
            payroll_run_id=run.id,
            employee_id=employee.id,
            gross_salary=breakdown.gross_salary,
            basic_exemption=exemption,
            taxable_income=breakdown.taxable_income,
            income_tax=breakdown.income_tax,
            unemployment_insurance_employee=breakdown.unemployment_employee,
            funded_pension=breakdown.funded_pension,
            other_deductions=ZERO,
            net_salary=breakdown.net_salary,
            social_tax=breakdown.social_tax,
            unemployment_insurance_employer=breakdown.unemployment_employer,
            total_employer_cost=breakdown.total_employer_cost,
            created_at=self.clock(),
        )


__all__ = ["PayrollRunEngine"]
