"""TSD declaration generation and status bookkeeping."""

from __future__ import annotations

import logging
from uuid import UUID

from ee_payroll.entities import (
    PAYMENT_TYPE_SALARY,
    Clock,
    DeclarationSummary,
    TSDDeclaration,
    TSDRow,
    utc_now,
)
from ee_payroll.errors import (
    DeclarationNotFoundError,
    PayrollRunNotFoundError,
    ValidationError,
)
from ee_payroll.persistence.port import PayrollStore
from ee_payroll.services.state_machine import (
    DeclarationStateMachine,
    DeclarationStatus,
    InvalidTransitionError,
    PayrollRunStateMachine,
)

logger = logging.getLogger(__name__)


class DeclarationGenerator:
    """Builds the monthly TSD declaration from an approved or paid payroll run.

    There is at most one declaration per (tenant, period). Generating again
    deletes the previous declaration and its rows and inserts a fresh one
    with a new id, all in one transaction.
    """

    def __init__(self, store: PayrollStore, clock: Clock = utc_now):
        self.store = store
        self.clock = clock

    async def generate_declaration(self, tenant_id: UUID, run_id: UUID) -> TSDDeclaration:
        run = await self.store.get_payroll_run(tenant_id, run_id)
        if run is None:
            raise PayrollRunNotFoundError(run_id)
        if not PayrollRunStateMachine.can_declare(run.status):
            raise InvalidTransitionError(
                run.status.value,
                "DECLARED",
                "payroll run must be APPROVED or PAID to generate TSD",
            )

        payslips = []
        for payslip in await self.store.list_payslips(tenant_id, run_id, with_employees=True):
            if payslip.employee is None:
                logger.warning(
                    "Payslip %s skipped: employee %s could not be loaded",
                    payslip.id,
                    payslip.employee_id,
                )
                continue
            payslips.append(payslip)
        if not payslips:
            raise ValidationError("no payslips found for this payroll run")

        now = self.clock()
        declaration = TSDDeclaration(
            tenant_id=tenant_id,
            period_year=run.period_year,
            period_month=run.period_month,
            payroll_run_id=run_id,
            status=DeclarationStatus.DRAFT,
            created_at=now,
            updated_at=now,
        )

        for payslip in payslips:
            employee = payslip.employee
            row = TSDRow(
                tenant_id=tenant_id,
                declaration_id=declaration.id,
                employee_id=payslip.employee_id,
                personal_code=employee.personal_code,
                first_name=employee.first_name,
                last_name=employee.last_name,
                payment_type=PAYMENT_TYPE_SALARY,
                gross_payment=payslip.gross_salary,
                basic_exemption=payslip.basic_exemption,
                taxable_amount=payslip.taxable_income,
                income_tax=payslip.income_tax,
                social_tax=payslip.social_tax,
                unemployment_insurance_employee=payslip.unemployment_insurance_employee,
                unemployment_insurance_employer=payslip.unemployment_insurance_employer,
                funded_pension=payslip.funded_pension,
                created_at=now,
            )
            declaration.rows.append(row)

            declaration.total_payments += row.gross_payment
            declaration.total_income_tax += row.income_tax
            declaration.total_social_tax += row.social_tax
            declaration.total_unemployment_employer += row.unemployment_insurance_employer
            declaration.total_unemployment_employee += row.unemployment_insurance_employee
            declaration.total_funded_pension += row.funded_pension

        async with self.store.transaction() as tx:
            existing = await tx.get_declaration(
                tenant_id, run.period_year, run.period_month, with_rows=False
            )
            if existing is not None:
                await tx.delete_declaration(tenant_id, existing.id)
                logger.info(
                    "Replacing TSD declaration %s for %s", existing.id, existing.period
                )
            declaration = await tx.add_declaration(declaration)

        logger.info(
            "TSD declaration %s generated for %s: %d rows, payments=%s",
            declaration.id,
            declaration.period,
            len(declaration.rows),
            declaration.total_payments,
        )
        return declaration

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_declaration(self, tenant_id: UUID, year: int, month: int) -> TSDDeclaration:
        declaration = await self.store.get_declaration(tenant_id, year, month)
        if declaration is None:
            raise DeclarationNotFoundError(f"{year:04d}-{month:02d}")
        return declaration

    async def list_declarations(self, tenant_id: UUID) -> list[TSDDeclaration]:
        return await self.store.list_declarations(tenant_id)

    async def get_summary(self, tenant_id: UUID, year: int, month: int) -> DeclarationSummary:
        declaration = await self.get_declaration(tenant_id, year, month)
        return DeclarationSummary.from_declaration(declaration)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def mark_submitted(
        self, tenant_id: UUID, declaration_id: UUID, emta_reference: str
    ) -> TSDDeclaration:
        """Record submission to the tax board with its reference code."""
        declaration = await self._transition(
            tenant_id, declaration_id, DeclarationStatus.SUBMITTED, emta_reference=emta_reference
        )
        logger.info(
            "TSD declaration %s submitted (reference %s)", declaration_id, emta_reference
        )
        return declaration

    async def mark_accepted(self, tenant_id: UUID, declaration_id: UUID) -> TSDDeclaration:
        declaration = await self._transition(
            tenant_id, declaration_id, DeclarationStatus.ACCEPTED
        )
        logger.info("TSD declaration %s accepted", declaration_id)
        return declaration

    async def mark_rejected(self, tenant_id: UUID, declaration_id: UUID) -> TSDDeclaration:
        declaration = await self._transition(
            tenant_id, declaration_id, DeclarationStatus.REJECTED
        )
        logger.info("TSD declaration %s rejected", declaration_id)
        return declaration

    async def _transition(
        self,
        tenant_id: UUID,
        declaration_id: UUID,
        to_status: DeclarationStatus,
        emta_reference: str | None = None,
    ) -> TSDDeclaration:
        async with self.store.transaction() as tx:
            declaration = await tx.get_declaration_by_id(tenant_id, declaration_id)
            if declaration is None:
                raise DeclarationNotFoundError(declaration_id)
            DeclarationStateMachine.validate_transition(declaration.status, to_status)

            now = self.clock()
            declaration.status = to_status
            declaration.updated_at = now
            if to_status == DeclarationStatus.SUBMITTED:
                declaration.submitted_at = now
                declaration.emta_reference = emta_reference
            await tx.update_declaration(declaration)

        return declaration


__all__ = ["DeclarationGenerator"]
