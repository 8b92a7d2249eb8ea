"""Tests for TSD declaration generation and status tracking."""

from decimal import Decimal
from uuid import uuid4

import pytest

from ee_payroll.errors import (
    DeclarationNotFoundError,
    PayrollRunNotFoundError,
    PersistenceError,
    ValidationError,
)
from ee_payroll.services.state_machine import (
    DeclarationStatus,
    InvalidTransitionError,
)


class TestGenerateDeclaration:
    async def test_rows_and_totals(self, generator, tenant_id, approved_run):
        declaration = await generator.generate_declaration(tenant_id, approved_run.id)

        assert declaration.period == "2025-03"
        assert declaration.status == DeclarationStatus.DRAFT
        assert declaration.payroll_run_id == approved_run.id
        assert [r.last_name for r in declaration.rows] == ["Kask", "Tamm"]
        assert {r.payment_type for r in declaration.rows} == {"10"}

        assert declaration.total_payments == Decimal("3500.00")
        assert declaration.total_income_tax == Decimal("462.00")
        assert declaration.total_social_tax == Decimal("1155.00")
        assert declaration.total_unemployment_employee == Decimal("56.00")
        assert declaration.total_unemployment_employer == Decimal("28.00")
        assert declaration.total_funded_pension == Decimal("70.00")

    async def test_totals_match_rows(self, generator, tenant_id, approved_run):
        declaration = await generator.generate_declaration(tenant_id, approved_run.id)

        assert declaration.total_payments == sum(r.gross_payment for r in declaration.rows)
        assert declaration.total_social_tax == sum(r.social_tax for r in declaration.rows)

    async def test_row_copies_employee_identity(self, generator, tenant_id, approved_run, staff):
        declaration = await generator.generate_declaration(tenant_id, approved_run.id)

        tamm = declaration.rows[1]
        assert tamm.employee_id == staff[0].id
        assert tamm.personal_code == "48001010005"
        assert tamm.first_name == "Mari"
        assert tamm.taxable_amount == Decimal("1300.00")
        assert tamm.basic_exemption == Decimal("700.00")

    async def test_regenerate_replaces(self, generator, tenant_id, approved_run):
        first = await generator.generate_declaration(tenant_id, approved_run.id)
        second = await generator.generate_declaration(tenant_id, approved_run.id)

        assert second.id != first.id
        declarations = await generator.list_declarations(tenant_id)
        assert [d.id for d in declarations] == [second.id]

        loaded = await generator.get_declaration(tenant_id, 2025, 3)
        assert loaded.id == second.id
        assert len(loaded.rows) == 2

    async def test_paid_run_is_declarable(self, engine, generator, tenant_id, approved_run):
        await engine.mark_payroll_run_paid(tenant_id, approved_run.id)

        declaration = await generator.generate_declaration(tenant_id, approved_run.id)
        assert len(declaration.rows) == 2

    async def test_calculated_run_refused(self, engine, generator, tenant_id, staff, draft_run):
        await engine.calculate_payroll(tenant_id, draft_run.id)

        with pytest.raises(InvalidTransitionError) as exc_info:
            await generator.generate_declaration(tenant_id, draft_run.id)
        assert exc_info.value.from_status == "CALCULATED"
        assert exc_info.value.to_status == "DECLARED"
        assert "APPROVED or PAID" in exc_info.value.reason

    async def test_unknown_run(self, generator, tenant_id):
        with pytest.raises(PayrollRunNotFoundError):
            await generator.generate_declaration(tenant_id, uuid4())

    async def test_run_without_payslips(self, engine, generator, tenant_id, draft_run):
        await engine.calculate_payroll(tenant_id, draft_run.id)
        await engine.approve_payroll_run(tenant_id, draft_run.id, "cfo")

        with pytest.raises(ValidationError, match="no payslips found"):
            await generator.generate_declaration(tenant_id, draft_run.id)

    async def test_payslip_without_employee_is_skipped(
        self, store, generator, tenant_id, approved_run, staff
    ):
        tamm, kask = staff
        del store._tables.employees[kask.id]

        declaration = await generator.generate_declaration(tenant_id, approved_run.id)

        assert [r.employee_id for r in declaration.rows] == [tamm.id]
        row = declaration.rows[0]
        assert declaration.total_payments == Decimal("2000.00") == row.gross_payment
        assert declaration.total_income_tax == row.income_tax
        assert declaration.total_social_tax == Decimal("660.00")
        assert declaration.total_funded_pension == row.funded_pension

    async def test_no_loadable_employees_keeps_previous(
        self, store, generator, tenant_id, approved_run
    ):
        first = await generator.generate_declaration(tenant_id, approved_run.id)
        store._tables.employees.clear()

        with pytest.raises(ValidationError, match="no payslips found"):
            await generator.generate_declaration(tenant_id, approved_run.id)

        loaded = await generator.get_declaration(tenant_id, 2025, 3)
        assert loaded.id == first.id
        assert len(loaded.rows) == 2
        assert loaded.total_payments == Decimal("3500.00")

    async def test_failed_row_insert_keeps_previous(
        self, store, generator, tenant_id, approved_run
    ):
        first = await generator.generate_declaration(tenant_id, approved_run.id)
        store.fail_on("add_declaration_row")

        with pytest.raises(PersistenceError):
            await generator.generate_declaration(tenant_id, approved_run.id)

        loaded = await generator.get_declaration(tenant_id, 2025, 3)
        assert loaded.id == first.id
        assert len(loaded.rows) == 2


class TestDeclarationReads:
    async def test_missing_period(self, generator, tenant_id):
        with pytest.raises(DeclarationNotFoundError) as exc_info:
            await generator.get_declaration(tenant_id, 2025, 2)
        assert exc_info.value.entity_id == "2025-02"

    async def test_summary(self, generator, tenant_id, approved_run):
        await generator.generate_declaration(tenant_id, approved_run.id)

        summary = await generator.get_summary(tenant_id, 2025, 3)

        assert summary.period == "2025-03"
        assert summary.employee_count == 2
        assert summary.total_gross_payments == Decimal("3500.00")
        assert summary.total_employee_taxes == Decimal("588.00")
        assert summary.total_employer_costs == Decimal("1183.00")
        assert summary.status == DeclarationStatus.DRAFT
        assert summary.submitted_at is None


class TestDeclarationStatus:
    async def test_submit_then_accept(self, generator, tenant_id, approved_run, fixed_now):
        declaration = await generator.generate_declaration(tenant_id, approved_run.id)

        submitted = await generator.mark_submitted(tenant_id, declaration.id, "EMTA-2025-03-001")
        assert submitted.status == DeclarationStatus.SUBMITTED
        assert submitted.submitted_at == fixed_now
        assert submitted.emta_reference == "EMTA-2025-03-001"

        accepted = await generator.mark_accepted(tenant_id, declaration.id)
        assert accepted.status == DeclarationStatus.ACCEPTED
        assert accepted.emta_reference == "EMTA-2025-03-001"

    async def test_submit_then_reject(self, generator, tenant_id, approved_run):
        declaration = await generator.generate_declaration(tenant_id, approved_run.id)
        await generator.mark_submitted(tenant_id, declaration.id, "REF")

        rejected = await generator.mark_rejected(tenant_id, declaration.id)
        assert rejected.status == DeclarationStatus.REJECTED

    async def test_accept_draft_refused(self, generator, tenant_id, approved_run):
        declaration = await generator.generate_declaration(tenant_id, approved_run.id)

        with pytest.raises(InvalidTransitionError):
            await generator.mark_accepted(tenant_id, declaration.id)

        loaded = await generator.get_declaration(tenant_id, 2025, 3)
        assert loaded.status == DeclarationStatus.DRAFT

    async def test_unknown_declaration(self, generator, tenant_id):
        with pytest.raises(DeclarationNotFoundError):
            await generator.mark_submitted(tenant_id, uuid4(), "REF")
