"""Tests for the leave balance ledger and the leave request workflow."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from ee_payroll.absence_types import DEFAULT_ABSENCE_TYPES
from ee_payroll.entities import AbsenceType
from ee_payroll.errors import (
    AbsenceTypeNotFoundError,
    InsufficientLeaveBalanceError,
    LeaveBalanceNotFoundError,
    LeaveRecordNotFoundError,
    LeaveRecordNotPendingError,
    PersistenceError,
    ValidationError,
)
from ee_payroll.schemas import CreateLeaveRecordRequest, UpdateLeaveBalanceRequest
from ee_payroll.services.state_machine import InvalidTransitionError, LeaveStatus


def leave_request(employee, absence_type, days="5", **overrides) -> CreateLeaveRecordRequest:
    values = dict(
        employee_id=employee.id,
        absence_type_id=absence_type.id,
        start_date=date(2025, 7, 7),
        end_date=date(2025, 7, 11),
        total_days=Decimal(days),
        working_days=Decimal(days),
    )
    values.update(overrides)
    return CreateLeaveRecordRequest(**values)


async def remaining(ledger, tenant_id, employee, absence_type):
    balance = await ledger.get_leave_balance(tenant_id, employee.id, absence_type.id, 2025)
    return balance.remaining_days


class TestLeaveWorkflow:
    """Request, approve, cancel and reject move days between pending and used."""

    async def test_request_approve_cancel(
        self, ledger, tenant_id, employee, annual_leave, annual_balance
    ):
        """28 remaining, request 5 (23), approve (23), cancel (28)."""
        assert await remaining(ledger, tenant_id, employee, annual_leave) == Decimal("28")

        record = await ledger.create_leave_record(
            tenant_id, "hr@example.ee", leave_request(employee, annual_leave)
        )
        assert record.status == LeaveStatus.PENDING
        assert record.requested_by == "hr@example.ee"
        balance = await ledger.get_leave_balance(tenant_id, employee.id, annual_leave.id, 2025)
        assert balance.pending_days == Decimal("5")
        assert balance.remaining_days == Decimal("23")

        approved = await ledger.approve_leave_record(tenant_id, record.id, "manager")
        assert approved.status == LeaveStatus.APPROVED
        assert approved.approved_by == "manager"
        balance = await ledger.get_leave_balance(tenant_id, employee.id, annual_leave.id, 2025)
        assert balance.pending_days == Decimal("0")
        assert balance.used_days == Decimal("5")
        assert balance.remaining_days == Decimal("23")

        canceled = await ledger.cancel_leave_record(tenant_id, record.id, "employee")
        assert canceled.status == LeaveStatus.CANCELED
        balance = await ledger.get_leave_balance(tenant_id, employee.id, annual_leave.id, 2025)
        assert balance.used_days == Decimal("0")
        assert balance.remaining_days == Decimal("28")

    async def test_reject_releases_pending(
        self, ledger, tenant_id, employee, annual_leave, annual_balance
    ):
        record = await ledger.create_leave_record(
            tenant_id, "hr", leave_request(employee, annual_leave, days="3")
        )
        rejected = await ledger.reject_leave_record(tenant_id, record.id, "manager", "busy season")

        assert rejected.status == LeaveStatus.REJECTED
        assert rejected.rejection_reason == "busy season"
        assert rejected.rejected_by == "manager"
        assert await remaining(ledger, tenant_id, employee, annual_leave) == Decimal("28")

    async def test_cancel_pending_releases_pending(
        self, ledger, tenant_id, employee, annual_leave, annual_balance
    ):
        record = await ledger.create_leave_record(
            tenant_id, "hr", leave_request(employee, annual_leave)
        )
        await ledger.cancel_leave_record(tenant_id, record.id, "employee")

        balance = await ledger.get_leave_balance(tenant_id, employee.id, annual_leave.id, 2025)
        assert balance.pending_days == Decimal("0")
        assert balance.remaining_days == Decimal("28")

    async def test_request_without_balance_row(self, ledger, tenant_id, employee, annual_leave):
        """Balance tracking is opt-in; no balance means no bookkeeping."""
        record = await ledger.create_leave_record(
            tenant_id, "hr", leave_request(employee, annual_leave, days="40")
        )
        approved = await ledger.approve_leave_record(tenant_id, record.id, "manager")

        assert approved.status == LeaveStatus.APPROVED
        assert await ledger.get_leave_balances(tenant_id, employee.id, 2025) == []

    async def test_records_are_hydrated(
        self, ledger, tenant_id, employee, annual_leave, annual_balance
    ):
        record = await ledger.create_leave_record(
            tenant_id, "hr", leave_request(employee, annual_leave)
        )
        loaded = await ledger.get_leave_record(tenant_id, record.id)

        assert loaded.absence_type.code == "ANNUAL_LEAVE"
        assert loaded.employee.last_name == "Tamm"

    async def test_list_records_filters_by_year(
        self, ledger, tenant_id, employee, annual_leave, annual_balance
    ):
        await ledger.create_leave_record(tenant_id, "hr", leave_request(employee, annual_leave))
        await ledger.create_leave_record(
            tenant_id,
            "hr",
            leave_request(
                employee,
                annual_leave,
                days="2",
                start_date=date(2026, 1, 5),
                end_date=date(2026, 1, 6),
            ),
        )

        assert len(await ledger.list_leave_records(tenant_id, employee.id)) == 2
        records_2025 = await ledger.list_leave_records(tenant_id, employee.id, 2025)
        assert [r.start_date.year for r in records_2025] == [2025]


class TestLeaveRequestValidation:
    """Requests are validated before any store access."""

    @pytest.mark.parametrize(
        "overrides, message",
        [
            ({"employee_id": None}, "employee ID is required"),
            ({"absence_type_id": None}, "absence type ID is required"),
            ({"start_date": None}, "start date is required"),
            ({"end_date": None}, "end date is required"),
            ({"end_date": date(2025, 7, 1)}, "end date must be after start date"),
            ({"working_days": Decimal("0")}, "working days must be positive"),
            ({"working_days": Decimal("-1")}, "working days must be positive"),
        ],
    )
    async def test_invalid_request(
        self, ledger, tenant_id, employee, annual_leave, overrides, message
    ):
        with pytest.raises(ValidationError, match=message):
            await ledger.create_leave_record(
                tenant_id, "hr", leave_request(employee, annual_leave, **overrides)
            )

    async def test_same_day_leave_is_valid(self, ledger, tenant_id, employee, annual_leave):
        record = await ledger.create_leave_record(
            tenant_id,
            "hr",
            leave_request(
                employee, annual_leave, days="1", end_date=date(2025, 7, 7)
            ),
        )
        assert record.start_date == record.end_date

    async def test_unknown_absence_type(self, ledger, tenant_id, employee):
        request = CreateLeaveRecordRequest(
            employee_id=employee.id,
            absence_type_id=uuid4(),
            start_date=date(2025, 7, 7),
            end_date=date(2025, 7, 8),
            total_days=Decimal("2"),
            working_days=Decimal("2"),
        )
        with pytest.raises(AbsenceTypeNotFoundError):
            await ledger.create_leave_record(tenant_id, "hr", request)

    async def test_insufficient_balance(
        self, ledger, tenant_id, employee, annual_leave, annual_balance
    ):
        with pytest.raises(InsufficientLeaveBalanceError) as exc_info:
            await ledger.create_leave_record(
                tenant_id, "hr", leave_request(employee, annual_leave, days="29")
            )

        assert exc_info.value.requested == Decimal("29")
        assert exc_info.value.remaining == Decimal("28")
        assert await ledger.list_leave_records(tenant_id, employee.id) == []
        assert await remaining(ledger, tenant_id, employee, annual_leave) == Decimal("28")

    async def test_exact_balance_is_allowed(
        self, ledger, tenant_id, employee, annual_leave, annual_balance
    ):
        await ledger.create_leave_record(
            tenant_id, "hr", leave_request(employee, annual_leave, days="28")
        )
        assert await remaining(ledger, tenant_id, employee, annual_leave) == Decimal("0")


class TestLeaveTransitionErrors:
    """Transitions from the wrong status are refused and change nothing."""

    async def test_approve_twice(self, ledger, tenant_id, employee, annual_leave, annual_balance):
        record = await ledger.create_leave_record(
            tenant_id, "hr", leave_request(employee, annual_leave)
        )
        await ledger.approve_leave_record(tenant_id, record.id, "manager")

        with pytest.raises(LeaveRecordNotPendingError) as exc_info:
            await ledger.approve_leave_record(tenant_id, record.id, "manager")
        assert exc_info.value.status == "APPROVED"

        balance = await ledger.get_leave_balance(tenant_id, employee.id, annual_leave.id, 2025)
        assert balance.used_days == Decimal("5")

    async def test_reject_approved(self, ledger, tenant_id, employee, annual_leave, annual_balance):
        record = await ledger.create_leave_record(
            tenant_id, "hr", leave_request(employee, annual_leave)
        )
        await ledger.approve_leave_record(tenant_id, record.id, "manager")

        with pytest.raises(LeaveRecordNotPendingError):
            await ledger.reject_leave_record(tenant_id, record.id, "manager", "late")

    async def test_approve_canceled(
        self, ledger, tenant_id, employee, annual_leave, annual_balance
    ):
        record = await ledger.create_leave_record(
            tenant_id, "hr", leave_request(employee, annual_leave)
        )
        await ledger.cancel_leave_record(tenant_id, record.id, "employee")

        with pytest.raises(LeaveRecordNotPendingError) as exc_info:
            await ledger.approve_leave_record(tenant_id, record.id, "manager")
        assert exc_info.value.status == "CANCELED"

        balance = await ledger.get_leave_balance(tenant_id, employee.id, annual_leave.id, 2025)
        assert balance.used_days == Decimal("0")
        assert balance.remaining_days == Decimal("28")

    async def test_cancel_rejected(self, ledger, tenant_id, employee, annual_leave, annual_balance):
        record = await ledger.create_leave_record(
            tenant_id, "hr", leave_request(employee, annual_leave)
        )
        await ledger.reject_leave_record(tenant_id, record.id, "manager", "no")

        with pytest.raises(InvalidTransitionError) as exc_info:
            await ledger.cancel_leave_record(tenant_id, record.id, "employee")
        assert exc_info.value.from_status == "REJECTED"
        assert exc_info.value.to_status == "CANCELED"
        assert await remaining(ledger, tenant_id, employee, annual_leave) == Decimal("28")

    async def test_unknown_record(self, ledger, tenant_id):
        with pytest.raises(LeaveRecordNotFoundError):
            await ledger.approve_leave_record(tenant_id, uuid4(), "manager")

    async def test_other_tenant_cannot_see_record(
        self, ledger, tenant_id, employee, annual_leave, annual_balance
    ):
        record = await ledger.create_leave_record(
            tenant_id, "hr", leave_request(employee, annual_leave)
        )
        with pytest.raises(LeaveRecordNotFoundError):
            await ledger.get_leave_record(uuid4(), record.id)


class TestLeaveAtomicity:
    """A failed write leaves record and balance unchanged."""

    async def test_failed_record_insert_rolls_back_reservation(
        self, store, ledger, tenant_id, employee, annual_leave, annual_balance
    ):
        store.fail_on("add_leave_record")

        with pytest.raises(PersistenceError) as exc_info:
            await ledger.create_leave_record(
                tenant_id, "hr", leave_request(employee, annual_leave)
            )

        assert exc_info.value.operation == "add_leave_record"
        assert await remaining(ledger, tenant_id, employee, annual_leave) == Decimal("28")

    async def test_failed_balance_write_rolls_back_approval(
        self, store, ledger, tenant_id, employee, annual_leave, annual_balance
    ):
        record = await ledger.create_leave_record(
            tenant_id, "hr", leave_request(employee, annual_leave)
        )
        store.fail_on("update_leave_balance")

        with pytest.raises(PersistenceError):
            await ledger.approve_leave_record(tenant_id, record.id, "manager")

        loaded = await ledger.get_leave_record(tenant_id, record.id)
        assert loaded.status == LeaveStatus.PENDING
        balance = await ledger.get_leave_balance(tenant_id, employee.id, annual_leave.id, 2025)
        assert balance.pending_days == Decimal("5")
        assert balance.used_days == Decimal("0")


class TestBalances:
    """Balance administration and initialization."""

    async def test_update_entitlement(
        self, ledger, tenant_id, employee, annual_leave, annual_balance
    ):
        await ledger.create_leave_record(tenant_id, "hr", leave_request(employee, annual_leave))

        balance = await ledger.update_leave_balance(
            tenant_id,
            employee.id,
            annual_leave.id,
            2025,
            UpdateLeaveBalanceRequest(entitled_days=Decimal("35"), carryover_days=Decimal("3")),
        )

        assert balance.entitled_days == Decimal("35")
        assert balance.carryover_days == Decimal("3")
        assert balance.remaining_days == Decimal("33")
        assert balance.notes is None

    async def test_update_notes_only(
        self, ledger, tenant_id, employee, annual_leave, annual_balance
    ):
        balance = await ledger.update_leave_balance(
            tenant_id,
            employee.id,
            annual_leave.id,
            2025,
            UpdateLeaveBalanceRequest(notes="contract amended"),
        )
        assert balance.notes == "contract amended"
        assert balance.entitled_days == Decimal("28")

    async def test_update_missing_balance(self, ledger, tenant_id, employee, annual_leave):
        with pytest.raises(LeaveBalanceNotFoundError):
            await ledger.update_leave_balance(
                tenant_id, employee.id, annual_leave.id, 2025, UpdateLeaveBalanceRequest()
            )

    async def test_initialize_is_idempotent(self, store, ledger, tenant_id, employee, annual_leave):
        await store.add_absence_type(
            AbsenceType(
                tenant_id=tenant_id,
                code="STUDY_LEAVE",
                name="Study Leave",
                default_days_per_year=Decimal("30"),
                sort_order=2,
            )
        )
        await store.add_absence_type(
            AbsenceType(tenant_id=tenant_id, code="OLD", name="Retired", is_active=False)
        )

        first = await ledger.initialize_employee_leave_balances(tenant_id, employee.id, 2025)
        second = await ledger.initialize_employee_leave_balances(tenant_id, employee.id, 2025)

        assert len(first) == 2
        assert [b.id for b in first] == [b.id for b in second]
        assert {b.remaining_days for b in first} == {Decimal("28"), Decimal("30")}

        balances = await ledger.get_leave_balances(tenant_id, employee.id, 2025)
        assert [b.absence_type.code for b in balances] == ["ANNUAL_LEAVE", "STUDY_LEAVE"]


class TestAbsenceTypes:
    """Default absence type seeding."""

    async def test_seed_defaults(self, ledger, tenant_id):
        created = await ledger.seed_default_absence_types(tenant_id)

        assert len(created) == len(DEFAULT_ABSENCE_TYPES)
        assert all(t.is_system for t in created)
        types = await ledger.list_absence_types(tenant_id)
        assert [t.sort_order for t in types] == sorted(t.sort_order for t in types)

    async def test_seed_skips_existing_codes(self, ledger, tenant_id, annual_leave):
        created = await ledger.seed_default_absence_types(tenant_id)
        again = await ledger.seed_default_absence_types(tenant_id)

        assert "ANNUAL_LEAVE" not in {t.code for t in created}
        assert again == []

    async def test_get_unknown_absence_type(self, ledger, tenant_id):
        with pytest.raises(AbsenceTypeNotFoundError):
            await ledger.get_absence_type(tenant_id, uuid4())
