"""Leave balance ledger and leave request workflow."""

from __future__ import annotations

import logging
from decimal import Decimal
from uuid import UUID

from ee_payroll.absence_types import default_absence_types
from ee_payroll.entities import AbsenceType, Clock, LeaveBalance, LeaveRecord, utc_now
from ee_payroll.errors import (
    AbsenceTypeNotFoundError,
    InsufficientLeaveBalanceError,
    LeaveBalanceNotFoundError,
    LeaveRecordNotFoundError,
    LeaveRecordNotPendingError,
    ValidationError,
)
from ee_payroll.persistence.port import PayrollStore
from ee_payroll.schemas import CreateLeaveRecordRequest, UpdateLeaveBalanceRequest
from ee_payroll.services.state_machine import LeaveRecordStateMachine, LeaveStatus

logger = logging.getLogger(__name__)


class LeaveBalanceLedger:
    """Service for leave balances and the leave request lifecycle.

    Operations:
    - create_leave_record: Validate a request and reserve its days as pending
    - approve_leave_record: Move the reservation from pending to used
    - reject_leave_record: Release the reservation
    - cancel_leave_record: Release pending days or give back used days
    - update_leave_balance: Administrative override of entitlement
    - initialize_employee_leave_balances: Seed one balance per active type

    Balance tracking is opt-in per (employee, type, year): when no balance row
    exists the request workflow runs without touching any balance. Every
    record transition and its balance write share one transaction, and the
    balance row is read for update so concurrent writers on the same key
    serialize on stores that support row locks.

    After every write: remaining = entitled + carryover - used - pending, with
    used and pending never below zero.
    """

    def __init__(self, store: PayrollStore, clock: Clock = utc_now):
        self.store = store
        self.clock = clock

    # ------------------------------------------------------------------
    # Absence types and balances
    # ------------------------------------------------------------------

    async def list_absence_types(
        self, tenant_id: UUID, active_only: bool = True
    ) -> list[AbsenceType]:
        return await self.store.list_absence_types(tenant_id, active_only)

    async def seed_default_absence_types(self, tenant_id: UUID) -> list[AbsenceType]:
        """Create the system absence types the tenant does not have yet.

        Matching is by code, so re-running only adds what is missing.
        """
        created: list[AbsenceType] = []
        async with self.store.transaction() as tx:
            existing = {t.code for t in await tx.list_absence_types(tenant_id, active_only=False)}
            now = self.clock()
            for absence_type in default_absence_types(tenant_id):
                if absence_type.code in existing:
                    continue
                absence_type.created_at = now
                created.append(await tx.add_absence_type(absence_type))

        logger.info("Seeded %d absence types for tenant %s", len(created), tenant_id)
        return created

    async def get_absence_type(self, tenant_id: UUID, absence_type_id: UUID) -> AbsenceType:
        absence_type = await self.store.get_absence_type(tenant_id, absence_type_id)
        if absence_type is None:
            raise AbsenceTypeNotFoundError(absence_type_id)
        return absence_type

    async def get_leave_balances(
        self, tenant_id: UUID, employee_id: UUID, year: int
    ) -> list[LeaveBalance]:
        return await self.store.list_leave_balances(tenant_id, employee_id, year)

    async def get_leave_balance(
        self, tenant_id: UUID, employee_id: UUID, absence_type_id: UUID, year: int
    ) -> LeaveBalance:
        balance = await self.store.get_leave_balance(tenant_id, employee_id, absence_type_id, year)
        if balance is None:
            raise LeaveBalanceNotFoundError(f"{employee_id}/{absence_type_id}/{year}")
        return balance

    async def update_leave_balance(
        self,
        tenant_id: UUID,
        employee_id: UUID,
        absence_type_id: UUID,
        year: int,
        patch: UpdateLeaveBalanceRequest,
    ) -> LeaveBalance:
        """Overwrite entitlement, carryover or notes and recompute remaining days."""
        async with self.store.transaction() as tx:
            balance = await tx.get_leave_balance(
                tenant_id, employee_id, absence_type_id, year, for_update=True
            )
            if balance is None:
                raise LeaveBalanceNotFoundError(f"{employee_id}/{absence_type_id}/{year}")

            if patch.entitled_days is not None:
                balance.entitled_days = patch.entitled_days
            if patch.carryover_days is not None:
                balance.carryover_days = patch.carryover_days
            if patch.notes is not None:
                balance.notes = patch.notes
            balance.recalculate()
            balance.updated_at = self.clock()
            await tx.update_leave_balance(balance)

        logger.info(
            "Leave balance %s updated: entitled=%s carryover=%s remaining=%s",
            balance.id,
            balance.entitled_days,
            balance.carryover_days,
            balance.remaining_days,
        )
        return balance

    async def initialize_employee_leave_balances(
        self, tenant_id: UUID, employee_id: UUID, year: int
    ) -> list[LeaveBalance]:
        """Return one balance per active absence type, creating missing ones.

        New balances start at the type's default annual entitlement with no
        usage. Existing balances are returned unchanged.
        """
        balances: list[LeaveBalance] = []
        now = self.clock()

        async with self.store.transaction() as tx:
            for absence_type in await tx.list_absence_types(tenant_id, active_only=True):
                existing = await tx.get_leave_balance(
                    tenant_id, employee_id, absence_type.id, year
                )
                if existing is not None:
                    balances.append(existing)
                    continue

                balance = LeaveBalance(
                    tenant_id=tenant_id,
                    employee_id=employee_id,
                    absence_type_id=absence_type.id,
                    year=year,
                    entitled_days=absence_type.default_days_per_year,
                    created_at=now,
                    updated_at=now,
                )
                balance.recalculate()
                balances.append(await tx.add_leave_balance(balance))
                logger.debug(
                    "Created %s balance for employee %s (%s): %s days",
                    absence_type.code,
                    employee_id,
                    year,
                    balance.entitled_days,
                )

        return balances

    # ------------------------------------------------------------------
    # Leave records
    # ------------------------------------------------------------------

    async def get_leave_record(self, tenant_id: UUID, record_id: UUID) -> LeaveRecord:
        record = await self.store.get_leave_record(tenant_id, record_id)
        if record is None:
            raise LeaveRecordNotFoundError(record_id)
        return record

    async def list_leave_records(
        self,
        tenant_id: UUID,
        employee_id: UUID | None = None,
        year: int | None = None,
    ) -> list[LeaveRecord]:
        return await self.store.list_leave_records(tenant_id, employee_id, year)

    async def create_leave_record(
        self,
        tenant_id: UUID,
        requested_by: str,
        request: CreateLeaveRecordRequest,
    ) -> LeaveRecord:
        """Create a pending leave request, reserving its days on the balance."""
        self._validate_request(request)

        now = self.clock()
        async with self.store.transaction() as tx:
            absence_type = await tx.get_absence_type(tenant_id, request.absence_type_id)
            if absence_type is None:
                raise AbsenceTypeNotFoundError(request.absence_type_id)

            balance = await tx.get_leave_balance(
                tenant_id,
                request.employee_id,
                request.absence_type_id,
                request.start_date.year,
                for_update=True,
            )
            if balance is not None:
                if balance.remaining_days < request.working_days:
                    logger.warning(
                        "Leave request for employee %s rejected: requested %s, remaining %s",
                        request.employee_id,
                        request.working_days,
                        balance.remaining_days,
                    )
                    raise InsufficientLeaveBalanceError(
                        request.working_days, balance.remaining_days
                    )
                balance.pending_days += request.working_days
                await self._save_balance(tx, balance)

            record = await tx.add_leave_record(
                LeaveRecord(
                    tenant_id=tenant_id,
                    employee_id=request.employee_id,
                    absence_type_id=request.absence_type_id,
                    start_date=request.start_date,
                    end_date=request.end_date,
                    total_days=request.total_days,
                    working_days=request.working_days,
                    status=LeaveStatus.PENDING,
                    document_number=request.document_number,
                    document_date=request.document_date,
                    notes=request.notes,
                    requested_at=now,
                    requested_by=requested_by,
                    created_at=now,
                    updated_at=now,
                )
            )

        logger.info(
            "Leave record %s created: %s %s days from %s",
            record.id,
            absence_type.code,
            record.working_days,
            record.start_date,
        )
        return record

    async def approve_leave_record(
        self, tenant_id: UUID, record_id: UUID, approved_by: str
    ) -> LeaveRecord:
        """Approve a pending request; its reserved days become used days."""
        async with self.store.transaction() as tx:
            record = await self._load_record(tx, tenant_id, record_id)
            if not LeaveRecordStateMachine.can_transition(record.status, LeaveStatus.APPROVED):
                raise LeaveRecordNotPendingError(record_id, record.status.value)

            now = self.clock()
            record.status = LeaveStatus.APPROVED
            record.approved_at = now
            record.approved_by = approved_by
            record.updated_at = now
            await tx.update_leave_record(record)

            balance = await self._balance_for(tx, record)
            if balance is not None:
                balance.pending_days -= record.working_days
                balance.used_days += record.working_days
                await self._save_balance(tx, balance)

        logger.info("Leave record %s approved by %s", record_id, approved_by)
        return record

    async def reject_leave_record(
        self, tenant_id: UUID, record_id: UUID, rejected_by: str, reason: str
    ) -> LeaveRecord:
        """Reject a pending request and release its reservation."""
        async with self.store.transaction() as tx:
            record = await self._load_record(tx, tenant_id, record_id)
            if not LeaveRecordStateMachine.can_transition(record.status, LeaveStatus.REJECTED):
                raise LeaveRecordNotPendingError(record_id, record.status.value)

            now = self.clock()
            record.status = LeaveStatus.REJECTED
            record.rejected_at = now
            record.rejected_by = rejected_by
            record.rejection_reason = reason
            record.updated_at = now
            await tx.update_leave_record(record)

            balance = await self._balance_for(tx, record)
            if balance is not None:
                balance.pending_days -= record.working_days
                await self._save_balance(tx, balance)

        logger.info("Leave record %s rejected by %s", record_id, rejected_by)
        return record

    async def cancel_leave_record(
        self, tenant_id: UUID, record_id: UUID, canceled_by: str
    ) -> LeaveRecord:
        """Cancel a pending or approved request.

        Pending days are released; for an approved request the used days are
        given back instead. Raises InvalidTransitionError from any other status.
        """
        async with self.store.transaction() as tx:
            record = await self._load_record(tx, tenant_id, record_id)
            LeaveRecordStateMachine.validate_transition(
                record.status,
                LeaveStatus.CANCELED,
                "can only cancel pending or approved leave requests",
            )
            was_pending = record.status == LeaveStatus.PENDING

            record.status = LeaveStatus.CANCELED
            record.updated_at = self.clock()
            await tx.update_leave_record(record)

            balance = await self._balance_for(tx, record)
            if balance is not None:
                if was_pending:
                    balance.pending_days -= record.working_days
                else:
                    balance.used_days -= record.working_days
                await self._save_balance(tx, balance)

        logger.info("Leave record %s canceled by %s", record_id, canceled_by)
        return record

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_request(request: CreateLeaveRecordRequest) -> None:
        if request.employee_id is None:
            raise ValidationError("employee ID is required", field="employee_id")
        if request.absence_type_id is None:
            raise ValidationError("absence type ID is required", field="absence_type_id")
        if request.start_date is None:
            raise ValidationError("start date is required", field="start_date")
        if request.end_date is None:
            raise ValidationError("end date is required", field="end_date")
        if request.end_date < request.start_date:
            raise ValidationError("end date must be after start date", field="end_date")
        if request.working_days <= Decimal("0"):
            raise ValidationError("working days must be positive", field="working_days")

    @staticmethod
    async def _load_record(tx: PayrollStore, tenant_id: UUID, record_id: UUID) -> LeaveRecord:
        record = await tx.get_leave_record(tenant_id, record_id)
        if record is None:
            raise LeaveRecordNotFoundError(record_id)
        return record

    @staticmethod
    async def _balance_for(tx: PayrollStore, record: LeaveRecord) -> LeaveBalance | None:
        return await tx.get_leave_balance(
            record.tenant_id,
            record.employee_id,
            record.absence_type_id,
            record.start_date.year,
            for_update=True,
        )

    async def _save_balance(self, tx: PayrollStore, balance: LeaveBalance) -> None:
        balance.recalculate()
        balance.updated_at = self.clock()
        await tx.update_leave_balance(balance)


__all__ = ["LeaveBalanceLedger"]
