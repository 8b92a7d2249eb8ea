"""Typed exception hierarchy for the payroll core.

    PayrollError
    +-- ValidationError
    +-- NotFoundError
    |   +-- EmployeeNotFoundError
    |   +-- AbsenceTypeNotFoundError
    |   +-- LeaveBalanceNotFoundError
    |   +-- LeaveRecordNotFoundError
    |   +-- PayrollRunNotFoundError
    |   +-- DeclarationNotFoundError
    +-- StateConflictError
    |   +-- InsufficientLeaveBalanceError
    |   +-- LeaveRecordNotPendingError
    |   +-- InvalidTransitionError
    +-- PersistenceError

Validation, not-found and state-conflict errors are terminal for the request.
PersistenceError wraps a storage failure with the name of the operation that
failed; nothing in the core retries it.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any


class PayrollError(Exception):
    """Base class for all payroll core errors."""

    code: str = "PAYROLL_ERROR"


class ValidationError(PayrollError):
    """Raised when an operation receives invalid input."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


# ===== Not found =====


class NotFoundError(PayrollError):
    """Raised when a referenced entity does not exist."""

    code = "NOT_FOUND"
    entity: str = "entity"

    def __init__(self, entity_id: Any):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} {entity_id} not found")


class EmployeeNotFoundError(NotFoundError):
    code = "EMPLOYEE_NOT_FOUND"
    entity = "Employee"


class AbsenceTypeNotFoundError(NotFoundError):
    code = "ABSENCE_TYPE_NOT_FOUND"
    entity = "Absence type"


class LeaveBalanceNotFoundError(NotFoundError):
    code = "LEAVE_BALANCE_NOT_FOUND"
    entity = "Leave balance"


class LeaveRecordNotFoundError(NotFoundError):
    code = "LEAVE_RECORD_NOT_FOUND"
    entity = "Leave record"


class PayrollRunNotFoundError(NotFoundError):
    """Also raised when a conditional run update matched no row."""

    code = "PAYROLL_RUN_NOT_FOUND"
    entity = "Payroll run"


class DeclarationNotFoundError(NotFoundError):
    code = "DECLARATION_NOT_FOUND"
    entity = "TSD declaration"


# ===== State conflicts =====


class StateConflictError(PayrollError):
    """Raised when a business rule forbids the requested operation."""

    code = "STATE_CONFLICT"


class InsufficientLeaveBalanceError(StateConflictError):
    """Raised when a leave request exceeds the remaining balance."""

    code = "INSUFFICIENT_LEAVE_BALANCE"

    def __init__(self, requested: Decimal, remaining: Decimal):
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Insufficient leave balance: requested {requested}, remaining {remaining}"
        )


class LeaveRecordNotPendingError(StateConflictError):
    """Raised when approving or rejecting a record that is not pending."""

    code = "LEAVE_RECORD_NOT_PENDING"

    def __init__(self, record_id: Any, status: str):
        self.record_id = record_id
        self.status = status
        super().__init__(f"Leave record {record_id} is not in pending status (current: {status})")


class InvalidTransitionError(StateConflictError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


# ===== Persistence =====


class PersistenceError(PayrollError):
    """Raised when the underlying store rejects a read or write."""

    code = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, cause: Exception | None = None):
        self.operation = operation
        self.cause = cause
        msg = f"{operation} failed"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)
