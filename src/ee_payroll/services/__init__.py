"""Payroll core services.

Service classes live in their own modules (``leave_service``,
``payroll_run_service``, ``declaration_service``); this package exports the
status enums and transition tables they share with the entities.
"""

from ee_payroll.services.state_machine import (
    DeclarationStateMachine,
    DeclarationStatus,
    InvalidTransitionError,
    LeaveRecordStateMachine,
    LeaveStatus,
    PayrollRunStateMachine,
    PayrollStatus,
)

__all__ = [
    "DeclarationStateMachine",
    "DeclarationStatus",
    "InvalidTransitionError",
    "LeaveRecordStateMachine",
    "LeaveStatus",
    "PayrollRunStateMachine",
    "PayrollStatus",
]
