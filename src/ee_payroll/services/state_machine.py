"""Status enums and transition tables for payroll runs, leave records and declarations."""

from __future__ import annotations

from enum import Enum
from typing import ClassVar

from ee_payroll.errors import InvalidTransitionError


class PayrollStatus(str, Enum):
    """Payroll run status values."""

    DRAFT = "DRAFT"
    CALCULATED = "CALCULATED"
    APPROVED = "APPROVED"
    PAID = "PAID"
    DECLARED = "DECLARED"


class LeaveStatus(str, Enum):
    """Leave record status values."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELED = "CANCELED"


class DeclarationStatus(str, Enum):
    """TSD declaration status values."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


class StateMachine:
    """Transition table lookups shared by the entity state machines.

    Subclasses set ``status_type`` and ``VALID_TRANSITIONS``; every status
    change in the services goes through ``validate_transition``.
    """

    status_type: ClassVar[type[Enum]]
    VALID_TRANSITIONS: ClassVar[dict[Enum, list[Enum]]]

    @classmethod
    def _coerce(cls, status: str) -> Enum | None:
        try:
            return cls.status_type(status)
        except ValueError:
            return None

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        source = cls._coerce(from_status)
        target = cls._coerce(to_status)
        if source is None or target is None:
            return False
        return target in cls.VALID_TRANSITIONS.get(source, [])

    @classmethod
    def validate_transition(
        cls, from_status: str, to_status: str, reason: str | None = None
    ) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(
                getattr(from_status, "value", from_status),
                getattr(to_status, "value", to_status),
                reason,
            )

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[Enum]:
        """Get list of valid next statuses from current status."""
        current = cls._coerce(current_status)
        if current is None:
            return []
        return list(cls.VALID_TRANSITIONS.get(current, []))

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        """Check if no transition leaves this status."""
        return not cls.get_next_statuses(status)


class PayrollRunStateMachine(StateMachine):
    """State machine for payroll run status transitions.

    Allowed transitions (monotonic):
    - DRAFT → CALCULATED
    - CALCULATED → APPROVED
    - APPROVED → PAID
    - PAID → DECLARED
    """

    status_type = PayrollStatus
    VALID_TRANSITIONS = {
        PayrollStatus.DRAFT: [PayrollStatus.CALCULATED],
        PayrollStatus.CALCULATED: [PayrollStatus.APPROVED],
        PayrollStatus.APPROVED: [PayrollStatus.PAID],
        PayrollStatus.PAID: [PayrollStatus.DECLARED],
        PayrollStatus.DECLARED: [],  # Terminal state
    }

    # Statuses a declaration can be generated from
    DECLARABLE = {PayrollStatus.APPROVED, PayrollStatus.PAID}

    # Statuses where run totals are authoritative
    TOTALS_AUTHORITATIVE = {
        PayrollStatus.CALCULATED,
        PayrollStatus.APPROVED,
        PayrollStatus.PAID,
        PayrollStatus.DECLARED,
    }

    @classmethod
    def can_declare(cls, status: str) -> bool:
        """Check if a TSD declaration may be generated from this status."""
        return cls._coerce(status) in cls.DECLARABLE

    @classmethod
    def has_authoritative_totals(cls, status: str) -> bool:
        return cls._coerce(status) in cls.TOTALS_AUTHORITATIVE


class LeaveRecordStateMachine(StateMachine):
    """State machine for leave requests.

    Allowed transitions:
    - PENDING → APPROVED | REJECTED | CANCELED
    - APPROVED → CANCELED
    """

    status_type = LeaveStatus
    VALID_TRANSITIONS = {
        LeaveStatus.PENDING: [
            LeaveStatus.APPROVED,
            LeaveStatus.REJECTED,
            LeaveStatus.CANCELED,
        ],
        LeaveStatus.APPROVED: [LeaveStatus.CANCELED],
        LeaveStatus.REJECTED: [],
        LeaveStatus.CANCELED: [],
    }


class DeclarationStateMachine(StateMachine):
    """State machine for TSD declarations.

    Allowed transitions:
    - DRAFT → SUBMITTED
    - SUBMITTED → ACCEPTED | REJECTED
    """

    status_type = DeclarationStatus
    VALID_TRANSITIONS = {
        DeclarationStatus.DRAFT: [DeclarationStatus.SUBMITTED],
        DeclarationStatus.SUBMITTED: [
            DeclarationStatus.ACCEPTED,
            DeclarationStatus.REJECTED,
        ],
        DeclarationStatus.ACCEPTED: [],
        DeclarationStatus.REJECTED: [],
    }


__all__ = [
    "DeclarationStateMachine",
    "DeclarationStatus",
    "InvalidTransitionError",
    "LeaveRecordStateMachine",
    "LeaveStatus",
    "PayrollRunStateMachine",
    "PayrollStatus",
    "StateMachine",
]
