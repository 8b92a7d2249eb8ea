"""Persistence port and its implementations."""

from ee_payroll.persistence.memory import InMemoryStore
from ee_payroll.persistence.port import (
    DeclarationStore,
    EmployeeStore,
    LeaveStore,
    PayrollRunStore,
    PayrollStore,
)

__all__ = [
    "DeclarationStore",
    "EmployeeStore",
    "InMemoryStore",
    "LeaveStore",
    "PayrollRunStore",
    "PayrollStore",
]
