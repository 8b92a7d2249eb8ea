"""Default Estonian absence type catalog seeded for new tenants."""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID

from ee_payroll.entities import AbsenceType

# code, name, name_et, is_paid, affects_salary, requires_document,
# default_days_per_year, max_carryover_days, tsd_code
DEFAULT_ABSENCE_TYPES: tuple[tuple[Any, ...], ...] = (
    ("ANNUAL_LEAVE", "Annual Leave", "Põhipuhkus", True, False, False, "28", "28", None),
    ("SICK_LEAVE", "Sick Leave", "Haigusleht", True, True, True, "0", "0", "10"),
    ("CHILD_SICK", "Child Sick Leave", "Lapse hooldusleht", True, True, True, "0", "0", "11"),
    (
        "MATERNITY",
        "Maternity Leave",
        "Rasedus- ja sünnituspuhkus",
        True,
        True,
        True,
        "0",
        "0",
        "12",
    ),
    ("PARENTAL", "Parental Leave", "Vanemapuhkus", True, True, False, "0", "0", "13"),
    ("STUDY_LEAVE", "Study Leave", "Õppepuhkus", True, False, True, "30", "0", None),
    ("UNPAID", "Unpaid Leave", "Palgata puhkus", False, True, False, "0", "0", None),
    ("COMP_TIME", "Compensatory Time Off", "Tasaarvelduspuhkus", True, False, False, "0", "0", None),
)


def default_absence_types(tenant_id: UUID) -> list[AbsenceType]:
    """Build the system absence types for a tenant, in display order."""
    return [
        AbsenceType(
            tenant_id=tenant_id,
            code=code,
            name=name,
            name_et=name_et,
            is_paid=is_paid,
            affects_salary=affects_salary,
            requires_document=requires_document,
            default_days_per_year=Decimal(days),
            max_carryover_days=Decimal(carryover),
            tsd_code=tsd_code,
            is_system=True,
            sort_order=position,
        )
        for position, (
            code,
            name,
            name_et,
            is_paid,
            affects_salary,
            requires_document,
            days,
            carryover,
            tsd_code,
        ) in enumerate(DEFAULT_ABSENCE_TYPES, start=1)
    ]
