"""Pydantic request models for the payroll core operations.

These carry caller input into the services. Field types are coerced here;
business validation (date ordering, positive day counts, period bounds)
stays in the services so every caller gets the same errors.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Leave schemas
# ============================================================================


class CreateLeaveRecordRequest(BaseModel):
    """Schema for requesting leave."""

    employee_id: UUID | None = None
    absence_type_id: UUID | None = None
    start_date: date | None = None
    end_date: date | None = None
    total_days: Decimal = Decimal("0")
    working_days: Decimal = Decimal("0")
    document_number: str | None = None
    document_date: date | None = None
    notes: str | None = None


class UpdateLeaveBalanceRequest(BaseModel):
    """Schema for an administrative balance override.

    Only the fields that are set are written.
    """

    entitled_days: Decimal | None = None
    carryover_days: Decimal | None = None
    notes: str | None = None


# ============================================================================
# Payroll run schemas
# ============================================================================


class CreatePayrollRunRequest(BaseModel):
    """Schema for creating a new payroll run."""

    period_year: int
    period_month: int
    payment_date: date | None = None
    notes: str | None = None


# ============================================================================
# Declaration export schemas
# ============================================================================


class CompanyInfo(BaseModel):
    """Organization identity printed on the declaration header."""

    model_config = ConfigDict(frozen=True)

    registry_code: str = Field(min_length=1)
    name: str
