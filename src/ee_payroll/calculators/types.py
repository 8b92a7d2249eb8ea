"""Type definitions for tax calculation."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0")


def round_money(amount: Decimal) -> Decimal:
    """Round to cents, half away from zero."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class TaxBreakdown:
    """Full tax breakdown for one monthly gross salary."""

    gross_salary: Decimal
    basic_exemption: Decimal
    taxable_income: Decimal

    # Employee deductions (withheld from gross)
    income_tax: Decimal
    unemployment_employee: Decimal
    funded_pension: Decimal
    total_deductions: Decimal

    net_salary: Decimal

    # Employer costs (on top of gross)
    social_tax: Decimal
    unemployment_employer: Decimal
    total_employer_cost: Decimal

    def to_dict(self) -> dict[str, Any]:
        """Return the breakdown with amounts as fixed two-place strings."""
        return {key: f"{value:.2f}" for key, value in asdict(self).items()}
