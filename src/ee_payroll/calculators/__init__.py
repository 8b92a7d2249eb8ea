"""Payroll tax and identifier calculations."""

from ee_payroll.calculators.personal_code import compute_check_digit, validate_personal_code
from ee_payroll.calculators.tax_calculator import TaxCalculator
from ee_payroll.calculators.types import TaxBreakdown, round_money

__all__ = [
    "TaxBreakdown",
    "TaxCalculator",
    "compute_check_digit",
    "round_money",
    "validate_personal_code",
]
