"""Statutory payroll tax calculation driven by a rate table."""

from __future__ import annotations

from decimal import Decimal

from ee_payroll.calculators.types import ZERO, TaxBreakdown, round_money
from ee_payroll.config import DEFAULT_RATES, RateTable


class TaxCalculator:
    """Calculates employee withholdings and employer costs for a gross salary.

    Calculation order (each line rounded to cents on its own, never a running
    total):
    1) Unemployment insurance (employee) from gross
    2) Funded pension (II pillar) from gross
    3) Taxable income = gross - basic exemption, never negative
    4) Income tax on taxable income
    5) Total deductions = income tax + unemployment (employee) + funded pension
    6) Net = gross - total deductions
    7) Social tax from gross, floored at the monthly minimum for positive gross
    8) Unemployment insurance (employer) from gross
    9) Employer cost = gross + social tax + unemployment (employer)

    The calculator is pure: the same inputs always give the same breakdown.
    """

    def __init__(self, rates: RateTable = DEFAULT_RATES):
        self.rates = rates

    def calculate(
        self,
        gross_salary: Decimal,
        basic_exemption: Decimal,
        funded_pension_rate: Decimal,
    ) -> TaxBreakdown:
        rates = self.rates

        unemployment_ee = round_money(gross_salary * rates.unemployment_employee_rate)
        funded_pension = round_money(gross_salary * funded_pension_rate)

        taxable_income = gross_salary - basic_exemption
        if taxable_income < 0:
            taxable_income = ZERO

        income_tax = round_money(taxable_income * rates.income_tax_rate)
        total_deductions = income_tax + unemployment_ee + funded_pension
        net_salary = gross_salary - total_deductions

        social_tax = round_money(gross_salary * rates.social_tax_rate)
        if gross_salary > 0 and social_tax < rates.minimum_social_tax:
            social_tax = rates.minimum_social_tax

        unemployment_er = round_money(gross_salary * rates.unemployment_employer_rate)
        total_employer_cost = gross_salary + social_tax + unemployment_er

        return TaxBreakdown(
            gross_salary=gross_salary,
            basic_exemption=basic_exemption,
            taxable_income=taxable_income,
            income_tax=income_tax,
            unemployment_employee=unemployment_ee,
            funded_pension=funded_pension,
            total_deductions=total_deductions,
            net_salary=net_salary,
            social_tax=social_tax,
            unemployment_employer=unemployment_er,
            total_employer_cost=total_employer_cost,
        )

    def preview(
        self,
        gross_salary: Decimal,
        apply_basic_exemption: bool,
        funded_pension_rate: Decimal,
    ) -> TaxBreakdown:
        """Calculate with the rate table's default exemption when opted in."""
        exemption = self.rates.default_basic_exemption if apply_basic_exemption else ZERO
        return self.calculate(gross_salary, exemption, funded_pension_rate)
