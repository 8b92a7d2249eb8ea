"""Estonian payroll core.

Tax calculation, leave balances, the payroll run lifecycle and the monthly
TSD declaration with its e-MTA XML/CSV export.
"""

__version__ = "1.0.0"
