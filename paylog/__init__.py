"""paylog - Personal payslip log and tax estimate tools."""

__version__ = "0.1.0"
