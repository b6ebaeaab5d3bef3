"""
Calculators Package

Pure calculation components used by the payment processor and lease resolver.
"""

from .amortization import AmortizationCalculator
from .lease import LeaseCalculator
from .prepayment import PrepaymentPenaltyCalculator

__all__ = [
    "AmortizationCalculator",
    "PrepaymentPenaltyCalculator",
    "LeaseCalculator",
]
