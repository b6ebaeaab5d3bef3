"""
Amortization Calculator

Fixed-payment amortization math. Amounts are integer cents and rates are
annual percentages. All methods are pure.
"""

from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal

from ..exceptions import InvalidTermError
from ..models import AmortizationRow

MONTHS_PER_YEAR = 12


def monthly_rate(annual_rate_percent: Decimal) -> Decimal:
    """Convert an annual percentage (6.0) to a monthly fraction (0.005)."""
    return Decimal(str(annual_rate_percent)) / Decimal("100") / MONTHS_PER_YEAR


def round_cents_up(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_CEILING))


def round_cents(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=ROUND_HALF_UP))


class AmortizationCalculator:
    """Payment, interest and split calculations for amortizing deals."""

    @staticmethod
    def compute_monthly_payment(principal: int, annual_rate_percent: Decimal, term_months: int) -> int:
        """
        Fixed monthly payment: M = P*i / (1 - (1+i)^-n).

        Rounded up to the cent so that the final scheduled payment always
        clears the balance. Zero rate reduces to P / n.
        """
        if term_months <= 0:
            raise InvalidTermError(f"term_months must be positive, got: {term_months}")
        if principal <= 0:
            return 0

        i = monthly_rate(annual_rate_percent)
        if i == 0:
            return round_cents_up(Decimal(principal) / term_months)

        discount = 1 - (1 + i) ** -term_months
        return round_cents_up(Decimal(principal) * i / discount)

    @staticmethod
    def compute_lease_payment(
        principal: int,
        residual_value: int,
        annual_rate_percent: Decimal,
        term_months: int
    ) -> int:
        """
        Balloon lease payment that amortizes principal down to the residual.

        M = (P - FV/(1+i)^n) * [i(1+i)^n] / [(1+i)^n - 1]
        """
        if term_months <= 0:
            raise InvalidTermError(f"term_months must be positive, got: {term_months}")

        i = monthly_rate(annual_rate_percent)
        if i == 0:
            payment = Decimal(principal - residual_value) / term_months
        else:
            growth = (1 + i) ** term_months
            discounted_residual = Decimal(residual_value) / growth
            payment = (Decimal(principal) - discounted_residual) * (i * growth) / (growth - 1)

        return max(0, round_cents_up(payment))

    @staticmethod
    def compute_interest_for_period(balance: int, annual_rate_percent: Decimal) -> int:
        """Interest accrued on ``balance`` over one month, rounded to the cent."""
        if balance <= 0:
            return 0
        return round_cents(Decimal(balance) * monthly_rate(annual_rate_percent))

    @staticmethod
    def split_payment(payment_amount: int, balance: int, annual_rate_percent: Decimal) -> tuple[int, int]:
        """
        Split a payment into (to_principal, to_interest).

        A payment that meets or exceeds the balance is a full payoff: the whole
        balance goes to principal and no further interest accrues. Callers must
        reject payments below the period's interest before calling.
        """
        if payment_amount >= balance:
            return balance, 0

        to_interest = AmortizationCalculator.compute_interest_for_period(balance, annual_rate_percent)
        return payment_amount - to_interest, to_interest

    @staticmethod
    def build_schedule(principal: int, annual_rate_percent: Decimal, term_months: int) -> list[AmortizationRow]:
        """Generate the full schedule implied by the fixed monthly payment.

        The final period settles any cents interest rounding left on the balance.
        """
        payment = AmortizationCalculator.compute_monthly_payment(principal, annual_rate_percent, term_months)

        rows: list[AmortizationRow] = []
        balance = principal
        for period in range(1, term_months + 1):
            if balance <= 0:
                break
            to_principal, to_interest = AmortizationCalculator.split_payment(
                payment, balance, annual_rate_percent
            )
            if period == term_months:
                to_principal = balance
            balance -= to_principal
            rows.append(AmortizationRow(
                period=period,
                payment=to_principal + to_interest,
                to_principal=to_principal,
                to_interest=to_interest,
                balance=balance,
            ))
        return rows
