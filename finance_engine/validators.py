"""
Input Validation for the Finance & Lease Engine

Validates origination terms before a deal is registered.
Raises InvalidDealError (a ValueError) with clear messages for any violation.
"""

from decimal import Decimal

from .exceptions import InvalidDealError, InvalidTermError
from .models import FinanceTerms, LeaseTerms, PercentOfBalancePenalty

# Upper bound on item prices accepted from the purchase flow (currency units)
MAX_BASE_COST_CENTS = 100_000_000 * 100


class DealValidator:
    """Validates deal terms according to business rules."""

    def validate_finance(self, terms: FinanceTerms) -> None:
        """Run all finance validations. Raises InvalidDealError if any check fails."""
        self._validate_common(terms)
        self._validate_prepayment_policy(terms)

    def validate_lease(self, terms: LeaseTerms) -> None:
        """Run all lease validations. Raises InvalidDealError if any check fails."""
        self._validate_common(terms)
        self._validate_lease(terms)

    def _validate_common(self, terms: FinanceTerms | LeaseTerms) -> None:
        if terms.term_months <= 0:
            raise InvalidTermError(f"term_months must be positive, got: {terms.term_months}")

        if terms.base_cost <= 0:
            raise InvalidDealError(f"base_cost must be positive, got: {terms.base_cost}")

        if terms.base_cost > MAX_BASE_COST_CENTS:
            raise InvalidDealError(f"base_cost exceeds the allowed maximum, got: {terms.base_cost}")

        if terms.down_payment < 0:
            raise InvalidDealError(f"down_payment cannot be negative, got: {terms.down_payment}")

        if terms.down_payment > terms.base_cost:
            raise InvalidDealError(
                f"down_payment cannot exceed base_cost, got: {terms.down_payment} > {terms.base_cost}"
            )

        if terms.interest_rate < 0:
            raise InvalidDealError(f"interest_rate cannot be negative, got: {terms.interest_rate}")

    def _validate_prepayment_policy(self, terms: FinanceTerms) -> None:
        policy = terms.prepayment_policy
        if isinstance(policy, PercentOfBalancePenalty):
            if not (0 <= policy.rate <= 1):
                raise InvalidDealError(f"prepayment penalty rate must be between 0 and 1, got: {policy.rate}")
            if policy.window_months is not None and policy.window_months < 0:
                raise InvalidDealError(
                    f"prepayment penalty window cannot be negative, got: {policy.window_months}"
                )

    def _validate_lease(self, terms: LeaseTerms) -> None:
        amount_financed = terms.base_cost - terms.down_payment

        if terms.residual_value < 0:
            raise InvalidDealError(f"residual_value cannot be negative, got: {terms.residual_value}")

        if terms.residual_value > amount_financed:
            raise InvalidDealError(
                f"residual_value cannot exceed the amount financed, got: {terms.residual_value} > {amount_financed}"
            )

        if terms.security_deposit < 0:
            raise InvalidDealError(f"security_deposit cannot be negative, got: {terms.security_deposit}")

        for name, value in (("start_damage", terms.start_damage), ("start_wear", terms.start_wear)):
            if not (Decimal("0") <= value <= Decimal("1")):
                raise InvalidDealError(f"{name} must be between 0 and 1, got: {value}")
