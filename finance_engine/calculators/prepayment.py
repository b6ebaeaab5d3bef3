"""
Prepayment Penalty Calculator

Only deals that carry a prepayment policy can incur a penalty. Leases never
carry one.
"""

from ..models import Deal, FinanceDeal


class PrepaymentPenaltyCalculator:
    """Evaluates a deal's prepayment policy on full payoff."""

    def calculate_prepayment_penalty(self, deal: Deal) -> int:
        """
        Penalty (cents) for discharging the whole balance now.

        Returns 0 for deals without a policy.
        """
        if not isinstance(deal, FinanceDeal) or deal.prepayment_policy is None:
            return 0
        return deal.prepayment_policy.penalty_for(deal.current_balance, deal.months_paid)
