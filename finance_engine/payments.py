"""
Payment Processor

Applies payments to a single deal and drives the completion transitions.
Funds sufficiency is the caller's concern; this module never touches farm money.
"""

import logging
from dataclasses import dataclass

from .calculators import AmortizationCalculator, PrepaymentPenaltyCalculator
from .exceptions import DealAlreadyResolved, InvalidPaymentAmount
from .models import (
    Deal,
    DealStatus,
    LeaseDeal,
    LeaseStatus,
    MissedPaymentOutcome,
    PaymentOutcome,
    from_cents,
)

logger = logging.getLogger(__name__)


class NeverDefault:
    """Missed payments are counted but never move a deal to Defaulted."""

    def should_default(self, deal: Deal) -> bool:
        return False


@dataclass(frozen=True)
class MissedPaymentLimit:
    """Default a deal after ``limit`` missed payments in a row.

    Any applied payment resets the streak.
    """

    limit: int = 3

    def should_default(self, deal: Deal) -> bool:
        return deal.consecutive_missed_payments >= self.limit


DefaultPolicy = NeverDefault | MissedPaymentLimit


class PaymentProcessor:
    """Applies payments and missed-payment events to deals."""

    def __init__(self, default_policy: DefaultPolicy | None = None):
        self.default_policy = default_policy or NeverDefault()
        self.penalty_calculator = PrepaymentPenaltyCalculator()

    def apply_payment(self, deal: Deal, payment_amount: int) -> PaymentOutcome:
        """
        Apply a payment (cents) to the deal.

        Steps:
        1. Reject resolved deals
        2. Reject payments that do not cover this period's interest
        3. Split into principal and interest
        4. Price the prepayment penalty on full payoff
        5. Mutate balance, interest paid and term progress
        6. Complete any deal paid to zero; mark leases at term end TermComplete

        Returns:
            PaymentOutcome describing the split and any transition
        """
        self._ensure_open(deal)

        balance = deal.current_balance
        full_payoff = payment_amount >= balance

        if payment_amount <= 0:
            raise InvalidPaymentAmount(f"payment must be positive, got: {from_cents(payment_amount)}")

        interest_due = AmortizationCalculator.compute_interest_for_period(balance, deal.interest_rate)
        if not full_payoff and payment_amount < interest_due:
            raise InvalidPaymentAmount(
                f"payment {from_cents(payment_amount)} does not cover accrued interest "
                f"{from_cents(interest_due)} on deal {deal.id}"
            )

        to_principal, to_interest = AmortizationCalculator.split_payment(
            payment_amount, balance, deal.interest_rate
        )

        # Penalty is priced on the balance before payoff and charged separately
        penalty = self.penalty_calculator.calculate_prepayment_penalty(deal) if full_payoff else 0

        deal.current_balance = balance - to_principal
        deal.total_interest_paid += to_interest
        deal.months_paid = min(deal.term_months, deal.months_paid + 1)
        deal.consecutive_missed_payments = 0

        completed = False
        term_complete = False
        if deal.current_balance == 0:
            deal.status = DealStatus.COMPLETED
            completed = True
            if isinstance(deal, LeaseDeal):
                # Paying off the residual leaves nothing to buy out
                deal.lease_status = LeaseStatus.BOUGHT_OUT
        elif isinstance(deal, LeaseDeal) and deal.months_paid >= deal.term_months:
            # The residual stays on the balance until a lease-end action
            deal.lease_status = LeaseStatus.TERM_COMPLETE
            term_complete = True

        logger.debug(
            f"Payment applied to {deal.id}: principal={from_cents(to_principal)} "
            f"interest={from_cents(to_interest)} balance={from_cents(deal.current_balance)} "
            f"penalty={from_cents(penalty)}"
        )

        return PaymentOutcome(
            deal_id=deal.id,
            payment_amount=payment_amount,
            to_principal=to_principal,
            to_interest=to_interest,
            new_balance=deal.current_balance,
            prepayment_penalty=penalty,
            months_paid=deal.months_paid,
            completed=completed,
            term_complete=term_complete,
        )

    def record_missed_payment(self, deal: Deal) -> MissedPaymentOutcome:
        """Count a missed payment and apply the default policy."""
        self._ensure_open(deal)

        deal.missed_payments += 1
        deal.consecutive_missed_payments += 1
        defaulted = self.default_policy.should_default(deal)
        if defaulted:
            deal.status = DealStatus.DEFAULTED
            logger.warning(f"Deal {deal.id} defaulted after {deal.consecutive_missed_payments} consecutive missed payments")
        else:
            logger.info(f"Missed payment recorded for {deal.id} ({deal.missed_payments} total)")

        return MissedPaymentOutcome(
            deal_id=deal.id,
            missed_payments=deal.missed_payments,
            consecutive_missed_payments=deal.consecutive_missed_payments,
            defaulted=defaulted,
        )

    @staticmethod
    def _ensure_open(deal: Deal) -> None:
        if deal.status != DealStatus.ACTIVE:
            raise DealAlreadyResolved(f"Deal {deal.id} is {deal.status.value}")
        if isinstance(deal, LeaseDeal) and deal.lease_status != LeaseStatus.ACTIVE:
            raise DealAlreadyResolved(f"Lease {deal.id} is {deal.lease_status.value}")
