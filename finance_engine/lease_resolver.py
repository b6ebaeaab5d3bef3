"""
Lease Term Resolver

Settles a lease that has reached TermComplete through one of three actions:
Return, Buyout or Renew, and ends Active leases early on request. The resolver
prices the settlement and transitions the lease record; registry effects
(retiring the record, registering the renewed successor) are applied by the
engine.
"""

import logging

from .calculators import LeaseCalculator
from .config import EngineConfig
from .exceptions import DealAlreadyResolved, DealNotResolvable
from .models import (
    Deal,
    DealStatus,
    LeaseAction,
    LeaseContext,
    LeaseDeal,
    LeaseQuote,
    LeaseResolution,
    LeaseStatus,
    LeaseTermination,
    LeaseTerms,
    from_cents,
)
from .validators import DealValidator

logger = logging.getLogger(__name__)

RESOLVED_LEASE_STATUSES = (
    LeaseStatus.RETURNED,
    LeaseStatus.BOUGHT_OUT,
    LeaseStatus.RENEWED,
    LeaseStatus.TERMINATED,
)


class LeaseTermResolver:
    """
    Resolves TermComplete leases.

    State machine:
        Active -> TermComplete -> Returned | BoughtOut | Renewed (-> new Active cycle)
        Active -> Terminated (early, fee charged)
    """

    def __init__(self, config: EngineConfig | None = None, validator: DealValidator | None = None):
        self.calculator = LeaseCalculator(config)
        self.validator = validator or DealValidator()

    def quote(self, deal: LeaseDeal, context: LeaseContext | None = None) -> LeaseQuote:
        """Price every lease-end option without mutating the deal."""
        context = context or LeaseContext()
        damage, wear = self._condition(context)

        equity = self.calculator.calculate_lease_equity(
            deal.monthly_payment, deal.months_paid, deal.depreciation, deal.term_months
        )
        damage_penalty = self.calculator.calculate_damage_penalty(deal, damage, wear)
        refund, deductions = self.calculator.calculate_security_deposit_refund(
            deal.security_deposit, damage_penalty, deal.missed_payments, deal.is_land_lease
        )

        return LeaseQuote(
            depreciation=deal.depreciation,
            equity=equity,
            damage_penalty=damage_penalty,
            deposit_refund=refund,
            deductions=deductions,
            buyout_price=self.calculator.calculate_lease_buyout(deal.residual_value, equity),
        )

    def resolve_lease_term(
        self,
        deal: Deal,
        action: LeaseAction,
        context: LeaseContext | None = None
    ) -> LeaseResolution:
        """
        Apply a lease-end action.

        Raises:
            DealAlreadyResolved: the lease was already returned, bought out or renewed
            DealNotResolvable: the deal is not a lease at TermComplete
        """
        self.ensure_resolvable(deal)
        context = context or LeaseContext()
        action = LeaseAction(action)
        quote = self.quote(deal, context)

        if action == LeaseAction.RETURN:
            resolution = self._resolve_return(deal, quote)
        elif action == LeaseAction.BUYOUT:
            resolution = self._resolve_buyout(deal, quote)
        else:
            resolution = self._resolve_renew(deal, quote, context)

        deal.lease_status = resolution.lease_status
        deal.status = DealStatus.COMPLETED

        logger.info(
            f"Lease {deal.id} resolved by {action.value}: refund={from_cents(resolution.deposit_refund)} "
            f"buyout={from_cents(resolution.buyout_price)}"
        )
        return resolution

    def price_termination(self, deal: LeaseDeal, context: LeaseContext | None = None) -> LeaseTermination:
        """Charges for ending the lease now: damage penalty plus the early termination fee.

        Land leases are released free of charge.
        """
        if deal.is_land_lease:
            return LeaseTermination(deal_id=deal.id, is_land_lease=True)

        damage, wear = self._condition(context or LeaseContext())
        return LeaseTermination(
            deal_id=deal.id,
            damage_penalty=self.calculator.calculate_damage_penalty(deal, damage, wear),
            termination_fee=self.calculator.calculate_termination_fee(deal),
        )

    def terminate_early(self, deal: Deal, context: LeaseContext | None = None) -> LeaseTermination:
        """
        End an Active lease before term. The deposit is not refunded.

        Raises:
            DealAlreadyResolved: the lease is already closed
            DealNotResolvable: the deal is not a lease, or its term has ended
        """
        self.ensure_terminable(deal)
        termination = self.price_termination(deal, context)

        deal.lease_status = LeaseStatus.TERMINATED
        deal.status = DealStatus.COMPLETED
        deal.current_balance = 0

        logger.info(
            f"Lease {deal.id} terminated early: damage={from_cents(termination.damage_penalty)} "
            f"fee={from_cents(termination.termination_fee)}"
        )
        return termination

    def _resolve_return(self, deal: LeaseDeal, quote: LeaseQuote) -> LeaseResolution:
        return LeaseResolution(
            deal_id=deal.id,
            action=LeaseAction.RETURN,
            lease_status=LeaseStatus.RETURNED,
            deposit_refund=quote.deposit_refund,
            damage_penalty=quote.damage_penalty,
            deductions=quote.deductions,
        )

    def _resolve_buyout(self, deal: LeaseDeal, quote: LeaseQuote) -> LeaseResolution:
        return LeaseResolution(
            deal_id=deal.id,
            action=LeaseAction.BUYOUT,
            lease_status=LeaseStatus.BOUGHT_OUT,
            deposit_refund=quote.deposit_refund,
            damage_penalty=quote.damage_penalty,
            deductions=quote.deductions,
            buyout_price=quote.buyout_price,
            equity_applied=quote.equity,
        )

    def _resolve_renew(self, deal: LeaseDeal, quote: LeaseQuote, context: LeaseContext) -> LeaseResolution:
        if deal.residual_value <= 0:
            raise DealNotResolvable(f"Lease {deal.id} has no residual value left to renew")

        terms = self.build_renewal_terms(deal, quote, context)
        # Validate before the old record is touched
        self.validator.validate_lease(terms)

        return LeaseResolution(
            deal_id=deal.id,
            action=LeaseAction.RENEW,
            lease_status=LeaseStatus.RENEWED,
            buyout_price=quote.buyout_price,
            equity_applied=quote.equity,
            renewal_terms=terms,
        )

    @staticmethod
    def build_renewal_terms(deal: LeaseDeal, quote: LeaseQuote, context: LeaseContext) -> LeaseTerms:
        """Terms for the next cycle: the old residual is financed down to the buyout price."""
        start_damage, start_wear = deal.start_damage, deal.start_wear
        if context.condition is not None:
            start_damage, start_wear = context.condition.damage, context.condition.wear

        return LeaseTerms(
            farm_id=deal.farm_id,
            item_id=deal.item_id,
            item_name=deal.item_name,
            base_cost=deal.residual_value,
            down_payment=0,
            interest_rate=deal.interest_rate,
            term_months=context.new_term_months or deal.term_months,
            residual_value=quote.buyout_price,
            security_deposit=deal.security_deposit,
            start_date=context.start_date if context.start_date is not None else deal.start_date,
            start_damage=start_damage,
            start_wear=start_wear,
            is_land_lease=deal.is_land_lease,
            renewal_count=deal.renewal_count + 1,
            total_equity_rolled_over=deal.total_equity_rolled_over + quote.equity,
            previous_deal_id=deal.id,
        )

    @staticmethod
    def _condition(context: LeaseContext):
        if context.condition is None:
            return None, None
        return context.condition.damage, context.condition.wear

    @staticmethod
    def ensure_terminable(deal: Deal) -> None:
        if not isinstance(deal, LeaseDeal):
            raise DealNotResolvable(f"Deal {deal.id} is not a lease")
        if deal.status != DealStatus.ACTIVE or deal.lease_status in RESOLVED_LEASE_STATUSES:
            raise DealAlreadyResolved(f"Lease {deal.id} is already {deal.lease_status.value}")
        if deal.lease_status != LeaseStatus.ACTIVE:
            raise DealNotResolvable(f"Lease {deal.id} has reached term end; return, buy out or renew it")

    @staticmethod
    def ensure_resolvable(deal: Deal) -> None:
        if not isinstance(deal, LeaseDeal):
            raise DealNotResolvable(f"Deal {deal.id} is not a lease")
        if deal.lease_status in RESOLVED_LEASE_STATUSES:
            raise DealAlreadyResolved(f"Lease {deal.id} is already {deal.lease_status.value}")
        if deal.status != DealStatus.ACTIVE:
            raise DealAlreadyResolved(f"Lease {deal.id} is {deal.status.value}")
        if deal.lease_status != LeaseStatus.TERM_COMPLETE:
            raise DealNotResolvable(f"Lease {deal.id} has not reached the end of its term")
