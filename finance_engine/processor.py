"""
Finance Engine - Main Orchestrator

Resolves deal ids through the registry, routes requests to the payment
processor or lease resolver under the deal's lock, moves farm money when a
ledger is attached, and converts every engine error into an EngineResult.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict

from .calculators import AmortizationCalculator, LeaseCalculator
from .config import EngineConfig
from .exceptions import (
    DealAlreadyResolved,
    DealNotFound,
    FarmMismatch,
    FinanceEngineError,
    InvalidDealError,
    InvalidPaymentAmount,
)
from .ledger import FarmLedger
from .lease_resolver import LeaseTermResolver
from .models import (
    AssetCondition,
    Deal,
    DealStatus,
    EngineResult,
    FinanceTerms,
    LeaseAction,
    LeaseContext,
    LeaseDeal,
    LeaseTerms,
    PercentOfBalancePenalty,
    to_cents,
)
from .output import OutputBuilder, to_money
from .payments import DefaultPolicy, MissedPaymentLimit, PaymentProcessor
from .registry import DealRegistry

logger = logging.getLogger(__name__)

SUCCESS = "success"


# =============================================================================
# REQUEST PARSING
# =============================================================================

def parse_amount(value) -> int:
    """Parse a currency amount from a request into cents."""
    if value is None or isinstance(value, bool):
        raise InvalidPaymentAmount("amount is required")
    try:
        return to_cents(value)
    except (InvalidOperation, ValueError) as e:
        raise InvalidPaymentAmount(f"amount must be a number, got: {value!r}") from e


def parse_farm_id(value) -> int | None:
    """Parse the optional requesting farm id; absent means no ownership check."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidDealError(f"farm_id must be an integer, got: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise InvalidDealError(f"farm_id must be an integer, got: {value!r}") from e


def parse_lease_action(value) -> LeaseAction:
    if isinstance(value, LeaseAction):
        return value
    try:
        return LeaseAction(str(value).lower())
    except ValueError as e:
        valid = ", ".join(a.value for a in LeaseAction)
        raise InvalidDealError(f"action must be one of: {valid}, got: {value!r}") from e


def parse_lease_context(data: Dict[str, Any] | None) -> LeaseContext:
    """Build a LeaseContext from a request body.

    ``condition`` is omitted when the leased vehicle cannot be located.
    """
    data = data or {}
    condition = None
    raw = data.get("condition")
    try:
        if raw is not None:
            condition = AssetCondition(
                damage=Decimal(str(raw["damage"])),
                wear=Decimal(str(raw["wear"])),
            )
        new_term = data.get("new_term_months")
        start_date = data.get("start_date")
        return LeaseContext(
            condition=condition,
            new_term_months=int(new_term) if new_term is not None else None,
            start_date=int(start_date) if start_date is not None else None,
        )
    except (KeyError, TypeError, ValueError, InvalidOperation) as e:
        raise InvalidDealError(f"invalid lease context: {e}") from e


def _parse_terms(terms_cls, data: Dict[str, Any]):
    try:
        return terms_cls.from_dict(data)
    except KeyError as e:
        raise InvalidDealError(f"Missing required field: {e.args[0]}") from e
    except (TypeError, ValueError, InvalidOperation) as e:
        raise InvalidDealError(f"Invalid deal terms: {e}") from e


# =============================================================================
# ENGINE
# =============================================================================

class FinanceEngine:
    """
    Entry point for every deal operation.

    Pipeline for mutations:
    1. Take the per-deal lock
    2. Resolve the deal id (DealNotFound / DealAlreadyResolved)
    3. Check that the requesting farm owns the deal
    4. Check farm funds when a ledger is attached
    5. Apply the payment or lease action
    6. Move funds and retire closed deals
    7. Build output
    """

    def __init__(
        self,
        registry: DealRegistry | None = None,
        ledger: FarmLedger | None = None,
        config: EngineConfig | None = None,
        default_policy: DefaultPolicy | None = None
    ):
        self.config = config or EngineConfig()
        self.registry = registry or DealRegistry()
        self.ledger = ledger

        if default_policy is None and self.config.missed_payment_limit is not None:
            default_policy = MissedPaymentLimit(limit=self.config.missed_payment_limit)

        self.payment_processor = PaymentProcessor(default_policy)
        self.lease_resolver = LeaseTermResolver(self.config, self.registry.validator)
        self.lease_calculator = LeaseCalculator(self.config)
        self.output_builder = OutputBuilder()

    # -------------------------------------------------------------------------
    # Origination
    # -------------------------------------------------------------------------

    def create_finance_deal(self, terms: FinanceTerms | Dict[str, Any]) -> EngineResult:
        """Register a finance deal; the down payment is taken from the farm."""
        try:
            if isinstance(terms, dict):
                terms = _parse_terms(FinanceTerms, terms)
            if terms.prepayment_policy is None and self.config.prepayment_penalty_rate > 0:
                terms.prepayment_policy = PercentOfBalancePenalty(
                    rate=self.config.prepayment_penalty_rate,
                    window_months=self.config.prepayment_penalty_window_months,
                )

            if self.ledger is not None:
                self.ledger.ensure_funds(terms.farm_id, terms.down_payment)
            deal = self.registry.create_finance_deal(terms)
            if self.ledger is not None and deal.down_payment > 0:
                self.ledger.debit(deal.farm_id, deal.down_payment, reason=f"down payment {deal.id}")
        except FinanceEngineError as e:
            return self._failure("create_finance_deal", e)

        return EngineResult(ok=True, status=SUCCESS, payload={"deal": self.output_builder.deal_summary(deal)})

    def create_lease_deal(self, terms: LeaseTerms | Dict[str, Any]) -> EngineResult:
        """Register a lease; down payment and security deposit are taken from the farm."""
        try:
            if isinstance(terms, dict):
                terms = _parse_terms(LeaseTerms, terms)

            upfront = terms.down_payment + terms.security_deposit
            if self.ledger is not None:
                self.ledger.ensure_funds(terms.farm_id, upfront)
            deal = self.registry.create_lease_deal(terms)
            if self.ledger is not None and upfront > 0:
                self.ledger.debit(deal.farm_id, upfront, reason=f"lease start {deal.id}")
        except FinanceEngineError as e:
            return self._failure("create_lease_deal", e)

        return EngineResult(ok=True, status=SUCCESS, payload={"deal": self.output_builder.deal_summary(deal)})

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_deal(self, deal_id: str) -> EngineResult:
        """Look up a deal, falling back to the archive of retired deals."""
        deal = self.registry.get_deal_by_id(deal_id)
        archived = False
        if deal is None:
            deal = self.registry.archived(deal_id)
            archived = True
        if deal is None:
            return self._failure("get_deal", DealNotFound(f"Deal {deal_id} not found"))

        return EngineResult(
            ok=True,
            status=SUCCESS,
            payload={"deal": self.output_builder.deal_summary(deal), "archived": archived},
        )

    def deals_for_farm(self, farm_id: int) -> EngineResult:
        deals = self.registry.get_deals_by_farm(farm_id)
        return EngineResult(
            ok=True,
            status=SUCCESS,
            payload={
                "farm_id": farm_id,
                "deals": [self.output_builder.deal_summary(deal) for deal in deals],
                "total_monthly_payment": to_money(sum(deal.monthly_payment for deal in deals)),
                "total_balance": to_money(sum(deal.current_balance for deal in deals)),
            },
        )

    def calculate_monthly_payment(
        self,
        principal: int,
        annual_rate: Decimal,
        term_months: int,
        include_schedule: bool = False
    ) -> EngineResult:
        """Quote the fixed payment for a prospective deal (cents in)."""
        try:
            if annual_rate < 0:
                raise InvalidDealError(f"interest_rate cannot be negative, got: {annual_rate}")
            payment = AmortizationCalculator.compute_monthly_payment(principal, annual_rate, term_months)
            schedule = None
            if include_schedule:
                schedule = AmortizationCalculator.build_schedule(principal, annual_rate, term_months)
        except FinanceEngineError as e:
            return self._failure("calculate_monthly_payment", e)

        return EngineResult(
            ok=True,
            status=SUCCESS,
            payload={
                "calculation": self.output_builder.monthly_payment(
                    principal, annual_rate, term_months, payment, schedule
                )
            },
        )

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    def submit_payment(self, deal_id: str, amount: int, farm_id: int | None = None) -> EngineResult:
        """Apply a payment (cents). Deals paid to zero are retired.

        A lease paid to zero is bought out and its deposit refunded.
        """
        try:
            with self.registry.lock(deal_id):
                deal = self._require_open(deal_id)
                self._check_owner(deal, farm_id)

                if self.ledger is not None:
                    self.ledger.ensure_funds(deal.farm_id, self._expected_charge(deal, amount))

                outcome = self.payment_processor.apply_payment(deal, amount)

                if self.ledger is not None:
                    self.ledger.debit(deal.farm_id, outcome.amount_due, reason=f"payment {deal.id}")

                deposit_refund = None
                if outcome.completed and isinstance(deal, LeaseDeal):
                    deposit_refund, _ = self.lease_calculator.calculate_security_deposit_refund(
                        deal.security_deposit, 0, deal.missed_payments, deal.is_land_lease
                    )
                    if self.ledger is not None and deposit_refund > 0:
                        self.ledger.credit(deal.farm_id, deposit_refund, reason=f"deposit refund {deal.id}")

                retired = self._retire_if_closed(deal)
        except FinanceEngineError as e:
            return self._failure("submit_payment", e)

        payload = {
            "payment": self.output_builder.payment(outcome, deal),
            "deal": self.output_builder.deal_summary(deal),
            "retired": retired,
        }
        if deposit_refund is not None:
            payload["deposit_refund"] = to_money(deposit_refund)
        return EngineResult(ok=True, status=SUCCESS, payload=payload)

    def record_missed_payment(self, deal_id: str, farm_id: int | None = None) -> EngineResult:
        try:
            with self.registry.lock(deal_id):
                deal = self._require_open(deal_id)
                self._check_owner(deal, farm_id)
                outcome = self.payment_processor.record_missed_payment(deal)
                retired = self._retire_if_closed(deal)
        except FinanceEngineError as e:
            return self._failure("record_missed_payment", e)

        return EngineResult(
            ok=True,
            status=SUCCESS,
            payload={
                "missed_payment": self.output_builder.missed_payment(outcome),
                "deal": self.output_builder.deal_summary(deal),
                "retired": retired,
            },
        )

    # -------------------------------------------------------------------------
    # Lease resolution
    # -------------------------------------------------------------------------

    def quote_lease(self, deal_id: str, context: LeaseContext | None = None) -> EngineResult:
        """Price the lease-end options for an active lease."""
        try:
            deal = self._require_open(deal_id)
            if not isinstance(deal, LeaseDeal):
                raise InvalidDealError(f"Deal {deal_id} is not a lease")
            quote = self.lease_resolver.quote(deal, context)
            termination_fee = self.lease_calculator.calculate_termination_fee(deal)
            remaining = self.lease_calculator.calculate_remaining_obligation(deal)
        except FinanceEngineError as e:
            return self._failure("quote_lease", e)

        return EngineResult(
            ok=True,
            status=SUCCESS,
            payload={"quote": self.output_builder.lease_quote(deal, quote, termination_fee, remaining)},
        )

    def resolve_lease(
        self,
        deal_id: str,
        action: LeaseAction | str,
        context: LeaseContext | None = None,
        farm_id: int | None = None
    ) -> EngineResult:
        """
        Settle a TermComplete lease.

        Buyout charges the buyout price; Return and Buyout refund the deposit;
        Renew registers the successor lease. The resolved lease is retired.
        """
        try:
            action = parse_lease_action(action)
            with self.registry.lock(deal_id):
                deal = self._require_open(deal_id)
                self._check_owner(deal, farm_id)
                self.lease_resolver.ensure_resolvable(deal)

                if self.ledger is not None and action == LeaseAction.BUYOUT:
                    price = self.lease_resolver.quote(deal, context).buyout_price
                    self.ledger.ensure_funds(deal.farm_id, price)

                resolution = self.lease_resolver.resolve_lease_term(deal, action, context)

                successor = None
                if resolution.renewal_terms is not None:
                    successor = self.registry.create_lease_deal(resolution.renewal_terms)
                    resolution.successor_id = successor.id

                if self.ledger is not None:
                    if resolution.buyout_price > 0 and action == LeaseAction.BUYOUT:
                        self.ledger.debit(deal.farm_id, resolution.buyout_price, reason=f"buyout {deal.id}")
                    if resolution.deposit_refund > 0:
                        self.ledger.credit(deal.farm_id, resolution.deposit_refund, reason=f"deposit refund {deal.id}")

                self.registry.retire(deal.id)
        except FinanceEngineError as e:
            return self._failure("resolve_lease", e)

        payload = {"resolution": self.output_builder.lease_resolution(resolution)}
        if successor is not None:
            payload["successor"] = self.output_builder.deal_summary(successor)
        return EngineResult(ok=True, status=SUCCESS, payload=payload)

    def terminate_lease(
        self,
        deal_id: str,
        context: LeaseContext | None = None,
        farm_id: int | None = None
    ) -> EngineResult:
        """
        End an Active lease before its term runs out.

        Charges the damage penalty plus the termination fee (nothing for land
        leases). The security deposit is forfeited and the lease is retired.
        """
        try:
            with self.registry.lock(deal_id):
                deal = self._require_open(deal_id)
                self._check_owner(deal, farm_id)
                if not isinstance(deal, LeaseDeal):
                    raise InvalidDealError(f"Deal {deal_id} is not a lease")
                self.lease_resolver.ensure_terminable(deal)

                if self.ledger is not None:
                    charge = self.lease_resolver.price_termination(deal, context).total_charge
                    self.ledger.ensure_funds(deal.farm_id, charge)

                termination = self.lease_resolver.terminate_early(deal, context)

                if self.ledger is not None and termination.total_charge > 0:
                    self.ledger.debit(deal.farm_id, termination.total_charge, reason=f"early termination {deal.id}")

                self.registry.retire(deal.id)
        except FinanceEngineError as e:
            return self._failure("terminate_lease", e)

        return EngineResult(
            ok=True,
            status=SUCCESS,
            payload={
                "termination": self.output_builder.lease_termination(termination),
                "deal": self.output_builder.deal_summary(deal),
            },
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _require_open(self, deal_id: str) -> Deal:
        deal = self.registry.get_deal_by_id(deal_id)
        if deal is not None:
            return deal
        archived = self.registry.archived(deal_id)
        if archived is not None:
            raise DealAlreadyResolved(f"Deal {deal_id} is already {archived.status.value}")
        raise DealNotFound(f"Deal {deal_id} not found")

    @staticmethod
    def _check_owner(deal: Deal, farm_id: int | None) -> None:
        if farm_id is not None and deal.farm_id != farm_id:
            raise FarmMismatch(f"Deal {deal.id} does not belong to farm {farm_id}")

    def _expected_charge(self, deal: Deal, amount: int) -> int:
        if amount <= 0:
            return 0
        if amount >= deal.current_balance:
            penalty = self.payment_processor.penalty_calculator.calculate_prepayment_penalty(deal)
            return deal.current_balance + penalty
        return amount

    def _retire_if_closed(self, deal: Deal) -> bool:
        if deal.status in (DealStatus.COMPLETED, DealStatus.DEFAULTED):
            self.registry.retire(deal.id)
            return True
        return False

    @staticmethod
    def _failure(operation: str, error: FinanceEngineError) -> EngineResult:
        logger.info(f"{operation} rejected ({error.status}): {error}")
        return EngineResult(ok=False, status=error.status, error=str(error))


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def calculate_monthly_payment_from_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Quote a monthly payment from a request body in currency units.

    Expects ``principal`` (or ``base_cost`` and ``down_payment``),
    ``interest_rate`` and ``term_months``.
    """
    try:
        if "principal" in data:
            principal = parse_amount(data["principal"])
        else:
            principal = parse_amount(data.get("base_cost")) - to_cents(data.get("down_payment", 0))
        rate = Decimal(str(data.get("interest_rate", 0)))
        term = int(data["term_months"])
    except KeyError as e:
        return EngineResult(ok=False, status=InvalidDealError.status,
                            error=f"Missing required field: {e.args[0]}").to_dict()
    except (TypeError, ValueError, InvalidOperation) as e:
        return EngineResult(ok=False, status=InvalidDealError.status, error=str(e)).to_dict()

    engine = FinanceEngine()
    return engine.calculate_monthly_payment(
        principal, rate, term, include_schedule=bool(data.get("include_schedule"))
    ).to_dict()
