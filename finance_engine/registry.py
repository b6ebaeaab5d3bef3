"""
Deal Registry

In-memory owner of every deal record: identity, lookup, origination and
retirement. One registry exists per game session; it is constructed and passed
explicitly, never reached through a global.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from .calculators import AmortizationCalculator
from .exceptions import DealNotFound
from .models import (
    Deal,
    DealType,
    FinanceDeal,
    FinanceTerms,
    LeaseDeal,
    LeaseTerms,
    deal_from_dict,
    from_cents,
)
from .validators import DealValidator

logger = logging.getLogger(__name__)


class DealRegistry:
    """Owns active deals, the archive of retired deals and per-deal locks."""

    def __init__(self, validator: DealValidator | None = None):
        self.validator = validator or DealValidator()
        self._deals: dict[str, Deal] = {}
        self._archive: dict[str, Deal] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._sequence = 0

    def __len__(self) -> int:
        return len(self._deals)

    def __contains__(self, deal_id: str) -> bool:
        return deal_id in self._deals

    # -------------------------------------------------------------------------
    # Origination
    # -------------------------------------------------------------------------

    def create_finance_deal(self, terms: FinanceTerms) -> FinanceDeal:
        """Validate terms, fix the monthly payment and register a finance deal."""
        self.validator.validate_finance(terms)

        amount_financed = terms.base_cost - terms.down_payment
        payment = AmortizationCalculator.compute_monthly_payment(
            amount_financed, terms.interest_rate, terms.term_months
        )

        deal = FinanceDeal(
            id=self._next_id(DealType.FINANCE, terms.farm_id),
            farm_id=terms.farm_id,
            item_id=terms.item_id,
            item_name=terms.item_name,
            base_cost=terms.base_cost,
            down_payment=terms.down_payment,
            amount_financed=amount_financed,
            interest_rate=terms.interest_rate,
            term_months=terms.term_months,
            start_date=terms.start_date,
            monthly_payment=payment,
            current_balance=amount_financed,
            item_type=terms.item_type,
            prepayment_policy=terms.prepayment_policy,
        )
        return self._register(deal)

    def create_lease_deal(self, terms: LeaseTerms) -> LeaseDeal:
        """Validate terms, fix the balloon payment and register a lease."""
        self.validator.validate_lease(terms)

        amount_financed = terms.base_cost - terms.down_payment
        payment = AmortizationCalculator.compute_lease_payment(
            amount_financed, terms.residual_value, terms.interest_rate, terms.term_months
        )

        deal = LeaseDeal(
            id=self._next_id(DealType.LEASE, terms.farm_id),
            farm_id=terms.farm_id,
            item_id=terms.item_id,
            item_name=terms.item_name,
            base_cost=terms.base_cost,
            down_payment=terms.down_payment,
            amount_financed=amount_financed,
            interest_rate=terms.interest_rate,
            term_months=terms.term_months,
            start_date=terms.start_date,
            monthly_payment=payment,
            current_balance=amount_financed,
            residual_value=terms.residual_value,
            security_deposit=terms.security_deposit,
            start_damage=terms.start_damage,
            start_wear=terms.start_wear,
            is_land_lease=terms.is_land_lease,
            renewal_count=terms.renewal_count,
            total_equity_rolled_over=terms.total_equity_rolled_over,
            previous_deal_id=terms.previous_deal_id,
        )
        return self._register(deal)

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get_deal_by_id(self, deal_id: str) -> Deal | None:
        return self._deals.get(deal_id)

    def require(self, deal_id: str) -> Deal:
        """Return the active deal or raise DealNotFound."""
        deal = self._deals.get(deal_id)
        if deal is None:
            raise DealNotFound(f"Deal {deal_id} not found")
        return deal

    def get_deals_by_farm(self, farm_id: int) -> list[Deal]:
        """Active deals held by a farm, oldest first."""
        return [deal for deal in self._deals.values() if deal.farm_id == farm_id]

    def archived(self, deal_id: str) -> Deal | None:
        """Look up a retired deal."""
        return self._archive.get(deal_id)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def retire(self, deal_id: str) -> Deal:
        """Move a deal from the active set to the archive."""
        with self._registry_lock:
            deal = self._deals.pop(deal_id, None)
            if deal is None:
                raise DealNotFound(f"Deal {deal_id} not found")
            self._archive[deal_id] = deal
            # Current holders keep their reference; later callers find no active deal
            self._locks.pop(deal_id, None)

        logger.info(f"Retired {deal_id} ({deal.status.value})")
        return deal

    @contextmanager
    def lock(self, deal_id: str) -> Iterator[None]:
        """Serialize mutations of one deal.

        Locks exist only for active deals. Unknown or retired ids get no lock;
        the caller's lookup inside the block reports them.
        """
        with self._registry_lock:
            deal_lock = self._locks.get(deal_id)
            if deal_lock is None and deal_id in self._deals:
                deal_lock = self._locks[deal_id] = threading.Lock()

        if deal_lock is None:
            yield
            return
        with deal_lock:
            yield

    # -------------------------------------------------------------------------
    # Persistence hand-off
    # -------------------------------------------------------------------------

    def snapshot(self) -> dict:
        """JSON-compatible state for the save-file layer."""
        with self._registry_lock:
            return {
                "sequence": self._sequence,
                "deals": [deal.to_dict() for deal in self._deals.values()],
                "archive": [deal.to_dict() for deal in self._archive.values()],
            }

    @classmethod
    def restore(cls, data: dict, validator: DealValidator | None = None) -> "DealRegistry":
        """Rebuild a registry from ``snapshot()`` output."""
        registry = cls(validator)
        registry._sequence = int(data.get("sequence", 0))
        for item in data.get("deals", []):
            deal = deal_from_dict(item)
            registry._deals[deal.id] = deal
        for item in data.get("archive", []):
            deal = deal_from_dict(item)
            registry._archive[deal.id] = deal
        return registry

    def _next_id(self, deal_type: DealType, farm_id: int) -> str:
        with self._registry_lock:
            self._sequence += 1
            return f"{deal_type.value}_{farm_id}_{self._sequence:06d}"

    def _register(self, deal: Deal) -> Deal:
        with self._registry_lock:
            self._deals[deal.id] = deal

        logger.info(
            f"Registered {deal.id}: {deal.item_name} financed={from_cents(deal.amount_financed)} "
            f"monthly={from_cents(deal.monthly_payment)} term={deal.term_months}"
        )
        return deal
