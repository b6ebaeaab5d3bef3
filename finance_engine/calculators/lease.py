"""
Lease Term Calculator

Pure lease-end math: equity, damage penalty, deposit refund, buyout price and
early termination fee. All amounts are integer cents.
"""

import logging
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal

from ..config import EngineConfig
from ..exceptions import VehicleReferenceMissing
from ..models import DepositDeduction, LeaseDeal, to_cents

logger = logging.getLogger(__name__)


def floor_to_whole_units(cents: Decimal) -> int:
    """Drop fractional currency units, keeping the result in cents."""
    whole = (cents / 100).to_integral_value(rounding=ROUND_FLOOR)
    return int(whole) * 100


class LeaseCalculator:
    """Calculates the amounts a lessee faces at the end of a term."""

    def __init__(self, config: EngineConfig | None = None):
        config = config or EngineConfig()
        self.allowed_damage = config.allowed_damage
        self.allowed_wear = config.allowed_wear
        self.damage_penalty_rate = config.damage_penalty_rate
        self.missed_payment_fee = to_cents(config.missed_payment_fee)
        self.termination_fee_rate = config.termination_fee_rate

    @staticmethod
    def calculate_lease_equity(monthly_payment: int, months_paid: int, depreciation: int, term_months: int) -> int:
        """
        Pro-rata share of depreciation paid down through term progress.

        Clamped to [0, depreciation].
        """
        if term_months <= 0 or depreciation <= 0:
            return 0
        equity = Decimal(depreciation) * Decimal(months_paid) / Decimal(term_months)
        equity_cents = int(equity.to_integral_value(rounding=ROUND_HALF_UP))
        return min(depreciation, max(0, equity_cents))

    def calculate_damage_penalty(
        self,
        deal: LeaseDeal,
        current_damage: Decimal | None,
        current_wear: Decimal | None
    ) -> int:
        """
        Penalty for damage and wear beyond the allowances at lease start.

        Land has no mechanical condition. A missing vehicle reading yields no
        penalty.
        """
        if deal.is_land_lease:
            return 0

        try:
            damage, wear = self._read_condition(deal, current_damage, current_wear)
        except VehicleReferenceMissing as e:
            logger.warning(f"{e}; damage penalty waived")
            return 0

        excess_damage = max(Decimal("0"), damage - deal.start_damage - self.allowed_damage)
        excess_wear = max(Decimal("0"), wear - deal.start_wear - self.allowed_wear)

        penalty = (excess_damage + excess_wear) * Decimal(deal.base_cost) * self.damage_penalty_rate
        return floor_to_whole_units(penalty)

    @staticmethod
    def _read_condition(deal: LeaseDeal, current_damage, current_wear) -> tuple[Decimal, Decimal]:
        if current_damage is None or current_wear is None:
            raise VehicleReferenceMissing(f"Vehicle condition unavailable for lease {deal.id}")
        return Decimal(str(current_damage)), Decimal(str(current_wear))

    def calculate_security_deposit_refund(
        self,
        deposit: int,
        damage_penalty: int,
        missed_payments: int,
        is_land_lease: bool
    ) -> tuple[int, list[DepositDeduction]]:
        """
        Refund = deposit - damage penalty - missed payments * fee, in [0, deposit].

        Land leases skip the damage deduction.
        """
        deductions: list[DepositDeduction] = []

        if damage_penalty > 0 and not is_land_lease:
            deductions.append(DepositDeduction(reason="damage_penalty", amount=damage_penalty))

        if missed_payments > 0:
            deductions.append(DepositDeduction(
                reason="missed_payments",
                amount=missed_payments * self.missed_payment_fee,
            ))

        total_deducted = sum(d.amount for d in deductions)
        refund = min(deposit, max(0, deposit - total_deducted))
        return refund, deductions

    @staticmethod
    def calculate_lease_buyout(residual_value: int, equity_accumulated: int) -> int:
        """Residual value less accumulated equity, never negative."""
        return max(0, residual_value - equity_accumulated)

    @staticmethod
    def calculate_remaining_obligation(deal: LeaseDeal) -> int:
        """Remaining scheduled payments plus the residual (balloon) value."""
        return deal.monthly_payment * deal.remaining_months + deal.residual_value

    def calculate_termination_fee(self, deal: LeaseDeal) -> int:
        """Early termination fee: a share of the remaining obligation."""
        remaining = Decimal(self.calculate_remaining_obligation(deal))
        return floor_to_whole_units(remaining * self.termination_fee_rate)
