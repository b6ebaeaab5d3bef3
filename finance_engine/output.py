"""
Output Builder

Converts deals and operation outcomes into API-ready dictionaries. Cents become
currency floats here and nowhere else.
"""

from decimal import Decimal

from .calculators import AmortizationCalculator
from .models import (
    AmortizationRow,
    Deal,
    DepositDeduction,
    EngineResult,
    LeaseDeal,
    LeaseQuote,
    LeaseResolution,
    LeaseTermination,
    MissedPaymentOutcome,
    PaymentOutcome,
    from_cents,
)


def to_money(cents: int) -> float:
    """Convert integer cents to a float with 2 decimal places."""
    return round(float(from_cents(cents)), 2)


def _fmt(value) -> str:
    """Format a number as currency string for descriptions."""
    return f"${value:,.2f}"


def _deductions(deductions: list[DepositDeduction]) -> list[dict]:
    return [{"reason": d.reason, "amount": to_money(d.amount)} for d in deductions]


class OutputBuilder:
    """Builds response sections for every engine operation."""

    def deal_summary(self, deal: Deal) -> dict:
        """Build the deal summary section, including progress."""
        summary = {
            "id": deal.id,
            "deal_type": deal.deal_type.value,
            "farm_id": deal.farm_id,
            "item_id": deal.item_id,
            "item_name": deal.item_name,
            "base_cost": to_money(deal.base_cost),
            "down_payment": to_money(deal.down_payment),
            "amount_financed": to_money(deal.amount_financed),
            "interest_rate": float(deal.interest_rate),
            "term_months": deal.term_months,
            "start_date": deal.start_date,
            "monthly_payment": to_money(deal.monthly_payment),
            "current_balance": to_money(deal.current_balance),
            "months_paid": deal.months_paid,
            "remaining_months": deal.remaining_months,
            "progress_percentage": float(deal.progress),
            "total_interest_paid": to_money(deal.total_interest_paid),
            "missed_payments": deal.missed_payments,
            "consecutive_missed_payments": deal.consecutive_missed_payments,
            "status": deal.status.value,
        }

        if isinstance(deal, LeaseDeal):
            summary.update({
                "residual_value": to_money(deal.residual_value),
                "security_deposit": to_money(deal.security_deposit),
                "lease_status": deal.lease_status.value,
                "is_land_lease": deal.is_land_lease,
                "renewal_count": deal.renewal_count,
                "total_equity_rolled_over": to_money(deal.total_equity_rolled_over),
                "previous_deal_id": deal.previous_deal_id,
            })
        else:
            summary["item_type"] = deal.item_type
            summary["prepayment_policy"] = deal.prepayment_policy.to_dict() if deal.prepayment_policy else None

        return summary

    def payment(self, outcome: PaymentOutcome, deal: Deal) -> dict:
        """Build the payment section with value and description for each field."""
        balance_before = outcome.new_balance + outcome.to_principal
        rate = deal.interest_rate

        if outcome.to_interest > 0:
            interest_desc = (
                f"{_fmt(to_money(balance_before))} × {rate}% / 12 = {_fmt(to_money(outcome.to_interest))}"
            )
        else:
            interest_desc = "Full payoff: no further interest accrues"

        return {
            "deal_id": outcome.deal_id,
            "payment_amount": to_money(outcome.payment_amount),
            "calculations": {
                "to_interest": {
                    "value": to_money(outcome.to_interest),
                    "description": interest_desc,
                },
                "to_principal": {
                    "value": to_money(outcome.to_principal),
                    "description": (
                        f"payment ({_fmt(to_money(outcome.payment_amount))}) - interest "
                        f"({_fmt(to_money(outcome.to_interest))}) = {_fmt(to_money(outcome.to_principal))}"
                        if outcome.to_interest > 0
                        else f"Remaining balance of {_fmt(to_money(balance_before))} paid in full"
                    ),
                },
                "prepayment_penalty": {
                    "value": to_money(outcome.prepayment_penalty),
                    "description": (
                        f"Early payoff penalty on {_fmt(to_money(balance_before))}"
                        if outcome.prepayment_penalty > 0
                        else "No prepayment penalty applies"
                    ),
                },
                "amount_charged": {
                    "value": to_money(outcome.amount_due),
                    "description": "principal + interest + prepayment penalty",
                },
            },
            "new_balance": to_money(outcome.new_balance),
            "months_paid": outcome.months_paid,
            "completed": outcome.completed,
            "term_complete": outcome.term_complete,
        }

    def missed_payment(self, outcome: MissedPaymentOutcome) -> dict:
        return {
            "deal_id": outcome.deal_id,
            "missed_payments": outcome.missed_payments,
            "consecutive_missed_payments": outcome.consecutive_missed_payments,
            "defaulted": outcome.defaulted,
        }

    def lease_quote(self, deal: LeaseDeal, quote: LeaseQuote, termination_fee: int, remaining_obligation: int) -> dict:
        """Build the lease-end options a lessee chooses between."""
        return {
            "deal_id": deal.id,
            "lease_status": deal.lease_status.value,
            "depreciation": {
                "value": to_money(quote.depreciation),
                "description": (
                    f"base_cost ({_fmt(to_money(deal.base_cost))}) - residual "
                    f"({_fmt(to_money(deal.residual_value))}) = {_fmt(to_money(quote.depreciation))}"
                ),
            },
            "equity": {
                "value": to_money(quote.equity),
                "description": (
                    f"{_fmt(to_money(quote.depreciation))} × {deal.months_paid}/{deal.term_months} months paid"
                ),
            },
            "damage_penalty": {
                "value": to_money(quote.damage_penalty),
                "description": (
                    "Land leases carry no condition penalty"
                    if deal.is_land_lease
                    else "Damage and wear beyond allowances × base cost × 30%"
                ),
            },
            "deposit_refund": {
                "value": to_money(quote.deposit_refund),
                "description": (
                    f"deposit ({_fmt(to_money(deal.security_deposit))}) - deductions = "
                    f"{_fmt(to_money(quote.deposit_refund))}"
                ),
            },
            "deductions": _deductions(quote.deductions),
            "buyout_price": {
                "value": to_money(quote.buyout_price),
                "description": (
                    f"max(0, residual ({_fmt(to_money(deal.residual_value))}) - equity "
                    f"({_fmt(to_money(quote.equity))})) = {_fmt(to_money(quote.buyout_price))}"
                ),
            },
            "remaining_obligation": to_money(remaining_obligation),
            "termination_fee": to_money(termination_fee),
        }

    def lease_resolution(self, resolution: LeaseResolution) -> dict:
        result = {
            "deal_id": resolution.deal_id,
            "action": resolution.action.value,
            "lease_status": resolution.lease_status.value,
            "deposit_refund": to_money(resolution.deposit_refund),
            "damage_penalty": to_money(resolution.damage_penalty),
            "deductions": _deductions(resolution.deductions),
            "buyout_price": to_money(resolution.buyout_price),
            "equity_applied": to_money(resolution.equity_applied),
        }
        if resolution.successor_id is not None:
            result["successor_id"] = resolution.successor_id
        return result

    def lease_termination(self, termination: LeaseTermination) -> dict:
        """Build the early termination charges section."""
        return {
            "deal_id": termination.deal_id,
            "damage_penalty": to_money(termination.damage_penalty),
            "termination_fee": {
                "value": to_money(termination.termination_fee),
                "description": (
                    "Land leases end without a termination fee"
                    if termination.is_land_lease
                    else "50% of the remaining payments and residual"
                ),
            },
            "total_charge": to_money(termination.total_charge),
            "deposit_refund": 0.0,
        }

    def monthly_payment(
        self,
        principal: int,
        annual_rate: Decimal,
        term_months: int,
        payment: int,
        schedule: list[AmortizationRow] | None = None
    ) -> dict:
        result = {
            "principal": to_money(principal),
            "interest_rate": float(annual_rate),
            "term_months": term_months,
            "monthly_payment": to_money(payment),
            "first_period_interest": to_money(
                AmortizationCalculator.compute_interest_for_period(principal, annual_rate)
            ),
        }
        if schedule is not None:
            result["total_interest"] = to_money(sum(row.to_interest for row in schedule))
            result["schedule"] = [
                {
                    "period": row.period,
                    "payment": to_money(row.payment),
                    "to_principal": to_money(row.to_principal),
                    "to_interest": to_money(row.to_interest),
                    "balance": to_money(row.balance),
                }
                for row in schedule
            ]
        return result


# HTTP codes for EngineResult statuses returned by the API surfaces
HTTP_STATUS_CODES = {
    "success": 200,
    "validation_failed": 400,
    "invalid_term": 400,
    "invalid_payment_amount": 400,
    "vehicle_reference_missing": 400,
    "insufficient_funds": 402,
    "farm_mismatch": 403,
    "deal_not_found": 404,
    "deal_already_resolved": 409,
    "deal_not_resolvable": 409,
}


def http_status(result: EngineResult) -> int:
    return HTTP_STATUS_CODES.get(result.status, 200 if result.ok else 500)
