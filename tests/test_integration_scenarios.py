"""
Integration Test Scenarios for the Farm Equipment Finance Engine

These tests walk deals through the engine end to end, with a farm funds
ledger attached, using the worked numbers the game economy is balanced on.

Run with: python -m pytest tests/test_integration_scenarios.py -v

IMPORTANT: This file has a companion business summary document:
    docs/test_scenarios_business_summary.md

When adding or modifying tests, please update the business summary document
to keep them in sync. The summary provides plain-English explanations of
each test scenario for game designers.
"""

from decimal import Decimal

import pytest

from finance_engine import FarmLedger, FinanceEngine
from finance_engine.calculators import LeaseCalculator
from finance_engine.models import AssetCondition, LeaseContext
from finance_engine.payments import MissedPaymentLimit


STARTING_FUNDS = 10_000_000  # $100,000


@pytest.fixture
def ledger():
    return FarmLedger({1: STARTING_FUNDS})


@pytest.fixture
def engine(ledger):
    return FinanceEngine(ledger=ledger)


def lease_request(**overrides):
    request = {
        "farm_id": 1,
        "item_id": "combine-9",
        "item_name": "Used Combine",
        "base_cost": 20000,
        "interest_rate": 0,
        "term_months": 5,
        "residual_value": 15000,
        "security_deposit": 3000,
    }
    request.update(overrides)
    return request


class TestTractorFinancing:
    """Scenario A: $20,000 tractor, $2,000 down, 6% over five years."""

    @pytest.fixture
    def deal_id(self, engine):
        result = engine.create_finance_deal({
            "farm_id": 1,
            "item_id": "tractor-7",
            "item_name": "Used Tractor",
            "base_cost": 20000,
            "down_payment": 2000,
            "interest_rate": 6.0,
            "term_months": 60,
        })
        return result.payload["deal"]["id"]

    def test_down_payment_taken_at_purchase(self, engine, ledger, deal_id):
        deal = engine.get_deal(deal_id).payload["deal"]

        assert deal["amount_financed"] == 18000.0
        assert deal["monthly_payment"] == 348.0
        assert ledger.query_farm_balance(1) == STARTING_FUNDS - 200_000

    def test_first_payment_split(self, engine, ledger, deal_id):
        """$90 interest (18,000 × 6% / 12) and $258 principal leave $17,742."""
        result = engine.submit_payment(deal_id, 34_800)

        payment = result.payload["payment"]
        assert payment["calculations"]["to_interest"]["value"] == 90.0
        assert payment["calculations"]["to_principal"]["value"] == 258.0
        assert payment["new_balance"] == 17742.0
        assert payment["months_paid"] == 1
        assert ledger.query_farm_balance(1) == STARTING_FUNDS - 200_000 - 34_800


class TestInterestOnlyBoundary:
    """Scenario D: a payment equal to the month's interest retires no principal."""

    @pytest.fixture
    def deal_id(self, engine):
        result = engine.create_finance_deal({
            "farm_id": 1,
            "item_id": "baler-2",
            "base_cost": 10000,
            "interest_rate": 6,
            "term_months": 12,
        })
        return result.payload["deal"]["id"]

    def test_interest_only_payment_accepted(self, engine, deal_id):
        result = engine.submit_payment(deal_id, 5_000)

        assert result.ok
        assert result.payload["payment"]["calculations"]["to_principal"]["value"] == 0.0
        assert result.payload["payment"]["new_balance"] == 10000.0

    def test_payment_below_interest_rejected(self, engine, ledger, deal_id):
        before = ledger.query_farm_balance(1)
        result = engine.submit_payment(deal_id, 4_900)

        assert result.status == "invalid_payment_amount"
        assert ledger.query_farm_balance(1) == before
        assert engine.get_deal(deal_id).payload["deal"]["months_paid"] == 0


class TestFinancePaidToCompletion:
    """Interest-free $9,000 loan paid off in three $3,000 installments."""

    def test_lifecycle(self, engine, ledger):
        deal_id = engine.create_finance_deal({
            "farm_id": 1,
            "item_id": "trailer-4",
            "base_cost": 10000,
            "down_payment": 1000,
            "interest_rate": 0,
            "term_months": 3,
        }).payload["deal"]["id"]

        results = [engine.submit_payment(deal_id, 300_000) for _ in range(3)]

        assert [r.payload["payment"]["new_balance"] for r in results] == [6000.0, 3000.0, 0.0]
        assert results[-1].payload["payment"]["completed"] is True
        assert results[-1].payload["retired"] is True
        assert ledger.query_farm_balance(1) == STARTING_FUNDS - 1_000_000
        assert engine.deals_for_farm(1).payload["deals"] == []

        archived = engine.get_deal(deal_id).payload
        assert archived["archived"] is True
        assert archived["deal"]["total_interest_paid"] == 0.0


class TestEarlyPayoffPenalty:
    """A 5% prepayment penalty is charged on top of the payoff amount."""

    def test_payoff_with_penalty(self, engine, ledger):
        deal_id = engine.create_finance_deal({
            "farm_id": 1,
            "item_id": "sprayer-1",
            "base_cost": 9000,
            "interest_rate": 4,
            "term_months": 24,
            "prepayment_policy": {"type": "percent_of_balance", "rate": 0.05},
        }).payload["deal"]["id"]

        result = engine.submit_payment(deal_id, 900_000)

        calculations = result.payload["payment"]["calculations"]
        assert calculations["prepayment_penalty"]["value"] == 450.0
        assert calculations["amount_charged"]["value"] == 9450.0
        assert ledger.query_farm_balance(1) == STARTING_FUNDS - 945_000


class TestDepositRefund:
    """Scenario B: $3,000 deposit less a $500 damage penalty and one $200 missed-payment fee."""

    def test_refund_after_deductions(self):
        refund, deductions = LeaseCalculator().calculate_security_deposit_refund(
            300_000, 50_000, 1, False
        )

        assert refund == 230_000
        assert [d.reason for d in deductions] == ["damage_penalty", "missed_payments"]


class TestMidTermBuyoutQuote:
    """Scenario C: $15,000 residual less $4,000 equity after four of five payments."""

    def test_buyout_quote(self, engine):
        deal_id = engine.create_lease_deal(lease_request()).payload["deal"]["id"]
        for _ in range(4):
            engine.submit_payment(deal_id, 100_000)

        quote = engine.quote_lease(deal_id).payload["quote"]

        assert quote["lease_status"] == "active"
        assert quote["equity"]["value"] == 4000.0
        assert quote["buyout_price"]["value"] == 11000.0


class TestLeaseReturnLifecycle:
    """A damaged combine comes back after a lease with one missed payment."""

    def test_return_with_damage_and_missed_payment(self, engine, ledger):
        deal_id = engine.create_lease_deal(lease_request()).payload["deal"]["id"]
        engine.record_missed_payment(deal_id)
        for _ in range(5):
            engine.submit_payment(deal_id, 100_000)

        context = LeaseContext(condition=AssetCondition(damage=Decimal("0.20"), wear=Decimal("0.15")))
        result = engine.resolve_lease(deal_id, "return", context)

        resolution = result.payload["resolution"]
        assert resolution["lease_status"] == "returned"
        assert resolution["damage_penalty"] == 600.0
        assert resolution["deposit_refund"] == 2200.0
        # Deposit and five payments out, partial refund back
        assert ledger.query_farm_balance(1) == STARTING_FUNDS - 300_000 - 500_000 + 220_000

    def test_untracked_vehicle_waives_damage(self, engine):
        deal_id = engine.create_lease_deal(lease_request()).payload["deal"]["id"]
        for _ in range(5):
            engine.submit_payment(deal_id, 100_000)

        result = engine.resolve_lease(deal_id, "return")

        assert result.payload["resolution"]["damage_penalty"] == 0.0
        assert result.payload["resolution"]["deposit_refund"] == 3000.0


class TestLeaseBuyoutLifecycle:
    """The farm keeps the combine at term end by paying residual less equity."""

    def test_buyout(self, engine, ledger):
        deal_id = engine.create_lease_deal(lease_request()).payload["deal"]["id"]
        for _ in range(5):
            engine.submit_payment(deal_id, 100_000)

        result = engine.resolve_lease(deal_id, "buyout")

        resolution = result.payload["resolution"]
        assert resolution["lease_status"] == "bought_out"
        assert resolution["buyout_price"] == 10000.0
        assert resolution["equity_applied"] == 5000.0
        assert resolution["deposit_refund"] == 3000.0
        assert ledger.query_farm_balance(1) == STARTING_FUNDS - 300_000 - 500_000 - 1_000_000 + 300_000
        assert engine.deals_for_farm(1).payload["deals"] == []


class TestLeaseRenewalLifecycle:
    """A renewed lease starts a new cycle and can itself be returned."""

    def test_renew_then_return(self, engine):
        first_id = engine.create_lease_deal(lease_request()).payload["deal"]["id"]
        for _ in range(5):
            engine.submit_payment(first_id, 100_000)

        renewal = engine.resolve_lease(first_id, "renew", LeaseContext(new_term_months=5))
        successor = renewal.payload["successor"]

        assert successor["base_cost"] == 15000.0
        assert successor["residual_value"] == 10000.0
        assert successor["monthly_payment"] == 1000.0
        assert successor["renewal_count"] == 1
        assert successor["previous_deal_id"] == first_id

        for _ in range(5):
            engine.submit_payment(successor["id"], 100_000)
        result = engine.resolve_lease(successor["id"], "return")

        assert result.ok
        assert engine.get_deal(first_id).payload["deal"]["lease_status"] == "renewed"
        assert engine.get_deal(successor["id"]).payload["deal"]["lease_status"] == "returned"


class TestThreeStrikeDefault:
    """Three missed payments default a loan and stop further payments."""

    def test_default_after_three_misses(self, ledger):
        engine = FinanceEngine(ledger=ledger, default_policy=MissedPaymentLimit(limit=3))
        deal_id = engine.create_finance_deal({
            "farm_id": 1,
            "item_id": "harvester-3",
            "base_cost": 30000,
            "interest_rate": 5,
            "term_months": 36,
        }).payload["deal"]["id"]

        results = [engine.record_missed_payment(deal_id) for _ in range(3)]

        assert [r.payload["missed_payment"]["defaulted"] for r in results] == [False, False, True]
        assert results[-1].payload["deal"]["status"] == "defaulted"
        assert engine.submit_payment(deal_id, 100_000).status == "deal_already_resolved"

    def test_payment_resets_the_count(self, ledger):
        engine = FinanceEngine(ledger=ledger, default_policy=MissedPaymentLimit(limit=3))
        deal_id = engine.create_finance_deal({
            "farm_id": 1,
            "item_id": "harvester-3",
            "base_cost": 30000,
            "interest_rate": 0,
            "term_months": 30,
        }).payload["deal"]["id"]

        for _ in range(2):
            engine.record_missed_payment(deal_id)
            engine.submit_payment(deal_id, 100_000)
        result = engine.record_missed_payment(deal_id)

        assert result.payload["missed_payment"]["defaulted"] is False
        assert result.payload["missed_payment"]["missed_payments"] == 3
        assert result.payload["deal"]["status"] == "active"


class TestEarlyLeaseTermination:
    """A lease handed back mid-term pays half of what is left; land leases end free."""

    def test_terminate_combine_lease(self, engine, ledger):
        deal_id = engine.create_lease_deal(lease_request()).payload["deal"]["id"]
        for _ in range(2):
            engine.submit_payment(deal_id, 100_000)

        result = engine.terminate_lease(deal_id)

        termination = result.payload["termination"]
        assert termination["termination_fee"]["value"] == 9000.0
        assert termination["deposit_refund"] == 0.0
        # Deposit, two payments and the fee out; nothing comes back
        assert ledger.query_farm_balance(1) == STARTING_FUNDS - 300_000 - 200_000 - 900_000
        assert engine.deals_for_farm(1).payload["deals"] == []

    def test_terminate_land_lease(self, engine, ledger):
        deal_id = engine.create_lease_deal(lease_request(is_land_lease=True)).payload["deal"]["id"]
        engine.submit_payment(deal_id, 100_000)

        result = engine.terminate_lease(deal_id)

        assert result.payload["termination"]["total_charge"] == 0.0
        assert ledger.query_farm_balance(1) == STARTING_FUNDS - 300_000 - 100_000


class TestLeasePaidOffEarly:
    """Paying a lease balance down to zero owns the machine outright."""

    def test_payoff_owns_machine(self, engine, ledger):
        deal_id = engine.create_lease_deal(lease_request()).payload["deal"]["id"]
        engine.submit_payment(deal_id, 100_000)

        result = engine.submit_payment(deal_id, 1_900_000)

        assert result.payload["deal"]["lease_status"] == "bought_out"
        assert result.payload["deposit_refund"] == 3000.0
        assert ledger.query_farm_balance(1) == STARTING_FUNDS - 2_000_000
        assert engine.resolve_lease(deal_id, "buyout").status == "deal_already_resolved"
