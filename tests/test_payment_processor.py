"""
Unit Tests for Payment Processor

Covers payment validation, the principal/interest split, completion
transitions and missed-payment default policies.
"""

from decimal import Decimal

import pytest

from finance_engine.exceptions import DealAlreadyResolved, InvalidPaymentAmount
from finance_engine.models import (
    DealStatus,
    FinanceDeal,
    LeaseDeal,
    LeaseStatus,
    PercentOfBalancePenalty,
)
from finance_engine.payments import MissedPaymentLimit, NeverDefault, PaymentProcessor


def _make_finance_deal(**overrides) -> FinanceDeal:
    fields = dict(
        id="finance_1_000001",
        farm_id=1,
        item_id="tractor-7",
        item_name="Used Tractor",
        base_cost=2_000_000,
        down_payment=200_000,
        amount_financed=1_800_000,
        interest_rate=Decimal("6"),
        term_months=60,
        start_date=0,
        monthly_payment=34_800,
        current_balance=1_800_000,
    )
    fields.update(overrides)
    return FinanceDeal(**fields)


def _make_lease_deal(**overrides) -> LeaseDeal:
    fields = dict(
        id="lease_1_000002",
        farm_id=1,
        item_id="harvester-3",
        item_name="Used Harvester",
        base_cost=2_000_000,
        down_payment=0,
        amount_financed=2_000_000,
        interest_rate=Decimal("0"),
        term_months=5,
        start_date=0,
        monthly_payment=100_000,
        current_balance=2_000_000,
        residual_value=1_500_000,
        security_deposit=300_000,
    )
    fields.update(overrides)
    return LeaseDeal(**fields)


class TestApplyPayment:
    """Test applying payments to finance deals."""

    @pytest.fixture
    def processor(self):
        return PaymentProcessor()

    def test_first_scheduled_payment(self, processor):
        """$348 on $18,000 at 6% -> $258 principal, $90 interest, $17,742 left"""
        deal = _make_finance_deal()
        outcome = processor.apply_payment(deal, 34_800)

        assert outcome.to_interest == 9_000
        assert outcome.to_principal == 25_800
        assert outcome.new_balance == 1_774_200
        assert deal.current_balance == 1_774_200
        assert deal.total_interest_paid == 9_000
        assert deal.months_paid == 1
        assert not outcome.completed

    def test_interest_only_payment_accepted(self, processor):
        """Paying exactly the accrued interest leaves the balance unchanged."""
        deal = _make_finance_deal(current_balance=1_000_000)
        outcome = processor.apply_payment(deal, 5_000)

        assert outcome.to_principal == 0
        assert outcome.to_interest == 5_000
        assert deal.current_balance == 1_000_000

    def test_payment_below_interest_rejected(self, processor):
        deal = _make_finance_deal(current_balance=1_000_000)

        with pytest.raises(InvalidPaymentAmount):
            processor.apply_payment(deal, 4_900)

        assert deal.current_balance == 1_000_000
        assert deal.months_paid == 0

    @pytest.mark.parametrize("amount", [0, -100])
    def test_non_positive_payment_rejected(self, processor, amount):
        with pytest.raises(InvalidPaymentAmount):
            processor.apply_payment(_make_finance_deal(), amount)

    def test_small_final_payment_below_interest_is_payoff(self, processor):
        """A payment covering the whole balance is accepted even if below interest."""
        deal = _make_finance_deal(current_balance=50, interest_rate=Decimal("120"))
        outcome = processor.apply_payment(deal, 50)

        assert outcome.completed
        assert deal.status == DealStatus.COMPLETED

    def test_full_payoff_completes_deal(self, processor):
        deal = _make_finance_deal(current_balance=400_000, months_paid=50)
        outcome = processor.apply_payment(deal, 500_000)

        assert outcome.to_principal == 400_000
        assert outcome.to_interest == 0
        assert outcome.new_balance == 0
        assert outcome.amount_due == 400_000
        assert outcome.completed
        assert deal.status == DealStatus.COMPLETED

    def test_months_paid_capped_at_term(self, processor):
        deal = _make_finance_deal(months_paid=60, current_balance=1_000_000)
        processor.apply_payment(deal, 34_800)
        assert deal.months_paid == 60

    def test_interest_paid_only_increases(self, processor):
        deal = _make_finance_deal()
        seen = []
        for _ in range(5):
            processor.apply_payment(deal, 34_800)
            seen.append(deal.total_interest_paid)
        assert seen == sorted(seen)
        assert seen[0] > 0

    def test_completed_deal_rejects_payment(self, processor):
        deal = _make_finance_deal(status=DealStatus.COMPLETED, current_balance=0)
        with pytest.raises(DealAlreadyResolved):
            processor.apply_payment(deal, 10_000)

    def test_defaulted_deal_rejects_payment(self, processor):
        deal = _make_finance_deal(status=DealStatus.DEFAULTED)
        with pytest.raises(DealAlreadyResolved):
            processor.apply_payment(deal, 34_800)


class TestPrepaymentOnPayoff:
    """Test penalties charged when a finance deal is paid off early."""

    @pytest.fixture
    def processor(self):
        return PaymentProcessor()

    def test_penalty_charged_on_payoff(self, processor):
        deal = _make_finance_deal(
            current_balance=900_000,
            prepayment_policy=PercentOfBalancePenalty(rate=Decimal("0.05")),
        )
        outcome = processor.apply_payment(deal, 900_000)

        assert outcome.prepayment_penalty == 45_000
        assert outcome.amount_due == 945_000
        assert outcome.to_principal == 900_000

    def test_no_penalty_on_regular_payment(self, processor):
        deal = _make_finance_deal(prepayment_policy=PercentOfBalancePenalty(rate=Decimal("0.05")))
        outcome = processor.apply_payment(deal, 34_800)
        assert outcome.prepayment_penalty == 0


class TestLeasePayments:
    """Test lease payments and the TermComplete transition."""

    @pytest.fixture
    def processor(self):
        return PaymentProcessor()

    def test_lease_reaches_term_complete_with_balance(self, processor):
        deal = _make_lease_deal()
        for _ in range(5):
            outcome = processor.apply_payment(deal, 100_000)

        assert outcome.term_complete
        assert deal.lease_status == LeaseStatus.TERM_COMPLETE
        assert deal.current_balance == 1_500_000
        assert deal.status == DealStatus.ACTIVE
        assert not outcome.completed

    def test_lease_not_complete_mid_term(self, processor):
        deal = _make_lease_deal()
        outcome = processor.apply_payment(deal, 100_000)

        assert not outcome.term_complete
        assert deal.lease_status == LeaseStatus.ACTIVE

    def test_term_complete_lease_rejects_payment(self, processor):
        deal = _make_lease_deal(lease_status=LeaseStatus.TERM_COMPLETE, months_paid=5)
        with pytest.raises(DealAlreadyResolved):
            processor.apply_payment(deal, 100_000)

    def test_lease_has_no_prepayment_penalty(self, processor):
        deal = _make_lease_deal(current_balance=100_000, months_paid=4)
        outcome = processor.apply_payment(deal, 100_000)

        assert outcome.prepayment_penalty == 0
        assert outcome.completed

    def test_lease_paid_to_zero_is_bought_out(self, processor):
        """Paying off the residual early leaves nothing to resolve at term end."""
        deal = _make_lease_deal(months_paid=2, current_balance=1_800_000)
        outcome = processor.apply_payment(deal, 1_800_000)

        assert outcome.completed
        assert not outcome.term_complete
        assert deal.current_balance == 0
        assert deal.status == DealStatus.COMPLETED
        assert deal.lease_status == LeaseStatus.BOUGHT_OUT


class TestMissedPayments:
    """Test missed payment recording and default policies."""

    def test_never_default_counts_only(self):
        processor = PaymentProcessor(NeverDefault())
        deal = _make_finance_deal()

        for _ in range(5):
            outcome = processor.record_missed_payment(deal)

        assert outcome.missed_payments == 5
        assert not outcome.defaulted
        assert deal.status == DealStatus.ACTIVE

    def test_default_is_never_default(self):
        assert isinstance(PaymentProcessor().default_policy, NeverDefault)

    def test_three_strikes_defaults(self):
        processor = PaymentProcessor(MissedPaymentLimit(limit=3))
        deal = _make_finance_deal()

        assert not processor.record_missed_payment(deal).defaulted
        assert not processor.record_missed_payment(deal).defaulted
        outcome = processor.record_missed_payment(deal)

        assert outcome.defaulted
        assert deal.status == DealStatus.DEFAULTED

    def test_payment_between_misses_resets_streak(self):
        processor = PaymentProcessor(MissedPaymentLimit(limit=3))
        deal = _make_finance_deal()

        processor.record_missed_payment(deal)
        processor.apply_payment(deal, 34_800)
        processor.record_missed_payment(deal)
        processor.apply_payment(deal, 34_800)
        outcome = processor.record_missed_payment(deal)

        assert not outcome.defaulted
        assert outcome.missed_payments == 3
        assert outcome.consecutive_missed_payments == 1
        assert deal.status == DealStatus.ACTIVE

    def test_streak_after_payment_still_defaults(self):
        processor = PaymentProcessor(MissedPaymentLimit(limit=3))
        deal = _make_finance_deal()

        processor.record_missed_payment(deal)
        processor.apply_payment(deal, 34_800)
        for _ in range(3):
            outcome = processor.record_missed_payment(deal)

        assert outcome.defaulted
        assert outcome.missed_payments == 4
        assert outcome.consecutive_missed_payments == 3

    def test_missed_count_survives_payment(self):
        processor = PaymentProcessor()
        deal = _make_finance_deal()

        processor.record_missed_payment(deal)
        processor.apply_payment(deal, 34_800)

        assert deal.missed_payments == 1
        assert deal.consecutive_missed_payments == 0

    def test_defaulted_deal_rejects_missed_payment(self):
        processor = PaymentProcessor()
        deal = _make_finance_deal(status=DealStatus.DEFAULTED)
        with pytest.raises(DealAlreadyResolved):
            processor.record_missed_payment(deal)
