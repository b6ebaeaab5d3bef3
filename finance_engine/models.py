"""
Domain Models for the Finance & Lease Engine

These dataclasses provide type-safe representations of deals and the outcomes
of operations on them. Stored monetary values are integer cents; rates are
Decimal annual percentages.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, ClassVar

CENT = Decimal("0.01")


def to_cents(value) -> int:
    """Convert a currency amount (e.g. 348.5 or "348.50") to integer cents."""
    amount = Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
    return int(amount * 100)


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a currency Decimal with 2 places."""
    return (Decimal(cents) / 100).quantize(CENT)


# =============================================================================
# ENUMS
# =============================================================================


class DealType(str, Enum):
    FINANCE = "finance"
    LEASE = "lease"


class DealStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    DEFAULTED = "defaulted"


class LeaseStatus(str, Enum):
    ACTIVE = "active"
    TERM_COMPLETE = "term_complete"
    RETURNED = "returned"
    BOUGHT_OUT = "bought_out"
    RENEWED = "renewed"
    TERMINATED = "terminated"


class LeaseAction(str, Enum):
    RETURN = "return"
    BUYOUT = "buyout"
    RENEW = "renew"


# =============================================================================
# PREPAYMENT POLICIES (capability marker carried by finance deals)
# =============================================================================


@dataclass(frozen=True)
class NoPrepaymentPenalty:
    """Explicit zero-penalty policy."""

    kind: ClassVar[str] = "none"

    def penalty_for(self, balance: int, months_paid: int) -> int:
        return 0

    def to_dict(self) -> dict:
        return {"type": self.kind}


@dataclass(frozen=True)
class PercentOfBalancePenalty:
    """Charge a share of the remaining balance on early payoff.

    If ``window_months`` is set, the penalty only applies while fewer than that
    many payments have been made.
    """

    rate: Decimal
    window_months: int | None = None

    kind: ClassVar[str] = "percent_of_balance"

    def penalty_for(self, balance: int, months_paid: int) -> int:
        if self.window_months is not None and months_paid >= self.window_months:
            return 0
        penalty = (Decimal(balance) * self.rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return int(penalty)

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "rate": str(self.rate),
            "window_months": self.window_months,
        }


PrepaymentPolicy = NoPrepaymentPenalty | PercentOfBalancePenalty


def prepayment_policy_from_dict(data: dict | None) -> PrepaymentPolicy | None:
    if not data:
        return None
    kind = data.get("type")
    if kind == NoPrepaymentPenalty.kind:
        return NoPrepaymentPenalty()
    if kind == PercentOfBalancePenalty.kind:
        return PercentOfBalancePenalty(
            rate=Decimal(str(data["rate"])),
            window_months=data.get("window_months"),
        )
    raise ValueError(f"Unknown prepayment policy type: {kind}")


# =============================================================================
# DEAL RECORDS
# =============================================================================


@dataclass
class DealRecord:
    """Fields shared by every deal variant."""

    id: str
    farm_id: int
    item_id: str
    item_name: str
    base_cost: int
    down_payment: int
    amount_financed: int
    interest_rate: Decimal  # Annual percent, e.g. Decimal("6.0")
    term_months: int
    start_date: int  # Simulation day
    monthly_payment: int
    current_balance: int
    months_paid: int = 0
    total_interest_paid: int = 0
    missed_payments: int = 0  # Lifetime count, drives deposit deductions
    consecutive_missed_payments: int = 0  # Reset by every applied payment
    status: DealStatus = DealStatus.ACTIVE

    deal_type: ClassVar[DealType]

    @property
    def remaining_months(self) -> int:
        return max(0, self.term_months - self.months_paid)

    @property
    def progress(self) -> Decimal:
        """Term progress as a percentage in [0, 100]."""
        if self.term_months <= 0:
            return Decimal("0")
        pct = Decimal(self.months_paid) / Decimal(self.term_months) * 100
        return min(Decimal("100"), max(Decimal("0"), pct)).quantize(CENT, rounding=ROUND_HALF_UP)

    @property
    def is_active(self) -> bool:
        return self.status == DealStatus.ACTIVE

    def _common_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "deal_type": self.deal_type.value,
            "farm_id": self.farm_id,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "base_cost": self.base_cost,
            "down_payment": self.down_payment,
            "amount_financed": self.amount_financed,
            "interest_rate": str(self.interest_rate),
            "term_months": self.term_months,
            "start_date": self.start_date,
            "monthly_payment": self.monthly_payment,
            "current_balance": self.current_balance,
            "months_paid": self.months_paid,
            "total_interest_paid": self.total_interest_paid,
            "missed_payments": self.missed_payments,
            "consecutive_missed_payments": self.consecutive_missed_payments,
            "status": self.status.value,
        }

    @staticmethod
    def _common_kwargs(data: dict) -> dict[str, Any]:
        return {
            "id": data["id"],
            "farm_id": int(data["farm_id"]),
            "item_id": str(data["item_id"]),
            "item_name": data["item_name"],
            "base_cost": int(data["base_cost"]),
            "down_payment": int(data["down_payment"]),
            "amount_financed": int(data["amount_financed"]),
            "interest_rate": Decimal(str(data["interest_rate"])),
            "term_months": int(data["term_months"]),
            "start_date": int(data.get("start_date", 0)),
            "monthly_payment": int(data["monthly_payment"]),
            "current_balance": int(data["current_balance"]),
            "months_paid": int(data.get("months_paid", 0)),
            "total_interest_paid": int(data.get("total_interest_paid", 0)),
            "missed_payments": int(data.get("missed_payments", 0)),
            "consecutive_missed_payments": int(data.get("consecutive_missed_payments", 0)),
            "status": DealStatus(data.get("status", DealStatus.ACTIVE.value)),
        }


@dataclass
class FinanceDeal(DealRecord):
    """A financed purchase amortized to a zero balance."""

    item_type: str = "vehicle"  # vehicle, equipment or land
    prepayment_policy: PrepaymentPolicy | None = None

    deal_type: ClassVar[DealType] = DealType.FINANCE

    def to_dict(self) -> dict[str, Any]:
        result = self._common_dict()
        result["item_type"] = self.item_type
        result["prepayment_policy"] = self.prepayment_policy.to_dict() if self.prepayment_policy else None
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "FinanceDeal":
        return cls(
            **cls._common_kwargs(data),
            item_type=data.get("item_type", "vehicle"),
            prepayment_policy=prepayment_policy_from_dict(data.get("prepayment_policy")),
        )


@dataclass
class LeaseDeal(DealRecord):
    """A term-bound lease that amortizes toward a residual (balloon) value."""

    residual_value: int = 0
    security_deposit: int = 0
    start_damage: Decimal = Decimal("0")
    start_wear: Decimal = Decimal("0")
    lease_status: LeaseStatus = LeaseStatus.ACTIVE
    is_land_lease: bool = False
    renewal_count: int = 0
    total_equity_rolled_over: int = 0
    previous_deal_id: str | None = None

    deal_type: ClassVar[DealType] = DealType.LEASE

    @property
    def depreciation(self) -> int:
        """Value decline assumed over the term (base cost minus residual)."""
        return max(0, self.base_cost - self.residual_value)

    def to_dict(self) -> dict[str, Any]:
        result = self._common_dict()
        result.update({
            "residual_value": self.residual_value,
            "security_deposit": self.security_deposit,
            "start_damage": str(self.start_damage),
            "start_wear": str(self.start_wear),
            "lease_status": self.lease_status.value,
            "is_land_lease": self.is_land_lease,
            "renewal_count": self.renewal_count,
            "total_equity_rolled_over": self.total_equity_rolled_over,
            "previous_deal_id": self.previous_deal_id,
        })
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "LeaseDeal":
        return cls(
            **cls._common_kwargs(data),
            residual_value=int(data.get("residual_value", 0)),
            security_deposit=int(data.get("security_deposit", 0)),
            start_damage=Decimal(str(data.get("start_damage", "0"))),
            start_wear=Decimal(str(data.get("start_wear", "0"))),
            lease_status=LeaseStatus(data.get("lease_status", LeaseStatus.ACTIVE.value)),
            is_land_lease=data.get("is_land_lease", False),
            renewal_count=int(data.get("renewal_count", 0)),
            total_equity_rolled_over=int(data.get("total_equity_rolled_over", 0)),
            previous_deal_id=data.get("previous_deal_id"),
        )


Deal = FinanceDeal | LeaseDeal


def deal_from_dict(data: dict) -> Deal:
    """Rebuild a stored deal from its ``to_dict()`` form."""
    deal_type = DealType(data["deal_type"])
    if deal_type == DealType.FINANCE:
        return FinanceDeal.from_dict(data)
    return LeaseDeal.from_dict(data)


# =============================================================================
# ORIGINATION INPUT MODELS (currency units in, cents stored)
# =============================================================================


@dataclass
class FinanceTerms:
    """Terms agreed by the purchase flow when financing an item."""

    farm_id: int
    item_id: str
    item_name: str
    base_cost: int
    down_payment: int
    interest_rate: Decimal
    term_months: int
    start_date: int = 0
    item_type: str = "vehicle"
    prepayment_policy: PrepaymentPolicy | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "FinanceTerms":
        return cls(
            farm_id=int(data["farm_id"]),
            item_id=str(data["item_id"]),
            item_name=data.get("item_name", str(data["item_id"])),
            base_cost=to_cents(data["base_cost"]),
            down_payment=to_cents(data.get("down_payment", 0)),
            interest_rate=Decimal(str(data["interest_rate"])),
            term_months=int(data["term_months"]),
            start_date=int(data.get("start_date", 0)),
            item_type=data.get("item_type", "vehicle"),
            prepayment_policy=prepayment_policy_from_dict(data.get("prepayment_policy")),
        )


@dataclass
class LeaseTerms:
    """Terms agreed by the purchase flow when leasing a vehicle or land."""

    farm_id: int
    item_id: str
    item_name: str
    base_cost: int
    down_payment: int
    interest_rate: Decimal
    term_months: int
    residual_value: int
    security_deposit: int = 0
    start_date: int = 0
    start_damage: Decimal = Decimal("0")
    start_wear: Decimal = Decimal("0")
    is_land_lease: bool = False
    # Set only when a renewal rolls an expired lease into a new cycle
    renewal_count: int = 0
    total_equity_rolled_over: int = 0
    previous_deal_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "LeaseTerms":
        return cls(
            farm_id=int(data["farm_id"]),
            item_id=str(data["item_id"]),
            item_name=data.get("item_name", str(data["item_id"])),
            base_cost=to_cents(data["base_cost"]),
            down_payment=to_cents(data.get("down_payment", 0)),
            interest_rate=Decimal(str(data["interest_rate"])),
            term_months=int(data["term_months"]),
            residual_value=to_cents(data.get("residual_value", 0)),
            security_deposit=to_cents(data.get("security_deposit", 0)),
            start_date=int(data.get("start_date", 0)),
            start_damage=Decimal(str(data.get("start_damage", 0))),
            start_wear=Decimal(str(data.get("start_wear", 0))),
            is_land_lease=data.get("is_land_lease", False),
        )


# =============================================================================
# OUTPUT / RESULT MODELS
# =============================================================================


@dataclass
class AmortizationRow:
    """One period of an amortization schedule."""

    period: int
    payment: int
    to_principal: int
    to_interest: int
    balance: int


@dataclass
class PaymentOutcome:
    """Result of applying one payment to a deal."""

    deal_id: str
    payment_amount: int
    to_principal: int
    to_interest: int
    new_balance: int
    prepayment_penalty: int = 0
    months_paid: int = 0
    completed: bool = False
    term_complete: bool = False

    @property
    def amount_due(self) -> int:
        """What the payer is charged: the split plus any penalty, never the overpayment."""
        return self.to_principal + self.to_interest + self.prepayment_penalty


@dataclass
class MissedPaymentOutcome:
    """Result of recording a missed payment."""

    deal_id: str
    missed_payments: int
    consecutive_missed_payments: int = 0
    defaulted: bool = False


@dataclass
class DepositDeduction:
    """One line of the security deposit deduction breakdown."""

    reason: str
    amount: int


@dataclass
class AssetCondition:
    """Damage and wear readings of a leased vehicle, each in [0, 1]."""

    damage: Decimal
    wear: Decimal


@dataclass
class LeaseContext:
    """Caller-supplied facts needed to resolve a lease term.

    ``condition`` is None when the leased vehicle cannot be located.
    """

    condition: AssetCondition | None = None
    new_term_months: int | None = None
    start_date: int | None = None


@dataclass
class LeaseQuote:
    """Amounts a lessee faces at the end of a lease term."""

    depreciation: int = 0
    equity: int = 0
    damage_penalty: int = 0
    deposit_refund: int = 0
    deductions: list[DepositDeduction] = field(default_factory=list)
    buyout_price: int = 0


@dataclass
class LeaseResolution:
    """Result of resolving a TermComplete lease."""

    deal_id: str
    action: LeaseAction
    lease_status: LeaseStatus
    deposit_refund: int = 0
    damage_penalty: int = 0
    deductions: list[DepositDeduction] = field(default_factory=list)
    buyout_price: int = 0
    equity_applied: int = 0
    renewal_terms: LeaseTerms | None = None
    successor_id: str | None = None


@dataclass
class LeaseTermination:
    """Result of ending an Active lease before its term runs out.

    The security deposit is forfeited; land leases are released without charge.
    """

    deal_id: str
    damage_penalty: int = 0
    termination_fee: int = 0
    is_land_lease: bool = False

    @property
    def total_charge(self) -> int:
        return self.damage_penalty + self.termination_fee


@dataclass
class EngineResult:
    """Explicit success/failure value returned across the engine boundary."""

    ok: bool
    status: str
    payload: dict = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict:
        result = {"status": self.status, **self.payload}
        if self.error is not None:
            result["error"] = self.error
        return result
