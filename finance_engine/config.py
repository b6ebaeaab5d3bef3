"""Configuration for the Finance & Lease Engine."""

import os
from dataclasses import dataclass
from decimal import Decimal


@dataclass
class EngineConfig:
    """Tunable constants for lease resolution and payment policies.

    Money values are whole currency units; the engine converts them to cents.
    """

    # Lease return condition allowances (fractions of full damage/wear)
    allowed_damage: Decimal = Decimal("0.10")
    allowed_wear: Decimal = Decimal("0.15")
    damage_penalty_rate: Decimal = Decimal("0.30")

    # Security deposit deduction per missed payment
    missed_payment_fee: Decimal = Decimal("200")

    # Early termination fee as a share of the remaining lease obligation
    termination_fee_rate: Decimal = Decimal("0.50")

    # Prepayment penalty applied to new finance deals (0 = none)
    prepayment_penalty_rate: Decimal = Decimal("0")
    prepayment_penalty_window_months: int | None = None

    # Missed payments before a deal defaults (None = never)
    missed_payment_limit: int | None = None

    environment: str = "dev"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Create config from FINANCE_* environment variables."""
        window = os.environ.get("FINANCE_PREPAYMENT_WINDOW_MONTHS")
        limit = os.environ.get("FINANCE_MISSED_PAYMENT_LIMIT")

        return cls(
            allowed_damage=Decimal(os.environ.get("FINANCE_ALLOWED_DAMAGE", "0.10")),
            allowed_wear=Decimal(os.environ.get("FINANCE_ALLOWED_WEAR", "0.15")),
            damage_penalty_rate=Decimal(os.environ.get("FINANCE_DAMAGE_PENALTY_RATE", "0.30")),
            missed_payment_fee=Decimal(os.environ.get("FINANCE_MISSED_PAYMENT_FEE", "200")),
            termination_fee_rate=Decimal(os.environ.get("FINANCE_TERMINATION_FEE_RATE", "0.50")),
            prepayment_penalty_rate=Decimal(os.environ.get("FINANCE_PREPAYMENT_PENALTY_RATE", "0")),
            prepayment_penalty_window_months=int(window) if window else None,
            missed_payment_limit=int(limit) if limit else None,
            environment=os.environ.get("ENVIRONMENT", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
        )
