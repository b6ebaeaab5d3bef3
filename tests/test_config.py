"""Tests for environment-driven engine configuration."""

from decimal import Decimal

from finance_engine.config import EngineConfig


class TestEngineConfig:

    def test_defaults(self):
        config = EngineConfig()

        assert config.allowed_damage == Decimal("0.10")
        assert config.allowed_wear == Decimal("0.15")
        assert config.damage_penalty_rate == Decimal("0.30")
        assert config.missed_payment_fee == Decimal("200")
        assert config.termination_fee_rate == Decimal("0.50")
        assert config.prepayment_penalty_rate == Decimal("0")
        assert config.missed_payment_limit is None

    def test_from_env_defaults(self, monkeypatch):
        for name in (
            "FINANCE_ALLOWED_DAMAGE",
            "FINANCE_MISSED_PAYMENT_FEE",
            "FINANCE_MISSED_PAYMENT_LIMIT",
            "FINANCE_PREPAYMENT_WINDOW_MONTHS",
            "ENVIRONMENT",
        ):
            monkeypatch.delenv(name, raising=False)

        config = EngineConfig.from_env()

        assert config.allowed_damage == Decimal("0.10")
        assert config.missed_payment_limit is None
        assert config.prepayment_penalty_window_months is None
        assert config.environment == "dev"

    def test_from_env_overrides(self, monkeypatch):
        monkeypatch.setenv("FINANCE_MISSED_PAYMENT_FEE", "250")
        monkeypatch.setenv("FINANCE_MISSED_PAYMENT_LIMIT", "3")
        monkeypatch.setenv("FINANCE_PREPAYMENT_PENALTY_RATE", "0.05")
        monkeypatch.setenv("FINANCE_PREPAYMENT_WINDOW_MONTHS", "12")
        monkeypatch.setenv("ENVIRONMENT", "prod")

        config = EngineConfig.from_env()

        assert config.missed_payment_fee == Decimal("250")
        assert config.missed_payment_limit == 3
        assert config.prepayment_penalty_rate == Decimal("0.05")
        assert config.prepayment_penalty_window_months == 12
        assert config.environment == "prod"
