"""In-memory farm funds ledger used as the funds authority for a session."""

import logging
import threading
from dataclasses import dataclass

from .exceptions import InsufficientFunds, InvalidPaymentAmount
from .models import from_cents

logger = logging.getLogger(__name__)


@dataclass
class LedgerEntry:
    """One funds movement. Positive amounts are credits."""

    farm_id: int
    amount: int
    reason: str
    balance_after: int


class FarmLedger:
    """Tracks farm money in integer cents."""

    def __init__(self, balances: dict[int, int] | None = None):
        self._balances: dict[int, int] = dict(balances or {})
        self._entries: list[LedgerEntry] = []
        self._lock = threading.Lock()

    def query_farm_balance(self, farm_id: int) -> int:
        return self._balances.get(farm_id, 0)

    def can_afford(self, farm_id: int, amount: int) -> bool:
        return self.query_farm_balance(farm_id) >= amount

    def ensure_funds(self, farm_id: int, amount: int) -> None:
        """Raise InsufficientFunds unless the farm holds at least ``amount``."""
        balance = self.query_farm_balance(farm_id)
        if balance < amount:
            raise InsufficientFunds(
                f"Farm {farm_id} has {from_cents(balance)}, needs {from_cents(amount)}"
            )

    def debit(self, farm_id: int, amount: int, reason: str = "") -> int:
        """Withdraw ``amount`` cents. Returns the new balance."""
        if amount < 0:
            raise InvalidPaymentAmount(f"debit amount cannot be negative, got: {from_cents(amount)}")
        with self._lock:
            self.ensure_funds(farm_id, amount)
            return self._post(farm_id, -amount, reason)

    def credit(self, farm_id: int, amount: int, reason: str = "") -> int:
        """Deposit ``amount`` cents. Returns the new balance."""
        if amount < 0:
            raise InvalidPaymentAmount(f"credit amount cannot be negative, got: {from_cents(amount)}")
        with self._lock:
            return self._post(farm_id, amount, reason)

    def history(self, farm_id: int) -> list[LedgerEntry]:
        return [entry for entry in self._entries if entry.farm_id == farm_id]

    def _post(self, farm_id: int, amount: int, reason: str) -> int:
        balance = self._balances.get(farm_id, 0) + amount
        self._balances[farm_id] = balance
        self._entries.append(LedgerEntry(farm_id=farm_id, amount=amount, reason=reason, balance_after=balance))
        logger.debug(f"Farm {farm_id} {reason or 'adjustment'}: {from_cents(amount)} -> {from_cents(balance)}")
        return balance
