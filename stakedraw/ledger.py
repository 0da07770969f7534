"""In-process funds ledger."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class InMemoryFundsLedger:
    """Holds staked funds in memory and records completed payouts.

    Parameters
    ----------
    accepts : Optional[Callable[[str, int], bool]], default: None
        Predicate deciding whether a recipient accepts a transfer. When it
        returns ``False`` (or raises) the payout fails and no funds move.
        Every recipient accepts when omitted.
    """

    def __init__(self, accepts: Optional[Callable[[str, int], bool]] = None) -> None:
        self._accepts = accepts
        self._balance = 0
        self._lock = threading.Lock()
        self.deposits: list[tuple[str, int]] = []
        self.payouts: list[tuple[str, int]] = []

    def deposit(self, participant: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("amount must not be negative")
        with self._lock:
            self._balance += amount
            self.deposits.append((participant, amount))

    def balance(self) -> int:
        with self._lock:
            return self._balance

    def payout(self, recipient: str, amount: int) -> bool:
        if amount < 0:
            raise ValueError("amount must not be negative")
        if self._accepts is not None and not self._accepts(recipient, amount):
            logger.warning(f"Recipient {recipient} refused a transfer of {amount}")
            return False
        with self._lock:
            if amount > self._balance:
                logger.warning(
                    f"Cannot pay {amount} to {recipient}: only {self._balance} held"
                )
                return False
            self._balance -= amount
            self.payouts.append((recipient, amount))
        return True


__all__ = ["InMemoryFundsLedger"]
