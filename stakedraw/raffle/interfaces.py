"""Collaborators the raffle depends on but does not own."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current, non-decreasing time."""
        ...


class RandomnessProvider(Protocol):
    def request_randomness(
        self,
        key_hash: str,
        request_confirmations: int,
        callback_gas_limit: int,
        subscription_id: int,
        num_words: int = 1,
    ) -> int:
        """Submit a randomness request and return its identifier.

        The provider later calls back exactly once per accepted request.
        """
        ...


class FundsLedger(Protocol):
    def deposit(self, participant: str, amount: int) -> None:
        """Credit ``amount`` received from ``participant`` to the pool."""
        ...

    def balance(self) -> int:
        """Return the amount currently held for the pool."""
        ...

    def payout(self, recipient: str, amount: int) -> bool:
        """Transfer ``amount`` to ``recipient``; return ``False`` on failure."""
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


__all__ = ["Clock", "RandomnessProvider", "FundsLedger", "SystemClock"]
