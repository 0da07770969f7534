"""Atomic settlement of a fulfilled draw."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from ..exceptions import TransferFailed
from .events import EventBus, WinnerPicked
from .interfaces import Clock, FundsLedger
from .state import Open, RaffleBook

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementResult:
    """Outcome of a committed settlement.

    Attributes
    ----------
    winner : str
        Participant that received the pool.
    winner_index : int
        Position of ``winner`` in the pool at the time the draw started.
    amount : int
        Amount paid out, i.e. the whole balance held before settlement.
    random_value : int
        Random word the winner was derived from.
    settled_at : datetime
        Clock reading stored as the new ``last_draw_at``.
    """

    winner: str
    winner_index: int
    amount: int
    random_value: int
    settled_at: datetime


def select_winner_index(random_value: int, pool_size: int) -> int:
    """Map a random word onto a pool position with ``random_value % pool_size``.

    The plain modulo is kept on purpose so that the result for a given word
    is reproducible by anyone auditing a draw.
    """
    if pool_size <= 0:
        raise ValueError("pool_size must be positive")
    if random_value < 0:
        raise ValueError("random_value must not be negative")
    return random_value % pool_size


class SettlementCoordinator:
    """Picks the winner, resets the round and pays out as a single unit.

    All internal effects are committed before the payout is attempted. If the
    payout fails, every effect is reverted from a snapshot taken up front and
    :class:`~stakedraw.exceptions.TransferFailed` is raised.
    """

    def __init__(self, ledger: FundsLedger, clock: Clock, events: EventBus) -> None:
        self._ledger = ledger
        self._clock = clock
        self._events = events
        self._in_payout = False

    @property
    def in_payout(self) -> bool:
        """``True`` while the ledger payout call is executing."""
        return self._in_payout

    def settle(self, book: RaffleBook, random_value: int) -> SettlementResult:
        """Settle the draw held in ``book`` using ``random_value``.

        Parameters
        ----------
        book : RaffleBook
            Raffle state; must be calculating with a non-empty pool.
        random_value : int
            Random word delivered by the provider.

        Returns
        -------
        SettlementResult
            Details of the committed settlement.

        Raises
        ------
        TransferFailed
            If the ledger refuses or errors on the payout. ``book`` is then
            identical to what it was before the call.
        """
        winner_index = select_winner_index(random_value, len(book.participants))
        winner = book.participants[winner_index]
        amount = self._ledger.balance()
        snapshot = book.snapshot()

        with self._events.buffered():
            try:
                book.recent_winner = winner
                book.participants = []
                book.phase = Open()
                book.last_draw_at = self._clock.now()
                self._events.emit(WinnerPicked(winner=winner))
                self._pay(winner, amount)
            except BaseException:
                book.restore(snapshot)
                raise

        logger.info(f"Paid {amount} to winner {winner} (index {winner_index})")
        return SettlementResult(
            winner=winner,
            winner_index=winner_index,
            amount=amount,
            random_value=random_value,
            settled_at=book.last_draw_at,
        )

    def _pay(self, winner: str, amount: int) -> None:
        self._in_payout = True
        try:
            succeeded = self._ledger.payout(winner, amount)
        except Exception as exc:
            logger.critical(f"Payout of {amount} to {winner} raised: {exc}")
            raise TransferFailed(winner, amount) from exc
        finally:
            self._in_payout = False

        if not succeeded:
            logger.critical(f"Payout of {amount} to {winner} was refused")
            raise TransferFailed(winner, amount)


__all__ = ["SettlementCoordinator", "SettlementResult", "select_winner_index"]
