"""The raffle state machine: entries, due-ness, draw requests and fulfillment."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Sequence

from ..config import RaffleConfig
from ..exceptions import (
    InsufficientStake,
    RaffleNotOpen,
    ReentrantCall,
    UnknownRequest,
    UpkeepNotNeeded,
)
from .events import DrawRequested, Entered, EventBus
from .interfaces import Clock, FundsLedger, RandomnessProvider, SystemClock
from .settlement import SettlementCoordinator, SettlementResult
from .state import Calculating, Open, Phase, RaffleBook, RaffleState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpkeepStatus:
    """Snapshot of the conditions deciding whether a draw may start."""

    is_open: bool
    time_passed: bool
    has_players: bool
    has_balance: bool
    balance: int
    pool_size: int
    state: RaffleState

    @property
    def upkeep_needed(self) -> bool:
        return self.is_open and self.time_passed and self.has_players and self.has_balance


class RaffleStateMachine:
    """A recurring single-winner raffle settled with externally sourced randomness.

    Every public operation runs under one re-entrant lock, so entries, draw
    requests and fulfillments are serialised. Calls arriving from inside the
    winner payout are rejected with :class:`~stakedraw.exceptions.ReentrantCall`
    rather than allowed to mutate a round that may still be rolled back.

    Parameters
    ----------
    config : RaffleConfig
        Fixed raffle parameters.
    provider : RandomnessProvider
        Source of random words for each draw.
    ledger : FundsLedger
        Custodian of the staked funds.
    clock : Optional[Clock], default: None
        Time source. Defaults to :class:`SystemClock`.
    events : Optional[EventBus], default: None
        Bus receiving ``Entered``, ``DrawRequested`` and ``WinnerPicked``.
    """

    def __init__(
        self,
        config: RaffleConfig,
        provider: RandomnessProvider,
        ledger: FundsLedger,
        *,
        clock: Optional[Clock] = None,
        events: Optional[EventBus] = None,
    ) -> None:
        self._config = config
        self._provider = provider
        self._ledger = ledger
        self._clock = clock or SystemClock()
        self.events = events or EventBus()
        self._lock = threading.RLock()
        self._book = RaffleBook(last_draw_at=self._clock.now())
        self._settlement = SettlementCoordinator(ledger, self._clock, self.events)

    # -------- entry points --------
    def enter(self, participant: str, stake: int) -> None:
        """Add one entry for ``participant`` paid with ``stake``.

        Raises
        ------
        InsufficientStake
            If ``stake`` is below the entrance fee.
        RaffleNotOpen
            If a draw is being calculated.
        """
        if not participant:
            raise ValueError("participant must not be empty")

        with self._lock:
            self._reject_reentry("enter")
            if stake < self._config.entrance_fee:
                raise InsufficientStake(stake, self._config.entrance_fee)
            if not isinstance(self._book.phase, Open):
                raise RaffleNotOpen(self._book.phase.state)

            self._ledger.deposit(participant, stake)
            self._book.participants.append(participant)
            logger.debug(
                f"{participant} entered with {stake} "
                f"(pool size {len(self._book.participants)})"
            )
            self.events.emit(Entered(participant=participant, stake=stake))

    def upkeep_status(self) -> UpkeepStatus:
        """Return every condition behind :meth:`is_draw_due`."""
        with self._lock:
            balance = self._ledger.balance()
            elapsed = self._clock.now() - self._book.last_draw_at
            pool_size = len(self._book.participants)
            return UpkeepStatus(
                is_open=isinstance(self._book.phase, Open),
                time_passed=elapsed >= self._config.interval,
                has_players=pool_size > 0,
                has_balance=balance > 0,
                balance=balance,
                pool_size=pool_size,
                state=self._book.phase.state,
            )

    def is_draw_due(self) -> bool:
        """Return whether :meth:`start_draw` would currently succeed."""
        return self.upkeep_status().upkeep_needed

    def start_draw(self) -> int:
        """Close the round and request randomness for it.

        Returns
        -------
        int
            Identifier of the randomness request now outstanding.

        Raises
        ------
        UpkeepNotNeeded
            If the raffle is not open, the interval has not elapsed, the pool
            is empty or no funds are held.
        RuntimeError
            If the provider returned no request id. The raffle is reopened,
            as it is for any provider failure.
        """
        with self._lock:
            self._reject_reentry("start_draw")
            status = self.upkeep_status()
            if not status.upkeep_needed:
                raise UpkeepNotNeeded(status.balance, status.pool_size, status.state)

            # Closed before the provider sees the request.
            self._book.phase = Calculating(request_id=None)
            try:
                request_id = self._provider.request_randomness(
                    key_hash=self._config.key_hash,
                    request_confirmations=self._config.request_confirmations,
                    callback_gas_limit=self._config.callback_gas_limit,
                    subscription_id=self._config.subscription_id,
                    num_words=self._config.num_words,
                )
                if request_id is None:
                    raise RuntimeError("Randomness provider returned no request id")
            except BaseException:
                self._book.phase = Open()
                logger.error("Randomness request failed; raffle reopened", exc_info=True)
                raise

            self._book.phase = Calculating(request_id=request_id)
            logger.info(
                f"Requested randomness {request_id} for a pool of {status.pool_size}"
            )
            self.events.emit(DrawRequested(request_id=request_id))
            return request_id

    def on_randomness_fulfilled(self, request_id: int, random_value: int) -> SettlementResult:
        """Settle the outstanding draw with the provider's random value.

        Raises
        ------
        UnknownRequest
            If no draw is calculating or ``request_id`` is not the outstanding
            request. Nothing is modified.
        TypeError, ValueError
            If ``random_value`` is not a non-negative integer. Checked after
            the request id, so a stale callback is always ``UnknownRequest``.
        TransferFailed
            If paying the winner failed; the raffle stays calculating.
        """
        with self._lock:
            self._reject_reentry("on_randomness_fulfilled")
            phase = self._book.phase
            expected = phase.request_id if isinstance(phase, Calculating) else None
            if expected is None or request_id != expected:
                logger.warning(
                    f"Ignoring fulfillment for request {request_id!r} "
                    f"(outstanding: {expected!r})"
                )
                raise UnknownRequest(request_id, expected)

            if isinstance(random_value, bool) or not isinstance(random_value, int):
                raise TypeError("random_value must be an integer")
            if random_value < 0:
                raise ValueError("random_value must not be negative")

            return self._settlement.settle(self._book, random_value)

    def fulfill_random_words(
        self, request_id: int, random_words: Sequence[int]
    ) -> SettlementResult:
        """Provider-shaped callback; uses the first of the requested words."""
        if len(random_words) != self._config.num_words:
            raise ValueError(
                f"Expected {self._config.num_words} random word(s), "
                f"got {len(random_words)}"
            )
        return self.on_randomness_fulfilled(request_id, random_words[0])

    # -------- read-only accessors --------
    @property
    def config(self) -> RaffleConfig:
        return self._config

    @property
    def entrance_fee(self) -> int:
        return self._config.entrance_fee

    @property
    def interval(self) -> timedelta:
        return self._config.interval

    @property
    def num_words(self) -> int:
        return self._config.num_words

    @property
    def request_confirmations(self) -> int:
        return self._config.request_confirmations

    @property
    def phase(self) -> Phase:
        with self._lock:
            return self._book.phase

    @property
    def state(self) -> RaffleState:
        return self.phase.state

    @property
    def outstanding_request_id(self) -> Optional[int]:
        phase = self.phase
        return phase.request_id if isinstance(phase, Calculating) else None

    @property
    def pool_size(self) -> int:
        with self._lock:
            return len(self._book.participants)

    @property
    def participants(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._book.participants)

    def get_participant(self, index: int) -> str:
        """Return the entry at ``index``; negative indexes are not accepted."""
        with self._lock:
            if index < 0 or index >= len(self._book.participants):
                raise IndexError(f"No participant at index {index}")
            return self._book.participants[index]

    @property
    def recent_winner(self) -> Optional[str]:
        with self._lock:
            return self._book.recent_winner

    @property
    def last_draw_at(self) -> datetime:
        with self._lock:
            return self._book.last_draw_at

    @property
    def balance(self) -> int:
        return self._ledger.balance()

    def _reject_reentry(self, operation: str) -> None:
        if self._settlement.in_payout:
            raise ReentrantCall(operation)


__all__ = ["RaffleStateMachine", "UpkeepStatus"]
