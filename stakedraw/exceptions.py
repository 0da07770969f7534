"""Exceptions raised by the raffle state machine and its settlement."""

from __future__ import annotations

from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .raffle.state import RaffleState


class RaffleError(Exception):
    """Base class for every rejection raised by the raffle."""


class InsufficientStake(RaffleError):
    """The stake sent with an entry is below the entrance fee."""

    def __init__(self, stake: int, entrance_fee: int) -> None:
        self.stake = stake
        self.entrance_fee = entrance_fee
        super().__init__(
            f"Stake {stake} is below the entrance fee of {entrance_fee}"
        )


class RaffleNotOpen(RaffleError):
    """An entry was attempted while a draw is being calculated."""

    def __init__(self, state: "RaffleState") -> None:
        self.state = state
        super().__init__(f"Raffle is not open (state={state.name})")


class UpkeepNotNeeded(RaffleError):
    """A draw was requested while the due conditions were not met."""

    def __init__(self, balance: int, pool_size: int, state: "RaffleState") -> None:
        self.balance = balance
        self.pool_size = pool_size
        self.state = state
        super().__init__(
            f"Upkeep not needed (balance={balance}, pool_size={pool_size}, "
            f"state={state.name})"
        )


class UnknownRequest(RaffleError):
    """A fulfillment does not match the outstanding randomness request."""

    def __init__(self, request_id: Any, expected: Optional[Any] = None) -> None:
        self.request_id = request_id
        self.expected = expected
        super().__init__(
            f"Fulfillment for request {request_id!r} does not match the "
            f"outstanding request {expected!r}"
        )


class TransferFailed(RaffleError):
    """The payout to the winner failed and the settlement was rolled back.

    The raffle stays in ``CALCULATING`` with the same outstanding request and
    needs an operator to act on it.
    """

    def __init__(self, winner: str, amount: int) -> None:
        self.winner = winner
        self.amount = amount
        super().__init__(f"Transfer of {amount} to {winner} failed")


class ReentrantCall(RaffleError):
    """A mutating call arrived while a payout was still in flight."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"{operation} cannot be called while a payout is in progress")


__all__ = [
    "RaffleError",
    "InsufficientStake",
    "RaffleNotOpen",
    "UpkeepNotNeeded",
    "UnknownRequest",
    "TransferFailed",
    "ReentrantCall",
]
