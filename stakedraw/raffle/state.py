"""State carried by a raffle between operations."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Union


class RaffleState(enum.IntEnum):
    """Externally visible raffle state."""

    OPEN = 0
    CALCULATING = 1


@dataclass(frozen=True)
class Open:
    """Accepting entries and eligible to start a draw."""

    @property
    def state(self) -> RaffleState:
        return RaffleState.OPEN


@dataclass(frozen=True)
class Calculating:
    """A randomness request is outstanding.

    ``request_id`` is ``None`` only for the instant between flipping the state
    and the provider returning an id. No fulfillment can match it then.
    """

    request_id: Optional[int]

    @property
    def state(self) -> RaffleState:
        return RaffleState.CALCULATING


Phase = Union[Open, Calculating]


@dataclass
class RaffleBook:
    """Mutable raffle state owned by a single :class:`RaffleStateMachine`."""

    last_draw_at: datetime
    phase: Phase = field(default_factory=Open)
    participants: list[str] = field(default_factory=list)
    recent_winner: Optional[str] = None

    def snapshot(self) -> "RaffleBook":
        """Return an independent copy suitable for :meth:`restore`."""
        return RaffleBook(
            last_draw_at=self.last_draw_at,
            phase=self.phase,
            participants=list(self.participants),
            recent_winner=self.recent_winner,
        )

    def restore(self, snapshot: "RaffleBook") -> None:
        """Overwrite every field with the values held by ``snapshot``."""
        self.last_draw_at = snapshot.last_draw_at
        self.phase = snapshot.phase
        self.participants = list(snapshot.participants)
        self.recent_winner = snapshot.recent_winner


__all__ = ["RaffleState", "Open", "Calculating", "Phase", "RaffleBook"]
