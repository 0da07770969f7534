"""Raffle state machine and its settlement protocol."""

from .events import DrawRequested, Entered, EventBus, WinnerPicked
from .interfaces import Clock, FundsLedger, RandomnessProvider, SystemClock
from .machine import RaffleStateMachine, UpkeepStatus
from .settlement import SettlementCoordinator, SettlementResult, select_winner_index
from .state import Calculating, Open, RaffleState

__all__ = [
    "Calculating",
    "Clock",
    "DrawRequested",
    "Entered",
    "EventBus",
    "FundsLedger",
    "Open",
    "RaffleState",
    "RaffleStateMachine",
    "RandomnessProvider",
    "SettlementCoordinator",
    "SettlementResult",
    "SystemClock",
    "UpkeepStatus",
    "WinnerPicked",
    "select_winner_index",
]
