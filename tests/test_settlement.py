from __future__ import annotations

import unittest
from datetime import timedelta

from fakes import START, FakeClock, SwitchableRecipient

from stakedraw.exceptions import TransferFailed
from stakedraw.ledger import InMemoryFundsLedger
from stakedraw.raffle import (
    Calculating,
    EventBus,
    Open,
    SettlementCoordinator,
    WinnerPicked,
    select_winner_index,
)
from stakedraw.raffle.state import RaffleBook


class SelectWinnerIndexTests(unittest.TestCase):
    def test_plain_modulo(self) -> None:
        self.assertEqual(select_winner_index(7, 3), 1)
        self.assertEqual(select_winner_index(0, 5), 0)
        self.assertEqual(select_winner_index(9, 1), 0)
        self.assertEqual(select_winner_index(2 ** 256 - 2, 10), 4)

    def test_rejects_empty_pool_and_negative_values(self) -> None:
        with self.assertRaises(ValueError):
            select_winner_index(3, 0)
        with self.assertRaises(ValueError):
            select_winner_index(-1, 3)


class SettlementCoordinatorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.recipient = SwitchableRecipient()
        self.ledger = InMemoryFundsLedger(accepts=self.recipient)
        self.events = EventBus()
        self.delivered: list = []
        self.events.subscribe(self.delivered.append)
        self.coordinator = SettlementCoordinator(self.ledger, self.clock, self.events)

        for participant in ("A", "B", "C", "B"):
            self.ledger.deposit(participant, 5)
        self.book = RaffleBook(
            last_draw_at=START,
            phase=Calculating(request_id=42),
            participants=["A", "B", "C", "B"],
            recent_winner="Z",
        )
        self.clock.advance(hours=1)

    def test_commit_applies_every_effect(self) -> None:
        result = self.coordinator.settle(self.book, 13)

        self.assertEqual(result.winner_index, 1)
        self.assertEqual(result.winner, "B")
        self.assertEqual(result.amount, 20)
        self.assertEqual(result.random_value, 13)
        self.assertEqual(result.settled_at, START + timedelta(hours=1))
        self.assertEqual(
            self.book,
            RaffleBook(
                last_draw_at=START + timedelta(hours=1),
                phase=Open(),
                participants=[],
                recent_winner="B",
            ),
        )
        self.assertEqual(self.delivered, [WinnerPicked(winner="B")])
        self.assertFalse(self.coordinator.in_payout)

    def test_failed_payout_restores_the_book(self) -> None:
        before = self.book.snapshot()
        self.recipient.accept = False

        with self.assertRaises(TransferFailed):
            self.coordinator.settle(self.book, 13)

        self.assertEqual(self.book, before)
        self.assertEqual(self.delivered, [])
        self.assertEqual(self.ledger.balance(), 20)
        self.assertFalse(self.coordinator.in_payout)

    def test_in_payout_is_only_set_during_the_transfer(self) -> None:
        flags = []
        self.recipient.during_payout = lambda *_: flags.append(self.coordinator.in_payout)
        self.coordinator.settle(self.book, 0)
        self.assertEqual(flags, [True])
        self.assertFalse(self.coordinator.in_payout)

    def test_snapshot_is_independent(self) -> None:
        snapshot = self.book.snapshot()
        self.book.participants.append("D")
        self.assertEqual(snapshot.participants, ["A", "B", "C", "B"])


if __name__ == "__main__":
    unittest.main()
