from __future__ import annotations

import unittest

from fakes import make_raffle
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from stakedraw.exceptions import InsufficientStake, TransferFailed, UnknownRequest, UpkeepNotNeeded
from stakedraw.models import Base, RaffleDraw, RaffleEntry
from stakedraw.raffle import RaffleState
from stakedraw.workflows import (
    enter_raffle,
    fulfill_draw,
    list_draws,
    request_draw,
    retry_failed_settlement,
)


class RaffleWorkflowTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )
        (
            self.raffle,
            self.provider,
            self.ledger,
            self.recipient,
            self.clock,
        ) = make_raffle()

    def tearDown(self) -> None:
        self.engine.dispose()

    def _open_round(self, session, *participants: str) -> RaffleDraw:
        for participant in participants:
            enter_raffle(session, self.raffle, participant, 10)
        self.clock.advance(seconds=31)
        return request_draw(session, self.raffle)

    def test_full_cycle_is_journaled(self) -> None:
        with self.Session.begin() as session:
            draw = self._open_round(session, "A", "B", "C")

            self.assertEqual(draw.request_id, "1")
            self.assertEqual(draw.status, "requested")
            self.assertEqual(draw.pool_size, 3)
            self.assertEqual(draw.balance_at_request, 30)
            self.assertEqual([e.participant for e in draw.entries], ["A", "B", "C"])

            settled = fulfill_draw(session, self.raffle, 1, 7)
            self.assertIs(settled, draw)
            self.assertEqual(settled.status, "settled")
            self.assertEqual(settled.winner, "B")
            self.assertEqual(settled.winner_index, 1)
            self.assertEqual(settled.amount_paid, 30)
            self.assertEqual(settled.random_value, "7")
            self.assertIsNotNone(settled.settled_at)

        with self.Session() as session:
            stored = RaffleDraw.get_by_request_id(session, 1)
            self.assertIsNotNone(stored)
            self.assertEqual(stored.winner, "B")
            self.assertEqual(RaffleEntry.open_entries(session), [])

    def test_entries_after_settlement_belong_to_the_next_round(self) -> None:
        with self.Session.begin() as session:
            first = self._open_round(session, "A")
            fulfill_draw(session, self.raffle, 1, 0)
            enter_raffle(session, self.raffle, "B", 10)

            open_entries = RaffleEntry.open_entries(session)
            self.assertEqual([e.participant for e in open_entries], ["B"])
            self.assertEqual(len(first.entries), 1)

    def test_rejected_entry_is_not_journaled(self) -> None:
        with self.Session.begin() as session:
            with self.assertRaises(InsufficientStake):
                enter_raffle(session, self.raffle, "A", 1)
            self.assertEqual(session.scalars(select(RaffleEntry)).all(), [])

    def test_request_when_not_due_writes_nothing(self) -> None:
        with self.Session.begin() as session:
            enter_raffle(session, self.raffle, "A", 10)
            with self.assertRaises(UpkeepNotNeeded):
                request_draw(session, self.raffle)
            self.assertEqual(list_draws(session), [])

    def test_unjournaled_request_is_rejected(self) -> None:
        with self.Session.begin() as session:
            self._open_round(session, "A")
            with self.assertRaises(LookupError):
                fulfill_draw(session, self.raffle, 99, 0)
            draw = RaffleDraw.get_by_request_id(session, 1)
            self.assertEqual(draw.status, "requested")
            self.assertIsNone(draw.random_value)

    def test_settled_request_is_not_outstanding(self) -> None:
        with self.Session.begin() as session:
            self._open_round(session, "A")
            fulfill_draw(session, self.raffle, 1, 0)
            with self.assertRaises(UnknownRequest):
                fulfill_draw(session, self.raffle, 1, 0)
            self.assertEqual(self.ledger.payouts, [("A", 10)])

    def test_raising_listener_does_not_break_the_journal(self) -> None:
        def broken(event) -> None:
            raise RuntimeError("listener broke")

        self.raffle.events.subscribe(broken)
        with self.Session.begin() as session:
            with self.assertLogs("stakedraw.raffle.events", level="ERROR"):
                draw = self._open_round(session, "A", "B")
                settled = fulfill_draw(session, self.raffle, 1, 1)

            self.assertIs(settled, draw)
            self.assertEqual(settled.status, "settled")
            self.assertEqual(settled.winner, "B")
            self.assertEqual(settled.amount_paid, 20)
            self.assertEqual(self.raffle.state, RaffleState.OPEN)

    def test_failed_transfer_is_journaled_and_retried(self) -> None:
        self.recipient.accept = False
        with self.Session.begin() as session:
            draw = self._open_round(session, "A", "B")
            with self.assertRaises(TransferFailed):
                fulfill_draw(session, self.raffle, 1, 3)

            self.assertEqual(draw.status, "transfer_failed")
            self.assertEqual(draw.random_value, "3")
            self.assertIn("failed", draw.error_message)
            self.assertIsNone(draw.winner)
            self.assertEqual(self.raffle.state, RaffleState.CALCULATING)
            self.assertEqual(list_draws(session, status="transfer_failed"), [draw])

            self.recipient.accept = True
            retried = retry_failed_settlement(session, self.raffle, draw)
            self.assertEqual(retried.status, "settled")
            self.assertEqual(retried.winner, "B")
            self.assertIsNone(retried.error_message)
            self.assertEqual(self.raffle.state, RaffleState.OPEN)
            self.assertEqual(self.ledger.payouts, [("B", 20)])

    def test_retry_requires_failed_transfer(self) -> None:
        with self.Session.begin() as session:
            draw = self._open_round(session, "A")
            with self.assertRaises(ValueError):
                retry_failed_settlement(session, self.raffle, draw)

    def test_list_draws_orders_and_limits(self) -> None:
        with self.Session.begin() as session:
            self._open_round(session, "A")
            fulfill_draw(session, self.raffle, 1, 0)
            self._open_round(session, "B")

            draws = list_draws(session)
            self.assertEqual([d.request_id for d in draws], ["2", "1"])
            self.assertEqual([d.request_id for d in list_draws(session, limit=1)], ["2"])
            self.assertEqual(
                [d.request_id for d in list_draws(session, status="settled")], ["1"]
            )
            with self.assertRaises(ValueError):
                list_draws(session, limit=0)


if __name__ == "__main__":
    unittest.main()
