"""Notifications emitted by the raffle."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Entered:
    participant: str
    stake: int


@dataclass(frozen=True)
class DrawRequested:
    request_id: int


@dataclass(frozen=True)
class WinnerPicked:
    winner: str


RaffleEvent = Union[Entered, DrawRequested, WinnerPicked]
Listener = Callable[[RaffleEvent], None]


class EventBus:
    """Synchronous fan-out of raffle notifications to subscribed listeners.

    Inside :meth:`buffered` events are queued instead of delivered, and are
    either delivered when the block exits normally or dropped when it raises.
    A listener that raises is logged and skipped; delivery to the others
    continues and the emitting call is unaffected.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._buffer: Optional[list[RaffleEvent]] = None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: RaffleEvent) -> None:
        if self._buffer is not None:
            self._buffer.append(event)
            return
        self._deliver(event)

    @contextmanager
    def buffered(self) -> Iterator[None]:
        """Hold back events emitted in the block until it completes."""
        if self._buffer is not None:
            # Nested block: the outermost one decides.
            yield
            return

        self._buffer = []
        try:
            yield
        except BaseException:
            dropped = len(self._buffer)
            self._buffer = None
            if dropped:
                logger.debug(f"Dropped {dropped} buffered raffle event(s)")
            raise
        pending, self._buffer = self._buffer, None
        for event in pending:
            self._deliver(event)

    def _deliver(self, event: RaffleEvent) -> None:
        logger.debug(f"Emitting {event!r}")
        for listener in list(self._listeners):
            # A listener cannot undo an operation that already committed.
            try:
                listener(event)
            except Exception:
                logger.exception(f"Listener {listener!r} failed on {event!r}")


__all__ = [
    "Entered",
    "DrawRequested",
    "WinnerPicked",
    "RaffleEvent",
    "Listener",
    "EventBus",
]
