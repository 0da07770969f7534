"""External trigger that starts draws once they are due."""

from __future__ import annotations

import logging
from typing import Optional

from .exceptions import UpkeepNotNeeded
from .raffle.machine import RaffleStateMachine

logger = logging.getLogger(__name__)


def perform_upkeep(raffle: RaffleStateMachine) -> Optional[int]:
    """Start a draw on ``raffle`` if one is due.

    Intended to be called periodically by a scheduler outside the raffle.
    Another trigger winning the race between the check and the request is
    not treated as an error.

    Returns
    -------
    Optional[int]
        The new request id, or ``None`` when no draw was started.
    """
    if not raffle.is_draw_due():
        return None
    try:
        return raffle.start_draw()
    except UpkeepNotNeeded as exc:
        logger.debug(f"Draw no longer due: {exc}")
        return None


__all__ = ["perform_upkeep"]
