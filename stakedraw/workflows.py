from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .exceptions import TransferFailed
from .models import RaffleDraw, RaffleEntry
from .raffle.machine import RaffleStateMachine


def enter_raffle(
    session: Session,
    raffle: RaffleStateMachine,
    participant: str,
    stake: int,
) -> RaffleEntry:
    """Enter ``participant`` into ``raffle`` and journal the entry.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    raffle : RaffleStateMachine
        Raffle receiving the entry.
    participant : str
        Identifier of the entrant, typically a wallet address.
    stake : int
        Amount paid with the entry, in the smallest currency unit.

    Returns
    -------
    RaffleEntry
        The persisted entry, not yet assigned to a draw.

    Raises
    ------
    InsufficientStake, RaffleNotOpen
        Propagated from :meth:`RaffleStateMachine.enter`; nothing is written.
    """
    raffle.enter(participant, stake)

    entry = RaffleEntry(participant=participant, stake=stake)
    session.add(entry)
    session.flush()
    return entry


def request_draw(session: Session, raffle: RaffleStateMachine) -> RaffleDraw:
    """Start a draw on ``raffle`` and journal the outstanding request.

    Every open entry is assigned to the new draw. The pool size and balance
    are read after the state flip, when entries are already rejected.

    Returns
    -------
    RaffleDraw
        The persisted draw in ``"requested"`` status.

    Raises
    ------
    UpkeepNotNeeded
        Propagated from :meth:`RaffleStateMachine.start_draw`.
    """
    request_id = raffle.start_draw()

    draw = RaffleDraw(
        request_id=str(request_id),
        pool_size=raffle.pool_size,
        balance_at_request=raffle.balance,
    )
    session.add(draw)
    session.flush()

    for entry in RaffleEntry.open_entries(session):
        entry.draw_id = draw.id

    session.flush()
    return draw


def fulfill_draw(
    session: Session,
    raffle: RaffleStateMachine,
    request_id: int,
    random_value: int,
) -> RaffleDraw:
    """Deliver a fulfillment to ``raffle`` and journal the settlement outcome.

    The workflow performs the following steps:

    1. Resolve the journaled draw for ``request_id``.
    2. Hand the random value to :meth:`RaffleStateMachine.on_randomness_fulfilled`.
    3. Record the winner and payout on success, or mark the draw
       ``"transfer_failed"`` (keeping the random value for a later retry)
       and re-raise.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    raffle : RaffleStateMachine
        Raffle with the outstanding request.
    request_id : int
        Request id the provider answered.
    random_value : int
        Random word delivered by the provider.

    Returns
    -------
    RaffleDraw
        The draw in ``"settled"`` status.

    Raises
    ------
    LookupError
        If no draw was journaled for ``request_id``.
    UnknownRequest
        If the request id is not outstanding.
    TransferFailed
        If the payout failed. The journal row is flushed before re-raising,
        so the caller must commit it outside any rolled-back transaction.
    """
    draw = RaffleDraw.get_by_request_id(session, request_id)
    if draw is None:
        raise LookupError(f"No journaled draw for request {request_id!r}")

    try:
        result = raffle.on_randomness_fulfilled(request_id, random_value)
    except TransferFailed as exc:
        draw.random_value = str(random_value)
        draw.status = "transfer_failed"
        draw.error_message = str(exc)
        session.flush()
        raise

    draw.random_value = str(random_value)
    draw.status = "settled"
    draw.winner = result.winner
    draw.winner_index = result.winner_index
    draw.amount_paid = result.amount
    draw.settled_at = result.settled_at
    draw.error_message = None
    session.flush()
    return draw


def retry_failed_settlement(
    session: Session,
    raffle: RaffleStateMachine,
    draw: RaffleDraw,
) -> RaffleDraw:
    """Re-deliver the stored random value of a draw whose payout failed.

    This is the operator's path out of a raffle stuck in ``CALCULATING`` after
    :class:`~stakedraw.exceptions.TransferFailed`. The same word is reused, so
    the same winner is selected again.

    Raises
    ------
    ValueError
        If ``draw`` is not in ``"transfer_failed"`` status.
    TransferFailed
        If the payout fails again.
    """
    if draw.status != "transfer_failed" or draw.random_value is None:
        raise ValueError("Only draws with a failed transfer can be retried")

    return fulfill_draw(session, raffle, int(draw.request_id), int(draw.random_value))


def list_draws(
    session: Session,
    *,
    status: Optional[str] = None,
    limit: Optional[int] = None,
) -> list[RaffleDraw]:
    """Return journaled draws, most recent first.

    Parameters
    ----------
    status : Optional[str], default: None
        Restrict to draws in this status.
    limit : Optional[int], default: None
        Maximum number of draws to return. Must be positive when given.
    """
    if limit is not None and limit <= 0:
        raise ValueError("limit must be a positive integer")

    stmt = select(RaffleDraw)
    if status is not None:
        stmt = stmt.where(RaffleDraw.status == status)
    stmt = stmt.order_by(RaffleDraw.requested_at.desc(), RaffleDraw.id.desc())
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(session.scalars(stmt).all())
