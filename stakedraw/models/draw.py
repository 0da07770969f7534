"""Database models journaling raffle entries and draws."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base

DRAW_STATUSES = ("requested", "settled", "transfer_failed")


class RaffleDraw(Base):
    """One draw, from the randomness request to its settlement."""

    __tablename__ = "raffle_draws"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    """Primary key."""

    request_id: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)
    """Randomness request id, stored as text since ids may exceed 64 bits."""

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="requested")
    """``"requested"``, ``"settled"`` or ``"transfer_failed"``."""

    pool_size: Mapped[int] = mapped_column(Integer, nullable=False)
    """Number of entries in the pool when the draw was requested."""

    balance_at_request: Mapped[int] = mapped_column(BigInteger, nullable=False)
    """Funds held when the draw was requested."""

    random_value: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    """Random word delivered by the provider, once fulfilled."""

    winner: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    winner_index: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    amount_paid: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Reason of the last failed settlement attempt."""

    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    settled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    entries: Mapped[list["RaffleEntry"]] = relationship(
        back_populates="draw", order_by="RaffleEntry.id"
    )
    """Entries that took part in this draw, in pool order."""

    __table_args__ = (
        CheckConstraint(
            "status IN ('requested','settled','transfer_failed')", name="status_enum"
        ),
        Index("ix_raffle_draws_status", "status"),
    )

    def __init__(
        self,
        *,
        request_id: str,
        pool_size: int,
        balance_at_request: int,
        status: str = "requested",
        requested_at: Optional[datetime] = None,
    ) -> None:
        if status not in DRAW_STATUSES:
            raise ValueError(f"Unknown draw status '{status}'")
        self.request_id = request_id
        self.pool_size = pool_size
        self.balance_at_request = balance_at_request
        self.status = status
        if requested_at is not None:
            self.requested_at = requested_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<RaffleDraw(id={id}, request_id={rid}, status={status}, winner={winner})>".format(
            id=self.id,
            rid=self.request_id,
            status=self.status,
            winner=self.winner,
        )

    @classmethod
    def get_by_request_id(cls, session: Session, request_id: int) -> Optional["RaffleDraw"]:
        """Return the draw journaled for ``request_id`` if any."""

        return session.scalar(select(cls).where(cls.request_id == str(request_id)))


class RaffleEntry(Base):
    """A single paid entry into the raffle."""

    __tablename__ = "raffle_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    participant: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    stake: Mapped[int] = mapped_column(BigInteger, nullable=False)
    entered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    draw_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("raffle_draws.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    """Draw the entry was closed into; ``None`` while the round is open."""

    draw: Mapped[Optional["RaffleDraw"]] = relationship(back_populates="entries")

    def __init__(
        self,
        *,
        participant: str,
        stake: int,
        entered_at: Optional[datetime] = None,
    ) -> None:
        self.participant = participant
        self.stake = stake
        if entered_at is not None:
            self.entered_at = entered_at

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return f"<RaffleEntry(id={self.id}, participant={self.participant}, draw_id={self.draw_id})>"

    @classmethod
    def open_entries(cls, session: Session) -> list["RaffleEntry"]:
        """Return entries not yet assigned to a draw, oldest first."""

        stmt = select(cls).where(cls.draw_id.is_(None)).order_by(cls.id.asc())
        return list(session.scalars(stmt).all())


__all__ = ["RaffleDraw", "RaffleEntry", "DRAW_STATUSES"]
