from .base import Base

# import models so create_all can discover mappers
from .draw import RaffleDraw, RaffleEntry  # noqa: F401

__all__ = [
    "Base",
    "RaffleDraw",
    "RaffleEntry",
]
