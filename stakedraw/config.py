"""Construction-time parameters of a raffle."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from dotenv import load_dotenv

DEFAULT_REQUEST_CONFIRMATIONS = 3
DEFAULT_CALLBACK_GAS_LIMIT = 500_000
NUM_WORDS = 1


@dataclass(frozen=True)
class RaffleConfig:
    """Immutable raffle parameters.

    Attributes
    ----------
    entrance_fee : int
        Minimum stake, in the smallest currency unit, for one entry.
    interval : timedelta
        Minimum time between two settled draws.
    key_hash : str
        Provider-specific key selecting the randomness lane.
    subscription_id : int
        Account identifier billed for randomness requests.
    request_confirmations : int, default: 3
        Confirmations the provider waits for before answering.
    callback_gas_limit : int, default: 500000
        Resource limit granted to the fulfillment callback.
    num_words : int, default: 1
        Random words requested per draw. Only ``1`` is supported.
    """

    entrance_fee: int
    interval: timedelta
    key_hash: str
    subscription_id: int
    request_confirmations: int = DEFAULT_REQUEST_CONFIRMATIONS
    callback_gas_limit: int = DEFAULT_CALLBACK_GAS_LIMIT
    num_words: int = NUM_WORDS

    def __post_init__(self) -> None:
        if isinstance(self.entrance_fee, bool) or not isinstance(self.entrance_fee, int):
            raise TypeError("entrance_fee must be an integer")
        if self.entrance_fee < 0:
            raise ValueError("entrance_fee must not be negative")
        if not isinstance(self.interval, timedelta):
            raise TypeError("interval must be a timedelta")
        if self.interval < timedelta(0):
            raise ValueError("interval must not be negative")
        if not self.key_hash:
            raise ValueError("key_hash must not be empty")
        if self.request_confirmations < 0:
            raise ValueError("request_confirmations must not be negative")
        if self.callback_gas_limit <= 0:
            raise ValueError("callback_gas_limit must be positive")
        if self.num_words != NUM_WORDS:
            raise ValueError(f"num_words is fixed at {NUM_WORDS}")

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "RaffleConfig":
        """Build a config from ``RAFFLE_*`` and ``VRF_*`` environment variables.

        Values from a ``.env`` file are loaded first without overriding the
        process environment.

        Raises
        ------
        ValueError
            If a required variable is missing or not an integer.
        """
        load_dotenv(env_file)
        return cls(
            entrance_fee=_require_int("RAFFLE_ENTRANCE_FEE"),
            interval=timedelta(seconds=_require_int("RAFFLE_INTERVAL_SECONDS")),
            key_hash=_require("VRF_KEY_HASH"),
            subscription_id=_require_int("VRF_SUBSCRIPTION_ID"),
            request_confirmations=_optional_int(
                "VRF_REQUEST_CONFIRMATIONS", DEFAULT_REQUEST_CONFIRMATIONS
            ),
            callback_gas_limit=_optional_int(
                "VRF_CALLBACK_GAS_LIMIT", DEFAULT_CALLBACK_GAS_LIMIT
            ),
        )


def _require(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ValueError(f"Environment variable '{name}' is not set")
    return value


def _to_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable '{name}' must be an integer") from exc


def _require_int(name: str) -> int:
    return _to_int(name, _require(name))


def _optional_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    return _to_int(name, raw)


__all__ = ["RaffleConfig", "NUM_WORDS"]
