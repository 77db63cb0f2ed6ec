"""Typed data contracts shared across the lookup core."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class Success:
    """Upstream call returned a 2xx JSON object."""

    payload: dict[str, object]


@dataclass(frozen=True)
class RateLimited:
    """Upstream call was throttled (429) for the credential used."""

    retry_after_seconds: int


@dataclass(frozen=True)
class TransientError:
    """No response was received (timeout, DNS, connection reset)."""

    cause: Exception


@dataclass(frozen=True)
class FatalError:
    """Upstream returned a non-retryable error status."""

    status_code: int
    message: str


RequestOutcome = Success | RateLimited | TransientError | FatalError


@dataclass(frozen=True)
class CacheEntry:
    """Cached value with its insertion time (epoch seconds)."""

    value: dict[str, object]
    stored_at: float


@dataclass(frozen=True)
class FetchResult:
    """Raw upstream payload plus cache metadata."""

    key: str
    payload: dict[str, object]
    cached: bool
    fetched_at: float


@dataclass(frozen=True)
class ProfileLookup:
    """Profile payload enriched with flag-store data."""

    username: str
    payload: dict[str, object]
    verified: bool
    cached: bool
    fetched_at: float
