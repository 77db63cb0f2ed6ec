"""Protocol definitions for dependency injection.

These protocols define the abstract interfaces that lookup components depend on,
enabling isolated unit testing with in-memory implementations.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Protocol, runtime_checkable

from .types import CacheEntry, FetchResult, RequestOutcome


@runtime_checkable
class CredentialPool(Protocol):
    """Bookkeeping over which credentials are currently usable."""

    @property
    def size(self) -> int:
        """Number of distinct credentials in the pool."""
        ...

    def select_credential(self) -> str:
        """Return the next usable credential.

        Raises:
            AllCredentialsThrottled: If every credential is throttled.
        """
        ...

    def mark_throttled(self, credential: str, retry_after_seconds: float) -> None:
        """Bar a credential from selection for `retry_after_seconds`."""
        ...


@runtime_checkable
class RequestExecutor(Protocol):
    """Single-shot upstream call with outcome classification."""

    async def execute(
        self, url: str, params: Mapping[str, str], credential: str
    ) -> RequestOutcome:
        """Perform exactly one upstream request using `credential`."""
        ...


@runtime_checkable
class ResponseCache(Protocol):
    """Abstract time-bounded cache for JSON payloads."""

    def get(self, key: str) -> dict[str, object] | None:
        """Retrieve a non-expired value by key, or None."""
        ...

    def get_entry(self, key: str) -> CacheEntry | None:
        """Retrieve a non-expired entry (value and insertion time), or None."""
        ...

    def set(self, key: str, value: dict[str, object]) -> None:
        """Store value under key, restarting its time-to-live."""
        ...

    def has(self, key: str) -> bool:
        """Check if a non-expired entry exists."""
        ...


@runtime_checkable
class ResourceFetcher(Protocol):
    """Cache-fronted upstream fetch by resource key."""

    async def fetch_resource(self, key: str) -> FetchResult:
        """Fetch the raw upstream payload for `key`.

        Raises:
            RateLimitExceeded: If the attempt budget ended on a 429.
            UpstreamRejected: If upstream returned a non-retryable error.
            AllCredentialsThrottled: If no credential is usable.
            TransientFailure: If network failures outlasted the attempt budget.
        """
        ...


@runtime_checkable
class FlagStore(Protocol):
    """Durable boolean flag per key."""

    def is_flagged(self, key: str) -> bool:
        """Return whether `key` is flagged."""
        ...

    def set_flag(self, key: str, flagged: bool) -> None:
        """Flag or unflag `key`."""
        ...


@runtime_checkable
class FileSystem(Protocol):
    """Abstract filesystem for reading/writing small state files."""

    def read_text(self, path: Path) -> str:
        """Read text file."""
        ...

    def write_text(self, content: str, path: Path) -> None:
        """Write text file."""
        ...

    def exists(self, path: Path) -> bool:
        """Check if path exists."""
        ...

    def rename(self, src: Path, dest: Path) -> None:
        """Rename a file, replacing `dest` if present."""
        ...

    def mkdir(self, path: Path, parents: bool = True) -> None:
        """Create directory."""
        ...
