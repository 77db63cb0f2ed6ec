"""Credential pool with round-robin selection and throttle bookkeeping.

Usage example:
    from profile_lookup.domain.token_pool import TokenPool

    pool = TokenPool(("token-a", "token-b"))
    credential = pool.select_credential()
    pool.mark_throttled(credential, retry_after_seconds=60)
"""

from __future__ import annotations

import math
import threading
import time
from collections.abc import Iterable
from typing_extensions import override

from ..exceptions import (
    AllCredentialsThrottled,
    NoCredentialsConfiguredError,
    UnknownCredentialError,
)
from ..observability import get_logger, mask_credential
from ..protocols import CredentialPool
from ..types import Clock

logger = get_logger("profile_lookup.token_pool")


class TokenPool(CredentialPool):
    """Round-robin pool of interchangeable credentials.

    A credential with a throttle deadline is skipped until the clock passes that
    deadline; expired deadlines are purged lazily on each selection.
    """

    def __init__(self, credentials: Iterable[str], *, clock: Clock = time.time) -> None:
        ordered = tuple(dict.fromkeys(c for c in credentials if c))
        if not ordered:
            raise NoCredentialsConfiguredError()
        self._credentials = ordered
        self._clock = clock
        self._throttled_until: dict[str, float] = {}
        self._cursor = 0
        self._lock = threading.Lock()

    @property
    @override
    def size(self) -> int:
        return len(self._credentials)

    @property
    def credentials(self) -> tuple[str, ...]:
        return self._credentials

    @override
    def select_credential(self) -> str:
        with self._lock:
            now = self._clock()
            self._purge_expired(now)

            if len(self._throttled_until) >= len(self._credentials):
                earliest = min(self._throttled_until.values())
                wait_seconds = max(0, math.ceil(earliest - now))
                raise AllCredentialsThrottled(wait_seconds, earliest)

            for _ in range(len(self._credentials)):
                credential = self._credentials[self._cursor]
                self._cursor = (self._cursor + 1) % len(self._credentials)
                if credential not in self._throttled_until:
                    logger.info("Using token %s", mask_credential(credential))
                    return credential

        # Unreachable while the throttle map only holds pool members.
        raise AllCredentialsThrottled(0, now)

    @override
    def mark_throttled(self, credential: str, retry_after_seconds: float) -> None:
        if credential not in self._credentials:
            raise UnknownCredentialError(mask_credential(credential))
        with self._lock:
            deadline = self._clock() + retry_after_seconds
            self._throttled_until[credential] = deadline
        logger.info(
            "Token %s rate limited for %ss",
            mask_credential(credential),
            retry_after_seconds,
        )

    def throttled_until(self, credential: str) -> float | None:
        """Return the throttle deadline for a credential, if one is recorded."""
        return self._throttled_until.get(credential)

    def throttled_count(self) -> int:
        """Return how many credentials are throttled right now."""
        with self._lock:
            self._purge_expired(self._clock())
            return len(self._throttled_until)

    def _purge_expired(self, now: float) -> None:
        expired = [c for c, deadline in self._throttled_until.items() if deadline <= now]
        for credential in expired:
            logger.info("Token %s rate limit expired", mask_credential(credential))
            del self._throttled_until[credential]
