"""Retry orchestration across a pool of credentials.

Usage example:
    from profile_lookup.domain.token_pool import TokenPool
    from profile_lookup.infrastructure.resilience import BackoffPolicy, RetryOrchestrator

    orchestrator = RetryOrchestrator(
        pool=TokenPool(("token-a", "token-b")),
        executor=executor,
        backoff=BackoffPolicy(base_seconds=1.0, max_seconds=10.0),
    )
    payload = await orchestrator.run(url, {"user.fields": "created_at"})
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Literal

from ..exceptions import (
    AllCredentialsThrottled,
    RateLimitExceeded,
    TransientFailure,
    UpstreamRejected,
)
from ..observability import get_logger, mask_credential
from ..protocols import CredentialPool, RequestExecutor
from ..types import Clock, FatalError, RateLimited, Sleeper, Success, TransientError

logger = get_logger("profile_lookup.infrastructure.resilience")

AttemptState = Literal["attempting", "backoff", "succeeded", "failed"]


@dataclass
class BackoffPolicy:
    """Capped exponential backoff for transient failures."""

    base_seconds: float = 1.0
    max_seconds: float = 10.0

    def compute_backoff(self, attempt: int) -> float:
        """Return the delay after the 1-based `attempt` failed."""
        return float(min(self.base_seconds * (2**attempt), self.max_seconds))


class RetryOrchestrator:
    """Drive one logical request across credentials until a terminal outcome.

    The attempt budget is the pool size (optionally lowered by `max_attempts`):
    - rate-limited credentials are throttled and the next one is tried at once
    - transient failures back off before the next attempt
    - upstream rejections end the request immediately
    - pool exhaustion is checked before every attempt
    """

    def __init__(
        self,
        *,
        pool: CredentialPool,
        executor: RequestExecutor,
        backoff: BackoffPolicy | None = None,
        sleep: Sleeper = asyncio.sleep,
        clock: Clock = time.time,
        max_attempts: int | None = None,
    ) -> None:
        self.pool = pool
        self.executor = executor
        self.backoff = backoff or BackoffPolicy()
        self.sleep = sleep
        self.clock = clock
        self.max_attempts = max_attempts

    @property
    def attempt_budget(self) -> int:
        if self.max_attempts is None:
            return self.pool.size
        return max(1, min(self.max_attempts, self.pool.size))

    async def run(self, url: str, params: Mapping[str, str]) -> dict[str, object]:
        """Return the upstream payload or raise the terminal typed error.

        Raises:
            AllCredentialsThrottled: If the pool cannot supply a credential.
            RateLimitExceeded: If the final attempt was rate limited.
            UpstreamRejected: If upstream returned a non-retryable error.
            TransientFailure: If the final attempt failed at the network level.
        """
        budget = self.attempt_budget
        state: AttemptState = "attempting"
        attempt = 0

        while True:
            if state == "backoff":
                delay = self.backoff.compute_backoff(attempt)
                logger.info("Retrying in %.1fs...", delay)
                await self.sleep(delay)
                state = "attempting"

            attempt += 1
            try:
                credential = self.pool.select_credential()
            except AllCredentialsThrottled as exc:
                self._log_failed(url, attempt, budget, exc)
                raise

            logger.info(
                "Attempt %s/%s with token %s", attempt, budget, mask_credential(credential)
            )
            outcome = await self.executor.execute(url, params, credential)

            if isinstance(outcome, Success):
                state = "succeeded"
                return outcome.payload

            if isinstance(outcome, RateLimited):
                self.pool.mark_throttled(credential, outcome.retry_after_seconds)
                if attempt < budget:
                    continue
                error: Exception = RateLimitExceeded(
                    outcome.retry_after_seconds,
                    self.clock() + outcome.retry_after_seconds,
                )
            elif isinstance(outcome, FatalError):
                error = UpstreamRejected(outcome.status_code, outcome.message)
            elif isinstance(outcome, TransientError):
                if attempt < budget:
                    state = "backoff"
                    continue
                error = TransientFailure(outcome.cause)
            else:
                raise TypeError(f"Unexpected request outcome: {outcome!r}")

            state = "failed"
            self._log_failed(url, attempt, budget, error)
            raise error

    def _log_failed(self, url: str, attempt: int, budget: int, error: Exception) -> None:
        logger.error("Request to %s failed on attempt %s/%s: %s", url, attempt, budget, error)
