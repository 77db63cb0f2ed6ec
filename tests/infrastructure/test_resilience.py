"""Tests for retry orchestration across the token pool."""

import asyncio

import pytest

from profile_lookup.domain import TokenPool
from profile_lookup.exceptions import (
    AllCredentialsThrottled,
    RateLimitExceeded,
    TransientFailure,
    UpstreamRejected,
)
from profile_lookup.infrastructure import BackoffPolicy, RetryOrchestrator
from profile_lookup.types import FatalError, RateLimited, Success, TransientError
from tests.fakes import ScriptedExecutor
from tests.support.clock import FakeClock, RecordingSleeper

URL = "https://api.example.com/2/users/by/username/jack"
PARAMS = {"user.fields": "created_at"}
PAYLOAD: dict[str, object] = {"data": {"id": "12", "username": "jack"}}


def _orchestrator(
    pool: TokenPool,
    executor: ScriptedExecutor,
    sleeper: RecordingSleeper,
    clock: FakeClock,
    max_attempts: int | None = None,
) -> RetryOrchestrator:
    return RetryOrchestrator(
        pool=pool,
        executor=executor,
        backoff=BackoffPolicy(base_seconds=1.0, max_seconds=10.0),
        sleep=sleeper,
        clock=clock,
        max_attempts=max_attempts,
    )


class TestBackoffPolicy:
    """Tests for capped exponential backoff."""

    @pytest.mark.parametrize(
        ("attempt", "expected"),
        [(1, 2.0), (2, 4.0), (3, 8.0), (4, 10.0), (9, 10.0)],
    )
    def test_backoff_doubles_then_caps(self, attempt: int, expected: float) -> None:
        assert BackoffPolicy().compute_backoff(attempt) == expected

    def test_custom_base_and_cap(self) -> None:
        policy = BackoffPolicy(base_seconds=0.5, max_seconds=3.0)
        assert policy.compute_backoff(1) == 1.0
        assert policy.compute_backoff(3) == 3.0


class TestSuccess:
    """Successful requests terminate on the first Success outcome."""

    def test_first_attempt_success(self, clock: FakeClock, sleeper: RecordingSleeper) -> None:
        pool = TokenPool(("a", "b"), clock=clock)
        executor = ScriptedExecutor(outcomes=[Success(PAYLOAD)])

        payload = asyncio.run(_orchestrator(pool, executor, sleeper, clock).run(URL, PARAMS))

        assert payload == PAYLOAD
        assert executor.calls == [(URL, PARAMS, "a")]
        assert sleeper.delays == []

    def test_skips_throttled_credential_without_backoff(
        self, clock: FakeClock, sleeper: RecordingSleeper
    ) -> None:
        pool = TokenPool(("A", "B"), clock=clock)
        pool.mark_throttled("A", 60)
        executor = ScriptedExecutor(outcomes=[Success(PAYLOAD)])

        payload = asyncio.run(_orchestrator(pool, executor, sleeper, clock).run(URL, PARAMS))

        assert payload == PAYLOAD
        assert executor.credentials_used == ["B"]
        assert sleeper.delays == []


class TestRateLimited:
    """Rate-limited outcomes rotate to the next credential immediately."""

    def test_rotates_to_next_credential(self, clock: FakeClock, sleeper: RecordingSleeper) -> None:
        pool = TokenPool(("a", "b"), clock=clock)
        executor = ScriptedExecutor(outcomes=[RateLimited(900), Success(PAYLOAD)])

        payload = asyncio.run(_orchestrator(pool, executor, sleeper, clock).run(URL, PARAMS))

        assert payload == PAYLOAD
        assert executor.credentials_used == ["a", "b"]
        assert pool.throttled_until("a") == clock.now + 900
        assert sleeper.delays == []

    @pytest.mark.parametrize("size", [1, 2, 3, 4])
    def test_exactly_pool_size_attempts_then_rate_limit_exceeded(
        self, size: int, clock: FakeClock, sleeper: RecordingSleeper
    ) -> None:
        pool = TokenPool(tuple(f"t{i}" for i in range(size)), clock=clock)
        executor = ScriptedExecutor(outcomes=[RateLimited(30) for _ in range(size)])

        with pytest.raises(RateLimitExceeded) as exc_info:
            asyncio.run(_orchestrator(pool, executor, sleeper, clock).run(URL, PARAMS))

        assert len(executor.calls) == size
        assert exc_info.value.retry_after_seconds == 30
        assert exc_info.value.reset_timestamp == clock.now + 30
        assert pool.throttled_count() == size
        assert sleeper.delays == []

    def test_pool_exhaustion_checked_before_each_attempt(
        self, clock: FakeClock, sleeper: RecordingSleeper
    ) -> None:
        pool = TokenPool(("a", "b", "c"), clock=clock)
        pool.mark_throttled("a", 60)
        pool.mark_throttled("b", 60)
        executor = ScriptedExecutor(outcomes=[RateLimited(120)])

        with pytest.raises(AllCredentialsThrottled) as exc_info:
            asyncio.run(_orchestrator(pool, executor, sleeper, clock).run(URL, PARAMS))

        assert executor.credentials_used == ["c"]
        assert exc_info.value.retry_after_seconds == 60

    def test_throttled_single_credential_fails_fast_on_next_request(
        self, clock: FakeClock, sleeper: RecordingSleeper
    ) -> None:
        pool = TokenPool(("only",), clock=clock)
        executor = ScriptedExecutor(outcomes=[RateLimited(60)])
        orchestrator = _orchestrator(pool, executor, sleeper, clock)

        with pytest.raises(RateLimitExceeded):
            asyncio.run(orchestrator.run(URL, PARAMS))
        with pytest.raises(AllCredentialsThrottled):
            asyncio.run(orchestrator.run(URL, PARAMS))

        assert len(executor.calls) == 1


class TestFatalError:
    """Upstream rejections are terminal."""

    def test_rejection_on_first_attempt_is_not_retried(
        self, clock: FakeClock, sleeper: RecordingSleeper
    ) -> None:
        pool = TokenPool(("a", "b", "c"), clock=clock)
        executor = ScriptedExecutor(outcomes=[FatalError(404, "Not Found"), Success(PAYLOAD)])

        with pytest.raises(UpstreamRejected) as exc_info:
            asyncio.run(_orchestrator(pool, executor, sleeper, clock).run(URL, PARAMS))

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Not Found"
        assert len(executor.calls) == 1
        assert sleeper.delays == []
        assert pool.throttled_count() == 0


class TestTransientError:
    """Network failures back off before the next attempt."""

    def test_backs_off_then_succeeds(self, clock: FakeClock, sleeper: RecordingSleeper) -> None:
        pool = TokenPool(("a", "b", "c"), clock=clock)
        executor = ScriptedExecutor(
            outcomes=[TransientError(ConnectionError("reset")), Success(PAYLOAD)]
        )

        payload = asyncio.run(_orchestrator(pool, executor, sleeper, clock).run(URL, PARAMS))

        assert payload == PAYLOAD
        assert sleeper.delays == [2.0]
        assert executor.credentials_used == ["a", "b"]

    def test_backoff_schedule_until_budget_exhausted(
        self, clock: FakeClock, sleeper: RecordingSleeper
    ) -> None:
        pool = TokenPool(tuple(f"t{i}" for i in range(5)), clock=clock)
        last_cause = TimeoutError("read timed out")
        outcomes = [TransientError(ConnectionError(f"fail {i}")) for i in range(4)]
        executor = ScriptedExecutor(outcomes=[*outcomes, TransientError(last_cause)])

        with pytest.raises(TransientFailure) as exc_info:
            asyncio.run(_orchestrator(pool, executor, sleeper, clock).run(URL, PARAMS))

        assert exc_info.value.cause is last_cause
        assert len(executor.calls) == 5
        assert sleeper.delays == [2.0, 4.0, 8.0, 10.0]

    def test_single_credential_budget_is_hard_capped(
        self, clock: FakeClock, sleeper: RecordingSleeper
    ) -> None:
        pool = TokenPool(("A",), clock=clock)
        executor = ScriptedExecutor(
            outcomes=[
                TransientError(ConnectionError("1")),
                TransientError(ConnectionError("2")),
                TransientError(ConnectionError("3")),
                Success(PAYLOAD),
            ]
        )

        with pytest.raises(TransientFailure):
            asyncio.run(_orchestrator(pool, executor, sleeper, clock).run(URL, PARAMS))

        assert len(executor.calls) == 1
        assert sleeper.delays == []


class TestAttemptBudget:
    """The attempt budget never exceeds the pool size."""

    def test_max_attempts_lowers_budget(self, clock: FakeClock, sleeper: RecordingSleeper) -> None:
        pool = TokenPool(("a", "b", "c"), clock=clock)
        executor = ScriptedExecutor(outcomes=[RateLimited(10), RateLimited(10)])
        orchestrator = _orchestrator(pool, executor, sleeper, clock, max_attempts=2)

        with pytest.raises(RateLimitExceeded):
            asyncio.run(orchestrator.run(URL, PARAMS))

        assert orchestrator.attempt_budget == 2
        assert len(executor.calls) == 2

    def test_max_attempts_cannot_exceed_pool_size(
        self, clock: FakeClock, sleeper: RecordingSleeper
    ) -> None:
        pool = TokenPool(("a", "b"), clock=clock)
        orchestrator = _orchestrator(pool, ScriptedExecutor(), sleeper, clock, max_attempts=10)
        assert orchestrator.attempt_budget == 2


class TestConcurrency:
    """Concurrent logical requests share the pool without interference."""

    def test_concurrent_requests_rotate_credentials(self, clock: FakeClock) -> None:
        pool = TokenPool(("a", "b"), clock=clock)
        executor = ScriptedExecutor(outcomes=[Success(PAYLOAD), Success(PAYLOAD)])
        orchestrator = RetryOrchestrator(pool=pool, executor=executor, clock=clock)

        async def scenario() -> list[dict[str, object]]:
            return await asyncio.gather(
                orchestrator.run(URL, PARAMS), orchestrator.run(URL, PARAMS)
            )

        results = asyncio.run(scenario())

        assert results == [PAYLOAD, PAYLOAD]
        assert sorted(executor.credentials_used) == ["a", "b"]

    def test_backoff_wait_is_cancellable(self, clock: FakeClock) -> None:
        pool = TokenPool(("a", "b"), clock=clock)
        executor = ScriptedExecutor(outcomes=[TransientError(ConnectionError("reset"))])
        orchestrator = RetryOrchestrator(
            pool=pool,
            executor=executor,
            backoff=BackoffPolicy(base_seconds=60.0, max_seconds=600.0),
            clock=clock,
        )

        async def scenario() -> None:
            task = asyncio.create_task(orchestrator.run(URL, PARAMS))
            await asyncio.sleep(0)
            task.cancel()
            await task

        with pytest.raises(asyncio.CancelledError):
            asyncio.run(scenario())

        assert len(executor.calls) == 1
