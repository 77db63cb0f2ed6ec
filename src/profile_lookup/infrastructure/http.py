"""Single-shot upstream request execution.

Usage example:
    import httpx

    from profile_lookup.infrastructure.http import TokenRequestExecutor

    async with httpx.AsyncClient() as client:
        executor = TokenRequestExecutor(client=client)
        outcome = await executor.execute(
            "https://api.twitter.com/2/users/by/username/jack",
            {"user.fields": "created_at"},
            "token-a",
        )
"""

from __future__ import annotations

import math
import time
from collections.abc import Mapping
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing_extensions import override

import httpx

from ..observability import get_logger, mask_credential
from ..protocols import RequestExecutor
from ..types import Clock, FatalError, RateLimited, RequestOutcome, Success, TransientError

logger = get_logger("profile_lookup.infrastructure.http")

DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_RATE_LIMIT_FALLBACK_SECONDS = 60
DEFAULT_USER_AGENT = "ProfileLookup/1.0"

# Reset header values at or above this are Unix timestamps, below it are durations.
_EPOCH_THRESHOLD = 1_000_000_000


def parse_retry_after(headers: Mapping[str, str] | None) -> int | None:
    """Parse Retry-After header into seconds, if available."""
    if not headers:
        return None
    value = headers.get("Retry-After")
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        dt = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    delta = (dt - datetime.now(UTC)).total_seconds()
    return max(0, int(delta))


def _parse_reset_header(value: str | None) -> float | None:
    if not value:
        return None
    try:
        reset = float(value.strip())
    except ValueError:
        return None
    if not math.isfinite(reset) or reset < 0:
        return None
    return reset


def parse_rate_limit_reset(
    headers: Mapping[str, str] | None,
    *,
    now: float,
    fallback_seconds: int = DEFAULT_RATE_LIMIT_FALLBACK_SECONDS,
) -> int:
    """Return seconds until a throttled credential may be used again.

    Reads `x-rate-limit-reset` first (epoch seconds or a plain duration), then
    `Retry-After`, then falls back to `fallback_seconds`.
    """
    if headers:
        reset = _parse_reset_header(headers.get("x-rate-limit-reset"))
        if reset is not None:
            if reset >= _EPOCH_THRESHOLD:
                return max(0, math.ceil(reset - now))
            return math.ceil(reset)
    retry_after = parse_retry_after(headers)
    if retry_after is not None:
        return retry_after
    return fallback_seconds


def _response_details(response: httpx.Response) -> str:
    """Return a compact status/body summary for error reporting."""
    body = " ".join(response.text.split())
    if len(body) > 300:
        body = body[:300] + "..."
    return f"status={response.status_code}, body={body}"


def _error_message(response: httpx.Response) -> str:
    """Extract the upstream-provided error message, if the body carries one."""
    try:
        body: object = response.json()
    except ValueError:
        return _response_details(response)
    if isinstance(body, dict):
        for field_name in ("detail", "title", "message"):
            value = body.get(field_name)
            if isinstance(value, str) and value:
                return value
        errors = body.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            first = errors[0]
            for field_name in ("message", "detail", "title"):
                value = first.get(field_name)
                if isinstance(value, str) and value:
                    return value
    return _response_details(response)


class TokenRequestExecutor(RequestExecutor):
    """Issue one authenticated GET and classify the outcome.

    Classification:
    - 429 -> RateLimited with the parsed reset duration
    - other non-2xx -> FatalError with the upstream message
    - request failures (timeout, DNS, reset, undecodable body) -> TransientError
    - 2xx JSON object -> Success
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        rate_limit_fallback_seconds: int = DEFAULT_RATE_LIMIT_FALLBACK_SECONDS,
        clock: Clock = time.time,
    ) -> None:
        self.client = client
        self.timeout_seconds = timeout_seconds
        self.user_agent = user_agent
        self.rate_limit_fallback_seconds = rate_limit_fallback_seconds
        self.clock = clock

    @override
    async def execute(
        self, url: str, params: Mapping[str, str], credential: str
    ) -> RequestOutcome:
        headers = {
            "Authorization": f"Bearer {credential}",
            "User-Agent": self.user_agent,
        }
        try:
            response = await self.client.get(
                url,
                params=dict(params),
                headers=headers,
                timeout=self.timeout_seconds,
            )
        except httpx.RequestError as exc:
            logger.warning("No usable response received from %s: %r", url, exc)
            return TransientError(exc)

        if response.status_code == 429:
            retry_after = parse_rate_limit_reset(
                response.headers,
                now=self.clock(),
                fallback_seconds=self.rate_limit_fallback_seconds,
            )
            logger.warning(
                "Token %s rate limited, reset in %ss",
                mask_credential(credential),
                retry_after,
            )
            return RateLimited(retry_after)

        if not response.is_success:
            logger.error("API Error (%s): %s", response.status_code, _response_details(response))
            return FatalError(response.status_code, _error_message(response))

        try:
            payload: object = response.json()
        except ValueError:
            logger.error("Non-JSON success body: %s", _response_details(response))
            return FatalError(response.status_code, "Upstream returned a non-JSON body")
        if not isinstance(payload, dict):
            return FatalError(response.status_code, "Upstream returned a non-object JSON body")

        logger.info("Request successful with token %s", mask_credential(credential))
        return Success(payload)
