"""Cache-fronted resource fetching and verified-profile lookup.

Usage example:
    from profile_lookup.application.lookup import CachedResourceFetcher, ProfileLookupService

    fetcher = CachedResourceFetcher(
        orchestrator=orchestrator,
        cache=TtlCache(),
        base_url="https://api.twitter.com/2",
        params={"user.fields": "created_at"},
    )
    service = ProfileLookupService(fetcher=fetcher, flags=flag_store)
    profile = await service.lookup_profile("jack")
"""

from __future__ import annotations

import copy
import re
import time
from collections.abc import Mapping
from typing_extensions import override

from ..exceptions import InvalidUsernameError
from ..infrastructure.resilience import RetryOrchestrator
from ..observability import get_logger
from ..protocols import FlagStore, ResourceFetcher, ResponseCache
from ..types import Clock, FetchResult, ProfileLookup

logger = get_logger("profile_lookup.application.lookup")

USER_RESOURCE_PATH = "users/by/username/{key}"
USER_CACHE_PREFIX = "user_"
_USERNAME_RE = re.compile(r"^[A-Za-z0-9_]{1,15}$")


def validate_username(username: str) -> str:
    """Return the stripped username, or raise if it cannot be an upstream handle."""
    candidate = username.strip().lstrip("@")
    if not _USERNAME_RE.fullmatch(candidate):
        raise InvalidUsernameError(username)
    return candidate


class CachedResourceFetcher(ResourceFetcher):
    """Serve resources from the cache, falling back to the retry orchestrator.

    Only payloads carrying a `data` object are cached; an error-only body is
    returned to the caller but fetched again next time. Cache keys ignore case
    and callers always receive their own copy of the payload.
    """

    def __init__(
        self,
        *,
        orchestrator: RetryOrchestrator,
        cache: ResponseCache,
        base_url: str,
        params: Mapping[str, str] | None = None,
        resource_path: str = USER_RESOURCE_PATH,
        cache_prefix: str = USER_CACHE_PREFIX,
        clock: Clock = time.time,
    ) -> None:
        self.orchestrator = orchestrator
        self.cache = cache
        self.base_url = base_url.rstrip("/")
        self.params = dict(params or {})
        self.resource_path = resource_path
        self.cache_prefix = cache_prefix
        self.clock = clock

    def resource_url(self, key: str) -> str:
        return f"{self.base_url}/{self.resource_path.format(key=key)}"

    @override
    async def fetch_resource(self, key: str) -> FetchResult:
        cache_key = f"{self.cache_prefix}{key.lower()}"
        entry = self.cache.get_entry(cache_key)
        if entry is not None:
            logger.info("Serving from cache: %s", key)
            return FetchResult(
                key=key,
                payload=copy.deepcopy(entry.value),
                cached=True,
                fetched_at=entry.stored_at,
            )

        payload = await self.orchestrator.run(self.resource_url(key), self.params)
        fetched_at = self.clock()
        if isinstance(payload.get("data"), dict):
            self.cache.set(cache_key, copy.deepcopy(payload))
        return FetchResult(key=key, payload=payload, cached=False, fetched_at=fetched_at)


class ProfileLookupService:
    """Profile lookup enriched with the verified-user flag."""

    def __init__(self, *, fetcher: ResourceFetcher, flags: FlagStore) -> None:
        self.fetcher = fetcher
        self.flags = flags

    async def lookup_profile(self, username: str) -> ProfileLookup:
        """Fetch a profile and overlay the locally recorded verification status.

        The fetched payload is copied before enrichment so cached payloads stay raw.
        """
        name = validate_username(username)
        result = await self.fetcher.fetch_resource(name)
        verified = self.flags.is_flagged(name)

        payload = copy.deepcopy(result.payload)
        data = payload.get("data")
        if isinstance(data, dict):
            data["verified"] = verified

        return ProfileLookup(
            username=name,
            payload=payload,
            verified=verified,
            cached=result.cached,
            fetched_at=result.fetched_at,
        )

    def set_verified(self, username: str, verified: bool) -> bool:
        name = validate_username(username)
        self.flags.set_flag(name, verified)
        return verified

    def is_verified(self, username: str) -> bool:
        return self.flags.is_flagged(validate_username(username))
