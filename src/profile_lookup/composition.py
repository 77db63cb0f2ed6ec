"""Composition root for wiring lookup and CLI dependencies."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import httpx

from .application.lookup import CachedResourceFetcher, ProfileLookupService
from .cli import CliDependencies, create_app
from .config import LookupConfig
from .domain.token_pool import TokenPool
from .infrastructure import (
    BackoffPolicy,
    JsonFlagStore,
    LocalFileSystem,
    RetryOrchestrator,
    TokenRequestExecutor,
    TtlCache,
)
from .observability import get_logger
from .protocols import FlagStore

logger = get_logger("profile_lookup.composition")


def build_lookup_service(
    *,
    config: LookupConfig,
    client: httpx.AsyncClient,
    flags: FlagStore,
) -> ProfileLookupService:
    """Wire pool, executor, orchestrator and cache into a lookup service.

    Raises:
        NoCredentialsConfiguredError: If no bearer tokens are configured.
    """
    pool = TokenPool(config.require_tokens())
    logger.info("Initialised with %s API tokens", pool.size)
    executor = TokenRequestExecutor(
        client=client,
        timeout_seconds=config.api_timeout_seconds,
        user_agent=config.api_user_agent,
        rate_limit_fallback_seconds=config.rate_limit_fallback_seconds,
    )
    orchestrator = RetryOrchestrator(
        pool=pool,
        executor=executor,
        backoff=BackoffPolicy(
            base_seconds=config.backoff_base_seconds,
            max_seconds=config.backoff_max_seconds,
        ),
    )
    fetcher = CachedResourceFetcher(
        orchestrator=orchestrator,
        cache=TtlCache(ttl_seconds=config.cache_ttl_seconds),
        base_url=config.api_base_url,
        params={"user.fields": config.api_user_fields} if config.api_user_fields else None,
    )
    return ProfileLookupService(fetcher=fetcher, flags=flags)


def build_cli_dependencies(*, config: LookupConfig) -> CliDependencies:
    """Build concrete dependencies for CLI commands.

    The HTTP client is only opened when a command asks for the lookup service,
    so flag-only commands work without bearer tokens.
    """
    flags = JsonFlagStore(path=Path(config.flag_store_path), fs=LocalFileSystem())

    @asynccontextmanager
    async def open_service() -> AsyncIterator[ProfileLookupService]:
        async with httpx.AsyncClient(timeout=config.api_timeout_seconds) as client:
            yield build_lookup_service(config=config, client=client, flags=flags)

    return CliDependencies(flags=flags, open_service=open_service)


app = create_app(build_cli_dependencies)
