"""Centralised, injectable configuration for profile lookup."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Self

from dotenv import load_dotenv

from .config_file import LookupConfigFile
from .exceptions import NoCredentialsConfiguredError

DEFAULT_BASE_URL = "https://api.twitter.com/2"
DEFAULT_USER_FIELDS = "profile_image_url,description,public_metrics,verified,created_at"
DEFAULT_FLAG_STORE_PATH = "data/verified_users.json"


class PositiveNumberEnvVarError(ValueError):
    """Raised when an environment variable must be a positive number."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a positive number.")


class PositiveIntegerEnvVarError(ValueError):
    """Raised when an environment variable must be a positive whole number."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a positive whole number.")


@dataclass(frozen=True)
class LookupConfig:
    """Immutable configuration for the lookup client.

    Load from environment with `LookupConfig.from_env()` or construct directly for testing.
    """

    # Upstream API
    api_tokens: tuple[str, ...] = ()
    api_base_url: str = DEFAULT_BASE_URL
    api_user_fields: str = DEFAULT_USER_FIELDS
    api_user_agent: str = "ProfileLookup/1.0"
    api_timeout_seconds: float = 10.0

    # Resilience
    cache_ttl_seconds: float = 300.0
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 10.0
    rate_limit_fallback_seconds: int = 60

    # Flag store
    flag_store_path: str = DEFAULT_FLAG_STORE_PATH

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> Self:
        """Load configuration from environment variables.

        Args:
            dotenv_path: Optional path to .env file. If None, uses default .env discovery.

        Returns:
            LookupConfig instance populated from environment.
        """
        load_dotenv(dotenv_path)

        return cls(
            api_tokens=_parse_list(os.getenv("API_BEARER_TOKENS", "")),
            api_base_url=os.getenv("API_BASE_URL", DEFAULT_BASE_URL).strip() or DEFAULT_BASE_URL,
            api_user_fields=os.getenv("API_USER_FIELDS", DEFAULT_USER_FIELDS).strip(),
            api_user_agent=os.getenv("API_USER_AGENT", "ProfileLookup/1.0").strip()
            or "ProfileLookup/1.0",
            api_timeout_seconds=_parse_positive_float(
                os.getenv("API_TIMEOUT_SECONDS", "10"), env_name="API_TIMEOUT_SECONDS"
            ),
            cache_ttl_seconds=_parse_positive_float(
                os.getenv("CACHE_TTL_SECONDS", "300"), env_name="CACHE_TTL_SECONDS"
            ),
            backoff_base_seconds=_parse_positive_float(
                os.getenv("BACKOFF_BASE_SECONDS", "1"), env_name="BACKOFF_BASE_SECONDS"
            ),
            backoff_max_seconds=_parse_positive_float(
                os.getenv("BACKOFF_MAX_SECONDS", "10"), env_name="BACKOFF_MAX_SECONDS"
            ),
            rate_limit_fallback_seconds=_parse_positive_int(
                os.getenv("RATE_LIMIT_FALLBACK_SECONDS", "60"),
                env_name="RATE_LIMIT_FALLBACK_SECONDS",
            ),
            flag_store_path=os.getenv("FLAG_STORE_PATH", DEFAULT_FLAG_STORE_PATH).strip()
            or DEFAULT_FLAG_STORE_PATH,
        )

    def require_tokens(self) -> tuple[str, ...]:
        """Return the configured tokens, failing fast if there are none."""
        if not self.api_tokens:
            raise NoCredentialsConfiguredError()
        return self.api_tokens

    def with_file_overrides(self, file_config: LookupConfigFile) -> Self:
        """Return a new config with config-file values overriding env/default values."""
        return replace(
            self,
            api_base_url=self.api_base_url
            if file_config.api_base_url is None
            else file_config.api_base_url,
            api_user_fields=self.api_user_fields
            if file_config.api_user_fields is None
            else file_config.api_user_fields,
            api_user_agent=self.api_user_agent
            if file_config.api_user_agent is None
            else file_config.api_user_agent,
            api_timeout_seconds=self.api_timeout_seconds
            if file_config.api_timeout_seconds is None
            else file_config.api_timeout_seconds,
            cache_ttl_seconds=self.cache_ttl_seconds
            if file_config.cache_ttl_seconds is None
            else file_config.cache_ttl_seconds,
            backoff_base_seconds=self.backoff_base_seconds
            if file_config.backoff_base_seconds is None
            else file_config.backoff_base_seconds,
            backoff_max_seconds=self.backoff_max_seconds
            if file_config.backoff_max_seconds is None
            else file_config.backoff_max_seconds,
            rate_limit_fallback_seconds=self.rate_limit_fallback_seconds
            if file_config.rate_limit_fallback_seconds is None
            else file_config.rate_limit_fallback_seconds,
            flag_store_path=self.flag_store_path
            if file_config.flag_store_path is None
            else file_config.flag_store_path,
        )


def _parse_list(s: str) -> tuple[str, ...]:
    """Parse comma-separated string into tuple of stripped values."""
    items = [item.strip() for item in s.split(",") if item.strip()]
    return tuple(items)


def _parse_positive_float(value: str, *, env_name: str) -> float:
    """Parse a positive number from an environment variable."""
    try:
        parsed = float(value.strip())
    except ValueError as exc:
        raise PositiveNumberEnvVarError(env_name) from exc
    if parsed <= 0:
        raise PositiveNumberEnvVarError(env_name)
    return parsed


def _parse_positive_int(value: str, *, env_name: str) -> int:
    """Parse a positive whole number from an environment variable."""
    try:
        parsed = int(value.strip())
    except ValueError as exc:
        raise PositiveIntegerEnvVarError(env_name) from exc
    if parsed <= 0:
        raise PositiveIntegerEnvVarError(env_name)
    return parsed
