"""Typed parsing and validation for lookup config files."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .exceptions import ConfigFileNotFoundError, ConfigFileParseError, ConfigFileValidationError
from .protocols import FileSystem

_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class LookupConfigFile:
    """Validated lookup config values loaded from a TOML file.

    Bearer tokens are secrets and only ever come from the environment.
    """

    api_base_url: str | None = None
    api_user_fields: str | None = None
    api_user_agent: str | None = None
    api_timeout_seconds: float | None = None
    cache_ttl_seconds: float | None = None
    backoff_base_seconds: float | None = None
    backoff_max_seconds: float | None = None
    rate_limit_fallback_seconds: int | None = None
    flag_store_path: str | None = None


class _LookupSectionModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    api_base_url: str | None = None
    api_user_fields: str | None = None
    api_user_agent: str | None = None
    api_timeout_seconds: float | None = None
    cache_ttl_seconds: float | None = None
    backoff_base_seconds: float | None = None
    backoff_max_seconds: float | None = None
    rate_limit_fallback_seconds: int | None = None
    flag_store_path: str | None = None

    @field_validator("api_base_url")
    @classmethod
    def _validate_base_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        url = value.strip().rstrip("/")
        if not url.startswith(("http://", "https://")):
            raise ValueError
        return url

    @field_validator("api_user_fields", "api_user_agent", "flag_store_path")
    @classmethod
    def _validate_non_empty_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        text = value.strip()
        if not text:
            raise ValueError
        return text

    @field_validator(
        "api_timeout_seconds",
        "cache_ttl_seconds",
        "backoff_base_seconds",
        "backoff_max_seconds",
        "rate_limit_fallback_seconds",
    )
    @classmethod
    def _validate_positive_number(cls, value: float | None) -> float | None:
        if value is None:
            return None
        if value <= 0:
            raise ValueError
        return value


class _ConfigFileModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    schema_version: int
    lookup: _LookupSectionModel

    @field_validator("schema_version")
    @classmethod
    def _validate_schema_version(cls, value: int) -> int:
        if value != _SCHEMA_VERSION:
            raise ValueError
        return value


def _format_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ("<root>",)))
    message = str(first.get("msg", "invalid value"))
    return f"{location}: {message}"


def load_lookup_config_file(*, path: Path, fs: FileSystem) -> LookupConfigFile:
    """Load and validate a lookup TOML config file."""
    if not fs.exists(path):
        raise ConfigFileNotFoundError(str(path))

    raw_payload = fs.read_text(path)
    try:
        payload: object = tomllib.loads(raw_payload)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigFileParseError(str(path), str(exc)) from exc

    try:
        model = _ConfigFileModel.model_validate(payload)
    except ValidationError as exc:
        raise ConfigFileValidationError(str(path), _format_validation_error(exc)) from exc

    section = model.lookup
    return LookupConfigFile(
        api_base_url=section.api_base_url,
        api_user_fields=section.api_user_fields,
        api_user_agent=section.api_user_agent,
        api_timeout_seconds=section.api_timeout_seconds,
        cache_ttl_seconds=section.cache_ttl_seconds,
        backoff_base_seconds=section.backoff_base_seconds,
        backoff_max_seconds=section.backoff_max_seconds,
        rate_limit_fallback_seconds=section.rate_limit_fallback_seconds,
        flag_store_path=section.flag_store_path,
    )
