"""Concrete infrastructure implementations and shared helpers."""

from .cache import TtlCache
from .filesystem import LocalFileSystem
from .flag_store import JsonFlagStore
from .http import TokenRequestExecutor, parse_rate_limit_reset, parse_retry_after
from .resilience import BackoffPolicy, RetryOrchestrator

__all__ = [
    "BackoffPolicy",
    "JsonFlagStore",
    "LocalFileSystem",
    "RetryOrchestrator",
    "TokenRequestExecutor",
    "TtlCache",
    "parse_rate_limit_reset",
    "parse_retry_after",
]
