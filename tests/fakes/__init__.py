"""Exports for test fakes."""

from .cache import InMemoryCache
from .filesystem import FailingRenameFileSystem, InMemoryFileSystem
from .flags import InMemoryFlagStore
from .http import FakeResourceFetcher, ScriptedExecutor

__all__ = [
    "FailingRenameFileSystem",
    "FakeResourceFetcher",
    "InMemoryCache",
    "InMemoryFileSystem",
    "InMemoryFlagStore",
    "ScriptedExecutor",
]
