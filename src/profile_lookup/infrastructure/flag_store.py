"""Verified-user flag store persisted as a JSON list.

Usage example:
    from pathlib import Path

    from profile_lookup.infrastructure.filesystem import LocalFileSystem
    from profile_lookup.infrastructure.flag_store import JsonFlagStore

    store = JsonFlagStore(path=Path("data/verified_users.json"), fs=LocalFileSystem())
    store.set_flag("Jack", True)
    assert store.is_flagged("jack")
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing_extensions import override

from ..exceptions import FlagStoreCorruptError
from ..observability import get_logger
from ..protocols import FileSystem, FlagStore

logger = get_logger("profile_lookup.infrastructure.flag_store")


class JsonFlagStore(FlagStore):
    """Case-insensitive key-set, loaded once and rewritten after each change.

    A change becomes visible only once it has been persisted.
    """

    def __init__(self, *, path: Path, fs: FileSystem) -> None:
        self.path = Path(path)
        self.fs = fs
        self._lock = threading.Lock()
        self._keys = self._load()

    def __len__(self) -> int:
        return len(self._keys)

    @override
    def is_flagged(self, key: str) -> bool:
        return key.lower() in self._keys

    @override
    def set_flag(self, key: str, flagged: bool) -> None:
        normalised = key.lower()
        with self._lock:
            updated = set(self._keys)
            if flagged:
                updated.add(normalised)
            else:
                updated.discard(normalised)
            self._save(updated)
            self._keys = updated
        logger.info("Flag for %s set to %s", normalised, flagged)

    def _load(self) -> set[str]:
        if not self.fs.exists(self.path):
            self.fs.mkdir(self.path.parent)
            self.fs.write_text("[]", self.path)
            return set()
        try:
            data: object = json.loads(self.fs.read_text(self.path))
        except json.JSONDecodeError as exc:
            raise FlagStoreCorruptError(str(self.path)) from exc
        if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
            raise FlagStoreCorruptError(str(self.path))
        return {item.lower() for item in data}

    def _save(self, keys: set[str]) -> None:
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        self.fs.write_text(json.dumps(sorted(keys), indent=2), tmp_path)
        self.fs.rename(tmp_path, self.path)
