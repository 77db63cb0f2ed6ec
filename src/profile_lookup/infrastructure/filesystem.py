"""Filesystem implementations for infrastructure.

Usage example:
    from pathlib import Path

    from profile_lookup.infrastructure.filesystem import LocalFileSystem

    fs = LocalFileSystem()
    fs.write_text("[]", Path("data/verified_users.json"))
"""

from __future__ import annotations

from pathlib import Path
from typing_extensions import override

from ..protocols import FileSystem


class LocalFileSystem(FileSystem):
    """Local filesystem implementation."""

    @override
    def read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")

    @override
    def write_text(self, content: str, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    @override
    def exists(self, path: Path) -> bool:
        return path.exists()

    @override
    def rename(self, src: Path, dest: Path) -> None:
        src.replace(dest)

    @override
    def mkdir(self, path: Path, parents: bool = True) -> None:
        path.mkdir(parents=parents, exist_ok=True)
