"""Content snapshots of files, keyed by the path of the original file."""

from __future__ import annotations

import hashlib
import shutil
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class FileCacheByPath:
    """Filesystem-backed snapshot store.

    Each cached file lives in the cache directory under a name derived from the
    canonical path of the original file, so adding the same path twice overwrites
    the previous snapshot. Nothing is kept in memory: every call checks the disk.
    """

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        """Return the cache directory."""
        return self._directory

    def add(self, file: Path) -> None:
        """Snapshot the current content of a file, replacing any earlier snapshot."""
        self._directory.mkdir(parents=True, exist_ok=True)
        target = self._directory / cache_key(file)
        tmp = target.with_suffix(".tmp")
        shutil.copyfile(file, tmp)
        tmp.replace(target)

    def get(self, file: Path) -> Path | None:
        """Return the snapshot for a file, or None if there is none."""
        candidate = self._directory / cache_key(file)
        if not candidate.is_file():
            return None
        return candidate

    def remove(self, file: Path) -> None:
        """Delete the snapshot for a file, if any."""
        (self._directory / cache_key(file)).unlink(missing_ok=True)

    def clear(self) -> None:
        """Delete every snapshot."""
        if not self._directory.is_dir():
            return
        for entry in self._directory.iterdir():
            if entry.is_file():
                entry.unlink(missing_ok=True)


def cache_key(file: Path) -> str:
    """Return the stable snapshot name for a file path."""
    canonical = Path(file).resolve(strict=False).as_posix()
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class CacheAction(Enum):
    """Kind of deferred cache mutation."""

    ADD = "add"
    REMOVE = "remove"


@dataclass(slots=True, frozen=True)
class CacheUpdate:
    """A cache mutation computed by a diff and applied later by the caller."""

    cache: FileCacheByPath
    action: CacheAction
    path: Path

    def apply(self) -> None:
        """Perform the mutation."""
        if self.action is CacheAction.ADD:
            self.cache.add(self.path)
            return
        self.cache.remove(self.path)


def apply_cache_updates(updates: Iterable[CacheUpdate]) -> None:
    """Apply deferred cache updates in order."""
    for update in updates:
        update.apply()
