"""Incremental file sets: immutable-by-convention maps of relative files to status.

Every function here returns a fresh dictionary. Archive diffs never touch the
cache directly; they append `CacheUpdate` values that the caller applies once
the rest of the build step has succeeded, so a failed step can be retried
against the same cached state.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from enum import Enum
from pathlib import Path

from apk_delta.files.cache import CacheAction, CacheUpdate, FileCacheByPath
from apk_delta.files.models import BaseKind, FileStatus, IncrementalFileSet, RelativeFile
from apk_delta.files.relative_files import (
    file_entries,
    relative_files_from_archive,
    relative_files_from_directory,
)


class FileDeletionPolicy(Enum):
    """How removed paths reported by the change record are treated.

    The change record does not say whether a removed path was a file or a
    directory, so a caller either assumes files or refuses deletions.
    """

    ASSUME_NO_DELETED_DIRECTORIES = "assume_no_deleted_directories"
    DISALLOW_FILE_DELETIONS = "disallow_file_deletions"


class FileDeletionNotAllowedError(Exception):
    """Raised when a removed path is reported under the strict deletion policy."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"Changes include a deleted file ('{path}'), which is not allowed.")
        self.path = path


def from_directory(directory: Path) -> IncrementalFileSet:
    """Report every file in a directory as NEW."""
    root = Path(directory)
    if not root.is_dir():
        raise ValueError(f"Not a directory: {root}")
    return {relative: FileStatus.NEW for relative in relative_files_from_directory(root)}


def from_archive(archive: Path, status: FileStatus = FileStatus.NEW) -> IncrementalFileSet:
    """Report every file entry in an archive with the given status."""
    path = Path(archive)
    if not path.is_file():
        raise ValueError(f"Not a file: {path}")
    return {relative: status for relative in relative_files_from_archive(path)}


def from_cached_archive(
    archive: Path,
    cache: FileCacheByPath,
    cache_updates: list[CacheUpdate],
) -> IncrementalFileSet:
    """Diff an archive against its cached previous version.

    Without a cached version the whole archive is NEW; without the archive the
    whole cached version is REMOVED; otherwise entries are compared by CRC-32
    and uncompressed size. The cache update that makes a second call report no
    changes is appended to ``cache_updates``.
    """
    path = Path(archive)
    old_file = cache.get(path)
    if old_file is None:
        if not path.is_file():
            return {}
        result = from_archive(path, FileStatus.NEW)
        cache_updates.append(CacheUpdate(cache=cache, action=CacheAction.ADD, path=path))
        return result

    if not path.is_file():
        result = {
            _archive_entry(path, name): FileStatus.REMOVED for name in file_entries(old_file)
        }
        cache_updates.append(CacheUpdate(cache=cache, action=CacheAction.REMOVE, path=path))
        return result

    new_entries = file_entries(path)
    old_entries = file_entries(old_file)
    result = {}
    for name, entry in new_entries.items():
        previous = old_entries.get(name)
        if previous is None:
            result[_archive_entry(path, name)] = FileStatus.NEW
            continue
        if previous.CRC != entry.CRC or previous.file_size != entry.file_size:
            result[_archive_entry(path, name)] = FileStatus.CHANGED
    for name in old_entries:
        if name not in new_entries:
            result[_archive_entry(path, name)] = FileStatus.REMOVED

    cache_updates.append(CacheUpdate(cache=cache, action=CacheAction.ADD, path=path))
    return result


def union(sets: Iterable[Mapping[RelativeFile, FileStatus]]) -> IncrementalFileSet:
    """Merge file sets; on conflicting statuses the last set wins."""
    merged: IncrementalFileSet = {}
    for file_set in sets:
        merged.update(file_set)
    return merged


def count_distinct_base_directories(file_set: Mapping[RelativeFile, FileStatus]) -> int:
    """Count distinct directory bases referenced by a file set."""
    return len({rf.base for rf in file_set if rf.kind is BaseKind.DIRECTORY})


def from_zips_and_directories(paths: Iterable[Path]) -> IncrementalFileSet:
    """Report every file of several archives and directories as NEW."""
    sets: list[IncrementalFileSet] = []
    for raw in paths:
        path = Path(raw)
        if path.is_file():
            sets.append(from_archive(path))
        else:
            sets.append(from_directory(path))
    return union(sets)


def resolve_from_base_files(
    base_files: Collection[Path],
    updates: Mapping[Path, FileStatus],
    cache: FileCacheByPath,
    cache_updates: list[CacheUpdate],
    deletion_policy: FileDeletionPolicy,
) -> IncrementalFileSet:
    """Translate a change record over absolute paths into a relative file set.

    A changed path that is itself a base file is treated as an archive and
    diffed against the cache. Any other path is attributed to the closest
    enclosing base directory; directories and paths outside every base are
    ignored.
    """
    bases = {Path(base) for base in base_files}
    for base in sorted(bases):
        if not base.exists():
            raise ValueError(f"Base file does not exist: {base}")

    result: IncrementalFileSet = {}
    for raw_path, status in updates.items():
        path = Path(raw_path)
        if (
            deletion_policy is FileDeletionPolicy.DISALLOW_FILE_DELETIONS
            and status is FileStatus.REMOVED
        ):
            raise FileDeletionNotAllowedError(path.absolute())

        if path in bases:
            result.update(from_cached_archive(path, cache, cache_updates))
            continue
        if path.is_dir():
            continue

        base = _enclosing_base(path, bases)
        if base is None:
            continue
        result[RelativeFile.from_file(base, path)] = status
    return result


def _enclosing_base(path: Path, bases: set[Path]) -> Path | None:
    for parent in path.parents:
        if parent in bases:
            return parent
    return None


def _archive_entry(archive: Path, name: str) -> RelativeFile:
    return RelativeFile(base=archive, relative_path=name, kind=BaseKind.ARCHIVE)
