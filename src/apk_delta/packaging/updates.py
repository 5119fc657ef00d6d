"""Conversions from incremental file sets to archive entry edits."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from apk_delta.files import FileStatus, RelativeFile, normalize_relative_path
from apk_delta.packaging.models import PackagedFileUpdate

ASSETS_PREFIX = "assets/"
CLASS_SUFFIX = ".class"
NATIVE_LIBRARY_SUFFIX = ".so"
JNI_DEBUG_FILES = frozenset({"gdbserver", "gdb.setup", "wrap.sh"})


def from_incremental_file_set(
    file_set: Mapping[RelativeFile, FileStatus],
) -> set[PackagedFileUpdate]:
    """Package every file under its own relative path."""
    return {
        PackagedFileUpdate(source=source, name=source.relative_path, status=status)
        for source, status in file_set.items()
    }


def java_resource_updates(
    file_set: Mapping[RelativeFile, FileStatus],
) -> set[PackagedFileUpdate]:
    """Package java resources; compiled classes mixed into resource streams are skipped."""
    return from_incremental_file_set(
        {
            source: status
            for source, status in file_set.items()
            if not source.relative_path.endswith(CLASS_SUFFIX)
        }
    )


def asset_updates(file_set: Mapping[RelativeFile, FileStatus]) -> set[PackagedFileUpdate]:
    """Package assets under the archive's assets directory."""
    return {
        PackagedFileUpdate(
            source=update.source,
            name=ASSETS_PREFIX + update.name,
            status=update.status,
        )
        for update in from_incremental_file_set(file_set)
    }


@dataclass(slots=True, frozen=True)
class NativeLibraryAbiPredicate:
    """Accepts native library paths of the configured ABIs.

    Paths outside ``lib/<abi>/`` are always accepted. An empty ABI set accepts
    every ABI. Debug helpers next to the libraries are kept only in JNI debug
    mode.
    """

    accepted_abis: frozenset[str] = frozenset()
    jni_debug_mode: bool = False

    def __call__(self, relative_path: str) -> bool:
        parts = normalize_relative_path(relative_path).split("/")
        if len(parts) != 3 or parts[0] != "lib":
            return True
        abi, name = parts[1], parts[2]
        if self.accepted_abis and abi not in self.accepted_abis:
            return False
        if name.endswith(NATIVE_LIBRARY_SUFFIX):
            return True
        return self.jni_debug_mode and name in JNI_DEBUG_FILES


def native_library_updates(
    file_set: Mapping[RelativeFile, FileStatus],
    predicate: NativeLibraryAbiPredicate,
) -> set[PackagedFileUpdate]:
    """Package native libraries accepted by the ABI predicate."""
    return from_incremental_file_set(
        {source: status for source, status in file_set.items() if predicate(source.relative_path)}
    )


def deleted_names(updates: Iterable[PackagedFileUpdate]) -> list[str]:
    """Return archive entry names to delete, sorted."""
    return sorted(update.name for update in updates if update.status is FileStatus.REMOVED)


def written_updates(updates: Iterable[PackagedFileUpdate]) -> list[PackagedFileUpdate]:
    """Return new or changed updates, sorted by entry name."""
    return sorted(
        (update for update in updates if update.status is not FileStatus.REMOVED),
        key=lambda item: item.name,
    )
