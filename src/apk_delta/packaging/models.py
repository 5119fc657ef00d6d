"""Typed models for archive entry edits."""

from __future__ import annotations

from dataclasses import dataclass, field

from apk_delta.files import CacheUpdate, FileStatus, RelativeFile


@dataclass(slots=True, frozen=True)
class PackagedFileUpdate:
    """One archive entry to add, overwrite or delete.

    ``name`` is the entry name inside the output archive, which may differ from
    the source's relative path (dex files are renamed to their slot names).
    """

    source: RelativeFile
    name: str
    status: FileStatus


@dataclass(slots=True, frozen=True)
class PackagingPlan:
    """Everything one incremental step must apply to the output archive."""

    dex_updates: frozenset[PackagedFileUpdate]
    resource_updates: frozenset[PackagedFileUpdate]
    cache_updates: tuple[CacheUpdate, ...] = field(default=())

    @property
    def is_empty(self) -> bool:
        """Return True when the step has nothing to write or delete."""
        return not self.dex_updates and not self.resource_updates

    def summary(self) -> dict[str, int]:
        """Return per-status edit counts."""
        counts = {status.value: 0 for status in FileStatus}
        for update in (*self.dex_updates, *self.resource_updates):
            counts[update.status.value] += 1
        counts["dex"] = len(self.dex_updates)
        counts["resources"] = len(self.resource_updates)
        counts["cache_updates"] = len(self.cache_updates)
        return counts
