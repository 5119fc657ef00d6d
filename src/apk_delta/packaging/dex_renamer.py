"""Stable assignment of dex files to the canonical archive names.

Dex files must be packaged as ``classes.dex``, ``classes2.dex``, ... with no
gaps. The manager keeps a persisted bijection between dex sources and slot
numbers so that each incremental build renames as few entries as possible:
freed slots are refilled by new sources first, and any slot left empty is
filled by moving the current top occupant down.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from types import TracebackType

from apk_delta.files import BaseKind, FileStatus, RelativeFile
from apk_delta.packaging.models import PackagedFileUpdate

DEX_STATE_SCHEMA_VERSION = 1
DEX_STATE_FILE_NAME = "dex-renamer-state.json"
CANONICAL_DEX_NAME = "classes.dex"


class DexRenamerStateError(Exception):
    """Raised when the persisted renamer state cannot be trusted."""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Corrupt dex renamer state in {path}: {reason}")
        self.path = path
        self.reason = reason


def slot_name(slot: int) -> str:
    """Return the archive entry name for a slot number."""
    if slot < 1:
        raise ValueError(f"Slot must be a positive integer, got {slot}.")
    if slot == 1:
        return CANONICAL_DEX_NAME
    return f"classes{slot}.dex"


def slot_for_name(name: str) -> int | None:
    """Return the slot number encoded in an archive entry name, if any."""
    if name == CANONICAL_DEX_NAME:
        return 1
    if not name.startswith("classes") or not name.endswith(".dex"):
        return None
    digits = name[len("classes") : -len(".dex")]
    if not digits.isdigit() or digits.startswith("0"):
        return None
    slot = int(digits)
    return slot if slot >= 2 else None


def is_canonical_dex(source: RelativeFile) -> bool:
    """Return True when a source file is literally named ``classes.dex``."""
    return source.name == CANONICAL_DEX_NAME


def dex_file_sort_key(source: RelativeFile) -> tuple[int, str, str]:
    """Order dex sources: ``classes.dex`` files first, then by base and relative path."""
    return (0 if is_canonical_dex(source) else 1, source.base.as_posix(), source.relative_path)


class DexRenameManager:
    """Persisted, incremental mapping of dex sources to slot numbers."""

    def __init__(self, intermediate_dir: Path) -> None:
        directory = Path(intermediate_dir)
        if not directory.is_dir():
            raise ValueError(f"Intermediate directory does not exist: {directory}")
        self._state_path = directory / DEX_STATE_FILE_NAME
        self._slot_by_source: dict[RelativeFile, int] = {}
        self._source_by_slot: dict[int, RelativeFile] = {}
        self._top_slot = 0
        self._load()

    @property
    def state_path(self) -> Path:
        """Return the on-disk state file path."""
        return self._state_path

    @property
    def top_slot(self) -> int:
        """Return the highest occupied slot, 0 when empty."""
        return self._top_slot

    def assignments(self) -> dict[str, RelativeFile]:
        """Return the current archive entry name of every source, ordered by slot."""
        return {
            slot_name(slot): self._source_by_slot[slot] for slot in sorted(self._source_by_slot)
        }

    def update(self, changes: Mapping[RelativeFile, FileStatus]) -> set[PackagedFileUpdate]:
        """Apply a dex change set and return the archive edits it requires."""
        before = dict(self._source_by_slot)
        freed: set[int] = set()
        changed: set[RelativeFile] = set()
        pending: list[RelativeFile] = []

        for source, status in changes.items():
            if status is FileStatus.REMOVED:
                slot = self._slot_by_source.pop(source, None)
                if slot is None:
                    continue
                del self._source_by_slot[slot]
                freed.add(slot)
            elif source in self._slot_by_source:
                changed.add(source)
            else:
                pending.append(source)

        occupant = self._source_by_slot.get(1)
        if (
            occupant is not None
            and not is_canonical_dex(occupant)
            and any(is_canonical_dex(source) for source in pending)
        ):
            self._unbind(occupant)
            freed.add(1)
            pending.append(occupant)

        for source in sorted(pending, key=dex_file_sort_key):
            if is_canonical_dex(source) and 1 not in self._source_by_slot:
                slot = 1
            elif freed:
                slot = min(freed)
            else:
                slot = self._top_slot + 1
            freed.discard(slot)
            self._bind(source, slot)
            self._top_slot = max(self._top_slot, slot)

        self._compact(freed)
        return self._edits(before, changed)

    def reset(self) -> None:
        """Forget every assignment in memory; the state file changes on the next save."""
        self._slot_by_source.clear()
        self._source_by_slot.clear()
        self._top_slot = 0

    def save(self) -> None:
        """Persist the current mapping."""
        entries = [
            {
                "base": source.base.as_posix(),
                "relative_path": source.relative_path,
                "kind": source.kind.value,
                "slot": slot,
            }
            for slot, source in sorted(self._source_by_slot.items())
        ]
        payload = {
            "schema_version": DEX_STATE_SCHEMA_VERSION,
            "top_slot": self._top_slot,
            "entries": entries,
        }
        tmp = self._state_path.with_suffix(self._state_path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, sort_keys=True, indent=2)
            handle.write("\n")
        tmp.replace(self._state_path)

    def close(self) -> None:
        """Persist the current mapping; kept for symmetry with other closeable resources."""
        self.save()

    def __enter__(self) -> DexRenameManager:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        if exc_type is None:
            self.close()

    def _bind(self, source: RelativeFile, slot: int) -> None:
        self._slot_by_source[source] = slot
        self._source_by_slot[slot] = source

    def _unbind(self, source: RelativeFile) -> None:
        slot = self._slot_by_source.pop(source)
        del self._source_by_slot[slot]

    def _compact(self, freed: set[int]) -> None:
        # Freed slots are always <= top slot; each pass shrinks the top by one.
        while freed:
            if self._top_slot in freed:
                freed.remove(self._top_slot)
                self._top_slot -= 1
                continue
            lowest = min(freed)
            freed.remove(lowest)
            mover = self._source_by_slot[self._top_slot]
            self._unbind(mover)
            self._bind(mover, lowest)
            self._top_slot -= 1

    def _edits(
        self,
        before: dict[int, RelativeFile],
        changed: set[RelativeFile],
    ) -> set[PackagedFileUpdate]:
        edits: set[PackagedFileUpdate] = set()
        for slot, source in self._source_by_slot.items():
            previous = before.get(slot)
            if previous is None:
                status = FileStatus.NEW
            elif previous != source or source in changed:
                status = FileStatus.CHANGED
            else:
                continue
            edits.add(PackagedFileUpdate(source=source, name=slot_name(slot), status=status))
        for slot, source in before.items():
            if slot in self._source_by_slot:
                continue
            edits.add(
                PackagedFileUpdate(source=source, name=slot_name(slot), status=FileStatus.REMOVED)
            )
        return edits

    def _load(self) -> None:
        if not self._state_path.exists():
            return
        try:
            with self._state_path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except UnicodeDecodeError as exc:
            raise DexRenamerStateError(self._state_path, "not valid UTF-8") from exc
        except json.JSONDecodeError as exc:
            raise DexRenamerStateError(self._state_path, f"invalid JSON ({exc.msg})") from exc
        if not isinstance(payload, dict):
            raise DexRenamerStateError(self._state_path, "top-level value must be an object")

        schema = payload.get("schema_version")
        if schema != DEX_STATE_SCHEMA_VERSION:
            raise DexRenamerStateError(
                self._state_path,
                f"unsupported schema_version {schema!r}, expected {DEX_STATE_SCHEMA_VERSION}",
            )
        top_slot = payload.get("top_slot")
        entries = payload.get("entries")
        if not isinstance(top_slot, int) or isinstance(top_slot, bool) or top_slot < 0:
            raise DexRenamerStateError(self._state_path, "top_slot must be a non-negative integer")
        if not isinstance(entries, list):
            raise DexRenamerStateError(self._state_path, "entries must be a list")

        for index, entry in enumerate(entries):
            source, slot = self._parse_entry(index, entry)
            if source in self._slot_by_source:
                raise DexRenamerStateError(self._state_path, f"duplicate source {source}")
            if slot in self._source_by_slot:
                raise DexRenamerStateError(self._state_path, f"duplicate slot {slot}")
            self._bind(source, slot)

        if set(self._source_by_slot) != set(range(1, top_slot + 1)):
            raise DexRenamerStateError(
                self._state_path, f"slots do not form the range 1..{top_slot}"
            )
        self._top_slot = top_slot

    def _parse_entry(self, index: int, entry: object) -> tuple[RelativeFile, int]:
        if not isinstance(entry, dict):
            raise DexRenamerStateError(self._state_path, f"entry {index} must be an object")
        base = entry.get("base")
        relative_path = entry.get("relative_path")
        kind = entry.get("kind")
        slot = entry.get("slot")
        if not isinstance(base, str) or not base:
            raise DexRenamerStateError(self._state_path, f"entry {index} has no base")
        if not isinstance(relative_path, str):
            raise DexRenamerStateError(self._state_path, f"entry {index} has no relative_path")
        if not isinstance(slot, int) or isinstance(slot, bool) or slot < 1:
            raise DexRenamerStateError(self._state_path, f"entry {index} has an invalid slot")
        try:
            source = RelativeFile(
                base=Path(base),
                relative_path=relative_path,
                kind=BaseKind(kind),
            )
        except ValueError as exc:
            raise DexRenamerStateError(self._state_path, f"entry {index}: {exc}") from exc
        return source, slot
