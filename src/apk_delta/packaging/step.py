"""Planning and committing one incremental packaging step for a target archive."""

from __future__ import annotations

import fnmatch
import zipfile
from collections.abc import Iterable, Mapping
from pathlib import Path

from apk_delta.config import PackagingConfig
from apk_delta.files import (
    CacheAction,
    CacheUpdate,
    FileCacheByPath,
    FileDeletionNotAllowedError,
    FileStatus,
    IncrementalFileSet,
    RelativeFile,
    apply_cache_updates,
    from_zips_and_directories,
    resolve_from_base_files,
)
from apk_delta.logging import (
    JsonlStepLogger,
    StepEvent,
    format_step_id,
    sanitize_metadata,
    utc_timestamp,
)
from apk_delta.packaging.dex_renamer import DexRenameManager, DexRenamerStateError
from apk_delta.packaging.models import PackagingPlan
from apk_delta.packaging.updates import java_resource_updates


class PlanNotPendingError(Exception):
    """Raised when committing a plan that is not the step's pending plan."""


def error_code_for(exc: BaseException) -> str:
    """Map an exception raised by a step to a stable error code."""
    if isinstance(exc, FileDeletionNotAllowedError):
        return "DELETION_NOT_ALLOWED"
    if isinstance(exc, DexRenamerStateError):
        return "DEX_STATE_CORRUPT"
    if isinstance(exc, zipfile.BadZipFile):
        return "BAD_ARCHIVE"
    if isinstance(exc, PlanNotPendingError):
        return "PLAN_NOT_PENDING"
    if isinstance(exc, OSError):
        return "IO_ERROR"
    if isinstance(exc, ValueError):
        return "INVALID_INPUT"
    return "INTERNAL_ERROR"


class IncrementalPackagingStep:
    """Turns change records into archive edits for one output archive.

    The step owns the archive snapshot cache and the dex renamer of its
    intermediate directory. ``plan`` computes edits without persisting
    anything; ``commit`` applies the deferred cache updates and saves the
    renamer once the archive writer has succeeded; ``rollback`` drops a plan
    and restores the renamer from disk.
    """

    def __init__(
        self,
        config: PackagingConfig,
        base_files: Iterable[Path],
        logger: JsonlStepLogger | None = None,
    ) -> None:
        self._config = config
        self._base_files = tuple(Path(path) for path in base_files)
        config.intermediate_dir.mkdir(parents=True, exist_ok=True)
        self._cache = FileCacheByPath(config.cache_dir)
        self._renamer = DexRenameManager(config.intermediate_dir)
        if logger is None and config.step_log.enabled:
            logger = JsonlStepLogger(path=config.step_log_path)
        self._logger = logger
        self._pending: PackagingPlan | None = None
        self._renamer_stale = False
        self._sequence = logger.last_step_number() if logger is not None else 0

    @property
    def cache(self) -> FileCacheByPath:
        """Return the archive snapshot cache."""
        return self._cache

    @property
    def renamer(self) -> DexRenameManager:
        """Return the dex renamer."""
        return self._renamer

    def plan(self, changes: Mapping[Path, FileStatus]) -> PackagingPlan:
        """Compute the archive edits for a change record."""
        step_id = self._next_step_id()
        try:
            self._discard_pending()
            cache_updates: list[CacheUpdate] = []
            file_set = resolve_from_base_files(
                self._base_files,
                changes,
                self._cache,
                cache_updates,
                self._config.deletion_policy,
            )
            plan = self._build_plan(file_set, cache_updates)
        except Exception as exc:
            self._mark_stale()
            self._log(step_id, "plan", ok=False, error=exc, metadata={"changes": len(changes)})
            raise
        self._pending = plan
        self._log(step_id, "plan", ok=True, metadata={"changes": len(changes), **plan.summary()})
        return plan

    def bootstrap(self) -> PackagingPlan:
        """Compute the edits of a build from nothing over all base files."""
        step_id = self._next_step_id()
        try:
            self._discard_pending()
            self._renamer.reset()
            file_set = from_zips_and_directories(self._base_files)
            cache_updates = [
                CacheUpdate(cache=self._cache, action=CacheAction.ADD, path=path)
                for path in self._base_files
                if path.is_file()
            ]
            plan = self._build_plan(file_set, cache_updates)
        except Exception as exc:
            self._mark_stale()
            self._log(step_id, "bootstrap", ok=False, error=exc, metadata={})
            raise
        self._pending = plan
        self._log(
            step_id,
            "bootstrap",
            ok=True,
            metadata={"base_files": len(self._base_files), **plan.summary()},
        )
        return plan

    def commit(self, plan: PackagingPlan) -> None:
        """Persist the state a successfully applied plan relies on."""
        step_id = self._next_step_id()
        try:
            if self._pending is None or plan is not self._pending:
                raise PlanNotPendingError("Only the most recent pending plan can be committed.")
            # Cache updates are applied only once the renamer state is on disk.
            self._renamer.save()
            apply_cache_updates(plan.cache_updates)
        except Exception as exc:
            self._log(step_id, "commit", ok=False, error=exc, metadata={})
            raise
        self._pending = None
        self._log(step_id, "commit", ok=True, metadata={"cache_updates": len(plan.cache_updates)})

    def rollback(self) -> None:
        """Drop the pending plan, if any, and reload the renamer from disk."""
        self._discard_pending()

    def recent_events(
        self,
        operation: str | None = None,
        failed_only: bool = False,
        limit: int = 50,
    ) -> list[StepEvent]:
        """Return the latest logged step events; empty when the step log is disabled."""
        if self._logger is None:
            return []
        return self._logger.events(operation=operation, failed_only=failed_only, limit=limit)

    def is_dex_input(self, source: RelativeFile) -> bool:
        """Return True when a relative file is packaged as a dex slot."""
        return any(fnmatch.fnmatch(source.relative_path, glob) for glob in self._config.dex.globs)

    def _build_plan(
        self,
        file_set: IncrementalFileSet,
        cache_updates: list[CacheUpdate],
    ) -> PackagingPlan:
        dex_changes: IncrementalFileSet = {}
        other_changes: IncrementalFileSet = {}
        for source, status in file_set.items():
            if self.is_dex_input(source):
                dex_changes[source] = status
            else:
                other_changes[source] = status
        dex_updates = self._renamer.update(dex_changes)
        return PackagingPlan(
            dex_updates=frozenset(dex_updates),
            resource_updates=frozenset(java_resource_updates(other_changes)),
            cache_updates=tuple(cache_updates),
        )

    def _mark_stale(self) -> None:
        self._pending = None
        self._renamer_stale = True

    def _discard_pending(self) -> None:
        # The in-memory renamer only diverges from disk while a plan is pending.
        if self._pending is None and not self._renamer_stale:
            return
        self._pending = None
        self._renamer = DexRenameManager(self._config.intermediate_dir)
        self._renamer_stale = False

    def _next_step_id(self) -> str:
        self._sequence += 1
        return format_step_id(self._sequence)

    def _log(
        self,
        step_id: str,
        operation: str,
        ok: bool,
        metadata: dict[str, object],
        error: BaseException | None = None,
    ) -> None:
        if self._logger is None:
            return
        self._logger.append(
            StepEvent(
                timestamp=utc_timestamp(),
                step_id=step_id,
                operation=operation,
                ok=ok,
                error_code=error_code_for(error) if error is not None else None,
                metadata=sanitize_metadata(metadata),
            )
        )
