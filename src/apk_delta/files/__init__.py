"""Relative files, content snapshots and incremental file sets."""

from .cache import CacheAction, CacheUpdate, FileCacheByPath, apply_cache_updates, cache_key
from .file_sets import (
    FileDeletionNotAllowedError,
    FileDeletionPolicy,
    count_distinct_base_directories,
    from_archive,
    from_cached_archive,
    from_directory,
    from_zips_and_directories,
    resolve_from_base_files,
    union,
)
from .models import BaseKind, FileStatus, IncrementalFileSet, RelativeFile
from .relative_files import (
    from_path_predicate,
    normalize_relative_path,
    relative_files_from_archive,
    relative_files_from_directory,
)

__all__ = [
    "BaseKind",
    "CacheAction",
    "CacheUpdate",
    "FileCacheByPath",
    "FileDeletionNotAllowedError",
    "FileDeletionPolicy",
    "FileStatus",
    "IncrementalFileSet",
    "RelativeFile",
    "apply_cache_updates",
    "cache_key",
    "count_distinct_base_directories",
    "from_archive",
    "from_cached_archive",
    "from_directory",
    "from_path_predicate",
    "from_zips_and_directories",
    "normalize_relative_path",
    "relative_files_from_archive",
    "relative_files_from_directory",
    "resolve_from_base_files",
    "union",
]
