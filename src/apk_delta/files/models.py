"""Typed models for relative files and incremental file sets."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath


class FileStatus(Enum):
    """Status of a file relative to the previous build."""

    NEW = "new"
    CHANGED = "changed"
    REMOVED = "removed"


class BaseKind(Enum):
    """Kind of location a relative file is expressed against."""

    DIRECTORY = "directory"
    ARCHIVE = "archive"


@dataclass(slots=True, frozen=True)
class RelativeFile:
    """A file identified by its base location and an OS-independent relative path."""

    base: Path
    relative_path: str
    kind: BaseKind = BaseKind.DIRECTORY

    def __post_init__(self) -> None:
        if not self.relative_path:
            raise ValueError("Relative path is empty.")
        if "\\" in self.relative_path:
            raise ValueError(f"Relative path must use '/' separators: {self.relative_path!r}")
        if self.relative_path.startswith("/"):
            raise ValueError(f"Relative path must not be absolute: {self.relative_path!r}")
        if any(segment in {".", ".."} for segment in self.relative_path.split("/")):
            raise ValueError(
                f"Relative path must not contain '.' or '..' segments: {self.relative_path!r}"
            )

    @classmethod
    def from_file(
        cls,
        base: Path,
        file: Path,
        kind: BaseKind = BaseKind.DIRECTORY,
    ) -> RelativeFile:
        """Build a relative file from a base and a path located underneath it."""
        base_path = Path(base)
        file_path = Path(file)
        if base_path == file_path:
            raise ValueError(f"File must not be its own base: {file_path}")
        if not file_path.is_relative_to(base_path):
            raise ValueError(f"File {file_path} is not located under {base_path}.")
        relative = file_path.relative_to(base_path).as_posix()
        return cls(base=base_path, relative_path=relative, kind=kind)

    @property
    def name(self) -> str:
        """Return the last segment of the relative path."""
        return PurePosixPath(self.relative_path).name

    @property
    def file(self) -> Path:
        """Return the on-disk location for directory-based files."""
        return self.base.joinpath(*self.relative_path.split("/"))

    def __str__(self) -> str:
        return f"{self.base.as_posix()}!{self.relative_path}"


IncrementalFileSet = dict[RelativeFile, FileStatus]
