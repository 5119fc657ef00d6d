"""Deterministic discovery of relative files in directories and archives."""

from __future__ import annotations

import os
import zipfile
from collections.abc import Callable
from pathlib import Path

from apk_delta.files.models import BaseKind, RelativeFile

RelativeFilePredicate = Callable[[RelativeFile], bool]


def relative_files_from_directory(
    directory: Path,
    accept: RelativeFilePredicate | None = None,
) -> set[RelativeFile]:
    """Collect every regular file below a directory, recursively."""
    root = Path(directory)
    output: set[RelativeFile] = set()
    stack: list[Path] = [root]
    while stack:
        current = stack.pop()
        with os.scandir(current) as entries:
            ordered_entries = sorted(entries, key=lambda item: item.name)
        for entry in reversed(ordered_entries):
            full_path = Path(entry.path)
            if entry.is_dir(follow_symlinks=False):
                stack.append(full_path)
                continue
            if not entry.is_file():
                continue
            relative = RelativeFile.from_file(root, full_path)
            if accept is not None and not accept(relative):
                continue
            output.add(relative)
    return output


def relative_files_from_archive(
    archive: Path,
    accept: RelativeFilePredicate | None = None,
) -> set[RelativeFile]:
    """Collect every regular-file entry of a zip archive."""
    base = Path(archive)
    output: set[RelativeFile] = set()
    for name in file_entries(base):
        relative = RelativeFile(base=base, relative_path=name, kind=BaseKind.ARCHIVE)
        if accept is not None and not accept(relative):
            continue
        output.add(relative)
    return output


def file_entries(archive: Path) -> dict[str, zipfile.ZipInfo]:
    """Map regular-file entry names of an archive to their central directory records."""
    output: dict[str, zipfile.ZipInfo] = {}
    with zipfile.ZipFile(archive, "r") as handle:
        for info in handle.infolist():
            if info.is_dir():
                continue
            name = normalize_relative_path(info.filename)
            if not name:
                continue
            output[name] = info
    return output


def from_path_predicate(predicate: Callable[[str], bool]) -> RelativeFilePredicate:
    """Adapt a predicate over relative path strings to one over relative files."""

    def accept(relative: RelativeFile) -> bool:
        return predicate(relative.relative_path)

    return accept


def normalize_relative_path(text: str) -> str:
    """Normalize separators and redundant segments of a relative path."""
    normalized = text.replace("\\", "/").strip()
    while "//" in normalized:
        normalized = normalized.replace("//", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized.lstrip("/")
