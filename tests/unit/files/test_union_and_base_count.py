from __future__ import annotations

import zipfile
from pathlib import Path

from apk_delta.files import (
    BaseKind,
    FileStatus,
    RelativeFile,
    count_distinct_base_directories,
    from_archive,
    from_directory,
    union,
)


def _write_zip(path: Path, entries: dict[str, bytes]) -> Path:
    with zipfile.ZipFile(path, "w") as handle:
        for name, data in entries.items():
            handle.writestr(name, data)
    return path


def test_union_of_no_sets_is_empty() -> None:
    assert union([]) == {}


def test_union_merges_sets_and_keeps_one_conflicting_status(tmp_path: Path) -> None:
    archive = tmp_path / "foo1"
    b = RelativeFile(base=archive, relative_path="a/b", kind=BaseKind.ARCHIVE)
    c = RelativeFile(base=archive, relative_path="a/c", kind=BaseKind.ARCHIVE)
    d = RelativeFile(base=archive, relative_path="d", kind=BaseKind.ARCHIVE)
    first = {b: FileStatus.NEW, d: FileStatus.NEW}
    second = {c: FileStatus.CHANGED, d: FileStatus.CHANGED}

    merged = union([first, second])

    assert set(merged) == {b, c, d}
    assert merged[b] is FileStatus.NEW
    assert merged[c] is FileStatus.CHANGED
    assert merged[d] in {FileStatus.NEW, FileStatus.CHANGED}
    assert first == {b: FileStatus.NEW, d: FileStatus.NEW}


def test_base_directory_count_on_empty_set() -> None:
    assert count_distinct_base_directories({}) == 0


def test_base_directory_count_single_directory(tmp_path: Path) -> None:
    directory = tmp_path / "foo"
    directory.mkdir()
    (directory / "f0").write_bytes(b"")
    (directory / "f1").write_bytes(b"")

    assert count_distinct_base_directories(from_directory(directory)) == 1


def test_base_directory_count_ignores_archives(tmp_path: Path) -> None:
    foo = tmp_path / "foo"
    bar = tmp_path / "bar"
    for directory in (foo, bar):
        directory.mkdir()
        (directory / "x0").write_bytes(b"")
        (directory / "x1").write_bytes(b"")
    fooz = _write_zip(tmp_path / "fooz", {"f0z": b""})
    barz = _write_zip(tmp_path / "barz", {"f0z": b""})

    merged = union(
        [from_directory(bar), from_directory(foo), from_archive(fooz), from_archive(barz)]
    )

    assert len(merged) == 6
    assert count_distinct_base_directories(merged) == 2
