from __future__ import annotations

from pathlib import Path

import pytest

from apk_delta.files import BaseKind, RelativeFile


def test_relative_file_from_file_computes_posix_relative_path(tmp_path: Path) -> None:
    base = tmp_path / "basic"
    rf = RelativeFile.from_file(base, base / "foo" / "bar")

    assert rf.base == base
    assert rf.relative_path == "foo/bar"
    assert rf.kind is BaseKind.DIRECTORY
    assert rf.name == "bar"
    assert rf.file == base / "foo" / "bar"
    assert "basic" in str(rf)
    assert "foo/bar" in str(rf)


def test_relative_file_accepts_non_existing_file_and_base(tmp_path: Path) -> None:
    base = tmp_path / "missing"
    rf = RelativeFile.from_file(base, base / "bar")
    assert rf.relative_path == "bar"
    assert not base.exists()


def test_relative_file_rejects_base_equal_to_file(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="own base"):
        RelativeFile.from_file(tmp_path, tmp_path)


def test_relative_file_rejects_file_outside_base(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="not located under"):
        RelativeFile.from_file(tmp_path / "a", tmp_path / "b" / "c")


def test_relative_file_rejects_empty_or_os_dependent_paths(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="empty"):
        RelativeFile(base=tmp_path, relative_path="")
    with pytest.raises(ValueError, match="separators"):
        RelativeFile(base=tmp_path, relative_path="a\\b")
    with pytest.raises(ValueError, match="absolute"):
        RelativeFile(base=tmp_path, relative_path="/a")


def test_relative_file_rejects_dot_segments(tmp_path: Path) -> None:
    for relative_path in (".", "..", "a/./b", "a/../b", "../escape"):
        with pytest.raises(ValueError, match="segments"):
            RelativeFile(base=tmp_path, relative_path=relative_path)

    assert RelativeFile(base=tmp_path, relative_path=".hidden/a..b").name == "a..b"


def test_relative_file_equality_uses_base_path_and_kind(tmp_path: Path) -> None:
    base = tmp_path / "base"
    same_a = RelativeFile.from_file(base, base / "relative")
    same_b = RelativeFile(base=base, relative_path="relative")
    other_path = RelativeFile(base=base, relative_path="relative2")
    other_base = RelativeFile(base=tmp_path / "base2", relative_path="relative")
    other_kind = RelativeFile(base=base, relative_path="relative", kind=BaseKind.ARCHIVE)

    assert same_a == same_b
    assert hash(same_a) == hash(same_b)
    assert same_a != other_path
    assert same_a != other_base
    assert same_a != other_kind
    assert len({same_a, same_b, other_path, other_base, other_kind}) == 4
