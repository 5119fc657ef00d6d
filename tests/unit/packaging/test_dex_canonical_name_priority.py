from __future__ import annotations

import itertools
from pathlib import Path

from apk_delta.files import FileStatus, RelativeFile
from apk_delta.packaging import (
    DexRenameManager,
    PackagedFileUpdate,
    dex_file_sort_key,
    slot_for_name,
    slot_name,
)


def _rel(path: str) -> RelativeFile:
    base, relative = path.split("/", 1)
    return RelativeFile(base=Path(base), relative_path=relative)


def _new(*paths: str) -> dict[RelativeFile, FileStatus]:
    return {_rel(path): FileStatus.NEW for path in paths}


def _by_name(updates: set[PackagedFileUpdate], name: str) -> PackagedFileUpdate:
    (match,) = [update for update in updates if update.name == name]
    return match


def test_classes_dex_is_not_renamed(tmp_path: Path) -> None:
    mgr = DexRenameManager(tmp_path)

    (first,) = mgr.update(_new("x/y/classes.dex"))
    assert first.name == "classes.dex"
    assert first.source.relative_path == "y/classes.dex"

    (second,) = mgr.update(_new("a/b/classes.dex"))
    assert second.name == "classes2.dex"
    assert second.source.relative_path == "b/classes.dex"


def test_initial_classes_dex_name_is_kept_for_any_input_order(tmp_path: Path) -> None:
    paths = ("a/abc.dex", "a/classes.dex", "a/foo.dex")
    for index, ordering in enumerate(itertools.permutations(paths)):
        directory = tmp_path / str(index)
        directory.mkdir()
        mgr = DexRenameManager(directory)

        updates = mgr.update(_new(*ordering))

        assert _by_name(updates, "classes.dex").source.relative_path == "classes.dex"
        assert {update.name for update in updates} == {
            "classes.dex",
            "classes2.dex",
            "classes3.dex",
        }


def test_multiple_classes_dex_added_picks_first_base(tmp_path: Path) -> None:
    mgr = DexRenameManager(tmp_path)
    mgr.update(_new("x/a"))

    updates = mgr.update(_new("y/classes.dex", "x/classes.dex"))

    assert _by_name(updates, "classes.dex") == PackagedFileUpdate(
        source=_rel("x/classes.dex"), name="classes.dex", status=FileStatus.CHANGED
    )
    assert _by_name(updates, "classes2.dex").source == _rel("y/classes.dex")
    assert _by_name(updates, "classes3.dex").source == _rel("x/a")
    assert len(updates) == 3


def test_classes_dex_is_removed_and_later_added(tmp_path: Path) -> None:
    mgr = DexRenameManager(tmp_path)
    (first,) = mgr.update(_new("x/y/classes.dex"))
    assert first.name == "classes.dex"
    (second,) = mgr.update(_new("x/y/aaa.dex"))
    assert second.name == "classes2.dex"

    removal = mgr.update({_rel("x/y/classes.dex"): FileStatus.REMOVED})
    assert removal == {
        PackagedFileUpdate(_rel("x/y/aaa.dex"), "classes.dex", FileStatus.CHANGED),
        PackagedFileUpdate(_rel("x/y/aaa.dex"), "classes2.dex", FileStatus.REMOVED),
    }

    readd = mgr.update(_new("x/y/z/classes.dex"))
    assert readd == {
        PackagedFileUpdate(_rel("x/y/z/classes.dex"), "classes.dex", FileStatus.CHANGED),
        PackagedFileUpdate(_rel("x/y/aaa.dex"), "classes2.dex", FileStatus.NEW),
    }


def test_classes_dex_in_slot_one_survives_compaction(tmp_path: Path) -> None:
    mgr = DexRenameManager(tmp_path)
    mgr.update(_new("x/classes.dex", "x/b", "x/c"))

    updates = mgr.update({_rel("x/b"): FileStatus.REMOVED})

    assert updates == {
        PackagedFileUpdate(_rel("x/c"), "classes2.dex", FileStatus.CHANGED),
        PackagedFileUpdate(_rel("x/c"), "classes3.dex", FileStatus.REMOVED),
    }
    assert mgr.assignments()["classes.dex"] == _rel("x/classes.dex")


def test_dex_file_ordering() -> None:
    def before(first: str, second: str) -> bool:
        return dex_file_sort_key(_rel(first)) < dex_file_sort_key(_rel(second))

    # Both named classes.dex: by base.
    assert before("x/classes.dex", "y/classes.dex")
    assert not before("y/classes.dex", "x/classes.dex")
    assert dex_file_sort_key(_rel("x/classes.dex")) == dex_file_sort_key(_rel("x/classes.dex"))

    # Only one named classes.dex: it comes first.
    assert before("x/classes.dex", "x/classes2.dex")
    assert not before("x/classes2.dex", "x/classes.dex")
    assert before("z/classes.dex", "a/classes2.dex")

    # Neither: by base, then by relative path.
    assert before("x/classes2.dex", "x/classes3.dex")
    assert not before("x/classes3.dex", "x/classes2.dex")
    assert before("x/classes3.dex", "y/classes2.dex")
    assert not before("y/classes2.dex", "x/classes3.dex")


def test_slot_names_round_trip() -> None:
    assert slot_name(1) == "classes.dex"
    assert slot_name(2) == "classes2.dex"
    assert slot_name(17) == "classes17.dex"
    assert slot_for_name("classes.dex") == 1
    assert slot_for_name("classes17.dex") == 17
    assert slot_for_name("classes1.dex") is None
    assert slot_for_name("classes02.dex") is None
    assert slot_for_name("other.dex") is None
