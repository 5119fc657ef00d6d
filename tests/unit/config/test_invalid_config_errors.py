from __future__ import annotations

from pathlib import Path

import pytest

from apk_delta.config import Overrides, load_effective_config


def _write_config(root: Path, *lines: str) -> None:
    (root / "apk_delta.toml").write_text("\n".join(lines), encoding="utf-8")


def test_invalid_section_type_raises_value_error(tmp_path: Path) -> None:
    _write_config(tmp_path, 'dex = "not-a-table"')

    with pytest.raises(ValueError, match="section 'dex'"):
        load_effective_config(tmp_path)


def test_unknown_deletion_policy_lists_allowed_values(tmp_path: Path) -> None:
    _write_config(tmp_path, "[changes]", 'deletion_policy = "sometimes"')

    with pytest.raises(ValueError, match="changes.deletion_policy' must be one of"):
        load_effective_config(tmp_path)


def test_globs_must_be_list_of_strings(tmp_path: Path) -> None:
    _write_config(tmp_path, "[dex]", 'globs = "*.dex"')

    with pytest.raises(ValueError, match="dex.globs"):
        load_effective_config(tmp_path)


def test_empty_glob_is_rejected(tmp_path: Path) -> None:
    _write_config(tmp_path, "[dex]", 'globs = ["*.dex", ""]')

    with pytest.raises(ValueError, match="non-empty strings"):
        load_effective_config(tmp_path)


def test_cache_dir_name_must_be_plain_name(tmp_path: Path) -> None:
    _write_config(tmp_path, "[state]", 'cache_dir_name = "nested/cache"')

    with pytest.raises(ValueError, match="state.cache_dir_name"):
        load_effective_config(tmp_path)


def test_empty_intermediate_dir_is_rejected(tmp_path: Path) -> None:
    _write_config(tmp_path, "[state]", 'intermediate_dir = ""')

    with pytest.raises(ValueError, match="state.intermediate_dir"):
        load_effective_config(tmp_path)


def test_step_log_toggle_must_be_boolean(tmp_path: Path) -> None:
    _write_config(tmp_path, "[logging]", 'step_log_enabled = "yes"')

    with pytest.raises(ValueError, match="logging.step_log_enabled"):
        load_effective_config(tmp_path)


def test_override_globs_are_validated(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="overrides.dex_globs"):
        load_effective_config(tmp_path, Overrides(dex_globs=("",)))
