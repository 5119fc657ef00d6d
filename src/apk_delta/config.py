"""Configuration loading and deterministic merge order."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from apk_delta.files import FileDeletionPolicy

CONFIG_FILE_NAME = "apk_delta.toml"
DEFAULT_INTERMEDIATE_DIR = Path("build") / "intermediates" / "apk_delta"
DEFAULT_CACHE_DIR_NAME = "zip-cache"
DEFAULT_DEX_GLOBS = ("*.dex",)
DEFAULT_STEP_LOG_NAME = "steps.jsonl"


@dataclass(slots=True, frozen=True)
class DexConfig:
    """Selection of dex inputs among changed files."""

    globs: tuple[str, ...]


@dataclass(slots=True, frozen=True)
class StepLogConfig:
    """Step log toggles."""

    enabled: bool
    file_name: str


@dataclass(slots=True, frozen=True)
class PackagingConfig:
    """Fully merged packaging configuration."""

    project_root: Path
    intermediate_dir: Path
    cache_dir_name: str
    deletion_policy: FileDeletionPolicy
    dex: DexConfig
    step_log: StepLogConfig

    @property
    def cache_dir(self) -> Path:
        """Return the archive snapshot directory."""
        return self.intermediate_dir / self.cache_dir_name

    @property
    def step_log_path(self) -> Path:
        """Return the step log location."""
        return self.intermediate_dir / self.step_log.file_name

    def to_public_dict(self) -> dict[str, object]:
        """Return serializable config snapshot."""
        return {
            "project_root": str(self.project_root),
            "intermediate_dir": str(self.intermediate_dir),
            "cache_dir_name": self.cache_dir_name,
            "deletion_policy": self.deletion_policy.value,
            "dex": {
                "globs": list(self.dex.globs),
            },
            "step_log": {
                "enabled": self.step_log.enabled,
                "file_name": self.step_log.file_name,
            },
        }


@dataclass(slots=True, frozen=True)
class Overrides:
    """Optional caller overrides applied at highest precedence."""

    intermediate_dir: Path | None = None
    deletion_policy: FileDeletionPolicy | None = None
    dex_globs: tuple[str, ...] | None = None
    step_log_enabled: bool | None = None


def default_config(project_root: Path) -> PackagingConfig:
    """Build default config for a given project root."""
    resolved_root = project_root.resolve()
    return PackagingConfig(
        project_root=resolved_root,
        intermediate_dir=resolved_root / DEFAULT_INTERMEDIATE_DIR,
        cache_dir_name=DEFAULT_CACHE_DIR_NAME,
        deletion_policy=FileDeletionPolicy.ASSUME_NO_DELETED_DIRECTORIES,
        dex=DexConfig(globs=DEFAULT_DEX_GLOBS),
        step_log=StepLogConfig(enabled=True, file_name=DEFAULT_STEP_LOG_NAME),
    )


def load_project_config_file(project_root: Path) -> dict[str, object]:
    """Load optional apk_delta.toml from the project root."""
    config_path = project_root / CONFIG_FILE_NAME
    if not config_path.exists():
        return {}
    with config_path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        raise ValueError(f"{CONFIG_FILE_NAME} must contain a top-level table.")
    return payload


def _get_table(payload: dict[str, object], key: str) -> dict[str, object]:
    value = payload.get(key, {})
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{key}' must be a table.")
    return value


def _tuple_of_strings(value: object, section: str, field: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ValueError(f"Config field '{section}.{field}' must be a list of strings.")
    output: list[str] = []
    for item in value:
        if not isinstance(item, str) or not item:
            raise ValueError(
                f"Config field '{section}.{field}' must contain only non-empty strings."
            )
        output.append(item)
    return tuple(output)


def _simple_name(value: object, section: str, field: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError(f"Config field '{section}.{field}' must be a non-empty string.")
    if "/" in value or "\\" in value or value in {".", ".."}:
        raise ValueError(f"Config field '{section}.{field}' must be a plain file name.")
    return value


def _deletion_policy(value: object) -> FileDeletionPolicy:
    if not isinstance(value, str):
        raise ValueError("Config field 'changes.deletion_policy' must be a string.")
    try:
        return FileDeletionPolicy(value)
    except ValueError:
        allowed = ", ".join(policy.value for policy in FileDeletionPolicy)
        raise ValueError(
            f"Config field 'changes.deletion_policy' must be one of: {allowed}."
        ) from None


def merge_config(
    base: PackagingConfig, project_payload: dict[str, object], overrides: Overrides
) -> PackagingConfig:
    """Merge defaults, project config, then caller overrides."""
    state_payload = _get_table(project_payload, "state")
    changes_payload = _get_table(project_payload, "changes")
    dex_payload = _get_table(project_payload, "dex")
    logging_payload = _get_table(project_payload, "logging")

    intermediate_dir = base.intermediate_dir
    if "intermediate_dir" in state_payload:
        raw_dir = state_payload["intermediate_dir"]
        if not isinstance(raw_dir, str) or not raw_dir:
            raise ValueError("Config field 'state.intermediate_dir' must be a non-empty string.")
        intermediate_dir = base.project_root / raw_dir

    cache_dir_name = base.cache_dir_name
    if "cache_dir_name" in state_payload:
        cache_dir_name = _simple_name(state_payload["cache_dir_name"], "state", "cache_dir_name")

    deletion_policy = base.deletion_policy
    if "deletion_policy" in changes_payload:
        deletion_policy = _deletion_policy(changes_payload["deletion_policy"])

    dex_globs = base.dex.globs
    if "globs" in dex_payload:
        dex_globs = _tuple_of_strings(dex_payload["globs"], "dex", "globs")

    step_log_enabled = base.step_log.enabled
    if "step_log_enabled" in logging_payload:
        raw_enabled = logging_payload["step_log_enabled"]
        if not isinstance(raw_enabled, bool):
            raise ValueError("Config field 'logging.step_log_enabled' must be a boolean.")
        step_log_enabled = raw_enabled
    step_log_name = base.step_log.file_name
    if "step_log_name" in logging_payload:
        step_log_name = _simple_name(logging_payload["step_log_name"], "logging", "step_log_name")

    merged = PackagingConfig(
        project_root=base.project_root,
        intermediate_dir=intermediate_dir,
        cache_dir_name=cache_dir_name,
        deletion_policy=deletion_policy,
        dex=DexConfig(globs=dex_globs),
        step_log=StepLogConfig(enabled=step_log_enabled, file_name=step_log_name),
    )
    return apply_overrides(merged, overrides)


def apply_overrides(config: PackagingConfig, overrides: Overrides) -> PackagingConfig:
    """Apply caller overrides at highest precedence."""
    dex_globs = config.dex.globs
    if overrides.dex_globs is not None:
        dex_globs = _tuple_of_strings(list(overrides.dex_globs), "overrides", "dex_globs")
    intermediate_dir = overrides.intermediate_dir or config.intermediate_dir
    return PackagingConfig(
        project_root=config.project_root,
        intermediate_dir=intermediate_dir.resolve(),
        cache_dir_name=config.cache_dir_name,
        deletion_policy=overrides.deletion_policy or config.deletion_policy,
        dex=DexConfig(globs=dex_globs),
        step_log=StepLogConfig(
            enabled=(
                overrides.step_log_enabled
                if overrides.step_log_enabled is not None
                else config.step_log.enabled
            ),
            file_name=config.step_log.file_name,
        ),
    )


def load_effective_config(
    project_root: Path, overrides: Overrides | None = None
) -> PackagingConfig:
    """Load effective config using merge order defaults -> project config -> overrides."""
    resolved_root = project_root.resolve()
    base = default_config(resolved_root)
    payload = load_project_config_file(resolved_root)
    return merge_config(base, payload, overrides or Overrides())
