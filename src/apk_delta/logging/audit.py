"""Structured JSONL log of incremental packaging steps."""

from __future__ import annotations

import json
from collections.abc import Iterator
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path

STEP_ID_PREFIX = "step"


@dataclass(slots=True, frozen=True)
class StepEvent:
    """Sanitized record of one packaging operation."""

    timestamp: str
    step_id: str
    operation: str
    ok: bool
    error_code: str | None
    metadata: dict[str, object]


def utc_timestamp() -> str:
    """Return an ISO-8601 UTC timestamp."""
    return datetime.now(tz=UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def sanitize_metadata(metadata: dict[str, object]) -> dict[str, object]:
    """Keep scalar values and reduce collections and paths to their sizes."""
    sanitized: dict[str, object] = {}
    for key in sorted(metadata.keys()):
        value = metadata[key]
        if isinstance(value, (int, float, bool)) or value is None:
            sanitized[key] = value
            continue
        if isinstance(value, str):
            sanitized[key] = value
            continue
        if isinstance(value, Path):
            sanitized[key] = value.as_posix()
            continue
        if isinstance(value, dict):
            sanitized[f"{key}_type"] = "dict"
            sanitized[f"{key}_keys"] = sorted(str(k) for k in value.keys())
            continue
        if isinstance(value, (list, tuple, set, frozenset)):
            sanitized[f"{key}_type"] = type(value).__name__
            sanitized[f"{key}_length"] = len(value)
            continue
        sanitized[f"{key}_type"] = type(value).__name__
    return sanitized


class JsonlStepLogger:
    """Append-only JSONL log of packaging steps.

    Lines that do not decode to a complete step event are skipped on read.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        """Return on-disk JSONL path."""
        return self._path

    def append(self, event: StepEvent) -> None:
        """Append an event as one JSON object per line."""
        line = json.dumps(asdict(event), sort_keys=True)
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")

    def events(
        self,
        operation: str | None = None,
        step_id: str | None = None,
        failed_only: bool = False,
        limit: int = 50,
    ) -> list[StepEvent]:
        """Return the most recent matching events, oldest first."""
        if limit < 1:
            return []
        matched = [
            event
            for event in self._iter_events()
            if (operation is None or event.operation == operation)
            and (step_id is None or event.step_id == step_id)
            and not (failed_only and event.ok)
        ]
        return matched[-limit:]

    def last_step_number(self) -> int:
        """Return the highest ``step-NNNNNN`` number logged so far, 0 when none."""
        latest = 0
        for event in self._iter_events():
            prefix, _, digits = event.step_id.partition("-")
            if prefix == STEP_ID_PREFIX and digits.isdigit():
                latest = max(latest, int(digits))
        return latest

    def _iter_events(self) -> Iterator[StepEvent]:
        if not self._path.exists():
            return
        with self._path.open("r", encoding="utf-8", errors="replace") as handle:
            for line in handle:
                event = _parse_event(line)
                if event is not None:
                    yield event


def format_step_id(number: int) -> str:
    """Return the step id for a sequence number."""
    return f"{STEP_ID_PREFIX}-{number:06d}"


def _parse_event(line: str) -> StepEvent | None:
    stripped = line.strip()
    if not stripped:
        return None
    try:
        record = json.loads(stripped)
    except json.JSONDecodeError:
        return None
    if not isinstance(record, dict):
        return None
    timestamp = record.get("timestamp")
    step_id = record.get("step_id")
    operation = record.get("operation")
    ok = record.get("ok")
    error_code = record.get("error_code")
    metadata = record.get("metadata")
    if not all(isinstance(value, str) for value in (timestamp, step_id, operation)):
        return None
    if not isinstance(ok, bool) or not isinstance(metadata, dict):
        return None
    if error_code is not None and not isinstance(error_code, str):
        return None
    return StepEvent(
        timestamp=timestamp,
        step_id=step_id,
        operation=operation,
        ok=ok,
        error_code=error_code,
        metadata=metadata,
    )
