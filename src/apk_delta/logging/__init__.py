"""Structured logging utilities."""

from .audit import (
    STEP_ID_PREFIX,
    JsonlStepLogger,
    StepEvent,
    format_step_id,
    sanitize_metadata,
    utc_timestamp,
)

__all__ = [
    "JsonlStepLogger",
    "STEP_ID_PREFIX",
    "StepEvent",
    "format_step_id",
    "sanitize_metadata",
    "utc_timestamp",
]
