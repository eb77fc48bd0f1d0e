"""Span attribute names and value coercion."""

from __future__ import annotations
import json
from collections.abc import Mapping
from datetime import datetime
from typing import Any
from opentelemetry.trace import Span


PIPELINE_NAME = "flowtrace.pipeline.name"
CORRELATION_ID = "flowtrace.correlation_id"
PROCESSOR_ID = "flowtrace.processor.id"
PROCESSOR_NAME = "flowtrace.processor.name"
SPAN_ROLE = "flowtrace.span.role"
FORCE_CLOSED = "flowtrace.span.force_closed"
ERROR_TYPE = "flowtrace.error.type"

_MAX_STRING_LENGTH = 2048
_MAX_COLLECTION_ITEMS = 25
_TRUNCATED_SENTINEL = "…"


def normalize_attributes(attributes: Mapping[str, Any] | None) -> dict[str, Any]:
    """Convert arbitrary notification values into OpenTelemetry attributes."""
    if not attributes:
        return {}
    normalized: dict[str, Any] = {}
    for key, value in attributes.items():
        if value is None:
            continue
        normalized[str(key)] = _coerce_value(value)
    return normalized


def set_attributes(span: Span, attributes: Mapping[str, Any] | None) -> None:
    """Apply ``attributes`` to ``span`` after normalisation."""
    for key, value in normalize_attributes(attributes).items():
        span.set_attribute(key, value)


def to_time_ns(timestamp: datetime | int | float | None) -> int | None:
    """Convert a notification timestamp to epoch nanoseconds.

    Integers are taken as nanoseconds, floats as seconds.
    """
    if timestamp is None:
        return None
    if isinstance(timestamp, datetime):
        return int(timestamp.timestamp() * 1_000_000_000)
    if isinstance(timestamp, bool):
        return None
    if isinstance(timestamp, int):
        return timestamp
    if isinstance(timestamp, float):
        return int(timestamp * 1_000_000_000)
    return None


def _coerce_value(value: Any) -> Any:
    if isinstance(value, str):
        return _truncate_string(value)
    if isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, (list, tuple)):
        if all(isinstance(item, str) for item in value):
            return _truncate_sequence(list(value))
        if all(
            isinstance(item, (bool, int, float)) and type(item) is type(value[0])
            for item in value
        ):
            return list(value[:_MAX_COLLECTION_ITEMS])
    return _stringify(value)


def _stringify(value: Any) -> str:
    try:
        return _truncate_string(json.dumps(value, default=str))
    except (TypeError, ValueError):  # pragma: no cover - defensive
        return _truncate_string(str(value))


def _truncate_sequence(values: list[str]) -> list[str]:
    if len(values) <= _MAX_COLLECTION_ITEMS and all(
        len(value) <= _MAX_STRING_LENGTH for value in values
    ):
        return values

    truncated = [_truncate_string(value) for value in values[:_MAX_COLLECTION_ITEMS]]
    if len(values) > _MAX_COLLECTION_ITEMS:
        truncated.append(f"...(+{len(values) - _MAX_COLLECTION_ITEMS} more)")
    return truncated


def _truncate_string(value: str) -> str:
    if len(value) <= _MAX_STRING_LENGTH:
        return value
    return value[: _MAX_STRING_LENGTH - 1] + _TRUNCATED_SENTINEL


__all__ = [
    "CORRELATION_ID",
    "ERROR_TYPE",
    "FORCE_CLOSED",
    "PIPELINE_NAME",
    "PROCESSOR_ID",
    "PROCESSOR_NAME",
    "SPAN_ROLE",
    "normalize_attributes",
    "set_attributes",
    "to_time_ns",
]
