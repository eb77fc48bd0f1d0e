"""Value coercion helpers shared by the configuration models."""

from __future__ import annotations
import json
from collections.abc import Iterable, Mapping
from typing import Any


def coerce_mapping(source: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return a plain ``dict`` for mappings and Dynaconf instances."""
    if source is None:
        return {}
    if hasattr(source, "as_dict"):
        return dict(source.as_dict())  # type: ignore[call-arg]
    if isinstance(source, Mapping):
        return dict(source)
    return {}


def to_bool(value: Any, *, default: Any) -> bool:
    """Interpret common textual booleans, falling back to ``default``."""
    if value is None:
        return bool(default)
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "on"}:
        return True
    if text in {"0", "false", "no", "off"}:
        return False
    return bool(default)


def to_optional_str(value: Any) -> str | None:
    """Return a stripped string or ``None`` for blank values."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def ensure_str_dict(value: Any) -> dict[str, str]:
    """Normalise header or attribute collections into ``dict[str, str]``."""
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return {str(key): str(val) for key, val in value.items()}
    if isinstance(value, str):
        return parse_pairs(value)
    return {}


def parse_pairs(value: str) -> dict[str, str]:
    """Parse JSON objects or ``key=value`` lists separated by ``,`` or ``;``."""
    text = value.strip()
    if not text:
        return {}
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        parsed = None
    if isinstance(parsed, Mapping):
        return {str(key): str(val) for key, val in parsed.items()}

    pairs: dict[str, str] = {}
    for entry in text.replace(";", ",").split(","):
        if "=" not in entry:
            continue
        key, item = entry.split("=", 1)
        key = key.strip()
        item = item.strip()
        if key and item:
            pairs[key] = item
    return pairs


def to_str_tuple(value: Any) -> tuple[str, ...]:
    """Return an ordered, de-duplicated tuple of non-empty strings."""
    if value is None:
        return ()
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                decoded = json.loads(text)
            except json.JSONDecodeError:
                decoded = None
            if isinstance(decoded, list):
                return to_str_tuple(decoded)
        items: Iterable[Any] = text.split(",")
    elif isinstance(value, Iterable):
        items = value
    else:
        items = [value]

    seen: dict[str, None] = {}
    for item in items:
        candidate = to_optional_str(item)
        if candidate is not None:
            seen.setdefault(candidate, None)
    return tuple(seen)


def coerce_choice(value: Any, *, allowed: set[str], default: str) -> str:
    """Lower-case ``value`` and return it when allowed, else raise."""
    if value is None:
        return default
    candidate = str(value).strip().lower()
    if not candidate:
        return default
    if candidate not in allowed:
        choices = ", ".join(sorted(allowed))
        msg = f"'{value}' is not one of: {choices}."
        raise ValueError(msg)
    return candidate


__all__ = [
    "coerce_choice",
    "coerce_mapping",
    "ensure_str_dict",
    "parse_pairs",
    "to_bool",
    "to_optional_str",
    "to_str_tuple",
]
