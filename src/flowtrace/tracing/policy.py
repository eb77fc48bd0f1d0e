"""Span generation policy evaluation."""

from __future__ import annotations
from collections.abc import Collection
from enum import Enum


class SpanDecision(str, Enum):
    """Outcome of evaluating the span policy for one event."""

    EMIT = "emit"
    SUPPRESS = "suppress"


def is_excluded(processor_id: str, excluded: Collection[str]) -> bool:
    """Return ``True`` when ``processor_id`` or its component is excluded.

    An entry ``"core:logger"`` matches both ``"core:logger"`` and located ids
    such as ``"core:logger/42"``.
    """
    if not excluded:
        return False
    if processor_id in excluded:
        return True
    component, sep, _ = processor_id.partition("/")
    return bool(sep) and component in excluded


def evaluate_processor_span(
    tracing_enabled: bool,
    generate_processor_spans: bool,
    excluded: Collection[str],
    processor_id: str,
) -> SpanDecision:
    """Decide whether a processor event may touch a span."""
    if not tracing_enabled or not generate_processor_spans:
        return SpanDecision.SUPPRESS
    if is_excluded(processor_id, excluded):
        return SpanDecision.SUPPRESS
    return SpanDecision.EMIT


__all__ = ["SpanDecision", "evaluate_processor_span", "is_excluded"]
