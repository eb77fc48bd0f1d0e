"""Per-execution span state kept by the notification handler."""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from opentelemetry.trace import Span


class SpanRole(str, Enum):
    """Kind of operation an active span represents."""

    PIPELINE = "pipeline"
    PROCESSOR = "processor"


@dataclass(slots=True)
class ActiveSpan:
    """An open span together with what it was opened for."""

    span: Span
    role: SpanRole
    name: str
    start_time_ns: int | None = None
    processor_id: str | None = None

    def matches_processor(self, processor_id: str) -> bool:
        """Return ``True`` for the processor entry opened for ``processor_id``."""
        return self.role is SpanRole.PROCESSOR and self.processor_id == processor_id

    def matches_pipeline(self, pipeline_name: str | None) -> bool:
        """Return ``True`` for a pipeline entry, by name when one is given."""
        if self.role is not SpanRole.PIPELINE:
            return False
        return pipeline_name is None or self.name == pipeline_name


@dataclass(slots=True)
class ExecutionContext:
    """Strictly nested stack of open spans for one correlation id.

    Callers must hold ``lock`` while reading or mutating the stack.
    """

    correlation_id: str
    stack: list[ActiveSpan] = field(default_factory=list)
    lock: Lock = field(default_factory=Lock)
    closed: bool = False

    @property
    def top(self) -> ActiveSpan | None:
        """Return the most recently opened entry."""
        return self.stack[-1] if self.stack else None

    @property
    def empty(self) -> bool:
        """Return ``True`` when no span is open."""
        return not self.stack

    def push(self, entry: ActiveSpan) -> None:
        """Open ``entry`` on top of the stack."""
        self.stack.append(entry)

    def find_processor(self, processor_id: str) -> int | None:
        """Return the index of the innermost entry for ``processor_id``."""
        for index in range(len(self.stack) - 1, -1, -1):
            if self.stack[index].matches_processor(processor_id):
                return index
        return None

    def find_pipeline(self, pipeline_name: str | None) -> int | None:
        """Return the index of the innermost matching pipeline entry."""
        for index in range(len(self.stack) - 1, -1, -1):
            if self.stack[index].matches_pipeline(pipeline_name):
                return index
        return None

    def innermost_pipeline(self) -> ActiveSpan | None:
        """Return the innermost open pipeline entry."""
        index = self.find_pipeline(None)
        return None if index is None else self.stack[index]

    def pop_above(self, index: int) -> list[ActiveSpan]:
        """Remove and return entries above ``index``, innermost first."""
        above = self.stack[index + 1 :]
        del self.stack[index + 1 :]
        above.reverse()
        return above

    def pop(self) -> ActiveSpan:
        """Remove and return the top entry."""
        return self.stack.pop()


__all__ = ["ActiveSpan", "ExecutionContext", "SpanRole"]
