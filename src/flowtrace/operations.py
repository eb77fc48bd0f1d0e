"""Operations that flow code can call while an execution is traced."""

from __future__ import annotations
from collections.abc import Mapping
from typing import Any
from flowtrace.tracing.handler import NotificationHandler


class TraceOperations:
    """Expose the open trace of an execution to the flow itself."""

    def __init__(self, handler: NotificationHandler | None) -> None:
        """Wrap ``handler``; ``None`` means tracing is disabled."""
        self._handler = handler

    def add_custom_attributes(
        self, correlation_id: str, attributes: Mapping[str, Any]
    ) -> bool:
        """Tag the innermost open pipeline span; ``False`` if none is open."""
        if self._handler is None or not attributes:
            return False
        return self._handler.add_pipeline_attributes(correlation_id, attributes)

    def get_trace_context(self, correlation_id: str) -> dict[str, str]:
        """Return ``traceparent``/``tracestate`` headers for outbound calls."""
        if self._handler is None:
            return {}
        return self._handler.trace_context(correlation_id)

    def get_trace_id(self, correlation_id: str) -> str | None:
        """Return the trace id of the execution, if it is being traced."""
        if self._handler is None:
            return None
        return self._handler.trace_id(correlation_id)


__all__ = ["TraceOperations"]
