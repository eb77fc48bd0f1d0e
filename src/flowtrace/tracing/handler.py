"""Notification-driven construction of pipeline and processor spans."""

from __future__ import annotations
import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from threading import Lock
from typing import Any
from opentelemetry import trace
from opentelemetry.context import Context as OtelContext
from opentelemetry.trace import SpanKind, Status, StatusCode
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator
from opentelemetry.trace.span import format_trace_id
from flowtrace.config.span_settings import SpanGenerationConfig
from flowtrace.tracing.attributes import (
    CORRELATION_ID,
    FORCE_CLOSED,
    PIPELINE_NAME,
    PROCESSOR_ID,
    PROCESSOR_NAME,
    SPAN_ROLE,
    normalize_attributes,
    set_attributes,
    to_time_ns,
)
from flowtrace.tracing.connection import Connection, TelemetryConnection
from flowtrace.tracing.context import ActiveSpan, ExecutionContext, SpanRole
from flowtrace.tracing.outcome import Outcome, apply_outcome
from flowtrace.tracing.policy import SpanDecision, evaluate_processor_span


logger = logging.getLogger(__name__)

Timestamp = datetime | int | float | None
ConnectionSupplier = Callable[[], Connection]

_FORCE_CLOSE_REASON = "Span force-closed: no end notification received"


class NotificationHandler:
    """Maintain one span stack per correlation id and emit spans.

    The context map is guarded by a short-lived lock used only to look up,
    insert and evict entries. Each ``ExecutionContext`` carries its own lock
    that serialises events of one execution, so unrelated executions never
    wait on each other. A context lock may be held while taking the map lock,
    never the other way round.
    """

    def __init__(
        self,
        connection_supplier: ConnectionSupplier,
        *,
        tracing_enabled: bool = True,
        span_generation: SpanGenerationConfig | None = None,
    ) -> None:
        """Create a handler that obtains its connection lazily."""
        self._connection_supplier = connection_supplier
        self._tracing_enabled = tracing_enabled
        self._span_generation = span_generation or SpanGenerationConfig()
        self._excluded = self._span_generation.excluded
        self._contexts: dict[str, ExecutionContext] = {}
        self._contexts_lock = Lock()
        self._propagator = TraceContextTextMapPropagator()

    @property
    def tracing_enabled(self) -> bool:
        """Return whether this handler emits spans at all."""
        return self._tracing_enabled

    @property
    def active_executions(self) -> int:
        """Return the number of executions with open spans."""
        with self._contexts_lock:
            return len(self._contexts)

    def processor_decision(self, processor_id: str) -> SpanDecision:
        """Evaluate the span policy for ``processor_id``."""
        return evaluate_processor_span(
            self._tracing_enabled,
            self._span_generation.generate_processor_spans,
            self._excluded,
            processor_id,
        )

    def close(self) -> int:
        """Stop emitting spans and force-close every open execution.

        Returns the number of executions that still had open spans.
        """
        self._tracing_enabled = False
        with self._contexts_lock:
            contexts = list(self._contexts.values())
        closed = 0
        for context in contexts:
            with context.lock:
                if context.closed:
                    continue
                if not context.empty:
                    self._force_close_above(context, -1, None)
                    closed += 1
                self._evict(context)
        if closed:
            logger.warning("Force-closed %d open execution(s) on shutdown.", closed)
        return closed

    # ------------------------------------------------------------------
    # Pipelines
    # ------------------------------------------------------------------
    def on_pipeline_start(
        self,
        correlation_id: str,
        pipeline_name: str,
        attributes: Mapping[str, Any] | None = None,
        *,
        timestamp: Timestamp = None,
        carrier: Mapping[str, str] | None = None,
    ) -> None:
        """Open the span for a pipeline execution.

        The first pipeline of a correlation id opens a root span, remote-parented
        when ``carrier`` holds W3C trace context. A pipeline started while the
        execution is still open is a nested flow and becomes a child of the
        current stack top.
        """
        if not self._tracing_enabled:
            return
        connection = self._ready_connection()
        if connection is None:
            return

        span_attributes = normalize_attributes(attributes)
        span_attributes[PIPELINE_NAME] = pipeline_name
        span_attributes[CORRELATION_ID] = correlation_id
        span_attributes[SPAN_ROLE] = SpanRole.PIPELINE.value
        start_time = to_time_ns(timestamp)

        while True:
            context = self._get_or_create_context(correlation_id)
            with context.lock:
                if context.closed:
                    # Evicted between lookup and lock; use a fresh context.
                    continue
                try:
                    if not self._tracing_enabled:
                        # Closed while this event was in flight.
                        return
                    parent = context.top
                    if parent is None:
                        span = connection.start_span(
                            pipeline_name,
                            context=self._extract_remote_context(carrier),
                            kind=SpanKind.SERVER,
                            attributes=span_attributes,
                            start_time=start_time,
                        )
                    else:
                        span = connection.start_span(
                            pipeline_name,
                            parent=parent.span,
                            kind=SpanKind.INTERNAL,
                            attributes=span_attributes,
                            start_time=start_time,
                        )
                    context.push(
                        ActiveSpan(
                            span=span,
                            role=SpanRole.PIPELINE,
                            name=pipeline_name,
                            start_time_ns=start_time,
                        )
                    )
                finally:
                    if context.empty:
                        self._evict(context)
                return

    def on_pipeline_end(
        self,
        correlation_id: str,
        pipeline_name: str | None = None,
        outcome: Outcome | None = None,
        *,
        timestamp: Timestamp = None,
    ) -> None:
        """Close the innermost pipeline span and evict the finished execution."""
        if not self._tracing_enabled:
            return
        context = self._lookup(correlation_id)
        if context is None:
            self._report_orphan(
                "Ignoring pipeline end for '%s' (correlation id %s): "
                "no open execution.",
                pipeline_name,
                correlation_id,
            )
            return

        end_time = to_time_ns(timestamp)
        with context.lock:
            if context.closed:
                logger.warning(
                    "Ignoring pipeline end for correlation id %s: execution "
                    "already closed.",
                    correlation_id,
                )
                return
            index = context.find_pipeline(pipeline_name)
            if index is None:
                index = context.find_pipeline(None)
                if index is None:
                    logger.warning(
                        "Ignoring pipeline end for correlation id %s: no open "
                        "pipeline span.",
                        correlation_id,
                    )
                    return
                logger.warning(
                    "Pipeline end for '%s' does not match open pipeline '%s' "
                    "(correlation id %s); closing the innermost pipeline.",
                    pipeline_name,
                    context.stack[index].name,
                    correlation_id,
                )

            self._force_close_above(context, index, end_time)
            entry = context.pop()
            apply_outcome(entry.span, outcome)
            entry.span.end(end_time=end_time)
            if context.empty:
                self._evict(context)

    # ------------------------------------------------------------------
    # Processors
    # ------------------------------------------------------------------
    def on_processor_start(
        self,
        correlation_id: str,
        processor_id: str,
        attributes: Mapping[str, Any] | None = None,
        *,
        name: str | None = None,
        timestamp: Timestamp = None,
    ) -> None:
        """Open a child span for a processor under the current stack top."""
        if self.processor_decision(processor_id) is SpanDecision.SUPPRESS:
            logger.debug(
                "Processor span suppressed for %s (correlation id %s).",
                processor_id,
                correlation_id,
            )
            return
        context = self._lookup(correlation_id)
        if context is None:
            self._report_orphan(
                "Ignoring start of processor %s (correlation id %s): "
                "no open execution.",
                processor_id,
                correlation_id,
            )
            return

        span_attributes = normalize_attributes(attributes)
        span_attributes[PROCESSOR_ID] = processor_id
        span_attributes[PROCESSOR_NAME] = name or processor_id
        span_attributes[CORRELATION_ID] = correlation_id
        span_attributes[SPAN_ROLE] = SpanRole.PROCESSOR.value
        start_time = to_time_ns(timestamp)

        with context.lock:
            parent = context.top
            if context.closed or parent is None:
                logger.warning(
                    "Ignoring start of processor %s (correlation id %s): "
                    "execution already closed.",
                    processor_id,
                    correlation_id,
                )
                return
            connection = self._ready_connection()
            if connection is None:
                return
            pipeline = context.innermost_pipeline()
            if pipeline is not None:
                span_attributes[PIPELINE_NAME] = pipeline.name
            span = connection.start_span(
                name or processor_id,
                parent=parent.span,
                kind=SpanKind.INTERNAL,
                attributes=span_attributes,
                start_time=start_time,
            )
            context.push(
                ActiveSpan(
                    span=span,
                    role=SpanRole.PROCESSOR,
                    name=name or processor_id,
                    start_time_ns=start_time,
                    processor_id=processor_id,
                )
            )

    def on_processor_end(
        self,
        correlation_id: str,
        processor_id: str,
        outcome: Outcome | None = None,
        *,
        timestamp: Timestamp = None,
    ) -> None:
        """Close the span opened for ``processor_id``."""
        if self.processor_decision(processor_id) is SpanDecision.SUPPRESS:
            return
        context = self._lookup(correlation_id)
        if context is None:
            self._report_orphan(
                "Ignoring end of processor %s (correlation id %s): "
                "no open execution.",
                processor_id,
                correlation_id,
            )
            return

        end_time = to_time_ns(timestamp)
        with context.lock:
            if context.closed:
                logger.warning(
                    "Ignoring end of processor %s (correlation id %s): "
                    "execution already closed.",
                    processor_id,
                    correlation_id,
                )
                return
            top = context.top
            if top is None or not top.matches_processor(processor_id):
                index = context.find_processor(processor_id)
                if index is None:
                    logger.warning(
                        "Ignoring end of processor %s (correlation id %s): "
                        "no matching open span.",
                        processor_id,
                        correlation_id,
                    )
                    return
                logger.warning(
                    "Out-of-order end of processor %s (correlation id %s); "
                    "force-closing %d newer span(s).",
                    processor_id,
                    correlation_id,
                    len(context.stack) - index - 1,
                )
                self._force_close_above(context, index, end_time)

            entry = context.pop()
            apply_outcome(entry.span, outcome)
            entry.span.end(end_time=end_time)

    # ------------------------------------------------------------------
    # Flow-side operations
    # ------------------------------------------------------------------
    def add_pipeline_attributes(
        self, correlation_id: str, attributes: Mapping[str, Any]
    ) -> bool:
        """Attach ``attributes`` to the innermost open pipeline span."""
        context = self._lookup(correlation_id)
        if context is None:
            return False
        with context.lock:
            pipeline = None if context.closed else context.innermost_pipeline()
            if pipeline is None:
                return False
            set_attributes(pipeline.span, attributes)
            return True

    def trace_context(self, correlation_id: str) -> dict[str, str]:
        """Return W3C trace-context headers for the current stack top."""
        context = self._lookup(correlation_id)
        if context is None:
            return {}
        with context.lock:
            top = None if context.closed else context.top
            if top is None:
                return {}
            carrier: dict[str, str] = {}
            self._propagator.inject(
                carrier, context=trace.set_span_in_context(top.span)
            )
            return carrier

    def trace_id(self, correlation_id: str) -> str | None:
        """Return the hex trace id of an open execution."""
        context = self._lookup(correlation_id)
        if context is None:
            return None
        with context.lock:
            top = None if context.closed else context.top
            if top is None:
                return None
            span_context = top.span.get_span_context()
            if not span_context.is_valid:
                return None
            return format_trace_id(span_context.trace_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _ready_connection(self) -> TelemetryConnection | None:
        connection = self._connection_supplier()
        if not isinstance(connection, TelemetryConnection):
            return None
        return connection

    def _extract_remote_context(
        self, carrier: Mapping[str, str] | None
    ) -> OtelContext:
        # Header names arrive in whatever case the inbound transport used.
        headers = {
            str(key).lower(): str(value) for key, value in (carrier or {}).items()
        }
        return self._propagator.extract(headers)

    def _report_orphan(self, message: str, *args: object) -> None:
        # Without a ready connection no execution is ever opened.
        ready = self._tracing_enabled and self._ready_connection() is not None
        logger.log(logging.WARNING if ready else logging.DEBUG, message, *args)

    def _lookup(self, correlation_id: str) -> ExecutionContext | None:
        with self._contexts_lock:
            return self._contexts.get(correlation_id)

    def _get_or_create_context(self, correlation_id: str) -> ExecutionContext:
        with self._contexts_lock:
            context = self._contexts.get(correlation_id)
            if context is None:
                context = ExecutionContext(correlation_id)
                self._contexts[correlation_id] = context
            return context

    def _evict(self, context: ExecutionContext) -> None:
        """Mark ``context`` closed and drop it from the map; hold its lock."""
        context.closed = True
        with self._contexts_lock:
            if self._contexts.get(context.correlation_id) is context:
                del self._contexts[context.correlation_id]

    def _force_close_above(
        self, context: ExecutionContext, index: int, end_time: int | None
    ) -> None:
        for entry in context.pop_above(index):
            logger.warning(
                "Force-closing %s span '%s' (correlation id %s): "
                "missing end notification.",
                entry.role.value,
                entry.name,
                context.correlation_id,
            )
            entry.span.set_attribute(FORCE_CLOSED, True)
            entry.span.set_status(Status(StatusCode.ERROR, _FORCE_CLOSE_REASON))
            entry.span.end(end_time=end_time)


__all__ = ["ConnectionSupplier", "NotificationHandler", "Timestamp"]
