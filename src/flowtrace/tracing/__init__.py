"""Span construction from host runtime lifecycle notifications."""

from flowtrace.tracing.connection import (
    ConnectionCell,
    ConnectionState,
    NoopConnection,
    SdkConfig,
    TelemetryConnection,
    get_connection,
    reset_connection,
)
from flowtrace.tracing.handler import NotificationHandler
from flowtrace.tracing.outcome import Outcome
from flowtrace.tracing.policy import SpanDecision, evaluate_processor_span


__all__ = [
    "ConnectionCell",
    "ConnectionState",
    "NoopConnection",
    "NotificationHandler",
    "Outcome",
    "SdkConfig",
    "SpanDecision",
    "TelemetryConnection",
    "evaluate_processor_span",
    "get_connection",
    "reset_connection",
]
