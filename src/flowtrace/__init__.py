"""OpenTelemetry tracing for flows executing inside a host runtime."""

from flowtrace.agent import ObservabilityAgent
from flowtrace.config import AgentConfig, load_agent_config
from flowtrace.errors import (
    ConfigurationError,
    ConnectionInitializationError,
    FlowtraceError,
)
from flowtrace.notifications import (
    InMemoryListenerRegistry,
    PipelineAction,
    PipelineNotification,
    ProcessorAction,
    ProcessorNotification,
)
from flowtrace.operations import TraceOperations
from flowtrace.tracing import NotificationHandler, Outcome


__version__ = "0.1.0"

__all__ = [
    "AgentConfig",
    "ConfigurationError",
    "ConnectionInitializationError",
    "FlowtraceError",
    "InMemoryListenerRegistry",
    "NotificationHandler",
    "ObservabilityAgent",
    "Outcome",
    "PipelineAction",
    "PipelineNotification",
    "ProcessorAction",
    "ProcessorNotification",
    "TraceOperations",
    "load_agent_config",
]
