"""Exceptions raised by flowtrace."""

from __future__ import annotations


class FlowtraceError(Exception):
    """Base class for flowtrace errors."""


class ConfigurationError(FlowtraceError):
    """Raised when settings cannot be turned into an agent configuration."""


class ConnectionInitializationError(FlowtraceError):
    """Raised when the telemetry connection cannot be constructed."""


__all__ = [
    "ConfigurationError",
    "ConnectionInitializationError",
    "FlowtraceError",
]
