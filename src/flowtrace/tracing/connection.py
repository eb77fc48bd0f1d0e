"""Process-wide, lazily initialised telemetry connection."""

from __future__ import annotations
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from typing import Any
from opentelemetry import trace
from opentelemetry.context import Context
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SpanExporter
from opentelemetry.trace import Span, SpanKind
from requests import RequestException
from flowtrace.config.agent_settings import AgentConfig
from flowtrace.config.exporter_settings import ExporterConfig
from flowtrace.config.resource_settings import ResourceConfig
from flowtrace.errors import ConnectionInitializationError
from flowtrace.runtime import HostRuntimeInfo
from flowtrace.tracing.provider import build_tracer_provider


logger = logging.getLogger(__name__)

INSTRUMENTATION_NAME = "flowtrace"


@dataclass(frozen=True, slots=True)
class SdkConfig:
    """Everything needed to construct the telemetry connection."""

    resource: ResourceConfig
    exporter: ExporterConfig
    runtime: HostRuntimeInfo = field(default_factory=HostRuntimeInfo)

    @classmethod
    def from_agent_config(
        cls, config: AgentConfig, runtime: HostRuntimeInfo | None = None
    ) -> SdkConfig:
        """Project the agent configuration onto the connection inputs."""
        return cls(
            resource=config.resource,
            exporter=config.exporter,
            runtime=runtime or HostRuntimeInfo(),
        )


class TelemetryConnection:
    """Working handle around the tracer provider used to emit spans."""

    enabled = True

    def __init__(
        self, provider: TracerProvider, *, exporter: SpanExporter | None = None
    ) -> None:
        """Wrap ``provider`` and expose a tracer bound to it."""
        self._provider = provider
        self._exporter = exporter
        self.tracer = provider.get_tracer(INSTRUMENTATION_NAME)

    @property
    def provider(self) -> TracerProvider:
        """Return the tracer provider owned by the connection."""
        return self._provider

    @property
    def exporter(self) -> SpanExporter | None:
        """Expose the exporter configured during setup (useful for tests)."""
        return self._exporter

    def start_span(
        self,
        name: str,
        *,
        parent: Span | None = None,
        context: Context | None = None,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Mapping[str, Any] | None = None,
        start_time: int | None = None,
    ) -> Span:
        """Start a span under ``parent``; without one it starts a new trace.

        The thread's current context is never consulted, since notifications
        for one execution arrive on arbitrary worker threads.
        """
        if parent is not None:
            context = trace.set_span_in_context(parent)
        elif context is None:
            context = Context()
        return self.tracer.start_span(
            name,
            context=context,
            kind=kind,
            attributes=dict(attributes) if attributes else None,
            start_time=start_time,
        )

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        """Flush pending spans through the span processors."""
        return self._provider.force_flush(timeout_millis)

    def shutdown(self) -> None:
        """Flush and release exporter resources."""
        self._provider.shutdown()


class NoopConnection:
    """Stand-in served when tracing could not be initialised."""

    enabled = False
    exporter = None

    def __init__(self, cause: BaseException | None = None) -> None:
        """Remember why tracing is unavailable."""
        self.cause = cause

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        """Nothing is buffered."""
        return True

    def shutdown(self) -> None:
        """No-op."""


Connection = TelemetryConnection | NoopConnection


def create_connection(config: SdkConfig) -> TelemetryConnection:
    """Build a ready telemetry connection from ``config``."""
    try:
        provider, exporter = build_tracer_provider(
            config.resource,
            config.exporter,
            runtime=config.runtime,
        )
    except (RequestException, TypeError, ValueError) as exc:
        msg = f"Failed to configure the {config.exporter.protocol} exporter: {exc}"
        raise ConnectionInitializationError(msg) from exc
    logger.info(
        "Telemetry connection ready (service=%s, protocol=%s, endpoint=%s).",
        config.resource.service_name,
        config.exporter.protocol,
        config.exporter.endpoint or "<sdk default>",
    )
    return TelemetryConnection(provider, exporter=exporter)


class ConnectionState(str, Enum):
    """Lifecycle of the lazily created connection."""

    ABSENT = "absent"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class ConnectionCell:
    """Compute-once holder for the telemetry connection.

    The first caller constructs the connection while concurrent callers wait
    on the lock; afterwards every caller receives the same instance without
    touching the lock. A failed construction is terminal unless the caller
    asks for a retry.
    """

    def __init__(
        self,
        factory: Callable[[SdkConfig], TelemetryConnection] = create_connection,
    ) -> None:
        """Create an empty cell that builds connections with ``factory``."""
        self._factory = factory
        self._lock = Lock()
        self._state = ConnectionState.ABSENT
        self._connection: Connection | None = None
        self._failure: BaseException | None = None

    @property
    def state(self) -> ConnectionState:
        """Return the current lifecycle state."""
        return self._state

    @property
    def failure(self) -> BaseException | None:
        """Return the exception that failed initialisation, if any."""
        return self._failure

    def get(
        self,
        config_supplier: Callable[[], SdkConfig],
        *,
        retry_on_failure: bool = False,
    ) -> Connection:
        """Return the shared connection, constructing it on first use."""
        connection = self._settled(retry_on_failure)
        if connection is not None:
            return connection

        with self._lock:
            connection = self._settled(retry_on_failure)
            if connection is not None:
                return connection

            self._state = ConnectionState.INITIALIZING
            try:
                built = self._factory(config_supplier())
            except Exception as exc:
                logger.exception(
                    "Telemetry initialisation failed; tracing is disabled for "
                    "this process."
                )
                self._failure = exc
                self._connection = NoopConnection(exc)
                self._state = ConnectionState.FAILED
                return self._connection

            self._failure = None
            self._connection = built
            self._state = ConnectionState.READY
            return built

    def reset(self) -> None:
        """Shut down any ready connection and return to ``ABSENT``."""
        with self._lock:
            connection = self._connection
            self._connection = None
            self._failure = None
            self._state = ConnectionState.ABSENT
        if connection is not None:
            connection.shutdown()

    def _settled(self, retry_on_failure: bool) -> Connection | None:
        state = self._state
        if state is ConnectionState.READY:
            return self._connection
        if state is ConnectionState.FAILED and not retry_on_failure:
            return self._connection
        return None


_DEFAULT_CELL = ConnectionCell()


def get_connection(
    config_supplier: Callable[[], SdkConfig],
    *,
    retry_on_failure: bool = False,
) -> Connection:
    """Return the process-wide telemetry connection."""
    return _DEFAULT_CELL.get(config_supplier, retry_on_failure=retry_on_failure)


def connection_state() -> ConnectionState:
    """Return the lifecycle state of the process-wide connection."""
    return _DEFAULT_CELL.state


def reset_connection() -> None:
    """Reset the process-wide connection (primarily for testing)."""
    _DEFAULT_CELL.reset()


__all__ = [
    "Connection",
    "ConnectionCell",
    "ConnectionState",
    "NoopConnection",
    "SdkConfig",
    "TelemetryConnection",
    "connection_state",
    "create_connection",
    "get_connection",
    "reset_connection",
]
