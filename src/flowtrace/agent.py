"""Entry point that wires flowtrace into the host runtime."""

from __future__ import annotations
import logging
from collections.abc import Callable
from flowtrace.config import load_agent_config
from flowtrace.config.agent_settings import AgentConfig
from flowtrace.errors import ConfigurationError
from flowtrace.notifications.listeners import (
    PipelineNotificationListener,
    ProcessorNotificationListener,
)
from flowtrace.notifications.registry import (
    NotificationListener,
    NotificationListenerRegistry,
)
from flowtrace.operations import TraceOperations
from flowtrace.runtime import HostRuntimeInfo
from flowtrace.tracing.connection import (
    Connection,
    ConnectionCell,
    NoopConnection,
    SdkConfig,
    get_connection,
    reset_connection,
)
from flowtrace.tracing.handler import NotificationHandler


logger = logging.getLogger(__name__)


class ObservabilityAgent:
    """Register span-producing listeners with the host runtime.

    The telemetry connection is not built here: SDK initialisation is deferred
    until the handler receives its first notification, when the host has
    finished resolving its own dependencies.
    """

    def __init__(
        self,
        registry: NotificationListenerRegistry,
        config: AgentConfig | None = None,
        *,
        runtime: HostRuntimeInfo | None = None,
        connection_cell: ConnectionCell | None = None,
        config_loader: Callable[[], AgentConfig] = load_agent_config,
    ) -> None:
        """Prepare the agent; ``config`` defaults to the loaded settings."""
        self._registry = registry
        self._config = config
        self._runtime = runtime
        self._cell = connection_cell
        self._config_loader = config_loader
        self._handler: NotificationHandler | None = None
        self._operations = TraceOperations(None)
        self._started = False
        self._stopped = False
        self._listeners: list[NotificationListener] = []

    @property
    def started(self) -> bool:
        """Return ``True`` once ``start`` has run."""
        return self._started

    @property
    def tracing_enabled(self) -> bool:
        """Return ``True`` when listeners were registered."""
        return self._handler is not None and not self._stopped

    @property
    def handler(self) -> NotificationHandler | None:
        """Return the notification handler, if tracing is enabled."""
        return self._handler

    @property
    def operations(self) -> TraceOperations:
        """Return the flow-side trace operations."""
        return self._operations

    def start(self) -> bool:
        """Register listeners unless tracing is disabled or misconfigured."""
        if self._started:
            return self.tracing_enabled
        self._started = True
        logger.info("flowtrace agent starting")

        try:
            config = self._config or self._config_loader()
        except ConfigurationError as exc:
            logger.error("Tracing disabled: %s", exc)
            return False
        self._config = config

        if config.disable_all_tracing:
            logger.info("All tracing is DISABLED")
            return False

        sdk_config = SdkConfig.from_agent_config(
            config, self._runtime or HostRuntimeInfo.detect()
        )
        retry = config.retry_failed_initialization
        cell = self._cell

        def connection_supplier() -> Connection:
            if self._stopped:
                return NoopConnection()
            if cell is None:
                return get_connection(lambda: sdk_config, retry_on_failure=retry)
            return cell.get(lambda: sdk_config, retry_on_failure=retry)

        handler = NotificationHandler(
            connection_supplier,
            tracing_enabled=config.tracing_enabled,
            span_generation=config.span_generation,
        )
        # Pipeline notifications describe flows; processor notifications the
        # steps inside them.
        enabled = config.tracing_enabled
        self._listeners = [
            ProcessorNotificationListener(handler, tracing_enabled=enabled),
            PipelineNotificationListener(handler, tracing_enabled=enabled),
        ]
        for listener in self._listeners:
            self._registry.register_listener(listener)
        self._handler = handler
        self._operations = TraceOperations(handler)
        logger.info(
            "flowtrace listeners registered (processor spans %s, %d ignored).",
            "on" if config.span_generation.generate_processor_spans else "off",
            len(config.span_generation.ignored_processors),
        )
        return True

    def stop(self) -> None:
        """Stop tracing, close open spans and shut the connection down.

        No connection is built after ``stop``; notifications still delivered
        by the host are ignored.
        """
        if self._handler is None or self._stopped:
            return
        self._stopped = True
        unregister = getattr(self._registry, "unregister_listener", None)
        if callable(unregister):
            for listener in self._listeners:
                unregister(listener)
        self._listeners = []
        self._handler.close()
        self._operations = TraceOperations(None)
        if self._cell is None:
            reset_connection()
        else:
            self._cell.reset()
        logger.info("flowtrace agent stopped")


__all__ = ["ObservabilityAgent"]
