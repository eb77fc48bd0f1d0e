"""End-to-end tests for the observability agent."""

from __future__ import annotations
import logging
from datetime import UTC, datetime
import pytest
from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
    InMemorySpanExporter,
)
from opentelemetry.trace import StatusCode
from flowtrace import (
    AgentConfig,
    ConfigurationError,
    InMemoryListenerRegistry,
    ObservabilityAgent,
    PipelineAction,
    PipelineNotification,
    ProcessorAction,
    ProcessorNotification,
)
from flowtrace import config as flowtrace_config
from flowtrace.config import ExporterConfig, ResourceConfig, SpanGenerationConfig
from flowtrace.errors import ConnectionInitializationError
from flowtrace.notifications import (
    PipelineNotificationListener,
    ProcessorNotificationListener,
)
from flowtrace.runtime import HostRuntimeInfo
from flowtrace.tracing.attributes import FORCE_CLOSED
from flowtrace.tracing.connection import (
    ConnectionCell,
    ConnectionState,
    SdkConfig,
    TelemetryConnection,
    create_connection,
)


RUNTIME = HostRuntimeInfo(app_name="orders-app", host_name="node-1", process_id=7)


def _enabled_config(**span_generation: object) -> AgentConfig:
    return AgentConfig(
        resource=ResourceConfig(service_name="orders"),
        exporter=ExporterConfig(protocol="inmemory"),
        span_generation=SpanGenerationConfig(**span_generation),
    )


class RecordingFactory:
    """Connection factory that keeps the connections it built."""

    def __init__(self, *, fail: bool = False) -> None:
        self.built: list[TelemetryConnection] = []
        self._fail = fail

    def __call__(self, config: SdkConfig) -> TelemetryConnection:
        if self._fail:
            raise ConnectionInitializationError("collector unreachable")
        connection = create_connection(config)
        self.built.append(connection)
        return connection

    @property
    def exporter(self) -> InMemorySpanExporter:
        (connection,) = self.built
        exporter = connection.exporter
        assert isinstance(exporter, InMemorySpanExporter)
        return exporter


def _publish_order_flow(registry: InMemoryListenerRegistry, correlation_id: str) -> None:
    registry.publish(
        PipelineNotification(PipelineAction.START, correlation_id, "order-flow")
    )
    for index, component in enumerate(("core:logger", "http:request")):
        location = f"order-flow/processors/{index}"
        registry.publish(
            ProcessorNotification(
                ProcessorAction.PRE_INVOKE, correlation_id, component, location
            )
        )
        registry.publish(
            ProcessorNotification(
                ProcessorAction.POST_INVOKE, correlation_id, component, location
            )
        )
    registry.publish(
        PipelineNotification(PipelineAction.COMPLETE, correlation_id, "order-flow")
    )


def test_disabled_agent_registers_nothing(caplog: pytest.LogCaptureFixture) -> None:
    registry = InMemoryListenerRegistry()
    agent = ObservabilityAgent(registry, AgentConfig(disable_all_tracing=True))

    with caplog.at_level(logging.INFO, logger="flowtrace.agent"):
        assert agent.start() is False

    assert agent.started
    assert not agent.tracing_enabled
    assert registry.listeners == []
    assert agent.operations.get_trace_id("c1") is None
    assert "All tracing is DISABLED" in caplog.text


def test_disable_switch_read_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FLOWTRACE_DISABLE_ALL_TRACING", "true")
    flowtrace_config.get_settings(refresh=True)
    registry = InMemoryListenerRegistry()

    assert ObservabilityAgent(registry).start() is False
    assert registry.listeners == []


def test_misconfiguration_disables_tracing(caplog: pytest.LogCaptureFixture) -> None:
    def loader() -> AgentConfig:
        raise ConfigurationError("Invalid flowtrace configuration: bad endpoint")

    registry = InMemoryListenerRegistry()
    agent = ObservabilityAgent(registry, config_loader=loader)

    with caplog.at_level(logging.ERROR, logger="flowtrace.agent"):
        assert agent.start() is False

    assert registry.listeners == []
    assert "bad endpoint" in caplog.text


def test_start_registers_listeners_without_building_connection() -> None:
    factory = RecordingFactory()
    cell = ConnectionCell(factory)
    registry = InMemoryListenerRegistry()
    agent = ObservabilityAgent(
        registry, _enabled_config(), runtime=RUNTIME, connection_cell=cell
    )

    assert agent.start() is True
    assert agent.start() is True

    listeners = registry.listeners
    assert len(listeners) == 2
    assert isinstance(listeners[0], ProcessorNotificationListener)
    assert isinstance(listeners[1], PipelineNotificationListener)
    assert cell.state is ConnectionState.ABSENT
    assert factory.built == []


def test_published_notifications_become_spans() -> None:
    factory = RecordingFactory()
    cell = ConnectionCell(factory)
    registry = InMemoryListenerRegistry()
    agent = ObservabilityAgent(
        registry, _enabled_config(), runtime=RUNTIME, connection_cell=cell
    )
    agent.start()

    _publish_order_flow(registry, "c1")
    _publish_order_flow(registry, "c2")

    assert len(factory.built) == 1
    spans = factory.exporter.get_finished_spans()
    assert len(spans) == 6
    roots = [span for span in spans if span.parent is None]
    assert [root.name for root in roots] == ["order-flow", "order-flow"]
    assert roots[0].resource.attributes["service.name"] == "orders"
    assert roots[0].resource.attributes["host.name"] == "node-1"
    assert agent.handler is not None
    assert agent.handler.active_executions == 0


def test_ignored_processors_are_skipped_end_to_end() -> None:
    factory = RecordingFactory()
    registry = InMemoryListenerRegistry()
    agent = ObservabilityAgent(
        registry,
        _enabled_config(ignored_processors=["core:logger"]),
        runtime=RUNTIME,
        connection_cell=ConnectionCell(factory),
    )
    agent.start()

    _publish_order_flow(registry, "c1")

    names = sorted(span.name for span in factory.exporter.get_finished_spans())
    assert names == ["http:request", "order-flow"]


def test_failed_initialization_keeps_host_running() -> None:
    factory = RecordingFactory(fail=True)
    cell = ConnectionCell(factory)
    registry = InMemoryListenerRegistry()
    agent = ObservabilityAgent(
        registry, _enabled_config(), runtime=RUNTIME, connection_cell=cell
    )
    agent.start()

    _publish_order_flow(registry, "c1")
    _publish_order_flow(registry, "c2")

    assert cell.state is ConnectionState.FAILED
    assert factory.built == []
    assert agent.handler is not None
    assert agent.handler.active_executions == 0


def test_operations_expose_running_trace() -> None:
    factory = RecordingFactory()
    registry = InMemoryListenerRegistry()
    agent = ObservabilityAgent(
        registry,
        _enabled_config(),
        runtime=RUNTIME,
        connection_cell=ConnectionCell(factory),
    )
    agent.start()
    registry.publish(
        PipelineNotification(
            PipelineAction.START,
            "c1",
            "order-flow",
            timestamp=datetime(2024, 5, 1, tzinfo=UTC),
        )
    )

    operations = agent.operations
    assert operations.add_custom_attributes("c1", {"customer.tier": "gold"})
    assert not operations.add_custom_attributes("c1", {})
    trace_id = operations.get_trace_id("c1")
    assert operations.get_trace_context("c1")["traceparent"].startswith(
        f"00-{trace_id}-"
    )

    registry.publish(
        PipelineNotification(
            PipelineAction.COMPLETE, "c1", "order-flow", error=RuntimeError("boom")
        )
    )

    (root,) = factory.exporter.get_finished_spans()
    assert root.attributes["customer.tier"] == "gold"
    assert root.status.status_code is StatusCode.ERROR
    assert f"{root.context.trace_id:032x}" == trace_id
    assert operations.get_trace_context("c1") == {}


def test_stop_resets_the_connection() -> None:
    factory = RecordingFactory()
    cell = ConnectionCell(factory)
    registry = InMemoryListenerRegistry()
    agent = ObservabilityAgent(
        registry, _enabled_config(), runtime=RUNTIME, connection_cell=cell
    )
    agent.start()
    _publish_order_flow(registry, "c1")
    assert cell.state is ConnectionState.READY

    agent.stop()

    assert cell.state is ConnectionState.ABSENT


def test_host_runtime_detection() -> None:
    runtime = HostRuntimeInfo.detect(app_name="orders-app")

    attributes = runtime.to_resource_attributes()

    assert runtime.app_name == "orders-app"
    assert runtime.process_id is not None
    assert attributes["process.pid"] == runtime.process_id
    assert attributes["flowtrace.app.name"] == "orders-app"
    assert attributes["process.runtime.name"] == runtime.runtime_name


def test_notifications_after_stop_build_no_second_connection() -> None:
    """Stopping closes open spans and never rebuilds the connection."""

    factory = RecordingFactory()
    cell = ConnectionCell(factory)
    registry = InMemoryListenerRegistry()
    agent = ObservabilityAgent(
        registry, _enabled_config(), runtime=RUNTIME, connection_cell=cell
    )
    agent.start()
    registry.publish(PipelineNotification(PipelineAction.START, "c1", "order-flow"))
    registry.publish(
        ProcessorNotification(ProcessorAction.PRE_INVOKE, "c1", "http:request", "f/0")
    )

    agent.stop()
    assert registry.listeners == []
    assert not agent.tracing_enabled

    handler = agent.handler
    assert handler is not None
    # Hosts that keep delivering events must not revive tracing.
    for listener in (
        ProcessorNotificationListener(handler),
        PipelineNotificationListener(handler),
    ):
        registry.register_listener(listener)
    registry.publish(
        ProcessorNotification(ProcessorAction.POST_INVOKE, "c1", "http:request", "f/0")
    )
    registry.publish(PipelineNotification(PipelineAction.COMPLETE, "c1", "order-flow"))
    registry.publish(PipelineNotification(PipelineAction.START, "c9", "order-flow"))

    assert len(factory.built) == 1
    assert cell.state is ConnectionState.ABSENT
    assert handler.active_executions == 0
    finished = factory.exporter.get_finished_spans()
    assert [span.name for span in finished] == ["http:request", "order-flow"]
    assert all(span.attributes[FORCE_CLOSED] is True for span in finished)
    assert agent.operations.get_trace_id("c9") is None


def test_stop_is_idempotent() -> None:
    factory = RecordingFactory()
    cell = ConnectionCell(factory)
    agent = ObservabilityAgent(
        InMemoryListenerRegistry(),
        _enabled_config(),
        runtime=RUNTIME,
        connection_cell=cell,
    )
    agent.start()

    agent.stop()
    agent.stop()

    assert agent.start() is False
    assert factory.built == []
