"""Tests for tracer provider construction."""

from __future__ import annotations
from typing import Any
import pytest
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
    OTLPSpanExporter as GrpcSpanExporter,
)
from opentelemetry.exporter.otlp.proto.http import Compression as HttpCompression
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)
from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
    InMemorySpanExporter,
)
from flowtrace.config import ExporterConfig, ResourceConfig
from flowtrace.runtime import HostRuntimeInfo
from flowtrace.tracing import provider as provider_module
from flowtrace.tracing.provider import (
    build_exporter,
    build_resource,
    build_span_processor,
    build_tracer_provider,
)


def test_build_exporter_none_returns_none() -> None:
    assert build_exporter(ExporterConfig(protocol="none")) is None


def test_build_exporter_local_protocols() -> None:
    assert isinstance(
        build_exporter(ExporterConfig(protocol="console")), ConsoleSpanExporter
    )
    assert isinstance(
        build_exporter(ExporterConfig(protocol="inmemory")), InMemorySpanExporter
    )


def test_build_exporter_grpc() -> None:
    exporter = build_exporter(
        ExporterConfig(
            protocol="grpc",
            endpoint="http://collector:4317",
            insecure=True,
            compression="gzip",
        )
    )

    assert isinstance(exporter, GrpcSpanExporter)
    exporter.shutdown()


@pytest.fixture
def recorded_exporters(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    """Capture the keyword arguments handed to the OTLP exporters."""

    calls: list[dict[str, Any]] = []

    def fake_exporter(**kwargs: Any) -> InMemorySpanExporter:
        calls.append(kwargs)
        return InMemorySpanExporter()

    monkeypatch.setattr(provider_module, "HttpSpanExporter", fake_exporter)
    monkeypatch.setattr(provider_module, "GrpcSpanExporter", fake_exporter)
    return calls


def test_build_exporter_http_appends_traces_path(
    recorded_exporters: list[dict[str, Any]],
) -> None:
    build_exporter(
        ExporterConfig(
            protocol="http/protobuf",
            endpoint="http://collector:4318",
            headers={"x-api-key": "secret"},
            timeout=3,
            compression="gzip",
        )
    )

    (kwargs,) = recorded_exporters
    assert kwargs["endpoint"] == "http://collector:4318/v1/traces"
    assert kwargs["timeout"] == 3
    assert kwargs["headers"] == {"x-api-key": "secret"}
    assert kwargs["compression"] is HttpCompression.Gzip


def test_unset_endpoint_defers_to_sdk_environment(
    recorded_exporters: list[dict[str, Any]],
) -> None:
    """Only explicitly configured values are handed to the exporter."""

    build_exporter(ExporterConfig(endpoint="http://mine:4318"))
    build_exporter(ExporterConfig(timeout=None))

    configured, from_env = recorded_exporters
    assert configured["endpoint"] == "http://mine:4318/v1/traces"
    assert from_env["endpoint"] is None
    assert from_env["timeout"] is None
    assert from_env["headers"] is None


def test_build_exporter_grpc_accepts_bare_endpoint(
    recorded_exporters: list[dict[str, Any]],
) -> None:
    build_exporter(
        ExporterConfig(protocol="grpc", endpoint="collector:4317", insecure=True)
    )

    (kwargs,) = recorded_exporters
    assert kwargs["endpoint"] == "collector:4317"
    assert kwargs["insecure"] is True


def test_build_resource_prefers_configured_values(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Configured attributes beat OTEL_* variables, which beat runtime facts."""

    monkeypatch.setenv("OTEL_SERVICE_NAME", "env-service")
    monkeypatch.setenv("OTEL_RESOURCE_ATTRIBUTES", "team=platform,region=eu")
    runtime = HostRuntimeInfo(
        app_name="orders-app", host_name="node-1", working_directory="/srv/app"
    )

    resource = build_resource(
        ResourceConfig(service_name="orders", attributes={"team": "payments"}),
        runtime,
    )

    attributes = resource.attributes
    assert attributes["service.name"] == "orders"
    assert attributes["team"] == "payments"
    assert attributes["region"] == "eu"
    assert attributes["host.name"] == "node-1"
    assert attributes["flowtrace.app.name"] == "orders-app"
    assert attributes["flowtrace.app.working_directory"] == "/srv/app"
    assert "process.runtime.name" in attributes


def test_span_processor_depends_on_protocol() -> None:
    exporter = InMemorySpanExporter()

    local = build_span_processor(ExporterConfig(protocol="inmemory"), exporter)
    batched = build_span_processor(ExporterConfig(protocol="grpc"), exporter)

    assert isinstance(local, SimpleSpanProcessor)
    assert isinstance(batched, BatchSpanProcessor)
    batched.shutdown()


def test_build_tracer_provider_without_exporter_logs_warning(
    caplog: pytest.LogCaptureFixture,
) -> None:
    with caplog.at_level("WARNING", logger="flowtrace.tracing.provider"):
        provider, exporter = build_tracer_provider(
            ResourceConfig(), ExporterConfig(protocol="none")
        )

    assert exporter is None
    assert "No span exporter configured" in caplog.text
    provider.shutdown()


def test_build_tracer_provider_uses_injected_exporter() -> None:
    injected = InMemorySpanExporter()
    provider, exporter = build_tracer_provider(
        ResourceConfig(service_name="orders"),
        ExporterConfig(protocol="inmemory"),
        exporter=injected,
    )

    provider.get_tracer("test").start_span("smoke").end()

    assert exporter is injected
    assert [span.name for span in injected.get_finished_spans()] == ["smoke"]
    provider.shutdown()
