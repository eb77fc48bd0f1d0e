"""Shared fixtures for flowtrace tests."""

from __future__ import annotations
from collections.abc import Callable, Iterator
import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
    InMemorySpanExporter,
)
from flowtrace import config
from flowtrace.config.span_settings import SpanGenerationConfig
from flowtrace.tracing.connection import TelemetryConnection, reset_connection
from flowtrace.tracing.handler import NotificationHandler


@pytest.fixture(autouse=True)
def _isolate_global_state(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Give every test a clean connection cell and settings cache."""
    monkeypatch.delenv("FLOWTRACE_CONFIG_FILES", raising=False)
    reset_connection()
    config.get_settings(refresh=True)
    yield
    reset_connection()
    config.get_settings(refresh=True)


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def connection(span_exporter: InMemorySpanExporter) -> Iterator[TelemetryConnection]:
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    yield TelemetryConnection(provider, exporter=span_exporter)
    provider.shutdown()


@pytest.fixture
def make_handler(
    connection: TelemetryConnection,
) -> Callable[..., NotificationHandler]:
    def _make(
        *,
        tracing_enabled: bool = True,
        span_generation: SpanGenerationConfig | None = None,
    ) -> NotificationHandler:
        return NotificationHandler(
            lambda: connection,
            tracing_enabled=tracing_enabled,
            span_generation=span_generation,
        )

    return _make
