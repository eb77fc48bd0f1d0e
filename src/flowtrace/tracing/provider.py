"""Helpers for building the OpenTelemetry tracer provider."""

from __future__ import annotations
import logging
import grpc
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
    OTLPSpanExporter as GrpcSpanExporter,
)
from opentelemetry.exporter.otlp.proto.http import Compression as HttpCompression
from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
    OTLPSpanExporter as HttpSpanExporter,
)
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
    SpanExporter,
)
from opentelemetry.sdk.trace.export.in_memory_span_exporter import (
    InMemorySpanExporter,
)
from flowtrace.config.exporter_settings import ExporterConfig
from flowtrace.config.resource_settings import ResourceConfig
from flowtrace.runtime import HostRuntimeInfo


logger = logging.getLogger(__name__)

_GRPC_COMPRESSION = {
    "none": grpc.Compression.NoCompression,
    "gzip": grpc.Compression.Gzip,
    "deflate": grpc.Compression.Deflate,
}
_HTTP_COMPRESSION = {
    "none": HttpCompression.NoCompression,
    "gzip": HttpCompression.Gzip,
    "deflate": HttpCompression.Deflate,
}


def build_resource(
    config: ResourceConfig, runtime: HostRuntimeInfo | None = None
) -> Resource:
    """Merge host metadata and configured attributes into a resource.

    ``Resource.create`` also folds in ``OTEL_RESOURCE_ATTRIBUTES``; the
    configured attributes are applied last and therefore win.
    """
    attributes = runtime.to_resource_attributes() if runtime is not None else {}
    attributes.update(config.to_attributes())
    return Resource.create(attributes)


def build_exporter(config: ExporterConfig) -> SpanExporter | None:
    """Instantiate the exporter selected by ``config.protocol``."""
    protocol = config.protocol
    if protocol == "none":
        return None
    if protocol == "console":
        return ConsoleSpanExporter()
    if protocol == "inmemory":
        return InMemorySpanExporter()
    headers = dict(config.headers) or None
    if protocol == "grpc":
        return GrpcSpanExporter(
            endpoint=config.endpoint,
            insecure=config.insecure or None,
            headers=headers,
            timeout=config.timeout,
            compression=_GRPC_COMPRESSION[config.compression],
        )
    if config.insecure:
        logger.warning(
            "OTLP/HTTP exporter does not support insecure transport; "
            "ignoring the exporter 'insecure' option."
        )
    return HttpSpanExporter(
        endpoint=config.resolved_http_endpoint(),
        headers=headers,
        timeout=config.timeout,
        compression=_HTTP_COMPRESSION[config.compression],
    )


def build_span_processor(
    config: ExporterConfig, exporter: SpanExporter
) -> SpanProcessor:
    """Batch OTLP exports; hand local exporters every span synchronously."""
    if not config.is_otlp:
        return SimpleSpanProcessor(exporter)
    batch = config.batch
    return BatchSpanProcessor(
        exporter,
        max_queue_size=batch.max_queue_size,
        schedule_delay_millis=batch.schedule_delay_millis,
        max_export_batch_size=batch.max_export_batch_size,
        export_timeout_millis=batch.export_timeout_millis,
    )


def build_tracer_provider(
    resource_config: ResourceConfig,
    exporter_config: ExporterConfig,
    *,
    runtime: HostRuntimeInfo | None = None,
    exporter: SpanExporter | None = None,
) -> tuple[TracerProvider, SpanExporter | None]:
    """Create a tracer provider wired to the configured exporter.

    The provider is not installed as the global provider so the host keeps
    control over its own instrumentation.
    """
    provider = TracerProvider(resource=build_resource(resource_config, runtime))
    span_exporter = exporter or build_exporter(exporter_config)
    if span_exporter is None:
        logger.warning(
            "No span exporter configured; spans will not be shipped to a collector."
        )
    else:
        provider.add_span_processor(
            build_span_processor(exporter_config, span_exporter)
        )
    return provider, span_exporter


__all__ = [
    "build_exporter",
    "build_resource",
    "build_span_processor",
    "build_tracer_provider",
]
