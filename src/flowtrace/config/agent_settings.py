"""Top-level agent configuration assembled from the individual groups."""

from __future__ import annotations
from collections.abc import Mapping
from typing import Any
from pydantic import BaseModel, ConfigDict, Field, field_validator
from flowtrace.config._coerce import coerce_mapping, to_bool
from flowtrace.config.defaults import _DEFAULTS
from flowtrace.config.exporter_settings import BatchConfig, ExporterConfig
from flowtrace.config.resource_settings import ResourceConfig
from flowtrace.config.span_settings import SpanGenerationConfig


_NORMALIZED_KEYS = ("disable_all_tracing", "resource", "exporter", "span_generation")


class AgentConfig(BaseModel):
    """Complete, immutable configuration of the observability agent.

    When ``disable_all_tracing`` is set every other group is ignored.
    """

    model_config = ConfigDict(frozen=True)

    disable_all_tracing: bool = Field(default=bool(_DEFAULTS["DISABLE_ALL_TRACING"]))
    retry_failed_initialization: bool = Field(
        default=bool(_DEFAULTS["RETRY_FAILED_INITIALIZATION"])
    )
    resource: ResourceConfig = Field(default_factory=ResourceConfig)
    exporter: ExporterConfig = Field(default_factory=ExporterConfig)
    span_generation: SpanGenerationConfig = Field(
        default_factory=SpanGenerationConfig
    )

    @field_validator("disable_all_tracing", mode="before")
    @classmethod
    def _coerce_disable(cls, value: object) -> bool:
        return to_bool(value, default=_DEFAULTS["DISABLE_ALL_TRACING"])

    @field_validator("retry_failed_initialization", mode="before")
    @classmethod
    def _coerce_retry(cls, value: object) -> bool:
        return to_bool(value, default=_DEFAULTS["RETRY_FAILED_INITIALIZATION"])

    @property
    def tracing_enabled(self) -> bool:
        """Return ``True`` unless the global disable switch is set."""
        return not self.disable_all_tracing

    @classmethod
    def from_mapping(cls, source: Mapping[str, Any] | None) -> AgentConfig:
        """Create the configuration from a mapping or Dynaconf instance."""
        raw = coerce_mapping(source)
        # Normalized configuration stores nested snake_case groups.
        if any(key in raw for key in _NORMALIZED_KEYS):
            return cls.model_validate(raw)

        upper = {str(key).upper(): value for key, value in raw.items()}
        return cls(
            disable_all_tracing=upper.get("DISABLE_ALL_TRACING"),
            retry_failed_initialization=upper.get("RETRY_FAILED_INITIALIZATION"),
            resource=ResourceConfig(
                service_name=upper.get("SERVICE_NAME"),
                service_namespace=upper.get("SERVICE_NAMESPACE"),
                service_version=upper.get("SERVICE_VERSION"),
                service_instance_id=upper.get("SERVICE_INSTANCE_ID"),
                deployment_environment=upper.get("DEPLOYMENT_ENVIRONMENT"),
                attributes=upper.get("RESOURCE_ATTRIBUTES"),
            ),
            exporter=ExporterConfig(
                protocol=upper.get("EXPORTER_PROTOCOL"),
                endpoint=upper.get("EXPORTER_ENDPOINT"),
                headers=upper.get("EXPORTER_HEADERS"),
                timeout=upper.get("EXPORTER_TIMEOUT", _DEFAULTS["EXPORTER_TIMEOUT"]),
                compression=upper.get("EXPORTER_COMPRESSION"),
                insecure=to_bool(
                    upper.get("EXPORTER_INSECURE"),
                    default=_DEFAULTS["EXPORTER_INSECURE"],
                ),
                batch=BatchConfig(
                    max_queue_size=upper.get(
                        "BATCH_MAX_QUEUE_SIZE", _DEFAULTS["BATCH_MAX_QUEUE_SIZE"]
                    ),
                    max_export_batch_size=upper.get(
                        "BATCH_MAX_EXPORT_BATCH_SIZE",
                        _DEFAULTS["BATCH_MAX_EXPORT_BATCH_SIZE"],
                    ),
                    schedule_delay_millis=upper.get(
                        "BATCH_SCHEDULE_DELAY_MILLIS",
                        _DEFAULTS["BATCH_SCHEDULE_DELAY_MILLIS"],
                    ),
                    export_timeout_millis=upper.get(
                        "BATCH_EXPORT_TIMEOUT_MILLIS",
                        _DEFAULTS["BATCH_EXPORT_TIMEOUT_MILLIS"],
                    ),
                ),
            ),
            span_generation=SpanGenerationConfig(
                generate_processor_spans=upper.get("GENERATE_PROCESSOR_SPANS"),
                ignored_processors=upper.get("IGNORED_PROCESSORS"),
            ),
        )


__all__ = ["AgentConfig"]
