"""Configuration models describing the OTLP trace exporter."""

from __future__ import annotations
from typing import Literal, cast
from urllib.parse import urlparse
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from flowtrace.config._coerce import coerce_choice, ensure_str_dict, to_optional_str
from flowtrace.config.defaults import _DEFAULTS


ExporterProtocol = Literal["grpc", "http/protobuf", "console", "inmemory", "none"]
ExporterCompression = Literal["none", "gzip", "deflate"]

_PROTOCOLS = {"grpc", "http/protobuf", "console", "inmemory", "none"}
_PROTOCOL_ALIASES = {"http": "http/protobuf", "otlp_http": "http/protobuf"}
_COMPRESSIONS = {"none", "gzip", "deflate"}
_OTLP_PROTOCOLS = {"grpc", "http/protobuf"}


def _is_host_port(target: str) -> bool:
    host, sep, port = target.rpartition(":")
    return bool(sep and host and port.isdigit()) and "/" not in target


class BatchConfig(BaseModel):
    """Tuning parameters handed to the SDK's ``BatchSpanProcessor``."""

    model_config = ConfigDict(frozen=True)

    max_queue_size: int = Field(
        default=cast(int, _DEFAULTS["BATCH_MAX_QUEUE_SIZE"]), gt=0
    )
    max_export_batch_size: int = Field(
        default=cast(int, _DEFAULTS["BATCH_MAX_EXPORT_BATCH_SIZE"]), gt=0
    )
    schedule_delay_millis: float = Field(
        default=cast(float, _DEFAULTS["BATCH_SCHEDULE_DELAY_MILLIS"]), gt=0
    )
    export_timeout_millis: float = Field(
        default=cast(float, _DEFAULTS["BATCH_EXPORT_TIMEOUT_MILLIS"]), gt=0
    )

    @model_validator(mode="after")
    def _check_batch_fits_queue(self) -> BatchConfig:
        if self.max_export_batch_size > self.max_queue_size:
            msg = "max_export_batch_size must not exceed max_queue_size."
            raise ValueError(msg)
        return self


class ExporterConfig(BaseModel):
    """Immutable transport parameters for the trace exporter.

    Values left unset fall back to the ``OTEL_EXPORTER_OTLP_*`` environment
    variables read by the SDK; values set here override them.
    """

    model_config = ConfigDict(frozen=True)

    protocol: ExporterProtocol = Field(
        default=cast(ExporterProtocol, _DEFAULTS["EXPORTER_PROTOCOL"])
    )
    endpoint: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    timeout: float | None = Field(
        default=cast(float, _DEFAULTS["EXPORTER_TIMEOUT"]), gt=0.0
    )
    compression: ExporterCompression = Field(
        default=cast(ExporterCompression, _DEFAULTS["EXPORTER_COMPRESSION"])
    )
    insecure: bool = bool(_DEFAULTS["EXPORTER_INSECURE"])
    batch: BatchConfig = Field(default_factory=BatchConfig)

    @field_validator("protocol", mode="before")
    @classmethod
    def _coerce_protocol(cls, value: object) -> str:
        if isinstance(value, str):
            value = _PROTOCOL_ALIASES.get(value.strip().lower(), value)
        return coerce_choice(
            value,
            allowed=_PROTOCOLS,
            default=str(_DEFAULTS["EXPORTER_PROTOCOL"]),
        )

    @field_validator("compression", mode="before")
    @classmethod
    def _coerce_compression(cls, value: object) -> str:
        return coerce_choice(
            value,
            allowed=_COMPRESSIONS,
            default=str(_DEFAULTS["EXPORTER_COMPRESSION"]),
        )

    @field_validator("headers", mode="before")
    @classmethod
    def _coerce_headers(cls, value: object) -> dict[str, str]:
        return ensure_str_dict(value)

    @field_validator("endpoint", mode="before")
    @classmethod
    def _coerce_endpoint(cls, value: object) -> str | None:
        return to_optional_str(value)

    @model_validator(mode="after")
    def _check_endpoint(self) -> ExporterConfig:
        if self.endpoint is None:
            return self
        parsed = urlparse(self.endpoint)
        if parsed.scheme in {"http", "https"} and parsed.netloc:
            return self
        # gRPC channels also accept a bare ``host:port`` target.
        if self.protocol == "grpc" and _is_host_port(self.endpoint):
            return self
        expected = "an absolute http(s) URL"
        if self.protocol == "grpc":
            expected += " or host:port"
        msg = f"Exporter endpoint '{self.endpoint}' must be {expected}."
        raise ValueError(msg)

    @property
    def is_otlp(self) -> bool:
        """Return ``True`` when spans are shipped over OTLP."""
        return self.protocol in _OTLP_PROTOCOLS

    def resolved_http_endpoint(self) -> str | None:
        """Return the HTTP traces endpoint, appending ``/v1/traces`` if absent."""
        if self.endpoint is None:
            return None
        parsed = urlparse(self.endpoint)
        if parsed.path and parsed.path not in {"", "/"}:
            return self.endpoint
        return self.endpoint.rstrip("/") + "/v1/traces"


__all__ = [
    "BatchConfig",
    "ExporterCompression",
    "ExporterConfig",
    "ExporterProtocol",
]
