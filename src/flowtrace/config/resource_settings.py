"""Configuration model describing the OpenTelemetry resource."""

from __future__ import annotations
from typing import Any
from pydantic import BaseModel, ConfigDict, Field, field_validator
from flowtrace.config._coerce import ensure_str_dict, to_optional_str
from flowtrace.config.defaults import _DEFAULTS


class ResourceConfig(BaseModel):
    """Immutable identity of the entity producing telemetry.

    Explicit values here take precedence over ``OTEL_SERVICE_NAME`` and
    ``OTEL_RESOURCE_ATTRIBUTES`` once merged into the resource.
    """

    model_config = ConfigDict(frozen=True)

    service_name: str = Field(default=str(_DEFAULTS["SERVICE_NAME"]), min_length=1)
    service_namespace: str | None = None
    service_version: str | None = None
    service_instance_id: str | None = None
    deployment_environment: str | None = None
    attributes: dict[str, str] = Field(default_factory=dict)

    @field_validator("service_name", mode="before")
    @classmethod
    def _coerce_service_name(cls, value: object) -> str:
        text = to_optional_str(value)
        if text is None:
            return str(_DEFAULTS["SERVICE_NAME"])
        return text

    @field_validator(
        "service_namespace",
        "service_version",
        "service_instance_id",
        "deployment_environment",
        mode="before",
    )
    @classmethod
    def _coerce_optional(cls, value: object) -> str | None:
        return to_optional_str(value)

    @field_validator("attributes", mode="before")
    @classmethod
    def _coerce_attributes(cls, value: object) -> dict[str, str]:
        return ensure_str_dict(value)

    def to_attributes(self) -> dict[str, Any]:
        """Return OpenTelemetry semantic-convention resource attributes."""
        attributes: dict[str, Any] = dict(self.attributes)
        attributes["service.name"] = self.service_name
        if self.service_namespace:
            attributes["service.namespace"] = self.service_namespace
        if self.service_version:
            attributes["service.version"] = self.service_version
        if self.service_instance_id:
            attributes["service.instance.id"] = self.service_instance_id
        if self.deployment_environment:
            attributes["deployment.environment"] = self.deployment_environment
        return attributes


__all__ = ["ResourceConfig"]
